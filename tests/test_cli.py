"""Tests for the operator CLI."""

import pytest

from courier.cli import main


class TestRouteCommand:
    def test_prints_route(self, capsys):
        assert main(["route", "--from", "51.5074,-0.1278", "--to", "40.7128,-74.0060"]) == 0
        out = capsys.readouterr().out
        assert "waypoints" in out
        assert "wp_0" in out
        assert "ocean:" in out

    def test_bad_point(self):
        with pytest.raises(SystemExit) as exc:
            main(["route", "--from", "north", "--to", "1,2"])
        assert exc.value.code == 2
