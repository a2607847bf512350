"""Firestore async client, created lazily and shared by the repositories."""

from __future__ import annotations

import logging
import os

from google.cloud.firestore import AsyncClient

logger = logging.getLogger(__name__)

_client: AsyncClient | None = None


def get_firestore_client() -> AsyncClient:
    """Return a lazy-initialized Firestore AsyncClient.

    Uses Application Default Credentials (ADC). ``COURIER_FIRESTORE_PROJECT``
    overrides the project inferred from the environment; when
    ``FIRESTORE_EMULATOR_HOST`` is set the client talks to the emulator.
    """
    global _client
    if _client is not None:
        return _client

    project = os.environ.get("COURIER_FIRESTORE_PROJECT")
    _client = AsyncClient(project=project) if project else AsyncClient()
    if os.environ.get("FIRESTORE_EMULATOR_HOST"):
        logger.info("Using Firestore emulator at %s", os.environ["FIRESTORE_EMULATOR_HOST"])
    else:
        logger.info("Using Google Cloud Firestore")
    return _client


def _reset_client() -> None:
    """Reset the singleton (for testing only)."""
    global _client
    _client = None
