"""Exceptions raised by the Firestore repositories."""


class PersistenceError(Exception):
    """Base class for storage failures the repositories surface."""


class DocumentNotFoundError(PersistenceError):
    """A repository was asked for a document that is not stored."""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"No {collection} document with id {doc_id!r}")

    @property
    def path(self) -> str:
        return f"{self.collection}/{self.doc_id}"
