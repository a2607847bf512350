"""Generic async Firestore repository for top-level collections."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, Type, TypeVar

from pydantic import TypeAdapter

from courier.contracts.common import FirestoreModel
from courier.persistence.errors import DocumentNotFoundError
from courier.persistence.firestore_client import get_firestore_client

T = TypeVar("T", bound=FirestoreModel)

_DATETIME = TypeAdapter(datetime)


def to_firestore_datetime(value: datetime) -> str:
    """Serialize a datetime exactly as ``to_firestore()`` does for model fields."""
    return _DATETIME.dump_python(value, mode="json")


class BaseRepository(Generic[T]):
    """CRUD for a root Firestore collection such as ``/messages``.

    Serialization relies entirely on the contract's ``to_firestore()``
    and ``from_firestore()`` methods, no extra mapping layer. The client
    is injected in tests; otherwise the shared lazy client is used.
    """

    def __init__(self, model_class: Type[T], collection_name: str, client: Any = None):
        self._model_class = model_class
        self._collection_name = collection_name
        self._client = client

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _db(self) -> Any:
        return self._client if self._client is not None else get_firestore_client()

    def _collection_ref(self):
        return self._db().collection(self._collection_name)

    def _hydrate(self, doc) -> T:
        data = doc.to_dict()
        data["id"] = doc.id
        return self._model_class.from_firestore(data)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get(self, doc_id: str) -> T | None:
        """Fetch a single document by ID. Returns *None* if missing."""
        doc = await self._collection_ref().document(doc_id).get()
        if not doc.exists:
            return None
        return self._hydrate(doc)

    async def get_or_raise(self, doc_id: str) -> T:
        entity = await self.get(doc_id)
        if entity is None:
            raise DocumentNotFoundError(self._collection_name, doc_id)
        return entity

    async def list_all(self) -> list[T]:
        """Stream every document in the collection."""
        return [self._hydrate(doc) async for doc in self._collection_ref().stream()]

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def create(self, entity: T) -> str:
        """Create a document and return its ID.

        An ``id`` already set on the entity is used as the document ID;
        otherwise Firestore auto-generates one.
        """
        data = entity.to_firestore()
        doc_id = data.pop("id", None)
        if doc_id:
            await self._collection_ref().document(doc_id).set(data)
            return doc_id
        ref = await self._collection_ref().add(data)
        return ref[1].id  # (write_result, doc_ref) tuple

    async def update(self, doc_id: str, entity: T) -> None:
        """Partial update (merge) of an existing document."""
        data = entity.to_firestore()
        data.pop("id", None)
        await self._collection_ref().document(doc_id).set(data, merge=True)

    async def delete(self, doc_id: str) -> None:
        await self._collection_ref().document(doc_id).delete()
