"""
IRD Inventory - Document Store Contract

Abstract storage boundary used by the services layer. Every operation takes an
explicit ``session`` keyword: ``None`` means the call runs on its own, a
``StoreSession`` means the call joins an open multi-document transaction.

Usage:
    from ird_inventory.store import Collection, DocumentStore

    async with store.transaction() as session:
        ird = await store.insert_one(Collection.IRD, doc, session=session)
        await store.update_many(
            Collection.EQUIPMENT, {"ird_ref": ird["id"]}, {"ird_ref": None}, session=session
        )
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

Document = Dict[str, Any]
Filter = Mapping[str, Any]

# Message reported by standalone (non-replicated) deployments.
STANDALONE_TRANSACTION_MESSAGE = (
    "Transaction numbers are only allowed on a replica set member or mongos"
)


class Collection(str, Enum):
    """Stored collections."""

    EQUIPMENT_TYPE = "equipment_types"
    EQUIPMENT = "equipment"
    IRD = "irds"
    CONTACT = "contacts"


# =============================================================================
# Unique Indexes
# =============================================================================


@dataclass(frozen=True)
class UniqueIndex:
    """
    A unique constraint over one or more document fields.

    ``sparse`` indexes only apply when every indexed field is non-null.
    ``case_insensitive`` indexes compare string values lowercased.
    ``unless`` names a field that exempts a document from the index when set.
    """

    name: str
    fields: Tuple[str, ...]
    sparse: bool = False
    case_insensitive: bool = False
    unless: Optional[str] = None

    def key_for(self, doc: Mapping[str, Any]) -> Optional[Tuple[Any, ...]]:
        if self.unless and doc.get(self.unless) is not None:
            return None
        values = tuple(doc.get(f) for f in self.fields)
        if self.sparse and any(v is None for v in values):
            return None
        if self.case_insensitive:
            values = tuple(v.lower() if isinstance(v, str) else v for v in values)
        return values


UNIQUE_INDEXES: Dict[Collection, Tuple[UniqueIndex, ...]] = {
    Collection.EQUIPMENT_TYPE: (UniqueIndex("equipment_types_name_lower_key", ("name_lower",)),),
    Collection.IRD: (
        UniqueIndex(
            "irds_name_admin_ip_key",
            ("name", "admin_ip"),
            case_insensitive=True,
            unless="import_batch",
        ),
    ),
    Collection.EQUIPMENT: (UniqueIndex("equipment_ird_ref_key", ("ird_ref",), sparse=True),),
    Collection.CONTACT: (
        UniqueIndex("contacts_name_key", ("name",)),
        UniqueIndex("contacts_email_key", ("email",), sparse=True),
        UniqueIndex("contacts_phone_key", ("phone",), sparse=True),
    ),
}

# Older deployments enforced a unique management IP on equipment.
LEGACY_MANAGEMENT_IP_INDEX = UniqueIndex(
    "equipment_management_ip_key", ("management_ip",), sparse=True
)


def find_index(collection: Collection, name: str) -> Optional[UniqueIndex]:
    for index in UNIQUE_INDEXES.get(collection, ()):
        if index.name == name:
            return index
    if collection is Collection.EQUIPMENT and name == LEGACY_MANAGEMENT_IP_INDEX.name:
        return LEGACY_MANAGEMENT_IP_INDEX
    return None


# =============================================================================
# Store Errors
# =============================================================================


class StoreError(Exception):
    """Unexpected failure reported by the storage layer."""


class DuplicateKeyError(StoreError):
    """A write violated a unique index."""

    def __init__(
        self,
        collection: Collection,
        index: str,
        key_value: Mapping[str, Any],
    ):
        self.collection = collection
        self.index = index
        self.key_value = dict(key_value)
        super().__init__(
            f"E11000 duplicate key error collection: {collection.value} "
            f"index: {index} dup key: {self.key_value}"
        )

    @property
    def fields(self) -> List[str]:
        return list(self.key_value)


class TransactionNotSupportedError(StoreError):
    """The deployment cannot run multi-document transactions."""

    def __init__(self, message: str = STANDALONE_TRANSACTION_MESSAGE):
        super().__init__(message)


# =============================================================================
# Sessions
# =============================================================================


@dataclass
class StoreSession:
    """Handle for an open transaction. Pass it as ``session=`` to join it."""

    store: "DocumentStore"
    handle: Any = None


# =============================================================================
# Store Contract
# =============================================================================


class DocumentStore(ABC):
    """Document CRUD with optional session-scoped transactions."""

    backend: str = "abstract"

    @abstractmethod
    def transaction(self) -> Any:
        """
        Async context manager yielding a ``StoreSession``.

        Commits when the block exits normally, aborts when it raises.
        Raises TransactionNotSupportedError when the deployment has no
        multi-document transaction support.
        """

    @abstractmethod
    async def insert_one(
        self, collection: Collection, doc: Mapping[str, Any], *, session: Optional[StoreSession] = None
    ) -> Document:
        """Insert ``doc`` and return the stored document including its ``id``."""

    @abstractmethod
    async def find_one(
        self, collection: Collection, filter: Filter, *, session: Optional[StoreSession] = None
    ) -> Optional[Document]:
        ...

    @abstractmethod
    async def find_many(
        self,
        collection: Collection,
        filter: Optional[Filter] = None,
        *,
        sort: Optional[Sequence[str]] = None,
        session: Optional[StoreSession] = None,
    ) -> List[Document]:
        ...

    @abstractmethod
    async def find_one_and_update(
        self,
        collection: Collection,
        filter: Filter,
        patch: Mapping[str, Any],
        *,
        return_updated: bool = True,
        upsert: bool = False,
        session: Optional[StoreSession] = None,
    ) -> Optional[Document]:
        ...

    @abstractmethod
    async def delete_one(
        self, collection: Collection, id: str, *, session: Optional[StoreSession] = None
    ) -> Optional[Document]:
        """Delete by id and return the removed document, or None."""

    @abstractmethod
    async def delete_many(
        self, collection: Collection, filter: Filter, *, session: Optional[StoreSession] = None
    ) -> int:
        ...

    @abstractmethod
    async def update_many(
        self,
        collection: Collection,
        filter: Filter,
        patch: Mapping[str, Any],
        *,
        session: Optional[StoreSession] = None,
    ) -> int:
        ...

    @abstractmethod
    async def count(
        self, collection: Collection, filter: Filter, *, session: Optional[StoreSession] = None
    ) -> int:
        ...

    @abstractmethod
    async def ping(self) -> bool:
        ...

    async def close(self) -> None:
        return None

    async def find_by_id(
        self, collection: Collection, id: Optional[str], *, session: Optional[StoreSession] = None
    ) -> Optional[Document]:
        if not id:
            return None
        return await self.find_one(collection, {"id": id}, session=session)

    async def populate(
        self,
        doc: Optional[Mapping[str, Any]],
        refs: Mapping[str, Collection],
        *,
        session: Optional[StoreSession] = None,
    ) -> Optional[Document]:
        """
        Replace reference ids in ``doc`` with the referenced documents.

        ``refs`` maps a field name to the collection it points into. Dangling
        references resolve to None.
        """
        if doc is None:
            return None
        populated = dict(doc)
        for field_name, target in refs.items():
            ref_id = populated.get(field_name)
            if ref_id is None or isinstance(ref_id, dict):
                continue
            populated[field_name] = await self.find_by_id(target, ref_id, session=session)
        return populated

