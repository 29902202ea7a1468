"""
IRD Inventory - Storage Layer

Exports the DocumentStore contract and its two backends.
"""

from .base import (
    LEGACY_MANAGEMENT_IP_INDEX,
    STANDALONE_TRANSACTION_MESSAGE,
    UNIQUE_INDEXES,
    Collection,
    Document,
    DocumentStore,
    DuplicateKeyError,
    StoreError,
    StoreSession,
    TransactionNotSupportedError,
    UniqueIndex,
)
from .memory import MemoryStore
from .postgres import PostgresStore

__all__ = [
    "Collection",
    "Document",
    "DocumentStore",
    "DuplicateKeyError",
    "LEGACY_MANAGEMENT_IP_INDEX",
    "MemoryStore",
    "PostgresStore",
    "STANDALONE_TRANSACTION_MESSAGE",
    "StoreError",
    "StoreSession",
    "TransactionNotSupportedError",
    "UNIQUE_INDEXES",
    "UniqueIndex",
]
