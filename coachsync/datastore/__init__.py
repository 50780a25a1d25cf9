"""
Store adapters.

- DataStore: the uniform contract both backends implement
- LocalDataStore: embedded SQLite store (local-first, single writer)
- CloudDataStore: REST-backed cloud store (multi-device)
- InMemoryStore: reference implementation
"""
from coachsync.datastore.base import DataStore, Document
from coachsync.datastore.memory import InMemoryStore
from coachsync.datastore.local import LocalDataStore
from coachsync.datastore.cloud import CloudDataStore

__all__ = [
    "DataStore",
    "Document",
    "InMemoryStore",
    "LocalDataStore",
    "CloudDataStore",
]
