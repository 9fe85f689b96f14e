"""
Object storage backends

Every backend implements the ObjectStore interface; the one in use is picked
by STORAGE_BACKEND through get_object_store().
"""

from repo_analyzer.storage.base import ObjectStore, StoredObject
from repo_analyzer.storage.factory import get_object_store

__all__ = [
    "ObjectStore",
    "StoredObject",
    "get_object_store",
]
