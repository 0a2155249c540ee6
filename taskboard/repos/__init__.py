"""
Repository layer for Taskboard.

All storage access lives here and ONLY here. Services talk to a Datastore.
"""

from taskboard.repos.datastore import KINDS, TASKS, USERS, Datastore
from taskboard.repos.memory_store import MemoryDatastore

__all__ = [
    "Datastore",
    "MemoryDatastore",
    "USERS",
    "TASKS",
    "KINDS",
]
