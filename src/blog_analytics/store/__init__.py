"""
Storage backends for page views and blog content counts.
"""

from .base import ContentStore, EventStore
from .d1 import D1ContentStore, D1Database, D1EventStore
from .memory import InMemoryContentStore, InMemoryEventStore

__all__ = [
    "EventStore", "ContentStore",
    "InMemoryEventStore", "InMemoryContentStore",
    "D1Database", "D1EventStore", "D1ContentStore",
]
