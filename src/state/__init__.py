"""
Saved-progress state: the fixed-shape snapshot model and the device store.

The snapshot is built from and merged back into a `StateStore`; the token
protocol in `common` turns it into shareable Resume Codes.
"""

from .models import FIELD_KEYS, Snapshot
from .snapshot import StateSnapshot
from .store import JsonFileStateStore, MemoryStateStore, StateStore

__all__ = [
    "FIELD_KEYS",
    "JsonFileStateStore",
    "MemoryStateStore",
    "Snapshot",
    "StateSnapshot",
    "StateStore",
]
