from __future__ import annotations

from typing import Any, Mapping, Union

from .models import FIELD_KEYS, Snapshot
from .store import StateStore


PartialSnapshot = Union[Snapshot, Mapping[str, Any]]


class StateSnapshot:
    """
    Reads and writes the fixed field set of a `Snapshot` against a `StateStore`.

    `apply` is a merge, not a replace: a field is written only when the
    input carries it as a string. Absent fields (and anything that is not a
    string) leave the stored value alone, so an older or partial token never
    wipes newer local answers.
    """

    def __init__(self, store: StateStore) -> None:
        self._store = store

    def build(self) -> Snapshot:
        return Snapshot.model_validate({k: self._store.get(k) for k in FIELD_KEYS})

    def apply(self, snapshot: PartialSnapshot) -> int:
        """Merge `snapshot` into the store. Returns the number of fields written."""
        if isinstance(snapshot, Snapshot):
            data: Mapping[str, Any] = snapshot.to_mapping()
        else:
            data = snapshot
        written = 0
        for key in FIELD_KEYS:
            value = data.get(key)
            if isinstance(value, str):
                self._store.set(key, value)
                written += 1
        return written

    def clear(self) -> None:
        for key in FIELD_KEYS:
            self._store.delete(key)
