from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Snapshot(BaseModel):
    """
    Fixed-shape record of a learner's saved progress.

    Fields (store key in parentheses when it differs)
    - p1_original: first free-text answer for step 1.
    - p1_revised: optional revised answer for step 1.
    - p2_original: free-text answer for step 2.
    - branch_choice: selected decision track (e.g., "weather", "human", "habitat").
    - current_step ("currentStep"): identifier of the last-viewed step.

    Notes
    - `build()` always yields every field as a string; `""` means unset.
    - A snapshot decoded from an older or partial token leaves missing fields
      as `None`. `None` means "absent" and is never written to the store.
    - Field order is the canonical serialization order. Do not reorder.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    p1_original: Optional[str] = None
    p1_revised: Optional[str] = None
    p2_original: Optional[str] = None
    branch_choice: Optional[str] = None
    current_step: Optional[str] = Field(default=None, alias="currentStep")

    @classmethod
    def empty(cls) -> "Snapshot":
        """Snapshot with every field present and unset."""
        return cls.model_validate({k: "" for k in FIELD_KEYS})

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Snapshot":
        """Build a (possibly partial) snapshot from a store-keyed mapping.

        Unknown keys and non-string values are dropped, so nothing outside
        the fixed field set can reach the store.
        """
        return cls.model_validate(
            {k: data[k] for k in FIELD_KEYS if isinstance(data.get(k), str)}
        )

    def to_mapping(self) -> Dict[str, str]:
        """Store-keyed mapping of the fields that are present, in canonical order."""
        return {k: v for k, v in self.model_dump(by_alias=True).items() if v is not None}

    def is_complete(self) -> bool:
        return all(v is not None for v in self.model_dump().values())


FIELD_KEYS: Tuple[str, ...] = tuple(
    f.alias or name for name, f in Snapshot.model_fields.items()
)


def dump_canonical(snapshot: Snapshot) -> bytes:
    # Stable field order, no whitespace, UTF-8 text kept as-is
    return json.dumps(
        snapshot.to_mapping(), separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")
