from __future__ import annotations

import logging
import re
import secrets
from typing import List, Optional

from state.models import Snapshot, dump_canonical
from state.store import StateStore

from .codec import parse_canonical
from .errors import DecodeError, CorruptPayload, NotFound


logger = logging.getLogger(__name__)

# No 0/O, 1/I/L: codes are read off screens and typed back by hand
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
DEFAULT_CODE_LENGTH = 6
DEFAULT_KEY_PREFIX = "sins_code_"
MAX_ISSUE_ATTEMPTS = 32

_SEPARATORS_RE = re.compile(r"[\s\-]+")


class ShortCodeRegistry:
    """
    Issues short, human-copyable codes that alias a snapshot kept on this device.

    - Entries live in the `StateStore` under `prefix + code` as canonical JSON.
    - Codes are drawn from `secrets` over `CODE_ALPHABET`; a local collision
      is retried.
    - Same-device only: the code is a pointer, not a transport. Entries are
      never evicted; only `clear()` removes them.
    """

    def __init__(
        self,
        store: StateStore,
        *,
        prefix: str = DEFAULT_KEY_PREFIX,
        length: int = DEFAULT_CODE_LENGTH,
    ) -> None:
        if not prefix:
            raise ValueError("prefix is required")
        if length < 4:
            raise ValueError("length must be >= 4")
        self._store = store
        self._prefix = prefix
        self._length = length
        self._code_re = re.compile(f"[{CODE_ALPHABET}]{{{length}}}")

    def _key(self, code: str) -> str:
        return f"{self._prefix}{code}"

    def _new_code(self) -> str:
        return "".join(secrets.choice(CODE_ALPHABET) for _ in range(self._length))

    def normalize(self, text: str) -> str:
        return _SEPARATORS_RE.sub("", text or "").upper()

    def looks_like_code(self, text: str) -> bool:
        """Whether `text` has the shape of a short code (after normalization)."""
        return self._code_re.fullmatch(self.normalize(text)) is not None

    def issue(self, snapshot: Snapshot) -> str:
        """Store `snapshot` under a fresh code and return the code."""
        payload = dump_canonical(snapshot).decode("utf-8")
        for _ in range(MAX_ISSUE_ATTEMPTS):
            code = self._new_code()
            key = self._key(code)
            if self._store.get(key):
                logger.debug("Short code collision on %s, retrying", code)
                continue
            self._store.set(key, payload)
            return code
        raise RuntimeError(f"Could not issue a unique short code after {MAX_ISSUE_ATTEMPTS} attempts")

    def resolve(self, code: str) -> Snapshot:
        """Return the snapshot stored under `code`.

        Raises NotFound when no entry exists, CorruptPayload when the stored
        entry can no longer be read.
        """
        normalized = self.normalize(code)
        if not self._code_re.fullmatch(normalized):
            raise NotFound(f"not a short code: {code!r}")
        raw = self._store.get(self._key(normalized))
        if not raw:
            raise NotFound(f"no saved work for code {normalized}")
        try:
            return parse_canonical(raw.encode("utf-8"))
        except DecodeError as ex:
            raise CorruptPayload(f"stored entry for {normalized} is unreadable") from ex

    def codes(self) -> List[str]:
        return [k[len(self._prefix):] for k in self._store.keys() if k.startswith(self._prefix)]

    def clear(self) -> int:
        """Delete every short code entry. Returns how many were removed."""
        removed = 0
        for code in self.codes():
            self._store.delete(self._key(code))
            removed += 1
        return removed

    def describe(self, code: str) -> Optional[str]:
        """Display form of a code, e.g. "ABC-DEF"; None if it isn't one."""
        normalized = self.normalize(code)
        if not self._code_re.fullmatch(normalized):
            return None
        half = len(normalized) // 2
        return f"{normalized[:half]}-{normalized[half:]}"
