from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from common.clipboard import copy_text
from common.codec import TokenCodec
from common.config import ResumeSettings
from common.display import CodeDisplay
from common.errors import DecodeError, NotFound
from common.shortcodes import ShortCodeRegistry
from common.transport import TransportLink
from state.models import Snapshot
from state.snapshot import StateSnapshot
from state.store import JsonFileStateStore, StateStore


logger = logging.getLogger(__name__)

MSG_SAVED_COPIED = "✅ Saved! Resume Code copied. Paste it somewhere safe."
MSG_SAVED_MANUAL = "Saved. Copy the code below and keep it safe."
MSG_CODE_COPIED = "✅ Saved on this device! Short code {code} copied."
MSG_CODE_MANUAL = "Saved on this device. Your short code is {code}."
MSG_RESUMED = "✅ Resumed! Your work is back."
MSG_NOTHING = "Paste a Resume Code or link to pick up where you left off."
MSG_RESET = "Saved responses and saved place were cleared on this device."


@dataclass(frozen=True)
class SaveResult:
    """Outcome of a save action.

    - token: the Resume Code (or short code) to hand to the user
    - url: resume link carrying the token (None for short codes)
    - copied: whether the clipboard copy succeeded
    - message: user-facing status line
    """

    token: str
    url: Optional[str]
    copied: bool
    message: str


@dataclass(frozen=True)
class ResumeResult:
    ok: bool
    message: str
    snapshot: Optional[Snapshot] = None


class ResumeService:
    """
    Save / resume / reset actions over one device store.

    Every decode or lookup failure is caught here and turned into a message
    asking the user to check the code; nothing is retried. The store is
    written only after decoding has completed.
    """

    def __init__(
        self,
        store: StateStore,
        *,
        codec: Optional[TokenCodec] = None,
        link: Optional[TransportLink] = None,
        registry: Optional[ShortCodeRegistry] = None,
        copy: Callable[[str], bool] = copy_text,
    ) -> None:
        self._snapshot = StateSnapshot(store)
        self._codec = codec or TokenCodec()
        self._link = link or TransportLink(ResumeSettings().base_url)
        self._registry = registry or ShortCodeRegistry(store)
        self._copy = copy

    @classmethod
    def from_settings(
        cls,
        settings: ResumeSettings,
        *,
        store: Optional[StateStore] = None,
        **kwargs: Any,
    ) -> "ResumeService":
        store = store if store is not None else JsonFileStateStore(settings.store_path)
        return cls(
            store,
            codec=TokenCodec(settings.token_tags),
            link=TransportLink(settings.base_url, param=settings.param),
            registry=ShortCodeRegistry(store, prefix=settings.code_prefix, length=settings.code_length),
            **kwargs,
        )

    @property
    def snapshot(self) -> StateSnapshot:
        return self._snapshot

    @property
    def codec(self) -> TokenCodec:
        return self._codec

    @property
    def link(self) -> TransportLink:
        return self._link

    @property
    def registry(self) -> ShortCodeRegistry:
        return self._registry

    # -------- Save --------
    def save(self) -> SaveResult:
        """Encode the current store into a Resume Code and resume link."""
        token = self._codec.encode(self._snapshot.build())
        url = self._link.build_resume_url(token)
        copied = self._copy(token)
        return SaveResult(
            token=token,
            url=url,
            copied=copied,
            message=MSG_SAVED_COPIED if copied else MSG_SAVED_MANUAL,
        )

    def save_short_code(self) -> SaveResult:
        """Stash the current store under a short code (same device only)."""
        code = self._registry.issue(self._snapshot.build())
        shown = self._registry.describe(code) or code
        copied = self._copy(code)
        template = MSG_CODE_COPIED if copied else MSG_CODE_MANUAL
        return SaveResult(token=code, url=None, copied=copied, message=template.format(code=shown))

    def share(self, display: CodeDisplay, target: Any) -> str:
        """Render a resume link for the current store; returns the link."""
        url = self._link.build_resume_url(self._codec.encode(self._snapshot.build()))
        display.render(url, target)
        return url

    # -------- Resume --------
    def _load(self, text: str) -> Optional[Snapshot]:
        if self._registry.looks_like_code(text):
            return self._registry.resolve(text)
        token = self._link.parse_resume_token(text)
        if token is None:
            return None
        return self._codec.decode(token)

    def resume(self, text: Optional[str]) -> ResumeResult:
        """Restore work from a Resume Code, resume link, fragment or short code."""
        try:
            snapshot = self._load(text or "")
        except (DecodeError, NotFound) as ex:
            logger.info("Resume failed (%s): %s", type(ex).__name__, ex)
            return ResumeResult(ok=False, message=f"⚠️ {ex.user_message}")
        if snapshot is None:
            return ResumeResult(ok=False, message=MSG_NOTHING)
        written = self._snapshot.apply(snapshot)
        logger.debug("Resumed %d field(s)", written)
        return ResumeResult(ok=True, message=MSG_RESUMED, snapshot=snapshot)

    # -------- Reset --------
    def reset(self) -> str:
        """Clear saved responses, saved place and every short code on this device."""
        self._snapshot.clear()
        removed = self._registry.clear()
        logger.debug("Reset cleared %d short code(s)", removed)
        return MSG_RESET
