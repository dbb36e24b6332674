from __future__ import annotations

import logging

import pyperclip


logger = logging.getLogger(__name__)


def copy_text(text: str) -> bool:
    """Best-effort copy of `text` to the system clipboard.

    Returns False when no clipboard mechanism is available (headless box,
    missing xclip/xsel, ...); callers then show the text for manual copying.
    """
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as ex:
        logger.info("Clipboard unavailable, falling back to manual copy: %s", ex)
        return False
    return True
