from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CodeDisplay(Protocol):
    """Renders a string (token or resume link) as a scannable visual code.

    Implementations live in the view layer; the core only hands over the
    string and an opaque rendering target (widget, file path, terminal).
    """

    def render(self, data: str, target: Any) -> None:
        ...
