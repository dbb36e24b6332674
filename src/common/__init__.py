"""
Resume-token protocol shared by every client surface.

Modules:
- codec: versioned, URL-safe, optionally compressed tokens
- shortcodes: same-device short codes aliasing a stored snapshot
- transport: resume links carrying a token in the URL fragment
- errors: decode/lookup error taxonomy
- clipboard, display: best-effort view-layer collaborators
- config: environment-driven settings
"""

__all__ = [
    "clipboard",
    "codec",
    "config",
    "display",
    "errors",
    "shortcodes",
    "transport",
]
