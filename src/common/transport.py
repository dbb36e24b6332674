from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit


DEFAULT_PARAM = "resume"


class TransportLink:
    """
    Builds resume links that carry a token in the URL fragment, and pulls a
    token back out of whatever the user pasted or scanned.

    The token rides in the fragment so it is never sent to a server.
    """

    def __init__(self, base_url: str, *, param: str = DEFAULT_PARAM) -> None:
        parts = urlsplit(base_url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"base_url must be an absolute URL: {base_url!r}")
        if not param:
            raise ValueError("param is required")
        self._base = parts
        self._param = param

    @property
    def param(self) -> str:
        return self._param

    def build_resume_url(self, token: str) -> str:
        """Return `<origin><path>#<param>=<token>`; any base fragment is replaced."""
        fragment = urlencode({self._param: token})
        return urlunsplit(self._base._replace(fragment=fragment))

    def _from_params(self, text: str) -> Optional[str]:
        values = parse_qs(text, keep_blank_values=True).get(self._param)
        if not values:
            return None
        token = values[0].strip()
        return token or None

    def parse_resume_token(self, text: Optional[str]) -> Optional[str]:
        """
        Extract a token from a full URL, a raw fragment, or a bare token.

        Returns None when there is nothing to resume (blank input, or a URL or
        fragment without the token parameter). A malformed token is returned
        as-is; it only fails once decoded.
        """
        s = (text or "").strip()
        if not s:
            return None

        try:
            parts = urlsplit(s)
        except ValueError:
            parts = None
        if parts is not None and parts.scheme and parts.netloc:
            found = self._from_params(parts.fragment)
            if found is None and parts.query:
                found = self._from_params(parts.query)
            return found

        fragment = s[1:] if s.startswith("#") else s
        found = self._from_params(fragment)
        if found is not None:
            return found
        if s.startswith("#") or f"{self._param}=" in fragment:
            return None
        return s
