from __future__ import annotations

import base64
import binascii
import json
import logging
import re
import zlib
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple

import brotli

from state.models import Snapshot, dump_canonical

from .errors import (
    CorruptPayload,
    MalformedPayload,
    TruncatedPayload,
    UnsupportedVersion,
)


logger = logging.getLogger(__name__)

TAG_SEPARATOR = "."

TAG_BROTLI = "v2-brotli"
TAG_DEFLATE = "v2-deflate"
TAG_PLAIN = "v2-plain"
TAG_LEGACY = "SINS1"

DEFAULT_PREFERENCE: Tuple[str, ...] = (TAG_BROTLI, TAG_DEFLATE, TAG_PLAIN)

# Upper bound for decompressed canonical text
MAX_TEXT_BYTES = 1 << 20

_B64URL_RE = re.compile(r"[A-Za-z0-9_-]*")
_B64STD_RE = re.compile(r"[A-Za-z0-9+/]*={0,2}")


@dataclass(frozen=True)
class TokenVariant:
    """One encode/decode pipeline, selected by exact tag match.

    - pack: canonical snapshot bytes -> payload text
    - unpack: payload text -> canonical snapshot bytes; raises DecodeError
    - compressed: whether the pipeline compresses before the byte mapping
    """

    tag: str
    pack: Callable[[bytes], str]
    unpack: Callable[[str], bytes]
    compressed: bool


# -------- URL-safe byte mapping --------
def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(payload: str) -> bytes:
    if not _B64URL_RE.fullmatch(payload):
        raise MalformedPayload("payload contains characters outside the URL-safe alphabet")
    if len(payload) % 4 == 1:
        raise MalformedPayload("payload length is not a valid base64 length")
    padded = payload + "=" * (-len(payload) % 4)
    try:
        return base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError) as ex:
        raise MalformedPayload("payload is not valid base64url") from ex


def _b64std_encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64std_decode(payload: str) -> bytes:
    if not _B64STD_RE.fullmatch(payload):
        raise MalformedPayload("payload contains characters outside the base64 alphabet")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as ex:
        raise MalformedPayload("payload is not valid base64") from ex


# -------- Compressors --------
def _deflate(data: bytes) -> bytes:
    return zlib.compress(data, 9)


def _inflate(data: bytes) -> bytes:
    d = zlib.decompressobj()
    try:
        out = d.decompress(data, MAX_TEXT_BYTES)
    except zlib.error as ex:
        raise MalformedPayload("compressed payload is corrupt") from ex
    if d.unconsumed_tail:
        raise MalformedPayload("compressed payload expands beyond the size limit")
    if not d.eof:
        raise TruncatedPayload("compressed payload ends before the end of the stream")
    if d.unused_data:
        raise MalformedPayload("unexpected data after the end of the compressed stream")
    return out


def _brotli_compress(data: bytes) -> bytes:
    return brotli.compress(data, mode=brotli.MODE_TEXT, quality=11)


def _brotli_decompress(data: bytes) -> bytes:
    d = brotli.Decompressor()
    try:
        out = d.process(data, output_buffer_limit=MAX_TEXT_BYTES + 1)
    except brotli.error as ex:
        raise MalformedPayload("compressed payload is corrupt") from ex
    if len(out) > MAX_TEXT_BYTES:
        raise MalformedPayload("compressed payload expands beyond the size limit")
    if d.is_finished():
        return out
    # Output still pending inside the decoder means the limit was hit
    if not d.can_accept_more_data():
        raise MalformedPayload("compressed payload expands beyond the size limit")
    raise TruncatedPayload("compressed payload ends before the end of the stream")


def _json_truncated(ex: json.JSONDecodeError) -> bool:
    """Whether a JSON syntax error is consistent with text cut off at the end."""
    if ex.pos >= len(ex.doc.rstrip()):
        return True
    if ex.msg.startswith("Unterminated string"):
        return True
    # Escape sequence cut short, e.g. '"\u00'
    return ex.msg.startswith("Invalid \\uXXXX escape") and len(ex.doc) - ex.pos <= 5


def parse_canonical(data: bytes) -> Snapshot:
    """Parse canonical snapshot bytes, dropping unknown and non-string fields."""
    if not data:
        raise TruncatedPayload("payload is empty")
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as ex:
        if ex.reason == "unexpected end of data":
            raise TruncatedPayload("payload ends inside a character") from ex
        raise MalformedPayload("payload is not valid UTF-8 text") from ex
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as ex:
        if _json_truncated(ex):
            raise TruncatedPayload(f"payload ends mid-structure: {ex.msg}") from ex
        raise MalformedPayload(f"payload is not valid JSON: {ex.msg}") from ex
    if not isinstance(raw, dict):
        raise CorruptPayload(f"payload is a JSON {type(raw).__name__}, expected an object")
    return Snapshot.from_mapping(raw)


def _variant(
    tag: str,
    compress: Optional[Callable[[bytes], bytes]],
    decompress: Optional[Callable[[bytes], bytes]],
    *,
    legacy: bool = False,
) -> TokenVariant:
    to_text = _b64std_encode if legacy else _b64url_encode
    from_text = _b64std_decode if legacy else _b64url_decode

    def pack(data: bytes) -> str:
        return to_text(compress(data) if compress else data)

    def unpack(payload: str) -> bytes:
        raw = from_text(payload)
        return decompress(raw) if decompress else raw

    return TokenVariant(tag=tag, pack=pack, unpack=unpack, compressed=compress is not None)


# Append-only: tags stay decodable forever once published
VARIANTS: Dict[str, TokenVariant] = {
    v.tag: v
    for v in (
        _variant(TAG_BROTLI, _brotli_compress, _brotli_decompress),
        _variant(TAG_DEFLATE, _deflate, _inflate),
        _variant(TAG_PLAIN, None, None),
        _variant(TAG_LEGACY, None, None, legacy=True),
    )
}


class TokenCodec:
    """
    Encodes snapshots into `<tag>.<payload>` tokens and back.

    Notes
    - Decoding dispatches on the exact tag; a tag always maps to one pipeline,
      so there is never a "try compressed, then plain" probe.
    - Encoding commits to the first tag in `preferred` whose pipeline works on
      this runtime. A compressor failure degrades to the next tag, and a
      non-compressing tag is always appended last, so `encode` never fails.
    """

    def __init__(
        self,
        preferred: Sequence[str] = DEFAULT_PREFERENCE,
        *,
        variants: Optional[Mapping[str, TokenVariant]] = None,
    ) -> None:
        self._variants: Dict[str, TokenVariant] = dict(variants if variants is not None else VARIANTS)
        unknown = [t for t in preferred if t not in self._variants]
        if unknown:
            raise ValueError(f"Unknown token tag(s): {', '.join(unknown)}")
        order = list(dict.fromkeys(preferred))
        if TAG_PLAIN in self._variants and TAG_PLAIN not in order:
            order.append(TAG_PLAIN)
        if not order:
            raise ValueError("At least one token tag is required")
        self._preferred: Tuple[str, ...] = tuple(order)

    @property
    def preferred(self) -> Tuple[str, ...]:
        return self._preferred

    @property
    def tags(self) -> Tuple[str, ...]:
        return tuple(self._variants)

    def encode(self, snapshot: Snapshot, *, tag: Optional[str] = None) -> str:
        """Return a token for `snapshot`.

        With an explicit `tag` that pipeline is used as-is (errors propagate);
        otherwise the preference order decides.
        """
        data = dump_canonical(snapshot)
        if tag is not None:
            variant = self._variants.get(tag)
            if variant is None:
                raise ValueError(f"Unknown token tag: {tag}")
            return f"{variant.tag}{TAG_SEPARATOR}{variant.pack(data)}"

        last_error: Optional[Exception] = None
        for name in self._preferred:
            variant = self._variants[name]
            try:
                payload = variant.pack(data)
            except (zlib.error, brotli.error, MemoryError) as ex:
                logger.warning("Token pipeline %s unavailable, falling back: %s", name, ex)
                last_error = ex
                continue
            logger.debug(
                "Encoded snapshot with %s (compressed=%s, %d bytes -> %d chars)",
                name,
                variant.compressed,
                len(data),
                len(payload),
            )
            return f"{variant.tag}{TAG_SEPARATOR}{payload}"
        raise RuntimeError("No token pipeline could encode the snapshot") from last_error

    def decode(self, token: str) -> Snapshot:
        """Return the snapshot carried by `token`.

        Raises a `DecodeError` subclass: UnsupportedVersion, MalformedPayload,
        TruncatedPayload or CorruptPayload.
        """
        text = (token or "").strip()
        tag, sep, payload = text.partition(TAG_SEPARATOR)
        if not sep:
            if text and any(known.startswith(text) for known in self._variants):
                raise TruncatedPayload("token ends inside its version tag")
            raise UnsupportedVersion("token has no version tag")
        variant = self._variants.get(tag)
        if variant is None:
            raise UnsupportedVersion(f"unsupported token version: {tag[:16]!r}")
        return parse_canonical(variant.unpack(payload))

