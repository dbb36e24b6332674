from __future__ import annotations


class DecodeError(ValueError):
    """Base error for tokens that cannot be turned back into a snapshot.

    `user_message` is safe to show as-is; the input itself is what's wrong,
    so callers should ask for the code again rather than retry.
    """

    user_message = "That code doesn't look like a valid Resume Code."


class UnsupportedVersion(DecodeError):
    """Token has no recognizable tag."""

    user_message = "That code doesn't look like a valid Resume Code."


class MalformedPayload(DecodeError):
    """Payload violates its alphabet or its encoded structure."""

    user_message = "That Resume Code contains characters or data that don't belong. Check it and try again."


class TruncatedPayload(DecodeError):
    """Payload ends mid-structure, typically after a partial copy/paste."""

    user_message = "That Resume Code looks cut off. Copy the whole code and try again."


class CorruptPayload(DecodeError):
    """Payload decodes but does not describe a snapshot."""

    user_message = "That Resume Code is damaged and can't be restored."


class NotFound(LookupError):
    """No short code entry exists on this device."""

    user_message = "No saved work matches that short code on this device."
