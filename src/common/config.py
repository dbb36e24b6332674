from __future__ import annotations

import os
from typing import Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

from .codec import DEFAULT_PREFERENCE, VARIANTS
from .shortcodes import DEFAULT_CODE_LENGTH, DEFAULT_KEY_PREFIX
from .transport import DEFAULT_PARAM


# Environment variable names
ENV_BASE_URL = "RESUME_BASE_URL"
ENV_PARAM = "RESUME_PARAM"
ENV_STORE_PATH = "RESUME_STORE_PATH"
ENV_CODE_PREFIX = "RESUME_CODE_PREFIX"
ENV_CODE_LENGTH = "RESUME_CODE_LENGTH"
ENV_TOKEN_TAGS = "RESUME_TOKEN_TAGS"
ENV_LOG_LEVEL = "RESUME_LOG_LEVEL"

DEFAULT_BASE_URL = "https://example.invalid/"
DEFAULT_STORE_PATH = ".cache/resume_state.json"


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name)
    return val if val not in (None, "") else default


class ResumeSettings(BaseModel):
    """Runtime configuration for the resume client.

    Every field can be set from the environment (see `from_env`).
    """

    base_url: str = Field(default=DEFAULT_BASE_URL, description="Page the resume link points at")
    param: str = Field(default=DEFAULT_PARAM, min_length=1, description="Fragment parameter carrying the token")
    store_path: str = Field(default=DEFAULT_STORE_PATH, description="JSON file backing the device store")
    code_prefix: str = Field(default=DEFAULT_KEY_PREFIX, min_length=1)
    code_length: int = Field(default=DEFAULT_CODE_LENGTH, ge=4, le=16)
    token_tags: Tuple[str, ...] = Field(default=DEFAULT_PREFERENCE, min_length=1)
    log_level: str = Field(default="WARNING")

    @field_validator("token_tags", mode="before")
    @classmethod
    def _split_tags(cls, v):
        if isinstance(v, str):
            return tuple(t.strip() for t in v.split(",") if t.strip())
        return v

    @field_validator("token_tags")
    @classmethod
    def _known_tags(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        unknown = [t for t in v if t not in VARIANTS]
        if unknown:
            raise ValueError(f"unknown token tag(s): {', '.join(unknown)}")
        return v

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {v}")
        return level

    @classmethod
    def from_env(cls, **overrides) -> "ResumeSettings":
        """Build settings from `RESUME_*` variables; `overrides` win over env.

        Raises RuntimeError on invalid values.
        """
        env = {
            "base_url": _getenv(ENV_BASE_URL),
            "param": _getenv(ENV_PARAM),
            "store_path": _getenv(ENV_STORE_PATH),
            "code_prefix": _getenv(ENV_CODE_PREFIX),
            "code_length": _getenv(ENV_CODE_LENGTH),
            "token_tags": _getenv(ENV_TOKEN_TAGS),
            "log_level": _getenv(ENV_LOG_LEVEL),
        }
        data = {k: v for k, v in env.items() if v is not None}
        data.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls.model_validate(data)
        except ValidationError as ex:
            raise RuntimeError(f"Invalid configuration: {ex}") from ex
