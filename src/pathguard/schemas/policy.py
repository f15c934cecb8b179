"""Schema for a confinement policy."""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 (typing-only-standard-library-import) needed for type checking (pydantic)

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pathguard.config import DEFAULT_ENCODING
from pathguard.snapshot import get_snapshot


class ConfinementPolicy(BaseModel):
    """Settings a ``PathConfinementValidator`` is built from.

    Attributes
    ----------
    base_directory : Path
        The directory validated paths must stay inside.
    encoding : str
        Encoding of byte candidates (default: ``"utf-8"``). Must be captured by the trusted snapshot.

    """

    model_config = ConfigDict(frozen=True)

    base_directory: Path
    encoding: str = Field(default=DEFAULT_ENCODING)

    @field_validator("base_directory")
    @classmethod
    def validate_base_directory(cls, v: Path) -> Path:
        """Validate that ``base_directory`` is not empty."""
        if not str(v).strip() or str(v) == ".":
            err = "base_directory cannot be empty"
            raise ValueError(err)
        return v

    @field_validator("encoding")
    @classmethod
    def validate_encoding(cls, v: str) -> str:
        """Validate that ``encoding`` was captured and return its canonical codec name."""
        snapshot = get_snapshot()
        if not snapshot.supports(v):
            err = f"encoding must be one of {', '.join(snapshot.encodings)}"
            raise ValueError(err)
        return snapshot.codec_name(v)
