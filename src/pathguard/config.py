"""Configuration for the pathguard package."""

from __future__ import annotations

import os

DEFAULT_ENCODING: str = "utf-8"

# Same handler ``os.fsdecode`` / ``os.fsencode`` use, so arbitrary byte names survive a round trip
DEFAULT_ERRORS: str = "surrogateescape"

# Canonical codec names the interpreter encodes and decodes natively, without consulting the codec registry
NATIVE_CODECS: frozenset[str] = frozenset({"utf-8", "iso8859-1", "ascii"})


def _snapshot_encodings() -> tuple[str, ...]:
    """Return the encodings to capture: every natively implemented codec, starting with ``DEFAULT_ENCODING``.

    Extra names can be supplied through the comma-separated ``PATHGUARD_SNAPSHOT_ENCODINGS`` variable.

    Returns
    -------
    tuple[str, ...]
        Encoding names in capture order, without duplicates.

    """
    extra = os.getenv("PATHGUARD_SNAPSHOT_ENCODINGS", "")
    names = [DEFAULT_ENCODING, "latin-1", "ascii", *(name.strip() for name in extra.split(",") if name.strip())]
    return tuple(dict.fromkeys(names))


SNAPSHOT_ENCODINGS: tuple[str, ...] = _snapshot_encodings()

# Default base directory for the command-line checker
BASE_DIR_ENV_VAR: str = "PATHGUARD_BASE_DIR"

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = os.getenv("LOG_FORMAT", "text").lower()
