"""Utility functions for canonicalizing paths and testing confinement.

Every helper works on the primitives of a ``TrustedPrimitiveSnapshot`` and on methods of the built-in ``str`` type,
never on the current ``os.path`` bindings.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from pathguard.utils.exceptions import InvalidBaseDirectoryError

if TYPE_CHECKING:
    from pathguard.snapshot import TrustedPrimitiveSnapshot

_NON_CANONICAL_SEGMENTS = ("", ".", "..")


def is_within(path: str, base: str, snapshot: TrustedPrimitiveSnapshot) -> bool:
    """Return ``True`` if ``path`` equals ``base`` or lies beneath it.

    The prefix test requires a separator right after ``base``, so ``/allowed-evil`` is not inside ``/allowed``.
    A base that already ends with a separator (a filesystem root) is used as the prefix unchanged.

    Parameters
    ----------
    path : str
        Canonical absolute path to test.
    base : str
        Canonical absolute base directory.
    snapshot : TrustedPrimitiveSnapshot
        Provides the separator and case rule of the platform.

    Returns
    -------
    bool
        Whether ``path`` is confined to ``base``.

    """
    str_type = snapshot.str_type
    path_key = snapshot.path_key(path)
    base_key = snapshot.path_key(base)
    if str_type.__eq__(path_key, base_key):
        return True

    prefix = base_key if str_type.endswith(base_key, snapshot.sep) else base_key + snapshot.sep
    return str_type.startswith(path_key, prefix)


def _anchor_length(path: str, snapshot: TrustedPrimitiveSnapshot) -> int:
    """Return the length of the root prefix of ``path`` (``/``, ``C:\\`` or ``\\\\server\\share\\``), 0 if none."""
    str_type = snapshot.str_type
    sep = snapshot.sep
    if snapshot.altsep is None:
        return 1 if str_type.startswith(path, sep) else 0

    if path[1:3] == ":" + sep:
        return 3
    if not str_type.startswith(path, sep + sep):
        return 0

    # UNC paths are anchored at the share
    parts = str_type.split(path[2:], sep, 2)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return 0
    return 2 + len(parts[0]) + 1 + len(parts[1]) + (1 if len(parts) == 3 else 0)


def is_canonical(path: str, snapshot: TrustedPrimitiveSnapshot) -> bool:
    """Return ``True`` if ``path`` is absolute and free of empty, ``.`` and ``..`` segments.

    ``os.path.realpath`` only ever returns such paths; anything else means it was fed tampered helpers.

    Parameters
    ----------
    path : str
        Path returned by the captured canonicalization function.
    snapshot : TrustedPrimitiveSnapshot
        Provides the separators of the platform.

    Returns
    -------
    bool
        Whether ``path`` is in canonical form.

    """
    str_type = snapshot.str_type
    if not isinstance(path, str_type):
        return False

    path = snapshot.exact_text(path)
    if snapshot.altsep is not None and str_type.__contains__(path, snapshot.altsep):
        return False

    anchor = _anchor_length(path, snapshot)
    if not anchor:
        return False

    rest = path[anchor:]
    if not rest:
        return True
    return all(segment not in _NON_CANONICAL_SEGMENTS for segment in str_type.split(rest, snapshot.sep))


def canonical_base_directory(base: object, snapshot: TrustedPrimitiveSnapshot) -> str:
    """Resolve ``base`` once into the absolute canonical directory a validator is bound to.

    Parameters
    ----------
    base : object
        A ``str`` or ``os.PathLike[str]`` naming the allowed base directory.
    snapshot : TrustedPrimitiveSnapshot
        Provides the captured canonicalization function.

    Returns
    -------
    str
        The canonical absolute base directory.

    Raises
    ------
    InvalidBaseDirectoryError
        If ``base`` is not text, is empty, contains a NUL character, or cannot be resolved.

    """
    try:
        raw = os.fspath(base)  # type: ignore[arg-type]
    except TypeError as exc:
        raise InvalidBaseDirectoryError(base, "expected str or os.PathLike") from exc

    if not isinstance(raw, snapshot.str_type):
        raise InvalidBaseDirectoryError(base, "base directory must be text, not bytes")

    raw = snapshot.exact_text(raw)
    if not raw.strip():
        raise InvalidBaseDirectoryError(base, "base directory is empty")
    if "\x00" in raw:
        raise InvalidBaseDirectoryError(base, "base directory contains a NUL character")

    try:
        resolved = snapshot.canonicalize(raw)
    except (OSError, ValueError) as exc:
        raise InvalidBaseDirectoryError(base, f"cannot be resolved: {exc}") from exc

    if not is_canonical(resolved, snapshot):
        raise InvalidBaseDirectoryError(base, "did not resolve to an absolute canonical path")

    return snapshot.exact_text(resolved)


def resolve_under(base: str, text: str, snapshot: TrustedPrimitiveSnapshot) -> str:
    """Join ``text`` onto ``base`` and canonicalize the result.

    ``.`` and ``..`` segments, redundant separators and symbolic links are resolved. A rooted ``text`` replaces
    ``base``, as with ``os.path.join``. The caller is expected to check the result with ``is_canonical`` and
    ``is_within``.

    Parameters
    ----------
    base : str
        Canonical base directory.
    text : str
        Candidate path as text.
    snapshot : TrustedPrimitiveSnapshot
        Provides the captured canonicalization function.

    Returns
    -------
    str
        The canonical absolute path.

    """
    return snapshot.canonicalize(snapshot.join_path(base, text))
