"""Confinement of caller-supplied paths to an allowed base directory."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Union

from pathguard.config import DEFAULT_ENCODING
from pathguard.snapshot import TrustedPrimitiveSnapshot, get_snapshot
from pathguard.utils.exceptions import (
    IntegrityViolationError,
    InvalidInputTypeError,
    PathGuardError,
    PathTraversalError,
)
from pathguard.utils.logging_config import get_logger
from pathguard.utils.path_utils import canonical_base_directory, is_canonical, is_within, resolve_under

if TYPE_CHECKING:
    from pathguard.schemas import ConfinementPolicy

logger = get_logger(__name__)

Candidate = Union[str, bytes, bytearray, memoryview]


class PathConfinementValidator:
    """Resolve untrusted paths and guarantee they stay inside one base directory.

    Every byte/text conversion and every canonicalization goes through the trusted snapshot, never through the
    ambient ``codecs``, ``builtins`` or ``os.path`` bindings. The validator keeps no state besides its base
    directory, encoding and snapshot, so one instance can be shared between threads.

    Parameters
    ----------
    allowed_base_path : str | os.PathLike[str]
        Directory candidates must resolve into. It is canonicalized once, here.
    snapshot : TrustedPrimitiveSnapshot | None
        Snapshot to use (default: the process-wide snapshot).
    encoding : str
        Encoding of byte candidates and of the round-trip check (default: ``"utf-8"``).

    Raises
    ------
    InvalidBaseDirectoryError
        If ``allowed_base_path`` cannot be resolved to an absolute path.
    TypeError
        If ``snapshot`` is not a ``TrustedPrimitiveSnapshot``.
    LookupError
        If ``encoding`` was not captured by the snapshot.

    """

    def __init__(
        self,
        allowed_base_path: str | os.PathLike[str],
        *,
        snapshot: TrustedPrimitiveSnapshot | None = None,
        encoding: str = DEFAULT_ENCODING,
    ) -> None:
        snapshot = snapshot if snapshot is not None else get_snapshot()
        if not isinstance(snapshot, TrustedPrimitiveSnapshot):
            msg = f"Expected a TrustedPrimitiveSnapshot, not {type(snapshot).__name__}"
            raise TypeError(msg)

        self._snapshot = snapshot
        self._encoding = snapshot.codec_name(encoding)
        self._base_directory = canonical_base_directory(allowed_base_path, snapshot)

        logger.debug(
            "Path confinement validator created",
            extra={"event": "validator_created", "base_directory": self._base_directory, "encoding": self._encoding},
        )

    @classmethod
    def from_policy(cls, policy: ConfinementPolicy) -> PathConfinementValidator:
        """Build a validator from a ``ConfinementPolicy``."""
        return cls(policy.base_directory, encoding=policy.encoding)

    @property
    def base_directory(self) -> str:
        """The canonical absolute base directory."""
        return self._base_directory

    @property
    def encoding(self) -> str:
        """Canonical name of the codec used for byte candidates."""
        return self._encoding

    @property
    def snapshot(self) -> TrustedPrimitiveSnapshot:
        """The trusted snapshot this validator uses."""
        return self._snapshot

    def validate(self, candidate: Candidate) -> str:
        """Return the canonical path of ``candidate`` if it lies inside the base directory.

        The candidate is decoded (for bytes), joined onto the base directory, canonicalized and bound-checked. The
        result is then encoded and decoded again through the snapshot and must come back unchanged and still
        confined.

        Parameters
        ----------
        candidate : Candidate
            Untrusted path as text or as raw bytes. Relative paths are taken relative to the base directory.

        Returns
        -------
        str
            The canonical absolute path, equal to the base directory or beneath it.

        Raises
        ------
        InvalidInputTypeError
            If ``candidate`` is neither text nor bytes-like.
        PathTraversalError
            If ``candidate`` resolves outside the base directory.
        IntegrityViolationError
            If canonicalization returns a path that is not canonical, or the round trip changes the path or moves
            it outside the base directory.

        """
        text = self._to_text(candidate)
        if "\x00" in text:
            raise self._reject(PathTraversalError(text, reason="path contains a NUL character"))

        try:
            resolved_path = resolve_under(self._base_directory, text, self._snapshot)
        except (OSError, ValueError) as exc:
            raise self._reject(PathTraversalError(text, reason=f"path cannot be resolved: {exc}")) from exc

        if not is_canonical(resolved_path, self._snapshot):
            raise self._reject(
                IntegrityViolationError(
                    text,
                    resolved_path=resolved_path,
                    reason="canonicalization returned a non-canonical path",
                ),
            )

        resolved_path = self._snapshot.exact_text(resolved_path)
        if not is_within(resolved_path, self._base_directory, self._snapshot):
            raise self._reject(PathTraversalError(text, resolved_path=resolved_path))

        try:
            path_bytes = self._snapshot.construct_bytes_from(resolved_path, self._encoding)
            final_path = self._snapshot.decode_bytes_to_text(path_bytes, self._encoding)
        except UnicodeError as exc:
            raise self._reject(
                IntegrityViolationError(text, resolved_path=resolved_path, reason=f"round trip failed: {exc}"),
            ) from exc

        if final_path != resolved_path:
            raise self._reject(
                IntegrityViolationError(
                    text,
                    resolved_path=resolved_path,
                    final_path=final_path,
                    reason="round trip changed the path",
                ),
            )
        if not is_within(final_path, self._base_directory, self._snapshot):
            raise self._reject(
                IntegrityViolationError(
                    text,
                    resolved_path=resolved_path,
                    final_path=final_path,
                    reason="round-tripped path escapes the base directory",
                ),
            )

        logger.debug(
            "Path accepted",
            extra={"event": "path_accepted", "path": final_path, "base_directory": self._base_directory},
        )
        return final_path

    def is_allowed(self, candidate: Candidate) -> bool:
        """Return ``True`` if ``validate`` accepts ``candidate``; rejections are still logged."""
        try:
            self.validate(candidate)
        except PathGuardError:
            return False
        return True

    def _to_text(self, candidate: object) -> str:
        snapshot = self._snapshot
        if isinstance(candidate, snapshot.str_type):
            return snapshot.exact_text(candidate)
        if isinstance(candidate, (snapshot.bytes_type, snapshot.bytearray_type, snapshot.memoryview_type)):
            return snapshot.decode_bytes_to_text(candidate, self._encoding)

        raise self._reject(InvalidInputTypeError(candidate))

    def _reject(self, exc: PathGuardError) -> PathGuardError:
        """Log ``exc`` as an audit event and hand it back for raising."""
        logger.warning(
            "Path rejected",
            extra={
                "event": exc.kind,
                "candidate": getattr(exc, "candidate", None),
                "resolved_path": getattr(exc, "resolved_path", None),
                "base_directory": self._base_directory,
                "reason": getattr(exc, "reason", str(exc)),
            },
        )
        return exc

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._base_directory!r}, encoding={self._encoding!r})"
