"""Custom exceptions for the pathguard package."""

from __future__ import annotations


class PathGuardError(Exception):
    """Base class for every error raised by pathguard.

    Each subclass carries a machine-readable ``kind`` so that audit logs can tell a malicious input apart from a
    tampered dependency without parsing messages.
    """

    kind = "pathguard_error"


class InvalidInputTypeError(PathGuardError, TypeError):
    """Exception raised when a candidate path is neither text nor a raw byte sequence."""

    kind = "invalid_input_type"

    def __init__(self, value: object) -> None:
        self.value_type = type(value).__name__
        msg = f"Path must be str or a bytes-like object, not {self.value_type}"
        super().__init__(msg)


class InvalidBaseDirectoryError(PathGuardError, ValueError):
    """Exception raised when the allowed base directory cannot be resolved to an absolute path."""

    kind = "invalid_base_directory"

    def __init__(self, base: object, reason: str) -> None:
        self.base = base
        self.reason = reason
        msg = f"Invalid base directory {base!r}: {reason}"
        super().__init__(msg)


class PathTraversalError(PathGuardError):
    """Exception raised when a candidate resolves outside the allowed base directory.

    Attributes
    ----------
    candidate : str
        The candidate as text (after decoding, for byte candidates).
    resolved_path : str | None
        The canonical path the candidate resolved to, if resolution got that far.
    reason : str
        Short description of the failed check.

    """

    kind = "path_traversal"

    def __init__(
        self,
        candidate: str,
        *,
        resolved_path: str | None = None,
        reason: str = "outside base directory",
    ) -> None:
        self.candidate = candidate
        self.resolved_path = resolved_path
        self.reason = reason
        msg = f"Path traversal detected: {candidate!r} ({reason})"
        super().__init__(msg)


class IntegrityViolationError(PathGuardError):
    """Exception raised when canonicalization returns a non-canonical path or the round trip disagrees with it.

    This signals that the byte/text machinery was tampered with, not merely that the input was hostile.

    Attributes
    ----------
    candidate : str
        The candidate as text.
    resolved_path : str
        The path returned by canonicalization.
    final_path : str | None
        The path produced by the round trip, or ``None`` if the round trip itself failed.
    reason : str
        Short description of the disagreement.

    """

    kind = "integrity_violation"

    def __init__(
        self,
        candidate: str,
        *,
        resolved_path: str,
        final_path: str | None = None,
        reason: str = "round trip changed the path",
    ) -> None:
        self.candidate = candidate
        self.resolved_path = resolved_path
        self.final_path = final_path
        self.reason = reason
        msg = f"Buffer manipulation detected: {candidate!r} ({reason})"
        super().__init__(msg)


class SnapshotUnavailableError(PathGuardError, RuntimeError):
    """Exception raised when the platform byte/text primitives cannot be captured."""

    kind = "snapshot_unavailable"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class SnapshotAlreadyCapturedError(PathGuardError, RuntimeError):
    """Exception raised when a re-capture would replace the already-bound primitives."""

    kind = "snapshot_already_captured"

    def __init__(self, encodings: list[str]) -> None:
        self.encodings = encodings
        msg = (
            "Trusted primitives were already captured without "
            f"{', '.join(encodings)}; refusing to replace the existing snapshot."
        )
        super().__init__(msg)
