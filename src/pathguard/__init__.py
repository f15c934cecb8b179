"""pathguard: confine untrusted paths to a base directory, resistant to tampered byte/text primitives."""

# Import the snapshot first so the primitives are captured before anything else runs
from pathguard.snapshot import TrustedPrimitiveSnapshot, capture, detect_ambient_drift, get_snapshot
from pathguard.utils.exceptions import (
    IntegrityViolationError,
    InvalidBaseDirectoryError,
    InvalidInputTypeError,
    PathGuardError,
    PathTraversalError,
    SnapshotAlreadyCapturedError,
    SnapshotUnavailableError,
)
from pathguard.validator import PathConfinementValidator

__all__ = [
    "IntegrityViolationError",
    "InvalidBaseDirectoryError",
    "InvalidInputTypeError",
    "PathConfinementValidator",
    "PathGuardError",
    "PathTraversalError",
    "SnapshotAlreadyCapturedError",
    "SnapshotUnavailableError",
    "TrustedPrimitiveSnapshot",
    "capture",
    "detect_ambient_drift",
    "get_snapshot",
]
