"""Schema for the outcome of checking one candidate path."""

from __future__ import annotations

from pydantic import BaseModel


class CheckResult(BaseModel):
    """Outcome of validating a single candidate, as reported by the command-line checker.

    Attributes
    ----------
    candidate : str
        The candidate as given on the command line.
    accepted : bool
        Whether the candidate is confined to the base directory.
    path : str | None
        The canonical path, when accepted.
    error_kind : str | None
        Machine-readable error kind, when rejected (for example ``"path_traversal"``).
    message : str | None
        Human-readable rejection message.

    """

    candidate: str
    accepted: bool
    path: str | None = None
    error_kind: str | None = None
    message: str | None = None
