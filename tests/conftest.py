"""Fixtures for tests.

This file provides a sandbox directory tree to confine paths to, a validator bound to it, and a helper that
collects the records pathguard logs through loguru.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List

import pytest
from loguru import logger

from pathguard import PathConfinementValidator

if TYPE_CHECKING:
    from loguru import Message

LogRecords = List[Dict[str, Any]]
MakeValidatorFunc = Callable[..., PathConfinementValidator]


@pytest.fixture
def sandbox(tmp_path: Path) -> Path:
    """Create a base directory with some content for confinement tests.

    The structure includes:
    <tmp>/
    ├── data/                     <- the sandbox (canonical, symlinks resolved)
    │   ├── reports/
    │   │   └── q1.csv
    │   ├── link_inside -> data/reports
    │   └── link_outside -> secrets/
    ├── data-evil/
    │   └── loot.txt
    └── secrets/
        └── passwd

    Parameters
    ----------
    tmp_path : Path
        The temporary directory path provided by the ``tmp_path`` fixture.

    Returns
    -------
    Path
        The canonical path of the ``data`` directory.

    """
    root = Path(os.path.realpath(tmp_path))

    data = root / "data"
    (data / "reports").mkdir(parents=True)
    (data / "reports" / "q1.csv").write_text("quarter,revenue\n")

    (root / "data-evil").mkdir()
    (root / "data-evil" / "loot.txt").write_text("nope")

    (root / "secrets").mkdir()
    (root / "secrets" / "passwd").write_text("root:x:0:0")

    if hasattr(os, "symlink"):
        try:
            (data / "link_inside").symlink_to(data / "reports", target_is_directory=True)
            (data / "link_outside").symlink_to(root / "secrets", target_is_directory=True)
        except OSError:
            pass  # Symlinks are not permitted (e.g. unprivileged Windows); symlink tests skip themselves

    return data


@pytest.fixture
def validator(sandbox: Path) -> PathConfinementValidator:
    """Provide a ``PathConfinementValidator`` bound to the ``sandbox`` directory."""
    return PathConfinementValidator(sandbox)


@pytest.fixture
def make_validator(sandbox: Path) -> MakeValidatorFunc:
    """Provide a factory for validators bound to ``sandbox`` with custom keyword arguments."""

    def _make_validator(**kwargs: Any) -> PathConfinementValidator:
        return PathConfinementValidator(sandbox, **kwargs)

    return _make_validator


@pytest.fixture
def log_records() -> Iterator[LogRecords]:
    """Collect every loguru record emitted while the test runs.

    Each collected item is the loguru record dict; structured fields passed as ``extra={...}`` are found under
    ``record["extra"]["extra"]``.
    """
    records: LogRecords = []

    def _sink(message: Message) -> None:
        records.append(message.record)

    handler_id = logger.add(_sink, level="DEBUG", format="{message}")
    yield records
    logger.remove(handler_id)


def events(records: LogRecords) -> list[str]:
    """Return the ``event`` field of every collected record that has one."""
    return [record["extra"]["extra"]["event"] for record in records if "event" in record["extra"].get("extra", {})]
