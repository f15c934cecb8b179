"""Tests for the ``path_utils`` module."""

from __future__ import annotations

import dataclasses
import os
import sys
from typing import TYPE_CHECKING

import pytest

from pathguard import InvalidBaseDirectoryError, get_snapshot
from pathguard.utils.path_utils import canonical_base_directory, is_canonical, is_within, resolve_under

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX path semantics")
@pytest.mark.parametrize(
    ("path", "base", "expected"),
    [
        ("/allowed", "/allowed", True),
        ("/allowed/file.txt", "/allowed", True),
        ("/allowed/nested/deeper", "/allowed", True),
        ("/allowed-evil", "/allowed", False),
        ("/allowed-evil/file.txt", "/allowed", False),
        ("/allowedfile", "/allowed", False),
        ("/", "/allowed", False),
        ("/other/allowed", "/allowed", False),
        ("/Allowed/file.txt", "/allowed", False),
        ("/anything", "/", True),
        ("/", "/", True),
    ],
)
def test_is_within_requires_separator_boundary(path: str, base: str, *, expected: bool) -> None:
    """A path is inside its base only on equality or when a separator follows the base."""
    assert is_within(path, base, get_snapshot()) is expected


@pytest.mark.skipif(sys.platform != "win32", reason="Windows path semantics")
def test_is_within_is_case_insensitive_on_windows() -> None:
    """Windows paths compare case-insensitively and with either separator."""
    assert is_within("C:\\Data\\Reports", "c:\\data", get_snapshot())
    assert is_within("C:/Data/Reports", "c:\\data", get_snapshot())


def test_is_within_ignores_patched_normcase(monkeypatch: pytest.MonkeyPatch) -> None:
    """The comparison does not go through ``os.path.normcase``."""
    monkeypatch.setattr(os.path, "normcase", lambda _path: "x")

    assert not is_within(os.sep + "elsewhere", os.sep + "allowed", get_snapshot())


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX path semantics")
@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/", True),
        ("/srv/data", True),
        ("/srv/data/..data", True),
        ("/srv/data/...", True),
        ("srv/data", False),
        ("", False),
        ("/srv/data/", False),
        ("/srv//data", False),
        ("/srv/./data", False),
        ("/srv/data/../../etc/passwd", False),
        ("/srv/data/..", False),
    ],
)
def test_is_canonical(path: str, *, expected: bool) -> None:
    """Only absolute paths without empty, ``.`` or ``..`` segments are canonical."""
    assert is_canonical(path, get_snapshot()) is expected


@pytest.mark.skipif(sys.platform != "win32", reason="Windows path semantics")
@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("C:\\", True),
        ("C:\\Data\\Reports", True),
        ("\\\\server\\share\\dir", True),
        ("C:\\Data\\..\\Windows", False),
        ("C:/Data", False),
        ("Data\\Reports", False),
    ],
)
def test_is_canonical_on_windows(path: str, *, expected: bool) -> None:
    """Drive and UNC anchors are recognised; ``/`` never appears in a canonical Windows path."""
    assert is_canonical(path, get_snapshot()) is expected


def test_is_canonical_rejects_non_text() -> None:
    """Canonicalization results that are not text are never canonical."""
    assert not is_canonical(b"/srv/data", get_snapshot())  # type: ignore[arg-type]


def test_canonical_base_directory_accepts_path_like(tmp_path: os.PathLike[str]) -> None:
    """``os.PathLike`` bases are canonicalized like strings."""
    assert canonical_base_directory(tmp_path, get_snapshot()) == os.path.realpath(tmp_path)


def test_canonical_base_directory_reports_resolution_errors(mocker: MockerFixture) -> None:
    """Errors raised while canonicalizing become ``InvalidBaseDirectoryError``."""
    snapshot = dataclasses.replace(get_snapshot(), canonicalize=mocker.Mock(side_effect=OSError("loop")))

    with pytest.raises(InvalidBaseDirectoryError, match="cannot be resolved"):
        canonical_base_directory("/srv/data", snapshot)


@pytest.mark.parametrize("resolved", ["relative/dir", os.sep + "srv" + os.sep + ".." + os.sep + "etc"])
def test_canonical_base_directory_rejects_non_canonical_results(mocker: MockerFixture, resolved: str) -> None:
    """A canonicalization that does not produce an absolute canonical path is refused."""
    snapshot = dataclasses.replace(get_snapshot(), canonicalize=mocker.Mock(return_value=resolved))

    with pytest.raises(InvalidBaseDirectoryError, match="absolute canonical"):
        canonical_base_directory("relative/dir", snapshot)


def test_canonical_base_directory_ignores_patched_isabs(
    monkeypatch: pytest.MonkeyPatch,
    mocker: MockerFixture,
) -> None:
    """The absoluteness check does not go through ``os.path.isabs``."""
    snapshot = dataclasses.replace(get_snapshot(), canonicalize=mocker.Mock(return_value="relative/dir"))
    monkeypatch.setattr(os.path, "isabs", lambda _path: True)

    with pytest.raises(InvalidBaseDirectoryError, match="absolute canonical"):
        canonical_base_directory("relative/dir", snapshot)


def test_resolve_under_normalizes_segments(tmp_path: os.PathLike[str]) -> None:
    """Dot segments and redundant separators are removed."""
    base = os.path.realpath(tmp_path)

    assert resolve_under(base, "a/./b//../c", get_snapshot()) == os.path.join(base, "a", "c")
    assert resolve_under(base, "../x", get_snapshot()) == os.path.join(os.path.dirname(base), "x")
