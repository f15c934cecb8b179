"""Trusted snapshot of the byte/text primitives used for path validation.

The snapshot binds direct references to the interpreter's byte/text conversion and path canonicalization
primitives once, as early as possible, and never looks them up again. Code that later rebinds ``builtins.bytes``,
patches ``codecs.decode`` or registers a hostile codec search function cannot change what a captured snapshot does.

Decoding and encoding go through the unbound ``bytes.decode`` / ``str.encode`` methods of the built-in types, which
cannot be reassigned, and only for codecs the interpreter implements natively (see ``NATIVE_CODECS``), so the codec
registry is never consulted after capture. Joining and comparing paths likewise use only methods of the built-in
``str`` type together with the separators and case rule captured from ``os.path``.

``os.path.realpath`` is captured as well, but it resolves helpers such as ``os.path.join`` or ``os.lstat`` by name
while it runs. Its results are therefore checked for canonical form before they are trusted.
"""

from __future__ import annotations

import builtins
import codecs
import os
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, TypeAlias, Union

from pathguard.config import DEFAULT_ENCODING, DEFAULT_ERRORS, NATIVE_CODECS, SNAPSHOT_ENCODINGS
from pathguard.utils.exceptions import SnapshotAlreadyCapturedError, SnapshotUnavailableError
from pathguard.utils.logging_config import get_logger

logger = get_logger(__name__)

BytesLike: TypeAlias = Union[bytes, bytearray, memoryview]

_PROBE = "pathguard/probe"

# (label, owner, attribute) of every ambient primitive an attacker could rebind after capture
_AMBIENT_PRIMITIVES: tuple[tuple[str, object, str], ...] = (
    ("builtins.bytes", builtins, "bytes"),
    ("builtins.bytearray", builtins, "bytearray"),
    ("builtins.memoryview", builtins, "memoryview"),
    ("builtins.str", builtins, "str"),
    ("codecs.decode", codecs, "decode"),
    ("codecs.encode", codecs, "encode"),
    ("codecs.lookup", codecs, "lookup"),
    ("codecs.utf_8_decode", codecs, "utf_8_decode"),
    ("codecs.utf_8_encode", codecs, "utf_8_encode"),
    ("os.fsdecode", os, "fsdecode"),
    ("os.fsencode", os, "fsencode"),
    ("os.lstat", os, "lstat"),
    ("os.readlink", os, "readlink"),
    ("os.path.abspath", os.path, "abspath"),
    ("os.path.isabs", os.path, "isabs"),
    ("os.path.join", os.path, "join"),
    ("os.path.normcase", os.path, "normcase"),
    ("os.path.normpath", os.path, "normpath"),
    ("os.path.realpath", os.path, "realpath"),
)

_LOCK = threading.Lock()
_SNAPSHOT: TrustedPrimitiveSnapshot | None = None


def _encoding_key(name: str) -> str:
    """Normalize an encoding name so that ``UTF-8``, ``utf_8`` and ``utf8`` compare equal."""
    return "".join(ch for ch in name.lower() if ch.isalnum())


@dataclass(frozen=True, eq=False)
class TrustedPrimitiveSnapshot:  # pylint: disable=too-many-instance-attributes
    """Immutable bundle of the primitives captured at startup.

    Instances are created by ``capture``; fields cannot be reassigned once the snapshot exists.

    Attributes
    ----------
    bytes_type : type[bytes]
        The built-in ``bytes`` type, taken from a literal rather than from ``builtins``.
    str_type : type[str]
        The built-in ``str`` type, taken from a literal.
    bytearray_type : type[bytearray]
        The built-in ``bytearray`` type as it was bound at capture time.
    memoryview_type : type[memoryview]
        The built-in ``memoryview`` type as it was bound at capture time.
    decode_method : Callable[..., str]
        The unbound ``bytes.decode`` method.
    encode_method : Callable[..., bytes]
        The unbound ``str.encode`` method.
    canonicalize : Callable[[str], str]
        ``os.path.realpath`` as it was bound at capture time.
    sep : str
        The platform path separator.
    altsep : str | None
        The alternative path separator (``"/"`` on Windows, ``None`` elsewhere).
    fold_case : bool
        Whether paths compare case-insensitively on this platform.
    errors : str
        Error handler used for every conversion (default: ``"surrogateescape"``).
    codec_names : Mapping[str, str]
        Read-only map from normalized encoding names to the canonical codec name captured for them.
    ambient_bindings : tuple[tuple[str, object], ...]
        The ambient primitives seen at capture time, kept only for drift detection.

    """

    bytes_type: type[bytes]
    str_type: type[str]
    bytearray_type: type[bytearray]
    memoryview_type: type[memoryview]
    decode_method: Callable[..., str]
    encode_method: Callable[..., bytes]
    canonicalize: Callable[[str], str]
    sep: str
    altsep: str | None
    fold_case: bool
    errors: str
    codec_names: Mapping[str, str]
    ambient_bindings: tuple[tuple[str, object], ...] = field(default=(), repr=False)

    @property
    def encodings(self) -> tuple[str, ...]:
        """Canonical names of the captured codecs, in capture order."""
        return tuple(dict.fromkeys(self.codec_names.values()))

    @property
    def separators(self) -> tuple[str, ...]:
        """Every character that separates path segments on this platform."""
        return (self.sep,) if self.altsep is None else (self.sep, self.altsep)

    def exact_text(self, text: str) -> str:
        """Return ``text`` as an exact ``str``; subclasses are copied so their overrides never run."""
        return self.str_type.__str__(text)

    def path_key(self, path: str) -> str:
        """Return the form of ``path`` used for comparisons: separators unified, case folded where needed."""
        str_type = self.str_type
        key = self.exact_text(path)
        if self.altsep is not None:
            key = str_type.replace(key, self.altsep, self.sep)
        return str_type.lower(key) if self.fold_case else key

    def is_rooted(self, path: str) -> bool:
        """Return ``True`` if ``path`` starts at a root or (on Windows) names a drive."""
        path = self.exact_text(path)
        if self.str_type.startswith(path, self.separators):
            return True
        return self.altsep is not None and path[1:2] == ":"

    def join_path(self, base: str, text: str) -> str:
        """Join ``text`` onto ``base``; a rooted ``text`` replaces ``base``, as ``os.path.join`` does.

        Only ``str`` operations are used, so the result does not depend on the current ``os.path`` bindings.
        """
        base = self.exact_text(base)
        text = self.exact_text(text)
        if self.is_rooted(text):
            return text
        if not base or self.str_type.endswith(base, self.separators):
            return base + text
        return base + self.sep + text

    def supports(self, encoding: str) -> bool:
        """Return ``True`` if ``encoding`` was captured by this snapshot."""
        return _encoding_key(encoding) in self.codec_names

    def codec_name(self, encoding: str) -> str:
        """Return the canonical codec name captured for ``encoding``.

        Parameters
        ----------
        encoding : str
            Any spelling of a captured encoding name.

        Returns
        -------
        str
            The canonical codec name.

        Raises
        ------
        LookupError
            If ``encoding`` was not captured. No lookup is ever attempted after capture.

        """
        try:
            return self.codec_names[_encoding_key(encoding)]
        except KeyError as exc:
            msg = f"Encoding {encoding!r} was not captured by the trusted snapshot"
            raise LookupError(msg) from exc

    def decode_bytes_to_text(self, data: BytesLike, encoding: str = DEFAULT_ENCODING) -> str:
        """Decode ``data`` to text with the captured ``bytes.decode``.

        Parameters
        ----------
        data : BytesLike
            The raw bytes to decode.
        encoding : str
            A captured encoding (default: ``"utf-8"``).

        Returns
        -------
        str
            The decoded text.

        Raises
        ------
        TypeError
            If ``data`` is not a bytes-like object.

        """
        if not isinstance(data, (self.bytes_type, self.bytearray_type, self.memoryview_type)):
            msg = f"Expected a bytes-like object, not {type(data).__name__}"
            raise TypeError(msg)

        raw = data if type(data) is self.bytes_type else self.bytes_type(data)
        return self.decode_method(raw, self.codec_name(encoding), self.errors)

    def encode_text_to_bytes(self, text: str, encoding: str = DEFAULT_ENCODING) -> bytes:
        """Encode ``text`` with the captured ``str.encode``.

        Parameters
        ----------
        text : str
            The text to encode.
        encoding : str
            A captured encoding (default: ``"utf-8"``).

        Returns
        -------
        bytes
            The encoded bytes.

        Raises
        ------
        TypeError
            If ``text`` is not a ``str``.

        """
        if not isinstance(text, self.str_type):
            msg = f"Expected str, not {type(text).__name__}"
            raise TypeError(msg)

        return self.encode_method(text, self.codec_name(encoding), self.errors)

    def construct_bytes_from(self, source: str | BytesLike, encoding: str = DEFAULT_ENCODING) -> bytes:
        """Build a fresh ``bytes`` object from text or from another bytes-like object.

        Parameters
        ----------
        source : str | BytesLike
            Text is encoded with ``encoding``; bytes-like objects are copied.
        encoding : str
            A captured encoding, used only for text sources (default: ``"utf-8"``).

        Returns
        -------
        bytes
            A new ``bytes`` object.

        Raises
        ------
        TypeError
            If ``source`` is neither text nor bytes-like.

        """
        if isinstance(source, self.str_type):
            return self.encode_text_to_bytes(source, encoding)
        if isinstance(source, (self.bytes_type, self.bytearray_type, self.memoryview_type)):
            return self.bytes_type(source)

        msg = f"Cannot construct bytes from {type(source).__name__}"
        raise TypeError(msg)

    def write_text_into(
        self,
        buffer: bytearray,
        text: str,
        offset: int = 0,
        length: int | None = None,
        encoding: str = DEFAULT_ENCODING,
    ) -> int:
        """Encode ``text`` into ``buffer`` in place, without splitting a character.

        Parameters
        ----------
        buffer : bytearray
            Mutable destination buffer.
        text : str
            The text to write.
        offset : int
            Index in ``buffer`` where writing starts (default: ``0``).
        length : int | None
            Maximum number of bytes to write (default: everything up to the end of ``buffer``).
        encoding : str
            A captured encoding (default: ``"utf-8"``).

        Returns
        -------
        int
            The number of bytes written.

        Raises
        ------
        TypeError
            If ``buffer`` is not a ``bytearray``.
        ValueError
            If ``offset`` or ``length`` fall outside ``buffer``.

        """
        if not isinstance(buffer, self.bytearray_type):
            msg = f"Expected a bytearray buffer, not {type(buffer).__name__}"
            raise TypeError(msg)
        if offset < 0 or offset > len(buffer):
            msg = f"Offset {offset} is out of range for a buffer of {len(buffer)} bytes"
            raise ValueError(msg)
        if length is not None and length < 0:
            msg = f"Length must be non-negative, got {length}"
            raise ValueError(msg)

        available = len(buffer) - offset
        if length is not None:
            available = min(available, length)

        chunk = self.bytearray_type()
        for char in text:
            encoded = self.encode_text_to_bytes(char, encoding)
            if len(chunk) + len(encoded) > available:
                break
            chunk += encoded

        buffer[offset : offset + len(chunk)] = chunk
        return len(chunk)


def _ambient_bindings() -> tuple[tuple[str, object], ...]:
    """Return the current binding of every watched ambient primitive."""
    return tuple((label, getattr(owner, attr, None)) for label, owner, attr in _AMBIENT_PRIMITIVES)


def _build_snapshot(encodings: Iterable[str]) -> TrustedPrimitiveSnapshot:
    """Capture the primitives and resolve ``encodings`` to native codecs, once.

    Parameters
    ----------
    encodings : Iterable[str]
        Encoding names the snapshot must support.

    Returns
    -------
    TrustedPrimitiveSnapshot
        A new snapshot. It is not installed as the process-wide snapshot.

    Raises
    ------
    SnapshotUnavailableError
        If a primitive is missing or an encoding cannot be served by a native codec.

    """
    bytes_type = type(b"")
    str_type = type("")
    decode_method = getattr(bytes_type, "decode", None)
    encode_method = getattr(str_type, "encode", None)
    canonicalize = getattr(os.path, "realpath", None)
    normcase = getattr(os.path, "normcase", None)

    primitives = {
        "bytes.decode": decode_method,
        "str.encode": encode_method,
        "os.path.realpath": canonicalize,
        "os.path.normcase": normcase,
    }
    for label, primitive in primitives.items():
        if not callable(primitive):
            msg = f"Platform primitive {label} is unavailable"
            raise SnapshotUnavailableError(msg)

    codec_names: dict[str, str] = {}
    for name in encodings:
        try:
            canonical = codecs.lookup(name).name
        except LookupError as exc:
            msg = f"Unknown encoding {name!r}"
            raise SnapshotUnavailableError(msg) from exc

        if canonical not in NATIVE_CODECS:
            msg = f"Encoding {name!r} ({canonical}) is not implemented natively and cannot be trusted"
            raise SnapshotUnavailableError(msg)

        probe = decode_method(encode_method(_PROBE, canonical, DEFAULT_ERRORS), canonical, DEFAULT_ERRORS)
        if probe != _PROBE:
            msg = f"Encoding {name!r} does not round-trip; byte/text primitives are not usable"
            raise SnapshotUnavailableError(msg)

        codec_names[_encoding_key(name)] = canonical
        codec_names[_encoding_key(canonical)] = canonical

    if not codec_names:
        msg = "At least one encoding must be captured"
        raise SnapshotUnavailableError(msg)

    return TrustedPrimitiveSnapshot(
        bytes_type=bytes_type,
        str_type=str_type,
        bytearray_type=builtins.bytearray,
        memoryview_type=builtins.memoryview,
        decode_method=decode_method,
        encode_method=encode_method,
        canonicalize=canonicalize,
        sep=os.sep,
        altsep=os.altsep,
        fold_case=normcase("A") == "a",
        errors=DEFAULT_ERRORS,
        codec_names=MappingProxyType(codec_names),
        ambient_bindings=_ambient_bindings(),
    )


def capture(encodings: Iterable[str] | None = None) -> TrustedPrimitiveSnapshot:
    """Capture the process-wide trusted snapshot, exactly once.

    Repeated calls return the snapshot already captured, provided it covers every requested encoding; the bound
    primitives are never replaced.

    Parameters
    ----------
    encodings : Iterable[str] | None
        Encodings the snapshot must support (default: ``SNAPSHOT_ENCODINGS``).

    Returns
    -------
    TrustedPrimitiveSnapshot
        The process-wide snapshot.

    Raises
    ------
    SnapshotAlreadyCapturedError
        If a snapshot exists and lacks one of the requested encodings.
    SnapshotUnavailableError
        If the primitives cannot be captured.

    """
    global _SNAPSHOT  # noqa: PLW0603 pylint: disable=global-statement

    requested = tuple(encodings) if encodings is not None else SNAPSHOT_ENCODINGS
    with _LOCK:
        if _SNAPSHOT is not None:
            missing = [name for name in requested if not _SNAPSHOT.supports(name)]
            if missing:
                logger.error(
                    "Refusing to re-capture trusted primitives",
                    extra={"event": "snapshot_recapture_refused", "encodings": missing},
                )
                raise SnapshotAlreadyCapturedError(missing)
            return _SNAPSHOT

        _SNAPSHOT = _build_snapshot(requested)

    logger.debug(
        "Trusted primitives captured",
        extra={"event": "snapshot_captured", "encodings": list(_SNAPSHOT.encodings)},
    )
    return _SNAPSHOT


def get_snapshot() -> TrustedPrimitiveSnapshot:
    """Return the process-wide snapshot, capturing it if that has not happened yet."""
    snapshot = _SNAPSHOT
    if snapshot is None:
        return capture()
    return snapshot


def detect_ambient_drift(snapshot: TrustedPrimitiveSnapshot | None = None) -> list[str]:
    """List ambient primitives whose binding changed since ``snapshot`` was captured.

    A non-empty result means code in this process redefined byte/text or path primitives. The snapshot keeps
    working regardless; this only reports the change.

    Parameters
    ----------
    snapshot : TrustedPrimitiveSnapshot | None
        The snapshot to compare against (default: the process-wide snapshot).

    Returns
    -------
    list[str]
        Dotted names of the redefined primitives, for example ``["codecs.decode"]``.

    """
    snapshot = snapshot if snapshot is not None else get_snapshot()
    current = dict(_ambient_bindings())
    drifted = [label for label, original in snapshot.ambient_bindings if current.get(label) is not original]

    if drifted:
        logger.warning(
            "Ambient primitives were redefined after capture",
            extra={"event": "ambient_drift", "primitives": drifted},
        )
    return drifted


capture()
