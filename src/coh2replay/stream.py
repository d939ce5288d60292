from __future__ import annotations

import io
from pathlib import Path
from typing import Any, BinaryIO, TypeAlias

from construct import Bytes, Construct, ConstructError, Int8ul, Int16ul, Int32ul, Int64ul, StreamError

from .errors import OutOfRange, ReplayError, TruncatedInput

Source: TypeAlias = str | Path | bytes | bytearray | memoryview | BinaryIO


def _open_binary(source: Source) -> tuple[BinaryIO, bool]:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(source)), True
    if hasattr(source, "read"):
        return source, False  # type: ignore[return-value]
    return open(Path(source), "rb"), True  # type: ignore[arg-type]


def describe_source(source: Source) -> str:
    """Short label for a source, used to tag trace events."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return f"<bytes:{len(source)}>"
    if hasattr(source, "read"):
        name = getattr(source, "name", None)
        return str(name) if isinstance(name, (str, Path)) else "<stream>"
    return str(source)


class ByteStream:
    """Little-endian cursor over a seekable binary source.

    Paths and byte strings are opened (and later closed) by the stream itself; file objects
    passed in stay owned by the caller. Offsets are counted from where the source was
    positioned when the stream was created, so a recording embedded in a larger file
    decodes the same as a standalone one.
    """

    def __init__(self, source: Source) -> None:
        self._f, self._owned = _open_binary(source)
        self._origin = int(self._f.tell())
        self._f.seek(0, io.SEEK_END)
        self._size = int(self._f.tell()) - self._origin
        self._f.seek(self._origin, io.SEEK_SET)
        self._closed = False

    def __enter__(self) -> ByteStream:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def origin(self) -> int:
        return self._origin

    @property
    def position(self) -> int:
        return int(self._f.tell()) - self._origin

    @property
    def size(self) -> int:
        return self._size

    @property
    def remaining(self) -> int:
        return max(self._size - self.position, 0)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owned:
            self._f.close()

    def parse(self, struct: Construct, field: str) -> Any:
        offset = self.position
        try:
            return struct.parse_stream(self._f)
        except StreamError as exc:
            raise TruncatedInput(
                f"need {self._describe_need(struct)} bytes, {max(self._size - offset, 0)} left",
                offset=offset,
                field=field,
            ) from exc
        except ConstructError as exc:
            raise ReplayError(str(exc), offset=offset, field=field) from exc

    @staticmethod
    def _describe_need(struct: Construct) -> str:
        try:
            return str(struct.sizeof())
        except ConstructError:
            return "more"

    def read_u8(self, field: str = "u8") -> int:
        return int(self.parse(Int8ul, field))

    def read_u16(self, field: str = "u16") -> int:
        return int(self.parse(Int16ul, field))

    def read_u32(self, field: str = "u32") -> int:
        return int(self.parse(Int32ul, field))

    def read_u64(self, field: str = "u64") -> int:
        return int(self.parse(Int64ul, field))

    def read_bytes(self, count: int, field: str = "bytes") -> bytes:
        if count < 0:
            raise OutOfRange(f"negative read length {count}", offset=self.position, field=field)
        return bytes(self.parse(Bytes(int(count)), field))

    def read_text(self, length: int, field: str = "text") -> str:
        """Read `length` bytes as one character per byte."""
        return self.read_bytes(length, field).decode("latin-1")

    def read_unicode(self, length: int, field: str = "unicode") -> str:
        """Read `length` UTF-16LE code units."""
        raw = self.read_bytes(2 * int(length), field)
        return raw.decode("utf-16-le", errors="surrogatepass")

    def read_prefixed_text(self, field: str = "text") -> str:
        return self.read_text(self.read_u32(f"{field}.length"), field)

    def read_prefixed_unicode(self, field: str = "unicode") -> str:
        return self.read_unicode(self.read_u32(f"{field}.length"), field)

    def skip(self, delta: int) -> None:
        target = self.position + int(delta)
        if target < 0:
            raise OutOfRange(f"skip by {int(delta)} lands before start of stream", offset=self.position, field="skip")
        self._f.seek(self._origin + target, io.SEEK_SET)

    def seek(self, offset: int) -> None:
        # Seeking past the end is allowed; the next read raises TruncatedInput.
        if int(offset) < 0:
            raise OutOfRange(f"seek to negative offset {int(offset)}", offset=self.position, field="seek")
        self._f.seek(self._origin + int(offset), io.SEEK_SET)


__all__ = [
    "ByteStream",
    "Source",
    "describe_source",
]
