from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Final, TypeAlias

from construct import Int32ul, Padding, Struct

from .config import DecodeOptions
from .debug_log import decode_debug_log
from .errors import MalformedChunkFraming, UnsupportedContainerVersion
from .stream import ByteStream

MAGIC: Final[bytes] = b"Relic Chunky"
CONTAINER_VERSION: Final[int] = 3
# Magic, signature, version, reserved and header length: the fixed part of the container header.
CONTAINER_FIXED_HEADER_SIZE: Final[int] = 28

FOLD: Final[str] = "FOLD"
DATA: Final[str] = "DATA"
TAG_SIZE: Final[int] = 8

_CONTAINER_PREAMBLE = Struct(
    "signature" / Int32ul,
    "version" / Int32ul,
)

_CONTAINER_HEADER = Struct(
    Padding(4),
    "header_length" / Int32ul,
)

_CHUNK_HEADER = Struct(
    "version" / Int32ul,
    "length" / Int32ul,
    "name_length" / Int32ul,
    Padding(8),
)


@dataclass(frozen=True, slots=True)
class ChunkHeader:
    tag: str
    version: int
    length: int
    name: str
    body_start: int
    depth: int = 0

    @property
    def kind(self) -> str:
        return self.tag[:4]

    @property
    def body_end(self) -> int:
        return self.body_start + self.length


RecordDecoder: TypeAlias = Callable[[ByteStream, ChunkHeader], object | None]
DecoderTable: TypeAlias = Mapping[tuple[str, int], RecordDecoder]


@dataclass(frozen=True, slots=True)
class Container:
    offset: int
    header_length: int
    chunks: tuple[ChunkHeader, ...]
    fragments: tuple[object, ...]


class ChunkWalker:
    """Walk chunky containers, handing DATA chunks to the registered record decoders.

    After every chunk the cursor is moved to the chunk's declared end, so a decoder that
    reads too little or too much never desynchronizes the siblings that follow.
    """

    def __init__(self, stream: ByteStream, decoders: DecoderTable, *, options: DecodeOptions | None = None) -> None:
        self.stream = stream
        self.decoders = decoders
        self.options = options if options is not None else DecodeOptions()
        self._chunks: list[ChunkHeader] = []
        self._fragments: list[object] = []

    def parse_container(self) -> Container | None:
        stream = self.stream
        offset = stream.position
        if stream.remaining < len(MAGIC) or stream.read_bytes(len(MAGIC), "container.magic") != MAGIC:
            stream.seek(offset)
            decode_debug_log("container", offset=offset, present=False)
            return None

        preamble = stream.parse(_CONTAINER_PREAMBLE, "container.version")
        version = int(preamble.version)
        if version != CONTAINER_VERSION:
            raise UnsupportedContainerVersion(version, expected=CONTAINER_VERSION, offset=stream.position - 4)

        header = stream.parse(_CONTAINER_HEADER, "container.header_length")
        header_length = int(header.header_length)
        if header_length < CONTAINER_FIXED_HEADER_SIZE:
            raise MalformedChunkFraming(
                f"container header length {header_length} shorter than {CONTAINER_FIXED_HEADER_SIZE}",
                offset=stream.position - 4,
                field="container.header_length",
            )
        stream.skip(header_length - CONTAINER_FIXED_HEADER_SIZE)
        decode_debug_log("container", offset=offset, present=True, header_length=header_length)

        self._chunks = []
        self._fragments = []
        while self.parse_chunk():
            pass

        return Container(
            offset=offset,
            header_length=header_length,
            chunks=tuple(self._chunks),
            fragments=tuple(self._fragments),
        )

    def parse_chunk(self, depth: int = 0) -> bool:
        """Consume one chunk at the cursor; False when no chunk starts here."""
        stream = self.stream
        if stream.remaining < TAG_SIZE:
            return False
        tag = stream.read_text(TAG_SIZE, "chunk.tag")
        if tag[:4] not in (FOLD, DATA):
            stream.skip(-TAG_SIZE)
            return False

        if depth > self.options.max_depth:
            raise MalformedChunkFraming(
                f"chunk nesting deeper than {self.options.max_depth}",
                offset=stream.position - TAG_SIZE,
                field="chunk.depth",
            )

        raw = stream.parse(_CHUNK_HEADER, f"{tag}.header")
        name = stream.read_text(int(raw.name_length), f"{tag}.name") if raw.name_length > 0 else ""
        header = ChunkHeader(
            tag=tag,
            version=int(raw.version),
            length=int(raw.length),
            name=name,
            body_start=stream.position,
            depth=depth,
        )
        self._chunks.append(header)
        decode_debug_log(
            "chunk",
            tag=header.tag,
            version=header.version,
            length=header.length,
            offset=header.body_start,
            depth=depth,
        )

        if self.options.strict_framing and header.body_end > stream.size:
            raise MalformedChunkFraming(
                f"chunk {tag} declares {header.length} bytes, only {stream.size - header.body_start} available",
                offset=header.body_start,
                field=f"{tag}.length",
            )

        if header.kind == FOLD:
            while stream.position < header.body_end:
                if not self.parse_chunk(depth + 1):
                    break
        else:
            decoder = self.decoders.get((header.tag, header.version))
            if decoder is None:
                decode_debug_log("chunk_skipped", tag=header.tag, version=header.version, offset=header.body_start)
            else:
                fragment = decoder(stream, header)
                if fragment is not None:
                    self._fragments.append(fragment)

        stream.seek(header.body_end)
        return True


__all__ = [
    "CONTAINER_VERSION",
    "DATA",
    "FOLD",
    "MAGIC",
    "ChunkHeader",
    "ChunkWalker",
    "Container",
    "DecoderTable",
    "RecordDecoder",
]
