from __future__ import annotations

import pytest

from coh2replay.chunky import ChunkHeader, ChunkWalker
from coh2replay.config import DecodeOptions
from coh2replay.errors import MalformedChunkFraming, UnsupportedContainerVersion
from coh2replay.stream import ByteStream

from builders import chunk, container, fold, u32


def _reader(count: int):
    def _decode(stream: ByteStream, header: ChunkHeader) -> tuple[str, int, bytes]:
        return (header.tag, header.body_end, stream.read_bytes(count))

    return _decode


def test_missing_magic_is_not_an_error() -> None:
    data = b"Not A Chunky" + bytes(64)
    with ByteStream(data) as stream:
        walker = ChunkWalker(stream, {})
        assert walker.parse_container() is None
        assert stream.position == 0


def test_container_at_end_of_input_is_absent() -> None:
    with ByteStream(b"Relic") as stream:
        assert ChunkWalker(stream, {}).parse_container() is None


def test_unsupported_container_version_raises() -> None:
    with ByteStream(container([], version=4)) as stream:
        with pytest.raises(UnsupportedContainerVersion) as excinfo:
            ChunkWalker(stream, {}).parse_container()
    assert excinfo.value.version == 4
    assert excinfo.value.expected == 3


def test_header_length_below_fixed_size_is_malformed() -> None:
    with ByteStream(container([], header_length=20)) as stream:
        with pytest.raises(MalformedChunkFraming):
            ChunkWalker(stream, {}).parse_container()


def test_variable_header_tail_is_skipped() -> None:
    data = container([chunk("DATATEST", 1, b"\x2a")], header_length=44)
    with ByteStream(data) as stream:
        result = ChunkWalker(stream, {("DATATEST", 1): _reader(1)}).parse_container()
    assert result is not None
    assert result.header_length == 44
    assert result.fragments[0][2] == b"\x2a"


@pytest.mark.parametrize("read_count", [0, 2, 4, 30])
def test_cursor_lands_on_declared_end_whatever_the_decoder_reads(read_count: int) -> None:
    first = chunk("DATATEST", 1, b"\x01\x02\x03\x04")
    second = chunk("DATATEST", 1, b"\x05\x06\x07\x08")
    data = first + second + bytes(32)
    with ByteStream(data) as stream:
        walker = ChunkWalker(stream, {("DATATEST", 1): _reader(read_count)})
        assert walker.parse_chunk()
        assert stream.position == len(first)
        assert walker.parse_chunk()
        assert stream.position == len(first) + len(second)


def test_over_reading_decoder_does_not_disturb_siblings() -> None:
    def _greedy(stream: ByteStream, header: ChunkHeader) -> bytes:
        return stream.read_bytes(header.length + 12)

    data = container(
        [
            chunk("DATAGRDY", 1, b"\xaa\xbb"),
            chunk("DATATEST", 1, b"\x11\x22"),
        ]
    )
    with ByteStream(data) as stream:
        result = ChunkWalker(stream, {("DATAGRDY", 1): _greedy, ("DATATEST", 1): _reader(2)}).parse_container()
    assert result is not None
    assert [header.tag for header in result.chunks] == ["DATAGRDY", "DATATEST"]
    assert result.fragments[1] == ("DATATEST", result.chunks[1].body_end, b"\x11\x22")


def test_unregistered_version_is_skipped() -> None:
    data = container(
        [
            chunk("DATATEST", 2, b"\xff" * 10),
            chunk("DATATEST", 1, b"\x07"),
        ]
    )
    with ByteStream(data) as stream:
        result = ChunkWalker(stream, {("DATATEST", 1): _reader(1)}).parse_container()
    assert result is not None
    assert len(result.chunks) == 2
    assert result.fragments == (("DATATEST", result.chunks[1].body_end, b"\x07"),)


def test_nested_folds_are_walked_depth_first() -> None:
    data = container(
        [
            fold(
                "FOLDINFO",
                [
                    fold("FOLDGAME", [chunk("DATATEST", 1, b"\x01")]),
                    chunk("DATATEST", 1, b"\x02"),
                ],
            ),
            chunk("DATATEST", 1, b"\x03", name="trailer"),
        ]
    )
    with ByteStream(data) as stream:
        result = ChunkWalker(stream, {("DATATEST", 1): _reader(1)}).parse_container()
        assert stream.position == len(data)
    assert result is not None
    assert [(h.tag, h.depth) for h in result.chunks] == [
        ("FOLDINFO", 0),
        ("FOLDGAME", 1),
        ("DATATEST", 2),
        ("DATATEST", 1),
        ("DATATEST", 0),
    ]
    assert result.chunks[-1].name == "trailer"
    assert [fragment[2] for fragment in result.fragments] == [b"\x01", b"\x02", b"\x03"]


def test_foreign_tag_ends_siblings_and_rewinds() -> None:
    body = container([chunk("DATATEST", 1, b"\x01")])
    data = body + b"JUNKJUNK" + bytes(16)
    with ByteStream(data) as stream:
        result = ChunkWalker(stream, {}).parse_container()
        assert result is not None
        assert stream.position == len(body)


def test_second_container_follows_first() -> None:
    first = container([chunk("DATATEST", 1, b"\x01")])
    second = container([chunk("DATATEST", 1, b"\x02")])
    with ByteStream(first + second) as stream:
        walker = ChunkWalker(stream, {("DATATEST", 1): _reader(1)})
        one = walker.parse_container()
        two = walker.parse_container()
        assert walker.parse_container() is None
    assert one is not None and two is not None
    assert one.fragments[0][2] == b"\x01"
    assert two.fragments[0][2] == b"\x02"
    assert two.offset == len(first)


def test_nesting_beyond_max_depth_is_rejected() -> None:
    inner = chunk("DATATEST", 1, b"")
    for _ in range(4):
        inner = fold("FOLDDEEP", [inner])
    with ByteStream(container([inner])) as stream:
        walker = ChunkWalker(stream, {}, options=DecodeOptions(max_depth=2))
        with pytest.raises(MalformedChunkFraming):
            walker.parse_container()


def test_overrunning_chunk_is_tolerated_unless_strict() -> None:
    data = container([chunk("DATATEST", 1, b"\x01\x02", length=500)])
    with ByteStream(data) as stream:
        result = ChunkWalker(stream, {}).parse_container()
        assert result is not None
        assert stream.position == result.chunks[0].body_end

    with ByteStream(data) as stream:
        walker = ChunkWalker(stream, {}, options=DecodeOptions(strict_framing=True))
        with pytest.raises(MalformedChunkFraming):
            walker.parse_container()
