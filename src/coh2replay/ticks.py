from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from construct import Int32ul, Struct

from .commands import CommandTally, decode_action_tick
from .debug_log import decode_debug_log
from .errors import ReplayError, TruncatedInput
from .stream import ByteStream
from .types import ChatLine

ACTION_TICK: Final[int] = 0
MESSAGE_TICK: Final[int] = 1
CHAT_FLAG: Final[int] = 1

_TICK_HEADER = Struct(
    "tick_type" / Int32ul,
    "size" / Int32ul,
)


@dataclass(frozen=True, slots=True)
class TickScan:
    duration_ticks: int = 0
    chat: tuple[ChatLine, ...] = ()
    commands: CommandTally = field(default_factory=CommandTally)


def _decode_chat(body: bytes, *, tick: int, offset: int) -> ChatLine | None:
    with ByteStream(body) as sub:
        try:
            if sub.read_u32("chat.flag") != CHAT_FLAG:
                return None
            sub.skip(8)
            name = sub.read_prefixed_unicode("chat.name")
            message = sub.read_prefixed_unicode("chat.message")
        except TruncatedInput as exc:
            decode_debug_log("chat_skipped", tick=tick, offset=offset + int(exc.offset or 0), field=exc.field)
            return None
    return ChatLine(tick=tick, name=name, message=message)


def scan_ticks(stream: ByteStream, *, extract_chat: bool = True, extract_commands: bool = True) -> TickScan:
    """Walk tick records from the cursor until the recording ends.

    Only action ticks advance the clock; chat lines are stamped with the number of action ticks
    seen before them. The scan ends at a missing header, a zero-size record or a body that is
    not fully present.
    """
    start = stream.position
    ticks = 0
    chat: list[ChatLine] = []
    tally = CommandTally()
    header_size = _TICK_HEADER.sizeof()

    while stream.remaining >= header_size:
        header = stream.parse(_TICK_HEADER, "tick.header")
        size = int(header.size)
        if size == 0 or stream.remaining < size:
            break
        body_offset = stream.position
        body = stream.read_bytes(size, "tick.body")
        tick_type = int(header.tick_type)

        if tick_type == ACTION_TICK:
            if extract_commands:
                try:
                    tally.add(decode_action_tick(body))
                except ReplayError as exc:
                    decode_debug_log(
                        "commands_skipped",
                        tick=ticks,
                        offset=body_offset + int(exc.offset or 0),
                        field=exc.field,
                        error=type(exc).__name__,
                    )
            ticks += 1
        elif tick_type == MESSAGE_TICK and extract_chat:
            line = _decode_chat(body, tick=ticks, offset=body_offset)
            if line is not None:
                chat.append(line)

    decode_debug_log(
        "ticks",
        offset=start,
        count=ticks,
        chat=len(chat),
        commands=sum(tally.counts.values()),
        trailing=stream.remaining,
    )
    return TickScan(duration_ticks=ticks, chat=tuple(chat), commands=tally)


__all__ = [
    "ACTION_TICK",
    "CHAT_FLAG",
    "MESSAGE_TICK",
    "TickScan",
    "scan_ticks",
]
