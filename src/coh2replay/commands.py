"""Player commands carried by action ticks.

An action tick holds bundles; a bundle is a run of length-prefixed parts, one command per part.
Commands name their issuer by a one-byte action id that the recording never maps to a player
directly. The link is made through the commander pick: the command that selects a commander
carries the loadout selection id, which matches one commander item of exactly one player.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Final

from construct import Int8ul, Int32ul, Padding, Struct

from .errors import UnexpectedValue
from .stream import ByteStream
from .types import TICKS_PER_MINUTE, Player

SET_COMMANDER: Final[int] = 99
SET_COMMANDER_SUB_ID: Final[int] = 0x16
# Data commands carry raw payloads and are not player input.
DATA_COMMANDS: Final[frozenset[int]] = frozenset({104, 105})
LAST_COMMAND_TYPE: Final[int] = 106

_ACTION_HEADER = Struct(
    Padding(1),
    "tick_id" / Int32ul,
    Padding(4),
    "bundle_count" / Int32ul,
)

_BUNDLE_HEADER = Struct(
    Padding(8),
    "length" / Int32ul,
    "check" / Int8ul,
)

_PART_HEADER = Struct(
    "length" / Int8ul,
    Padding(1),
    "action_type" / Int8ul,
    Padding(2),
    "player_id" / Int8ul,
    Padding(6),
    "sub_id" / Int8ul,
)

_COMMANDER_PICK = Struct(
    Padding(3),
    "selection_id" / Int32ul,
)


@dataclass(frozen=True, slots=True)
class Action:
    player_id: int
    action_type: int
    sub_id: int
    selection_id: int | None = None

    @property
    def is_command(self) -> bool:
        return self.action_type <= LAST_COMMAND_TYPE and self.action_type not in DATA_COMMANDS


def _decode_part(stream: ByteStream) -> Action:
    start = stream.position
    part = stream.parse(_PART_HEADER, "action.part")
    length = int(part.length)
    if length < _PART_HEADER.sizeof():
        raise UnexpectedValue(f"action part of {length} bytes", offset=start, field="action.part.length")

    selection_id: int | None = None
    if int(part.action_type) == SET_COMMANDER and int(part.sub_id) == SET_COMMANDER_SUB_ID:
        selection_id = int(stream.parse(_COMMANDER_PICK, "action.selection_id").selection_id)

    stream.seek(start + length)
    return Action(
        player_id=int(part.player_id),
        action_type=int(part.action_type),
        sub_id=int(part.sub_id),
        selection_id=selection_id,
    )


def decode_action_tick(body: bytes) -> tuple[Action, ...]:
    """Decode every part of every bundle of one action tick body."""
    actions: list[Action] = []
    with ByteStream(body) as stream:
        head = stream.parse(_ACTION_HEADER, "action.header")
        for _ in range(int(head.bundle_count)):
            offset = stream.position
            bundle = stream.parse(_BUNDLE_HEADER, "action.bundle")
            length = int(bundle.length)
            if int(bundle.check) != length % 256:
                raise UnexpectedValue(
                    f"bundle check byte {int(bundle.check)} does not match length {length}",
                    offset=offset,
                    field="action.bundle.check",
                )
            end = stream.position + length
            while stream.position < end:
                actions.append(_decode_part(stream))
            if stream.position != end:
                raise UnexpectedValue("action parts overrun their bundle", offset=offset, field="action.bundle.length")
    return tuple(actions)


@dataclass(slots=True)
class CommandTally:
    counts: dict[int, int] = field(default_factory=dict)
    # action id -> selection id of the first commander that action id picked
    commander_picks: dict[int, int] = field(default_factory=dict)

    def add(self, actions: Iterable[Action]) -> None:
        for action in actions:
            if action.selection_id is not None:
                self.commander_picks.setdefault(action.player_id, action.selection_id)
            if action.is_command:
                self.counts[action.player_id] = self.counts.get(action.player_id, 0) + 1


def link_commands(players: tuple[Player, ...], tally: CommandTally, duration_ticks: int) -> tuple[Player, ...]:
    """Attach action ids, command counts and commands per minute to the players they belong to.

    A single action id left without a commander pick goes to the first player left without one.
    """
    assigned: dict[int, int] = {}
    for action_id, selection_id in tally.commander_picks.items():
        for idx, player in enumerate(players):
            if idx not in assigned and selection_id in player.commander_selection_ids:
                assigned[idx] = action_id
                break

    claimed = set(assigned.values())
    unclaimed = [action_id for action_id in tally.counts if action_id not in claimed]
    if len(unclaimed) == 1:
        for idx in range(len(players)):
            if idx not in assigned:
                assigned[idx] = unclaimed[0]
                break

    minutes = float(duration_ticks) / float(TICKS_PER_MINUTE)
    linked: list[Player] = []
    for idx, player in enumerate(players):
        action_id = assigned.get(idx)
        if action_id is None:
            linked.append(player)
            continue
        count = tally.counts.get(action_id, 0)
        linked.append(
            replace(
                player,
                action_id=action_id,
                commands=count,
                cpm=count / minutes if minutes > 0 else None,
            )
        )
    return tuple(linked)


__all__ = [
    "DATA_COMMANDS",
    "SET_COMMANDER",
    "SET_COMMANDER_SUB_ID",
    "Action",
    "CommandTally",
    "decode_action_tick",
    "link_commands",
]
