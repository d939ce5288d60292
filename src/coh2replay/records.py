from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from construct import Array, Int16ul, Int32ul, Padding, Struct

from .chunky import ChunkHeader, DecoderTable, RecordDecoder
from .errors import UnexpectedValue
from .schema import SchemaRevision
from .stream import ByteStream
from .types import BULLETIN_SLOTS, COMMANDER_SLOTS, Faction, MatchData, Player, Scenario

SCENARIO_TAG: Final[str] = "DATASDSC"
MATCH_DATA_TAG: Final[str] = "DATADATA"
RESERVED_TAG: Final[str] = "DATABASE"
RESERVED_VERSION: Final[int] = 0xFF

EMPTY_SLOT: Final[int] = 0xFFFF_FFFF

# Item tags of the modern player loadout.
ITEM_EMPTY: Final[int] = 0x1
ITEM_PLAYER: Final[int] = 0x109
ITEM_CPU: Final[int] = 0x206
ITEM_CUSTOM: Final[int] = 0x216

# Skins come in a run of three, so do face plate, victory strike and decal.
COSMETIC_RUN: Final[int] = 3

_LEGACY_MAP_SIZE = Struct(
    "map_width" / Int32ul,
    "map_height" / Int32ul,
    Padding(47),
)

_LEGACY_PLAYER_TAIL = Struct(
    Padding(41),
    "start_position" / Int32ul,
    Padding(8),
    "commander_ids" / Array(COMMANDER_SLOTS, Int32ul),
    Padding(4),
    "bulletin_ids" / Array(BULLETIN_SLOTS, Int32ul),
    Padding(4),
    "bulletin_count" / Int32ul,
)

_MODERN_MAP_SIZE = Struct(
    "map_players" / Int32ul,
    "map_width" / Int32ul,
    "map_height" / Int32ul,
)

_MODERN_MATCH_HEADER = Struct(
    "opponent_type" / Int32ul,
    Padding(10),
    "rng_seed" / Int32ul,
)

_MODERN_PLAYER_ITEM = Struct(
    "selection_id" / Int32ul,
    Padding(4),
    "server_id" / Int32ul,
    Padding(4),
    "extra_length" / Int16ul,
)


@dataclass(frozen=True, slots=True)
class LoadoutItem:
    selection_id: int
    server_id: int


def decode_legacy_scenario(stream: ByteStream, header: ChunkHeader) -> Scenario:
    """Decode the scenario descriptor: mod, map file, localized map strings and map size."""
    stream.skip(16)
    locale_length = stream.read_u32("scenario.locale.length")
    stream.skip(12 + 2 * locale_length)

    mod_name = stream.read_prefixed_text("scenario.mod_name")
    map_file = stream.read_prefixed_text("scenario.map_file")
    stream.skip(16)
    map_name = stream.read_prefixed_unicode("scenario.map_name")
    stream.skip(4)
    map_description = stream.read_prefixed_unicode("scenario.map_description")
    stream.skip(4)
    size = stream.parse(_LEGACY_MAP_SIZE, "scenario.map_size")

    # Winter maps end with a season name; a zero length means there is none.
    season: str | None = None
    if stream.read_u32("scenario.season.length") > 0:
        stream.skip(-4)
        season = stream.read_prefixed_text("scenario.season")

    return Scenario(
        mod_name=mod_name,
        map_file=map_file,
        map_name=map_name,
        map_description=map_description,
        map_width=int(size.map_width),
        map_height=int(size.map_height),
        season=season,
    )


def decode_modern_scenario(stream: ByteStream, header: ChunkHeader) -> Scenario:
    """Decode the newer scenario descriptor, which drops locale, mod name and season."""
    stream.skip(28)
    map_file = stream.read_prefixed_text("scenario.map_file")
    stream.skip(16)
    map_name = stream.read_prefixed_unicode("scenario.map_name")
    map_description_long = stream.read_prefixed_unicode("scenario.map_description_long")
    map_description = stream.read_prefixed_unicode("scenario.map_description")
    size = stream.parse(_MODERN_MAP_SIZE, "scenario.map_size")
    return Scenario(
        mod_name="",
        map_file=map_file,
        map_name=map_name,
        map_description=map_description,
        map_width=int(size.map_width),
        map_height=int(size.map_height),
        map_description_long=map_description_long,
        map_players=int(size.map_players),
    )


def decode_legacy_player(stream: ByteStream) -> Player:
    stream.skip(1)
    name = stream.read_prefixed_unicode("player.name")
    team = stream.read_u32("player.team")
    faction = Faction.from_raw(stream.read_u32("player.faction"))

    tail = stream.parse(_LEGACY_PLAYER_TAIL, "player.loadout")
    commander_ids = tuple(int(value) for value in tail.commander_ids)
    bulletin_ids = tuple(int(value) for value in tail.bulletin_ids if int(value) != EMPTY_SLOT)

    bulletins: list[str] = []
    for _ in range(int(tail.bulletin_count)):
        bulletins.append(stream.read_prefixed_text("player.bulletin"))
        stream.skip(4)

    return Player(
        name=name,
        team=team,
        faction=faction,
        commander_ids=commander_ids,  # type: ignore[arg-type]
        bulletin_ids=bulletin_ids,
        bulletins=tuple(bulletins),
        start_position=int(tail.start_position),
    )


def decode_item(stream: ByteStream, field: str) -> LoadoutItem | None:
    """Decode one tagged loadout item; `None` for slots that carry no ids."""
    offset = stream.position
    tag = stream.read_u16(f"{field}.tag")
    if tag == ITEM_EMPTY:
        return None
    if tag == ITEM_PLAYER:
        item = stream.parse(_MODERN_PLAYER_ITEM, field)
        stream.skip(int(item.extra_length))
        return LoadoutItem(selection_id=int(item.selection_id), server_id=int(item.server_id))
    if tag == ITEM_CPU:
        stream.skip(5)
        return None
    if tag == ITEM_CUSTOM:
        stream.skip(21)
        return None
    raise UnexpectedValue(f"unknown item tag 0x{tag:x}", offset=offset, field=f"{field}.tag")


def _decode_items(stream: ByteStream, field: str, *, limit: int) -> list[LoadoutItem | None]:
    offset = stream.position
    count = stream.read_u32(f"{field}.count")
    if count > limit:
        raise UnexpectedValue(f"{count} {field} items, at most {limit} fit", offset=offset, field=f"{field}.count")
    return [decode_item(stream, field) for _ in range(count)]


def decode_modern_player(stream: ByteStream) -> Player:
    stream.skip(1)
    name = stream.read_prefixed_unicode("player.name")
    team = stream.read_u32("player.team")
    faction_name = stream.read_prefixed_text("player.faction")
    stream.skip(8)
    stream.read_prefixed_text("player.personality")
    stream.skip(16)

    stream.skip(2)
    for _ in range(COSMETIC_RUN):
        decode_item(stream, "player.skin")
    stream.skip(2)

    stream.skip(8)
    profile_id = stream.read_u64("player.profile_id")
    for _ in range(COSMETIC_RUN):
        decode_item(stream, "player.cosmetic")

    commanders = _decode_items(stream, "player.commander", limit=COMMANDER_SLOTS)
    bulletins = _decode_items(stream, "player.bulletin", limit=BULLETIN_SLOTS)
    stream.skip(12)

    commander_ids = [0 if item is None else item.server_id for item in commanders]
    commander_ids += [0] * (COMMANDER_SLOTS - len(commander_ids))

    return Player(
        name=name,
        team=team,
        faction=Faction.from_name(faction_name),
        commander_ids=tuple(commander_ids),  # type: ignore[arg-type]
        bulletin_ids=tuple(item.server_id for item in bulletins if item is not None),
        profile_id=profile_id,
        faction_name=faction_name,
        commander_selection_ids=tuple(item.selection_id for item in commanders if item is not None),
    )


def decode_legacy_match_data(stream: ByteStream, header: ChunkHeader) -> MatchData:
    """Decode the player list and the win condition."""
    stream.skip(29)
    player_count = stream.read_u32("match.player_count")
    players = tuple(decode_legacy_player(stream) for _ in range(player_count))
    stream.skip(90)
    win_condition = stream.read_prefixed_text("match.win_condition")
    return MatchData(players=players, win_condition=win_condition)


def decode_modern_match_data(stream: ByteStream, header: ChunkHeader) -> MatchData:
    """Decode opponent type, random seed and the player list."""
    head = stream.parse(_MODERN_MATCH_HEADER, "match.header")
    player_count = stream.read_u32("match.player_count")
    players = tuple(decode_modern_player(stream) for _ in range(player_count))
    return MatchData(players=players, opponent_type=int(head.opponent_type), rng_seed=int(head.rng_seed))


def decode_reserved(stream: ByteStream, header: ChunkHeader) -> None:
    # Declared by the format but never written by the game.
    return None


_LAYOUTS = {
    "legacy": (decode_legacy_scenario, decode_legacy_match_data),
    "modern": (decode_modern_scenario, decode_modern_match_data),
}


def decoders_for(revision: SchemaRevision) -> DecoderTable:
    scenario, match_data = _LAYOUTS[revision.name]
    table: dict[tuple[str, int], RecordDecoder] = {
        (SCENARIO_TAG, revision.sdsc_version): scenario,
        (MATCH_DATA_TAG, revision.data_version): match_data,
        (RESERVED_TAG, RESERVED_VERSION): decode_reserved,
    }
    for version in revision.data_version_aliases:
        table[(MATCH_DATA_TAG, version)] = match_data
    return table


def decode_player(stream: ByteStream, revision: SchemaRevision) -> Player:
    if revision.identity == "profile_id":
        return decode_modern_player(stream)
    return decode_legacy_player(stream)


__all__ = [
    "EMPTY_SLOT",
    "ITEM_CPU",
    "ITEM_CUSTOM",
    "ITEM_EMPTY",
    "ITEM_PLAYER",
    "MATCH_DATA_TAG",
    "RESERVED_TAG",
    "RESERVED_VERSION",
    "SCENARIO_TAG",
    "LoadoutItem",
    "decode_item",
    "decode_legacy_match_data",
    "decode_legacy_player",
    "decode_legacy_scenario",
    "decode_modern_match_data",
    "decode_modern_player",
    "decode_modern_scenario",
    "decode_player",
    "decode_reserved",
    "decoders_for",
]
