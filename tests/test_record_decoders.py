from __future__ import annotations

import pytest

from coh2replay.chunky import ChunkHeader
from coh2replay.errors import TruncatedInput, UnexpectedValue
from coh2replay.records import (
    EMPTY_SLOT,
    MATCH_DATA_TAG,
    RESERVED_TAG,
    RESERVED_VERSION,
    SCENARIO_TAG,
    LoadoutItem,
    decode_item,
    decode_legacy_match_data,
    decode_legacy_scenario,
    decode_modern_match_data,
    decode_modern_player,
    decode_modern_scenario,
    decode_player,
    decoders_for,
)
from coh2replay.schema import LEGACY, MODERN
from coh2replay.stream import ByteStream
from coh2replay.types import Faction

from builders import (
    cpu_item,
    custom_item,
    empty_item,
    legacy_match_body,
    legacy_player_body,
    legacy_scenario_body,
    modern_match_body,
    modern_player_body,
    modern_scenario_body,
    player_item,
    u16,
    u32,
)

_HEADER = ChunkHeader(tag=SCENARIO_TAG, version=0, length=0, name="", body_start=0)


def test_legacy_scenario_fields_in_order() -> None:
    body = legacy_scenario_body(
        mod_name="RelicCoH2",
        map_file="data:scenarios\\mp\\2p_kholodnaya_ferma",
        map_name="$11045520",
        map_description="$11045521",
        map_width=512,
        map_height=384,
        locale="english",
    )
    with ByteStream(body) as stream:
        scenario = decode_legacy_scenario(stream, _HEADER)
        assert stream.remaining == 0
    assert scenario.mod_name == "RelicCoH2"
    assert scenario.map_file == "data:scenarios\\mp\\2p_kholodnaya_ferma"
    assert scenario.map_name == "$11045520"
    assert scenario.map_description == "$11045521"
    assert (scenario.map_width, scenario.map_height) == (512, 384)
    assert scenario.season is None
    assert scenario.map_players is None


def test_legacy_scenario_reads_optional_season() -> None:
    with ByteStream(legacy_scenario_body(season="winter")) as stream:
        scenario = decode_legacy_scenario(stream, _HEADER)
    assert scenario.season == "winter"


def test_modern_scenario_has_long_description_and_slot_count() -> None:
    body = modern_scenario_body(
        map_file="data:scenarios\\mp\\4p_lazur_factory",
        map_name="$11050399",
        map_description_long="$11050400",
        map_description="$11050401",
        map_players=4,
        map_width=640,
        map_height=512,
    )
    with ByteStream(body) as stream:
        scenario = decode_modern_scenario(stream, _HEADER)
        assert stream.remaining == 0
    assert scenario.mod_name == ""
    assert scenario.map_file == "data:scenarios\\mp\\4p_lazur_factory"
    assert scenario.map_name == "$11050399"
    assert scenario.map_description_long == "$11050400"
    assert scenario.map_description == "$11050401"
    assert scenario.map_players == 4
    assert (scenario.map_width, scenario.map_height) == (640, 512)
    assert scenario.season is None


def test_legacy_player_identity_is_start_position() -> None:
    body = legacy_player_body(name="Bob", team=1, faction=0, start_position=33620761)
    with ByteStream(body) as stream:
        player = decode_player(stream, LEGACY)
        assert stream.remaining == 0
    assert player.name == "Bob"
    assert player.team == 1
    assert player.faction is Faction.OSTHEER
    assert player.start_position == 33620761
    assert player.profile_id is None
    assert player.player_id is None
    assert player.faction_name is None


def test_legacy_player_loadout_drops_empty_bulletin_slots() -> None:
    body = legacy_player_body(
        name="Alice",
        commander_ids=(7, 8, 9),
        bulletin_ids=(EMPTY_SLOT, 4001, 4002),
        bulletins=("Guards Rifle Training", "Partisan Ambush"),
    )
    with ByteStream(body) as stream:
        player = decode_player(stream, LEGACY)
    assert player.commander_ids == (7, 8, 9)
    assert player.bulletin_ids == (4001, 4002)
    assert player.bulletins == ("Guards Rifle Training", "Partisan Ambush")
    assert player.equipped_bulletins() == ((4001, "Guards Rifle Training"), (4002, "Partisan Ambush"))


def test_modern_player_reads_profile_id_and_loadout() -> None:
    body = modern_player_body(
        name="Alice",
        team=1,
        faction="soviet",
        profile_id=76561197960287930,
        skins=[player_item(1, 900), empty_item(), custom_item()],
        cosmetics=[player_item(2, 901, extra=b"\x05\x06"), empty_item(), empty_item()],
        commanders=[player_item(11, 186413), player_item(12, 186414)],
        bulletins=[player_item(21, 4001), empty_item()],
    )
    with ByteStream(body) as stream:
        player = decode_modern_player(stream)
        assert stream.remaining == 0
    assert player.name == "Alice"
    assert player.team == 1
    assert player.faction is Faction.SOVIETS
    assert player.faction_name == "soviet"
    assert player.profile_id == 76561197960287930
    assert player.start_position is None
    assert player.commander_ids == (186413, 186414, 0)
    assert player.commander_selection_ids == (11, 12)
    assert player.bulletin_ids == (4001,)
    assert player.bulletins == ()


def test_modern_cpu_player_items_carry_no_ids() -> None:
    body = modern_player_body(
        name="CPU - Expert",
        faction="soviet",
        personality="default_skirmish",
        profile_id=0,
        skins=[cpu_item(), cpu_item(), cpu_item()],
        cosmetics=[cpu_item(), cpu_item(), cpu_item()],
        commanders=[cpu_item()],
    )
    with ByteStream(body) as stream:
        player = decode_modern_player(stream)
        assert stream.remaining == 0
    assert player.faction is Faction.SOVIETS
    assert player.faction_name == "soviet"
    assert player.commander_ids == (0, 0, 0)
    assert player.commander_selection_ids == ()


def test_german_army_maps_to_ostheer() -> None:
    with ByteStream(modern_player_body(name="Hans", faction="german")) as stream:
        assert decode_modern_player(stream).faction is Faction.OSTHEER


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (empty_item(), None),
        (player_item(5, 77, extra=b"xyz"), LoadoutItem(selection_id=5, server_id=77)),
        (cpu_item(), None),
        (custom_item(), None),
    ],
    ids=["empty", "player", "cpu", "custom"],
)
def test_item_tags_consume_their_whole_record(raw: bytes, expected: LoadoutItem | None) -> None:
    with ByteStream(raw) as stream:
        assert decode_item(stream, "item") == expected
        assert stream.remaining == 0


def test_unknown_item_tag_is_rejected() -> None:
    with ByteStream(u16(0x42) + u32(0)) as stream:
        with pytest.raises(UnexpectedValue) as excinfo:
            decode_item(stream, "player.skin")
    assert excinfo.value.field == "player.skin.tag"
    assert excinfo.value.offset == 0


def test_more_commanders_than_slots_is_rejected() -> None:
    body = modern_player_body(name="Alice", commanders=[empty_item()] * 4)
    with ByteStream(body) as stream:
        with pytest.raises(UnexpectedValue) as excinfo:
            decode_modern_player(stream)
    assert excinfo.value.field == "player.commander.count"


def test_legacy_match_data_reads_declared_player_count() -> None:
    players = [legacy_player_body(name=name, team=idx % 2) for idx, name in enumerate(["A", "B", "C", "D"])]
    with ByteStream(legacy_match_body(players, win_condition="VictoryPoint")) as stream:
        match = decode_legacy_match_data(stream, _HEADER)
        assert stream.remaining == 0
    assert [player.name for player in match.players] == ["A", "B", "C", "D"]
    assert [player.team for player in match.players] == [0, 1, 0, 1]
    assert match.win_condition == "VictoryPoint"
    assert match.opponent_type is None
    assert match.rng_seed is None


def test_modern_match_data_reads_opponent_seed_and_players() -> None:
    players = [modern_player_body(name="A"), modern_player_body(name="B", team=1, faction="soviet")]
    with ByteStream(modern_match_body(players, opponent_type=2, rng_seed=3735928559)) as stream:
        match = decode_modern_match_data(stream, _HEADER)
        assert stream.remaining == 0
    assert match.opponent_type == 2
    assert match.rng_seed == 3735928559
    assert [player.name for player in match.players] == ["A", "B"]
    assert match.win_condition == ""


def test_legacy_match_data_truncated_mid_player_fails() -> None:
    body = legacy_match_body([legacy_player_body(name="A")])[:60]
    with ByteStream(body) as stream:
        with pytest.raises(TruncatedInput):
            decode_legacy_match_data(stream, _HEADER)


@pytest.mark.parametrize("raw", [1, 2, 7, 0xFFFF_FFFF])
def test_faction_is_soviets_for_any_nonzero_value(raw: int) -> None:
    assert Faction.from_raw(raw) is Faction.SOVIETS


def test_faction_zero_is_ostheer() -> None:
    assert Faction.from_raw(0) is Faction.OSTHEER
    assert Faction.OSTHEER.label == "Ostheer"
    assert Faction.SOVIETS.label == "Soviets"


def test_decoder_tables_use_revision_specific_versions() -> None:
    legacy = decoders_for(LEGACY)
    modern = decoders_for(MODERN)
    assert set(legacy) == {(SCENARIO_TAG, 0x7DD), (MATCH_DATA_TAG, 0x4), (RESERVED_TAG, RESERVED_VERSION)}
    assert set(modern) == {
        (SCENARIO_TAG, 0x7E4),
        (MATCH_DATA_TAG, 0x1B),
        (MATCH_DATA_TAG, 0x1C),
        (RESERVED_TAG, RESERVED_VERSION),
    }
    assert legacy[(SCENARIO_TAG, 0x7DD)] is decode_legacy_scenario
    assert modern[(SCENARIO_TAG, 0x7E4)] is decode_modern_scenario
    assert modern[(MATCH_DATA_TAG, 0x1C)] is decode_modern_match_data

    with ByteStream(b"\x00" * 8) as stream:
        assert legacy[(RESERVED_TAG, RESERVED_VERSION)](stream, _HEADER) is None
        assert stream.position == 0
