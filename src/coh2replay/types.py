from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

TICKS_PER_SECOND = 8
TICKS_PER_MINUTE = TICKS_PER_SECOND * 60

# Commander and bulletin slots per player.
COMMANDER_SLOTS = 3
BULLETIN_SLOTS = 3


class Faction(IntEnum):
    OSTHEER = 0
    SOVIETS = 1

    @classmethod
    def from_raw(cls, raw: int) -> Faction:
        # Only zero is Ostheer; every other value the game writes is Soviets.
        return cls.OSTHEER if int(raw) == 0 else cls.SOVIETS

    @classmethod
    def from_name(cls, name: str) -> Faction:
        """Map the army name of newer recordings (`german`, `soviet`, ...) onto the two factions."""
        return cls.OSTHEER if str(name).strip().lower() == "german" else cls.SOVIETS

    @property
    def label(self) -> str:
        return "Ostheer" if self is Faction.OSTHEER else "Soviets"


@dataclass(frozen=True, slots=True)
class Player:
    name: str
    team: int
    faction: Faction
    commander_ids: tuple[int, int, int]
    bulletin_ids: tuple[int, ...] = ()
    bulletins: tuple[str, ...] = ()
    profile_id: int | None = None
    start_position: int | None = None
    player_id: int | None = None
    # Army name as written by newer recordings; `faction` is derived from it.
    faction_name: str | None = None
    # Loadout selection ids of the commanders, used to tie tick commands back to this player.
    commander_selection_ids: tuple[int, ...] = ()
    action_id: int | None = None
    commands: int = 0
    cpm: float | None = None

    def equipped_bulletins(self) -> tuple[tuple[int, str], ...]:
        """Pair bulletin ids with bulletin names by slot order."""
        return tuple(zip(self.bulletin_ids, self.bulletins))


@dataclass(frozen=True, slots=True)
class ChatLine:
    tick: int
    name: str
    message: str


@dataclass(frozen=True, slots=True)
class Scenario:
    mod_name: str
    map_file: str
    map_name: str
    map_description: str
    map_width: int
    map_height: int
    season: str | None = None
    map_description_long: str = ""
    map_players: int | None = None


@dataclass(frozen=True, slots=True)
class MatchData:
    players: tuple[Player, ...]
    win_condition: str = ""
    opponent_type: int | None = None
    rng_seed: int | None = None


@dataclass(frozen=True, slots=True)
class Replay:
    version: int
    game_type: str
    recorded_at: str
    schema: str
    mod_name: str = ""
    map_file: str = ""
    map_name: str = ""
    map_description: str = ""
    map_width: int = 0
    map_height: int = 0
    season: str | None = None
    win_condition: str = ""
    players: tuple[Player, ...] = ()
    duration_ticks: int = 0
    chat: tuple[ChatLine, ...] = ()
    map_description_long: str = ""
    map_players: int | None = None
    opponent_type: int | None = None
    rng_seed: int | None = None

    @property
    def duration_seconds(self) -> float:
        return float(self.duration_ticks) / float(TICKS_PER_SECOND)

    def player(self, name: str) -> Player | None:
        for player in self.players:
            if player.name == name:
                return player
        return None


__all__ = [
    "BULLETIN_SLOTS",
    "COMMANDER_SLOTS",
    "TICKS_PER_MINUTE",
    "TICKS_PER_SECOND",
    "ChatLine",
    "Faction",
    "MatchData",
    "Player",
    "Replay",
    "Scenario",
]
