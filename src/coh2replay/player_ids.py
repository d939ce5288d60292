from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TypeAlias

import msgspec

PlayerIdLookup: TypeAlias = Callable[[str, int], int | None]
PlayerIdTable: TypeAlias = Mapping[str, Mapping[int, int]]

# Known (map name, start position) -> player id pairs for recordings that predate profile ids.
DEFAULT_PLAYER_IDS: PlayerIdTable = {
    # 2p_kholodnaya_ferma_battlefield
    "$11045520": {33620761: 0x100, 39533638: 0x102},
}


class PlayerIdTableError(ValueError):
    pass


def lookup_from_table(table: PlayerIdTable) -> PlayerIdLookup:
    def _lookup(map_name: str, start_position: int) -> int | None:
        positions = table.get(str(map_name))
        if positions is None:
            return None
        return positions.get(int(start_position))

    return _lookup


def default_lookup() -> PlayerIdLookup:
    return lookup_from_table(DEFAULT_PLAYER_IDS)


def load_player_id_table(path: Path) -> dict[str, dict[int, int]]:
    """Load `{map_name: {start_position: player_id}}` from a JSON file."""
    try:
        return msgspec.json.decode(Path(path).read_bytes(), type=dict[str, dict[int, int]])
    except (msgspec.DecodeError, msgspec.ValidationError) as exc:
        raise PlayerIdTableError(f"invalid player id table {path}: {exc}") from exc


__all__ = [
    "DEFAULT_PLAYER_IDS",
    "PlayerIdLookup",
    "PlayerIdTable",
    "PlayerIdTableError",
    "default_lookup",
    "load_player_id_table",
    "lookup_from_table",
]
