from __future__ import annotations

from pathlib import Path
from typing import Any

import msgspec

from .types import Faction, Replay


def replay_to_builtins(replay: Replay) -> dict[str, Any]:
    out: dict[str, Any] = msgspec.to_builtins(replay)
    out["duration_seconds"] = replay.duration_seconds
    for entry in out.get("players", []):
        entry["faction"] = Faction(int(entry["faction"])).label
    return out


def dumps_replay_json(replay: Replay, *, indent: int = 2) -> bytes:
    payload = msgspec.json.encode(replay_to_builtins(replay))
    if indent > 0:
        payload = msgspec.json.format(payload, indent=int(indent))
    return payload


def dump_replay_json(replay: Replay, path: Path, *, indent: int = 2) -> None:
    Path(path).write_bytes(dumps_replay_json(replay, indent=indent) + b"\n")


__all__ = [
    "dump_replay_json",
    "dumps_replay_json",
    "replay_to_builtins",
]
