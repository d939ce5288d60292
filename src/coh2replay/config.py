from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, TypeAlias

SchemaChoice: TypeAlias = Literal["auto", "legacy", "modern"]

DEFAULT_MAX_DEPTH = 32


@dataclass(frozen=True, slots=True)
class DecodeOptions:
    schema: SchemaChoice = "auto"
    extract_chat: bool = True
    # Tally per-player commands from action ticks; off skips decoding action bodies.
    extract_commands: bool = True
    max_depth: int = DEFAULT_MAX_DEPTH
    # Reject chunks whose declared end lies past the end of the file instead of relying on resync.
    strict_framing: bool = False

    def __post_init__(self) -> None:
        if self.schema not in ("auto", "legacy", "modern"):
            raise ValueError(f"unknown schema choice: {self.schema!r}")
        if int(self.max_depth) < 1:
            raise ValueError(f"max_depth must be positive: {self.max_depth!r}")


__all__ = [
    "DEFAULT_MAX_DEPTH",
    "DecodeOptions",
    "SchemaChoice",
]
