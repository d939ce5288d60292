from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("coh2replay")
except PackageNotFoundError:  # pragma: no cover
    # Allow running from source (e.g. `PYTHONPATH=src`) without installed package metadata.
    __version__ = "0.0.0+dev"

from .config import DecodeOptions
from .decoder import ReplayDecoder, load_replay, loads
from .errors import (
    MalformedChunkFraming,
    OutOfRange,
    ReplayError,
    TruncatedInput,
    UnexpectedValue,
    UnsupportedContainerVersion,
)
from .types import ChatLine, Faction, Player, Replay

__all__ = [
    "ChatLine",
    "DecodeOptions",
    "Faction",
    "MalformedChunkFraming",
    "OutOfRange",
    "Player",
    "Replay",
    "ReplayDecoder",
    "ReplayError",
    "TruncatedInput",
    "UnexpectedValue",
    "UnsupportedContainerVersion",
    "__version__",
    "load_replay",
    "loads",
]
