from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Final

from .chunky import ChunkWalker, Container
from .commands import link_commands
from .config import DecodeOptions
from .debug_log import bind_decode_debug_context, decode_debug_log, decode_debug_scope
from .errors import MalformedChunkFraming
from .player_ids import PlayerIdLookup
from .records import decoders_for
from .schema import FIRST_CONTAINER_OFFSET, SchemaRevision, detect_revision, revision_by_name
from .stream import ByteStream, Source, describe_source
from .ticks import TickScan, scan_ticks
from .types import MatchData, Player, Replay, Scenario

GAME_TYPE_SIZE: Final[int] = 8
CONTAINER_COUNT: Final[int] = 2


class ReplayDecoder:
    """Decode one recording into a `Replay`.

    The stream is opened on construction and closed once `parse` returns or raises, so a
    decoder is single use.
    """

    def __init__(
        self,
        source: Source,
        *,
        options: DecodeOptions | None = None,
        player_ids: PlayerIdLookup | None = None,
    ) -> None:
        self.options = options if options is not None else DecodeOptions()
        self.player_ids = player_ids
        self.revision: SchemaRevision | None = None
        self.containers: tuple[Container, ...] = ()
        self.source_name = describe_source(source)
        self._stream = ByteStream(source)

    def __enter__(self) -> ReplayDecoder:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self._stream.close()

    def parse(self) -> Replay:
        if self._stream.closed:
            raise RuntimeError("ReplayDecoder.parse() can only be called once")
        try:
            with decode_debug_scope(self.source_name):
                return self._parse()
        finally:
            self._stream.close()

    def _parse(self) -> Replay:
        stream = self._stream
        revision, version = self._parse_version()
        self.revision = revision
        bind_decode_debug_context(schema=revision.name)
        game_type = stream.read_text(GAME_TYPE_SIZE, "header.game_type")
        recorded_at = self._parse_recorded_at()
        decode_debug_log("header", version=version, game_type=game_type.strip("\x00"))

        stream.seek(FIRST_CONTAINER_OFFSET)
        walker = ChunkWalker(stream, decoders_for(revision), options=self.options)
        containers: list[Container] = []
        for _ in range(CONTAINER_COUNT):
            container = walker.parse_container()
            if container is None:
                if stream.remaining > 0:
                    raise MalformedChunkFraming("expected chunky container", offset=stream.position, field="container.magic")
                break
            containers.append(container)
        self.containers = tuple(containers)

        ticks = TickScan()
        if revision.scan_ticks:
            ticks = scan_ticks(
                stream,
                extract_chat=self.options.extract_chat,
                extract_commands=self.options.extract_commands,
            )

        return self._assemble(
            revision=revision,
            version=version,
            game_type=game_type,
            recorded_at=recorded_at,
            ticks=ticks,
        )

    def _parse_version(self) -> tuple[SchemaRevision, int]:
        stream = self._stream
        if self.options.schema == "auto":
            revision = detect_revision(stream.read_u16("header.lead"))
            stream.skip(-2)
        else:
            revision = revision_by_name(self.options.schema)

        if revision.name == "modern":
            stream.skip(2)
            return revision, stream.read_u16("header.version")
        return revision, stream.read_u32("header.version")

    def _parse_recorded_at(self) -> str:
        # Null-terminated UTF-16: peek each unit so the terminator is consumed without being kept.
        stream = self._stream
        chars: list[str] = []
        while stream.read_u16("header.recorded_at") != 0:
            stream.skip(-2)
            chars.append(stream.read_unicode(1, "header.recorded_at"))
        return "".join(chars)

    def _resolve_player(self, player: Player, map_name: str) -> Player:
        if self.player_ids is None or player.start_position is None:
            return player
        return replace(player, player_id=self.player_ids(map_name, player.start_position))

    def _assemble(
        self,
        *,
        revision: SchemaRevision,
        version: int,
        game_type: str,
        recorded_at: str,
        ticks: TickScan,
    ) -> Replay:
        scenario: Scenario | None = None
        match: MatchData | None = None
        for container in self.containers:
            for fragment in container.fragments:
                if isinstance(fragment, Scenario):
                    scenario = fragment
                elif isinstance(fragment, MatchData):
                    match = fragment

        if scenario is None:
            scenario = Scenario(mod_name="", map_file="", map_name="", map_description="", map_width=0, map_height=0)
        if match is None:
            match = MatchData(players=())
        players = tuple(self._resolve_player(player, scenario.map_name) for player in match.players)
        if ticks.commands.counts or ticks.commands.commander_picks:
            players = link_commands(players, ticks.commands, ticks.duration_ticks)

        return Replay(
            version=int(version),
            game_type=game_type,
            recorded_at=recorded_at,
            schema=revision.name,
            mod_name=scenario.mod_name,
            map_file=scenario.map_file,
            map_name=scenario.map_name,
            map_description=scenario.map_description,
            map_width=scenario.map_width,
            map_height=scenario.map_height,
            season=scenario.season,
            win_condition=match.win_condition,
            players=players,
            duration_ticks=ticks.duration_ticks,
            chat=ticks.chat,
            map_description_long=scenario.map_description_long,
            map_players=scenario.map_players,
            opponent_type=match.opponent_type,
            rng_seed=match.rng_seed,
        )


def loads(
    data: bytes,
    *,
    options: DecodeOptions | None = None,
    player_ids: PlayerIdLookup | None = None,
) -> Replay:
    return ReplayDecoder(data, options=options, player_ids=player_ids).parse()


def load_replay(
    path: Path,
    *,
    options: DecodeOptions | None = None,
    player_ids: PlayerIdLookup | None = None,
) -> Replay:
    return ReplayDecoder(Path(path), options=options, player_ids=player_ids).parse()


__all__ = [
    "ReplayDecoder",
    "load_replay",
    "loads",
]
