from __future__ import annotations

from pathlib import Path

import typer

from .config import DecodeOptions
from .debug_log import close_decode_debug_log, init_decode_debug_log
from .decoder import ReplayDecoder
from .errors import ReplayError
from .export import dumps_replay_json
from .player_ids import PlayerIdLookup, PlayerIdTableError, default_lookup, load_player_id_table, lookup_from_table
from .types import Player, Replay

app = typer.Typer(add_completion=False)

_SCHEMA_CHOICES = ("auto", "legacy", "modern")


@app.callback()
def cli() -> None:
    """Inspect Company of Heroes 2 recordings."""


def _options(schema: str, *, chat: bool, commands: bool, strict_framing: bool) -> DecodeOptions:
    if schema not in _SCHEMA_CHOICES:
        typer.echo(f"unknown schema {schema!r}. Available: {', '.join(_SCHEMA_CHOICES)}", err=True)
        raise typer.Exit(code=1)
    return DecodeOptions(
        schema=schema,  # type: ignore[arg-type]
        extract_chat=chat,
        extract_commands=commands,
        strict_framing=strict_framing,
    )


def _player_lookup(player_ids: Path | None) -> PlayerIdLookup:
    if player_ids is None:
        return default_lookup()
    try:
        return lookup_from_table(load_player_id_table(player_ids))
    except (OSError, PlayerIdTableError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc


def _decode(replay_file: Path, decoder: ReplayDecoder, debug_log: Path | None) -> Replay:
    if debug_log is not None:
        log_path = init_decode_debug_log(base_dir=debug_log)
        typer.echo(f"debug log: {log_path}", err=True)
    try:
        return decoder.parse()
    except ReplayError as exc:
        typer.echo(f"failed to decode {replay_file}: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    finally:
        if debug_log is not None:
            close_decode_debug_log()


def _open(replay_file: Path, options: DecodeOptions, player_ids: PlayerIdLookup | None) -> ReplayDecoder:
    if not replay_file.is_file():
        typer.echo(f"replay not found: {replay_file}", err=True)
        raise typer.Exit(code=1)
    try:
        return ReplayDecoder(replay_file, options=options, player_ids=player_ids)
    except OSError as exc:
        typer.echo(f"failed to open {replay_file}: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _format_player(idx: int, player: Player) -> list[str]:
    lines = [f"Player {idx}: {player.name}"]
    faction = player.faction.label if player.faction_name is None else f"{player.faction.label} ({player.faction_name})"
    lines.append(f"  team={player.team} faction={faction}")
    if player.profile_id is not None:
        lines.append(f"  profile_id={player.profile_id}")
    if player.start_position is not None:
        resolved = "-" if player.player_id is None else f"0x{player.player_id:x}"
        lines.append(f"  start_position={player.start_position} player_id={resolved}")
    lines.append("  commanders=" + ",".join(str(cid) for cid in player.commander_ids))
    for bulletin_id, name in player.equipped_bulletins():
        lines.append(f"  bulletin {bulletin_id}: {name}")
    for bulletin_id in player.bulletin_ids[len(player.bulletins) :]:
        lines.append(f"  bulletin {bulletin_id}")
    if player.action_id is not None:
        cpm = "-" if player.cpm is None else f"{player.cpm:.1f}"
        lines.append(f"  action_id={player.action_id} commands={player.commands} cpm={cpm}")
    return lines


def _format_replay(replay: Replay) -> list[str]:
    lines = [
        f"Version: {replay.version} ({replay.schema})",
        f"Game type: {replay.game_type}",
        f"Recorded: {replay.recorded_at}",
        f"Mod: {replay.mod_name}",
        f"Map: {replay.map_name} ({replay.map_file}) {replay.map_width}x{replay.map_height}",
        f"Description: {replay.map_description}",
        f"Season: {replay.season or '-'}",
        f"Win condition: {replay.win_condition}",
    ]
    if replay.map_players is not None:
        lines.append(f"Map slots: {replay.map_players}")
    if replay.opponent_type is not None:
        lines.append(f"Opponent type: {replay.opponent_type} rng_seed={replay.rng_seed}")
    if replay.duration_ticks:
        minutes, seconds = divmod(int(replay.duration_seconds), 60)
        lines.append(f"Duration: {replay.duration_ticks} ticks ({minutes}:{seconds:02d})")
    for idx, player in enumerate(replay.players):
        lines.extend(_format_player(idx, player))
    for line in replay.chat:
        lines.append(f"[{line.tick}] {line.name}: {line.message}")
    return lines


@app.command("info")
def cmd_info(
    replay_file: Path = typer.Argument(..., help="recording path (.rec)"),
    as_json: bool = typer.Option(False, "--json", help="print the decoded replay as JSON"),
    schema: str = typer.Option("auto", help="format revision: auto, legacy or modern"),
    player_ids: Path | None = typer.Option(
        None,
        "--player-ids",
        help="JSON table {map_name: {start_position: player_id}} (default: built-in table)",
    ),
    chat: bool = typer.Option(True, "--chat/--no-chat", help="extract chat lines from message ticks"),
    commands: bool = typer.Option(True, "--commands/--no-commands", help="count player commands from action ticks"),
    strict_framing: bool = typer.Option(False, "--strict-framing", help="fail on chunks that overrun the file"),
    debug_log: Path | None = typer.Option(None, "--debug-log", help="write a decode trace under DIR/logs/decode"),
) -> None:
    """Print match metadata and players of a recording."""
    options = _options(schema, chat=chat, commands=commands, strict_framing=strict_framing)
    decoder = _open(replay_file, options, _player_lookup(player_ids))
    replay = _decode(replay_file, decoder, debug_log)
    if as_json:
        typer.echo(dumps_replay_json(replay).decode("utf-8"))
        return
    for line in _format_replay(replay):
        typer.echo(line)


@app.command("chunks")
def cmd_chunks(
    replay_file: Path = typer.Argument(..., help="recording path (.rec)"),
    schema: str = typer.Option("auto", help="format revision: auto, legacy or modern"),
) -> None:
    """List the chunk tree of both chunky containers."""
    options = _options(schema, chat=False, commands=False, strict_framing=False)
    decoder = _open(replay_file, options, None)
    _decode(replay_file, decoder, None)
    for idx, container in enumerate(decoder.containers):
        typer.echo(f"Container {idx} @ {container.offset} (header {container.header_length} bytes)")
        for header in container.chunks:
            indent = "  " * (header.depth + 1)
            name = f" {header.name!r}" if header.name else ""
            typer.echo(f"{indent}{header.tag} v{header.version} len={header.length} @ {header.body_start}{name}")


def main(argv: list[str] | None = None) -> None:
    app(prog_name="coh2replay", args=argv)


if __name__ == "__main__":
    main()
