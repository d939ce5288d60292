"""Opt-in decode trace.

Lines are `key=value` events appended to one file per process. Events raised while a recording
is being decoded carry that decode's context (sequence number, source, schema once known), so
a trace covering a batch of recordings can be split back per recording.
"""

from __future__ import annotations

import contextlib
import contextvars
import datetime as dt
import itertools
import os
import time
from collections.abc import Iterator
from pathlib import Path
from threading import Lock

import msgspec

_TRACE_LOCK = Lock()
_TRACE_PATH: Path | None = None
_DECODE_SEQ = itertools.count(1)
_DECODE_CONTEXT: contextvars.ContextVar[dict[str, object] | None] = contextvars.ContextVar(
    "coh2replay_decode_context",
    default=None,
)


def _format_value(value: object) -> str:
    text = str(value)
    if not text or any(ch.isspace() or ch in '="' for ch in text):
        return msgspec.json.encode(text).decode("utf-8")
    return text


def _format_fields(fields: dict[str, object]) -> str:
    return " ".join(f"{key}={_format_value(fields[key])}" for key in sorted(fields))


def decode_debug_log_path() -> Path | None:
    with _TRACE_LOCK:
        return _TRACE_PATH


def init_decode_debug_log(*, base_dir: Path) -> Path:
    timestamp = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%dT%H%M%S.%fZ")
    path = base_dir / "logs" / "decode" / f"decode-pid{os.getpid()}-{timestamp}.log"
    path.parent.mkdir(parents=True, exist_ok=True)

    with _TRACE_LOCK:
        global _TRACE_PATH
        _TRACE_PATH = path

    decode_debug_log("init", pid=int(os.getpid()))
    return path


def decode_debug_log(event: str, **fields: object) -> None:
    context = _DECODE_CONTEXT.get()
    merged: dict[str, object] = dict(context) if context else {}
    merged.update(fields)

    with _TRACE_LOCK:
        if _TRACE_PATH is None:
            return
        timestamp = dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds")
        line = f"{timestamp} event={str(event).strip()}"
        if merged:
            line += f" {_format_fields(merged)}"
        with _TRACE_PATH.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")


def bind_decode_debug_context(**fields: object) -> None:
    """Add fields to every later event of the current decode; no-op outside a decode scope."""
    context = _DECODE_CONTEXT.get()
    if context is not None:
        context.update(fields)


@contextlib.contextmanager
def decode_debug_scope(source: str) -> Iterator[int]:
    """Tag events with one decode's context and bracket them with start and end events."""
    decode_id = next(_DECODE_SEQ)
    token = _DECODE_CONTEXT.set({"decode": decode_id, "source": str(source)})
    started = time.perf_counter()
    outcome = "ok"
    try:
        decode_debug_log("decode_start")
        yield decode_id
    except BaseException as exc:
        outcome = type(exc).__name__
        raise
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        decode_debug_log("decode_end", outcome=outcome, elapsed_ms=f"{elapsed_ms:.3f}")
        _DECODE_CONTEXT.reset(token)


def close_decode_debug_log() -> None:
    with _TRACE_LOCK:
        global _TRACE_PATH
        _TRACE_PATH = None


__all__ = [
    "bind_decode_debug_context",
    "close_decode_debug_log",
    "decode_debug_log",
    "decode_debug_log_path",
    "decode_debug_scope",
    "init_decode_debug_log",
]
