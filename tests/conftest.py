from __future__ import annotations

import sys
from pathlib import Path

import pytest


def pytest_configure(config: pytest.Config) -> None:
    # Ensure the local `src/` tree wins over any other editable install that may exist
    # (e.g. a different git worktree pointing at the same project).
    tests_dir = Path(__file__).resolve().parent
    src_dir = tests_dir.parent / "src"
    for path in (src_dir, tests_dir):
        path_str = str(path)
        if path_str not in sys.path:
            sys.path.insert(0, path_str)


@pytest.fixture(autouse=True)
def _reset_decode_debug_log():
    from coh2replay.debug_log import close_decode_debug_log

    close_decode_debug_log()
    yield
    close_decode_debug_log()
