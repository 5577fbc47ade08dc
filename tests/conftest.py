"""Shared test fixtures for the asset_bundler test suite.

WHY: Most test modules need the same small set of source files, a
config with module wiring switched off, and a writer that records what
would have been persisted instead of touching the disk.

HOW: Plain helper functions build SourceFile records; RecordingWriter is
an async callable that matches the generate() writer contract; fixtures
hand out fresh instances per test.

RULES:
- Configs always set sourceMaps and modules.definition explicitly so
  BUNDLER_* environment variables cannot change test outcomes
- RecordingWriter keeps writes in call order
- Each test gets its own writer (no shared mutable state)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import pytest

from asset_bundler.config import normalize_config
from asset_bundler.core.ir import SourceFile


def js(path: str, source: str) -> SourceFile:
    return SourceFile(path=path, type="javascript", source=source)


def css(path: str, source: str) -> SourceFile:
    return SourceFile(path=path, type="stylesheet", source=source)


def make_config(**overrides: Any):
    """Normalized config with maps off and no module preamble, plus overrides."""
    raw: Dict[str, Any] = {
        "paths": {"public": "public"},
        "sourceMaps": False,
        "modules": {"definition": False},
    }
    raw.update(overrides)
    return normalize_config(raw)


class RecordingWriter:
    """Async writer that records (path, text) pairs instead of writing files."""

    def __init__(self, fail_on: Optional[str] = None, error: Optional[Exception] = None) -> None:
        self.writes: List[Tuple[str, str]] = []
        self.fail_on = fail_on
        self.error = error or OSError("disk full")

    async def __call__(self, path: str, text: str) -> None:
        if path == self.fail_on:
            raise self.error
        self.writes.append((path, text))

    @property
    def paths(self) -> List[str]:
        return [path for path, _ in self.writes]

    def text_for(self, path: str) -> str:
        for written_path, text in self.writes:
            if written_path == path:
                return text
        raise KeyError(path)


@pytest.fixture
def writer():
    """A fresh RecordingWriter."""
    return RecordingWriter()


@pytest.fixture
def script_files():
    """The two-file scenario: one file missing its terminator, one not."""
    return [js("a.js", "var a = 1"), js("b.js", "var b = 2;")]
