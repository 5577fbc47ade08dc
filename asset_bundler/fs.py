"""File-system persistence and source loading.

WHY: The bundle build core never touches the disk itself. It hands
finished text to a writer collaborator, and the CLI needs to turn paths
on disk into SourceFile records. Both live here so they can be swapped
out (in-memory writers in tests, other storage backends elsewhere).

HOW: write_file() runs the blocking write in a worker thread via
asyncio.to_thread() so the event loop keeps serving other bundle builds.
load_source_file() reads UTF-8 text and classifies it by extension.

RULES:
- write_file creates missing parent directories
- All text is read and written as UTF-8
- Unknown extensions raise ValueError rather than guessing a type
- OSError from the file system propagates unchanged
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Union

from asset_bundler.core.ir import SCRIPT_TYPE, STYLE_TYPE, TEMPLATE_TYPE, SourceFile

logger = logging.getLogger(__name__)

Writer = Callable[[str, str], Awaitable[None]]
"""Persistence collaborator: ``await writer(path, text)``."""

# Longest suffixes first so "x.tmpl.js" is a template, not a script
EXTENSION_TYPES: tuple[tuple[str, str], ...] = (
    (".tmpl.js", TEMPLATE_TYPE),
    (".tpl.js", TEMPLATE_TYPE),
    (".js", SCRIPT_TYPE),
    (".mjs", SCRIPT_TYPE),
    (".cjs", SCRIPT_TYPE),
    (".css", STYLE_TYPE),
)


def _write_sync(path: Path, data: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(data, encoding="utf-8")


async def write_file(path: Union[str, Path], data: str) -> None:
    """Write ``data`` to ``path`` without blocking the event loop."""
    logger.debug("Writing %s (%d chars)", path, len(data))
    await asyncio.to_thread(_write_sync, Path(path), data)


def classify_path(path: Union[str, Path]) -> str:
    """Return the SourceFile type for a path based on its extension.

    Raises:
        ValueError: If the extension is not a known script, template,
            or stylesheet extension.
    """
    name = Path(path).name.lower()
    for suffix, file_type in EXTENSION_TYPES:
        if name.endswith(suffix):
            return file_type
    raise ValueError(
        "Unsupported source file: {} (expected one of {})".format(
            path, ", ".join(suffix for suffix, _ in EXTENSION_TYPES)
        )
    )


def load_source_file(path: Union[str, Path]) -> SourceFile:
    """Read one file from disk into a SourceFile.

    The SourceFile path uses forward slashes so mappings and ordering
    patterns look the same on every platform.
    """
    file_type = classify_path(path)
    text = Path(path).read_text(encoding="utf-8")
    return SourceFile(path=Path(path).as_posix(), type=file_type, source=text)
