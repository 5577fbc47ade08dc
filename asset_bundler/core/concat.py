"""Concatenation of ordered source files into one mapped bundle.

WHY: Sorted files have to become one text without losing track of where
each span came from, and without two scripts' boundary statements
fusing into a different statement (``a = b`` followed by ``(c)()``).

HOW: Every file contributes its SourceNode to a root node, followed by
generated glue (statement terminator, line break). Script bundles then
get the module-loader preamble prepended and the alias/auto-require
statements appended. Flattening the root yields the text and the
merged SourceMap in one pass.

RULES:
- Script bundles: append ";" after a file whose trimmed text does not
  already end with one
- Every file's contribution ends with a newline
- Preamble, aliases, and auto-requires are script-only; stylesheets skip them
- Aliases come before auto-requires; backslashes in module names become "/"
- Each file's original source is attached as source content under its path
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence

from asset_bundler.core.definitions import DefinitionFn, empty_definition
from asset_bundler.core.ir import SCRIPT_TYPE, SourceFile
from asset_bundler.core.sourcemap import SourceMap, SourceNode

logger = logging.getLogger(__name__)

STATEMENT_TERMINATOR = ";"


def slashes(path: str) -> str:
    return path.replace("\\", "/")


def _needs_terminator(text: str) -> bool:
    return not text.strip().endswith(STATEMENT_TERMINATOR)


def concat(
    files: Sequence[SourceFile],
    path: str,
    bundle_type: str,
    definition: DefinitionFn = empty_definition,
    aliases: Optional[Sequence[Mapping[str, str]]] = None,
    auto_require: Optional[Sequence[str]] = None,
) -> tuple[str, SourceMap]:
    """Concatenate ``files`` in order into one bundle.

    Args:
        files: Contributing files, already sorted.
        path: Target bundle path (recorded as the map's ``file``).
        bundle_type: "javascript" or "stylesheet".
        definition: Preamble generator, called with the target path and
                    the collected ``{path: original source}`` contents.
        aliases: ``[{from: to}, ...]`` pairs for require.alias().
        auto_require: Module names to require() at the end of the bundle.

    Returns:
        ``(text, source_map)`` for the whole bundle.
    """
    aliases = aliases or []
    auto_require = auto_require or []
    is_script = bundle_type == SCRIPT_TYPE

    logger.debug("Concatenating [%s] => %s", ", ".join(f.path for f in files), path)

    root = SourceNode()
    for file in files:
        text = file.data if file.data is not None else file.source
        root.add(file.node)
        if is_script and _needs_terminator(text):
            root.add(STATEMENT_TERMINATOR)
            text += STATEMENT_TERMINATOR
        if not text.endswith("\n"):
            root.add("\n")
        root.set_source_content(file.path, file.source)

    if is_script:
        root.prepend(definition(path, dict(root.source_contents)))
        for alias in aliases:
            for source, target in alias.items():
                root.add("require.alias('{}', '{}');\n".format(source, target))
        for name in auto_require:
            root.add("require('{}');\n".format(slashes(name)))

    return root.to_string_with_source_map(file=path)
