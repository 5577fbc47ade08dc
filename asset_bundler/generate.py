"""Bundle generation: sort, concatenate, transform, annotate, persist.

WHY: A bundle build is a fixed sequence of steps over one target path
and its contributing files. Callers (the CLI, a build tool, tests) want
a single awaitable that does all of it and only touches storage once
the whole waterfall has succeeded.

HOW: generate() picks the bundle type, filters the transform stages to
that type, derives the join key from the target path, sorts the files
with constraints taken from the config, concatenates them, runs the
transform waterfall, appends the sourceMappingURL comment when maps are
enabled, then writes the bundle and (after that succeeds) its map.

RULES:
- Any javascript or template file makes the bundle a javascript bundle
- Join key = target path relative to paths.public, with "/" separators
- The map is written to "<path>.map" only if sourceMaps is enabled and
  a map exists; it is never written if the bundle write failed
- Script bundles get "//# sourceMappingURL=...", stylesheets get
  "/*# sourceMappingURL=...*/"; "old" mode uses "@" instead of "#"
- Errors from stages and writers propagate unchanged; nothing is retried
"""

from __future__ import annotations

import logging
import posixpath
from typing import Any, Optional, Sequence

from asset_bundler.config import BundlerConfig
from asset_bundler.core.concat import concat, slashes
from asset_bundler.core.ir import SCRIPT_TYPE, STYLE_TYPE, Bundle, SourceFile
from asset_bundler.core.sorter import sort_files
from asset_bundler.fs import Writer, write_file
from asset_bundler.transforms.pipeline import adapt_stage, optimize

logger = logging.getLogger(__name__)

ABSOLUTE_URL_MODE = "absoluteUrl"
LEGACY_MODE = "old"


def bundle_type_for(files: Sequence[SourceFile]) -> str:
    """Return "javascript" if any file is script-like, else "stylesheet"."""
    if any(f.is_script for f in files):
        return SCRIPT_TYPE
    return STYLE_TYPE


def join_key_for(path: str, public_path: str) -> str:
    """Return the target path relative to the public root.

    Example:
        >>> join_key_for("public/js/app.js", "public")
        'js/app.js'
    """
    normalized = slashes(path)
    prefix = slashes(public_path).rstrip("/") + "/"
    if normalized.startswith(prefix):
        return normalized[len(prefix):]
    return normalized


def source_map_url(map_path: str, config: BundlerConfig) -> str:
    """URL written into the sourceMappingURL comment."""
    if config.source_maps == ABSOLUTE_URL_MODE:
        return slashes(map_path.replace(config.public_path, "", 1))
    return posixpath.basename(slashes(map_path))


def source_map_comment(bundle_type: str, url: str, legacy: bool = False) -> str:
    marker = "@" if legacy else "#"
    if bundle_type == SCRIPT_TYPE:
        return "\n//{} sourceMappingURL={}".format(marker, url)
    return "\n/*{} sourceMappingURL={}*/".format(marker, url)


async def generate(
    path: str,
    source_files: Sequence[SourceFile],
    config: BundlerConfig,
    transforms: Optional[Sequence[Any]] = None,
    *,
    writer: Writer = write_file,
) -> Bundle:
    """Build one bundle and persist it.

    Args:
        path: Target bundle path, usually under config.public_path.
        source_files: Files contributing to this bundle, in any order.
        config: Normalized configuration.
        transforms: Every available transform stage; only those whose
                    ``type`` matches the bundle type are run, in order.
        writer: Async ``(path, text)`` persistence collaborator.

    Returns:
        The finished Bundle, after the bundle (and map) have been written.
    """
    bundle_type = bundle_type_for(source_files)
    stages = [adapt_stage(t) for t in transforms or [] if getattr(t, "type", None) == bundle_type]

    join_key = join_key_for(path, config.public_path)
    join_override = config.join_to_value(bundle_type, join_key)
    ordered = sort_files(source_files, config, join_override)

    text, mapping = concat(
        ordered,
        path,
        bundle_type,
        config.definition,
        config.component_aliases,
        config.auto_require_for(join_key),
    )
    result = await optimize(text, mapping, path, stages, source_files)

    text = result.text
    with_maps = config.source_maps_enabled and result.mapping is not None
    map_path = path + ".map"
    if with_maps:
        url = source_map_url(map_path, config)
        text += source_map_comment(bundle_type, url, legacy=config.source_maps == LEGACY_MODE)

    await writer(path, text)
    if with_maps:
        await writer(map_path, result.mapping.to_json())  # type: ignore[union-attr]

    logger.info("Generated %s from %d files", path, len(ordered))
    return Bundle(
        path=path,
        type=bundle_type,
        files=ordered,
        text=text,
        mapping=result.mapping,
        source_files=tuple(source_files),
    )
