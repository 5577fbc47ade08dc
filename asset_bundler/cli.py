"""Command-line interface for building a single bundle.

WHY: Users need a way to build one bundle from files on disk without
writing Python: point it at an output path and the source files, and
optionally a JSON config with ordering hints and source map settings.

HOW: Uses argparse for the target path, source paths, config file, and
overrides for the public root and source map mode. Loads and classifies
the sources, then runs generate() via asyncio.run(). Status messages go
to stderr.

RULES:
- Positional: output path, then one or more source files
- --config is a JSON file in the bundler config format (optional)
- --public / --source-maps override the corresponding config keys
- No transform stages are run from the CLI
- Errors print "Error: ..." to stderr and exit with status 1
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, List, Optional

from asset_bundler.config import load_raw_config, normalize_config
from asset_bundler.core.ir import Bundle
from asset_bundler.fs import load_source_file
from asset_bundler.generate import generate

_SOURCE_MAP_CHOICES = {
    "true": True,
    "false": False,
    "absoluteUrl": "absoluteUrl",
    "old": "old",
}


def _status(msg: str) -> None:
    """Print a status message to stderr, flushed."""
    print(msg, file=sys.stderr, flush=True)


def build_raw_config(args: argparse.Namespace) -> dict[str, Any]:
    """Merge the config file with command-line overrides."""
    raw = load_raw_config(args.config) if args.config else {}
    if args.public is not None:
        raw.setdefault("paths", {})["public"] = args.public
    if args.source_maps is not None:
        raw["sourceMaps"] = _SOURCE_MAP_CHOICES[args.source_maps]
    return raw


async def _run(args: argparse.Namespace) -> Bundle:
    config = normalize_config(build_raw_config(args))
    files = [load_source_file(p) for p in args.sources]
    bundle = await generate(args.output, files, config)
    _status("Wrote {}".format(bundle.path))
    if config.source_maps_enabled and bundle.mapping is not None:
        _status("Wrote {}".format(bundle.map_path))
    return bundle


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="asset_bundler",
        description="Concatenate script or stylesheet sources into one ordered, "
                    "source-mapped bundle.",
    )
    parser.add_argument("output", help="Path of the bundle to write.")
    parser.add_argument("sources", nargs="+", help="Source files to include in the bundle.")
    parser.add_argument(
        "--config",
        default=None,
        help="JSON config file (paths, files, sourceMaps, conventions, packageInfo, modules).",
    )
    parser.add_argument(
        "--public",
        default=None,
        help="Public root directory used for join keys and absolute map URLs.",
    )
    parser.add_argument(
        "--source-maps",
        choices=sorted(_SOURCE_MAP_CHOICES),
        default=None,
        help="Source map mode (default: from config, else BUNDLER_SOURCE_MAPS).",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every build step.",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m asset_bundler`` and the console script."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    try:
        asyncio.run(_run(args))
    except (ValueError, OSError) as e:
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
