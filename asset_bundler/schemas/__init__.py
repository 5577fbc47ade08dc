"""JSON Schemas shipped with the package, loaded once per file name."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

CONFIG_SCHEMA = "config.schema.json"
SOURCE_MAP_SCHEMA = "sourcemap.schema.json"

_SCHEMA_DIR = Path(__file__).resolve().parent

_CACHED_SCHEMAS: dict[str, dict[str, Any]] = {}


def _load_schema(name: str) -> dict[str, Any]:
    with open(_SCHEMA_DIR / name, encoding="utf-8") as f:
        return json.load(f)


def get_schema(name: str) -> dict[str, Any]:
    """Return the parsed schema ``name``, reading the file on first use."""
    if name not in _CACHED_SCHEMAS:
        _CACHED_SCHEMAS[name] = _load_schema(name)
    return _CACHED_SCHEMAS[name]
