"""Configuration defaults, .env loading, and config normalization.

WHY: The bundle build reads a handful of settings (public root, per-group
ordering hints, join orders, source map mode, package-manager orders,
module wiring). Callers write them as a loose JSON-style mapping; the
core wants typed, defaulted, validated values it can trust.

HOW: python-dotenv loads the .env file on import so process-level
defaults can be overridden via environment variables. normalize_config()
validates the raw mapping with jsonschema, fills defaults, and builds an
immutable BundlerConfig.

RULES:
- Raw keys follow the bundler's config file: paths, files, sourceMaps,
  conventions, packageInfo, modules
- Explicit keys in the raw mapping always win over environment defaults
- Environment values are parsed by normalize_config(), not at import;
  an unknown BUNDLER_SOURCE_MAPS raises ConfigurationError
- sourceMaps is True, False, "absoluteUrl", or "old"
- conventions.vendor strings are regular expressions; lists of patterns
  and callables are also accepted
- Validation failures raise ConfigurationError with the JSON path
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

import jsonschema
from dotenv import load_dotenv

from asset_bundler.core.definitions import DefinitionFn, resolve_definition
from asset_bundler.core.sorter import flatten, to_predicate
from asset_bundler.schemas import CONFIG_SCHEMA, get_schema

load_dotenv()

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_VENDOR_CONVENTION = re.compile(r"(^bower_components|node_modules|vendor)[\\/]")
"""Paths under these directories are treated as third-party code."""


class ConfigurationError(ValueError):
    """Raised when the raw bundler configuration is invalid."""


def _parse_source_maps(value: str) -> Union[bool, str]:
    """Parse a BUNDLER_SOURCE_MAPS value into a sourceMaps setting."""
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes", "on"):
        return True
    if lowered in ("false", "0", "no", "off", ""):
        return False
    if lowered == "absoluteurl":
        return "absoluteUrl"
    if lowered == "old":
        return "old"
    raise ConfigurationError(
        "BUNDLER_SOURCE_MAPS must be one of true, false, absoluteUrl, old; got {!r}".format(value)
    )


DEFAULT_PUBLIC_PATH = os.getenv("BUNDLER_PUBLIC_PATH", "public")
DEFAULT_SOURCE_MAPS = os.getenv("BUNDLER_SOURCE_MAPS", "true")
DEFAULT_MODULE_DEFINITION = os.getenv("BUNDLER_MODULE_DEFINITION", "commonjs")


def is_vendor_path(path: str) -> bool:
    return DEFAULT_VENDOR_CONVENTION.search(path) is not None


# ---------------------------------------------------------------------------
# Normalized configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileGroupConfig:
    """Settings for one file group (``files.javascripts`` etc.).

    Attributes:
        join_to: Join key → True/False or an explicit order list.
        before: Flattened patterns forced to the start of the bundle.
        after: Flattened patterns forced to the end of the bundle.
    """

    join_to: Mapping[str, Any] = field(default_factory=dict)
    before: tuple[Any, ...] = ()
    after: tuple[Any, ...] = ()


@dataclass(frozen=True)
class BundlerConfig:
    """Normalized, validated configuration for bundle builds."""

    public_path: str = DEFAULT_PUBLIC_PATH
    files: Mapping[str, FileGroupConfig] = field(default_factory=dict)
    source_maps: Union[bool, str] = True
    vendor: Callable[[str], bool] = field(default_factory=lambda: is_vendor_path)
    bower_order: tuple[Any, ...] = ()
    component_order: tuple[Any, ...] = ()
    component_aliases: tuple[Mapping[str, str], ...] = ()
    definition: DefinitionFn = field(
        default_factory=lambda: resolve_definition(DEFAULT_MODULE_DEFINITION)
    )
    auto_require: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    @property
    def source_maps_enabled(self) -> bool:
        return bool(self.source_maps)

    def join_to_value(self, bundle_type: str, join_key: str) -> Any:
        group = self.files.get(bundle_type + "s")
        if group is None:
            return None
        return group.join_to.get(join_key)

    def auto_require_for(self, join_key: str) -> tuple[str, ...]:
        return tuple(self.auto_require.get(join_key, ()))


def _vendor_predicate(value: Any) -> Callable[[str], bool]:
    if value is None:
        return is_vendor_path
    patterns = flatten(value) if isinstance(value, (list, tuple)) else [value]
    predicates = [
        to_predicate(re.compile(p) if isinstance(p, str) else p) for p in patterns
    ]
    return lambda path: any(predicate(path) for predicate in predicates)


def _group(raw: Mapping[str, Any]) -> FileGroupConfig:
    order = raw.get("order") or {}
    return FileGroupConfig(
        join_to=dict(raw.get("joinTo") or {}),
        before=tuple(flatten(order.get("before") or [])),
        after=tuple(flatten(order.get("after") or [])),
    )


def normalize_config(raw: Optional[Mapping[str, Any]] = None) -> BundlerConfig:
    """Validate a raw configuration mapping and build a BundlerConfig.

    Args:
        raw: Mapping using the config file's key names. None or {} yields
             the defaults.

    Returns:
        A frozen BundlerConfig.

    Raises:
        ConfigurationError: If the mapping fails schema validation, a
            vendor pattern is not a valid regex, the module definition
            is unknown, or BUNDLER_SOURCE_MAPS is set to an unknown mode.
    """
    raw = dict(raw or {})
    try:
        jsonschema.validate(instance=raw, schema=get_schema(CONFIG_SCHEMA))
    except jsonschema.ValidationError as exc:
        location = "/".join(str(part) for part in exc.absolute_path) or "<root>"
        raise ConfigurationError("Invalid config at {}: {}".format(location, exc.message)) from exc

    paths = raw.get("paths") or {}
    package_info = raw.get("packageInfo") or {}
    bower = package_info.get("bower") or {}
    component = package_info.get("component") or {}
    modules = raw.get("modules") or {}
    conventions = raw.get("conventions") or {}

    try:
        vendor = _vendor_predicate(conventions.get("vendor"))
    except (re.error, TypeError) as exc:
        raise ConfigurationError("Invalid vendor convention: {}".format(exc)) from exc

    if "sourceMaps" in raw:
        source_maps = raw["sourceMaps"]
    else:
        # BUNDLER_SOURCE_MAPS is parsed here, never at import
        source_maps = _parse_source_maps(os.getenv("BUNDLER_SOURCE_MAPS", DEFAULT_SOURCE_MAPS))

    try:
        definition = resolve_definition(modules.get("definition", DEFAULT_MODULE_DEFINITION))
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc

    return BundlerConfig(
        public_path=paths.get("public", DEFAULT_PUBLIC_PATH),
        files={name: _group(group) for name, group in (raw.get("files") or {}).items()},
        source_maps=source_maps,
        vendor=vendor,
        bower_order=tuple(flatten(bower.get("order") or [])),
        component_order=tuple(flatten(component.get("order") or [])),
        component_aliases=tuple(dict(alias) for alias in component.get("aliases") or []),
        definition=definition,
        auto_require={
            key.replace("\\", "/"): tuple(names)
            for key, names in (modules.get("autoRequire") or {}).items()
        },
    )


def load_raw_config(path: Union[str, Path]) -> dict[str, Any]:
    """Read a JSON config file without normalizing it."""
    with open(path, encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except ValueError as exc:
            raise ConfigurationError("{} is not valid JSON: {}".format(path, exc)) from exc
    if not isinstance(raw, dict):
        raise ConfigurationError("{} must contain a JSON object".format(path))
    return raw
