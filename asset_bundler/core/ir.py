"""Intermediate representation dataclasses for bundle builds.

WHY: Sorting, concatenation, the transform waterfall, and persistence
each look at a different slice of the same data. A small set of typed
records keeps those steps decoupled: the sorter only needs paths, the
concatenator needs text plus mapping nodes, and transform stages only
ever see a TransformResult.

HOW: Five dataclasses:
  SourceFile          — one contributing file with original and compiled text
  OrderingConstraints — the ordering hints the sorter consumes
  TransformResult     — immutable hand-off between transform stages
  StageOutput         — the structured value a transform stage may return
  Bundle              — the finished build returned by generate()

RULES:
- "template" files bundle as scripts; everything else is a stylesheet
- SourceFile.data defaults to SourceFile.source (no compile step)
- TransformResult is frozen; stages get a new one via dataclasses.replace
- A SourceFile without a compiler source map maps line-for-line onto itself
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence, Union

from asset_bundler.core.sourcemap import SourceMap, SourceNode

SCRIPT_TYPE = "javascript"
STYLE_TYPE = "stylesheet"
TEMPLATE_TYPE = "template"

SCRIPT_LIKE_TYPES = frozenset({SCRIPT_TYPE, TEMPLATE_TYPE})
"""File types that force a bundle to be built as a script bundle."""

Pattern = Any
"""An ordering pattern: exact path, glob string, compiled regex, or predicate."""

VendorPredicate = Callable[[str], bool]


@dataclass
class SourceFile:
    """One source file contributing to a bundle.

    Attributes:
        path: Project-relative path, used as the source name in mappings.
        type: "javascript", "stylesheet", or "template".
        source: Original, untransformed text.
        data: Compiled text that goes into the bundle. Defaults to source.
        source_map: Optional compiler map from ``source`` to ``data``.
    """

    path: str
    type: str
    source: str
    data: Optional[str] = None
    source_map: Union[SourceMap, dict, str, None] = None

    def __post_init__(self) -> None:
        if self.data is None:
            self.data = self.source

    @property
    def is_script(self) -> bool:
        return self.type in SCRIPT_LIKE_TYPES

    @property
    def is_identity(self) -> bool:
        return self.source_map is None

    @property
    def node(self) -> SourceNode:
        """Mapped text tree for ``data`` pointing back at the original source."""
        text = self.data if self.data is not None else self.source
        if self.is_identity:
            return SourceNode.identity(text, self.path)
        return SourceNode.from_string_with_source_map(text, self.source_map)


@dataclass
class OrderingConstraints:
    """Ordering hints for one bundle.

    Every list holds patterns (see ``Pattern``). ``join_override`` is the
    explicit per-bundle order from ``files.<type>s.joinTo``, when given
    as a list.
    """

    before: list[Pattern] = field(default_factory=list)
    after: list[Pattern] = field(default_factory=list)
    join_override: list[Pattern] = field(default_factory=list)
    bower_order: list[Pattern] = field(default_factory=list)
    component_order: list[Pattern] = field(default_factory=list)
    vendor: Optional[VendorPredicate] = None


@dataclass(frozen=True)
class TransformResult:
    """Immutable state passed between transform stages.

    Modern stages receive this object directly as their single argument;
    legacy stages receive ``text`` and ``path``.

    Attributes:
        text: Current bundle text.
        mapping: Current source map, or None when none exists yet.
        path: Target bundle path.
        source_files: Snapshot of the contributing files, used to
                      re-attach original content to stage-supplied maps.
    """

    text: str
    mapping: Optional[SourceMap]
    path: str
    source_files: tuple[SourceFile, ...] = ()


@dataclass
class StageOutput:
    """Structured value a transform stage may return instead of bare text."""

    text: str
    mapping: Union[SourceMap, dict, str, None] = None


@dataclass
class Bundle:
    """A finished bundle build.

    Attributes:
        path: Target path the bundle was written to.
        type: "javascript" or "stylesheet".
        files: Contributing files in bundle order.
        text: Final bundle text, including any sourceMappingURL comment.
        mapping: Final source map, or None.
        source_files: Contributing files as passed in, before sorting.
    """

    path: str
    type: str
    files: Sequence[SourceFile]
    text: str
    mapping: Optional[SourceMap] = None
    source_files: Sequence[SourceFile] = ()

    @property
    def map_path(self) -> str:
        return self.path + ".map"
