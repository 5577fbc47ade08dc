"""Source map v3 generation, parsing, and mapped text trees.

WHY: Every bundle is built from many files and then rewritten by an
arbitrary chain of transform stages. Debugging only works if each span
of the generated bundle can still be traced back to the line and
column of the untransformed source it came from.

HOW: Three layers, from the wire format up:
  Base64-VLQ codec — encodes/decodes the ``mappings`` field
  SourceMap        — an in-memory v3 map: mappings, sources, names,
                     and per-source original content
  SourceNode       — a tree of text chunks annotated with original
                     positions; flattening it yields text + SourceMap

RULES:
- Generated and original lines are 1-based, columns are 0-based
- Encoded mappings are sorted by generated position; consecutive exact
  duplicates are skipped
- sourcesContent is emitted only when at least one source has content,
  aligned with ``sources`` (null for sources without content)
- Index maps (``sections``) are not supported and raise SourceMapError
- SourceMap.load() always returns a fresh copy, never the caller's object
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, Optional, Union

import jsonschema

from asset_bundler.schemas import SOURCE_MAP_SCHEMA, get_schema

_BASE64_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_BASE64_INDEX = {char: index for index, char in enumerate(_BASE64_CHARS)}

_VLQ_SHIFT = 5
_VLQ_CONTINUATION = 1 << _VLQ_SHIFT  # 32
_VLQ_MASK = _VLQ_CONTINUATION - 1  # 31

_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+")


class SourceMapError(ValueError):
    """Raised when a source map document or mapping string is malformed."""


# ---------------------------------------------------------------------------
# Base64 VLQ codec
# ---------------------------------------------------------------------------


def encode_vlq(value: int) -> str:
    """Encode one signed integer as a Base64 VLQ string.

    The sign goes into the least significant bit, then the magnitude is
    emitted five bits at a time, low bits first, with bit 6 flagging
    that more digits follow.
    """
    vlq = ((-value) << 1) | 1 if value < 0 else value << 1
    digits = []
    while True:
        digit = vlq & _VLQ_MASK
        vlq >>= _VLQ_SHIFT
        if vlq:
            digit |= _VLQ_CONTINUATION
        digits.append(_BASE64_CHARS[digit])
        if not vlq:
            return "".join(digits)


def decode_vlq(segment: str) -> list[int]:
    """Decode every Base64 VLQ value in one mappings segment.

    Raises:
        SourceMapError: On a non-Base64 character or a value whose
            continuation bit is set on the last digit.
    """
    values: list[int] = []
    value = 0
    shift = 0
    for char in segment:
        try:
            digit = _BASE64_INDEX[char]
        except KeyError:
            raise SourceMapError("Invalid base64 VLQ character: {!r}".format(char)) from None
        value += (digit & _VLQ_MASK) << shift
        if digit & _VLQ_CONTINUATION:
            shift += _VLQ_SHIFT
            continue
        negative = value & 1
        value >>= 1
        values.append(-value if negative else value)
        value = 0
        shift = 0
    if shift:
        raise SourceMapError("Truncated VLQ value in segment {!r}".format(segment))
    return values


# ---------------------------------------------------------------------------
# SourceMap
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MappingEntry:
    """One mapping from a generated position to an optional original position."""

    generated_line: int
    generated_column: int
    source: str | None = None
    original_line: int | None = None
    original_column: int | None = None
    name: str | None = None

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.generated_line, self.generated_column)


class SourceMap:
    """In-memory version 3 source map.

    WHY: Concatenation produces a map, transform stages hand back maps of
    their own, and the orchestrator serializes the final one next to the
    bundle. A single mutable builder with import/export covers all three.

    HOW: Mappings are kept as MappingEntry records in insertion order. Sources
    and names are interned into ordered lists the first time they are
    seen. Original content is kept per source path and is independent of
    whether the source appears in any mapping.

    RULES:
    - add_mapping() requires original line/column whenever source is set
    - set_source_content(source, None) removes the stored content
    - Serialization sorts mappings by generated position (stable)
    """

    def __init__(self, file: str | None = None, source_root: str | None = None) -> None:
        self.file = file
        self.source_root = source_root
        self._mappings: list[MappingEntry] = []
        self._sources: list[str] = []
        self._names: list[str] = []
        self._sources_content: dict[str, str] = {}

    # -- building ----------------------------------------------------------

    def add_mapping(
        self,
        generated_line: int,
        generated_column: int,
        source: str | None = None,
        original_line: int | None = None,
        original_column: int | None = None,
        name: str | None = None,
    ) -> None:
        if generated_line < 1 or generated_column < 0:
            raise SourceMapError(
                "Invalid generated position {}:{}".format(generated_line, generated_column)
            )
        if source is not None:
            if original_line is None or original_column is None:
                raise SourceMapError(
                    "Mapping for source {!r} needs an original line and column".format(source)
                )
            if original_line < 1 or original_column < 0:
                raise SourceMapError(
                    "Invalid original position {}:{}".format(original_line, original_column)
                )
            if source not in self._sources:
                self._sources.append(source)
        else:
            original_line = original_column = None
            name = None
        if name is not None and name not in self._names:
            self._names.append(name)
        self._mappings.append(MappingEntry(
            generated_line=generated_line,
            generated_column=generated_column,
            source=source,
            original_line=original_line,
            original_column=original_column,
            name=name,
        ))

    def set_source_content(self, source: str, content: str | None) -> None:
        if content is None:
            self._sources_content.pop(source, None)
        else:
            self._sources_content[source] = content

    # -- reading -----------------------------------------------------------

    @property
    def mappings(self) -> tuple[MappingEntry, ...]:
        return tuple(sorted(self._mappings, key=lambda m: m.sort_key))

    @property
    def sources(self) -> tuple[str, ...]:
        return tuple(self._sources)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._names)

    @property
    def sources_content(self) -> dict[str, str]:
        return dict(self._sources_content)

    def source_content_for(self, source: str) -> str | None:
        return self._sources_content.get(source)

    def original_position_for(self, line: int, column: int) -> MappingEntry | None:
        """Find the mapping covering a generated position.

        Returns the last mapping on ``line`` whose generated column is at
        or before ``column``, or None when the position is unmapped.
        """
        best: MappingEntry | None = None
        for mapping in self.mappings:
            if mapping.generated_line != line or mapping.generated_column > column:
                continue
            best = mapping
        if best is None or best.source is None:
            return None
        return best

    # -- serialization -----------------------------------------------------

    def _serialize_mappings(self) -> str:
        source_index = {source: i for i, source in enumerate(self._sources)}
        name_index = {name: i for i, name in enumerate(self._names)}

        lines: list[str] = []
        segments: list[str] = []
        current_line = 1
        prev_column = 0
        prev_source = 0
        prev_original_line = 0
        prev_original_column = 0
        prev_name = 0
        previous: MappingEntry | None = None

        for mapping in self.mappings:
            if mapping == previous:
                continue
            while current_line < mapping.generated_line:
                lines.append(",".join(segments))
                segments = []
                current_line += 1
                prev_column = 0

            segment = encode_vlq(mapping.generated_column - prev_column)
            prev_column = mapping.generated_column
            if mapping.source is not None:
                index = source_index[mapping.source]
                # original_* are guaranteed by add_mapping when source is set
                original_line = mapping.original_line - 1  # type: ignore[operator]
                original_column = mapping.original_column
                segment += encode_vlq(index - prev_source)
                segment += encode_vlq(original_line - prev_original_line)
                segment += encode_vlq(original_column - prev_original_column)  # type: ignore[operator]
                prev_source = index
                prev_original_line = original_line
                prev_original_column = original_column  # type: ignore[assignment]
                if mapping.name is not None:
                    index = name_index[mapping.name]
                    segment += encode_vlq(index - prev_name)
                    prev_name = index
            segments.append(segment)
            previous = mapping

        lines.append(",".join(segments))
        return ";".join(lines)

    def to_dict(self) -> dict[str, Any]:
        output: dict[str, Any] = {"version": 3}
        if self.file is not None:
            output["file"] = self.file
        if self.source_root is not None:
            output["sourceRoot"] = self.source_root
        output["sources"] = list(self._sources)
        output["names"] = list(self._names)
        output["mappings"] = self._serialize_mappings()
        if self._sources_content and any(s in self._sources_content for s in self._sources):
            output["sourcesContent"] = [self._sources_content.get(s) for s in self._sources]
        return output

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def __str__(self) -> str:
        return self.to_json()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SourceMap):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return "SourceMap(file={!r}, sources={!r}, mappings={})".format(
            self.file, list(self._sources), len(self._mappings)
        )

    # -- parsing -----------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SourceMap:
        """Build a SourceMap from a parsed v3 document.

        Raises:
            SourceMapError: If the document fails schema validation, is
                an index map, or has a malformed ``mappings`` string.
        """
        if "sections" in data:
            raise SourceMapError("Index source maps (sections) are not supported")
        try:
            jsonschema.validate(instance=dict(data), schema=get_schema(SOURCE_MAP_SCHEMA))
        except jsonschema.ValidationError as exc:
            raise SourceMapError("Invalid source map: {}".format(exc.message)) from exc

        smap = cls(file=data.get("file"), source_root=data.get("sourceRoot"))
        sources: list[str] = list(data["sources"])
        names: list[str] = list(data.get("names", []))
        # Keep the document's source order even for sources with no mapping
        for source in sources:
            if source not in smap._sources:
                smap._sources.append(source)
        for source, content in zip(sources, data.get("sourcesContent") or []):
            if content is not None:
                smap.set_source_content(source, content)

        source_index = 0
        original_line = 0
        original_column = 0
        name_index = 0
        for line_number, line in enumerate(data["mappings"].split(";"), start=1):
            column = 0
            for segment in line.split(","):
                if not segment:
                    continue
                fields = decode_vlq(segment)
                if len(fields) not in (1, 4, 5):
                    raise SourceMapError("Segment {!r} has {} fields".format(segment, len(fields)))
                column += fields[0]
                if len(fields) == 1:
                    smap.add_mapping(line_number, column)
                    continue
                source_index += fields[1]
                original_line += fields[2]
                original_column += fields[3]
                name = None
                if len(fields) == 5:
                    name_index += fields[4]
                    try:
                        name = names[name_index]
                    except IndexError:
                        raise SourceMapError("Name index {} out of range".format(name_index)) from None
                try:
                    source = sources[source_index]
                except IndexError:
                    raise SourceMapError("Source index {} out of range".format(source_index)) from None
                smap.add_mapping(
                    line_number, column, source, original_line + 1, original_column, name
                )
        return smap

    @classmethod
    def load(cls, value: Union[SourceMap, Mapping[str, Any], str, bytes]) -> SourceMap:
        """Import a map given as a SourceMap, a parsed dict, or JSON text.

        Always returns a new object so the caller's map is never mutated
        by later set_source_content() calls.
        """
        if isinstance(value, SourceMap):
            return cls.from_dict(value.to_dict())
        if isinstance(value, (str, bytes)):
            try:
                value = json.loads(value)
            except ValueError as exc:
                raise SourceMapError("Source map is not valid JSON: {}".format(exc)) from exc
        if not isinstance(value, Mapping):
            raise SourceMapError(
                "Unsupported source map value of type {}".format(type(value).__name__)
            )
        return cls.from_dict(value)


# ---------------------------------------------------------------------------
# SourceNode
# ---------------------------------------------------------------------------


def split_lines(text: str) -> list[str]:
    """Split text into lines that keep their trailing newline."""
    return _LINE_RE.findall(text)


Chunk = Union["SourceNode", str]
WalkFn = Callable[[str, "SourceNode"], None]


class SourceNode:
    """A tree of text chunks annotated with original source positions.

    WHY: Concatenation needs to splice many files, each carrying its own
    mapping, plus unmapped generated glue (terminators, preambles,
    aliases) into one text without recomputing offsets by hand.

    HOW: A node holds an optional original position and an ordered list
    of children, each a string or another node. String chunks inherit
    the position of the node that holds them. Flattening walks the tree
    left to right, tracking the generated line/column as it goes.

    RULES:
    - A node without source/line/column contributes unmapped text
    - Source contents set on any node are collected into the final map
    - to_string_with_source_map() emits a mapping at every mapped chunk
      start and at each new line inside a mapped chunk
    """

    def __init__(
        self,
        line: int | None = None,
        column: int | None = None,
        source: str | None = None,
        chunks: Union[Chunk, list[Chunk], None] = None,
        name: str | None = None,
    ) -> None:
        self.line = line
        self.column = column
        self.source = source
        self.name = name
        self.children: list[Chunk] = []
        self.source_contents: dict[str, str] = {}
        if chunks is not None:
            self.add(chunks)

    @property
    def is_mapped(self) -> bool:
        return self.source is not None and self.line is not None and self.column is not None

    # -- building ----------------------------------------------------------

    def add(self, chunk: Union[Chunk, list[Chunk]]) -> SourceNode:
        if isinstance(chunk, list):
            for item in chunk:
                self.add(item)
        elif isinstance(chunk, (SourceNode, str)):
            if chunk:
                self.children.append(chunk)
        else:
            raise TypeError(
                "Expected a SourceNode, str, or list of those; got {}".format(type(chunk).__name__)
            )
        return self

    def prepend(self, chunk: Union[Chunk, list[Chunk]]) -> SourceNode:
        if isinstance(chunk, list):
            for item in reversed(chunk):
                self.prepend(item)
        elif isinstance(chunk, (SourceNode, str)):
            if chunk:
                self.children.insert(0, chunk)
        else:
            raise TypeError(
                "Expected a SourceNode, str, or list of those; got {}".format(type(chunk).__name__)
            )
        return self

    def set_source_content(self, source: str, content: str) -> None:
        self.source_contents[source] = content

    def __bool__(self) -> bool:
        return True

    # -- reading -----------------------------------------------------------

    def walk(self, fn: WalkFn) -> None:
        """Call ``fn(chunk, owner)`` for every non-empty string chunk."""
        for child in self.children:
            if isinstance(child, SourceNode):
                child.walk(fn)
            elif child:
                fn(child, self)

    def walk_source_contents(self) -> Iterator[tuple[str, str]]:
        for child in self.children:
            if isinstance(child, SourceNode):
                yield from child.walk_source_contents()
        yield from self.source_contents.items()

    def to_string(self) -> str:
        parts: list[str] = []
        self.walk(lambda chunk, _owner: parts.append(chunk))
        return "".join(parts)

    def __str__(self) -> str:
        return self.to_string()

    def to_string_with_source_map(self, file: str | None = None) -> tuple[str, SourceMap]:
        smap = SourceMap(file=file)
        parts: list[str] = []
        line = 1
        column = 0
        last_owner: Optional[SourceNode] = None
        mapping_active = False

        def visit(chunk: str, owner: SourceNode) -> None:
            nonlocal line, column, last_owner, mapping_active
            parts.append(chunk)
            if owner.is_mapped:
                if last_owner is not owner or not mapping_active:
                    smap.add_mapping(line, column, owner.source, owner.line, owner.column, owner.name)
                last_owner = owner
                mapping_active = True
            elif mapping_active:
                smap.add_mapping(line, column)
                last_owner = None
                mapping_active = False

            for index, char in enumerate(chunk):
                if char != "\n":
                    column += 1
                    continue
                line += 1
                column = 0
                if index + 1 == len(chunk):
                    last_owner = None
                    mapping_active = False
                elif mapping_active:
                    smap.add_mapping(line, column, owner.source, owner.line, owner.column, owner.name)

        self.walk(visit)
        for source, content in self.walk_source_contents():
            smap.set_source_content(source, content)
        return "".join(parts), smap

    # -- constructors ------------------------------------------------------

    @classmethod
    def identity(cls, text: str, source: str) -> SourceNode:
        """Map each line of ``text`` to the same line, column 0, of ``source``."""
        root = cls()
        for number, line in enumerate(split_lines(text), start=1):
            root.add(cls(number, 0, source, line))
        return root

    @classmethod
    def from_string_with_source_map(
        cls,
        text: str,
        source_map: Union[SourceMap, Mapping[str, Any], str],
    ) -> SourceNode:
        """Rebuild a node tree for compiled ``text`` from its source map.

        Each generated line is cut at the generated columns of its
        mappings. A piece takes the original position of the mapping that
        starts it; text before the first mapping on a line is unmapped.
        """
        smap = source_map if isinstance(source_map, SourceMap) else SourceMap.load(source_map)
        by_line: dict[int, list[MappingEntry]] = {}
        for mapping in smap.mappings:
            by_line.setdefault(mapping.generated_line, []).append(mapping)

        root = cls()
        for number, line in enumerate(split_lines(text), start=1):
            column = 0
            current: MappingEntry | None = None
            for mapping in by_line.get(number, []):
                start = min(mapping.generated_column, len(line))
                root.add(cls._piece(line[column:start], current))
                column = start
                current = mapping
            root.add(cls._piece(line[column:], current))

        for source, content in smap.sources_content.items():
            root.set_source_content(source, content)
        return root

    @classmethod
    def _piece(cls, text: str, mapping: MappingEntry | None) -> Chunk:
        if not text or mapping is None or mapping.source is None:
            return text
        return cls(mapping.original_line, mapping.original_column, mapping.source, text, mapping.name)
