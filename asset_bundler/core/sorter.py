"""Deterministic multi-criteria file ordering.

WHY: Files destined for one bundle come with partial and sometimes
conflicting ordering hints: explicit before/after lists, a per-bundle
join order, package-manager install orders, and a vendor convention.
The bundle must come out in one total order that never changes between
builds, otherwise every rebuild ships a different artifact.

HOW: First-match-wins grouped sort. Every file is classified into one
bucket by testing the criteria in a fixed precedence, then ordered by
(bucket, index of the first matching pattern within that bucket's list,
original position). Because the original position is the final key,
the sort is total and stable by construction.

RULES:
- Classification precedence: before, after, join override, bower,
  component, vendor; anything else is default
- Output order: before, join override, bower, component, vendor,
  default, after
- A file in both ``before`` and ``after`` is placed with ``before``
- A file in ``after`` is placed last even if it matches a lower bucket
- Within list-driven buckets, sub-order follows the list index; within
  vendor and default buckets, input order is preserved
- Never drops or duplicates entries
"""

from __future__ import annotations

import enum
import fnmatch
import logging
import re
from typing import Any, Callable, Iterable, Optional, Sequence, TypeVar

from asset_bundler.core.ir import OrderingConstraints, Pattern, SourceFile

logger = logging.getLogger(__name__)

T = TypeVar("T")

Predicate = Callable[[str], bool]

_GLOB_CHARS = frozenset("*?[")


class Bucket(enum.IntEnum):
    """Ordering buckets, valued in output order."""

    BEFORE = 0
    JOIN_OVERRIDE = 1
    BOWER = 2
    COMPONENT = 3
    VENDOR = 4
    DEFAULT = 5
    AFTER = 6


# "after" is tested right behind "before" so it overrides every lower bucket
_CLASSIFY_ORDER = (
    Bucket.BEFORE,
    Bucket.AFTER,
    Bucket.JOIN_OVERRIDE,
    Bucket.BOWER,
    Bucket.COMPONENT,
    Bucket.VENDOR,
)


def flatten(items: Iterable[Any]) -> list[Any]:
    """Flatten arbitrarily nested lists/tuples into one flat list, in order."""
    flat: list[Any] = []
    for item in items:
        if isinstance(item, (list, tuple)):
            flat.extend(flatten(item))
        else:
            flat.append(item)
    return flat


def normalize_path(path: str) -> str:
    """Use forward slashes so patterns match the same way on every platform."""
    return path.replace("\\", "/")


def to_predicate(pattern: Pattern) -> Predicate:
    """Turn one ordering pattern into a path predicate.

    RULES:
    - Callables are used as-is
    - Compiled regular expressions match if they are found anywhere
    - Strings containing ``*``, ``?`` or ``[`` are globs (case-sensitive)
    - Any other string matches the exact path
    """
    if isinstance(pattern, re.Pattern):
        return lambda path: pattern.search(path) is not None
    if isinstance(pattern, str):
        expected = normalize_path(pattern)
        if _GLOB_CHARS.intersection(expected):
            return lambda path: fnmatch.fnmatchcase(normalize_path(path), expected)
        return lambda path: normalize_path(path) == expected
    if callable(pattern):
        return lambda path: bool(pattern(path))
    raise TypeError(
        "Ordering pattern must be a string, regex, or callable; got {}".format(
            type(pattern).__name__
        )
    )


def _compile(patterns: Optional[Sequence[Pattern]]) -> list[Predicate]:
    return [to_predicate(p) for p in flatten(patterns or [])]


def _first_match(path: str, predicates: Sequence[Predicate]) -> Optional[int]:
    for index, predicate in enumerate(predicates):
        if predicate(path):
            return index
    return None


def grouped_sort(
    items: Sequence[T],
    constraints: Optional[OrderingConstraints],
    key: Callable[[T], str] = str,
) -> list[T]:
    """Order ``items`` by the grouped first-match-wins rules.

    Args:
        items: Anything with a path; ``key`` extracts it.
        constraints: Ordering hints. None leaves the input order untouched.
        key: Maps an item to the path the patterns are tested against.

    Returns:
        A new list with the same items in bucket order.
    """
    if constraints is None:
        return list(items)

    criteria = {
        Bucket.BEFORE: _compile(constraints.before),
        Bucket.AFTER: _compile(constraints.after),
        Bucket.JOIN_OVERRIDE: _compile(constraints.join_override),
        Bucket.BOWER: _compile(constraints.bower_order),
        Bucket.COMPONENT: _compile(constraints.component_order),
        Bucket.VENDOR: [constraints.vendor] if constraints.vendor is not None else [],
    }

    def sort_key(entry: tuple[int, T]) -> tuple[int, int, int]:
        position, item = entry
        path = key(item)
        for bucket in _CLASSIFY_ORDER:
            rank = _first_match(path, criteria[bucket])
            if rank is not None:
                # vendor is a single predicate, so its rank is always 0
                return (int(bucket), rank, position)
        return (int(Bucket.DEFAULT), 0, position)

    return [item for _, item in sorted(enumerate(items), key=sort_key)]


def sort_by_config(paths: Sequence[str], constraints: Optional[OrderingConstraints]) -> list[str]:
    """Sort plain paths. See grouped_sort().

    Example:
        >>> sort_by_config(
        ...     ["b.js", "c.js", "a.js"],
        ...     OrderingConstraints(before=["a.js"], after=["b.js"]),
        ... )
        ['a.js', 'c.js', 'b.js']
    """
    return grouped_sort(paths, constraints)


def extract_order(files: Sequence[SourceFile], config: Any) -> OrderingConstraints:
    """Collect ordering constraints for ``files`` from the normalized config.

    Before/after lists are gathered from every file group whose name is
    one of the contributing files' types plus "s", in configuration
    order, then flattened into single lists.
    """
    types = {f.type + "s" for f in files}
    groups = [group for name, group in config.files.items() if name in types]
    return OrderingConstraints(
        before=flatten(group.before for group in groups),
        after=flatten(group.after for group in groups),
        bower_order=list(config.bower_order),
        component_order=list(config.component_order),
        vendor=config.vendor,
    )


def sort_files(
    files: Sequence[SourceFile],
    config: Any,
    join_override: Any = None,
) -> list[SourceFile]:
    """Sort the contributing files of one bundle.

    Args:
        files: Contributing files, in discovery order.
        config: A normalized BundlerConfig.
        join_override: The bundle's ``joinTo`` value; only used when it
                       is a list (an explicit order for this bundle).
    """
    constraints = extract_order(files, config)
    if isinstance(join_override, (list, tuple)):
        constraints.join_override = flatten(join_override)
    ordered = grouped_sort(files, constraints, key=lambda f: f.path)
    logger.debug("Sorted files: %s", ", ".join(f.path for f in ordered))
    return ordered
