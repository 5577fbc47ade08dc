"""Unit tests for the grouped file sorter.

WHY: Bundle order decides program behavior (a library must load before
the code that uses it) and reproducibility (the same inputs must always
give the same bundle). A sorter that reorders ties arbitrarily or lets
a lower-priority hint win breaks both.

HOW: Tests cover:
  - Bucket precedence across every criterion
  - before/after conflicts and after overriding lower buckets
  - Sub-ordering by pattern index (exact, glob, regex, predicate)
  - flatten() of nested ordering hints
  - Config-driven constraint extraction in sort_files()
  - Determinism, bucket order, in-bucket stability, and the before/after
    contract over seeded random inputs that exercise every bucket

RULES:
- Property checks use fixed seeds so failures are reproducible
- Sorting must never drop or duplicate entries
"""

from __future__ import annotations

import random
import re

import pytest

from asset_bundler.core.ir import OrderingConstraints, SourceFile
from asset_bundler.core.sorter import (
    Bucket,
    extract_order,
    flatten,
    grouped_sort,
    sort_by_config,
    sort_files,
    to_predicate,
)
from tests.conftest import js, make_config


class TestFlatten:
    def test_flattens_nested_lists_in_order(self):
        assert flatten([1, [2, [3, (4,)]], 5]) == [1, 2, 3, 4, 5]

    def test_empty(self):
        assert flatten([]) == []
        assert flatten([[], [[]]]) == []


class TestPredicates:
    def test_exact_string(self):
        predicate = to_predicate("app/a.js")
        assert predicate("app/a.js")
        assert not predicate("app/a.jsx")

    def test_exact_string_ignores_separator_style(self):
        assert to_predicate("app/a.js")("app\\a.js")

    def test_glob(self):
        predicate = to_predicate("vendor/*.js")
        assert predicate("vendor/jquery.js")
        assert not predicate("app/main.js")

    def test_regex_searches(self):
        predicate = to_predicate(re.compile(r"\.spec\.js$"))
        assert predicate("test/a.spec.js")
        assert not predicate("test/a.js")

    def test_callable(self):
        predicate = to_predicate(lambda path: path.startswith("lib/"))
        assert predicate("lib/x.js")
        assert not predicate("app/x.js")

    def test_rejects_other_types(self):
        with pytest.raises(TypeError):
            to_predicate(42)


class TestBucketPrecedence:
    """Buckets come out as before, join, bower, component, vendor, default, after."""

    def test_docstring_example(self):
        constraints = OrderingConstraints(before=["a.js"], after=["b.js"])
        assert sort_by_config(["b.js", "c.js", "a.js"], constraints) == ["a.js", "c.js", "b.js"]

    def test_every_bucket_in_output_order(self):
        paths = [
            "z.js",
            "app.js",
            "vendor/v.js",
            "components/c.js",
            "bower_components/b.js",
            "j1.js",
            "j2.js",
            "x/before.js",
            "lib.js",
        ]
        constraints = OrderingConstraints(
            before=["x/before.js"],
            after=["z.js"],
            join_override=["j2.js", "j1.js"],
            bower_order=["bower_components/b.js"],
            component_order=["components/c.js"],
            vendor=lambda path: path.startswith("vendor/"),
        )
        assert sort_by_config(paths, constraints) == [
            "x/before.js",
            "j2.js",
            "j1.js",
            "bower_components/b.js",
            "components/c.js",
            "vendor/v.js",
            "app.js",
            "lib.js",
            "z.js",
        ]

    def test_before_wins_over_after(self):
        constraints = OrderingConstraints(before=["both.js"], after=["both.js"])
        assert sort_by_config(["x.js", "both.js"], constraints) == ["both.js", "x.js"]

    def test_after_overrides_join_override(self):
        constraints = OrderingConstraints(after=["a.js"], join_override=["a.js", "b.js"])
        assert sort_by_config(["a.js", "b.js", "c.js"], constraints) == ["b.js", "c.js", "a.js"]

    def test_after_overrides_vendor(self):
        constraints = OrderingConstraints(
            after=["vendor/late.js"],
            vendor=lambda path: path.startswith("vendor/"),
        )
        result = sort_by_config(["vendor/late.js", "app.js", "vendor/early.js"], constraints)
        assert result == ["vendor/early.js", "app.js", "vendor/late.js"]

    def test_join_override_wins_over_bower(self):
        constraints = OrderingConstraints(join_override=["b.js"], bower_order=["a.js", "b.js"])
        assert sort_by_config(["a.js", "b.js"], constraints) == ["b.js", "a.js"]

    def test_vendor_before_default(self):
        constraints = OrderingConstraints(vendor=lambda path: "vendor" in path)
        result = sort_by_config(["app.js", "vendor/a.js", "main.js", "vendor/b.js"], constraints)
        assert result == ["vendor/a.js", "vendor/b.js", "app.js", "main.js"]

    def test_no_constraints_keeps_input_order(self):
        paths = ["c.js", "a.js", "b.js"]
        result = sort_by_config(paths, None)
        assert result == paths
        assert result is not paths

    def test_bucket_values_follow_output_order(self):
        assert [b.name for b in sorted(Bucket)] == [
            "BEFORE", "JOIN_OVERRIDE", "BOWER", "COMPONENT", "VENDOR", "DEFAULT", "AFTER",
        ]


class TestSubOrder:
    """Inside list-driven buckets, order follows the first matching pattern index."""

    def test_follows_list_index_not_input_order(self):
        constraints = OrderingConstraints(before=["c.js", "a.js", "b.js"])
        assert sort_by_config(["a.js", "b.js", "c.js", "d.js"], constraints) == [
            "c.js", "a.js", "b.js", "d.js",
        ]

    def test_glob_matches_keep_input_order(self):
        constraints = OrderingConstraints(before=["lib/b.js", "lib/*.js"])
        result = sort_by_config(["lib/c.js", "lib/a.js", "lib/b.js", "app.js"], constraints)
        assert result == ["lib/b.js", "lib/c.js", "lib/a.js", "app.js"]

    def test_after_list_index(self):
        constraints = OrderingConstraints(after=["y.js", "x.js"])
        assert sort_by_config(["x.js", "y.js", "a.js"], constraints) == ["a.js", "y.js", "x.js"]

    def test_duplicates_are_kept(self):
        constraints = OrderingConstraints(after=["a.js"])
        assert sort_by_config(["a.js", "a.js", "b.js"], constraints) == ["b.js", "a.js", "a.js"]

    def test_nested_hint_lists(self):
        constraints = OrderingConstraints(before=[["b.js"], [["a.js"]]])
        assert sort_by_config(["a.js", "b.js", "c.js"], constraints) == ["b.js", "a.js", "c.js"]


class TestGroupedSortKey:
    def test_sorts_arbitrary_items_by_key(self):
        files = [js("b.js", ""), js("a.js", "")]
        result = grouped_sort(files, OrderingConstraints(before=["a.js"]), key=lambda f: f.path)
        assert [f.path for f in result] == ["a.js", "b.js"]
        assert result[0] is files[1]


class TestConfigDrivenSort:
    """sort_files() pulls constraints from the normalized config."""

    def test_uses_groups_matching_file_types(self):
        config = make_config(files={
            "javascripts": {"order": {"before": ["app/init.js"]}},
            "templates": {"order": {"after": ["app/tpl.tmpl.js"]}},
            "stylesheets": {"order": {"before": ["app/main.js"]}},
        })
        files = [
            js("app/main.js", ""),
            js("vendor/jquery.js", ""),
            SourceFile(path="app/tpl.tmpl.js", type="template", source=""),
            js("app/init.js", ""),
        ]
        result = sort_files(files, config)
        assert [f.path for f in result] == [
            "app/init.js",
            "vendor/jquery.js",
            "app/main.js",
            "app/tpl.tmpl.js",
        ]

    def test_extract_order_flattens_across_groups(self):
        config = make_config(files={
            "javascripts": {"order": {"before": ["a.js", ["b.js"]]}},
            "templates": {"order": {"before": ["t.js"], "after": ["z.js"]}},
        })
        files = [js("a.js", ""), SourceFile(path="t.js", type="template", source="")]
        constraints = extract_order(files, config)
        assert constraints.before == ["a.js", "b.js", "t.js"]
        assert constraints.after == ["z.js"]

    def test_list_join_override(self):
        config = make_config()
        files = [js("a.js", ""), js("b.js", ""), js("c.js", "")]
        result = sort_files(files, config, ["c.js", "b.js"])
        assert [f.path for f in result] == ["c.js", "b.js", "a.js"]

    def test_boolean_join_value_is_not_an_order(self):
        config = make_config()
        files = [js("b.js", ""), js("a.js", "")]
        assert [f.path for f in sort_files(files, config, True)] == ["b.js", "a.js"]

    def test_package_manager_orders(self):
        config = make_config(packageInfo={
            "bower": {"order": ["bower_components/jquery/jquery.js"]},
            "component": {"order": ["components/ui/ui.js"]},
        })
        files = [
            js("app.js", ""),
            js("components/ui/ui.js", ""),
            js("bower_components/jquery/jquery.js", ""),
        ]
        assert [f.path for f in sort_files(files, config)] == [
            "bower_components/jquery/jquery.js",
            "components/ui/ui.js",
            "app.js",
        ]


def _is_vendored(path: str) -> bool:
    return path.startswith("vendor/")


def _random_case(seed: int):
    rng = random.Random(seed)
    paths = ["f{:02d}.js".format(i) for i in range(12)]
    paths += ["vendor/v{:02d}.js".format(i) for i in range(6)]
    rng.shuffle(paths)

    def pick(limit):
        return rng.sample(paths, rng.randint(0, limit))

    return paths, OrderingConstraints(
        before=pick(4),
        after=pick(4),
        join_override=pick(4),
        bower_order=pick(3),
        component_order=pick(3),
        vendor=_is_vendored,
    )


def _expected_bucket(path: str, constraints: OrderingConstraints):
    """Bucket and in-bucket rank a path should get, by first matching criterion."""
    for bucket, patterns in (
        (Bucket.BEFORE, constraints.before),
        (Bucket.AFTER, constraints.after),
        (Bucket.JOIN_OVERRIDE, constraints.join_override),
        (Bucket.BOWER, constraints.bower_order),
        (Bucket.COMPONENT, constraints.component_order),
    ):
        if path in patterns:
            return bucket, patterns.index(path)
    if constraints.vendor(path):
        return Bucket.VENDOR, 0
    return Bucket.DEFAULT, 0


@pytest.mark.parametrize("seed", range(50))
class TestSortProperties:
    """Determinism, bucket order, stability, and the before/after contract on random inputs."""

    def test_deterministic(self, seed):
        paths, constraints = _random_case(seed)
        assert sort_by_config(paths, constraints) == sort_by_config(list(paths), constraints)

    def test_is_a_permutation(self, seed):
        paths, constraints = _random_case(seed)
        assert sorted(sort_by_config(paths, constraints)) == sorted(paths)

    def test_unconstrained_files_keep_relative_order(self, seed):
        paths, constraints = _random_case(seed)
        constrained = set(constraints.before) | set(constraints.after)
        constrained |= set(constraints.join_override)
        constrained |= set(constraints.bower_order) | set(constraints.component_order)
        constrained |= {p for p in paths if constraints.vendor(p)}
        result = sort_by_config(paths, constraints)
        assert [p for p in result if p not in constrained] == [
            p for p in paths if p not in constrained
        ]

    def test_before_and_after_contract(self, seed):
        paths, constraints = _random_case(seed)
        result = sort_by_config(paths, constraints)
        before = set(constraints.before)
        after = set(constraints.after) - before
        positions = {path: index for index, path in enumerate(result)}

        for first in before:
            for other in set(paths) - before:
                assert positions[first] < positions[other]
        for last in after:
            for other in set(paths) - after:
                assert positions[last] > positions[other]

    def test_buckets_come_out_in_output_order(self, seed):
        paths, constraints = _random_case(seed)
        result = sort_by_config(paths, constraints)
        keys = [_expected_bucket(path, constraints) for path in result]
        assert keys == sorted(keys)

    def test_ties_keep_input_order_inside_every_bucket(self, seed):
        paths, constraints = _random_case(seed)
        result = sort_by_config(paths, constraints)
        for bucket in Bucket:
            members = [p for p in paths if _expected_bucket(p, constraints)[0] == bucket]
            expected = sorted(members, key=lambda p: (_expected_bucket(p, constraints)[1], paths.index(p)))
            assert [p for p in result if p in members] == expected
