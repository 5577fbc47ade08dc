"""Unit tests for bundle concatenation.

WHY: Concatenation is where two scripts can silently fuse into one
different statement, and where each span of the bundle gets tied to the
file it came from.

HOW: Tests cover statement terminators, line separation, script-only
preamble/alias/auto-require handling, and the merged source map.

RULES:
- Texts are compared exactly, including trailing newlines
- Source map assertions go through original_position_for()
"""

from __future__ import annotations

from asset_bundler.core.concat import concat
from asset_bundler.core.definitions import COMMONJS_DEFINITION, commonjs_definition
from asset_bundler.core.ir import SourceFile
from tests.conftest import css, js


class TestStatementTermination:
    def test_terminator_inserted_only_where_missing(self, script_files):
        text, _ = concat(script_files, "public/app.js", "javascript")
        assert text == "var a = 1;\nvar b = 2;\n"

    def test_trailing_whitespace_is_ignored(self):
        text, _ = concat([js("a.js", "var a = 1;  \n")], "out.js", "javascript")
        assert text == "var a = 1;  \n"

    def test_file_already_ending_in_newline(self):
        text, _ = concat([js("a.js", "var a = 1\n"), js("b.js", "b();")], "out.js", "javascript")
        assert text == "var a = 1\n;\nb();\n"

    def test_stylesheets_get_no_terminator(self):
        text, _ = concat([css("a.css", "a{}"), css("b.css", "b{}")], "out.css", "stylesheet")
        assert text == "a{}\nb{}\n"


class TestModuleWiring:
    def test_preamble_gets_path_and_original_contents(self, script_files):
        calls = []

        def definition(path, contents):
            calls.append((path, dict(contents)))
            return "// loader\n"

        text, smap = concat(script_files, "public/app.js", "javascript", definition)

        assert text.startswith("// loader\nvar a = 1;\n")
        assert calls == [("public/app.js", {"a.js": "var a = 1", "b.js": "var b = 2;"})]
        assert smap.original_position_for(1, 0) is None
        assert smap.original_position_for(2, 0).source == "a.js"

    def test_commonjs_preamble(self, script_files):
        text, _ = concat(script_files, "public/app.js", "javascript", commonjs_definition)
        assert text == COMMONJS_DEFINITION + "var a = 1;\nvar b = 2;\n"

    def test_aliases_then_auto_requires(self, script_files):
        text, _ = concat(
            script_files,
            "public/app.js",
            "javascript",
            aliases=[{"foo": "bar"}, {"x": "y"}],
            auto_require=["app\\init"],
        )
        assert text.endswith(
            "var b = 2;\n"
            "require.alias('foo', 'bar');\n"
            "require.alias('x', 'y');\n"
            "require('app/init');\n"
        )

    def test_stylesheets_skip_all_wiring(self):
        text, _ = concat(
            [css("a.css", "a{}")],
            "out.css",
            "stylesheet",
            definition=lambda path, contents: "PREAMBLE",
            aliases=[{"foo": "bar"}],
            auto_require=["init"],
        )
        assert text == "a{}\n"


class TestMergedSourceMap:
    def test_each_line_points_at_its_file(self):
        files = [js("a.js", "a1\na2"), js("b.js", "b1;"), js("c.js", "c1;\nc2;\n")]
        text, smap = concat(files, "out.js", "javascript")
        assert text == "a1\na2;\nb1;\nc1;\nc2;\n"

        expected = [("a.js", 1), ("a.js", 2), ("b.js", 1), ("c.js", 1), ("c.js", 2)]
        actual = []
        for line in range(1, 6):
            position = smap.original_position_for(line, 0)
            actual.append((position.source, position.original_line))
        assert actual == expected

    def test_records_original_source_content(self, script_files):
        _, smap = concat(script_files, "public/app.js", "javascript")
        assert smap.file == "public/app.js"
        assert smap.to_dict()["sourcesContent"] == ["var a = 1", "var b = 2;"]

    def test_compiled_file_maps_to_its_original(self):
        compiled = SourceFile(
            path="a.coffee",
            type="javascript",
            source="a = 1",
            data="var a;\na = 1;\n",
            source_map={
                "version": 3,
                "sources": ["a.coffee"],
                "names": [],
                "mappings": "AAAA;AAAA",
            },
        )
        text, smap = concat([compiled], "out.js", "javascript")
        assert text == "var a;\na = 1;\n"
        position = smap.original_position_for(2, 0)
        assert (position.source, position.original_line) == ("a.coffee", 1)
        assert smap.source_content_for("a.coffee") == "a = 1"


class TestSourceFile:
    def test_script_like_types(self):
        assert js("a.js", "").is_script
        assert SourceFile(path="t.tmpl.js", type="template", source="").is_script
        assert not css("a.css", "").is_script

    def test_identity_node_without_compiler_map(self):
        file = js("a.js", "x;\ny;\n")
        assert file.is_identity
        _, smap = file.node.to_string_with_source_map()
        assert [(m.generated_line, m.original_line) for m in smap.mappings] == [(1, 1), (2, 2)]

    def test_compiler_map_disables_identity(self):
        compiled = SourceFile(
            path="a.coffee",
            type="javascript",
            source="a = 1",
            data="var a;\n",
            source_map={"version": 3, "sources": ["a.coffee"], "names": [], "mappings": "AAAA"},
        )
        assert not compiled.is_identity
        assert compiled.node.to_string() == "var a;\n"
