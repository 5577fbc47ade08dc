"""Core ordering, concatenation, and source map modules.

WHY: The core package holds the two hard parts of a bundle build: the
deterministic file sort and the mapped concatenation. Both are pure
functions of their inputs and are shared by the orchestrator, the CLI,
and the tests.

HOW: ir.py defines the records, sorter.py orders files, concat.py and
definitions.py produce the bundle text, sourcemap.py carries positional
mappings through all of it.

RULES:
- No I/O in this package; persistence lives in asset_bundler.fs
- No shared mutable state between calls
"""
