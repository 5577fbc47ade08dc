"""Module-loader preambles prepended to script bundles."""

from __future__ import annotations

from typing import Any, Callable, Mapping

DefinitionFn = Callable[[str, Mapping[str, str]], str]

DISABLED_DEFINITIONS = frozenset({"none", "amd"})

# Installs a minimal CommonJS registry unless one is already present.
COMMONJS_DEFINITION = """\
(function() {
  var globals = typeof global === 'undefined' ? self : global;
  if (typeof globals.require === 'function' && globals.require.register) return;

  var modules = {};
  var cache = {};
  var aliases = {};
  var has = Object.prototype.hasOwnProperty;

  var unalias = function(name) {
    return has.call(aliases, name) ? aliases[name] : name;
  };

  var expand = function(root, name) {
    var results = [];
    var parts = (/^\\.\\.?(\\/|$)/.test(name) ? [root, name].join('/') : name).split('/');
    for (var i = 0; i < parts.length; i++) {
      var part = parts[i];
      if (part === '..') {
        results.pop();
      } else if (part !== '.' && part !== '') {
        results.push(part);
      }
    }
    return results.join('/');
  };

  var dirname = function(path) {
    return path.split('/').slice(0, -1).join('/');
  };

  var localRequire = function(path) {
    return function(name) {
      return require(expand(dirname(path), name));
    };
  };

  var require = function(name) {
    var path = unalias(expand(name, '.'));
    if (has.call(cache, path)) return cache[path].exports;
    if (has.call(modules, path)) {
      var module = {id: path, exports: {}};
      cache[path] = module;
      modules[path].call(module.exports, module.exports, localRequire(path), module);
      return module.exports;
    }
    throw new Error("Cannot find module '" + name + "'");
  };

  require.alias = function(from, to) {
    aliases[to] = from;
  };

  require.register = require.define = function(path, definition) {
    modules[path] = definition;
  };

  require.list = function() {
    return Object.keys(modules);
  };

  globals.require = require;
})();
"""


def commonjs_definition(path: str, source_contents: Mapping[str, str]) -> str:
    return COMMONJS_DEFINITION


def empty_definition(path: str, source_contents: Mapping[str, str]) -> str:
    return ""


def resolve_definition(value: Any) -> DefinitionFn:
    """Map a ``modules.definition`` setting to a preamble generator.

    Accepts a callable ``(path, source_contents) -> str``, the string
    "commonjs", or a disabled value (False, None, "none", "amd").

    Raises:
        ValueError: For any other value.
    """
    if callable(value):
        return value
    if value is None or value is False:
        return empty_definition
    if isinstance(value, str):
        if value == "commonjs":
            return commonjs_definition
        if value in DISABLED_DEFINITIONS:
            return empty_definition
    raise ValueError("Unknown module definition: {!r}".format(value))
