"""Sequential transform waterfall with source map composition.

WHY: After concatenation, a bundle goes through a chain of independently
written stages. Some return bare text, some return a new map, and most
maps they return carry no original source content. The pipeline must
keep the bundle debuggable against the untransformed sources through
all of that.

HOW: adapt_stage() inspects each stage once and wraps it in one async
callable that takes a TransformResult. optimize() awaits those callables
one after another. run_stage() normalizes each stage's return value:
  str                 → new text, previous map passes through
  StageOutput / dict  → new text; if a map is present it is imported
                        and every contributing file's original source
                        is attached to it, otherwise the previous map
                        passes through

RULES:
- Strictly sequential: stage i+1 starts after stage i has completed
- One required positional parameter → modern call (TransformResult);
  two → legacy call (text, path); anything else is a configuration error
- Exceptions raised by a stage propagate unchanged and stop the waterfall
- A stage invoked without input raises StageConfigurationError
- The map is never dropped by a stage that returns none of its own
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional, Sequence

from asset_bundler.core.ir import SourceFile, StageOutput, TransformResult
from asset_bundler.core.sourcemap import SourceMap

logger = logging.getLogger(__name__)

MODERN_ARITY = 1
LEGACY_ARITY = 2


class StageConfigurationError(ValueError):
    """Raised when a transform stage is misconfigured or invoked without input.

    Distinct from failures raised by the stage itself, which propagate
    as their original exception type.
    """


@dataclass(frozen=True)
class AdaptedStage:
    """A transform stage resolved to one async calling convention."""

    name: str
    type: str
    modern: bool
    invoke: Callable[[TransformResult], Awaitable[Any]]


def _required_positional_count(fn: Callable[..., Any]) -> int:
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError) as exc:
        raise StageConfigurationError(
            "Cannot inspect transform signature of {!r}".format(fn)
        ) from exc
    return sum(
        1
        for param in signature.parameters.values()
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD)
        and param.default is param.empty
    )


def adapt_stage(stage: Any) -> AdaptedStage:
    """Resolve a stage's calling convention once.

    Args:
        stage: An object with ``type`` and a callable ``optimize``
               (BaseTransform, FunctionTransform), a bare callable, or
               an AdaptedStage.

    Raises:
        StageConfigurationError: If ``optimize`` is missing or its
            arity is neither one nor two required positional parameters.
    """
    if isinstance(stage, AdaptedStage):
        return stage

    fn = getattr(stage, "optimize", None)
    if not callable(fn) and callable(stage):
        fn = stage
    if not callable(fn):
        raise StageConfigurationError(
            "Transform {!r} has no callable optimize()".format(stage)
        )
    arity = _required_positional_count(fn)
    if arity not in (MODERN_ARITY, LEGACY_ARITY):
        raise StageConfigurationError(
            "Transform {} optimize() must take 1 (input) or 2 (text, path) "
            "arguments, not {}".format(_stage_name(stage), arity)
        )
    modern = arity == MODERN_ARITY

    async def invoke(params: TransformResult) -> Any:
        value = fn(params) if modern else fn(params.text, params.path)
        if inspect.isawaitable(value):
            value = await value
        return value

    return AdaptedStage(
        name=_stage_name(stage),
        type=getattr(stage, "type", ""),
        modern=modern,
        invoke=invoke,
    )


def _stage_name(stage: Any) -> str:
    name = getattr(stage, "name", None)
    if isinstance(name, str) and name:
        return name
    return getattr(stage, "__name__", type(stage).__name__)


def _normalize_output(stage: AdaptedStage, output: Any) -> tuple[str, Any]:
    if isinstance(output, str):
        return output, None
    if isinstance(output, StageOutput):
        return output.text, output.mapping
    if isinstance(output, Mapping) and isinstance(output.get("text"), str):
        return output["text"], output.get("mapping")
    raise StageConfigurationError(
        "Transform {} returned {}; expected str, StageOutput, or "
        "{{'text': ..., 'mapping': ...}}".format(stage.name, type(output).__name__)
    )


def reattach_sources(mapping: Any, source_files: Sequence[SourceFile]) -> SourceMap:
    """Import a stage-supplied map and attach the original source contents."""
    smap = SourceMap.load(mapping)
    for file in source_files:
        smap.set_source_content(file.path, file.source)
    return smap


async def run_stage(stage: AdaptedStage, params: Optional[TransformResult]) -> TransformResult:
    """Run one stage and return the next TransformResult."""
    if params is None:
        raise StageConfigurationError("Invalid transform run: {} got no input".format(stage.name))
    logger.debug("Optimizing %s @ %s", params.path, stage.name)

    output = await stage.invoke(params)
    text, mapping = _normalize_output(stage, output)
    if mapping is not None:
        new_map = reattach_sources(mapping, params.source_files)
    else:
        new_map = params.mapping
    return replace(params, text=text, mapping=new_map)


async def optimize(
    text: str,
    mapping: Optional[SourceMap],
    path: str,
    stages: Sequence[Any],
    source_files: Sequence[SourceFile],
) -> TransformResult:
    """Run ``stages`` over the bundle as a waterfall.

    Args:
        text: Concatenated bundle text.
        mapping: Map produced by concatenation, or None.
        path: Target bundle path.
        stages: Stages already filtered to the bundle's type, in order.
        source_files: Contributing files.

    Returns:
        The TransformResult produced by the last stage (or the initial
        one when there are no stages).
    """
    adapted = [adapt_stage(stage) for stage in stages]
    result = TransformResult(
        text=text,
        mapping=mapping,
        path=path,
        source_files=tuple(source_files),
    )
    for stage in adapted:
        result = await run_stage(stage, result)
    return result
