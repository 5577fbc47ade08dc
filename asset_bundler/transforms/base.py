"""Abstract base transform and function wrapper.

WHY: Transform stages (minifiers, header injectors, CSS rewriters) are
written independently and come in two calling conventions. A common
shape (a ``type`` to filter on and an ``optimize`` entry point) lets
the orchestrator pick the stages for a bundle without caring how each
one was written.

HOW: BaseTransform is an ABC requiring ``type`` and ``optimize()``.
FunctionTransform wraps a plain function or coroutine function so it
can be registered without writing a class.

RULES:
- ``type`` is "javascript" or "stylesheet"; only matching bundles run it
- optimize() takes either one argument (a TransformResult) or two
  (text, path); the pipeline inspects the signature once
- optimize() may be sync or async; it returns text or a StageOutput
- Failures are raised as exceptions, never returned
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional


class BaseTransform(ABC):
    """Abstract base for transform stages.

    To add a stage:
    1. Subclass BaseTransform
    2. Set ``type`` to the bundle type it applies to
    3. Implement optimize() with either calling convention
    4. Pass an instance to generate() in its ``transforms`` list
    """

    type: str = ""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def optimize(self, *args: Any) -> Any:
        """Rewrite the bundle; see the module docstring for the conventions."""


@dataclass
class FunctionTransform:
    """Register a plain function as a transform stage."""

    type: str
    optimize: Callable[..., Any]
    label: Optional[str] = None

    @property
    def name(self) -> str:
        return self.label or getattr(self.optimize, "__name__", "transform")
