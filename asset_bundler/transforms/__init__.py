"""Transform stage contract and the sequential transform pipeline.

WHY: The orchestrator and callers need one import point for writing
stages (BaseTransform, FunctionTransform) and for running them
(optimize).

HOW: base.py defines the stage shapes, pipeline.py adapts and runs them.
No stages are bundled here; callers supply their own.
"""

from asset_bundler.transforms.base import BaseTransform, FunctionTransform
from asset_bundler.transforms.pipeline import (
    AdaptedStage,
    StageConfigurationError,
    adapt_stage,
    optimize,
    run_stage,
)

__all__ = [
    "AdaptedStage",
    "BaseTransform",
    "FunctionTransform",
    "StageConfigurationError",
    "adapt_stage",
    "optimize",
    "run_stage",
]
