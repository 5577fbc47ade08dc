"""Asset Bundler: deterministic ordering and mapped concatenation of web assets.

WHY: A static asset bundle has to come out byte-for-byte the same for
the same inputs, and it still has to be debuggable after minifiers and
other rewriters have had their way with it.

HOW: Four steps per bundle: sort (core.sorter), concatenate with
source maps (core.concat), run the transform waterfall
(transforms.pipeline), and persist (generate + fs).

RULES:
- sort_files and generate are independent, stateless entry points
- Transform stages are supplied by the caller; none are bundled
- Every bundle build is a pure function of its inputs until it writes
"""

from asset_bundler.core.sorter import sort_by_config, sort_files
from asset_bundler.generate import generate

__version__ = "0.1.0"

__all__ = ["generate", "sort_by_config", "sort_files", "__version__"]
