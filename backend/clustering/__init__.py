"""
Viewport clustering: a fixed lon/lat grid whose cell size depends on zoom.

`ClusterGrid` computes cells for a bounds + zoom; `ClusterCache` memoizes it.
"""

from .cache import ClusterCache
from .grid import ClusterGrid, cell_size
from .types import ClusterCell

__all__ = [
    "ClusterCache",
    "ClusterCell",
    "ClusterGrid",
    "cell_size",
]
