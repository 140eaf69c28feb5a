from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Literal

from clustering.types import ClusterCell
from geo.aoi import BBox

from client.strategy import ZoomThresholds

CLICK_THROTTLE_S = 0.5
CLUSTER_FIT_PADDING = 0.2


def zoom_increment(count: int) -> int:
    """Bigger clusters zoom in more gently."""
    if count > 3000:
        return 1
    if count > 1000:
        return 2
    if count > 100:
        return 2
    return 3


@dataclass(frozen=True)
class NavigationCommand:
    kind: Literal["fit_bounds", "fly_to"]
    zoom: float
    bounds: BBox | None = None
    center: tuple[float, float] | None = None


class ClusterNavigator:
    """Turns cluster clicks into map moves, ignoring clicks that come too fast."""

    def __init__(
        self,
        thresholds: ZoomThresholds | None = None,
        *,
        throttle_s: float = CLICK_THROTTLE_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.thresholds = thresholds or ZoomThresholds.from_env()
        self.throttle_s = throttle_s
        self._clock = clock
        self._last_click: float | None = None

    def target_zoom(self, cell: ClusterCell, current_zoom: float) -> float:
        ceiling = self.thresholds.full_detail_zoom - 1
        # Never zoom out, even when already past the ceiling.
        return max(current_zoom, min(current_zoom + zoom_increment(cell.count), ceiling))

    def click(self, cell: ClusterCell, current_zoom: float) -> NavigationCommand | None:
        now = self._clock()
        if self._last_click is not None and now - self._last_click < self.throttle_s:
            return None
        self._last_click = now

        target = self.target_zoom(cell, current_zoom)
        b = cell.bounds
        if b is not None and b.width > 0 and b.height > 0:
            return NavigationCommand(kind="fit_bounds", zoom=target, bounds=b.padded(CLUSTER_FIT_PADDING))
        return NavigationCommand(kind="fly_to", zoom=target, center=cell.center)
