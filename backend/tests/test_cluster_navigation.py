from __future__ import annotations

import pytest

from client.navigation import ClusterNavigator, zoom_increment
from client.strategy import ZoomThresholds
from clustering.types import ClusterCell
from geo.aoi import BBox


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def _cell(count: int, bounds: BBox | None = None) -> ClusterCell:
    b = bounds or BBox(min_lon=10.0, min_lat=20.0, max_lon=10.01, max_lat=20.01)
    return ClusterCell(center=b.center, count=count, bounds=b)


@pytest.mark.parametrize(
    "count,expected",
    [(5000, 1), (3001, 1), (3000, 2), (1001, 2), (1000, 2), (101, 2), (100, 3), (10, 3)],
)
def test_zoom_increment(count, expected):
    assert zoom_increment(count) == expected


def test_click_fits_padded_cluster_bounds():
    nav = ClusterNavigator(ZoomThresholds(17, 17), clock=FakeClock())
    cell = _cell(50)
    cmd = nav.click(cell, 12)
    assert cmd.kind == "fit_bounds"
    assert cmd.zoom == 15
    assert cmd.bounds == cell.bounds.padded(0.2)


def test_target_zoom_stays_below_full_detail():
    nav = ClusterNavigator(ZoomThresholds(17, 17), clock=FakeClock())
    assert nav.click(_cell(50), 15).zoom == 16


@pytest.mark.parametrize("current", [16.0, 16.5, 16.6, 16.99])
def test_target_zoom_never_zooms_out(current):
    nav = ClusterNavigator(ZoomThresholds(17, 17), clock=FakeClock())
    assert nav.target_zoom(_cell(50), current) == current


def test_point_like_cluster_flies_to_center():
    point = BBox(min_lon=10.0, min_lat=20.0, max_lon=10.0, max_lat=20.0)
    nav = ClusterNavigator(ZoomThresholds(17, 17), clock=FakeClock())
    cmd = nav.click(_cell(20, point), 10)
    assert cmd.kind == "fly_to"
    assert cmd.center == (10.0, 20.0)
    assert cmd.zoom == 13


def test_rapid_clicks_are_ignored():
    clock = FakeClock()
    nav = ClusterNavigator(ZoomThresholds(17, 17), clock=clock)
    assert nav.click(_cell(50), 10) is not None
    clock.now += 0.2
    assert nav.click(_cell(50), 10) is None
    clock.now += 0.4
    assert nav.click(_cell(50), 10) is not None
