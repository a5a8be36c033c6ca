import numpy as np
import pytest
from core.clustering import ClusterBuilder
from core.geometry import GeoPoint
from core.models import Building


def _building(i, lat, lng, area=100.0):
    return Building(id=str(i), boundary=[], area=area, centroid=GeoPoint(lat, lng))


@pytest.fixture
def builder():
    return ClusterBuilder(distance_deg=0.0015, min_size=3)


def test_groups_close_buildings(builder):
    buildings = [
        _building(1, 23.8100, 90.4100),
        _building(2, 23.8105, 90.4100),
        _building(3, 23.8100, 90.4108),
        _building(4, 23.9000, 90.5000),  # isolated
    ]
    clusters = builder.build(buildings)
    assert len(clusters) == 1
    assert sorted(b.id for b in clusters[0].buildings) == ["1", "2", "3"]
    assert clusters[0].centroid.lat == pytest.approx((23.81 + 23.8105 + 23.81) / 3)
    assert clusters[0].bounding_area_km2 == pytest.approx(0.0005 * 0.0008 * 111 * 111)


def test_small_groups_discarded(builder):
    buildings = [_building(1, 0.0, 0.0), _building(2, 0.0, 0.001), _building(3, 1.0, 1.0)]
    assert builder.build(buildings) == []


def test_distance_measured_from_seed(builder):
    """A chain whose links are short but whose span is long does not merge."""
    buildings = [_building(i, 0.0, i * 0.001) for i in range(5)]
    assert builder.build(buildings) == []


def test_clusters_never_below_minimum_size(builder):
    rng = np.random.default_rng(7)
    for _ in range(20):
        coords = rng.uniform(0.0, 0.01, size=(60, 2))
        buildings = [_building(i, lat, lng) for i, (lat, lng) in enumerate(coords)]
        clusters = builder.build(buildings)
        seen = set()
        for cluster in clusters:
            assert cluster.size >= 3
            ids = {b.id for b in cluster.buildings}
            assert not ids & seen
            seen |= ids


def test_empty_input(builder):
    assert builder.build([]) == []


def test_invalid_parameters():
    with pytest.raises(ValueError):
        ClusterBuilder(distance_deg=0.0, min_size=3)
    with pytest.raises(ValueError):
        ClusterBuilder(distance_deg=0.001, min_size=0)
