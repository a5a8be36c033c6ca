import pytest
from core.geometry import GeoPoint
from core.models import (
    BoundingBox,
    Building,
    ClimateSample,
    Cluster,
    GridCell,
    PriorityZone,
    ScoreVector,
)
from core.result import HardFailure, Ok, SoftFailure


def test_bounding_box_validation():
    """Inverted bounds are caller errors."""
    with pytest.raises(HardFailure):
        BoundingBox(south=24.0, west=90.0, north=23.0, east=91.0)
    with pytest.raises(HardFailure):
        BoundingBox(south=23.0, west=91.0, north=24.0, east=90.0)


def test_bounding_box_center_and_contains():
    box = BoundingBox(south=23.0, west=90.0, north=24.0, east=91.0)
    assert box.center == GeoPoint(23.5, 90.5)
    assert box.contains(GeoPoint(23.5, 90.5))
    assert box.contains(GeoPoint(24.0, 91.0))
    assert not box.contains(GeoPoint(25.0, 90.5))


def test_bounding_box_dict_round_trip():
    box = BoundingBox(south=23.0, west=90.0, north=24.0, east=91.0)
    assert BoundingBox.from_dict(box.to_dict()) == box


def test_building_from_ring_derives_area_and_centroid():
    ring = [GeoPoint(0.0, 0.0), GeoPoint(0.0, 0.001), GeoPoint(0.001, 0.001), GeoPoint(0.001, 0.0)]
    building = Building.from_ring(42, ring)
    assert building.id == "42"
    assert building.area > 12000
    assert building.centroid == GeoPoint(0.0005, 0.0005)
    assert building.name == "Building 42"


def test_climate_sample_defaults_not_real():
    sample = ClimateSample(latitude=1.0, longitude=2.0)
    assert sample.is_real is False
    assert sample.avg_irradiance is None
    assert sample.avg_temperature is None
    assert sample.annual_precipitation is None


def test_grid_cell_half_open_membership():
    cell = GridCell(lat=0.0, lng=0.0, size_deg=0.01)
    assert cell.contains(GeoPoint(0.0, 0.0))
    assert cell.contains(GeoPoint(0.005, 0.009))
    assert not cell.contains(GeoPoint(0.01, 0.005))
    assert not cell.contains(GeoPoint(0.005, 0.01))
    assert cell.center == GeoPoint(0.005, 0.005)


def _building(i, lat, lng, area=100.0):
    return Building(id=str(i), boundary=[], area=area, centroid=GeoPoint(lat, lng))


def test_cluster_bounding_polygon_is_padded():
    cluster = Cluster(
        buildings=[_building(1, 0.0, 0.0), _building(2, 0.001, 0.002)],
        centroid=GeoPoint(0.0005, 0.001),
        bounding_area_km2=0.0,
    )
    polygon = cluster.bounding_polygon(padding=0.0005)
    assert polygon[0] == GeoPoint(-0.0005, -0.0005)
    assert polygon[2] == GeoPoint(pytest.approx(0.0015), pytest.approx(0.0025))
    assert cluster.size == 2
    assert cluster.total_area == 200.0


def test_priority_zone_score_follows_cluster():
    cluster = Cluster(buildings=[], centroid=GeoPoint(0, 0), bounding_area_km2=0.0)
    zone = PriorityZone(cluster=cluster, level="Medium", cluster_temperature=30.0,
                        building_density_per_ha=1.0, large_roofs=0)
    assert zone.score == 0.0
    cluster.scores = ScoreVector(composite=0.62)
    assert zone.score == 0.62


def test_result_types():
    ok = Ok(5)
    failure = SoftFailure("provider down")
    assert ok.is_ok and ok.value == 5
    assert not failure.is_ok
    assert failure.to_dict() == {"error": "provider down", "is_real": False}
    assert issubclass(HardFailure, ValueError)


def test_bounding_box_clamp():
    box = BoundingBox(south=10.0, west=101.0, north=60.0, east=180.0)
    assert box.clamp(GeoPoint(12.56, 180.36)) == GeoPoint(12.56, 180.0)
    assert box.clamp(GeoPoint(61.0, 90.0)) == GeoPoint(60.0, 101.0)
    assert box.clamp(GeoPoint(30.0, 120.0)) == GeoPoint(30.0, 120.0)
