import pytest
from unittest.mock import MagicMock
from core.analyzer import (
    AnalysisMode,
    AreaAnalyzer,
    BuildingAnalyzer,
    heat_assessment,
    rainwater_potential,
    solar_potential,
)
from core.geometry import GeoPoint
from core.models import (
    AirQualityResult,
    AirQualityStation,
    BoundingBox,
    Building,
    ClimateSample,
    RainwaterPotential,
)
from core.result import HardFailure, Ok, SoftFailure
from core.settings import EngineSettings

BOUNDS = BoundingBox(south=23.80, west=90.40, north=23.81, east=90.41)


def _building(i, lat=23.805, lng=90.405, area=1000.0):
    return Building(id=str(i), boundary=[], area=area, centroid=GeoPoint(lat, lng))


def _solar(irradiance=5.2, temperature=28.0):
    return ClimateSample(latitude=23.805, longitude=90.405, avg_irradiance=irradiance,
                         avg_temperature=temperature, source="NASA POWER API", is_real=True)


def _precip(annual=2000.0, is_real=True, note=None):
    return ClimateSample(latitude=23.805, longitude=90.405, annual_precipitation=annual,
                         avg_daily_precipitation=5.48, source="Open-Meteo Forecast API",
                         is_real=is_real, source_note=note)


@pytest.fixture
def gateway():
    gw = MagicMock()
    gw.fetch_climate.return_value = _solar()
    gw.fetch_precipitation.return_value = _precip()
    gw.fetch_temperature.return_value = ClimateSample(
        latitude=23.805, longitude=90.405, avg_temperature=34.0, source="NASA POWER API", is_real=True)
    return gw


@pytest.fixture
def settings():
    return EngineSettings(max_workers=2)


# --- Formulas ---

def test_solar_scenario():
    """1000 m² at 5.2 kWh/m²/day -> 1000·5.2·365·0.20·0.85 kWh/year."""
    solar = solar_potential(1000.0, _solar())
    assert solar.annual_energy_kwh == 322660
    assert solar.co2_offset_kg == 161330
    assert solar.estimated_panels == 500
    assert solar.homes_powered == 67


def test_rainwater_formula():
    water = rainwater_potential(1000.0, _precip(annual=2000.0))
    assert water.annual_water_liters == 1800000
    assert water.storage_tank_m3 == 150
    assert water.households_supported == 36
    assert water.is_real


def test_rainwater_from_fallback_is_not_real():
    water = rainwater_potential(100.0, _precip(annual=2200.0, is_real=False, note="Rate limit reached. Using regional average."))
    assert isinstance(water, RainwaterPotential)
    assert not water.is_real
    assert water.note == "Rate limit reached. Using regional average."


def test_rainwater_without_rainfall_is_soft_failure():
    sample = ClimateSample(latitude=0, longitude=0, source_note="Open-Meteo: HTTP 500")
    water = rainwater_potential(100.0, sample)
    assert isinstance(water, SoftFailure)
    assert water.reason == "Open-Meteo: HTTP 500"


@pytest.mark.parametrize("area,level,reduction", [
    (1500.0, "High", "3-5°C"),
    (1000.0, "Medium", "2-3°C"),
    (501.0, "Medium", "2-3°C"),
    (500.0, "Low", "1-2°C"),
    (20.0, "Low", "1-2°C"),
])
def test_heat_tiers(area, level, reduction):
    heat = heat_assessment(area)
    assert heat.risk_level == level
    assert heat.temperature_reduction == reduction


# --- BuildingAnalyzer ---

def test_analyze_building(gateway, settings):
    result = BuildingAnalyzer(gateway, settings).analyze_building(_building(7))
    assert isinstance(result, Ok)
    analysis = result.value
    assert analysis.solar.annual_energy_kwh == 322660
    assert analysis.water.annual_water_liters == 1800000
    assert analysis.heat.avg_temperature == 28.0
    assert analysis.data_source == "NASA POWER API & Open-Meteo Forecast API"
    gateway.fetch_climate.assert_called_once_with(23.805, 90.405)
    gateway.fetch_precipitation.assert_called_once_with(23.805, 90.405)


def test_analyze_building_without_solar_is_soft_failure(gateway, settings):
    gateway.fetch_climate.return_value = ClimateSample(
        latitude=23.805, longitude=90.405, source_note="NASA POWER API: request timed out")
    result = BuildingAnalyzer(gateway, settings).analyze_building(_building(7))
    assert isinstance(result, SoftFailure)
    assert "request timed out" in result.reason


def test_analyze_building_mixed_result(gateway, settings):
    """Real solar with failed precipitation is still an analysis."""
    gateway.fetch_precipitation.return_value = ClimateSample(
        latitude=23.805, longitude=90.405, source_note="Open-Meteo: connection failed")
    result = BuildingAnalyzer(gateway, settings).analyze_building(_building(7))
    assert result.is_ok
    assert isinstance(result.value.water, SoftFailure)
    assert result.value.solar.is_real


def test_analyze_building_rejects_bad_input(gateway, settings):
    analyzer = BuildingAnalyzer(gateway, settings)
    with pytest.raises(HardFailure):
        analyzer.analyze_building(None)
    with pytest.raises(HardFailure):
        analyzer.analyze_building(_building(1, area=0.0))
    gateway.fetch_climate.assert_not_called()


# --- AreaAnalyzer ---

def test_unknown_mode_is_hard_failure(gateway, settings):
    with pytest.raises(HardFailure):
        AreaAnalyzer(gateway, settings).analyze_area(BOUNDS, "rooftop_disco", buildings=[])


def test_green_space_filters_roof_sizes(gateway, settings):
    buildings = [_building(i, area=a) for i, a in enumerate([400.0, 600.0, 2500.0, 3500.0])]
    result = AreaAnalyzer(gateway, settings).analyze_area(BOUNDS, AnalysisMode.GREEN_SPACE, buildings)
    assert result.is_ok
    assert [p.value for p in result.value.points] == [600.0, 2500.0]
    gateway.fetch_temperature.assert_not_called()


def test_buildings_fetched_when_not_given(gateway, settings):
    gateway.fetch_buildings.return_value = Ok([_building(1, area=800.0)])
    result = AreaAnalyzer(gateway, settings).analyze_area(BOUNDS, "green_space")
    assert result.value.successful == 1
    gateway.fetch_buildings.assert_called_once_with(BOUNDS)


def test_building_fetch_failure_propagates(gateway, settings):
    gateway.fetch_buildings.return_value = SoftFailure("OpenStreetMap (Overpass): request timed out")
    result = AreaAnalyzer(gateway, settings).analyze_area(BOUNDS, "density")
    assert isinstance(result, SoftFailure)


def test_density_only_reports_dense_cells(gateway, settings):
    buildings = [_building(1, 23.801, 90.401, area=20000.0), _building(2, 23.809, 90.409, area=10.0)]
    result = AreaAnalyzer(gateway, settings).analyze_area(BOUNDS, "density", buildings, zoom=14)
    analysis = result.value
    assert analysis.requested == 4
    assert len(analysis.points) == 1
    assert analysis.points[0].value == 1.0
    gateway.fetch_temperature.assert_not_called()


def test_urban_heat_all_cells_failed(gateway, settings):
    gateway.fetch_temperature.return_value = ClimateSample(
        latitude=0, longitude=0, source_note="NASA POWER API: rate limit reached")
    result = AreaAnalyzer(gateway, settings).analyze_area(BOUNDS, "urban_heat", [], zoom=14)
    assert isinstance(result, SoftFailure)
    assert "rate limit" in result.reason


def test_urban_heat_points(gateway, settings):
    result = AreaAnalyzer(gateway, settings).analyze_area(BOUNDS, "urban_heat", [], zoom=14)
    analysis = result.value
    assert analysis.requested == 4
    assert analysis.successful == 4
    assert all(p.value == 34.0 for p in analysis.points)


def test_building_heat_uses_one_baseline(gateway, settings):
    buildings = [_building(1, area=800.0), _building(2, 23.806, 90.406, area=100.0)]
    result = AreaAnalyzer(gateway, settings).analyze_area(BOUNDS, "building_heat", buildings)
    # one point per building plus four spread points for the large one
    assert len(result.value.points) == 6
    gateway.fetch_temperature.assert_called_once()


def test_building_heat_without_baseline(gateway, settings):
    gateway.fetch_temperature.return_value = ClimateSample(latitude=0, longitude=0, source_note="down")
    result = AreaAnalyzer(gateway, settings).analyze_area(BOUNDS, "building_heat", [_building(1)])
    assert isinstance(result, SoftFailure)


def test_priority_zones(gateway, settings):
    buildings = [
        _building(i, 23.8050 + (i % 3) * 0.0002, 90.4050 + (i // 3) * 0.0002, area=800.0)
        for i in range(6)
    ]
    buildings.append(_building(99, 23.8095, 90.4095, area=800.0))
    result = AreaAnalyzer(gateway, settings).analyze_area(BOUNDS, "priority", buildings)
    analysis = result.value
    assert len(analysis.zones) == 1
    zone = analysis.zones[0]
    assert zone.cluster.size == 6
    assert zone.score > 0.4
    assert zone.level in ("High", "Critical")
    assert "Solar panel installation" in zone.recommended_actions
    assert zone.recommended_actions[-1] == "Rainwater harvesting systems"
    assert len(zone.polygon) == 4


def test_priority_small_clusters_not_zones(gateway, settings):
    buildings = [_building(i, 23.805, 90.405 + i * 0.0002, area=800.0) for i in range(4)]
    result = AreaAnalyzer(gateway, settings).analyze_area(BOUNDS, "priority", buildings)
    assert result.value.zones == []


def test_air_quality_points(gateway, settings):
    station = AirQualityStation(
        id="model_estimate", name="Model Estimate (CAMS)", latitude=23.805, longitude=90.405,
        measurements={}, aqi=160, aqi_category="Unhealthy", color="#ff0000", source_type="model")
    gateway.fetch_air_quality.return_value = AirQualityResult(
        locations=[station], count=1, source="CAMS Model (Open-Meteo)", is_real=True)
    result = AreaAnalyzer(gateway, settings).analyze_area(BOUNDS, "air_quality")
    point = result.value.points[0]
    assert point.value == 160.0
    assert point.intensity == pytest.approx(0.8)
    gateway.fetch_buildings.assert_not_called()


def test_air_quality_no_data(gateway, settings):
    gateway.fetch_air_quality.return_value = AirQualityResult(note="No air quality data available")
    result = AreaAnalyzer(gateway, settings).analyze_area(BOUNDS, "air_quality")
    assert isinstance(result, SoftFailure)
