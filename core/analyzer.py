"""
Analyzers consumed by the rendering layer.

BuildingAnalyzer turns one footprint plus point climate data into annual
solar, rainwater and heat estimates. AreaAnalyzer runs one map layer
(urban heat, building heat, density, priority zones, air quality, green
roofs) over a viewport and returns scored points.

Both return ``Ok(...)`` or a ``SoftFailure``; malformed input raises
``HardFailure``.
"""

import math
import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import List, Optional, Sequence, Union

from core.clustering import ClusterBuilder
from core.grid import GridSampler
from core.models import (
    AreaAnalysis,
    BoundingBox,
    Building,
    BuildingAnalysis,
    ClimateSample,
    HeatAssessment,
    PriorityZone,
    RainwaterPotential,
    ScoredPoint,
    SolarPotential,
)
from core.result import HardFailure, Ok, Result, SoftFailure
from core.scoring import (
    aqi_intensity,
    building_heat_map,
    clamp,
    priority_level,
    recommended_actions,
    score_cluster,
    spread_points,
)
from core.settings import EngineSettings, get_settings
from loaders.gateway import UpstreamGateway, get_gateway

log = logging.getLogger(__name__)


class AnalysisMode(str, Enum):
    URBAN_HEAT = "urban_heat"
    BUILDING_HEAT = "building_heat"
    DENSITY = "density"
    PRIORITY = "priority"
    AIR_QUALITY = "air_quality"
    GREEN_SPACE = "green_space"


# ═══════════════════════════════════════════════════════════════════════════
# PER-BUILDING FORMULAS
# ═══════════════════════════════════════════════════════════════════════════

PANEL_EFFICIENCY = 0.20
PERFORMANCE_RATIO = 0.85
DAYS_PER_YEAR = 365
CO2_KG_PER_KWH = 0.5
KWH_PER_HOME = 4800
M2_PER_PANEL = 2

RUNOFF_COEFFICIENT = 0.9
LITERS_PER_HOUSEHOLD = 50000
MONTHS_PER_YEAR = 12
LITERS_PER_M3 = 1000

# (minimum area m², risk level, achievable cooling)
HEAT_TIERS = (
    (1000.0, "High", "3-5°C"),
    (500.0, "Medium", "2-3°C"),
    (0.0, "Low", "1-2°C"),
)


def solar_potential(area: float, climate: ClimateSample) -> SolarPotential:
    """Annual rooftop PV yield; ``climate`` must carry real irradiance."""
    annual = area * climate.avg_irradiance * DAYS_PER_YEAR * PANEL_EFFICIENCY * PERFORMANCE_RATIO
    return SolarPotential(
        annual_energy_kwh=round(annual),
        avg_irradiance=climate.avg_irradiance,
        panel_efficiency=PANEL_EFFICIENCY,
        performance_ratio=PERFORMANCE_RATIO,
        estimated_panels=math.floor(area / M2_PER_PANEL),
        homes_powered=round(annual / KWH_PER_HOME),
        co2_offset_kg=round(annual * CO2_KG_PER_KWH),
        is_real=True,
    )


def rainwater_potential(area: float, precipitation: ClimateSample) -> Union[RainwaterPotential, SoftFailure]:
    """
    Annual rooftop rainwater capture.

    A regional fallback rainfall still yields an estimate, labeled not real.
    """
    rainfall = precipitation.annual_precipitation
    if rainfall is None:
        return SoftFailure(precipitation.source_note or "Precipitation data unavailable")

    annual = area * rainfall * RUNOFF_COEFFICIENT
    return RainwaterPotential(
        annual_water_liters=round(annual),
        annual_rainfall_mm=rainfall,
        avg_daily_precipitation=precipitation.avg_daily_precipitation,
        runoff_coefficient=RUNOFF_COEFFICIENT,
        storage_tank_m3=math.ceil(annual / MONTHS_PER_YEAR / LITERS_PER_M3),
        households_supported=math.floor(annual / LITERS_PER_HOUSEHOLD),
        is_real=precipitation.is_real,
        note=precipitation.source_note,
    )


def heat_assessment(area: float, avg_temperature: Optional[float] = None) -> HeatAssessment:
    """Area-tier heat risk; independent of the area-level heat models."""
    for min_area, level, reduction in HEAT_TIERS:
        if area > min_area or min_area == 0.0:
            return HeatAssessment(
                risk_level=level,
                temperature_reduction=reduction,
                avg_temperature=avg_temperature,
            )


class BuildingAnalyzer:
    """Per-building solar, rainwater and heat estimates."""

    def __init__(self, gateway: Optional[UpstreamGateway] = None, settings: Optional[EngineSettings] = None):
        self.gateway = gateway or get_gateway()
        self.settings = settings or get_settings()

    @staticmethod
    def _validate(building: Building) -> None:
        if building is None:
            raise HardFailure("building is required")
        if building.centroid is None:
            raise HardFailure(f"Building {building.id} has no location")
        if building.area is None or building.area <= 0:
            raise HardFailure(f"Building {building.id} has no usable area")

    def analyze_building(self, building: Building) -> Result[BuildingAnalysis]:
        """
        Analyze one rooftop.

        Solar and precipitation are fetched concurrently. Without real solar
        data the whole analysis is a SoftFailure; the water section may fail
        on its own while the rest stands.
        """
        self._validate(building)
        lat, lng = building.centroid.lat, building.centroid.lng
        log.info(f"Analyzing building {building.id} ({building.area:.0f} m²) at ({lat:.4f}, {lng:.4f})")

        with ThreadPoolExecutor(max_workers=2) as executor:
            climate_future = executor.submit(self.gateway.fetch_climate, lat, lng)
            precip_future = executor.submit(self.gateway.fetch_precipitation, lat, lng)
            climate = climate_future.result()
            precipitation = precip_future.result()

        if not climate.is_real or climate.avg_irradiance is None:
            reason = climate.source_note or "NASA POWER API error"
            log.warning(f"Building {building.id}: no real solar data ({reason})")
            return SoftFailure(f"Solar data unavailable: {reason}")

        water = rainwater_potential(building.area, precipitation)
        if isinstance(water, SoftFailure):
            log.warning(f"Building {building.id}: water section unavailable ({water.reason})")

        return Ok(BuildingAnalysis(
            building_id=building.id,
            location=building.centroid,
            area=building.area,
            climate=climate,
            precipitation=precipitation,
            solar=solar_potential(building.area, climate),
            water=water,
            heat=heat_assessment(building.area, climate.avg_temperature),
            data_source=f"{climate.source} & {precipitation.source}",
        ))


# ═══════════════════════════════════════════════════════════════════════════
# AREA LAYERS
# ═══════════════════════════════════════════════════════════════════════════

DENSITY_MIN_INTENSITY = 0.05
GREEN_ROOF_MIN_M2 = 500.0
GREEN_ROOF_MAX_M2 = 3000.0


class AreaAnalyzer:
    """
    Runs one analysis layer over a viewport.

    Usage:
        analyzer = AreaAnalyzer()
        result = analyzer.analyze_area(bounds, "urban_heat", zoom=15)
        if result.is_ok:
            points = result.value.points
    """

    def __init__(
        self,
        gateway: Optional[UpstreamGateway] = None,
        settings: Optional[EngineSettings] = None,
        sampler: Optional[GridSampler] = None,
        cluster_builder: Optional[ClusterBuilder] = None,
    ):
        self.gateway = gateway or get_gateway()
        self.settings = settings or get_settings()
        self.sampler = sampler or GridSampler(self.gateway, self.settings)
        self.cluster_builder = cluster_builder or ClusterBuilder(settings=self.settings)

    def analyze_area(
        self,
        bounds: BoundingBox,
        mode: Union[AnalysisMode, str],
        buildings: Optional[Sequence[Building]] = None,
        zoom: int = 15,
    ) -> Result[AreaAnalysis]:
        """
        Args:
            bounds: Viewport bounding box
            mode: One of AnalysisMode
            buildings: Current building snapshot; fetched for the viewport
                when None and the layer needs buildings
            zoom: Map zoom level, picks the grid resolution
        """
        if bounds is None:
            raise HardFailure("bounds are required")
        try:
            mode = AnalysisMode(mode)
        except ValueError:
            raise HardFailure(f"Unknown analysis mode: {mode!r}")

        if mode is AnalysisMode.AIR_QUALITY:
            return self._air_quality(bounds)

        if buildings is None:
            fetched = self.gateway.fetch_buildings(bounds)
            if not fetched.is_ok:
                return fetched
            buildings = fetched.value

        handler = {
            AnalysisMode.URBAN_HEAT: self._urban_heat,
            AnalysisMode.BUILDING_HEAT: self._building_heat,
            AnalysisMode.DENSITY: self._density,
            AnalysisMode.PRIORITY: self._priority,
            AnalysisMode.GREEN_SPACE: self._green_space,
        }[mode]
        return handler(bounds, list(buildings), zoom)

    def _baseline(self, bounds: BoundingBox) -> ClimateSample:
        """One regional baseline temperature at the viewport center."""
        center = bounds.center
        return self.gateway.fetch_temperature(center.lat, center.lng)

    def _urban_heat(self, bounds: BoundingBox, buildings: List[Building], zoom: int) -> Result[AreaAnalysis]:
        grid = self.sampler.sample(bounds, buildings, zoom)
        if grid.requested and not grid.scored:
            return SoftFailure(f"No real temperature data for any grid cell: {'; '.join(grid.notes)}")

        points = []
        for cell in grid.scored:
            center = bounds.clamp(cell.center)
            temp = cell.climate.avg_temperature
            points.append(ScoredPoint(
                lat=center.lat,
                lng=center.lng,
                intensity=cell.scores.composite,
                value=temp,
                label=f"{temp:.1f}°C",
            ))
        return Ok(AreaAnalysis(
            mode=AnalysisMode.URBAN_HEAT.value,
            bounds=bounds,
            points=points,
            requested=grid.requested,
            successful=len(grid.scored),
            failed=grid.failed,
            source="NASA POWER API",
            note="; ".join(grid.notes) or None,
        ))

    def _building_heat(self, bounds: BoundingBox, buildings: List[Building], zoom: int) -> Result[AreaAnalysis]:
        if not buildings:
            return Ok(AreaAnalysis(mode=AnalysisMode.BUILDING_HEAT.value, bounds=bounds, note="No buildings in view"))

        baseline = self._baseline(bounds)
        if not baseline.is_real or baseline.avg_temperature is None:
            return SoftFailure(f"Baseline temperature unavailable: {baseline.source_note}")
        log.info(f"Regional baseline temperature: {baseline.avg_temperature:.1f}°C")

        points = []
        for heat in building_heat_map(buildings, baseline.avg_temperature):
            points.append(ScoredPoint(
                lat=heat.lat,
                lng=heat.lng,
                intensity=heat.intensity,
                value=heat.temperature,
                label=f"{heat.temperature:.1f}°C",
            ))
            for lat, lng, intensity in spread_points(heat):
                points.append(ScoredPoint(lat=lat, lng=lng, intensity=intensity, value=heat.temperature))

        return Ok(AreaAnalysis(
            mode=AnalysisMode.BUILDING_HEAT.value,
            bounds=bounds,
            points=points,
            requested=len(buildings),
            successful=len(buildings),
            source=f"{baseline.source} baseline + building micro-adjustment",
        ))

    def _density(self, bounds: BoundingBox, buildings: List[Building], zoom: int) -> Result[AreaAnalysis]:
        cells = self.sampler.project(bounds, buildings, zoom)
        points = []
        for cell in cells:
            if cell.building_density <= DENSITY_MIN_INTENSITY:
                continue
            center = bounds.clamp(cell.center)
            points.append(ScoredPoint(
                lat=center.lat,
                lng=center.lng,
                intensity=cell.building_density,
                value=float(len(cell.buildings)),
                label=f"{len(cell.buildings)} buildings",
            ))
        return Ok(AreaAnalysis(
            mode=AnalysisMode.DENSITY.value,
            bounds=bounds,
            points=points,
            requested=len(cells),
            successful=len(cells),
            source="OpenStreetMap",
        ))

    def _priority(self, bounds: BoundingBox, buildings: List[Building], zoom: int) -> Result[AreaAnalysis]:
        if not buildings:
            return Ok(AreaAnalysis(mode=AnalysisMode.PRIORITY.value, bounds=bounds, note="No buildings in view"))

        baseline = self._baseline(bounds)
        if not baseline.is_real or baseline.avg_temperature is None:
            return SoftFailure(f"Baseline temperature unavailable: {baseline.source_note}")

        clusters = self.cluster_builder.build(buildings)
        zones = []
        for cluster in clusters:
            scores, estimate = score_cluster(cluster, baseline.avg_temperature)
            cluster.scores = scores
            if scores.composite <= self.settings.priority_threshold:
                continue
            if cluster.size < self.settings.priority_min_buildings:
                continue
            zones.append(PriorityZone(
                cluster=cluster,
                level=priority_level(scores.composite),
                cluster_temperature=estimate.temperature,
                building_density_per_ha=estimate.density_per_ha,
                large_roofs=estimate.large_roofs,
                recommended_actions=recommended_actions(scores, estimate.large_roofs),
                polygon=cluster.bounding_polygon(),
            ))

        zones.sort(key=lambda z: z.score, reverse=True)
        zones = zones[:self.settings.priority_max_zones]
        log.info(f"Identified {len(zones)} priority zones from {len(clusters)} clusters")

        points = [
            ScoredPoint(
                lat=z.cluster.centroid.lat,
                lng=z.cluster.centroid.lng,
                intensity=z.score,
                value=z.cluster_temperature,
                label=f"{z.level} priority ({z.cluster.size} buildings)",
            )
            for z in zones
        ]
        return Ok(AreaAnalysis(
            mode=AnalysisMode.PRIORITY.value,
            bounds=bounds,
            points=points,
            zones=zones,
            requested=len(clusters),
            successful=len(zones),
            source=f"{baseline.source} baseline + OpenStreetMap clusters",
        ))

    def _air_quality(self, bounds: BoundingBox) -> Result[AreaAnalysis]:
        result = self.gateway.fetch_air_quality(bounds=bounds)
        if not result.is_real:
            return SoftFailure(result.note or "No air quality data available")

        points = [
            ScoredPoint(
                lat=station.latitude,
                lng=station.longitude,
                intensity=aqi_intensity(station.aqi),
                value=float(station.aqi),
                label=f"{station.name}: AQI {station.aqi} ({station.aqi_category})",
            )
            for station in result.locations
        ]
        return Ok(AreaAnalysis(
            mode=AnalysisMode.AIR_QUALITY.value,
            bounds=bounds,
            points=points,
            requested=result.count,
            successful=len(points),
            source=result.source,
            note=result.note,
        ))

    def _green_space(self, bounds: BoundingBox, buildings: List[Building], zoom: int) -> Result[AreaAnalysis]:
        roofs = [b for b in buildings if GREEN_ROOF_MIN_M2 <= b.area <= GREEN_ROOF_MAX_M2]
        points = [
            ScoredPoint(
                lat=b.centroid.lat,
                lng=b.centroid.lng,
                intensity=clamp(b.area / GREEN_ROOF_MAX_M2),
                value=b.area,
                label=f"Green roof opportunity ({b.area:,.0f} m²)",
            )
            for b in roofs
        ]
        return Ok(AreaAnalysis(
            mode=AnalysisMode.GREEN_SPACE.value,
            bounds=bounds,
            points=points,
            requested=len(buildings),
            successful=len(roofs),
            source="OpenStreetMap",
        ))
