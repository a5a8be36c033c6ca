"""
Core data models for the RoofHarvest engine.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Union

from core.geometry import GeoPoint, polygon_area, centroid
from core.result import HardFailure, SoftFailure


@dataclass(frozen=True)
class BoundingBox:
    """
    Geographic bounding box of a map viewport.

    All coordinates are in decimal degrees (WGS84).
    """
    south: float
    west: float
    north: float
    east: float

    def __post_init__(self):
        if self.south > self.north or self.west > self.east:
            raise HardFailure(
                f"Invalid bounds: south={self.south} north={self.north} "
                f"west={self.west} east={self.east}"
            )

    @property
    def center(self) -> GeoPoint:
        return GeoPoint((self.south + self.north) / 2, (self.west + self.east) / 2)

    def contains(self, point: GeoPoint) -> bool:
        return (self.south <= point.lat <= self.north and
                self.west <= point.lng <= self.east)

    def clamp(self, point: GeoPoint) -> GeoPoint:
        """Nearest point inside the box."""
        return GeoPoint(
            min(max(point.lat, self.south), self.north),
            min(max(point.lng, self.west), self.east),
        )

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "BoundingBox":
        return cls(
            south=float(data["south"]),
            west=float(data["west"]),
            north=float(data["north"]),
            east=float(data["east"]),
        )


@dataclass
class Building:
    """
    A building footprint from one viewport snapshot.

    Area (m²) and centroid are derived once from the boundary ring.
    """
    id: str
    boundary: List[GeoPoint]
    area: float
    centroid: GeoPoint
    name: str = ""

    @classmethod
    def from_ring(cls, building_id, ring: List[GeoPoint]) -> "Building":
        return cls(
            id=str(building_id),
            boundary=list(ring),
            area=polygon_area(ring),
            centroid=centroid(ring),
            name=f"Building {building_id}",
        )


@dataclass
class ClimateSample:
    """
    Canonical point-climate result of the upstream gateway.

    When ``is_real`` is False the measured fields are None and
    ``source_note`` says why; a regional fallback may still fill
    ``annual_precipitation``, in which case ``is_real`` stays False.
    """
    latitude: float
    longitude: float
    avg_irradiance: Optional[float] = None       # kWh/m²/day
    avg_temperature: Optional[float] = None      # °C
    annual_precipitation: Optional[float] = None  # mm/year
    avg_daily_precipitation: Optional[float] = None  # mm/day
    data_points: int = 0
    source: str = ""
    is_real: bool = False
    source_note: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class Measurement:
    """A single pollutant reading at a station."""
    value: float
    unit: str = "µg/m³"
    last_updated: Optional[str] = None


@dataclass
class AirQualityStation:
    """A ground station (or model estimate) with at least a PM2.5 reading."""
    id: str
    name: str
    latitude: float
    longitude: float
    measurements: Dict[str, Measurement]
    aqi: int
    aqi_category: str
    color: str
    source_type: str  # "station" or "model"

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class AirQualityResult:
    """Air quality for an area; ``locations`` is empty when not real."""
    locations: List[AirQualityStation] = field(default_factory=list)
    count: int = 0  # qualifying stations before the display cap
    source: str = "None"
    is_real: bool = False
    note: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class HourlyRainfall:
    time: str
    precipitation: float
    probability: Optional[float] = None


@dataclass
class RainfallForecast:
    """Short-range rainfall forecast; only hours with rain are kept."""
    latitude: float
    longitude: float
    hourly: List[HourlyRainfall] = field(default_factory=list)
    daily_totals: Dict[str, float] = field(default_factory=dict)
    total_precipitation: float = 0.0
    source: str = ""
    is_real: bool = False
    note: Optional[str] = None


@dataclass
class ScoreVector:
    """Normalized [0,1] sub-scores plus one composite index."""
    heat: float = 0.0
    density: float = 0.0
    green_deficit: float = 0.0
    rooftop_potential: float = 0.0
    composite: float = 0.0


@dataclass
class GridCell:
    """
    One lat/lng cell of an analysis pass.

    (lat, lng) is the south-west corner; membership is half-open on both axes.
    """
    lat: float
    lng: float
    size_deg: float
    buildings: List[Building] = field(default_factory=list)
    building_density: float = 0.0
    climate: Optional[ClimateSample] = None
    scores: Optional[ScoreVector] = None

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(self.lat + self.size_deg / 2, self.lng + self.size_deg / 2)

    def contains(self, point: GeoPoint) -> bool:
        return (self.lat <= point.lat < self.lat + self.size_deg and
                self.lng <= point.lng < self.lng + self.size_deg)


@dataclass
class Cluster:
    """A spatial concentration of at least the minimum number of buildings."""
    buildings: List[Building]
    centroid: GeoPoint
    bounding_area_km2: float
    scores: Optional[ScoreVector] = None

    @property
    def size(self) -> int:
        return len(self.buildings)

    @property
    def total_area(self) -> float:
        return sum(b.area for b in self.buildings)

    def bounding_polygon(self, padding: float = 0.0005) -> List[GeoPoint]:
        """Padded bounding box of member centroids, counter-clockwise from SW."""
        lats = [b.centroid.lat for b in self.buildings]
        lngs = [b.centroid.lng for b in self.buildings]
        south, north = min(lats) - padding, max(lats) + padding
        west, east = min(lngs) - padding, max(lngs) + padding
        return [
            GeoPoint(south, west),
            GeoPoint(south, east),
            GeoPoint(north, east),
            GeoPoint(north, west),
        ]


@dataclass
class PriorityZone:
    """A cluster whose priority score passed the intervention threshold."""
    cluster: Cluster
    level: str  # "Critical", "High", "Medium"
    cluster_temperature: float
    building_density_per_ha: float
    large_roofs: int
    recommended_actions: List[str] = field(default_factory=list)
    polygon: List[GeoPoint] = field(default_factory=list)

    @property
    def score(self) -> float:
        return self.cluster.scores.composite if self.cluster.scores else 0.0


@dataclass
class ScoredPoint:
    """A point handed to the rendering layer."""
    lat: float
    lng: float
    intensity: float
    value: Optional[float] = None  # e.g. temperature °C, AQI, density
    label: str = ""

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class SolarPotential:
    annual_energy_kwh: float
    avg_irradiance: float
    panel_efficiency: float
    performance_ratio: float
    estimated_panels: int
    homes_powered: int
    co2_offset_kg: float
    is_real: bool = True


@dataclass
class RainwaterPotential:
    annual_water_liters: float
    annual_rainfall_mm: float
    avg_daily_precipitation: Optional[float]
    runoff_coefficient: float
    storage_tank_m3: int
    households_supported: int
    is_real: bool = True
    note: Optional[str] = None


@dataclass
class HeatAssessment:
    risk_level: str  # "Low", "Medium", "High"
    temperature_reduction: str
    avg_temperature: Optional[float] = None


@dataclass
class AreaAnalysis:
    """Scored points for one area pass plus bookkeeping for partial success."""
    mode: str
    bounds: BoundingBox
    points: List[ScoredPoint] = field(default_factory=list)
    zones: List[PriorityZone] = field(default_factory=list)
    requested: int = 0
    successful: int = 0
    failed: int = 0
    source: str = ""
    note: Optional[str] = None


@dataclass
class BuildingAnalysis:
    """
    Per-building result. Solar is always real here; the water section may be
    a SoftFailure while the rest of the analysis stands.
    """
    building_id: str
    location: GeoPoint
    area: float
    climate: ClimateSample
    precipitation: ClimateSample
    solar: SolarPotential
    water: Union[RainwaterPotential, SoftFailure]
    heat: HeatAssessment
    data_source: str = ""
