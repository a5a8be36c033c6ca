"""
Scoring Engine

Normalized [0,1] sub-scores combined by fixed weighted sums:
- Urban-heat intensity (grid cells)
- Priority score (building clusters)
- US EPA AQI from PM2.5
- Building-level heat micro-adjustment (one regional baseline, many buildings)

The weights and clamp bounds are part of the output contract. The cluster
heat model and the building micro-adjustment model are kept as two separate
named models; they use different weights and baselines on purpose.
"""

import math
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from core.geometry import METERS_PER_DEGREE
from core.models import Building, Cluster, ScoreVector

log = logging.getLogger(__name__)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


# ═══════════════════════════════════════════════════════════════════════════
# URBAN HEAT (grid cells)
# ═══════════════════════════════════════════════════════════════════════════
HEAT_TEMP_MIN = 20.0
HEAT_TEMP_MAX = 40.0

URBAN_HEAT_WEIGHTS = {
    "temperature": 0.5,
    "density": 0.3,
    "green_deficit": 0.2,
}


def normalize_temperature(temp: float) -> float:
    """Map 20 °C .. 40 °C onto 0 .. 1."""
    return clamp((temp - HEAT_TEMP_MIN) / (HEAT_TEMP_MAX - HEAT_TEMP_MIN))


def urban_heat_intensity(temperature: float, building_density: float, green_deficit: float) -> ScoreVector:
    """
    Urban-heat intensity of a grid cell.

    intensity = 0.5·normalizedTemp + 0.3·density + 0.2·greenDeficit
    """
    heat = normalize_temperature(temperature)
    density = clamp(building_density)
    green = clamp(green_deficit)
    composite = (
        heat * URBAN_HEAT_WEIGHTS["temperature"] +
        density * URBAN_HEAT_WEIGHTS["density"] +
        green * URBAN_HEAT_WEIGHTS["green_deficit"]
    )
    return ScoreVector(heat=heat, density=density, green_deficit=green, composite=clamp(composite))


# ═══════════════════════════════════════════════════════════════════════════
# PRIORITY (clusters)
# ═══════════════════════════════════════════════════════════════════════════
PRIORITY_WEIGHTS = {
    "heat": 0.35,
    "density": 0.25,
    "green_deficit": 0.25,
    "rooftop": 0.15,
}

LARGE_ROOF_M2 = 500.0
LARGE_ROOF_TARGET = 5
HEAT_RISK_BASE_C = 28.0
HEAT_RISK_SPAN_C = 10.0
DEFAULT_CLUSTER_AREA_KM2 = 0.01


def heat_risk(temperature: float) -> float:
    """clamp((T − 28) / 10)"""
    return clamp((temperature - HEAT_RISK_BASE_C) / HEAT_RISK_SPAN_C)


def rooftop_potential(large_roof_count: int, target: int = LARGE_ROOF_TARGET) -> float:
    return clamp(large_roof_count / target)


def priority_score(heat: float, density: float, green_deficit: float, rooftop: float) -> float:
    """0.35·heat + 0.25·density + 0.25·greenDeficit + 0.15·rooftop"""
    return clamp(
        clamp(heat) * PRIORITY_WEIGHTS["heat"] +
        clamp(density) * PRIORITY_WEIGHTS["density"] +
        clamp(green_deficit) * PRIORITY_WEIGHTS["green_deficit"] +
        clamp(rooftop) * PRIORITY_WEIGHTS["rooftop"]
    )


@dataclass
class ClusterHeatEstimate:
    """Intermediate values of the cluster heat model."""
    temperature: float
    density_per_ha: float
    large_roofs: int
    avg_building_size: float


def estimate_cluster_heat(cluster: Cluster, baseline_temp: float) -> ClusterHeatEstimate:
    """
    Cluster heat model: baseline + up to 2 °C for density + up to 3 °C for size.

    Density is buildings per hectare of the cluster bounding box.
    """
    count = cluster.size
    area_km2 = cluster.bounding_area_km2 or DEFAULT_CLUSTER_AREA_KM2
    density_per_ha = count / (area_km2 * 100)
    avg_size = cluster.total_area / count if count else 0.0

    density_factor = clamp(density_per_ha / 50)
    size_factor = clamp(avg_size / 1000)
    temperature = baseline_temp + density_factor * 2.0 + size_factor * 3.0

    return ClusterHeatEstimate(
        temperature=temperature,
        density_per_ha=density_per_ha,
        large_roofs=sum(1 for b in cluster.buildings if b.area > LARGE_ROOF_M2),
        avg_building_size=avg_size,
    )


def score_cluster(cluster: Cluster, baseline_temp: float) -> Tuple[ScoreVector, ClusterHeatEstimate]:
    """Priority score vector for one cluster."""
    estimate = estimate_cluster_heat(cluster, baseline_temp)
    heat = heat_risk(estimate.temperature)
    density = clamp(estimate.density_per_ha / 80)
    green = density  # dense development stands in for missing green space
    rooftop = rooftop_potential(estimate.large_roofs)
    vector = ScoreVector(
        heat=heat,
        density=density,
        green_deficit=green,
        rooftop_potential=rooftop,
        composite=priority_score(heat, density, green, rooftop),
    )
    return vector, estimate


def priority_level(score: float) -> str:
    if score > 0.7:
        return "Critical"
    if score > 0.55:
        return "High"
    return "Medium"


def recommended_actions(scores: ScoreVector, large_roofs: int) -> List[str]:
    actions = []
    if scores.heat > 0.6:
        actions.append("Cool roof coatings")
    if large_roofs >= 3:
        actions.append("Solar panel installation")
    if scores.green_deficit > 0.6:
        actions.append("Urban greening projects")
    actions.append("Rainwater harvesting systems")
    return actions


# ═══════════════════════════════════════════════════════════════════════════
# AIR QUALITY (US EPA PM2.5 breakpoints)
# ═══════════════════════════════════════════════════════════════════════════
# (c_low, c_high, i_low, i_high)
PM25_BREAKPOINTS: Tuple[Tuple[float, float, int, int], ...] = (
    (0.0, 12.0, 0, 50),
    (12.1, 35.4, 51, 100),
    (35.5, 55.4, 101, 150),
    (55.5, 150.4, 151, 200),
    (150.5, 250.4, 201, 300),
    (250.5, 500.4, 301, 500),
)

AQI_MAX = 500

AQI_CATEGORIES = (
    (50, "Good", "#00e400"),
    (100, "Moderate", "#ffff00"),
    (150, "Unhealthy for Sensitive Groups", "#ff7e00"),
    (200, "Unhealthy", "#ff0000"),
    (300, "Very Unhealthy", "#8f3f97"),
    (AQI_MAX, "Hazardous", "#7e0023"),
)


def calculate_aqi(pm25: Optional[float]) -> int:
    """
    US EPA AQI from a PM2.5 concentration (µg/m³).

    The concentration is truncated to one decimal as EPA does, so values
    between published bands fall into the lower band. Anything above the
    top band clamps to 500.
    """
    if pm25 is None or pm25 <= 0:
        return 0
    conc = math.floor(pm25 * 10 + 1e-9) / 10
    if conc > PM25_BREAKPOINTS[-1][1]:
        return AQI_MAX
    for c_low, c_high, i_low, i_high in PM25_BREAKPOINTS:
        if conc <= c_high:
            conc = max(conc, c_low)
            aqi = (i_high - i_low) / (c_high - c_low) * (conc - c_low) + i_low
            return int(math.floor(aqi + 0.5))
    return AQI_MAX


def aqi_category(aqi: float) -> str:
    for upper, name, _ in AQI_CATEGORIES:
        if aqi <= upper:
            return name
    return AQI_CATEGORIES[-1][1]


def aqi_color(aqi: float) -> str:
    for upper, _, color in AQI_CATEGORIES:
        if aqi <= upper:
            return color
    return AQI_CATEGORIES[-1][2]


def aqi_intensity(aqi: float) -> float:
    """Heat-map weight of an AQI reading (200 saturates)."""
    return clamp(aqi / 200)


# ═══════════════════════════════════════════════════════════════════════════
# BUILDING MICRO-ADJUSTMENT (one baseline, per-building variance)
# ═══════════════════════════════════════════════════════════════════════════
MICRO_ADJUSTMENT_WEIGHTS = {
    "albedo": 0.29,
    "green": 0.21,
    "density": 0.12,
    "height": 0.08,
}

NEIGHBOR_RADIUS_M = 100.0
NEIGHBOR_TARGET = 15
LARGE_BUILDING_SPREAD_M2 = 300.0
SPREAD_OFFSET_DEG = 0.0003
SPREAD_DECAY = 0.6


@dataclass
class BuildingHeat:
    building_id: str
    lat: float
    lng: float
    temperature: float
    intensity: float
    adjustment: float
    neighbors: int
    area: float


def count_neighbors(buildings: Sequence[Building], radius_m: float = NEIGHBOR_RADIUS_M,
                    chunk_size: int = 256) -> np.ndarray:
    """
    Neighbors within ``radius_m`` of each building (planar, 111 km per degree).

    Points are sorted by latitude; each chunk is only compared with the
    latitude band that can reach it, so memory follows local density
    rather than the size of the snapshot.
    """
    if not buildings:
        return np.zeros(0, dtype=int)
    coords = np.array([(b.centroid.lat, b.centroid.lng) for b in buildings]) * METERS_PER_DEGREE
    order = np.argsort(coords[:, 0], kind="stable")
    ordered = coords[order]
    lats = ordered[:, 0]
    counts = np.zeros(len(coords), dtype=int)
    for start in range(0, len(ordered), chunk_size):
        block = ordered[start:start + chunk_size]
        low = int(np.searchsorted(lats, block[0, 0] - radius_m, side="left"))
        high = int(np.searchsorted(lats, block[-1, 0] + radius_m, side="right"))
        window = ordered[low:high]
        deltas = block[:, None, :] - window[None, :, :]
        within = np.sqrt((deltas ** 2).sum(axis=2)) < radius_m
        # a building is not its own neighbor
        within[np.arange(len(block)), np.arange(start - low, start - low + len(block))] = False
        counts[order[start:start + len(block)]] = within.sum(axis=1)
    return counts


def micro_adjustment(area: float, neighbors: int) -> float:
    """
    Per-building temperature offset in °C.

    size → up to +3 °C (albedo), density → up to +2 °C, the green proxy is the
    density factor negated (up to −2 °C), height proxy from area → +0.5/+1 °C.
    """
    density_factor = clamp(neighbors / NEIGHBOR_TARGET)
    size_score = clamp(area / 1000)

    albedo_adjustment = size_score * 3.0
    green_adjustment = -density_factor * 2.0
    density_adjustment = density_factor * 2.0
    height_adjustment = (1.0 if area > LARGE_ROOF_M2 else 0.5) * 1.0

    return (
        albedo_adjustment * MICRO_ADJUSTMENT_WEIGHTS["albedo"] +
        green_adjustment * MICRO_ADJUSTMENT_WEIGHTS["green"] +
        density_adjustment * MICRO_ADJUSTMENT_WEIGHTS["density"] +
        height_adjustment * MICRO_ADJUSTMENT_WEIGHTS["height"]
    )


def building_heat_map(buildings: Sequence[Building], baseline_temp: float) -> List[BuildingHeat]:
    """Apply the micro-adjustment model to every building of a snapshot."""
    neighbors = count_neighbors(buildings)
    results = []
    for building, n in zip(buildings, neighbors):
        adjustment = micro_adjustment(building.area, int(n))
        temperature = baseline_temp + adjustment
        results.append(BuildingHeat(
            building_id=building.id,
            lat=building.centroid.lat,
            lng=building.centroid.lng,
            temperature=temperature,
            intensity=normalize_temperature(temperature),
            adjustment=adjustment,
            neighbors=int(n),
            area=building.area,
        ))
    return results


def spread_points(heat: BuildingHeat) -> List[Tuple[float, float, float]]:
    """Four decayed points around large buildings so heat follows the footprint."""
    if heat.area <= LARGE_BUILDING_SPREAD_M2:
        return []
    value = heat.intensity * SPREAD_DECAY
    return [
        (heat.lat + SPREAD_OFFSET_DEG, heat.lng, value),
        (heat.lat - SPREAD_OFFSET_DEG, heat.lng, value),
        (heat.lat, heat.lng + SPREAD_OFFSET_DEG, value),
        (heat.lat, heat.lng - SPREAD_OFFSET_DEG, value),
    ]
