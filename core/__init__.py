"""
Core module for the RoofHarvest engine.
Contains data models, geometry, scoring and result types.

The grid sampler, cluster builder and analyzers live in ``core.grid``,
``core.clustering`` and ``core.analyzer``.
"""

from core.geometry import GeoPoint, polygon_area, centroid
from core.models import (
    BoundingBox,
    Building,
    ClimateSample,
    AirQualityResult,
    AirQualityStation,
    GridCell,
    Cluster,
    PriorityZone,
    ScoreVector,
    ScoredPoint,
    AreaAnalysis,
    BuildingAnalysis,
)
from core.result import Ok, SoftFailure, HardFailure, Result
from core.settings import EngineSettings, get_settings

__all__ = [
    # Geometry
    "GeoPoint",
    "polygon_area",
    "centroid",
    # Models
    "BoundingBox",
    "Building",
    "ClimateSample",
    "AirQualityResult",
    "AirQualityStation",
    "GridCell",
    "Cluster",
    "PriorityZone",
    "ScoreVector",
    "ScoredPoint",
    "AreaAnalysis",
    "BuildingAnalysis",
    # Results
    "Ok",
    "SoftFailure",
    "HardFailure",
    "Result",
    # Settings
    "EngineSettings",
    "get_settings",
]
