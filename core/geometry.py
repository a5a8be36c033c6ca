"""
Geometry helpers for building footprints.

Footprints are small (tens to thousands of m²), so a spherical shoelace on
Earth's equatorial radius and a vertex-mean centroid are good enough.
"""

import math
from dataclasses import dataclass
from typing import List, Sequence

EARTH_RADIUS_M = 6378137.0
METERS_PER_DEGREE = 111000.0
KM_PER_DEGREE = 111.0

# Returned for rings with fewer than 3 distinct vertices
DEFAULT_AREA_M2 = 100.0


@dataclass(frozen=True)
class GeoPoint:
    """WGS84 point in decimal degrees."""
    lat: float
    lng: float


def _open_ring(ring: Sequence[GeoPoint]) -> List[GeoPoint]:
    """Drop the repeated closing vertex, if any."""
    points = list(ring)
    if len(points) > 1 and points[0] == points[-1]:
        points.pop()
    return points


def polygon_area(ring: Sequence[GeoPoint]) -> float:
    """
    Area of a closed ring in square meters.

    Args:
        ring: Boundary vertices, optionally closed (first == last)

    Returns:
        Non-negative area; DEFAULT_AREA_M2 for degenerate rings
    """
    points = _open_ring(ring)
    if len(points) < 3:
        return DEFAULT_AREA_M2

    total = 0.0
    for i, p1 in enumerate(points):
        p2 = points[(i + 1) % len(points)]
        total += (
            (math.radians(p1.lng) - math.radians(p2.lng)) *
            (2 + math.sin(math.radians(p1.lat)) + math.sin(math.radians(p2.lat)))
        )
    return abs(total * EARTH_RADIUS_M * EARTH_RADIUS_M / 2)


def centroid(ring: Sequence[GeoPoint]) -> GeoPoint:
    """Vertex mean of a ring; the origin for an empty ring."""
    points = _open_ring(ring)
    if not points:
        return GeoPoint(0.0, 0.0)
    return GeoPoint(
        sum(p.lat for p in points) / len(points),
        sum(p.lng for p in points) / len(points),
    )


def planar_distance_deg(a: GeoPoint, b: GeoPoint) -> float:
    """Euclidean distance in raw degrees (city-scale comparisons only)."""
    return math.hypot(a.lat - b.lat, a.lng - b.lng)


def bbox_area_km2(points: Sequence[GeoPoint]) -> float:
    """Lat/lng bounding-box area of a point set at 111 km per degree."""
    if not points:
        return 0.0
    lats = [p.lat for p in points]
    lngs = [p.lng for p in points]
    return (max(lats) - min(lats)) * (max(lngs) - min(lngs)) * KM_PER_DEGREE * KM_PER_DEGREE


def cell_ground_area_m2(lat: float, size_deg: float) -> float:
    """Ground area of a square lat/lng cell, longitude scaled by cos(lat)."""
    side_ns = size_deg * METERS_PER_DEGREE
    side_ew = size_deg * METERS_PER_DEGREE * math.cos(math.radians(lat))
    return side_ns * side_ew
