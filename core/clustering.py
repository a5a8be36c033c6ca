"""
Cluster Builder - groups nearby buildings into spatial clusters.

Single pass over the snapshot: each unvisited building seeds a cluster that
absorbs every other unvisited building within a planar-degree distance of
the seed. Groups smaller than the minimum size are dropped; their members
stay visited and never reappear in another cluster.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from core.geometry import GeoPoint, bbox_area_km2
from core.models import Building, Cluster
from core.settings import EngineSettings, get_settings

log = logging.getLogger(__name__)


class ClusterBuilder:
    """
    Usage:
        builder = ClusterBuilder(distance_deg=0.0015, min_size=3)
        clusters = builder.build(buildings)
    """

    def __init__(
        self,
        distance_deg: Optional[float] = None,
        min_size: Optional[int] = None,
        settings: Optional[EngineSettings] = None,
    ):
        settings = settings or get_settings()
        self.distance_deg = settings.cluster_distance_deg if distance_deg is None else distance_deg
        self.min_size = settings.cluster_min_size if min_size is None else min_size
        if self.distance_deg <= 0:
            raise ValueError("distance_deg must be positive")
        if self.min_size < 1:
            raise ValueError("min_size must be at least 1")

    def build(self, buildings: Sequence[Building]) -> List[Cluster]:
        if not buildings:
            return []

        coords = np.array([(b.centroid.lat, b.centroid.lng) for b in buildings], dtype=float)
        visited = np.zeros(len(buildings), dtype=bool)
        clusters = []
        dropped = 0

        for seed in range(len(buildings)):
            if visited[seed]:
                continue
            distances = np.hypot(coords[:, 0] - coords[seed, 0], coords[:, 1] - coords[seed, 1])
            members = np.flatnonzero(~visited & (distances < self.distance_deg))
            visited[members] = True

            if len(members) < self.min_size:
                dropped += len(members)
                continue
            clusters.append(self._make_cluster([buildings[i] for i in members]))

        log.info(f"Built {len(clusters)} clusters from {len(buildings)} buildings ({dropped} isolated)")
        return clusters

    @staticmethod
    def _make_cluster(members: List[Building]) -> Cluster:
        points = [b.centroid for b in members]
        center = GeoPoint(
            sum(p.lat for p in points) / len(points),
            sum(p.lng for p in points) / len(points),
        )
        return Cluster(
            buildings=members,
            centroid=center,
            bounding_area_km2=bbox_area_km2(points),
        )
