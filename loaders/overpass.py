"""
Building footprints from OpenStreetMap via the Overpass API.

Each fetch returns a full snapshot of the buildings in a viewport; there is
no incremental update and no caching.
"""

import logging
from typing import Dict, List

import requests

from core.models import Building, BoundingBox, GeoPoint
from core.result import Ok, Result
from loaders.http import ProviderClient, describe_failure

log = logging.getLogger(__name__)


def parse_buildings(data: Dict) -> List[Building]:
    """Turn ``out geom`` way elements into Building snapshots."""
    buildings = []
    for element in data.get("elements", []):
        nodes = element.get("geometry") or []
        if not nodes or "id" not in element:
            continue
        ring = [GeoPoint(float(n["lat"]), float(n["lon"])) for n in nodes]
        buildings.append(Building.from_ring(element["id"], ring))
    return buildings


class OverpassBuildingLoader(ProviderClient):
    """Fetches ``way["building"]`` geometries for a bounding box."""

    PROVIDER = "OpenStreetMap (Overpass)"
    OVERPASS_URL = "https://overpass-api.de/api/interpreter"

    def _build_query(self, bounds: BoundingBox) -> str:
        timeout = int(self.settings.buildings_timeout)
        bbox = f"{bounds.south},{bounds.west},{bounds.north},{bounds.east}"
        return f'[out:json][timeout:{timeout}];way["building"]({bbox});out geom;'

    def fetch_buildings(self, bounds: BoundingBox) -> Result[List[Building]]:
        """
        Fetch every building footprint in a viewport.

        Args:
            bounds: Viewport bounding box

        Returns:
            Ok(list of Building) or a ProviderFailure
        """
        try:
            data = self._make_request(
                "POST",
                self.OVERPASS_URL,
                timeout=self.settings.buildings_timeout,
                data={"data": self._build_query(bounds)},
            )
            buildings = parse_buildings(data)
        except (requests.RequestException, KeyError, ValueError, TypeError, AttributeError) as e:
            failure = describe_failure(self.PROVIDER, e)
            log.error(f"Overpass request failed: {failure.reason}")
            return failure

        log.info(f"Overpass fetched {len(buildings)} buildings")
        return Ok(buildings)
