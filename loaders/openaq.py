"""
OpenAQ v3 loader - latest PM2.5 readings from ground stations.

Readings are grouped by station; only stations with a PM2.5 value are kept.
"""

import logging
from typing import Dict, List, Optional

import requests

from core.models import AirQualityStation, BoundingBox, GeoPoint, Measurement
from core.result import HardFailure, Ok, Result
from core.scoring import aqi_category, aqi_color, calculate_aqi
from loaders.http import ProviderClient, ProviderFailure, describe_failure

log = logging.getLogger(__name__)

PM25_PARAMETER_ID = 2


def _parameter_name(reading: Dict) -> Optional[str]:
    parameter = reading.get("parameter")
    if isinstance(parameter, dict):
        return parameter.get("name")
    return parameter


def group_stations(results: List[Dict]) -> List[AirQualityStation]:
    """
    Group raw readings into stations with AQI, sorted worst first.

    Readings without a station id or coordinates are skipped.
    """
    stations: Dict[str, Dict] = {}
    for reading in results:
        location = reading.get("location")
        if isinstance(location, dict):
            loc_id = location.get("id")
            loc_name = location.get("name")
        else:
            loc_id = reading.get("locationId")
            loc_name = location
        coords = reading.get("coordinates") or {}
        lat = coords.get("latitude")
        lng = coords.get("longitude")
        if loc_id is None or lat is None or lng is None:
            continue

        station = stations.setdefault(str(loc_id), {
            "id": str(loc_id),
            "name": loc_name or f"Station {loc_id}",
            "latitude": float(lat),
            "longitude": float(lng),
            "measurements": {},
        })

        name = _parameter_name(reading)
        value = reading.get("value")
        if name and value is not None:
            parameter = reading.get("parameter")
            unit = parameter.get("units", "µg/m³") if isinstance(parameter, dict) else "µg/m³"
            when = reading.get("datetime") or reading.get("date") or {}
            station["measurements"][name] = Measurement(
                value=float(value),
                unit=unit,
                last_updated=when.get("utc") if isinstance(when, dict) else None,
            )

    qualified = []
    for station in stations.values():
        pm25 = station["measurements"].get("pm25")
        if pm25 is None:
            continue
        aqi = calculate_aqi(pm25.value)
        qualified.append(AirQualityStation(
            aqi=aqi,
            aqi_category=aqi_category(aqi),
            color=aqi_color(aqi),
            source_type="station",
            **station,
        ))
    qualified.sort(key=lambda s: s.aqi, reverse=True)
    return qualified


class OpenAQLoader(ProviderClient):
    """
    OpenAQ v3 ``/latest`` endpoint.

    Requires an API key (``OPENAQ_API_KEY``); without one no request is made.
    """

    PROVIDER = "Ground stations (OpenAQ v3)"
    BASE_URL = "https://api.openaq.org/v3"

    def fetch_stations(
        self,
        bounds: Optional[BoundingBox] = None,
        center: Optional[GeoPoint] = None,
    ) -> Result[List[AirQualityStation]]:
        """Stations with a PM2.5 reading inside ``bounds`` or around ``center``."""
        if not self.settings.openaq_api_key:
            log.warning("OpenAQ API key not configured; skipping ground stations")
            return ProviderFailure("OpenAQ API key not configured", provider=self.PROVIDER)

        params = {"limit": 100, "parameters_id": PM25_PARAMETER_ID}
        if bounds is not None:
            params["bbox"] = f"{bounds.west},{bounds.south},{bounds.east},{bounds.north}"
        elif center is not None:
            params["coordinates"] = f"{center.lat},{center.lng}"
            params["radius"] = self.settings.openaq_radius_m
        else:
            raise HardFailure("bounds or center is required")

        headers = {"X-API-Key": self.settings.openaq_api_key, "Accept": "application/json"}
        try:
            payload = self._make_request(
                "GET", f"{self.BASE_URL}/latest",
                timeout=self.settings.air_quality_timeout,
                params=params,
                headers=headers,
            )
            results = payload.get("results") or []
            log.info(f"OpenAQ returned {len(results)} measurements")
            return Ok(group_stations(results))
        except (requests.RequestException, KeyError, ValueError, TypeError, AttributeError) as e:
            failure = describe_failure(self.PROVIDER, e)
            log.error(f"OpenAQ error: {failure.reason}")
            return failure
