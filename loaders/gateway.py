"""
Upstream Gateway - one entry point for every external data source.

Fetches:
- Solar irradiance and temperature from NASA POWER
- Recent precipitation and rainfall forecasts from Open-Meteo
- Air quality from OpenAQ ground stations, falling back to the CAMS model
- Building footprints from OpenStreetMap

Point queries go through a shared TTL cache keyed on quantized coordinates,
and every outbound call waits on one shared RateLimiter. Provider failures
come back as values tagged ``is_real=False``; only malformed caller input
raises.
"""

import math
import logging
from typing import Any, Callable, Dict, List, Optional

import requests

from core.models import (
    AirQualityResult,
    BoundingBox,
    Building,
    ClimateSample,
    GeoPoint,
    RainfallForecast,
)
from core.result import HardFailure, Ok, Result, SoftFailure
from core.settings import EngineSettings, get_settings
from loaders.cache import EvictionPolicy, TTLCache, make_cache_key
from loaders.http import USER_AGENT
from loaders.nasa_power import NasaPowerLoader
from loaders.open_meteo import ModelAirQualityLoader, PrecipitationLoader
from loaders.openaq import OpenAQLoader
from loaders.overpass import OverpassBuildingLoader
from loaders.throttle import RateLimiter

log = logging.getLogger(__name__)

RATE_LIMIT_NOTE = "Rate limit reached. Using regional average."


def _validate_coords(lat: Any, lng: Any) -> None:
    if lat is None or lng is None:
        raise HardFailure("latitude and longitude are required")
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        raise HardFailure(f"Invalid coordinates: ({lat!r}, {lng!r})")
    if math.isnan(lat) or math.isnan(lng) or not -90 <= lat <= 90 or not -180 <= lng <= 180:
        raise HardFailure(f"Coordinates out of range: ({lat}, {lng})")


class UpstreamGateway:
    """
    Cached, throttled access to the climate, air-quality and building
    providers.

    The cache, limiter and session are injectable so tests (and several
    gateways in one process) stay isolated from each other.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        cache: Optional[TTLCache] = None,
        limiter: Optional[RateLimiter] = None,
        session: Optional[requests.Session] = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache or TTLCache(
            max_entries=self.settings.cache_max_entries,
            ttl_seconds=self.settings.cache_ttl_seconds,
            policy=EvictionPolicy(self.settings.cache_eviction),
        )
        self.limiter = limiter or RateLimiter(min_interval=self.settings.min_request_interval)
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": USER_AGENT})
        self.session = session

        self.climate = NasaPowerLoader(self.session, self.limiter, self.settings)
        self.precipitation = PrecipitationLoader(self.session, self.limiter, self.settings)
        self.stations = OpenAQLoader(self.session, self.limiter, self.settings)
        self.model_air_quality = ModelAirQualityLoader(self.session, self.limiter, self.settings)
        self.buildings = OverpassBuildingLoader(self.session, self.limiter, self.settings)

    def _key(self, kind: str, lat: float, lng: float) -> str:
        return make_cache_key(kind, lat, lng, self.settings.cache_key_precision)

    def _through_cache(self, key: str, load: Callable[[], Result]) -> Result:
        """Return a cached value, or load it and cache it when it is Ok."""
        cached = self.cache.get(key)
        if cached is not None:
            return Ok(cached)
        result = load()
        if result.is_ok:
            self.cache.set(key, result.value)
        return result

    @staticmethod
    def _not_real(lat: float, lng: float, failure: SoftFailure) -> ClimateSample:
        return ClimateSample(
            latitude=lat,
            longitude=lng,
            source=getattr(failure, "provider", ""),
            is_real=False,
            source_note=failure.reason,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # CLIMATE
    # ═══════════════════════════════════════════════════════════════════════════

    def fetch_climate(self, lat: float, lng: float) -> ClimateSample:
        """Average solar irradiance and temperature for a point."""
        _validate_coords(lat, lng)
        result = self._through_cache(
            self._key("solar", lat, lng),
            lambda: self.climate.fetch_climate(lat, lng),
        )
        if result.is_ok:
            return result.value
        return self._not_real(lat, lng, result)

    def fetch_temperature(self, lat: float, lng: float) -> ClimateSample:
        """Average temperature only; used once per grid cell."""
        _validate_coords(lat, lng)
        result = self._through_cache(
            self._key("temp", lat, lng),
            lambda: self.climate.fetch_temperature(lat, lng),
        )
        if result.is_ok:
            return result.value
        return self._not_real(lat, lng, result)

    def fetch_precipitation(self, lat: float, lng: float) -> ClimateSample:
        """
        Annual precipitation extrapolated from recent daily totals.

        On provider failure the regional average is substituted (labeled
        ``is_real=False``) and cached so repeated failures don't hammer the
        provider. With the fallback disabled the failure is returned uncached.
        """
        _validate_coords(lat, lng)
        key = self._key("precip", lat, lng)
        result = self._through_cache(key, lambda: self.precipitation.fetch_precipitation(lat, lng))
        if result.is_ok:
            return result.value

        fallback_mm = self.settings.fallback_annual_rainfall_mm
        if fallback_mm is None:
            return self._not_real(lat, lng, result)

        if getattr(result, "rate_limited", False):
            note = RATE_LIMIT_NOTE
        else:
            note = f"{result.reason}. Using regional average."
        log.warning(f"Precipitation fallback for ({lat:.4f}, {lng:.4f}): {note}")

        fallback = ClimateSample(
            latitude=lat,
            longitude=lng,
            annual_precipitation=float(fallback_mm),
            avg_daily_precipitation=round(fallback_mm / 365, 2),
            source=f"Regional average ({self.settings.fallback_rainfall_region})",
            is_real=False,
            source_note=note,
        )
        self.cache.set(key, fallback)
        return fallback

    def fetch_rainfall_forecast(self, lat: float, lng: float, days: int = 3) -> RainfallForecast:
        """Hourly rainfall forecast for the next ``days`` days."""
        _validate_coords(lat, lng)
        if days < 1:
            raise HardFailure(f"days must be positive, got {days}")
        result = self._through_cache(
            f"{self._key('forecast', lat, lng)}_{days}d",
            lambda: self.precipitation.fetch_forecast(lat, lng, days),
        )
        if result.is_ok:
            return result.value
        return RainfallForecast(
            latitude=lat,
            longitude=lng,
            source=getattr(result, "provider", ""),
            is_real=False,
            note=result.reason,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # AIR QUALITY
    # ═══════════════════════════════════════════════════════════════════════════

    def fetch_air_quality(
        self,
        bounds: Optional[BoundingBox] = None,
        center: Optional[GeoPoint] = None,
    ) -> AirQualityResult:
        """
        Air quality for a viewport or around a center point.

        Order of preference:
        1. Ground stations with a PM2.5 reading (worst AQI first)
        2. A single CAMS model estimate at the center
        3. An explicit no-data result (not cached)
        """
        if bounds is None and center is None:
            raise HardFailure("bounds or center is required")
        point = center if center is not None else bounds.center
        _validate_coords(point.lat, point.lng)

        key = self._key("airquality", point.lat, point.lng)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        stations = self.stations.fetch_stations(bounds=bounds, center=center)
        if stations.is_ok and stations.value:
            locations = stations.value[:self.settings.max_air_quality_locations]
            result = AirQualityResult(
                locations=locations,
                count=len(stations.value),
                source=self.stations.PROVIDER,
                is_real=True,
            )
            self.cache.set(key, result)
            return result

        station_note = "no stations with PM2.5" if stations.is_ok else stations.reason
        log.info(f"No ground stations for ({point.lat:.4f}, {point.lng:.4f}) ({station_note}); trying model")

        estimate = self.model_air_quality.fetch_estimate(point.lat, point.lng)
        if estimate.is_ok:
            result = AirQualityResult(
                locations=[estimate.value],
                count=1,
                source=self.model_air_quality.PROVIDER,
                is_real=True,
                note=f"No ground stations available ({station_note}); showing model estimate",
            )
            self.cache.set(key, result)
            return result

        log.warning(f"No air quality data for ({point.lat:.4f}, {point.lng:.4f})")
        return AirQualityResult(
            note=f"No air quality data available: {station_note}; {estimate.reason}",
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # BUILDINGS
    # ═══════════════════════════════════════════════════════════════════════════

    def fetch_buildings(self, bounds: BoundingBox) -> Result[List[Building]]:
        """Full building snapshot for a viewport; never cached."""
        if bounds is None:
            raise HardFailure("bounds are required")
        return self.buildings.fetch_buildings(bounds)

    def cache_stats(self) -> Dict[str, Any]:
        stats = self.cache.stats()
        stats["requests_dispatched"] = self.limiter.dispatched
        stats["throttle_wait_seconds"] = round(self.limiter.total_wait, 3)
        return stats


# Singleton
_gateway: Optional[UpstreamGateway] = None

def get_gateway() -> UpstreamGateway:
    """Get singleton gateway."""
    global _gateway
    if _gateway is None:
        _gateway = UpstreamGateway()
    return _gateway
