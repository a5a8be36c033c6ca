"""
Data loaders for the RoofHarvest engine.

Includes:
- Solar irradiance and temperature (NASA POWER)
- Precipitation, rainfall forecast and model air quality (Open-Meteo)
- Ground-station air quality (OpenAQ v3)
- Building footprints (OpenStreetMap Overpass)
- Upstream gateway (shared cache + throttle over all sources)
"""

from loaders.cache import TTLCache, EvictionPolicy, make_cache_key
from loaders.throttle import RateLimiter
from loaders.http import ProviderClient, ProviderFailure
from loaders.nasa_power import NasaPowerLoader
from loaders.open_meteo import PrecipitationLoader, ModelAirQualityLoader
from loaders.openaq import OpenAQLoader
from loaders.overpass import OverpassBuildingLoader
from loaders.gateway import UpstreamGateway, get_gateway

__all__ = [
    # Plumbing
    "TTLCache",
    "EvictionPolicy",
    "make_cache_key",
    "RateLimiter",
    "ProviderClient",
    "ProviderFailure",
    # Providers
    "NasaPowerLoader",
    "PrecipitationLoader",
    "ModelAirQualityLoader",
    "OpenAQLoader",
    "OverpassBuildingLoader",
    # Gateway
    "UpstreamGateway",
    "get_gateway",
]
