"""
Engine settings.

Every tunable constant lives here with an explicit default. Values can be
overridden from the environment (``ROOFHARVEST_<FIELD>``), and the OpenAQ
key is read from ``OPENAQ_API_KEY`` like the other provider keys.
"""

import os
import logging
from dataclasses import dataclass, fields, asdict
from typing import Dict, Optional, Tuple

log = logging.getLogger(__name__)

ENV_PREFIX = "ROOFHARVEST_"
NONE_VALUES = ("", "none", "null")


@dataclass
class EngineSettings:
    """Tunables for the gateway, sampler, cluster builder and scoring."""

    # Cache
    cache_ttl_seconds: float = 86400.0
    cache_max_entries: int = 1000
    cache_key_precision: int = 3       # ~111 m
    cache_eviction: str = "lru"        # "lru" or "fifo"

    # Throttle / transport
    min_request_interval: float = 0.5  # seconds between any two outbound calls
    solar_timeout: float = 15.0
    temperature_timeout: float = 8.0
    precipitation_timeout: float = 10.0
    air_quality_timeout: float = 15.0
    model_air_quality_timeout: float = 10.0
    buildings_timeout: float = 25.0

    # Providers
    openaq_api_key: Optional[str] = None
    nasa_power_start: str = "20240901"
    nasa_power_end: str = "20250901"
    precipitation_past_days: int = 92
    fallback_annual_rainfall_mm: Optional[float] = 2200.0  # None disables the fallback
    fallback_rainfall_region: str = "Bangladesh"
    openaq_radius_m: int = 25000
    max_air_quality_locations: int = 50

    # Grid sampler: (minimum zoom, cell size in degrees), finest first
    zoom_tiers: Tuple[Tuple[int, float], ...] = ((16, 0.002), (13, 0.005), (0, 0.01))
    max_grid_cells: int = 400
    max_workers: int = 8

    # Cluster builder
    cluster_distance_deg: float = 0.0015   # ~150 m
    cluster_min_size: int = 3

    # Priority zones
    priority_threshold: float = 0.4
    priority_min_buildings: int = 5
    priority_max_zones: int = 20

    def to_dict(self) -> Dict:
        data = asdict(self)
        if data.get("openaq_api_key"):
            data["openaq_api_key"] = "***"
        return data

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "EngineSettings":
        """Build settings from defaults overridden by environment variables."""
        env = os.environ if environ is None else environ
        settings = cls()
        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None or f.name == "zoom_tiers":
                continue
            # Optional fields are cleared with an empty value or "none"
            if type(None) in getattr(f.type, "__args__", ()) and raw.strip().lower() in NONE_VALUES:
                setattr(settings, f.name, None)
                continue
            current = getattr(settings, f.name)
            try:
                if isinstance(current, bool):
                    value = raw.strip().lower() in ("1", "true", "yes", "on")
                elif isinstance(current, int):
                    value = int(raw)
                elif isinstance(current, float):
                    value = float(raw)
                else:
                    value = raw
            except ValueError:
                log.warning(f"Ignoring invalid {ENV_PREFIX}{f.name.upper()}={raw!r}")
                continue
            setattr(settings, f.name, value)

        if settings.openaq_api_key is None:
            settings.openaq_api_key = env.get("OPENAQ_API_KEY") or None

        if settings.cache_eviction not in ("lru", "fifo"):
            log.warning(f"Unknown cache eviction '{settings.cache_eviction}', using lru")
            settings.cache_eviction = "lru"
        return settings


# Singleton
_settings: Optional[EngineSettings] = None

def get_settings() -> EngineSettings:
    """Get singleton settings loaded from the environment."""
    global _settings
    if _settings is None:
        _settings = EngineSettings.from_env()
    return _settings
