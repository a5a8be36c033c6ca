"""
NASA POWER loader - daily solar irradiance and air temperature.

Averages the daily series over a fixed one-year window. The provider marks
missing days with -999; those are dropped before averaging.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from core.models import ClimateSample
from core.result import Ok, Result
from loaders.http import ProviderClient, ProviderFailure, describe_failure

log = logging.getLogger(__name__)

MISSING_VALUE = -999

IRRADIANCE_PARAM = "ALLSKY_SFC_SW_DWN"  # kWh/m²/day
TEMPERATURE_PARAM = "T2M"               # °C at 2 m


def average_series(series: Dict[str, Any]) -> Optional[float]:
    """Mean of a date -> value mapping, ignoring sentinel and null values."""
    values: List[float] = [
        float(v) for v in series.values()
        if v is not None and float(v) != MISSING_VALUE
    ]
    if not values:
        return None
    return sum(values) / len(values)


class NasaPowerLoader(ProviderClient):
    """
    NASA POWER daily point API.

    API Documentation:
    https://power.larc.nasa.gov/docs/services/api/temporal/daily/
    """

    PROVIDER = "NASA POWER API"
    BASE_URL = "https://power.larc.nasa.gov/api/temporal/daily/point"

    def _params(self, lat: float, lng: float, parameters: str) -> Dict[str, Any]:
        return {
            "parameters": parameters,
            "community": "RE",
            "longitude": lng,
            "latitude": lat,
            "start": self.settings.nasa_power_start,
            "end": self.settings.nasa_power_end,
            "format": "JSON",
        }

    def fetch_climate(self, lat: float, lng: float) -> Result[ClimateSample]:
        """Average irradiance and temperature for a point."""
        log.info(f"Fetching NASA POWER data for ({lat:.4f}, {lng:.4f})")
        try:
            payload = self._make_request(
                "GET",
                self.BASE_URL,
                timeout=self.settings.solar_timeout,
                params=self._params(lat, lng, f"{IRRADIANCE_PARAM},{TEMPERATURE_PARAM}"),
            )
            return self._normalize(payload, lat, lng, with_irradiance=True)
        except (requests.RequestException, KeyError, ValueError, TypeError, AttributeError) as e:
            failure = describe_failure(self.PROVIDER, e)
            log.error(f"NASA POWER request failed for ({lat}, {lng}): {failure.reason}")
            return failure

    def fetch_temperature(self, lat: float, lng: float) -> Result[ClimateSample]:
        """Average temperature only, with the shorter grid-point timeout."""
        try:
            payload = self._make_request(
                "GET",
                self.BASE_URL,
                timeout=self.settings.temperature_timeout,
                params=self._params(lat, lng, TEMPERATURE_PARAM),
            )
            return self._normalize(payload, lat, lng, with_irradiance=False)
        except (requests.RequestException, KeyError, ValueError, TypeError, AttributeError) as e:
            failure = describe_failure(self.PROVIDER, e)
            log.warning(f"NASA POWER temperature failed for ({lat:.4f}, {lng:.4f}): {failure.reason}")
            return failure

    def _normalize(self, payload: Dict, lat: float, lng: float, with_irradiance: bool) -> Result[ClimateSample]:
        parameters = payload["properties"]["parameter"]

        avg_temp = average_series(parameters[TEMPERATURE_PARAM])
        avg_irradiance = None
        data_points = len(parameters[TEMPERATURE_PARAM])
        if with_irradiance:
            irradiance = parameters[IRRADIANCE_PARAM]
            avg_irradiance = average_series(irradiance)
            data_points = sum(1 for v in irradiance.values() if v is not None and v != MISSING_VALUE)
            if avg_irradiance is None:
                return ProviderFailure(f"{self.PROVIDER}: no valid irradiance values", provider=self.PROVIDER)

        if avg_temp is None:
            return ProviderFailure(f"{self.PROVIDER}: no valid temperature values", provider=self.PROVIDER)

        log.debug(f"NASA POWER: {data_points} data points at ({lat:.4f}, {lng:.4f})")
        return Ok(ClimateSample(
            latitude=lat,
            longitude=lng,
            avg_irradiance=avg_irradiance,
            avg_temperature=avg_temp,
            data_points=data_points,
            source=self.PROVIDER,
            is_real=True,
        ))
