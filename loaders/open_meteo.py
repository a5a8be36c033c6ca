"""
Open-Meteo loaders - recent precipitation, rainfall forecast, and the CAMS
air-quality model used when no ground stations report.
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Optional

import requests

from core.models import (
    AirQualityStation,
    ClimateSample,
    HourlyRainfall,
    Measurement,
    RainfallForecast,
)
from core.result import Ok, Result
from core.scoring import aqi_category, aqi_color, calculate_aqi
from loaders.http import ProviderClient, ProviderFailure, describe_failure

log = logging.getLogger(__name__)

DAYS_PER_YEAR = 365


class PrecipitationLoader(ProviderClient):
    """
    Open-Meteo forecast API used for the last ~3 months of daily rainfall.

    The average daily total is extrapolated to a year.
    """

    PROVIDER = "Open-Meteo Forecast API"
    FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

    def fetch_precipitation(self, lat: float, lng: float) -> Result[ClimateSample]:
        log.info(f"Fetching precipitation for ({lat:.4f}, {lng:.4f})")
        params = {
            "latitude": round(lat, 4),
            "longitude": round(lng, 4),
            "daily": "precipitation_sum",
            "past_days": self.settings.precipitation_past_days,
            "forecast_days": 1,
            "timezone": "auto",
        }
        try:
            payload = self._make_request(
                "GET", self.FORECAST_URL,
                timeout=self.settings.precipitation_timeout,
                params=params,
            )
            return self._normalize_daily(payload, lat, lng)
        except (requests.RequestException, KeyError, ValueError, TypeError, AttributeError) as e:
            failure = describe_failure(self.PROVIDER, e)
            log.error(f"Precipitation fetch failed for ({lat}, {lng}): {failure.reason}")
            return failure

    def _normalize_daily(self, payload: Dict, lat: float, lng: float) -> Result[ClimateSample]:
        daily = (payload.get("daily") or {}).get("precipitation_sum")
        if not daily:
            return ProviderFailure(f"{self.PROVIDER}: invalid response structure", provider=self.PROVIDER)

        values = [float(v) for v in daily if v is not None]
        if not values:
            return ProviderFailure(f"{self.PROVIDER}: no valid precipitation values", provider=self.PROVIDER)

        avg_daily = sum(values) / len(values)
        log.debug(f"Precipitation: {len(values)} days at ({lat:.4f}, {lng:.4f})")
        return Ok(ClimateSample(
            latitude=lat,
            longitude=lng,
            avg_daily_precipitation=round(avg_daily, 2),
            annual_precipitation=float(round(avg_daily * DAYS_PER_YEAR)),
            data_points=len(values),
            source=f"{self.PROVIDER} ({self.settings.precipitation_past_days} days historical)",
            is_real=True,
        ))

    def fetch_forecast(self, lat: float, lng: float, days: int = 3) -> Result[RainfallForecast]:
        """Hourly rainfall forecast; hours without rain are dropped."""
        params = {
            "latitude": lat,
            "longitude": lng,
            "hourly": "precipitation,precipitation_probability",
            "forecast_days": days,
            "timezone": "auto",
        }
        try:
            payload = self._make_request(
                "GET", self.FORECAST_URL,
                timeout=self.settings.precipitation_timeout,
                params=params,
            )
            hourly = payload["hourly"]
            probabilities = hourly.get("precipitation_probability") or []
            entries = []
            for i, (time, amount) in enumerate(zip(hourly["time"], hourly["precipitation"])):
                if amount is None or amount <= 0:
                    continue
                probability = probabilities[i] if i < len(probabilities) else None
                entries.append(HourlyRainfall(time=time, precipitation=float(amount), probability=probability))
        except (requests.RequestException, KeyError, ValueError, TypeError, AttributeError) as e:
            failure = describe_failure(self.PROVIDER, e)
            log.error(f"Rainfall forecast failed for ({lat}, {lng}): {failure.reason}")
            return failure

        daily_totals: Dict[str, float] = defaultdict(float)
        for entry in entries:
            daily_totals[entry.time.split("T")[0]] += entry.precipitation

        return Ok(RainfallForecast(
            latitude=lat,
            longitude=lng,
            hourly=entries,
            daily_totals=dict(daily_totals),
            total_precipitation=sum(e.precipitation for e in entries),
            source="Open-Meteo API (forecast)",
            is_real=True,
        ))


class ModelAirQualityLoader(ProviderClient):
    """Open-Meteo air-quality API (CAMS model) - one estimate per point."""

    PROVIDER = "CAMS Model (Open-Meteo)"
    AIR_QUALITY_URL = "https://air-quality-api.open-meteo.com/v1/air-quality"

    def fetch_estimate(self, lat: float, lng: float) -> Result[AirQualityStation]:
        log.info(f"Fetching CAMS model air quality for ({lat:.4f}, {lng:.4f})")
        params = {
            "latitude": lat,
            "longitude": lng,
            "current": "pm10,pm2_5,nitrogen_dioxide,ozone,us_aqi",
            "timezone": "auto",
        }
        try:
            payload = self._make_request(
                "GET", self.AIR_QUALITY_URL,
                timeout=self.settings.model_air_quality_timeout,
                params=params,
            )
            return self._normalize_current(payload, lat, lng)
        except (requests.RequestException, KeyError, ValueError, TypeError, AttributeError) as e:
            failure = describe_failure(self.PROVIDER, e)
            log.error(f"Model air quality failed: {failure.reason}")
            return failure

    def _normalize_current(self, payload: Dict, lat: float, lng: float) -> Result[AirQualityStation]:
        current = payload.get("current") if isinstance(payload, dict) else None
        if not current or current.get("pm2_5") is None:
            return ProviderFailure(f"{self.PROVIDER}: no current PM2.5 estimate", provider=self.PROVIDER)

        now = datetime.now(timezone.utc).isoformat()
        measurements = {"pm25": Measurement(value=float(current["pm2_5"]), last_updated=now)}
        for key, name in (("pm10", "pm10"), ("nitrogen_dioxide", "no2"), ("ozone", "o3")):
            value: Optional[float] = current.get(key)
            if value:
                measurements[name] = Measurement(value=float(value))

        aqi = current.get("us_aqi") or calculate_aqi(measurements["pm25"].value)
        aqi = int(aqi)
        return Ok(AirQualityStation(
            id="model_estimate",
            name="Model Estimate (CAMS)",
            latitude=lat,
            longitude=lng,
            measurements=measurements,
            aqi=aqi,
            aqi_category=aqi_category(aqi),
            color=aqi_color(aqi),
            source_type="model",
        ))
