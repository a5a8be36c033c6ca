"""
HTTP plumbing shared by every provider loader.

Each outbound request:
- waits on the shared RateLimiter (one spacing for all providers)
- has a bounded timeout
- is retried with exponential backoff on connection errors only

Provider failures are turned into ProviderFailure values, never raised.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.result import SoftFailure
from core.settings import EngineSettings
from loaders.throttle import RateLimiter

log = logging.getLogger(__name__)

USER_AGENT = "RoofHarvest/1.0 (environmental potential engine)"

_RETRY_ATTEMPTS = 2


@dataclass(frozen=True)
class ProviderFailure(SoftFailure):
    """A SoftFailure that remembers the provider status code, if any."""
    provider: str = ""
    status_code: Optional[int] = None

    @property
    def rate_limited(self) -> bool:
        return self.status_code == 429


def describe_failure(provider: str, exc: Exception) -> ProviderFailure:
    """Map a transport or parsing exception to a human-readable failure."""
    if isinstance(exc, requests.HTTPError):
        status = exc.response.status_code if exc.response is not None else None
        if status == 429:
            reason = f"{provider}: rate limit reached"
        else:
            reason = f"{provider}: HTTP {status}"
        return ProviderFailure(reason, provider=provider, status_code=status)
    if isinstance(exc, requests.Timeout):
        return ProviderFailure(f"{provider}: request timed out", provider=provider)
    if isinstance(exc, requests.ConnectionError):
        return ProviderFailure(f"{provider}: connection failed", provider=provider)
    if isinstance(exc, (KeyError, ValueError, TypeError, AttributeError)):
        return ProviderFailure(f"{provider}: malformed response ({exc})", provider=provider)
    return ProviderFailure(f"{provider}: {exc}", provider=provider)


class ProviderClient:
    """
    Base class for provider loaders.

    Subclasses build requests and normalize payloads; this class owns the
    throttled, retried transport.
    """

    PROVIDER = "upstream"

    def __init__(
        self,
        session: requests.Session,
        limiter: RateLimiter,
        settings: EngineSettings,
    ):
        self.session = session
        self.limiter = limiter
        self.settings = settings

    @retry(
        retry=retry_if_exception_type(requests.ConnectionError) & retry_if_not_exception_type(requests.Timeout),
        stop=stop_after_attempt(_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    def _make_request(
        self,
        method: str,
        url: str,
        timeout: float,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Make a rate-limited request with retry; returns decoded JSON."""
        self.limiter.acquire()
        if method == "POST":
            response = self.session.post(url, data=data, headers=headers, timeout=timeout)
        else:
            response = self.session.get(url, params=params, headers=headers, timeout=timeout)
        response.raise_for_status()
        return response.json()
