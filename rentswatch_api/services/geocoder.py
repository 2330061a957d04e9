"""
Free-text geocoding against a Nominatim-compatible search endpoint.
Production-hardened: timeouts, logging, cached lookups.

Lookups happen before the statistics core is called; the core only ever
sees resolved coordinates.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import requests

from rentswatch_api.utils.cache import TTLCache
from rentswatch_api.utils.errors import InvalidQueryError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_URL = "https://nominatim.openstreetmap.org/search"
DEFAULT_USER_AGENT = "rentswatch-api/1.0"


@dataclass(frozen=True)
class GeocodeResult:
    latitude: float
    longitude: float
    display_name: str
    type: Optional[str] = None


class Geocoder:
    def __init__(
        self,
        url: str = DEFAULT_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 5.0,
        cache_ttl_sec: int = 3600,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.user_agent = user_agent
        self.timeout = timeout
        self.cache_ttl_sec = cache_ttl_sec
        self.session = session or requests.Session()
        self._cache = TTLCache()

    def geocode(self, query: str) -> Optional[GeocodeResult]:
        """
        Resolve `query` to the best matching place, or None when nothing matches.

        Raises UpstreamUnavailableError when the service cannot be reached or
        answers with something unusable.
        """
        q = (query or "").strip()
        if not q:
            raise InvalidQueryError("Empty geocoding query")

        key = q.lower()
        cached = self._cache.get(key)
        if cached is not None:
            # cached misses are stored as False
            return cached or None

        try:
            response = self.session.get(
                self.url,
                params={"q": q, "format": "json", "limit": 1},
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Geocoding request failed for %r: %s", q, e)
            raise UpstreamUnavailableError(f"Geocoding service unavailable: {e}") from e

        if not payload:
            logger.info("No geocoding match for %r", q)
            self._cache.set(key, False, ttl_sec=self.cache_ttl_sec)
            return None

        try:
            best = payload[0]
            result = GeocodeResult(
                latitude=float(best["lat"]),
                longitude=float(best["lon"]),
                display_name=best.get("display_name", q),
                type=best.get("type"),
            )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error("Malformed geocoding payload for %r: %s", q, e)
            raise UpstreamUnavailableError("Malformed geocoding response") from e

        self._cache.set(key, result, ttl_sec=self.cache_ttl_sec)
        return result
