"""Google Distance Matrix adapter for the distance capability."""

import requests
import structlog

from fulfillment.geo.port import DistanceCapability, DistanceLookupError, DistanceResult, LookupFailure
from fulfillment.money import round2

logger = structlog.get_logger(__name__)

DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"


class GoogleDistanceMatrix(DistanceCapability):
    """Driving distance via the Distance Matrix API.

    Every call is bounded by ``timeout`` seconds and is never retried: a failed
    lookup is reported to the caller, who rejects the checkout.
    """

    def __init__(self, api_key: str, timeout: float = 5.0, session: requests.Session | None = None) -> None:
        if not api_key:
            raise ValueError("A Google Maps API key is required")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def distance(self, origin: str, destination: str) -> DistanceResult:
        params = {
            "origins": origin,
            "destinations": destination,
            "key": self.api_key,
            "mode": "driving",
            "units": "metric",
        }
        try:
            response = self.session.get(DISTANCE_MATRIX_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Distance lookup failed", origin=origin, destination=destination, error=str(exc))
            raise DistanceLookupError(LookupFailure.NETWORK, str(exc)) from exc

        return self._parse(payload)

    @staticmethod
    def _parse(payload: dict) -> DistanceResult:
        if payload.get("status") != "OK":
            detail = payload.get("error_message") or payload.get("status", "unknown status")
            raise DistanceLookupError(LookupFailure.UNRESOLVABLE, detail)

        try:
            element = payload["rows"][0]["elements"][0]
        except (KeyError, IndexError, TypeError):
            raise DistanceLookupError(LookupFailure.UNRESOLVABLE, "Empty distance matrix") from None

        if element.get("status") != "OK":
            raise DistanceLookupError(LookupFailure.UNRESOLVABLE, element.get("status", "no route"))

        distance_km = round2(element["distance"]["value"] / 1000)
        duration = element.get("duration", {}).get("value")
        duration_minutes = round(duration / 60) if duration is not None else None
        return DistanceResult(distance_km=distance_km, duration_minutes=duration_minutes)
