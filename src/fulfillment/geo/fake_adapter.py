"""Configurable fake distance capability for development and testing.

Distances are looked up by destination address, falling back to a default.
The adapter can be switched to fail with either failure kind.
"""

from fulfillment.geo.port import DistanceCapability, DistanceLookupError, DistanceResult, LookupFailure


class FakeDistance(DistanceCapability):
    def __init__(self, default_km: float = 3.0) -> None:
        self.default_km = default_km
        self.distances: dict[str, float] = {}
        self.failure: LookupFailure | None = None
        self.calls: list[dict] = []

    def set_distance(self, destination: str, distance_km: float) -> None:
        self.distances[destination] = distance_km

    def fail_with(self, kind: LookupFailure | None) -> None:
        """Make subsequent lookups fail with ``kind``; ``None`` restores success."""
        self.failure = kind

    def distance(self, origin: str, destination: str) -> DistanceResult:
        self.calls.append({"origin": origin, "destination": destination})

        if self.failure is not None:
            raise DistanceLookupError(self.failure, "configured failure")

        distance_km = self.distances.get(destination, self.default_km)
        return DistanceResult(distance_km=distance_km, duration_minutes=round(distance_km * 2))
