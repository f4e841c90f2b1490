"""Distance capability port (abstract interface).

Resolves the road distance between an agency and a customer address. The
engine only depends on this contract; the Google Distance Matrix adapter
is used in production and FakeDistance in development and tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class LookupFailure(Enum):
    NETWORK = "network"
    UNRESOLVABLE = "unresolvable"


@dataclass(frozen=True)
class DistanceResult:
    distance_km: float
    duration_minutes: int | None = None


class DistanceLookupError(Exception):
    """The distance could not be determined.

    ``kind`` separates transport failures (timeouts, HTTP errors) from lookups
    that completed but could not resolve an address or route.
    """

    def __init__(self, kind: LookupFailure, detail: str = ""):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


class DistanceCapability(ABC):
    @abstractmethod
    def distance(self, origin: str, destination: str) -> DistanceResult:
        """Return the driving distance between two free-text addresses.

        Raises:
            DistanceLookupError: on network failure or an unresolvable route.
        """
        ...
