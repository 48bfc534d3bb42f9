from abc import ABC, abstractmethod
from typing import List

from .models import GeoPoint, PlaceResult, RouteResult, TravelMode


class RoutingOracle(ABC):
    """External directions service queried by coordinate pairs"""

    @abstractmethod
    async def route(self, origin: GeoPoint, destination: GeoPoint, mode: TravelMode) -> RouteResult:
        """
        Return the fastest route for the given mode.
        Raises OracleAuthError, OracleNoRouteError or OracleTransientError.
        """


class PlaceSearchOracle(ABC):
    """External nearby-search service"""

    @abstractmethod
    async def nearby_search(self, center: GeoPoint, category: str, radius_meters: int) -> List[PlaceResult]:
        """Return places of the given category around center, in provider order"""
