import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from .cache import CACHE_TTL_SECONDS, PlaceKey, QueryCache
from .cross_mode import stationary_walker, transit_stop_matching, walker_transit_probe
from .errors import EngineInternalError, OracleAuthError, OracleError
from .geometry import arithmetic_midpoint
from .models import (
    ErrorKind, FairnessReport, GeoPoint, MeetingPointResult, Place, RouteResult, Scenario, TravelMode,
    FAIR_ABSOLUTE_SECONDS,
)
from .oracle import PlaceSearchOracle, RoutingOracle
from .places import DEFAULT_CATEGORY, DEFAULT_RADIUS_M, SUPPORTED_CATEGORIES, rank_places, search_radius
from .request_queue import REQUEST_DELAY_SECONDS, RequestQueue
from .same_mode import same_mode_search

logger = logging.getLogger(__name__)

Strategy = Callable[[RequestQueue, GeoPoint, GeoPoint, TravelMode, TravelMode], Awaitable[MeetingPointResult]]

_D, _T, _W = TravelMode.DRIVING, TravelMode.TRANSIT, TravelMode.WALKING

SCENARIOS: Dict[Tuple[TravelMode, TravelMode], Scenario] = {
    (_D, _D): Scenario.SAME_MODE,
    (_W, _W): Scenario.SAME_MODE,
    (_T, _T): Scenario.SAME_MODE,
    (_W, _D): Scenario.STATIONARY_WALKER,
    (_D, _W): Scenario.STATIONARY_WALKER,
    (_T, _D): Scenario.TRANSIT_STOP_MATCHING,
    (_D, _T): Scenario.TRANSIT_STOP_MATCHING,
    (_W, _T): Scenario.WALKER_TRANSIT_PROBE,
    (_T, _W): Scenario.WALKER_TRANSIT_PROBE,
}

STRATEGIES: Dict[Scenario, Strategy] = {
    Scenario.SAME_MODE: same_mode_search,
    Scenario.STATIONARY_WALKER: stationary_walker,
    Scenario.TRANSIT_STOP_MATCHING: transit_stop_matching,
    Scenario.WALKER_TRANSIT_PROBE: walker_transit_probe,
}


def select_scenario(mode_a: TravelMode, mode_b: TravelMode) -> Scenario:
    return SCENARIOS[(mode_a, mode_b)]


def _as_point(value) -> GeoPoint:
    if isinstance(value, GeoPoint):
        return value
    return GeoPoint.from_dict(value)


class MeetingPointEngine:
    """
    Resolves fair meeting points for two parties.

    One engine is one session: the route/place caches, the request queue and
    the "API key denied" flag live on the instance. Every routing query goes
    through the queue, which in turn goes through the route cache.
    """

    def __init__(
        self,
        routing_oracle: RoutingOracle,
        place_oracle: Optional[PlaceSearchOracle] = None,
        cache_ttl_seconds: float = CACHE_TTL_SECONDS,
        request_delay_seconds: float = REQUEST_DELAY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        probe_auth: bool = True,
    ):
        self.routing_oracle = routing_oracle
        self.place_oracle = place_oracle
        self.route_cache: QueryCache[RouteResult] = QueryCache('directions', cache_ttl_seconds, clock)
        self.place_cache: QueryCache[list] = QueryCache('places', cache_ttl_seconds, clock)
        self.queue = RequestQueue(routing_oracle, self.route_cache, request_delay_seconds)
        self.probe_auth = probe_auth
        self._auth_checked = False
        self._auth_failed = False

    @property
    def auth_failed(self) -> bool:
        return self._auth_failed

    def _fallback(self, coords_a: GeoPoint, coords_b: GeoPoint, kind: ErrorKind) -> MeetingPointResult:
        return MeetingPointResult(arithmetic_midpoint(coords_a, coords_b), used_fallback=True,
                                  error_kind=kind, strategy=Scenario.ARITHMETIC_MIDPOINT)

    async def _check_auth(self, coords_a: GeoPoint, coords_b: GeoPoint):
        """First query of a session: A to the arithmetic midpoint by car"""
        try:
            await self.queue.route(coords_a, arithmetic_midpoint(coords_a, coords_b), TravelMode.DRIVING)
        except OracleAuthError:
            raise
        except OracleError as e:
            # only a denied key matters here; the strategies handle the rest
            logger.debug("Auth probe returned %s", e.kind.value)
        self._auth_checked = True

    async def resolve_meeting_point(
        self,
        coords_a: GeoPoint,
        coords_b: GeoPoint,
        mode_a: TravelMode,
        mode_b: TravelMode,
    ) -> MeetingPointResult:
        """
        Find the meeting point. Oracle and engine failures never escape:
        they are reported through used_fallback/error_kind.
        """
        coords_a, coords_b = _as_point(coords_a), _as_point(coords_b)
        mode_a, mode_b = TravelMode.parse(mode_a), TravelMode.parse(mode_b)

        if self._auth_failed:
            logger.warning("API key previously denied, using arithmetic midpoint")
            return self._fallback(coords_a, coords_b, ErrorKind.AUTH)

        scenario = select_scenario(mode_a, mode_b)
        if coords_a == coords_b:
            route_a = RouteResult.stationary(coords_a, mode_a)
            route_b = RouteResult.stationary(coords_b, mode_b)
            if scenario in (Scenario.STATIONARY_WALKER, Scenario.WALKER_TRANSIT_PROBE):
                # the walker stays put and has no route
                if mode_a == _W:
                    route_a = None
                else:
                    route_b = None
            return MeetingPointResult(coords_a, route_a, route_b, strategy=scenario)

        logger.info("Resolving %s/%s meeting point with %s strategy",
                    mode_a.value, mode_b.value, scenario.value)
        try:
            if self.probe_auth and not self._auth_checked:
                await self._check_auth(coords_a, coords_b)
            return await STRATEGIES[scenario](self.queue, coords_a, coords_b, mode_a, mode_b)
        except OracleAuthError as e:
            logger.error("Routing API key not authorized (%s); falling back to arithmetic midpoint "
                         "for the rest of the session", e)
            self._auth_failed = True
            return self._fallback(coords_a, coords_b, ErrorKind.AUTH)
        except EngineInternalError as e:
            logger.warning("Engine error, using arithmetic midpoint: %s", e)
            return self._fallback(coords_a, coords_b, ErrorKind.INTERNAL)
        except OracleError as e:
            logger.warning("Oracle error escaped %s strategy: %s", scenario.value, e)
            return self._fallback(coords_a, coords_b, e.kind)
        except Exception:
            logger.exception("Unexpected error while resolving meeting point")
            return self._fallback(coords_a, coords_b, ErrorKind.INTERNAL)

    @staticmethod
    def search_radius(mode_a: TravelMode, mode_b: TravelMode) -> int:
        return search_radius(TravelMode.parse(mode_a), TravelMode.parse(mode_b))

    async def find_places(self, point: GeoPoint, category: str = DEFAULT_CATEGORY,
                          radius: Optional[int] = None) -> List[Place]:
        """Nearby places ranked by rating. Oracle errors propagate to the caller."""
        if self.place_oracle is None:
            raise RuntimeError("No place-search oracle configured")
        point = _as_point(point)
        category = (category or DEFAULT_CATEGORY).lower()
        if category not in SUPPORTED_CATEGORIES:
            raise ValueError(f"Unsupported place category: {category}")
        if radius is None:
            radius = DEFAULT_RADIUS_M
        elif radius <= 0:
            raise ValueError("Search radius must be positive")
        results = await self.place_cache.get_or_fetch(
            PlaceKey.build(point, category, radius),
            lambda: self.place_oracle.nearby_search(point, category, radius),
        )
        places = rank_places(results, point)
        logger.info("Found %d %s places within %dm", len(places), category, radius)
        return places

    async def evaluate_place(self, coords_a: GeoPoint, coords_b: GeoPoint,
                             mode_a: TravelMode, mode_b: TravelMode,
                             place: GeoPoint) -> Optional[FairnessReport]:
        """Route both parties to a chosen place and report how fair it is"""
        coords_a, coords_b, place = _as_point(coords_a), _as_point(coords_b), _as_point(place)
        mode_a, mode_b = TravelMode.parse(mode_a), TravelMode.parse(mode_b)
        if self._auth_failed:
            return None
        try:
            route_a, route_b = await asyncio.gather(
                self.queue.route(coords_a, place, mode_a),
                self.queue.route(coords_b, place, mode_b),
            )
        except OracleAuthError as e:
            logger.error("Routing API key not authorized: %s", e)
            self._auth_failed = True
            return None
        except OracleError as e:
            logger.warning("Could not route both parties to place %s: %s", place, e)
            return None
        report = FairnessReport.from_times(route_a.total_duration_seconds, route_b.total_duration_seconds)
        if report.difference_seconds > FAIR_ABSOLUTE_SECONDS:
            logger.info("Travel times to this place differ by %d minutes",
                        round(report.difference_seconds / 60))
        return report

    def metrics(self) -> Dict:
        return {
            'directions': self.route_cache.metrics.to_dict(),
            'places': self.place_cache.metrics.to_dict(),
            'queue': self.queue.metrics.to_dict(),
            'auth_failed': self._auth_failed,
        }

    def reset_metrics(self):
        self.route_cache.reset_metrics()
        self.place_cache.reset_metrics()
        self.queue.reset_metrics()
