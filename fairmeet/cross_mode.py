"""
Resolution strategies for parties using different travel modes.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .errors import OracleAuthError, OracleError
from .models import (
    ErrorKind, GeoPoint, MeetingPointResult, RouteResult, Scenario, StopCandidate, TravelMode,
)
from .request_queue import RequestQueue
from .transit_stops import extract_transit_stops

logger = logging.getLogger(__name__)

# --- Transit-stop matching ---
NEAR_TIE_SECONDS = 180
ACCEPTABLE_GAP_SECONDS = 600
MIN_STOPS_FOR_BIAS = 5
# (driving/transit ratio upper bound, multiplier applied to transit times)
BIAS_BANDS = ((0.5, 0.7), (0.7, 0.8), (0.9, 0.9))

# --- Walker/transit probe ---
LONG_TRANSIT_SECONDS = 2700
PROBE_TARGET_SHARE = 0.6
MAX_WALK_TO_STOP_SECONDS = 1800


def _assign(mover_is_a: bool, mover_route: Optional[RouteResult],
            stayer_route: Optional[RouteResult] = None) -> Tuple[Optional[RouteResult], Optional[RouteResult]]:
    """Order (mover, stayer) routes as (route_a, route_b)"""
    if mover_is_a:
        return mover_route, stayer_route
    return stayer_route, mover_route


async def _stay_in_place(
    queue: RequestQueue,
    stayer: GeoPoint,
    mover: GeoPoint,
    mover_mode: TravelMode,
    mover_is_a: bool,
    scenario: Scenario,
    used_fallback: bool = False,
    error_kind: Optional[ErrorKind] = None,
) -> MeetingPointResult:
    """Meet at the stayer's location; only the mover gets a route"""
    try:
        route = await queue.route(mover, stayer, mover_mode)
    except OracleAuthError:
        raise
    except OracleError as e:
        logger.warning("No %s route to the stationary party: %s", mover_mode.value.lower(), e)
        return MeetingPointResult(stayer, used_fallback=True,
                                  error_kind=error_kind or e.kind, strategy=scenario)

    route_a, route_b = _assign(mover_is_a, route)
    return MeetingPointResult(stayer, route_a, route_b, used_fallback=used_fallback,
                              error_kind=error_kind, strategy=scenario)


async def stationary_walker(
    queue: RequestQueue,
    coords_a: GeoPoint,
    coords_b: GeoPoint,
    mode_a: TravelMode,
    mode_b: TravelMode,
) -> MeetingPointResult:
    """The walker stays put and the driver comes to them"""
    a_walks = mode_a == TravelMode.WALKING
    walker, driver = (coords_a, coords_b) if a_walks else (coords_b, coords_a)
    driver_mode = mode_b if a_walks else mode_a
    logger.info("Walking vs %s: meeting at walker location %s", driver_mode.value.lower(), walker)
    return await _stay_in_place(queue, walker, driver, driver_mode, mover_is_a=not a_walks,
                                scenario=Scenario.STATIONARY_WALKER)


@dataclass(frozen=True)
class StopMatch:
    index: int
    difference: float
    total: int


def pick_balanced_stop(
    stops: Sequence[StopCandidate],
    driving_times: Sequence[Optional[int]],
    transit_scale: float = 1.0,
    start: Optional[StopMatch] = None,
) -> Optional[StopMatch]:
    """
    Minimize |transit*scale - driving|. A stop within NEAR_TIE_SECONDS of the
    current best with a lower combined time replaces it.
    """
    best = start
    for i, stop in enumerate(stops):
        driving = driving_times[i]
        if driving is None:
            continue
        transit = stop.time_from_origin
        diff = abs(transit * transit_scale - driving)
        total = transit + driving
        if best is None or diff < best.difference:
            best = StopMatch(i, diff, total)
        elif diff < best.difference + NEAR_TIE_SECONDS and total < best.total:
            best = StopMatch(i, diff, total)
    return best


def bias_multiplier(driving_time: int, transit_time: int) -> float:
    """Empirical correction keyed to how much faster driving is than transit"""
    if transit_time <= 0:
        return 1.0
    ratio = driving_time / transit_time
    for upper, multiplier in BIAS_BANDS:
        if ratio < upper:
            return multiplier
    return 1.0


async def _driving_times(queue: RequestQueue, driver: GeoPoint, driver_mode: TravelMode,
                         stops: Sequence[StopCandidate]) -> Tuple[List[Optional[int]], List[Optional[RouteResult]]]:
    results = await asyncio.gather(
        *(queue.route(driver, stop.point, driver_mode) for stop in stops),
        return_exceptions=True,
    )
    times: List[Optional[int]] = []
    routes: List[Optional[RouteResult]] = []
    for stop, res in zip(stops, results):
        if isinstance(res, OracleAuthError):
            raise res
        if isinstance(res, OracleError):
            logger.warning("Skipping stop %s: %s", stop.name, res)
            times.append(None)
            routes.append(None)
        elif isinstance(res, BaseException):
            raise res
        else:
            times.append(res.total_duration_seconds)
            routes.append(res)
    return times, routes


async def transit_stop_matching(
    queue: RequestQueue,
    coords_a: GeoPoint,
    coords_b: GeoPoint,
    mode_a: TravelMode,
    mode_b: TravelMode,
) -> MeetingPointResult:
    """Meet at the transit stop where transit and driving times are closest"""
    a_transit = mode_a == TravelMode.TRANSIT
    rider, driver = (coords_a, coords_b) if a_transit else (coords_b, coords_a)
    driver_mode = mode_b if a_transit else mode_a
    scenario = Scenario.TRANSIT_STOP_MATCHING

    async def meet_at_rider(error_kind: Optional[ErrorKind] = None) -> MeetingPointResult:
        return await _stay_in_place(queue, rider, driver, driver_mode, mover_is_a=not a_transit,
                                    scenario=scenario, used_fallback=True, error_kind=error_kind)

    try:
        transit_route = await queue.route(rider, driver, TravelMode.TRANSIT)
    except OracleAuthError:
        raise
    except OracleError as e:
        logger.info("No transit route available (%s), meeting at transit user location", e)
        return await meet_at_rider(e.kind)

    stops = extract_transit_stops(transit_route)
    if not stops:
        logger.info("Transit route has no stops, meeting at transit user location")
        return await meet_at_rider()

    logger.info("Transit vs driving: evaluating %d stops", len(stops))
    driving_times, driving_routes = await _driving_times(queue, driver, driver_mode, stops)

    best = pick_balanced_stop(stops, driving_times)
    if best is None:
        logger.warning("Driver could not be routed to any stop")
        return await meet_at_rider(ErrorKind.NO_ROUTE)

    if best.difference > ACCEPTABLE_GAP_SECONDS and len(stops) > MIN_STOPS_FOR_BIAS:
        multiplier = bias_multiplier(driving_times[best.index], stops[best.index].time_from_origin)
        if multiplier < 1.0:
            logger.info("No well-balanced stop (best gap %ss), applying bias multiplier %.1f",
                        round(best.difference), multiplier)
            biased = pick_balanced_stop(stops, driving_times, transit_scale=multiplier, start=best)
            if biased.index != best.index:
                logger.info("Biased selection prefers stop %d over %d", biased.index, best.index)
                best = biased

    stop = stops[best.index]
    logger.info("Selected stop %s: transit %ss, driving %ss", stop.name,
                stop.time_from_origin, driving_times[best.index])

    try:
        transit_to_stop = await queue.route(rider, stop.point, TravelMode.TRANSIT)
    except OracleAuthError:
        raise
    except OracleError as e:
        logger.warning("No transit directions to the selected stop (%s)", e)
        return await meet_at_rider(e.kind)

    route_a, route_b = _assign(a_transit, transit_to_stop, driving_routes[best.index])
    return MeetingPointResult(stop.point, route_a, route_b, strategy=scenario)


async def walker_transit_probe(
    queue: RequestQueue,
    coords_a: GeoPoint,
    coords_b: GeoPoint,
    mode_a: TravelMode,
    mode_b: TravelMode,
) -> MeetingPointResult:
    """
    The walker normally stays put. When the transit ride to them is very
    long, probe a real stop around 60% of the ride that the walker can reach.
    """
    a_walks = mode_a == TravelMode.WALKING
    walker, rider = (coords_a, coords_b) if a_walks else (coords_b, coords_a)
    scenario = Scenario.WALKER_TRANSIT_PROBE

    try:
        transit_route = await queue.route(rider, walker, TravelMode.TRANSIT)
    except OracleAuthError:
        raise
    except OracleError as e:
        logger.warning("No transit route to the walker: %s", e)
        return MeetingPointResult(walker, used_fallback=True, error_kind=e.kind, strategy=scenario)

    transit_time = transit_route.total_duration_seconds
    if transit_time > LONG_TRANSIT_SECONDS:
        met = await _probe_intermediate_stop(queue, walker, rider, a_walks, transit_route)
        if met is not None:
            return met

    route_a, route_b = _assign(not a_walks, transit_route)
    return MeetingPointResult(walker, route_a, route_b, strategy=scenario)


async def _probe_intermediate_stop(queue: RequestQueue, walker: GeoPoint, rider: GeoPoint,
                                   a_walks: bool, transit_route: RouteResult) -> Optional[MeetingPointResult]:
    transit_time = transit_route.total_duration_seconds
    stops = extract_transit_stops(transit_route, include_virtual=False)
    if len(stops) <= 2:
        return None

    target = transit_time * PROBE_TARGET_SHARE
    stop = min(stops, key=lambda s: abs(s.time_from_origin - target))
    logger.info("Transit ride is %d min, probing stop %s", round(transit_time / 60), stop.name)

    try:
        walk = await queue.route(walker, stop.point, TravelMode.WALKING)
        walk_time = walk.total_duration_seconds
        if walk_time >= MAX_WALK_TO_STOP_SECONDS or abs(walk_time - stop.time_from_origin) >= transit_time:
            return None
        ride = await queue.route(rider, stop.point, TravelMode.TRANSIT)
    except OracleAuthError:
        raise
    except OracleError as e:
        logger.warning("Intermediate stop probe failed: %s", e)
        return None

    logger.info("Meeting at intermediate stop %s", stop.name)
    route_a, route_b = (walk, ride) if a_walks else (ride, walk)
    return MeetingPointResult(stop.point, route_a, route_b, strategy=Scenario.WALKER_TRANSIT_PROBE)
