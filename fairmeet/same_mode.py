"""
Same-mode candidate search.

Both parties use the same travel mode, so the fair point is first looked for
at half the travel time along the direct A->B route. When that route is not
usable or the result is unbalanced, weighted points on the A-B line are
tried and then refined by step-halving.
"""
import asyncio
import logging
from typing import Optional, Sequence, Tuple

from .errors import EngineInternalError, OracleAuthError, OracleError
from .geometry import arithmetic_midpoint, distance_m, interpolate, interpolate_at_time, nearest_point
from .models import (
    Candidate, ErrorKind, GeoPoint, MeetingPointResult, Scenario, TravelMode,
    percentage_difference,
)
from .request_queue import RequestQueue
from .transit_stops import extract_transit_stops

logger = logging.getLogger(__name__)

# --- Refinement constants ---
INITIAL_WEIGHTS = (0.5, 0.25, 0.75)
DOMINANT_WEIGHTS_TOWARD_A = (0.1, 0.02)
DOMINANT_WEIGHTS_TOWARD_B = (0.9, 0.98)
DOMINANCE_RATIO = 2.0
RELATIVE_TOLERANCE_PCT = 10.0
ABSOLUTE_TOLERANCE_SECONDS = 180
MAX_REFINEMENT_ROUNDS = 4
INITIAL_STEP = 0.125
MIN_WEIGHT = 0.02
MAX_WEIGHT = 0.98
TRANSIT_SNAP_RADIUS_M = 1000


def is_balanced(candidate: Candidate) -> bool:
    return (candidate.difference < ABSOLUTE_TOLERANCE_SECONDS
            or percentage_difference(candidate.time_from_a, candidate.time_from_b) < RELATIVE_TOLERANCE_PCT)


def is_dominated(candidate: Candidate) -> bool:
    """One party needs at least DOMINANCE_RATIO times as long as the other"""
    slower = max(candidate.time_from_a, candidate.time_from_b)
    faster = min(candidate.time_from_a, candidate.time_from_b)
    if faster <= 0:
        return slower > 0
    return slower / faster >= DOMINANCE_RATIO


async def evaluate_candidate(
    queue: RequestQueue,
    coords_a: GeoPoint,
    coords_b: GeoPoint,
    mode_a: TravelMode,
    mode_b: TravelMode,
    point: GeoPoint,
    weight: Optional[float] = None,
) -> Optional[Candidate]:
    """
    Query both parties' routes to point together. Returns None when either
    half failed with a recoverable oracle error; auth failures propagate.
    """
    results = await asyncio.gather(
        queue.route(coords_a, point, mode_a),
        queue.route(coords_b, point, mode_b),
        return_exceptions=True,
    )
    for res in results:
        if isinstance(res, OracleAuthError):
            raise res
    for res in results:
        if isinstance(res, OracleError):
            logger.warning("Skipping candidate %s: %s", point, res)
            return None
        if isinstance(res, BaseException):
            raise res

    route_a, route_b = results
    return Candidate(
        point=point,
        time_from_a=route_a.total_duration_seconds,
        time_from_b=route_b.total_duration_seconds,
        route_a=route_a,
        route_b=route_b,
        weight=weight,
    )


async def _try_weights(queue, coords_a, coords_b, mode_a, mode_b,
                       weights: Sequence[float], best: Optional[Candidate]) -> Optional[Candidate]:
    """Evaluate weights one at a time, stopping at the first balanced candidate"""
    for w in weights:
        cand = await evaluate_candidate(queue, coords_a, coords_b, mode_a, mode_b,
                                        interpolate(coords_a, coords_b, w), weight=w)
        if cand is None:
            continue
        logger.debug("Candidate w=%.2f: a=%ss b=%ss diff=%ss", w, cand.time_from_a,
                     cand.time_from_b, cand.difference)
        if cand.is_better_than(best):
            best = cand
        if is_balanced(cand):
            break
    return best


async def step_halving_search(
    queue: RequestQueue,
    coords_a: GeoPoint,
    coords_b: GeoPoint,
    mode_a: TravelMode,
    mode_b: TravelMode,
    best: Candidate,
    max_rounds: int = MAX_REFINEMENT_ROUNDS,
) -> Candidate:
    """
    Move the candidate toward the party with the longer travel time, halving
    the step every round. Runs at most max_rounds rounds.

    Stepping toward the slower party shortens the longer trip, so the gap
    narrows. This is the reverse of moving toward the party with the shorter
    time, which only widens an already unbalanced split.
    """
    weight = best.weight if best.weight is not None else 0.5
    step = INITIAL_STEP
    for round_no in range(1, max_rounds + 1):
        if best.difference < ABSOLUTE_TOLERANCE_SECONDS:
            break
        direction = -1 if best.time_from_a > best.time_from_b else 1
        probe = min(MAX_WEIGHT, max(MIN_WEIGHT, weight + direction * step))
        step /= 2
        cand = await evaluate_candidate(queue, coords_a, coords_b, mode_a, mode_b,
                                        interpolate(coords_a, coords_b, probe), weight=probe)
        if cand is not None and cand.is_better_than(best):
            best = cand
            weight = probe
        logger.debug("Refinement round %d: w=%.4f best diff=%ss", round_no, probe, best.difference)
    return best


async def refine_candidates(
    queue: RequestQueue,
    coords_a: GeoPoint,
    coords_b: GeoPoint,
    mode_a: TravelMode,
    mode_b: TravelMode,
    seed: Optional[Candidate] = None,
) -> Optional[Candidate]:
    """Multi-candidate search along the A-B line, keeping only the current best"""
    best = await _try_weights(queue, coords_a, coords_b, mode_a, mode_b, INITIAL_WEIGHTS, seed)
    if best is None or is_balanced(best):
        return best

    if is_dominated(best):
        toward_a = best.time_from_a > best.time_from_b
        extra = DOMINANT_WEIGHTS_TOWARD_A if toward_a else DOMINANT_WEIGHTS_TOWARD_B
        logger.info("Travel times strongly unbalanced, extending candidates toward %s",
                    'A' if toward_a else 'B')
        best = await _try_weights(queue, coords_a, coords_b, mode_a, mode_b, extra, best)
        if is_balanced(best):
            return best

    return await step_halving_search(queue, coords_a, coords_b, mode_a, mode_b, best)


async def direct_route_midpoint(
    queue: RequestQueue,
    coords_a: GeoPoint,
    coords_b: GeoPoint,
    mode: TravelMode,
) -> Tuple[GeoPoint, Optional[Candidate]]:
    """
    Point at half the direct route's travel time, plus both parties' routes
    to it (None when those could not be fetched).
    """
    direct = await queue.route(coords_a, coords_b, mode)
    halfway = direct.total_duration_seconds / 2
    located = interpolate_at_time(direct.polyline, halfway)
    if located is None:
        raise EngineInternalError("Direct route polyline does not bracket the halfway time")

    point = located.point
    logger.debug("Halfway %.0fs between %ss and %ss (fraction %.3f)", halfway,
                 located.before.elapsed_seconds, located.after.elapsed_seconds, located.fraction)

    if mode == TravelMode.TRANSIT:
        stops = extract_transit_stops(direct)
        if stops:
            closest = nearest_point(point, [s.point for s in stops])
            if distance_m(point, closest) < TRANSIT_SNAP_RADIUS_M:
                logger.info("Snapping transit midpoint to stop at %s", closest)
                point = closest

    candidate = await evaluate_candidate(queue, coords_a, coords_b, mode, mode, point)
    return point, candidate


def result_from_candidate(candidate: Candidate, scenario: Scenario) -> MeetingPointResult:
    return MeetingPointResult(
        point=candidate.point,
        route_a=candidate.route_a,
        route_b=candidate.route_b,
        strategy=scenario,
    )


async def same_mode_search(
    queue: RequestQueue,
    coords_a: GeoPoint,
    coords_b: GeoPoint,
    mode_a: TravelMode,
    mode_b: TravelMode,
) -> MeetingPointResult:
    mode = mode_a
    direct_point = None
    direct = None
    error_kind = None

    try:
        direct_point, direct = await direct_route_midpoint(queue, coords_a, coords_b, mode)
    except OracleAuthError:
        raise
    except OracleError as e:
        logger.warning("Direct route interpolation unavailable (%s), refining candidates", e)
        error_kind = e.kind

    if direct is not None and is_balanced(direct):
        return result_from_candidate(direct, Scenario.SAME_MODE)

    best = await refine_candidates(queue, coords_a, coords_b, mode, mode, seed=direct)
    if best is not None:
        return result_from_candidate(best, Scenario.SAME_MODE)

    if direct_point is not None:
        # halfway point is known but nobody could be routed to it
        return MeetingPointResult(direct_point, used_fallback=True,
                                  error_kind=error_kind or ErrorKind.TRANSIENT,
                                  strategy=Scenario.SAME_MODE)
    return MeetingPointResult(arithmetic_midpoint(coords_a, coords_b), used_fallback=True,
                              error_kind=error_kind or ErrorKind.NO_ROUTE,
                              strategy=Scenario.SAME_MODE)
