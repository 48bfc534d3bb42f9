"""
Turn a transit itinerary into timestamped meeting-point candidates.

Real departure/arrival stops are emitted for every transit leg. Long legs
get up to four virtual stops spread along their path, and long walking
connectors get one virtual stop at their middle.
"""
import logging
from typing import List

from .models import RouteResult, StopCandidate

logger = logging.getLogger(__name__)

MIN_STOPS_FOR_VIRTUAL = 3          # leg must cover more than this many stops
MIN_PATH_POINTS_FOR_VIRTUAL = 10   # and have a path with more points than this
MAX_VIRTUAL_STOPS_PER_LEG = 4
LONG_WALK_SECONDS = 600
DEDUP_DEGREES = 0.0001             # about 11 m


def _line_label(name) -> str:
    return name or "transit"


def extract_transit_stops(route: RouteResult, include_virtual: bool = True) -> List[StopCandidate]:
    """Ordered-by-time candidate stops; a pure function of the route"""
    stops: List[StopCandidate] = []
    elapsed = 0

    for leg in route.transit_legs:
        start = elapsed
        elapsed += leg.duration_seconds

        if leg.is_transit:
            if leg.departure_stop is not None:
                stops.append(StopCandidate(leg.departure_stop.point,
                                           leg.departure_stop.name or "Transit Stop", start))
            if leg.arrival_stop is not None:
                stops.append(StopCandidate(leg.arrival_stop.point,
                                           leg.arrival_stop.name or "Transit Stop", elapsed))

            path = leg.path_points
            if (include_virtual and leg.stop_count > MIN_STOPS_FOR_VIRTUAL
                    and len(path) > MIN_PATH_POINTS_FOR_VIRTUAL):
                count = min(MAX_VIRTUAL_STOPS_PER_LEG, len(path) // 4)
                for i in range(1, count + 1):
                    idx = i * len(path) // (count + 1)
                    at = start + round(i * leg.duration_seconds / (count + 1))
                    stops.append(StopCandidate(path[idx], f"Virtual stop on {_line_label(leg.line_name)}",
                                               at, virtual=True))
        elif include_virtual and leg.duration_seconds > LONG_WALK_SECONDS and leg.path_points:
            mid = leg.path_points[len(leg.path_points) // 2]
            at = elapsed - round(leg.duration_seconds / 2)
            stops.append(StopCandidate(mid, "Walking connection", at, virtual=True))

    unique = dedupe_stops(stops)
    unique.sort(key=lambda s: s.time_from_origin)
    logger.debug("Extracted %d candidate stops (%d before dedupe)", len(unique), len(stops))
    return unique


def dedupe_stops(stops: List[StopCandidate]) -> List[StopCandidate]:
    """Drop stops within DEDUP_DEGREES of an earlier one in both axes"""
    kept: List[StopCandidate] = []
    for stop in stops:
        if any(abs(k.point.lat - stop.point.lat) < DEDUP_DEGREES
               and abs(k.point.lng - stop.point.lng) < DEDUP_DEGREES for k in kept):
            continue
        kept.append(stop)
    return kept
