"""
Geometry and time helpers.

Candidate points are produced with plain equirectangular lat/lng
interpolation; only distance_m goes through geopy.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence

from geopy.distance import geodesic

from .models import GeoPoint, RoutePoint


def arithmetic_midpoint(a: GeoPoint, b: GeoPoint) -> GeoPoint:
    return GeoPoint((a.lat + b.lat) / 2, (a.lng + b.lng) / 2)


def interpolate(a: GeoPoint, b: GeoPoint, frac: float) -> GeoPoint:
    """Point at frac of the way from a to b (0 -> a, 1 -> b)"""
    return GeoPoint(
        a.lat + (b.lat - a.lat) * frac,
        a.lng + (b.lng - a.lng) * frac,
    )


def distance_m(a: GeoPoint, b: GeoPoint) -> float:
    return geodesic(a.as_tuple(), b.as_tuple()).meters


def nearest_point(target: GeoPoint, points: Sequence[GeoPoint]) -> Optional[GeoPoint]:
    best = None
    best_dist = float('inf')
    for p in points:
        d = distance_m(target, p)
        if d < best_dist:
            best, best_dist = p, d
    return best


@dataclass(frozen=True)
class TimeInterpolation:
    point: GeoPoint
    before: RoutePoint
    after: RoutePoint
    fraction: float


def interpolate_at_time(polyline: Sequence[RoutePoint], target_seconds: float) -> Optional[TimeInterpolation]:
    """
    Find the first consecutive pair whose elapsed times bracket target_seconds
    and interpolate between them by time fraction. None when nothing brackets.
    """
    for i in range(len(polyline) - 1):
        before, after = polyline[i], polyline[i + 1]
        if before.elapsed_seconds <= target_seconds <= after.elapsed_seconds:
            span = after.elapsed_seconds - before.elapsed_seconds
            frac = 0.0 if span == 0 else (target_seconds - before.elapsed_seconds) / span
            return TimeInterpolation(
                point=interpolate(before.point, after.point, frac),
                before=before,
                after=after,
                fraction=frac,
            )
    return None


def decode_polyline(polyline_str: Optional[str]) -> List[GeoPoint]:
    """Decode a Google Maps encoded polyline string into GeoPoints."""
    if not polyline_str:
        return []

    index = 0
    lat = 0
    lng = 0
    coordinates: List[GeoPoint] = []
    length = len(polyline_str)

    while index < length:
        deltas = []
        for _ in range(2):
            result = 0
            shift = 0
            while True:
                b = ord(polyline_str[index]) - 63
                index += 1
                result |= (b & 0x1f) << shift
                shift += 5
                if b < 0x20:
                    break
            deltas.append(~(result >> 1) if (result & 1) else (result >> 1))
        lat += deltas[0]
        lng += deltas[1]
        coordinates.append(GeoPoint(lat / 1e5, lng / 1e5))

    return coordinates
