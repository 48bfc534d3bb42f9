import asyncio
import concurrent.futures
import logging
from typing import Dict, List, Optional

import googlemaps
from googlemaps.exceptions import ApiError, Timeout, TransportError

from .errors import OracleAuthError, OracleError, OracleNoRouteError, OracleTransientError
from .geometry import decode_polyline
from .models import GeoPoint, PlaceResult, RouteResult, RoutePoint, TransitLeg, TransitStop, TravelMode
from .oracle import PlaceSearchOracle, RoutingOracle

logger = logging.getLogger(__name__)

PLACEHOLDER_API_KEY = "your_api_key_here"
MAX_PLACE_RESULTS = 20

_NO_ROUTE_STATUSES = ('ZERO_RESULTS', 'NOT_FOUND')


def _location(data: Dict) -> GeoPoint:
    return GeoPoint(float(data['lat']), float(data['lng']))


def _coords(point: GeoPoint) -> str:
    return f"{point.lat},{point.lng}"


def classify_api_error(exc: Exception) -> OracleError:
    """Map a googlemaps exception onto the oracle error taxonomy"""
    if isinstance(exc, ApiError):
        if exc.status == 'REQUEST_DENIED':
            return OracleAuthError(exc.message or 'Request denied', exc.status)
        if exc.status in _NO_ROUTE_STATUSES:
            return OracleNoRouteError(exc.message or exc.status, exc.status)
        return OracleTransientError(exc.message or str(exc.status), exc.status)
    if isinstance(exc, Timeout):
        return OracleTransientError('Request timed out')
    return OracleTransientError(str(exc) or exc.__class__.__name__)


def _stop(data: Optional[Dict]) -> Optional[TransitStop]:
    if not data or 'location' not in data:
        return None
    return TransitStop(_location(data['location']), data.get('name', ''))


def _leg_from_step(step: Dict) -> TransitLeg:
    mode = TravelMode.parse(step.get('travel_mode', 'WALKING'))
    duration = step.get('duration', {}).get('value', 0)
    path = tuple(decode_polyline(step.get('polyline', {}).get('points')))
    details = step.get('transit_details')
    if mode != TravelMode.TRANSIT or not details:
        return TransitLeg(mode=mode, duration_seconds=duration, path_points=path)

    line = details.get('line', {})
    return TransitLeg(
        mode=mode,
        duration_seconds=duration,
        departure_stop=_stop(details.get('departure_stop')),
        arrival_stop=_stop(details.get('arrival_stop')),
        line_name=line.get('short_name') or line.get('name'),
        stop_count=details.get('num_stops', 0),
        path_points=path,
    )


def parse_directions(directions_result: List[Dict], mode: TravelMode) -> RouteResult:
    """
    Build a RouteResult from the first Directions route.
    Every step contributes its start point at the elapsed time before the step
    and its end point at the elapsed time after it.
    """
    if not directions_result:
        raise OracleNoRouteError('No route returned', 'ZERO_RESULTS')

    route = directions_result[0]
    polyline: List[RoutePoint] = []
    legs: List[TransitLeg] = []
    total_duration = 0
    total_distance = 0

    for leg in route.get('legs', []):
        total_distance += leg.get('distance', {}).get('value', 0)
        steps = leg.get('steps') or [leg]
        for step in steps:
            polyline.append(RoutePoint(_location(step['start_location']), total_duration))
            total_duration += step.get('duration', {}).get('value', 0)
            polyline.append(RoutePoint(_location(step['end_location']), total_duration))
            if step is not leg:
                legs.append(_leg_from_step(step))

    return RouteResult(
        mode=mode,
        total_duration_seconds=total_duration,
        polyline=tuple(polyline),
        transit_legs=tuple(legs),
        distance_meters=total_distance,
    )


def parse_place(place: Dict) -> PlaceResult:
    photos = place.get('photos') or []
    return PlaceResult(
        place_id=place.get('place_id', ''),
        name=place['name'],
        location=_location(place['geometry']['location']),
        vicinity=place.get('vicinity', ''),
        rating=place.get('rating'),
        user_ratings_total=place.get('user_ratings_total', 0),
        types=tuple(place.get('types', [])),
        price_level=place.get('price_level'),
        open_now=place.get('opening_hours', {}).get('open_now'),
        photo_reference=photos[0].get('photo_reference') if photos else None,
    )


class GoogleMapsService(RoutingOracle, PlaceSearchOracle):
    """Routing and place-search oracle backed by the Google Maps web services"""

    def __init__(self, api_key: str, max_workers: int = 10, client: Optional[googlemaps.Client] = None):
        if not api_key or api_key == PLACEHOLDER_API_KEY:
            raise ValueError("Valid Google Maps API key is required")
        self.client = client or googlemaps.Client(key=api_key)
        self.executor = concurrent.futures.ThreadPoolExecutor(max_workers=max_workers)

    def cleanup(self):
        """Clean up resources"""
        if hasattr(self, 'executor'):
            self.executor.shutdown(wait=True)

    def get_directions(self, origin: GeoPoint, destination: GeoPoint, mode: TravelMode) -> RouteResult:
        try:
            directions_result = self.client.directions(
                origin=_coords(origin),
                destination=_coords(destination),
                mode=mode.value.lower(),
                alternatives=False,
            )
        except (ApiError, Timeout, TransportError) as e:
            error = classify_api_error(e)
            logger.warning("Directions %s -> %s (%s) failed: %s", _coords(origin), _coords(destination),
                           mode.value, error)
            raise error from e
        return parse_directions(directions_result, mode)

    def find_places_nearby(self, center: GeoPoint, category: str, radius_meters: int) -> List[PlaceResult]:
        try:
            places_result = self.client.places_nearby(
                location=center.as_tuple(),
                radius=radius_meters,
                type=category,
            )
        except (ApiError, Timeout, TransportError) as e:
            error = classify_api_error(e)
            logger.warning("Places search around %s failed: %s", _coords(center), error)
            raise error from e
        return [parse_place(p) for p in places_result.get('results', [])[:MAX_PLACE_RESULTS]]

    # Async wrapper methods for parallel execution
    async def route(self, origin: GeoPoint, destination: GeoPoint, mode: TravelMode) -> RouteResult:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self.get_directions, origin, destination, mode)

    async def nearby_search(self, center: GeoPoint, category: str, radius_meters: int) -> List[PlaceResult]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self.find_places_nearby, center, category,
                                          radius_meters)
