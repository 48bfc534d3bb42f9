from typing import Dict, FrozenSet, Iterable, List

from .geometry import distance_m
from .models import GeoPoint, Place, PlaceResult, TravelMode

DEFAULT_CATEGORY = 'restaurant'
SUPPORTED_CATEGORIES = ('cafe', 'restaurant', 'bar')
DEFAULT_RADIUS_M = 2000

_D, _T, _W = TravelMode.DRIVING, TravelMode.TRANSIT, TravelMode.WALKING

# Search radius in meters keyed by the unordered pair of travel modes
SEARCH_RADIUS_M: Dict[FrozenSet[TravelMode], int] = {
    frozenset((_D,)): 2000,
    frozenset((_W, _D)): 1500,
    frozenset((_T, _D)): 1000,
    frozenset((_W,)): 500,
    frozenset((_T,)): 500,
    frozenset((_W, _T)): 500,
}


def search_radius(mode_a: TravelMode, mode_b: TravelMode) -> int:
    return SEARCH_RADIUS_M[frozenset((mode_a, mode_b))]


def to_place(result: PlaceResult, center: GeoPoint) -> Place:
    return Place(
        id=result.place_id,
        name=result.name,
        vicinity=result.vicinity,
        location=result.location,
        rating=result.rating,
        user_ratings_total=result.user_ratings_total,
        distance_m=distance_m(center, result.location),
        types=result.types,
        price_level=result.price_level,
        open_now=result.open_now,
        photo_references=(result.photo_reference,) if result.photo_reference else (),
    )


def rank_places(results: Iterable[PlaceResult], center: GeoPoint) -> List[Place]:
    """Best rated first; unrated places last, ties by number of ratings"""
    places = [to_place(r, center) for r in results]
    places.sort(key=lambda p: (p.rating is not None, p.rating or 0.0, p.user_ratings_total),
                reverse=True)
    return places
