from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple


# --- Fairness thresholds shared by the strategies and the place panel ---
FAIR_ABSOLUTE_SECONDS = 300
FAIR_PERCENTAGE = 10.0


class TravelMode(str, Enum):
    DRIVING = "DRIVING"
    TRANSIT = "TRANSIT"
    WALKING = "WALKING"

    @classmethod
    def parse(cls, value) -> "TravelMode":
        """Accept enum members or case-insensitive strings like 'driving'"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ValueError(f"Unknown travel mode: {value!r}") from None


class Scenario(str, Enum):
    SAME_MODE = "same_mode"
    STATIONARY_WALKER = "stationary_walker"
    TRANSIT_STOP_MATCHING = "transit_stop_matching"
    WALKER_TRANSIT_PROBE = "walker_transit_probe"
    ARITHMETIC_MIDPOINT = "arithmetic_midpoint"


class ErrorKind(str, Enum):
    AUTH = "AUTH"
    NO_ROUTE = "NO_ROUTE"
    TRANSIENT = "TRANSIENT"
    INTERNAL = "INTERNAL"


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees"""

    lat: float
    lng: float

    def __post_init__(self):
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lng}")

    @classmethod
    def from_dict(cls, data: Dict) -> "GeoPoint":
        if not isinstance(data, dict) or 'lat' not in data or 'lng' not in data:
            raise ValueError("Coordinates must have lat and lng properties")
        try:
            return cls(float(data['lat']), float(data['lng']))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid coordinates: {e}") from None

    def to_dict(self) -> Dict:
        return {'lat': self.lat, 'lng': self.lng}

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lat, self.lng)


@dataclass(frozen=True)
class RoutePoint:
    point: GeoPoint
    elapsed_seconds: int


@dataclass(frozen=True)
class TransitStop:
    point: GeoPoint
    name: str


@dataclass(frozen=True)
class TransitLeg:
    """
    One step of a routed itinerary.
    Transit steps carry stops, line name and stop count; walking connectors
    only carry their duration and path.
    """

    mode: TravelMode
    duration_seconds: int
    departure_stop: Optional[TransitStop] = None
    arrival_stop: Optional[TransitStop] = None
    line_name: Optional[str] = None
    stop_count: int = 0
    path_points: Tuple[GeoPoint, ...] = ()

    @property
    def is_transit(self) -> bool:
        return self.mode == TravelMode.TRANSIT


@dataclass(frozen=True)
class RouteResult:
    mode: TravelMode
    total_duration_seconds: int
    polyline: Tuple[RoutePoint, ...] = ()
    transit_legs: Tuple[TransitLeg, ...] = ()
    distance_meters: Optional[int] = None

    @classmethod
    def stationary(cls, point: GeoPoint, mode: TravelMode) -> "RouteResult":
        """Zero-length route for a party that is already at the meeting point"""
        return cls(mode=mode, total_duration_seconds=0,
                   polyline=(RoutePoint(point, 0),), distance_meters=0)

    @property
    def origin(self) -> Optional[GeoPoint]:
        return self.polyline[0].point if self.polyline else None

    @property
    def destination(self) -> Optional[GeoPoint]:
        return self.polyline[-1].point if self.polyline else None

    def to_dict(self) -> Dict:
        return {
            'mode': self.mode.value,
            'duration_seconds': self.total_duration_seconds,
            'duration_minutes': round(self.total_duration_seconds / 60, 1),
            'distance_meters': self.distance_meters,
            'path': [rp.point.to_dict() for rp in self.polyline],
            'transit_lines': [leg.line_name for leg in self.transit_legs if leg.is_transit],
        }


@dataclass(frozen=True)
class StopCandidate:
    point: GeoPoint
    name: str
    time_from_origin: int
    virtual: bool = False


@dataclass(frozen=True)
class Candidate:
    point: GeoPoint
    time_from_a: int
    time_from_b: int
    route_a: Optional[RouteResult] = None
    route_b: Optional[RouteResult] = None
    weight: Optional[float] = None

    @property
    def difference(self) -> int:
        return abs(self.time_from_a - self.time_from_b)

    @property
    def total(self) -> int:
        return self.time_from_a + self.time_from_b

    def is_better_than(self, other: Optional["Candidate"]) -> bool:
        """Smaller gap wins; equal gaps prefer the lower combined time"""
        if other is None:
            return True
        if self.difference != other.difference:
            return self.difference < other.difference
        return self.total < other.total


def percentage_difference(time_a: int, time_b: int) -> float:
    """Gap as a percentage of the longer time; zero durations count as fair"""
    longest = max(time_a, time_b)
    if longest <= 0:
        return 0.0
    return abs(time_a - time_b) / longest * 100.0


@dataclass(frozen=True)
class FairnessReport:
    time_a: int
    time_b: int
    difference_seconds: int
    percentage_difference: float
    is_fair: bool

    @classmethod
    def from_times(cls, time_a: int, time_b: int) -> "FairnessReport":
        diff = abs(time_a - time_b)
        pct = percentage_difference(time_a, time_b)
        return cls(
            time_a=time_a,
            time_b=time_b,
            difference_seconds=diff,
            percentage_difference=round(pct, 1),
            is_fair=diff <= FAIR_ABSOLUTE_SECONDS or pct <= FAIR_PERCENTAGE,
        )

    def to_dict(self) -> Dict:
        return {
            'time_a_seconds': self.time_a,
            'time_b_seconds': self.time_b,
            'time_difference_seconds': self.difference_seconds,
            'time_difference_minutes': round(self.difference_seconds / 60, 1),
            'percentage_difference': self.percentage_difference,
            'is_fair': self.is_fair,
        }


@dataclass(frozen=True)
class MeetingPointResult:
    point: GeoPoint
    route_a: Optional[RouteResult] = None
    route_b: Optional[RouteResult] = None
    used_fallback: bool = False
    error_kind: Optional[ErrorKind] = None
    strategy: Optional[Scenario] = None

    @property
    def fairness(self) -> Optional[FairnessReport]:
        if self.route_a is None or self.route_b is None:
            return None
        return FairnessReport.from_times(self.route_a.total_duration_seconds,
                                         self.route_b.total_duration_seconds)

    def to_dict(self) -> Dict:
        fairness = self.fairness
        return {
            'meeting_point': self.point.to_dict(),
            'route_a': self.route_a.to_dict() if self.route_a else None,
            'route_b': self.route_b.to_dict() if self.route_b else None,
            'used_fallback': self.used_fallback,
            'error_kind': self.error_kind.value if self.error_kind else None,
            'strategy': self.strategy.value if self.strategy else None,
            'fairness': fairness.to_dict() if fairness else None,
        }


@dataclass(frozen=True)
class PlaceResult:
    """Place as returned by the place-search oracle"""

    place_id: str
    name: str
    location: GeoPoint
    vicinity: str = ''
    rating: Optional[float] = None
    user_ratings_total: int = 0
    types: Tuple[str, ...] = ()
    price_level: Optional[int] = None
    open_now: Optional[bool] = None
    photo_reference: Optional[str] = None


@dataclass(frozen=True)
class Place:
    id: str
    name: str
    vicinity: str
    location: GeoPoint
    rating: Optional[float]
    user_ratings_total: int
    distance_m: float
    types: Tuple[str, ...] = ()
    price_level: Optional[int] = None
    open_now: Optional[bool] = None
    photo_references: Tuple[str, ...] = ()

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'vicinity': self.vicinity,
            'lat': self.location.lat,
            'lng': self.location.lng,
            'rating': self.rating,
            'user_ratings_total': self.user_ratings_total,
            'distance_m': round(self.distance_m, 1),
            'types': list(self.types),
            'price_level': self.price_level,
            'open_now': self.open_now,
            'photos': list(self.photo_references),
        }
