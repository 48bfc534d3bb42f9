import pytest

from fairmeet.cache import QueryCache
from fairmeet.engine import MeetingPointEngine
from fairmeet.geometry import distance_m
from fairmeet.models import RoutePoint, RouteResult, TravelMode
from fairmeet.oracle import PlaceSearchOracle, RoutingOracle
from fairmeet.request_queue import RequestQueue

SPEEDS_MPS = {
    TravelMode.DRIVING: 10.0,
    TravelMode.TRANSIT: 6.0,
    TravelMode.WALKING: 1.25,
}


def straight_route(origin, destination, mode, duration=None):
    """Two-point route timed by straight-line distance at a fixed speed per mode"""
    if duration is None:
        duration = round(distance_m(origin, destination) / SPEEDS_MPS[mode])
    return RouteResult(
        mode=mode,
        total_duration_seconds=duration,
        polyline=(RoutePoint(origin, 0), RoutePoint(destination, duration)),
    )


class FakeRoutingOracle(RoutingOracle):
    """Records every call; scripted routes win over the responder"""

    def __init__(self, responder=None):
        self.calls = []
        self.routes = {}
        self.responder = responder or straight_route

    def script(self, origin, destination, mode, result):
        self.routes[(origin, destination, mode)] = result

    async def route(self, origin, destination, mode):
        self.calls.append((origin, destination, mode))
        result = self.routes.get((origin, destination, mode))
        if result is None:
            result = self.responder(origin, destination, mode)
        if isinstance(result, Exception):
            raise result
        return result


class FakePlaceOracle(PlaceSearchOracle):
    def __init__(self, results=None, error=None):
        self.calls = []
        self.results = list(results or [])
        self.error = error

    async def nearby_search(self, center, category, radius_meters):
        self.calls.append((center, category, radius_meters))
        if self.error is not None:
            raise self.error
        return list(self.results)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def routing_oracle():
    return FakeRoutingOracle()


@pytest.fixture
def place_oracle():
    return FakePlaceOracle()


@pytest.fixture
def queue(routing_oracle, clock):
    return RequestQueue(routing_oracle, QueryCache('directions', clock=clock), delay_seconds=0)


@pytest.fixture
def engine(routing_oracle, place_oracle, clock):
    return MeetingPointEngine(routing_oracle, place_oracle, request_delay_seconds=0, clock=clock)
