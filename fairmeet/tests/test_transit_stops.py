from fairmeet.models import GeoPoint, RouteResult, StopCandidate, TransitLeg, TransitStop, TravelMode
from fairmeet.transit_stops import dedupe_stops, extract_transit_stops


def walk(duration, path=()):
    return TransitLeg(mode=TravelMode.WALKING, duration_seconds=duration, path_points=tuple(path))


def ride(duration, departure, arrival, line='U2', stops=2, path=()):
    return TransitLeg(
        mode=TravelMode.TRANSIT,
        duration_seconds=duration,
        departure_stop=TransitStop(departure, f"{departure.lat},{departure.lng}"),
        arrival_stop=TransitStop(arrival, f"{arrival.lat},{arrival.lng}"),
        line_name=line,
        stop_count=stops,
        path_points=tuple(path),
    )


def itinerary(*legs):
    return RouteResult(
        mode=TravelMode.TRANSIT,
        total_duration_seconds=sum(leg.duration_seconds for leg in legs),
        transit_legs=tuple(legs),
    )


def test_route_without_transit_legs_has_no_stops():
    assert extract_transit_stops(RouteResult(TravelMode.TRANSIT, 600)) == []


def test_departure_and_arrival_are_timed_from_origin():
    stops = extract_transit_stops(itinerary(
        walk(120),
        ride(900, GeoPoint(0.0, 0.01), GeoPoint(0.0, 0.15)),
    ))

    assert [(s.point, s.time_from_origin) for s in stops] == [
        (GeoPoint(0.0, 0.01), 120),
        (GeoPoint(0.0, 0.15), 1020),
    ]
    assert not any(s.virtual for s in stops)


def test_shared_transfer_stop_is_kept_once():
    transfer = GeoPoint(10.5, 20.5)
    stops = extract_transit_stops(itinerary(
        ride(600, GeoPoint(10.00001, 20.00001), transfer, line='S1'),
        ride(300, GeoPoint(10.50002, 20.50002), GeoPoint(11.0, 21.0), line='S2'),
    ))

    assert [s.time_from_origin for s in stops] == [0, 600, 900]
    assert stops[1].point == transfer


def test_dedupe_keeps_first_of_nearby_stops():
    first = StopCandidate(GeoPoint(10.00001, 20.00001), 'first', 100)
    second = StopCandidate(GeoPoint(10.00002, 20.00002), 'second', 200)
    other = StopCandidate(GeoPoint(10.001, 20.00002), 'other', 300)

    assert dedupe_stops([first, second, other]) == [first, other]


def test_virtual_stops_along_long_leg():
    path = [GeoPoint(0.0, 0.01 * k) for k in range(20)]
    stops = extract_transit_stops(itinerary(
        walk(120),
        ride(1000, GeoPoint(0.0, -0.5), GeoPoint(0.0, 0.5), line='12', stops=8, path=path),
    ))

    assert [s.time_from_origin for s in stops] == [120, 320, 520, 720, 920, 1120]
    virtual = [s for s in stops if s.virtual]
    assert [s.point for s in virtual] == [path[4], path[8], path[12], path[16]]
    assert virtual[0].name == 'Virtual stop on 12'


def test_real_stops_only():
    path = [GeoPoint(0.0, 0.01 * k) for k in range(20)]
    stops = extract_transit_stops(itinerary(
        walk(900, path=[GeoPoint(1.0, 0.001 * k) for k in range(5)]),
        ride(1000, GeoPoint(0.0, -0.5), GeoPoint(0.0, 0.5), stops=8, path=path),
    ), include_virtual=False)

    assert len(stops) == 2
    assert not any(s.virtual for s in stops)


def test_no_virtual_stops_for_short_legs():
    path = [GeoPoint(0.0, 0.01 * k) for k in range(20)]
    stops = extract_transit_stops(itinerary(
        ride(1000, GeoPoint(0.0, -0.5), GeoPoint(0.0, 0.5), stops=3, path=path),
    ))
    assert len(stops) == 2


def test_long_walking_connector_gets_a_midpoint_candidate():
    walk_path = [GeoPoint(1.0, 0.001 * k) for k in range(5)]
    stops = extract_transit_stops(itinerary(
        ride(300, GeoPoint(0.0, 0.0), GeoPoint(0.0, 0.1)),
        walk(900, path=walk_path),
        ride(300, GeoPoint(2.0, 0.0), GeoPoint(2.0, 0.1)),
    ))

    times = [s.time_from_origin for s in stops]
    assert times == sorted(times)
    connector = [s for s in stops if s.name == 'Walking connection']
    assert len(connector) == 1
    assert connector[0].point == walk_path[2]
    assert connector[0].time_from_origin == 300 + 450
