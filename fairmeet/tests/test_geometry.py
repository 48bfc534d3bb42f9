import pytest

from fairmeet.geometry import (
    arithmetic_midpoint, decode_polyline, distance_m, interpolate, interpolate_at_time, nearest_point,
)
from fairmeet.models import GeoPoint, RoutePoint


def test_arithmetic_midpoint():
    assert arithmetic_midpoint(GeoPoint(10.0, 20.0), GeoPoint(12.0, 24.0)) == GeoPoint(11.0, 22.0)


def test_interpolate_endpoints():
    a, b = GeoPoint(10.0, 20.0), GeoPoint(12.0, 24.0)
    assert interpolate(a, b, 0) == a
    assert interpolate(a, b, 1) == b
    assert interpolate(a, b, 0.25) == GeoPoint(10.5, 21.0)


def test_interpolate_at_time_uses_bracketing_pair():
    polyline = (
        RoutePoint(GeoPoint(0.0, 0.0), 0),
        RoutePoint(GeoPoint(0.0, 1.0), 400),
        RoutePoint(GeoPoint(0.0, 2.0), 800),
        RoutePoint(GeoPoint(0.0, 3.0), 1000),
    )

    located = interpolate_at_time(polyline, 500)

    assert located.before.elapsed_seconds == 400
    assert located.after.elapsed_seconds == 800
    assert located.fraction == pytest.approx((500 - 400) / (800 - 400))
    assert located.point.lng == pytest.approx(1.25)


def test_interpolate_at_time_zero_span_takes_first_point():
    polyline = (
        RoutePoint(GeoPoint(0.0, 0.0), 300),
        RoutePoint(GeoPoint(0.0, 1.0), 300),
        RoutePoint(GeoPoint(0.0, 1.5), 600),
    )
    located = interpolate_at_time(polyline, 300)
    assert located.fraction == 0.0
    assert located.point == GeoPoint(0.0, 0.0)


def test_interpolate_at_time_without_bracket():
    polyline = (RoutePoint(GeoPoint(0.0, 0.0), 0), RoutePoint(GeoPoint(0.0, 1.0), 100))
    assert interpolate_at_time(polyline, 150) is None
    assert interpolate_at_time((), 0) is None


def test_decode_polyline():
    points = decode_polyline('_p~iF~ps|U_ulLnnqC_mqNvxq`@')
    assert [(p.lat, p.lng) for p in points] == [
        pytest.approx((38.5, -120.2)),
        pytest.approx((40.7, -120.95)),
        pytest.approx((43.252, -126.453)),
    ]
    assert decode_polyline(None) == []


def test_distance_and_nearest_point():
    origin = GeoPoint(0.0, 0.0)
    assert distance_m(origin, GeoPoint(1.0, 0.0)) == pytest.approx(110574, rel=1e-3)

    near, far = GeoPoint(0.0, 0.01), GeoPoint(0.0, 0.5)
    assert nearest_point(origin, [far, near]) == near
    assert nearest_point(origin, []) is None
