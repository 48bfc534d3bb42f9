import pytest

from fairmeet.models import GeoPoint, PlaceResult, TravelMode
from fairmeet.places import rank_places, search_radius, to_place

D, T, W = TravelMode.DRIVING, TravelMode.TRANSIT, TravelMode.WALKING


@pytest.mark.parametrize('mode_a, mode_b, radius', [
    (D, D, 2000),
    (W, D, 1500),
    (D, W, 1500),
    (T, D, 1000),
    (D, T, 1000),
    (W, W, 500),
    (T, T, 500),
    (W, T, 500),
    (T, W, 500),
])
def test_search_radius_table(mode_a, mode_b, radius):
    assert search_radius(mode_a, mode_b) == radius


def test_to_place_measures_distance_from_center():
    center = GeoPoint(0.0, 0.0)
    result = PlaceResult(
        place_id='abc',
        name='Harbour Bar',
        location=GeoPoint(0.0, 0.01),
        vicinity='Pier 3',
        rating=4.3,
        user_ratings_total=210,
        types=('bar', 'point_of_interest'),
        price_level=2,
        open_now=True,
        photo_reference='photo-1',
    )

    place = to_place(result, center)

    assert place.distance_m == pytest.approx(1113.2, abs=1)
    assert place.photo_references == ('photo-1',)
    assert hash(place) == hash(to_place(result, center))
    data = place.to_dict()
    assert data['lat'] == 0.0 and data['lng'] == 0.01
    assert data['types'] == ['bar', 'point_of_interest']
    assert data['open_now'] is True
    assert data['photos'] == ['photo-1']


def test_rank_places_puts_unrated_last():
    center = GeoPoint(0.0, 0.0)
    results = [
        PlaceResult('unrated', 'Unrated', GeoPoint(0.0, 0.001)),
        PlaceResult('good', 'Good', GeoPoint(0.0, 0.002), rating=4.5, user_ratings_total=10),
        PlaceResult('popular', 'Popular', GeoPoint(0.0, 0.003), rating=4.5, user_ratings_total=900),
        PlaceResult('ok', 'Ok', GeoPoint(0.0, 0.004), rating=3.9, user_ratings_total=50),
    ]

    assert [p.id for p in rank_places(results, center)] == ['popular', 'good', 'ok', 'unrated']
    assert rank_places([], center) == []
