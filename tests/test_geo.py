import math

import pytest
from sqlalchemy.dialects import postgresql

from geo import EARTH_RADIUS_METERS, earthdistance_query, great_circle_meters, kilometers_to_meters, nearby_restaurant_ids


def test_kilometers_to_meters():
    assert kilometers_to_meters('0') == 0
    assert kilometers_to_meters('2.5') == 2500
    assert kilometers_to_meters(3) == 3000


@pytest.mark.parametrize('value', ['abc', '', None, '-1', 'nan', 'inf'])
def test_kilometers_to_meters_rejects_invalid_values(value):
    with pytest.raises(ValueError):
        kilometers_to_meters(value)


def test_great_circle_distance_of_one_degree_latitude():
    assert great_circle_meters(0, 0, 0, 0) == 0
    assert great_circle_meters(0, 0, 1, 0) == pytest.approx(2 * math.pi * EARTH_RADIUS_METERS / 360, abs=1e-3)
    assert great_circle_meters(0, 0, 1, 0) == pytest.approx(111320.03, abs=1)


def test_earthdistance_query_binds_latitude_before_longitude():
    compiled = earthdistance_query(43.65, -79.38, 5000.0).compile(dialect=postgresql.dialect())
    sql = str(compiled)
    keys = {value: key for key, value in compiled.params.items()}

    assert 'earth_box(ll_to_earth(' in sql
    assert '@> ll_to_earth(restaurant.latitude, restaurant.longitude)' in sql
    assert sql.index(f'%({keys[43.65]})s') < sql.index(f'%({keys[-79.38]})s') < sql.index(f'%({keys[5000.0]})s')


def test_nearby_restaurant_ids_filters_by_distance(app, make_user, make_restaurant):
    here = make_restaurant(make_user(), latitude=43.6532, longitude=-79.3832)
    close = make_restaurant(make_user(), name='Close', latitude=43.6732, longitude=-79.3832)
    make_restaurant(make_user(), name='Far', latitude=49.2827, longitude=-123.1207)

    assert nearby_restaurant_ids(43.6532, -79.3832, 0) == [here.id]
    assert nearby_restaurant_ids(43.6532, -79.3832, 5000) == [here.id, close.id]
    assert nearby_restaurant_ids(0, 0, 1000) == []
