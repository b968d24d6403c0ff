# Nearby-restaurant lookup
import math

from sqlalchemy import func, select, text

from models import db, Restaurant

# Radius used by PostgreSQL's earthdistance extension (earth() in meters)
EARTH_RADIUS_METERS = 6378168.0


def kilometers_to_meters(radius_km):
    """Parse a radius given in kilometers (e.g. from a URL) and return meters."""
    try:
        radius = float(radius_km)
    except (TypeError, ValueError):
        raise ValueError("Radius must be a number of kilometers")
    if not math.isfinite(radius) or radius < 0:
        raise ValueError("Radius must be a non-negative number of kilometers")
    return radius * 1000


def earthdistance_query(latitude, longitude, radius_meters):
    # ll_to_earth takes (latitude, longitude) in that order
    origin = func.ll_to_earth(latitude, longitude)
    position = func.ll_to_earth(Restaurant.latitude, Restaurant.longitude)
    return (
        select(Restaurant.id)
        .where(func.earth_box(origin, radius_meters).op('@>', is_comparison=True)(position))
        .order_by(Restaurant.id)
    )


def great_circle_meters(lat1, lon1, lat2, lon2):
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(a)))


def nearby_restaurant_ids(latitude, longitude, radius_meters):
    """Return the ids of restaurants within ``radius_meters`` of the given point.

    PostgreSQL answers with the earthdistance index query. Other databases
    (SQLite under test) compute great-circle distances here instead.
    """
    if db.engine.dialect.name == 'postgresql':
        return list(db.session.scalars(earthdistance_query(latitude, longitude, radius_meters)))

    rows = db.session.execute(
        select(Restaurant.id, Restaurant.latitude, Restaurant.longitude).order_by(Restaurant.id)
    )
    return [
        restaurant_id for restaurant_id, lat, lon in rows
        if great_circle_meters(latitude, longitude, lat, lon) <= radius_meters
    ]


def ensure_earthdistance(engine):
    if engine.dialect.name != 'postgresql':
        return
    with engine.begin() as connection:
        connection.execute(text('CREATE EXTENSION IF NOT EXISTS cube'))
        connection.execute(text('CREATE EXTENSION IF NOT EXISTS earthdistance'))
