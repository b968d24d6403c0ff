# Request-context decorators for route handlers
from collections import namedtuple
from functools import wraps

from flask import jsonify, session
from flask_jwt_extended import get_jwt_identity, jwt_required

LOCATION_SESSION_KEY = 'user_location'

UserLocation = namedtuple('UserLocation', ['latitude', 'longitude'])


def auth_required(fn):
    """Require a valid access token and pass the caller's id as ``user_id``."""
    @wraps(fn)
    @jwt_required()
    def decorated(*args, **kwargs):
        kwargs['user_id'] = int(get_jwt_identity())
        return fn(*args, **kwargs)
    return decorated


def location_required(fn):
    """Require a shared location and pass it as ``user_location``."""
    @wraps(fn)
    def decorated(*args, **kwargs):
        location = session.get(LOCATION_SESSION_KEY)
        if not location:
            return jsonify({"message": "User location is not allowed"}), 403
        kwargs['user_location'] = UserLocation(float(location['latitude']), float(location['longitude']))
        return fn(*args, **kwargs)
    return decorated


def store_location(latitude, longitude):
    session[LOCATION_SESSION_KEY] = {"latitude": latitude, "longitude": longitude}


def clear_location():
    session.pop(LOCATION_SESSION_KEY, None)
