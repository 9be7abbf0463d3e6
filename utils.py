# ParkEase/utils.py
import math
from functools import wraps

from flask import current_app, get_flashed_messages, jsonify, make_response
from flask_login import current_user

EARTH_RADIUS_KM = 6371

NO_CACHE_HEADERS = {
    'Cache-Control': 'no-cache, no-store, max-age=0, must-revalidate, private',
    'Pragma': 'no-cache',
    'Expires': 'Fri, 01 Jan 1990 00:00:00 GMT',
    'Surrogate-Control': 'no-store',
}


def get_file_store():
    return current_app.extensions['file_store']


def get_parking_classifier():
    return current_app.extensions['parking_classifier']


def shared_props():
    """Props every page receives: the signed-in user and pending flash messages."""
    flashes = {}
    for category, message in get_flashed_messages(with_categories=True):
        flashes[category] = message
    return {
        'name': current_app.config.get('APP_NAME', 'ParkEase'),
        'auth': {'user': current_user.to_auth_dict() if current_user.is_authenticated else None},
        'flash': flashes,
    }


def render_page(component, status=200, **props):
    """Page payload for the client-side renderer: ``{"component": ..., "props": ...}``."""
    return jsonify({'component': component, 'props': {**shared_props(), **props}}), status


def prevent_back_history(view):
    """Marks an authenticated page as non-cacheable so "back" after logout refetches it."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        response = make_response(view(*args, **kwargs))
        response.headers.update(NO_CACHE_HEADERS)
        return response
    return wrapper


def haversine_km(lat1, lng1, lat2, lng2):
    """Great-circle distance in km (spherical law of cosines, clamped for rounding)."""
    lat1, lng1, lat2, lng2 = map(math.radians, (float(lat1), float(lng1), float(lat2), float(lng2)))
    cosine = (math.cos(lat1) * math.cos(lat2) * math.cos(lng2 - lng1)
              + math.sin(lat1) * math.sin(lat2))
    return EARTH_RADIUS_KM * math.acos(min(1.0, max(-1.0, cosine)))


def format_distance(distance_km):
    if distance_km < 1:
        return f"{round(distance_km * 1000)} m"
    return f"{distance_km:.1f} km"


def pagination_payload(items, page, per_page, total):
    last_page = max(1, math.ceil(total / per_page))
    first = (page - 1) * per_page + 1 if items else None
    return {
        'data': items,
        'current_page': page,
        'last_page': last_page,
        'per_page': per_page,
        'total': total,
        'from': first,
        'to': first + len(items) - 1 if items else None,
    }


def paginate_list(items, page, per_page):
    start = (page - 1) * per_page
    return pagination_payload(items[start:start + per_page], page, per_page, len(items))
