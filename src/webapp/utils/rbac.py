"""
Route guards backed by the named access policies in permits.security.

Usage:
    @bp.route('/queue/<unit>')
    @login_required
    @require_policy('application_queues')
    def unit_queue(unit):
        ...
"""

from functools import wraps
from typing import Optional

from flask import abort
from flask_login import current_user

from permits.core.identity import Identity
from permits.security.access import authorize, get_route_policy


def current_identity() -> Optional[Identity]:
    """Identity of the logged-in user, or None for anonymous requests."""
    if not current_user or not current_user.is_authenticated:
        return None
    return current_user.identity


def has_policy(name: str) -> bool:
    return authorize(current_identity(), get_route_policy(name))


def require_policy(name: str):
    """
    Decorator to require a named route policy for a view.

    Unknown policy names fail at decoration time.
    """
    get_route_policy(name)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)  # Unauthorized
            if not has_policy(name):
                abort(403)  # Forbidden
            return f(*args, **kwargs)
        return decorated_function
    return decorator
