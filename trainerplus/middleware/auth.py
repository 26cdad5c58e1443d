from functools import wraps

from flask import g
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from trainerplus.services.request_context import set_actor


def actor_required(f):
    """Require a valid access token and expose its subject as the acting user."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        verify_jwt_in_request()
        set_actor(get_jwt_identity())
        return f(*args, **kwargs)

    return decorated_function


def current_actor_id() -> str:
    return g.actor_id
