from functools import wraps

from flask import current_app
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from errors import Unauthorized


def services():
    return current_app.extensions["plantkeeper"]


def current_session_token(optional=False):
    """Session token carried as the subject of the signed cookie/bearer JWT."""
    verify_jwt_in_request(optional=optional)
    return get_jwt_identity()


def login_required(view):
    """Resolve the caller's session or fail with Unauthorized before the view runs.

    The view receives the resolved ``identity`` as a keyword argument.
    """
    @wraps(view)
    def wrapper(*args, **kwargs):
        resolved = services().sessions.resolve(current_session_token())
        if resolved is None:
            raise Unauthorized()
        return view(*args, identity=resolved.identity, **kwargs)
    return wrapper
