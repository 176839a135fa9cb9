from __future__ import annotations
from functools import wraps
from flask import request, g, current_app
from utils.cookies import read_access_token
from utils.exceptions import InvalidToken


def jwt_required():
    """
    Require a valid access token (accessToken cookie or Bearer header).
    Sets g.current_user and g.current_claims. Failures raise AuthError
    subclasses, turned into a uniform 401 by api/errors.py.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = read_access_token(request)
            if not token:
                raise InvalidToken("access token required")
            engine = current_app.extensions["session_engine"]
            claims, user = engine.authenticate(token)
            g.current_user = user
            g.current_claims = claims
            return fn(*args, **kwargs)

        return wrapper

    return decorator
