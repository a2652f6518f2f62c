from functools import wraps
from flask import g
from flask_jwt_extended import get_jwt_identity
from telemed.errors import Forbidden, Unauthenticated
from telemed.extensions import db
from telemed.models import User


def get_current_user():
    """
    Resolve the JWT identity to an active User.
    Must be called inside a @jwt_required() route. Cached on flask.g.
    """
    user = g.get('current_user')
    if user is not None:
        return user

    try:
        user_id = int(get_jwt_identity())
    except (TypeError, ValueError):
        raise Unauthenticated('Authentication required')

    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        raise Unauthenticated('Authentication required')

    g.current_user = user
    return user


def require_role(*roles):
    """
    Decorator to require specific roles
    Usage: @require_role('doctor', 'admin')
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            """
            Require that the current JWT-authenticated user has one of the given roles.
            Must be used together with @jwt_required() on the route.
            """
            user = get_current_user()
            if user.role not in roles:
                raise Forbidden(f'Access denied. Required roles: {", ".join(roles)}')
            return f(*args, **kwargs)
        return decorated_function
    return decorator
