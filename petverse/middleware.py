"""Middleware for request identity."""
from functools import wraps
from flask import session, g, current_app
from petverse.database import get_session
from petverse.models import User
from petverse.exceptions import UnauthorizedError


def load_current_user():
    """
    Load the signed-in user into g.

    Called before each request. Sets g.user, g.user_id and g.user_role when
    the session cookie carries a user id for an active account.
    """
    g.user = None
    g.user_id = None
    g.user_role = None

    try:
        user_id = session.get('user_id')
        if user_id:
            db_session = get_session()
            user = db_session.query(User).filter_by(id=user_id, active=True).first()
            if user:
                g.user = user
                g.user_id = user.id
                g.user_role = user.role
    except Exception as e:
        current_app.logger.error(f"Error in load_current_user: {e}")


def require_login(f):
    """Decorator: reject anonymous callers with a JSON 401."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            raise UnauthorizedError()
        return f(*args, **kwargs)
    return decorated_function
