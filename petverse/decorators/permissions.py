"""
Role checks for marketplace endpoints.

Roles are pet_owner, service_provider and admin (see UserRole). The caller
identity is loaded by petverse.middleware.load_current_user.
"""

from functools import wraps
from flask import g

from petverse.exceptions import ForbiddenError, UnauthorizedError


def _role_value(role):
    return getattr(role, 'value', role)


def require_role(*allowed_roles):
    """
    Restrict a view to callers holding one of `allowed_roles`.

    Accepts role strings or UserRole members:
        @require_role(UserRole.PET_OWNER.value)
        @require_role(UserRole.ADMIN, UserRole.SERVICE_PROVIDER)

    Anonymous callers get 401, signed-in callers with another role get 403.
    """
    allowed = frozenset(_role_value(role) for role in allowed_roles)

    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if g.get('user') is None:
                raise UnauthorizedError()
            if g.get('user_role') not in allowed:
                raise ForbiddenError(
                    f"This action requires one of: {', '.join(sorted(allowed))}"
                )
            return view(*args, **kwargs)

        return wrapped
    return decorator
