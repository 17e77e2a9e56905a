# evote/authentication/rbac.py

from enum import Enum
from functools import wraps
from flask import current_app, g
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity

from evote.errors import AuthenticationFailed, Forbidden, NotFound

# Role-Based Access Control. The role is always read from the voter record,
# not from the token, so a role change takes effect on the next request.


class UserRole(Enum):
    VOTER = "VOTER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class Permission(Enum):
    VOTE = "vote"
    VIEW_OWN_VOTES = "view_own_votes"
    MANAGE_ELECTIONS = "manage_elections"
    MANAGE_CANDIDATES = "manage_candidates"
    VIEW_AUDIT_LOGS = "view_audit_logs"
    VERIFY_TALLIES = "verify_tallies"
    MANAGE_USERS = "manage_users"


_VOTER_PERMISSIONS = [Permission.VOTE, Permission.VIEW_OWN_VOTES]
_ADMIN_PERMISSIONS = _VOTER_PERMISSIONS + [
    Permission.MANAGE_ELECTIONS,
    Permission.MANAGE_CANDIDATES,
    Permission.VIEW_AUDIT_LOGS,
    Permission.VERIFY_TALLIES,
]

# Role -> Permissions mapping
ROLE_PERMISSIONS = {
    UserRole.VOTER: _VOTER_PERMISSIONS,
    UserRole.ADMIN: _ADMIN_PERMISSIONS,
    UserRole.SUPER_ADMIN: _ADMIN_PERMISSIONS + [Permission.MANAGE_USERS],
}

VALID_ROLES = [role.value for role in UserRole]


class RBACService:
    def has_permission(self, user_role, permission):
        if isinstance(user_role, str):
            try:
                user_role = UserRole(user_role)
            except ValueError:
                return False
        if isinstance(permission, str):
            permission = Permission(permission)
        return permission in ROLE_PERMISSIONS.get(user_role, [])

    def get_permissions(self, user_role):
        if isinstance(user_role, str):
            user_role = UserRole(user_role)
        return ROLE_PERMISSIONS.get(user_role, [])


def current_voter():
    """Load the voter named by the request's JWT; cached on ``g``."""
    if 'current_voter' not in g:
        verify_jwt_in_request()
        identity = get_jwt_identity()
        identity_store = current_app.extensions['evote']['identity']
        try:
            g.current_voter = identity_store.find_by_id(int(identity))
        except (TypeError, ValueError, NotFound):
            raise AuthenticationFailed("Unknown account")
    return g.current_voter


# Decorator for required permission
def require_permission(permission):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            voter = current_voter()
            if not RBACService().has_permission(voter.role, permission):
                raise Forbidden(f"Permission '{permission.value}' required")
            return func(*args, **kwargs)
        return wrapper
    return decorator


# Decorator for required role
def require_role(role):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            voter = current_voter()
            if voter.role != role.value:
                raise Forbidden(f"{role.value} access required")
            return func(*args, **kwargs)
        return wrapper
    return decorator
