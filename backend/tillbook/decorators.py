# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .permissions import permissions_for_role
from .services import session_service
from .validation import AuthorizationError


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def user_has_permission(user, permission_code: str) -> bool:
    return bool(user and user.is_active and permission_code in permissions_for_role(user.role))


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.store_id: The user's store ID (None for org-level staff)
    - g.session_context: The full SessionContext object

    Returns 401 if the Authorization header is missing, or the token is
    invalid, expired, revoked or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.store_id = context.store_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require a capability of the authenticated user's role."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if not user_has_permission(g.current_user, permission_code):
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                    "message": f"Requires {permission_code}",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def ensure_store_access(store_id: int | None) -> None:
    """
    Users bound to a store may only act on that store.

    Org-level staff (store_id NULL) and SYSTEM_ADMIN holders may act on any.
    """
    user = g.current_user
    if user.store_id is None or user_has_permission(user, "SYSTEM_ADMIN"):
        return
    if store_id != user.store_id:
        raise AuthorizationError("Access to this store is not allowed")
