"""Custom decorators for role-based authorization."""
from functools import wraps
from flask import g
from flask_jwt_extended import get_jwt_identity
from vaultpark import db
from vaultpark.models.user import User, UserRole
from vaultpark.utils.helpers import error_response

def _role_required(role: UserRole, label: str):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            current_user_id = get_jwt_identity()
            user = db.session.get(User, current_user_id)

            if not user or not user.is_active:
                return error_response("User not found", 404)

            if user.role != role:
                return error_response(f"{label} access required", 403)

            g.current_user = user
            return f(*args, **kwargs)
        return decorated_function
    return decorator

def security_required(f):
    """Decorator to require the security operator role."""
    return _role_required(UserRole.SECURITY, "Security")(f)

def driver_required(f):
    """Decorator to require the driver role."""
    return _role_required(UserRole.DRIVER, "Driver")(f)

def current_user_required(f):
    """Decorator to load the authenticated user of any role."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = db.session.get(User, get_jwt_identity())

        if not user or not user.is_active:
            return error_response("User not found", 404)

        g.current_user = user
        return f(*args, **kwargs)
    return decorated_function
