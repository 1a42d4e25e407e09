from functools import wraps
from flask import g, jsonify

def current_roles() -> set:
    user = getattr(g, "user", None)
    if not user:
        return set()
    return {r.name for r in user.roles}

def require_roles(*role_names: str):
    """
    Usage: @require_roles("ADMIN")
    SUPER_ADMIN passes every check.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if getattr(g, "user", None) is None:
                return jsonify(error="Authentication required"), 401

            roles = current_roles()
            if "SUPER_ADMIN" not in roles and not roles.intersection(role_names):
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
