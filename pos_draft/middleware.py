"""Middleware for operator context."""
from functools import wraps

from flask import current_app, g, jsonify, session

from pos_draft.models.operator import OperatorContext


def load_operator():
    """
    Load the current operator into g (Flask's per-request global).

    Called before each request. Sets g.operator from the session values
    (user_id, store_id, role, has_active_shift), or None when nobody is
    logged in.
    """
    g.operator = None
    try:
        g.operator = OperatorContext.from_session(session)
    except (TypeError, ValueError) as e:
        # Malformed session values: treat as logged out
        current_app.logger.warning(f"Invalid operator session: {e}")


def require_operator(f):
    """
    Decorator: Require an operator in the session.

    Returns 401 JSON when not authenticated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('operator') is None:
            return jsonify({'status': 'error', 'code': 'unauthenticated', 'message': 'Login required'}), 401
        return f(*args, **kwargs)
    return decorated_function
