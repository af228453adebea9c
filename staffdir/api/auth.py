"""
JWT authentication helpers, session store and auth-state notifications.
"""

from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Callable, Dict, List, Optional

import jwt
from flask import request, jsonify

from staffdir.config import SECRET_KEY, TOKEN_EXPIRY_HOURS
from staffdir.models import AccessContext

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

# In-memory session store (process-local)
# Structure: {token: {"ctx": AccessContext, "created_at": datetime, "last_activity": datetime}}
sessions: Dict[str, Dict[str, Any]] = {}

_listeners: List[Callable[[str, Optional[AccessContext]], None]] = []


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Auth-state channel ───────────────────────────────────────────────

def on_auth_state_change(callback: Callable[[str, Optional[AccessContext]], None]) -> Callable[[], None]:
    """Subscribe to login/logout events. Returns a function that unsubscribes."""
    _listeners.append(callback)

    def unsubscribe():
        if callback in _listeners:
            _listeners.remove(callback)

    return unsubscribe


def _notify(event: str, ctx: Optional[AccessContext]) -> None:
    for callback in list(_listeners):
        callback(event, ctx)


# ── Tokens and sessions ──────────────────────────────────────────────

def generate_token(ctx: AccessContext) -> str:
    """Generate a JWT token for an authenticated user."""
    now = utcnow()
    payload = {
        "sub": ctx.user_id,
        "display_name": ctx.display_name,
        "iat": now,
        "exp": now + timedelta(hours=TOKEN_EXPIRY_HOURS),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm="HS256")


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify a JWT token and return the decoded payload (or None)."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def open_session(ctx: AccessContext) -> str:
    token = generate_token(ctx)
    now = utcnow()
    sessions[token] = {"ctx": ctx, "created_at": now, "last_activity": now}
    _notify(SIGNED_IN, ctx)
    return token


def close_session(token: str) -> bool:
    data = sessions.pop(token, None)
    if data is None:
        return False
    _notify(SIGNED_OUT, data["ctx"])
    return True


def token_required(f):
    """Decorator that protects endpoints with JWT authentication."""
    @wraps(f)
    def decorated(*args, **kwargs):
        token = None

        # Check Authorization header (Bearer token)
        if "Authorization" in request.headers:
            auth_header = request.headers["Authorization"]
            try:
                token = auth_header.split(" ")[1]
            except IndexError:
                return jsonify({"error": "Invalid authorization header format"}), 401

        # Fallback: token in the query string
        if not token:
            token = request.args.get("token")

        if not token:
            return jsonify({"error": "Authentication token is missing"}), 401

        payload = verify_token(token)
        if not payload:
            return jsonify({"error": "Invalid or expired token"}), 401

        if token not in sessions:
            return jsonify({"error": "Session not found. Please login again."}), 401

        sessions[token]["last_activity"] = utcnow()
        request.session_data = sessions[token]
        request.token = token

        return f(*args, **kwargs)

    return decorated


def cleanup_expired_sessions():
    """Remove sessions that have been inactive beyond TOKEN_EXPIRY_HOURS."""
    now = utcnow()
    expired = [
        tok for tok, data in sessions.items()
        if (now - data["last_activity"]).total_seconds() > TOKEN_EXPIRY_HOURS * 3600
    ]
    for tok in expired:
        close_session(tok)
    if expired:
        print(f"[cleanup] Removed {len(expired)} expired sessions")
    return len(expired)
