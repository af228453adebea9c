"""
Flask application factory and server entry-point.
"""

import os
import sys
import traceback

from flask import Flask
from flask_cors import CORS

from staffdir.config import MATRIX_ADMIN_ROLE, TOKEN_EXPIRY_HOURS
from staffdir.database import create_schema, init_engine
from staffdir.store import TabularStore
from staffdir.api.auth import SIGNED_IN, on_auth_state_change
from staffdir.api.routes import register_routes


def log_auth_event(event, ctx):
    who = ctx.display_name if ctx else "unknown"
    verb = "signed in" if event == SIGNED_IN else "signed out"
    print(f"[auth] {who} {verb}")


def create_app(engine=None):
    """Build and return a fully configured Flask application."""
    app = Flask(__name__)
    CORS(app)

    # ── Initialise shared resources ──────────────────────────────────
    try:
        if engine is None:
            print("[init] Initializing database connection...")
            engine = init_engine()
        create_schema(engine)
        store = TabularStore(engine)
        print("[init] ✓ API server ready")
    except Exception as e:
        print(f"[FATAL] Failed to initialize: {e}", file=sys.stderr)
        traceback.print_exc()
        sys.exit(1)

    app.config["UNSUBSCRIBE_AUTH_LOG"] = on_auth_state_change(log_auth_event)

    # ── Register routes ──────────────────────────────────────────────
    register_routes(app, store)

    return app


def main():
    """Run the development server."""
    print("=" * 60)
    print("Clinic Staff Directory – REST API Server")
    print("=" * 60)

    app = create_app()

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    debug = os.getenv("FLASK_ENV") == "development"

    print(f"\n[server] Starting Flask API on {host}:{port}")
    print(f"[server] Debug mode: {debug}")
    print(f"[server] Session expiry: {TOKEN_EXPIRY_HOURS} hours")
    print(f"[server] Matrix admin role: {MATRIX_ADMIN_ROLE.value}")
    print("\nAPI Endpoints:")
    print(f"  - POST http://{host}:{port}/api/auth/login")
    print(f"  - GET  http://{host}:{port}/api/user/profile")
    print(f"  - GET  http://{host}:{port}/api/directory")
    print(f"  - GET  http://{host}:{port}/api/hr/<staff_id>")
    print(f"  - GET  http://{host}:{port}/api/permissions")
    print(f"  - POST http://{host}:{port}/api/auth/logout")
    print(f"  - GET  http://{host}:{port}/health")
    print("\n" + "=" * 60)

    app.run(host=host, port=port, debug=debug, threaded=True)


if __name__ == "__main__":
    main()
