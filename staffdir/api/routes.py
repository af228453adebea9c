"""
Flask route handlers for the REST API.
"""

import os
import sys
import traceback
from datetime import timedelta

from flask import request, jsonify
from sqlalchemy import text as sa_text

from staffdir.config import TOKEN_EXPIRY_HOURS
from staffdir.errors import PortalError, ValidationError
from staffdir.formatters import format_department
from staffdir.matrix import list_rules, matrix_for_role, toggle_rule, upsert_rule
from staffdir.models import hr_record_to_dict, profile_to_dict, rule_to_dict
from staffdir.rbac import load_access_context, refresh_access_context
from staffdir.services import (
    get_hr_record,
    get_own_profile,
    get_staff_profile,
    group_by_department,
    load_directory,
    update_own_profile,
    update_staff_assignment,
)
from staffdir.api.auth import (
    close_session,
    open_session,
    sessions,
    token_required,
    utcnow,
)


def _json_body() -> dict:
    if not request.is_json:
        raise ValidationError("Content-Type must be application/json")
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def register_routes(app, store):
    """Register all API routes on the Flask *app*."""

    def viewer():
        # re-read the profile each request so assignment changes apply without re-login
        return refresh_access_context(store, request.session_data["ctx"])

    # ── Health / info ────────────────────────────────────────────────

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "service": "Clinic Staff Directory API",
            "version": "1.0.0",
            "status": "running",
            "endpoints": {
                "auth": "/api/auth/login",
                "profile": "/api/user/profile",
                "directory": "/api/directory",
                "hr": "/api/hr/<staff_id>",
                "permissions": "/api/permissions",
                "logout": "/api/auth/logout",
                "health": "/health",
            },
        })

    @app.route("/health", methods=["GET"])
    def health():
        checks = {"database": False}
        try:
            with store.engine.connect() as conn:
                conn.execute(sa_text("SELECT 1"))
            checks["database"] = True
        except Exception as e:
            print(f"[WARN] Health check failed: {e}", file=sys.stderr)

        all_healthy = all(checks.values())
        return jsonify({
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
            "active_sessions": len(sessions),
        }), 200 if all_healthy else 503

    # ── Auth ─────────────────────────────────────────────────────────

    @app.route("/api/auth/login", methods=["POST"])
    def login():
        data = _json_body()
        api_key = str(data.get("api_key", "")).strip()
        if not api_key:
            return jsonify({"error": "api_key is required"}), 400

        ctx = load_access_context(store, api_key)
        token = open_session(ctx)
        return jsonify({
            "success": True,
            "token": token,
            "user": {
                "id": ctx.user_id,
                "display_name": ctx.display_name,
                "roles": sorted(r.value for r in ctx.roles),
                "clinic_locations": sorted(ctx.clinic_locations),
            },
            "expires_at": (utcnow() + timedelta(hours=TOKEN_EXPIRY_HOURS)).isoformat(),
        }), 200

    @app.route("/api/auth/logout", methods=["POST"])
    @token_required
    def logout():
        close_session(request.token)
        return jsonify({"success": True, "message": "Logged out successfully"}), 200

    # ── Own profile ──────────────────────────────────────────────────

    @app.route("/api/user/profile", methods=["GET"])
    @token_required
    def get_profile():
        session_data = request.session_data
        profile = get_own_profile(store, session_data["ctx"])
        return jsonify({
            "success": True,
            "profile": profile_to_dict(profile),
            "session": {
                "created_at": session_data["created_at"].isoformat(),
                "last_activity": session_data["last_activity"].isoformat(),
            },
        }), 200

    @app.route("/api/user/profile", methods=["PUT"])
    @token_required
    def put_profile():
        ctx = request.session_data["ctx"]
        data = _json_body()
        target_id = str(data.pop("id", ctx.user_id))
        profile = update_own_profile(store, ctx, target_id, data)
        return jsonify({
            "success": True,
            "message": "Profile updated successfully!",
            "profile": profile_to_dict(profile),
        }), 200

    # ── Directory ────────────────────────────────────────────────────

    @app.route("/api/directory", methods=["GET"])
    @token_required
    def directory():
        roster = load_directory(store, request.session_data["ctx"])
        grouped = group_by_department(roster)
        return jsonify({
            "success": True,
            "count": len(roster),
            "departments": [
                {"label": label, "staff": [profile_to_dict(p) for p in people]}
                for label, people in grouped.items()
            ],
        }), 200

    @app.route("/api/staff/<staff_id>", methods=["GET"])
    @token_required
    def staff_profile(staff_id):
        profile = get_staff_profile(store, request.session_data["ctx"], staff_id)
        return jsonify({"success": True, "profile": profile_to_dict(profile)}), 200

    @app.route("/api/staff/<staff_id>/assignment", methods=["PUT"])
    @token_required
    def staff_assignment(staff_id):
        data = _json_body()
        profile = update_staff_assignment(
            store, viewer(), staff_id,
            roles=data.get("roles"),
            department=data.get("department"),
            clinic_locations=data.get("clinic_locations"),
        )
        return jsonify({
            "success": True,
            "message": "Staff profile updated successfully!",
            "profile": profile_to_dict(profile),
        }), 200

    # ── HR ───────────────────────────────────────────────────────────

    @app.route("/api/hr/<staff_id>", methods=["GET"])
    @token_required
    def hr_record(staff_id):
        record = get_hr_record(store, viewer(), staff_id)
        return jsonify({"success": True, "record": hr_record_to_dict(record)}), 200

    # ── Visibility matrix ────────────────────────────────────────────

    @app.route("/api/permissions", methods=["GET"])
    @token_required
    def get_permissions():
        ctx = viewer()
        role = request.args.get("viewer_role")
        if role:
            rows = matrix_for_role(store, ctx, role)
            return jsonify({
                "success": True,
                "viewer_role": rows[0]["viewer_role"],
                "matrix": [dict(r, label=format_department(r["target_department"])) for r in rows],
            }), 200
        rules = list_rules(store, ctx)
        return jsonify({"success": True, "rules": [rule_to_dict(r) for r in rules]}), 200

    @app.route("/api/permissions", methods=["PUT"])
    @token_required
    def put_permission():
        data = _json_body()
        rule = upsert_rule(
            store, viewer(),
            data.get("viewer_role"),
            data.get("target_department"),
            data.get("can_view"),
            data.get("visible_fields"),
        )
        return jsonify({"success": True, "message": "Updated matrix successfully.", "rule": rule_to_dict(rule)}), 200

    @app.route("/api/permissions/toggle", methods=["POST"])
    @token_required
    def toggle_permission():
        data = _json_body()
        toggle = data.get("toggle")
        if not toggle:
            raise ValidationError("toggle is required")
        rule = toggle_rule(store, viewer(), data.get("viewer_role"), data.get("target_department"), toggle)
        return jsonify({"success": True, "message": "Updated matrix successfully.", "rule": rule_to_dict(rule)}), 200

    # ── Sessions (development only) ──────────────────────────────────

    @app.route("/api/sessions", methods=["GET"])
    def get_sessions_info():
        if os.getenv("FLASK_ENV") != "development":
            return jsonify({"error": "Not available in production"}), 403

        sessions_info = []
        for _token, data in sessions.items():
            ctx = data["ctx"]
            sessions_info.append({
                "user_id": ctx.user_id,
                "display_name": ctx.display_name,
                "roles": sorted(r.value for r in ctx.roles),
                "created_at": data["created_at"].isoformat(),
                "last_activity": data["last_activity"].isoformat(),
            })
        return jsonify({
            "active_sessions": len(sessions),
            "sessions": sessions_info,
        }), 200

    # ── Error handlers ───────────────────────────────────────────────

    @app.errorhandler(PortalError)
    def portal_error(e):
        return jsonify({"success": False, "error": str(e)}), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Endpoint not found", "message": str(e)}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed", "message": str(e)}), 405

    @app.errorhandler(500)
    def internal_error(e):
        original = getattr(e, "original_exception", None) or e
        print(f"[ERROR] Unhandled error: {original}", file=sys.stderr)
        traceback.print_exception(type(original), original, original.__traceback__)
        return jsonify({"error": "Internal server error"}), 500
