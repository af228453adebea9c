"""
Centralised configuration constants and environment helpers.
"""

import os
import sys

from dotenv import load_dotenv

from staffdir.models import Role

load_dotenv()

# ── Clinic locations ─────────────────────────────────────────────────
CLINIC_LOCATIONS = ("Headquarter", "Burnaby", "Richmond")

# Holding this location lifts the location gate for scoped roles.
ALL_LOCATIONS_MARKER = "Headquarter"

# ── Access control ───────────────────────────────────────────────────
# Roles whose directory view is limited to their own clinic locations.
LOCATION_SCOPED_ROLES = {Role.MANAGEMENT, Role.CLINIC_MANAGER}

# Roles allowed to look up another staff member's HR record.
HR_PRIVILEGED_ROLES = {Role.HR, Role.HR_MANAGEMENT, Role.EXECUTIVE}

# The single role allowed to edit the visibility matrix and staff assignments.
MATRIX_ADMIN_ROLE = Role(os.getenv("MATRIX_ADMIN_ROLE", Role.DIRECTOR.value))

# Fields a staff member may change on their own profile.
SELF_EDITABLE_FIELDS = {
    "work_phone", "work_email", "bio", "preferred_name", "fluent_languages",
}

# Fields on a staff member's own profile that only HR_PRIVILEGED_ROLES may change.
HR_EDITABLE_FIELDS = {
    "legal_first_name", "legal_middle_name", "legal_last_name", "display_name",
}

# ── API server ───────────────────────────────────────────────────────
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
TOKEN_EXPIRY_HOURS = int(os.getenv("TOKEN_EXPIRY_HOURS", "24"))

# ── CLI ──────────────────────────────────────────────────────────────
MAX_PREVIEW_ROWS = 50


def get_env(name: str) -> str:
    """Return an environment variable or exit with an error message."""
    value = os.getenv(name)
    if not value:
        print(f"ERROR: env var {name} is not set", file=sys.stderr)
        sys.exit(1)
    return value
