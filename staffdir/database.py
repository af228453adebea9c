"""
Database engine initialisation and table declarations.
"""

import sys
from dataclasses import dataclass, field
from typing import Dict, Optional, Set, Tuple

from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from staffdir.config import get_env


@dataclass(frozen=True)
class TableSpec:
    """Columns the store may read or write for one table."""
    name: str
    columns: Tuple[str, ...]
    key: Tuple[str, ...]
    json_columns: Set[str] = field(default_factory=set)
    bool_columns: Set[str] = field(default_factory=set)


STAFF_PROFILES = TableSpec(
    name="staff_profiles",
    columns=(
        "id", "role", "department", "clinic_locations", "job_title",
        "employee_id", "preferred_name", "legal_first_name",
        "legal_middle_name", "legal_last_name", "display_name", "work_email",
        "work_phone", "bio", "practitioner_license_number",
        "highest_education", "profile_photo_url", "employment_status",
        "employment_type", "fluent_languages",
    ),
    key=("id",),
    json_columns={"role", "clinic_locations", "fluent_languages"},
)

HR_RECORDS = TableSpec(
    name="hr_records",
    columns=(
        "id", "sin", "date_of_birth", "emergency_contact_name",
        "emergency_contact_phone", "end_date",
    ),
    key=("id",),
)

ROLE_PERMISSIONS = TableSpec(
    name="role_permissions",
    columns=("viewer_role", "target_department", "can_view", "visible_fields"),
    key=("viewer_role", "target_department"),
    json_columns={"visible_fields"},
    bool_columns={"can_view"},
)

PORTAL_USERS = TableSpec(
    name="portal_users",
    columns=("id", "api_key", "is_active"),
    key=("id",),
    bool_columns={"is_active"},
)

TABLES: Dict[str, TableSpec] = {
    t.name: t for t in (STAFF_PROFILES, HR_RECORDS, ROLE_PERMISSIONS, PORTAL_USERS)
}

# Portable between PostgreSQL and SQLite; list columns hold JSON text.
SCHEMA_DDL = (
    """
    CREATE TABLE IF NOT EXISTS staff_profiles (
        id VARCHAR(64) PRIMARY KEY,
        role TEXT NOT NULL DEFAULT '[]',
        department VARCHAR(32),
        clinic_locations TEXT NOT NULL DEFAULT '[]',
        job_title VARCHAR(120),
        employee_id VARCHAR(32),
        preferred_name VARCHAR(80),
        legal_first_name VARCHAR(80),
        legal_middle_name VARCHAR(80),
        legal_last_name VARCHAR(80),
        display_name VARCHAR(160),
        work_email VARCHAR(254),
        work_phone VARCHAR(32),
        bio TEXT,
        practitioner_license_number VARCHAR(64),
        highest_education VARCHAR(120),
        profile_photo_url TEXT,
        employment_status VARCHAR(32),
        employment_type VARCHAR(32),
        fluent_languages TEXT NOT NULL DEFAULT '[]'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS hr_records (
        id VARCHAR(64) PRIMARY KEY REFERENCES staff_profiles (id),
        sin VARCHAR(16),
        date_of_birth VARCHAR(10),
        emergency_contact_name VARCHAR(160),
        emergency_contact_phone VARCHAR(32),
        end_date VARCHAR(10)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS role_permissions (
        viewer_role VARCHAR(32) NOT NULL,
        target_department VARCHAR(32) NOT NULL,
        can_view BOOLEAN NOT NULL DEFAULT FALSE,
        visible_fields TEXT NOT NULL DEFAULT '[]',
        PRIMARY KEY (viewer_role, target_department)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS portal_users (
        id VARCHAR(64) PRIMARY KEY REFERENCES staff_profiles (id),
        api_key VARCHAR(128) NOT NULL UNIQUE,
        is_active BOOLEAN NOT NULL DEFAULT TRUE
    )
    """,
)


def init_engine(db_uri: Optional[str] = None):
    """Create a SQLAlchemy engine and verify the connection."""
    db_uri = db_uri or get_env("DB_URI")
    kwargs = {}
    if db_uri in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection, otherwise every connect() sees an empty db
        kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    engine = create_engine(db_uri, echo=False, future=True, **kwargs)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        print("ERROR: could not connect to DB:", e, file=sys.stderr)
        sys.exit(1)
    print("[init] Connected to DB.")
    return engine


def create_schema(engine) -> None:
    """Create the portal tables if they do not exist yet."""
    with engine.begin() as conn:
        for ddl in SCHEMA_DDL:
            conn.execute(text(ddl))
    print(f"[init] Schema ready ({', '.join(TABLES)}).")
