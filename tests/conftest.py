"""
Shared fixtures: an in-memory SQLite store with the portal schema.
"""

import pytest

from staffdir.database import create_schema, init_engine
from staffdir.store import TabularStore


@pytest.fixture
def store():
    engine = init_engine("sqlite://")
    create_schema(engine)
    yield TabularStore(engine)
    engine.dispose()


@pytest.fixture
def add_staff(store):
    """Insert a staff profile (and optionally a login key) and return its id."""
    def _add(staff_id, roles, department, locations=("Burnaby",), api_key=None, **fields):
        row = {
            "id": staff_id,
            "role": list(roles),
            "department": department,
            "clinic_locations": list(locations),
            "legal_first_name": staff_id.capitalize(),
            "legal_last_name": "Tester",
            "work_phone": "6045551234",
            "bio": f"Bio of {staff_id}",
        }
        row.update(fields)
        store.upsert("staff_profiles", row)
        if api_key:
            store.upsert("portal_users", {"id": staff_id, "api_key": api_key, "is_active": True})
        return staff_id
    return _add


@pytest.fixture
def add_rule(store):
    def _add(role, department, can_view=True, fields=()):
        store.upsert("role_permissions", {
            "viewer_role": role,
            "target_department": department,
            "can_view": can_view,
            "visible_fields": list(fields),
        })
    return _add
