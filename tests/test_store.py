"""
Tests for the tabular store against an in-memory SQLite database.
"""

import pytest
from sqlalchemy.exc import DataError, OperationalError, ProgrammingError

from staffdir.errors import NotFoundError, StoreError, TransientNetworkError, ValidationError
from staffdir.store import TabularStore


# ── Helpers / Fakes ──────────────────────────────────────────────────

class BrokenEngine:
    """An engine whose connections always fail, like a dropped network link."""
    def connect(self):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    begin = connect


class RejectingEngine:
    """An engine whose connections fail with a fixed driver error."""
    def __init__(self, error):
        self.error = error

    def connect(self):
        raise self.error

    begin = connect


# ── Tests: fetch_one ─────────────────────────────────────────────────

def test_fetch_one_decodes_list_columns(store, add_staff):
    add_staff("a", ["rmt", "hr"], "clinical", locations=["Burnaby", "Richmond"], fluent_languages=["English"])
    row = store.fetch_one("staff_profiles", {"id": "a"})
    assert sorted(row["role"]) == ["hr", "rmt"]
    assert row["clinic_locations"] == ["Burnaby", "Richmond"]
    assert row["fluent_languages"] == ["English"]


def test_fetch_one_missing_raises_not_found(store):
    with pytest.raises(NotFoundError):
        store.fetch_one("staff_profiles", {"id": "nope"})


def test_fetch_one_requires_full_key(store):
    with pytest.raises(ValidationError, match="keyed by"):
        store.fetch_one("role_permissions", {"viewer_role": "rmt"})


def test_unknown_table_is_rejected(store):
    with pytest.raises(ValidationError, match="Unknown table"):
        store.fetch_one("payroll", {"id": "a"})


def test_legacy_scalar_role_column_reads_as_list(store):
    with store.engine.begin() as conn:
        conn.exec_driver_sql("INSERT INTO staff_profiles (id, role) VALUES ('old', 'director')")
    assert store.fetch_one("staff_profiles", {"id": "old"})["role"] == ["director"]


# ── Tests: fetch_many ────────────────────────────────────────────────

def test_fetch_many_equality_and_membership(store, add_rule):
    add_rule("rmt", "clinical", True, ["bio"])
    add_rule("rmt", "finance", False)
    add_rule("hr", "clinical", True)
    add_rule("tcm", "clinical", True)

    rows = store.fetch_many("role_permissions", any_of={"viewer_role": ["rmt", "hr"]},
                            order_by=("viewer_role", "target_department"))
    assert [(r["viewer_role"], r["target_department"]) for r in rows] == [
        ("hr", "clinical"), ("rmt", "clinical"), ("rmt", "finance"),
    ]
    assert rows[1]["can_view"] is True
    assert rows[2]["can_view"] is False

    rows = store.fetch_many("role_permissions", equals={"target_department": "clinical", "can_view": True})
    assert {r["viewer_role"] for r in rows} == {"rmt", "hr", "tcm"}


def test_fetch_many_empty_membership_matches_nothing(store, add_rule):
    add_rule("rmt", "clinical")
    assert store.fetch_many("role_permissions", any_of={"viewer_role": []}) == []


def test_fetch_many_rejects_unknown_columns(store):
    with pytest.raises(ValidationError, match="Unknown column"):
        store.fetch_many("staff_profiles", equals={"salary": 1})
    with pytest.raises(ValidationError, match="Unknown column"):
        store.fetch_many("staff_profiles", order_by=("id; DROP TABLE staff_profiles",))


# ── Tests: update ────────────────────────────────────────────────────

def test_update_returns_stored_row(store, add_staff):
    add_staff("a", ["rmt"], "clinical")
    row = store.update("staff_profiles", {"id": "a"}, {"bio": "New bio", "fluent_languages": ["French"]})
    assert row["bio"] == "New bio"
    assert row["fluent_languages"] == ["French"]


def test_update_missing_row_raises_not_found(store):
    with pytest.raises(NotFoundError):
        store.update("staff_profiles", {"id": "ghost"}, {"bio": "x"})


def test_update_requires_values(store):
    with pytest.raises(ValidationError, match="Nothing to update"):
        store.update("staff_profiles", {"id": "a"}, {})


# ── Tests: upsert ────────────────────────────────────────────────────

def test_upsert_overwrites_by_composite_key(store):
    key = {"viewer_role": "rmt", "target_department": "clinical"}
    store.upsert("role_permissions", dict(key, can_view=True, visible_fields=["bio"]))
    row = store.upsert("role_permissions", dict(key, can_view=False, visible_fields=[]))
    assert row == dict(key, can_view=False, visible_fields=[])
    assert len(store.fetch_many("role_permissions")) == 1


def test_upsert_requires_composite_key(store):
    with pytest.raises(ValidationError, match="missing key column"):
        store.upsert("role_permissions", {"viewer_role": "rmt", "can_view": True})


def test_upsert_integrity_violation_becomes_validation_error(store, add_staff):
    add_staff("a", ["rmt"], "clinical", api_key="dup")
    add_staff("b", ["rmt"], "clinical")
    with pytest.raises(ValidationError, match="rejected"):
        store.upsert("portal_users", {"id": "b", "api_key": "dup", "is_active": True})


# ── Tests: transient failures ────────────────────────────────────────

def test_connection_failure_surfaces_as_transient_error(capsys):
    broken = TabularStore(BrokenEngine())
    with pytest.raises(TransientNetworkError, match="unreachable"):
        broken.fetch_one("staff_profiles", {"id": "a"})
    with pytest.raises(TransientNetworkError):
        broken.upsert("role_permissions", {"viewer_role": "rmt", "target_department": "it", "can_view": False})
    assert "[ERROR] Store unavailable" in capsys.readouterr().err


def test_value_too_long_becomes_validation_error():
    error = DataError("UPDATE staff_profiles", {}, Exception("value too long for type character varying(32)"))
    store = TabularStore(RejectingEngine(error))
    with pytest.raises(ValidationError, match="does not fit"):
        store.update("staff_profiles", {"id": "a"}, {"work_phone": "6" * 40})


def test_other_driver_errors_become_store_errors(capsys):
    error = ProgrammingError("SELECT", {}, Exception("relation \"staff_profiles\" does not exist"))
    store = TabularStore(RejectingEngine(error))
    with pytest.raises(StoreError) as e:
        store.fetch_one("staff_profiles", {"id": "a"})
    assert e.value.status_code == 500
    assert "[ERROR] Store error during 'load staff_profiles'" in capsys.readouterr().err
