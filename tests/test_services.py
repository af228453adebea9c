"""
Tests for profile, directory and HR access gating.
"""

import pytest

from staffdir.errors import AccessDeniedError, NotFoundError, ValidationError
from staffdir.models import AccessContext, Department, Role
from staffdir.rbac import refresh_access_context
from staffdir.repository import ProfileRepository
from staffdir.services import (
    get_hr_record,
    get_own_profile,
    get_staff_profile,
    group_by_department,
    load_directory,
    update_own_profile,
    update_staff_assignment,
)


def ctx_for(user_id, *roles, locations=("Burnaby",)):
    return AccessContext(user_id=user_id, display_name=user_id, roles=set(roles), clinic_locations=set(locations))


@pytest.fixture
def clinic(store, add_staff, add_rule):
    add_staff("rmt1", ["rmt"], "clinical", locations=["Burnaby"])
    add_staff("phys", ["physiotherapist"], "clinical", locations=["Richmond"])
    add_staff("acct", ["office_manager"], "finance", locations=["Headquarter"])
    add_staff("mgr", ["management", "clinical_provider"], "clinical", locations=["Burnaby"])
    add_staff("hr1", ["hr"], "executive", locations=["Headquarter"])
    add_staff("boss", ["director"], "executive", locations=["Headquarter"])
    add_staff("nodept", ["rmt"], "warehouse")
    store.upsert("hr_records", {"id": "phys", "sin": "123 456 789", "date_of_birth": "1990-04-02"})
    store.upsert("hr_records", {"id": "rmt1", "sin": "987 654 321"})

    add_rule("rmt", "clinical", True, ["bio"])
    add_rule("rmt", "finance", False, ["bio", "work_phone"])
    add_rule("management", "clinical", True, ["work_phone"])
    add_rule("clinical_provider", "clinical", True, ["bio"])
    add_rule("management", "finance", True)
    return store


# ── Own profile ──────────────────────────────────────────────────────

def test_get_own_profile_is_unredacted(clinic):
    profile = get_own_profile(clinic, ctx_for("rmt1", Role.RMT))
    assert profile.work_phone == "6045551234"
    assert profile.bio == "Bio of rmt1"


def test_update_own_profile(clinic):
    ctx = ctx_for("rmt1", Role.RMT)
    profile = update_own_profile(clinic, ctx, "rmt1", {
        "bio": "Sports massage", "preferred_name": "Sam", "fluent_languages": ["English", " ", "French"],
    })
    assert profile.bio == "Sports massage"
    assert profile.fluent_languages == ["English", "French"]
    assert get_own_profile(clinic, ctx).preferred_name == "Sam"


def test_update_other_profile_is_denied(clinic):
    with pytest.raises(AccessDeniedError):
        update_own_profile(clinic, ctx_for("rmt1", Role.RMT), "phys", {"bio": "hacked"})
    assert get_own_profile(clinic, ctx_for("phys", Role.PHYSIOTHERAPIST)).bio == "Bio of phys"


def test_legal_names_are_hr_only(clinic):
    with pytest.raises(AccessDeniedError, match="Only HR"):
        update_own_profile(clinic, ctx_for("rmt1", Role.RMT), "rmt1", {
            "legal_last_name": "Forged", "display_name": "Dr. Forged",
        })
    profile = get_own_profile(clinic, ctx_for("rmt1", Role.RMT))
    assert profile.legal_last_name == "Tester"
    assert profile.display_name is None


def test_stale_hr_session_cannot_edit_legal_names(clinic):
    with pytest.raises(AccessDeniedError):
        update_own_profile(clinic, ctx_for("rmt1", Role.HR), "rmt1", {"legal_first_name": "X"})


def test_hr_can_edit_own_legal_names(clinic):
    profile = update_own_profile(clinic, ctx_for("hr1", Role.HR), "hr1", {
        "legal_last_name": "Nguyen", "display_name": "Kim Nguyen", "bio": "People team",
    })
    assert profile.legal_last_name == "Nguyen"
    assert profile.display_name == "Kim Nguyen"
    assert profile.bio == "People team"


@pytest.mark.parametrize("changes", [
    {"role": ["director"]},
    {"department": "finance"},
    {"fluent_languages": "English"},
    {"bio": 42},
])
def test_update_own_profile_rejects_bad_changes(clinic, changes):
    with pytest.raises(ValidationError):
        update_own_profile(clinic, ctx_for("rmt1", Role.RMT), "rmt1", changes)


# ── Directory ────────────────────────────────────────────────────────

def test_directory_for_rmt(clinic):
    roster = load_directory(clinic, ctx_for("rmt1", Role.RMT))
    ids = [p.id for p in roster]
    assert "acct" not in ids       # finance denied
    assert "hr1" not in ids        # no executive rule
    assert "nodept" not in ids     # unknown department
    assert {"rmt1", "phys", "mgr"} <= set(ids)
    phys = next(p for p in roster if p.id == "phys")
    assert phys.bio == "Bio of phys"
    assert phys.work_phone is None
    me = next(p for p in roster if p.id == "rmt1")
    assert me.work_phone == "6045551234"


def test_directory_uses_stored_roles_not_session_roles(clinic):
    # a stale session claiming director rights still gets the stored rmt view
    roster = load_directory(clinic, ctx_for("rmt1", Role.DIRECTOR))
    assert "acct" not in [p.id for p in roster]


def test_directory_for_location_scoped_manager(clinic):
    roster = load_directory(clinic, ctx_for("mgr", Role.MANAGEMENT))
    ids = [p.id for p in roster]
    assert "phys" not in ids       # Richmond only
    assert "acct" not in ids       # Headquarter only, viewer is Burnaby
    rmt = next(p for p in roster if p.id == "rmt1")
    assert rmt.work_phone == "6045551234"
    assert rmt.bio == "Bio of rmt1"


def test_directory_for_viewer_without_roles(clinic, add_staff):
    add_staff("nobody", [], "clinical")
    assert load_directory(clinic, ctx_for("nobody")) == []


def test_get_staff_profile_separates_missing_from_hidden(clinic):
    ctx = refresh_access_context(clinic, ctx_for("rmt1"))
    assert get_staff_profile(clinic, ctx, "phys").work_phone is None
    with pytest.raises(AccessDeniedError):
        get_staff_profile(clinic, ctx, "acct")
    with pytest.raises(NotFoundError):
        get_staff_profile(clinic, ctx, "ghost")


def test_get_staff_profile_uses_stored_roles_not_session_roles(clinic):
    # the session claims director, the stored profile says rmt
    stale = ctx_for("rmt1", Role.DIRECTOR, locations=("Headquarter",))
    assert get_staff_profile(clinic, stale, "phys").bio == "Bio of phys"
    with pytest.raises(AccessDeniedError):
        get_staff_profile(clinic, stale, "acct")
    # and a session with no roles still gets the stored rmt view
    assert get_staff_profile(clinic, ctx_for("rmt1"), "phys").work_phone is None


def test_group_by_department_puts_unassigned_last(clinic):
    roster = ProfileRepository(clinic).list_all()
    groups = group_by_department(roster)
    assert list(groups) == ["Clinical", "Executive", "Finance", "Unassigned"]
    assert [p.id for p in groups["Unassigned"]] == ["nodept"]


# ── Assignments ──────────────────────────────────────────────────────

def test_update_staff_assignment_by_director(clinic):
    profile = update_staff_assignment(
        clinic, ctx_for("boss", Role.DIRECTOR), "phys",
        roles=["physiotherapist", "clinic_manager"], department="clinical",
        clinic_locations=["Richmond", "Burnaby"],
    )
    assert profile.roles == {Role.PHYSIOTHERAPIST, Role.CLINIC_MANAGER}
    assert profile.department == Department.CLINICAL
    assert profile.clinic_locations == {"Richmond", "Burnaby"}


def test_update_staff_assignment_denied_for_others(clinic):
    with pytest.raises(AccessDeniedError):
        update_staff_assignment(clinic, ctx_for("hr1", Role.HR), "phys", ["rmt"], "clinical", ["Burnaby"])


@pytest.mark.parametrize("roles, dept, locations", [
    (["wizard"], "clinical", ["Burnaby"]),
    (["rmt"], "warehouse", ["Burnaby"]),
    (["rmt"], "clinical", ["Vancouver"]),
    (5, "clinical", ["Burnaby"]),
    (["rmt"], "clinical", 5),
    ({"role": "rmt"}, "clinical", ["Burnaby"]),
])
def test_update_staff_assignment_validates_tags(clinic, roles, dept, locations):
    with pytest.raises(ValidationError):
        update_staff_assignment(clinic, ctx_for("boss", Role.DIRECTOR), "phys", roles, dept, locations)


def test_update_staff_assignment_accepts_single_strings(clinic):
    profile = update_staff_assignment(clinic, ctx_for("boss", Role.DIRECTOR), "phys", "rmt", "clinical", "Burnaby")
    assert profile.roles == {Role.RMT}
    assert profile.clinic_locations == {"Burnaby"}


def test_update_staff_assignment_missing_target(clinic):
    with pytest.raises(NotFoundError):
        update_staff_assignment(clinic, ctx_for("boss", Role.DIRECTOR), "ghost", ["rmt"], "clinical", [])


# ── HR records ───────────────────────────────────────────────────────

def test_hr_record_for_privileged_role(clinic):
    record = get_hr_record(clinic, ctx_for("hr1", Role.HR), "phys")
    assert record.sin == "123 456 789"
    assert record.date_of_birth == "1990-04-02"


def test_hr_record_for_self(clinic):
    assert get_hr_record(clinic, ctx_for("rmt1", Role.RMT), "rmt1").sin == "987 654 321"


def test_hr_record_denied_is_not_not_found(clinic):
    with pytest.raises(AccessDeniedError):
        get_hr_record(clinic, ctx_for("rmt1", Role.RMT), "phys")
    # denial does not reveal whether the record exists
    with pytest.raises(AccessDeniedError):
        get_hr_record(clinic, ctx_for("rmt1", Role.RMT), "ghost")


def test_hr_record_missing_for_privileged_role(clinic):
    with pytest.raises(NotFoundError):
        get_hr_record(clinic, ctx_for("boss", Role.EXECUTIVE), "acct")
