"""
Profile, directory and HR use cases with their access checks.
"""

from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

from staffdir.config import (
    CLINIC_LOCATIONS,
    HR_EDITABLE_FIELDS,
    HR_PRIVILEGED_ROLES,
    SELF_EDITABLE_FIELDS,
)
from staffdir.errors import AccessDeniedError, ValidationError
from staffdir.formatters import format_department
from staffdir.matrix import require_matrix_admin
from staffdir.models import AccessContext, HRRecord, StaffProfile
from staffdir.rbac import refresh_access_context, visible_roster_for
from staffdir.repository import (
    HRRepository,
    PermissionRepository,
    ProfileRepository,
    require_department,
    require_list,
    require_role,
)
from staffdir.store import TabularStore

UNASSIGNED = "Unassigned"


# ── Own profile ──────────────────────────────────────────────────────

def get_own_profile(store: TabularStore, ctx: AccessContext) -> StaffProfile:
    return ProfileRepository(store).get(ctx.user_id)


def update_own_profile(store: TabularStore, ctx: AccessContext, target_id: str, changes: Dict[str, Any]) -> StaffProfile:
    """Self-service edit. Returns the row as confirmed by the store.

    Legal names and the display name stay with HR: only a viewer holding an
    HR-privileged role may change them, even on their own profile.
    """
    if target_id != ctx.user_id:
        raise AccessDeniedError("You can only edit your own profile.")
    not_editable = sorted(set(changes) - SELF_EDITABLE_FIELDS - HR_EDITABLE_FIELDS)
    if not_editable:
        raise ValidationError(f"These fields cannot be changed here: {', '.join(not_editable)}.")
    hr_only = sorted(set(changes) & HR_EDITABLE_FIELDS)
    if hr_only and not refresh_access_context(store, ctx).roles & HR_PRIVILEGED_ROLES:
        raise AccessDeniedError(f"Only HR can change: {', '.join(hr_only)}.")

    values = dict(changes)
    if "fluent_languages" in values:
        langs = values["fluent_languages"]
        if isinstance(langs, str) or not isinstance(langs, (list, tuple, set)):
            raise ValidationError("fluent_languages must be a list.")
        values["fluent_languages"] = [str(lang).strip() for lang in langs if str(lang).strip()]
    for name, value in values.items():
        if name != "fluent_languages" and value is not None and not isinstance(value, str):
            raise ValidationError(f"{name} must be text.")
    return ProfileRepository(store).update(target_id, values)


# ── Directory ────────────────────────────────────────────────────────

def load_directory(store: TabularStore, ctx: AccessContext) -> List[StaffProfile]:
    """Fetch the viewer, their rules and the roster, then filter."""
    viewer = refresh_access_context(store, ctx)
    rules = PermissionRepository(store).list_for_roles(viewer.roles)
    roster = ProfileRepository(store).list_all()
    return visible_roster_for(viewer, rules, roster)


def get_staff_profile(store: TabularStore, ctx: AccessContext, target_id: str) -> StaffProfile:
    """A single directory entry. Missing and hidden targets fail differently."""
    viewer = refresh_access_context(store, ctx)
    target = ProfileRepository(store).get(target_id)
    rules = PermissionRepository(store).list_for_roles(viewer.roles)
    visible = visible_roster_for(viewer, rules, [target])
    if not visible:
        raise AccessDeniedError("You do not have access to this staff member.")
    return visible[0]


def group_by_department(roster: Iterable[StaffProfile]) -> "OrderedDict[str, List[StaffProfile]]":
    """Group by department label, alphabetically, with Unassigned last."""
    groups: Dict[str, List[StaffProfile]] = {}
    for person in roster:
        label = format_department(person.department.value) if person.department else UNASSIGNED
        groups.setdefault(label, []).append(person)
    ordered = sorted(groups, key=lambda label: (label == UNASSIGNED, label.lower()))
    return OrderedDict((label, groups[label]) for label in ordered)


def update_staff_assignment(
    store: TabularStore,
    ctx: AccessContext,
    target_id: str,
    roles: Iterable[Any],
    department: Optional[Any],
    clinic_locations: Iterable[Any],
) -> StaffProfile:
    """Change another staff member's roles, department and locations (matrix admin only)."""
    require_matrix_admin(ctx)
    parsed_roles = {require_role(r) for r in require_list(roles, "roles", "role names", allow_single=True)}
    parsed_department = require_department(department) if department else None
    locations = {
        str(loc) for loc in require_list(clinic_locations, "clinic_locations", "location names", allow_single=True)
    }
    unknown = sorted(locations - set(CLINIC_LOCATIONS))
    if unknown:
        raise ValidationError(f"Unknown clinic location(s): {', '.join(unknown)}.")
    return ProfileRepository(store).update(target_id, {
        "roles": parsed_roles,
        "department": parsed_department,
        "clinic_locations": locations,
    })


# ── HR records ───────────────────────────────────────────────────────

def can_read_hr(ctx: AccessContext, target_id: str) -> bool:
    return target_id == ctx.user_id or bool(ctx.roles & HR_PRIVILEGED_ROLES)


def get_hr_record(store: TabularStore, ctx: AccessContext, target_id: str) -> HRRecord:
    """HR lookup by id. The role check runs before the fetch so denial leaks nothing."""
    if not can_read_hr(ctx, target_id):
        raise AccessDeniedError("HR records are restricted to HR and executive staff.")
    return HRRepository(store).get(target_id)
