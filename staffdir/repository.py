"""
Repositories mapping store rows to domain objects.
"""

from typing import Any, Dict, Iterable, List, Optional, Set

from staffdir.errors import NotFoundError, ValidationError
from staffdir.models import (
    Department,
    HRRecord,
    PermissionRule,
    ProfileField,
    Role,
    StaffProfile,
)
from staffdir.store import TabularStore

# Older rows name the phone field after the directory column.
FIELD_ALIASES = {"phone_number": ProfileField.WORK_PHONE}


# ── Tag parsing ──────────────────────────────────────────────────────
# Lenient parsers are used on stored data (unknown tags are skipped),
# the require_* variants on user input (unknown tags are rejected).

def _tag(value: Any) -> str:
    return str(getattr(value, "value", value)).strip().lower()


def parse_roles(raw: Any) -> Set[Role]:
    if raw is None:
        return set()
    if isinstance(raw, str):
        raw = [raw]
    roles = set()
    for value in raw:
        try:
            roles.add(Role(_tag(value)))
        except ValueError:
            print(f"[WARN] Skipping unknown role '{value}'.")
    return roles


def parse_department(raw: Any) -> Optional[Department]:
    if not raw:
        return None
    try:
        return Department(_tag(raw))
    except ValueError:
        print(f"[WARN] Unknown department '{raw}' treated as no department.")
        return None


def parse_fields(raw: Any) -> Set[ProfileField]:
    fields = set()
    for value in raw or []:
        name = _tag(value)
        if name in FIELD_ALIASES:
            fields.add(FIELD_ALIASES[name])
            continue
        try:
            fields.add(ProfileField(name))
        except ValueError:
            print(f"[WARN] Skipping unknown profile field '{value}'.")
    return fields


def require_role(value: Any) -> Role:
    if not value:
        raise ValidationError("viewer_role is required.")
    try:
        return Role(_tag(value))
    except ValueError:
        raise ValidationError(f"Unknown role '{value}'.") from None


def require_department(value: Any) -> Department:
    if not value:
        raise ValidationError("target_department is required.")
    try:
        return Department(_tag(value))
    except ValueError:
        raise ValidationError(f"Unknown department '{value}'.") from None


def require_list(value: Any, name: str, noun: str, allow_single: bool = False) -> List[Any]:
    """Accept a JSON array (or, with *allow_single*, one bare string) as a list."""
    if value is None:
        return []
    if isinstance(value, str) and allow_single:
        return [value]
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ValidationError(f"{name} must be a list of {noun}.")
    return list(value)


def require_field(value: Any) -> ProfileField:
    name = _tag(value)
    if name in FIELD_ALIASES:
        return FIELD_ALIASES[name]
    try:
        return ProfileField(name)
    except ValueError:
        raise ValidationError(f"Unknown profile field '{value}'.") from None


# ── Row mapping ──────────────────────────────────────────────────────

def profile_from_row(row: Dict[str, Any]) -> StaffProfile:
    return StaffProfile(
        id=str(row["id"]),
        roles=parse_roles(row.get("role")),
        department=parse_department(row.get("department")),
        clinic_locations={str(loc) for loc in row.get("clinic_locations") or []},
        job_title=row.get("job_title"),
        employee_id=row.get("employee_id"),
        preferred_name=row.get("preferred_name"),
        legal_first_name=row.get("legal_first_name"),
        legal_middle_name=row.get("legal_middle_name"),
        legal_last_name=row.get("legal_last_name"),
        display_name=row.get("display_name"),
        work_email=row.get("work_email"),
        work_phone=row.get("work_phone"),
        bio=row.get("bio"),
        practitioner_license_number=row.get("practitioner_license_number"),
        highest_education=row.get("highest_education"),
        profile_photo_url=row.get("profile_photo_url"),
        employment_status=row.get("employment_status"),
        employment_type=row.get("employment_type"),
        fluent_languages=list(row.get("fluent_languages") or []),
    )


def rule_from_row(row: Dict[str, Any]) -> Optional[PermissionRule]:
    """Return None for rows whose key no longer parses (they can never match)."""
    try:
        role = Role(str(row["viewer_role"]).strip().lower())
        department = Department(str(row["target_department"]).strip().lower())
    except ValueError:
        print(f"[WARN] Ignoring permission row {row.get('viewer_role')}/{row.get('target_department')}.")
        return None
    return PermissionRule(
        viewer_role=role,
        target_department=department,
        can_view=bool(row.get("can_view")),
        visible_fields=parse_fields(row.get("visible_fields")),
    )


# ── Repositories ─────────────────────────────────────────────────────

class ProfileRepository:
    table = "staff_profiles"

    def __init__(self, store: TabularStore):
        self._store = store

    def get(self, staff_id: str) -> StaffProfile:
        return profile_from_row(self._store.fetch_one(self.table, {"id": staff_id}))

    def list_all(self) -> List[StaffProfile]:
        rows = self._store.fetch_many(self.table, order_by=("department", "legal_last_name", "id"))
        return [profile_from_row(r) for r in rows]

    def update(self, staff_id: str, values: Dict[str, Any]) -> StaffProfile:
        values = dict(values)
        if "roles" in values:
            values["role"] = sorted(r.value for r in values.pop("roles"))
        if isinstance(values.get("department"), Department):
            values["department"] = values["department"].value
        if "clinic_locations" in values:
            values["clinic_locations"] = sorted(values["clinic_locations"])
        return profile_from_row(self._store.update(self.table, {"id": staff_id}, values))


class HRRepository:
    table = "hr_records"

    def __init__(self, store: TabularStore):
        self._store = store

    def get(self, staff_id: str) -> HRRecord:
        row = self._store.fetch_one(self.table, {"id": staff_id})
        return HRRecord(
            id=str(row["id"]),
            sin=row.get("sin"),
            date_of_birth=row.get("date_of_birth"),
            emergency_contact_name=row.get("emergency_contact_name"),
            emergency_contact_phone=row.get("emergency_contact_phone"),
            end_date=row.get("end_date"),
        )


class PermissionRepository:
    table = "role_permissions"

    def __init__(self, store: TabularStore):
        self._store = store

    def _rules(self, rows) -> List[PermissionRule]:
        return [r for r in (rule_from_row(row) for row in rows) if r is not None]

    def list_all(self) -> List[PermissionRule]:
        return self._rules(self._store.fetch_many(self.table, order_by=("viewer_role", "target_department")))

    def list_for_roles(self, roles: Iterable[Role]) -> List[PermissionRule]:
        values = sorted(r.value for r in roles)
        return self._rules(self._store.fetch_many(
            self.table, any_of={"viewer_role": values}, order_by=("target_department",),
        ))

    def get(self, role: Role, department: Department) -> Optional[PermissionRule]:
        try:
            row = self._store.fetch_one(self.table, {
                "viewer_role": role.value, "target_department": department.value,
            })
        except NotFoundError:
            return None
        return rule_from_row(row)

    def upsert(self, rule: PermissionRule) -> PermissionRule:
        row = self._store.upsert(self.table, {
            "viewer_role": rule.viewer_role.value,
            "target_department": rule.target_department.value,
            "can_view": rule.can_view,
            "visible_fields": sorted(f.value for f in rule.visible_fields),
        })
        return rule_from_row(row)


class PortalUserRepository:
    table = "portal_users"

    def __init__(self, store: TabularStore):
        self._store = store

    def find_active_id(self, api_key: str) -> Optional[str]:
        rows = self._store.fetch_many(self.table, equals={"api_key": api_key, "is_active": True})
        return str(rows[0]["id"]) if rows else None
