"""
Role-Based Access Control: loading the viewer context and filtering the staff roster.
"""

from dataclasses import dataclass, replace
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from staffdir.config import ALL_LOCATIONS_MARKER, LOCATION_SCOPED_ROLES
from staffdir.errors import AuthenticationError, NotFoundError
from staffdir.models import (
    AccessContext,
    Department,
    PermissionRule,
    ProfileField,
    Role,
    StaffProfile,
)
from staffdir.repository import PortalUserRepository, ProfileRepository
from staffdir.store import TabularStore


# ── Viewer context ───────────────────────────────────────────────────

def context_from_profile(profile: StaffProfile) -> AccessContext:
    return AccessContext(
        user_id=profile.id,
        display_name=profile.full_name,
        roles=set(profile.roles),
        clinic_locations=set(profile.clinic_locations),
        department=profile.department,
    )


def load_access_context(store: TabularStore, api_key: str) -> AccessContext:
    """Look up a user by API key and return their AccessContext."""
    user_id = PortalUserRepository(store).find_active_id(api_key)
    if not user_id:
        raise AuthenticationError("Invalid key or user inactive.")
    try:
        profile = ProfileRepository(store).get(user_id)
    except NotFoundError:
        raise AuthenticationError("Profile not found. Please contact the clinic administrator.") from None
    return context_from_profile(profile)


def refresh_access_context(store: TabularStore, ctx: AccessContext) -> AccessContext:
    """Re-read the viewer's profile so role or location changes apply immediately."""
    return context_from_profile(ProfileRepository(store).get(ctx.user_id))


# ── Permission matrix ────────────────────────────────────────────────

@dataclass(frozen=True)
class Decision:
    """Outcome of one (viewer role, target department) lookup."""
    can_view: bool
    visible_fields: FrozenSet[ProfileField] = frozenset()


DENIED = Decision(can_view=False)


class PermissionMatrix:
    """Total function over Role x Department.

    Pairs without a rule, rules with can_view=False and targets without a
    known department all resolve to DENIED, so a stale visible_fields list
    on a denying rule is never honoured.
    """

    def __init__(self, rules: Iterable[PermissionRule]):
        self._cells: Dict[Tuple[Role, Department], Decision] = {}
        for rule in rules:
            key = (rule.viewer_role, rule.target_department)
            if rule.can_view:
                self._cells[key] = Decision(True, frozenset(rule.visible_fields))
            else:
                self._cells[key] = DENIED

    def decide(self, role: Role, department: Optional[Department]) -> Decision:
        if department is None:
            return DENIED
        return self._cells.get((role, department), DENIED)

    def decide_any(self, roles: Iterable[Role], department: Optional[Department]) -> Decision:
        """Merge the decisions of every held role: visible if any role grants."""
        granted = [d for d in (self.decide(r, department) for r in roles) if d.can_view]
        if not granted:
            return DENIED
        fields: Set[ProfileField] = set()
        for d in granted:
            fields |= d.visible_fields
        return Decision(True, frozenset(fields))

    def row(self, role: Role) -> List[Tuple[Department, Decision]]:
        return [(dept, self.decide(role, dept)) for dept in Department]


# ── Roster filtering ─────────────────────────────────────────────────

def passes_location_gate(viewer_roles: Set[Role], viewer_locations: Set[str], target: StaffProfile) -> bool:
    if not viewer_roles & LOCATION_SCOPED_ROLES:
        return True
    if ALL_LOCATIONS_MARKER in viewer_locations:
        return True
    return bool(target.clinic_locations & viewer_locations)


def redact(profile: StaffProfile, visible_fields: FrozenSet[ProfileField]) -> StaffProfile:
    """Clear every controllable field not listed in *visible_fields*."""
    cleared = {f.value: None for f in ProfileField if f not in visible_fields}
    return replace(profile, **cleared) if cleared else profile


def visible_roster(
    viewer_roles: Iterable[Role],
    viewer_locations: Iterable[str],
    rules: Iterable[PermissionRule],
    roster: Iterable[StaffProfile],
    viewer_id: Optional[str] = None,
) -> List[StaffProfile]:
    """Return the profiles the viewer may see, in roster order, with redaction applied.

    Multi-role viewers get OR semantics: a target is visible when any held
    role grants its department, and a controllable field is shown when any
    granting rule lists it. The viewer's own profile is always returned
    unredacted. Never raises; unknown departments are simply denied.
    """
    roles = set(viewer_roles)
    if not roles:
        return []
    locations = set(viewer_locations)
    matrix = PermissionMatrix(rules)

    visible = []
    for target in roster:
        if viewer_id is not None and target.id == viewer_id:
            visible.append(target)
            continue
        if not passes_location_gate(roles, locations, target):
            continue
        decision = matrix.decide_any(roles, target.department)
        if not decision.can_view:
            continue
        visible.append(redact(target, decision.visible_fields))
    return visible


def visible_roster_for(ctx: AccessContext, rules: Iterable[PermissionRule], roster: Iterable[StaffProfile]) -> List[StaffProfile]:
    return visible_roster(ctx.roles, ctx.clinic_locations, rules, roster, viewer_id=ctx.user_id)
