"""
Visibility matrix editing, restricted to the matrix-admin role.
"""

from typing import Any, Iterable, List

from staffdir.config import MATRIX_ADMIN_ROLE
from staffdir.errors import AccessDeniedError, ValidationError
from staffdir.models import AccessContext, PermissionRule
from staffdir.rbac import PermissionMatrix
from staffdir.repository import (
    PermissionRepository,
    require_department,
    require_field,
    require_list,
    require_role,
)
from staffdir.store import TabularStore

CAN_VIEW = "can_view"


def require_matrix_admin(ctx: AccessContext) -> None:
    if MATRIX_ADMIN_ROLE not in ctx.roles:
        raise AccessDeniedError("Only the matrix administrator can manage visibility settings.")


def build_rule(viewer_role: Any, target_department: Any, can_view: Any, visible_fields: Iterable[Any] = ()) -> PermissionRule:
    """Validate raw input into a rule. Denying rules never keep a field list."""
    role = require_role(viewer_role)
    department = require_department(target_department)
    if not isinstance(can_view, bool):
        raise ValidationError("can_view must be true or false.")
    fields = {require_field(f) for f in require_list(visible_fields, "visible_fields", "field names")}
    return PermissionRule(
        viewer_role=role,
        target_department=department,
        can_view=can_view,
        visible_fields=fields if can_view else set(),
    )


def upsert_rule(store: TabularStore, ctx: AccessContext, viewer_role, target_department,
                can_view, visible_fields=()) -> PermissionRule:
    """Create or overwrite the rule for (viewer_role, target_department). Last writer wins."""
    require_matrix_admin(ctx)
    rule = build_rule(viewer_role, target_department, can_view, visible_fields)
    return PermissionRepository(store).upsert(rule)


def toggle_rule(store: TabularStore, ctx: AccessContext, viewer_role, target_department, toggle: str) -> PermissionRule:
    """Flip can_view or one field of a rule, starting from the stored rule or the default deny."""
    require_matrix_admin(ctx)
    role = require_role(viewer_role)
    department = require_department(target_department)
    repo = PermissionRepository(store)
    current = repo.get(role, department) or PermissionRule(role, department)

    if toggle == CAN_VIEW:
        updated = PermissionRule(role, department, not current.can_view, set(current.visible_fields))
    else:
        field = require_field(toggle)
        if not current.can_view:
            raise ValidationError(
                f"Enable visibility of {department.value} for {role.value} before showing '{field.value}'."
            )
        fields = set(current.visible_fields) ^ {field}
        updated = PermissionRule(role, department, True, fields)

    if not updated.can_view:
        updated.visible_fields = set()
    return repo.upsert(updated)


def matrix_for_role(store: TabularStore, ctx: AccessContext, viewer_role) -> List[dict]:
    """One row per department for *viewer_role*; missing pairs show as denied."""
    require_matrix_admin(ctx)
    role = require_role(viewer_role)
    matrix = PermissionMatrix(PermissionRepository(store).list_for_roles([role]))
    return [
        {
            "viewer_role": role.value,
            "target_department": dept.value,
            "can_view": decision.can_view,
            "visible_fields": sorted(f.value for f in decision.visible_fields),
        }
        for dept, decision in matrix.row(role)
    ]


def list_rules(store: TabularStore, ctx: AccessContext) -> List[PermissionRule]:
    require_matrix_admin(ctx)
    return PermissionRepository(store).list_all()
