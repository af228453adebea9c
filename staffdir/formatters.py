"""
Display formatting for phone numbers, roles and departments.
"""

import re
from typing import Iterable, Optional

# Labels that title-casing gets wrong.
ROLE_LABELS = {
    "rmt": "RMT",
    "tcm": "TCM",
    "it": "IT",
    "hr": "HR",
    "front_desk": "Front Desk",
    "system_admin": "System Admin",
    "hr_management": "HR Management",
    "administrative_support": "Admin Support",
}


def format_phone_number(value: Optional[str]) -> str:
    """Format a 10-digit number as 555-123-4567; anything else is returned as given."""
    if not value:
        return ""
    digits = re.sub(r"\D", "", str(value))
    m = re.fullmatch(r"(\d{3})(\d{3})(\d{4})", digits)
    if m:
        return "-".join(m.groups())
    return str(value)


def format_role(role: Optional[str]) -> str:
    if not role:
        return ""
    key = str(getattr(role, "value", role)).lower()
    if key in ROLE_LABELS:
        return ROLE_LABELS[key]
    return " ".join(word.capitalize() for word in key.split("_"))


def format_roles(roles: Iterable[str]) -> str:
    labels = [format_role(r) for r in sorted(roles)]
    return ", ".join(labels) if labels else "Staff"


def format_department(department: Optional[str]) -> str:
    if not department:
        return ""
    department = str(getattr(department, "value", department))
    if department.lower() == "it":
        return "IT"
    return department[:1].upper() + department[1:]
