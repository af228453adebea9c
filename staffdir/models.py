"""
Domain enums and dataclasses used across the application.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set


class Role(str, Enum):
    """Role tags a staff member can hold (a profile may hold several)."""
    ACUPUNCTURIST = "acupuncturist"
    ADMIN = "admin"
    CHIROPRACTOR = "chiropractor"
    CLINIC_MANAGER = "clinic_manager"
    DIRECTOR = "director"
    KINESIOLOGIST = "kinesiologist"
    NATUROPATH = "naturopath"
    OFFICE_MANAGER = "office_manager"
    PHYSIOTHERAPIST = "physiotherapist"
    FRONT_DESK = "front_desk"
    RMT = "rmt"
    TCM = "tcm"
    SYSTEM_ADMIN = "system_admin"
    EXECUTIVE = "executive"
    MANAGEMENT = "management"
    HR_MANAGEMENT = "hr_management"
    ADMINISTRATIVE_SUPPORT = "administrative_support"
    CLINICAL_PROVIDER = "clinical_provider"
    HR = "hr"


class Department(str, Enum):
    CLINICAL = "clinical"
    EXECUTIVE = "executive"
    FINANCE = "finance"
    IT = "it"
    MARKETING = "marketing"


class ProfileField(str, Enum):
    """Profile fields whose visibility is controlled by the permission matrix."""
    WORK_PHONE = "work_phone"
    BIO = "bio"


@dataclass
class StaffProfile:
    """A staff member's directory record."""
    id: str
    roles: Set[Role] = field(default_factory=set)
    department: Optional[Department] = None
    clinic_locations: Set[str] = field(default_factory=set)
    job_title: Optional[str] = None
    employee_id: Optional[str] = None
    preferred_name: Optional[str] = None
    legal_first_name: Optional[str] = None
    legal_middle_name: Optional[str] = None
    legal_last_name: Optional[str] = None
    display_name: Optional[str] = None
    work_email: Optional[str] = None
    work_phone: Optional[str] = None
    bio: Optional[str] = None
    practitioner_license_number: Optional[str] = None
    highest_education: Optional[str] = None
    profile_photo_url: Optional[str] = None
    employment_status: Optional[str] = None
    employment_type: Optional[str] = None
    fluent_languages: List[str] = field(default_factory=list)

    @property
    def full_name(self) -> str:
        first = self.preferred_name or self.legal_first_name or ""
        return " ".join(p for p in (first, self.legal_last_name or "") if p) or (self.display_name or self.id)


@dataclass
class HRRecord:
    """Sensitive HR data, keyed 1:1 by staff id and fetched separately."""
    id: str
    sin: Optional[str] = None
    date_of_birth: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    end_date: Optional[str] = None


@dataclass
class PermissionRule:
    """One cell of the visibility matrix."""
    viewer_role: Role
    target_department: Department
    can_view: bool = False
    visible_fields: Set[ProfileField] = field(default_factory=set)


@dataclass
class AccessContext:
    """Represents the authenticated viewer's identity and scope."""
    user_id: str
    display_name: str
    roles: Set[Role]
    clinic_locations: Set[str]
    department: Optional[Department] = None


# ── Serialisation helpers ────────────────────────────────────────────

def profile_to_dict(profile: StaffProfile) -> dict:
    return {
        "id": profile.id,
        "roles": sorted(r.value for r in profile.roles),
        "department": profile.department.value if profile.department else None,
        "clinic_locations": sorted(profile.clinic_locations),
        "job_title": profile.job_title,
        "employee_id": profile.employee_id,
        "preferred_name": profile.preferred_name,
        "legal_first_name": profile.legal_first_name,
        "legal_middle_name": profile.legal_middle_name,
        "legal_last_name": profile.legal_last_name,
        "display_name": profile.display_name,
        "work_email": profile.work_email,
        "work_phone": profile.work_phone,
        "bio": profile.bio,
        "practitioner_license_number": profile.practitioner_license_number,
        "highest_education": profile.highest_education,
        "profile_photo_url": profile.profile_photo_url,
        "employment_status": profile.employment_status,
        "employment_type": profile.employment_type,
        "fluent_languages": list(profile.fluent_languages),
    }


def hr_record_to_dict(record: HRRecord) -> dict:
    return {
        "id": record.id,
        "sin": record.sin,
        "date_of_birth": record.date_of_birth,
        "emergency_contact_name": record.emergency_contact_name,
        "emergency_contact_phone": record.emergency_contact_phone,
        "end_date": record.end_date,
    }


def rule_to_dict(rule: PermissionRule) -> dict:
    return {
        "viewer_role": rule.viewer_role.value,
        "target_department": rule.target_department.value,
        "can_view": rule.can_view,
        "visible_fields": sorted(f.value for f in rule.visible_fields),
    }
