#!/usr/bin/env python3
"""
Fill a development database with fake staff, HR records, portal users and a starter visibility matrix.
"""

import random
import uuid
from datetime import date, timedelta

from faker import Faker

from staffdir.config import CLINIC_LOCATIONS
from staffdir.database import create_schema, init_engine
from staffdir.models import Department, ProfileField, Role
from staffdir.store import TabularStore

# --------------------------------------------------------------------
# CONFIG
# --------------------------------------------------------------------
NUM_STAFF = 40

# role -> department it usually sits in
ROLE_DEPARTMENTS = {
    Role.RMT: Department.CLINICAL,
    Role.PHYSIOTHERAPIST: Department.CLINICAL,
    Role.CHIROPRACTOR: Department.CLINICAL,
    Role.ACUPUNCTURIST: Department.CLINICAL,
    Role.KINESIOLOGIST: Department.CLINICAL,
    Role.NATUROPATH: Department.CLINICAL,
    Role.TCM: Department.CLINICAL,
    Role.FRONT_DESK: Department.CLINICAL,
    Role.CLINIC_MANAGER: Department.CLINICAL,
    Role.OFFICE_MANAGER: Department.FINANCE,
    Role.ADMIN: Department.IT,
    Role.DIRECTOR: Department.EXECUTIVE,
}

# (viewer role, department) -> visible fields; anything missing stays denied
STARTER_MATRIX = {
    (Role.RMT, Department.CLINICAL): {ProfileField.BIO},
    (Role.PHYSIOTHERAPIST, Department.CLINICAL): {ProfileField.BIO},
    (Role.FRONT_DESK, Department.CLINICAL): {ProfileField.WORK_PHONE},
    (Role.CLINIC_MANAGER, Department.CLINICAL): {ProfileField.WORK_PHONE, ProfileField.BIO},
    (Role.CLINIC_MANAGER, Department.FINANCE): set(),
    (Role.OFFICE_MANAGER, Department.FINANCE): {ProfileField.WORK_PHONE},
}

# --------------------------------------------------------------------
# SETUP
# --------------------------------------------------------------------
fake = Faker("en_CA")
random.seed(42)
Faker.seed(42)


# --------------------------------------------------------------------
# SEED FUNCTIONS
# --------------------------------------------------------------------
def seed_staff(store, n=NUM_STAFF):
    staff = []
    roles = list(ROLE_DEPARTMENTS)
    for i in range(n):
        role = Role.DIRECTOR if i == 0 else random.choice(roles)
        first, last = fake.first_name(), fake.last_name()
        locations = ["Headquarter"] if role == Role.DIRECTOR else random.sample(CLINIC_LOCATIONS[1:], k=random.randint(1, 2))
        row = {
            "id": str(uuid.uuid4()),
            "role": [role.value],
            "department": ROLE_DEPARTMENTS[role].value,
            "clinic_locations": locations,
            "job_title": role.value.replace("_", " ").title(),
            "employee_id": f"E{1000 + i}",
            "legal_first_name": first,
            "legal_last_name": last,
            "display_name": f"{first} {last}",
            "work_email": f"{first}.{last}@clinic.example".lower(),
            "work_phone": fake.numerify("604#######"),
            "bio": fake.sentence(nb_words=14),
            "employment_status": "active",
            "employment_type": random.choice(["full_time", "part_time", "contract"]),
            "fluent_languages": random.sample(["English", "French", "Mandarin", "Cantonese", "Punjabi"], k=random.randint(1, 2)),
        }
        store.upsert("staff_profiles", row)
        staff.append((row["id"], role))
    return staff


def seed_hr_records(store, staff):
    for staff_id, _role in staff:
        birth = date(1965, 1, 1) + timedelta(days=random.randint(0, 12000))
        store.upsert("hr_records", {
            "id": staff_id,
            "sin": fake.numerify("### ### ###"),
            "date_of_birth": birth.isoformat(),
            "emergency_contact_name": fake.name(),
            "emergency_contact_phone": fake.numerify("778#######"),
        })


def seed_portal_users(store, staff):
    keys = {}
    for staff_id, role in staff:
        api_key = f"staff_{uuid.uuid4().hex}"
        store.upsert("portal_users", {"id": staff_id, "api_key": api_key, "is_active": True})
        keys.setdefault(role, api_key)
    return keys


def seed_matrix(store):
    for (role, dept), fields in STARTER_MATRIX.items():
        store.upsert("role_permissions", {
            "viewer_role": role.value,
            "target_department": dept.value,
            "can_view": True,
            "visible_fields": sorted(f.value for f in fields),
        })


# --------------------------------------------------------------------
# MAIN
# --------------------------------------------------------------------
def main():
    engine = init_engine()
    create_schema(engine)
    store = TabularStore(engine)

    print("Seeding staff profiles...")
    staff = seed_staff(store)

    print("Seeding HR records...")
    seed_hr_records(store, staff)

    print("Seeding portal users...")
    keys = seed_portal_users(store, staff)

    print("Seeding visibility matrix...")
    seed_matrix(store)

    print("\nOne login key per role:")
    for role, key in sorted(keys.items(), key=lambda kv: kv[0].value):
        print(f"  {role.value:<16} {key}")
    print("Done!")


if __name__ == "__main__":
    main()
