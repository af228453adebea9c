"""
Interactive CLI for the clinic staff directory.
Browse the directory, your profile, HR records and the visibility matrix with RBAC applied.
"""

import shlex

import pandas as pd

from staffdir.config import MAX_PREVIEW_ROWS
from staffdir.database import create_schema, init_engine
from staffdir.errors import PortalError
from staffdir.formatters import format_department, format_phone_number, format_roles
from staffdir.matrix import matrix_for_role, toggle_rule
from staffdir.models import hr_record_to_dict
from staffdir.rbac import load_access_context, refresh_access_context
from staffdir.services import (
    get_hr_record,
    get_own_profile,
    get_staff_profile,
    group_by_department,
    load_directory,
)
from staffdir.store import TabularStore

HELP = """Commands:
  directory                     show the staff directory you can see
  profile                       show your own profile
  staff <id>                    show one staff member
  hr <id>                       show an HR record
  matrix <role>                 show the visibility matrix for a role
  toggle <role> <dept> <what>   flip can_view, work_phone or bio
  quit"""


def roster_frame(people) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "id": p.id,
            "name": p.full_name,
            "roles": format_roles(r.value for r in p.roles),
            "title": p.job_title or "",
            "locations": ", ".join(sorted(p.clinic_locations)),
            "phone": format_phone_number(p.work_phone),
            "bio": (p.bio or "")[:40],
        }
        for p in people
    ])


def print_roster(roster) -> None:
    if not roster:
        print("(no staff visible)")
        return
    for label, people in group_by_department(roster).items():
        print(f"\n[{label} Team]")
        print(roster_frame(people).head(MAX_PREVIEW_ROWS).to_string(index=False))


def run_command(store, ctx, cmd, args) -> None:
    if cmd == "directory":
        print_roster(load_directory(store, ctx))
    elif cmd == "profile":
        print(roster_frame([get_own_profile(store, ctx)]).T.to_string(header=False))
    elif cmd == "staff" and len(args) == 1:
        print(roster_frame([get_staff_profile(store, ctx, args[0])]).T.to_string(header=False))
    elif cmd == "hr" and len(args) == 1:
        record = get_hr_record(store, refresh_access_context(store, ctx), args[0])
        for key, value in hr_record_to_dict(record).items():
            print(f"  {key:<24} {value or ''}")
    elif cmd == "matrix" and len(args) == 1:
        rows = matrix_for_role(store, refresh_access_context(store, ctx), args[0])
        df = pd.DataFrame(rows)
        df["target_department"] = df["target_department"].map(format_department)
        print(df.to_string(index=False))
    elif cmd == "toggle" and len(args) == 3:
        rule = toggle_rule(store, refresh_access_context(store, ctx), *args)
        print(f"[ok] {rule.viewer_role.value}/{rule.target_department.value}: "
              f"can_view={rule.can_view} fields={sorted(f.value for f in rule.visible_fields)}")
    else:
        print(HELP)


def main():
    print("=== Clinic Staff Directory ===\n")

    engine = init_engine()
    create_schema(engine)
    store = TabularStore(engine)

    # ── Login ────────────────────────────────────────────────────────
    try:
        api_key = input("Enter access key (or 'quit'): ").strip()
    except (EOFError, KeyboardInterrupt):
        print("\nExiting.")
        return

    if not api_key or api_key.lower() in {"quit", "exit"}:
        print("Goodbye.")
        return

    try:
        ctx = load_access_context(store, api_key)
    except PortalError as e:
        print("\n[ERROR] Login failed.")
        print("Details:", e)
        return

    print(f"\n[auth] Logged in as: {ctx.display_name} ({format_roles(r.value for r in ctx.roles)})")
    print(HELP)

    # ── REPL ─────────────────────────────────────────────────────────
    while True:
        try:
            line = input("\n> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            break

        if not line:
            continue
        if line.lower() in {"quit", "exit"}:
            print("Goodbye.")
            break

        try:
            cmd, *args = shlex.split(line)
        except ValueError as e:
            print("[ERROR]", e)
            continue

        try:
            run_command(store, ctx, cmd.lower(), args)
        except PortalError as e:
            print(f"\n[{type(e).__name__}] {e}")


if __name__ == "__main__":
    main()
