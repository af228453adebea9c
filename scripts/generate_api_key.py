#!/usr/bin/env python3
"""
Generate API keys for portal users.
Creates random keys and the SQL to attach them to existing staff profiles in portal_users.
"""

import argparse
import secrets
import string


def generate_api_key(prefix="staff", length=32):
    """Generate a secure random API key."""
    chars = string.ascii_letters + string.digits
    random_part = "".join(secrets.choice(chars) for _ in range(length))
    return f"{prefix}_{random_part}"


def insert_statement(staff_id: str, api_key: str) -> str:
    return (
        "INSERT INTO portal_users (id, api_key, is_active)\n"
        f"VALUES ('{staff_id}', '{api_key}', TRUE);"
    )


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("staff_ids", nargs="*", help="staff_profiles.id values to issue keys for")
    parser.add_argument("--prefix", default="staff")
    args = parser.parse_args()

    print("=" * 70)
    print("Staff Directory API Key Generator")
    print("=" * 70)

    if not args.staff_ids:
        print(f"\n  {generate_api_key(args.prefix)}\n")
        print("Pass one or more staff ids to get ready-to-run INSERT statements.")
        return

    for staff_id in args.staff_ids:
        print()
        print(insert_statement(staff_id, generate_api_key(args.prefix)))
    print("\n" + "=" * 70)
    print("Note: each staff id must already exist in staff_profiles.")
    print("=" * 70)


if __name__ == "__main__":
    main()
