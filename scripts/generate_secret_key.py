#!/usr/bin/env python3
"""
Generate the JWT signing secret for the staff directory API.
Run this and copy the output to your .env file.
"""

import secrets

if __name__ == "__main__":
    print("=" * 60)
    print("Staff Directory – JWT Secret")
    print("=" * 60)

    secret_key = secrets.token_urlsafe(48)

    print(f"\nJWT_SECRET_KEY={secret_key}\n")
    print("Restart the API after changing it; existing sessions become invalid.")
    print("=" * 60)
