"""
Live smoke check for the staff directory API.
Run the API server first: python -m staffdir.api.app
Then run this: python scripts/smoke_api.py
"""

import json
import os

import requests

BASE_URL = os.getenv("STAFFDIR_URL", "http://localhost:8000")


def banner(title):
    print("\n" + "=" * 50)
    print(f"CHECK: {title}")
    print("=" * 50)


def show(response, limit=800):
    print(f"Status Code: {response.status_code}")
    text = json.dumps(response.json(), indent=2)
    print(text if len(text) <= limit else text[:limit] + "\n... (truncated)")


def check_health():
    banner("Health")
    response = requests.get(f"{BASE_URL}/health")
    show(response)
    return response.status_code == 200


def check_login_invalid():
    banner("Login with invalid key")
    response = requests.post(f"{BASE_URL}/api/auth/login", json={"api_key": "invalid-key-123"})
    show(response)
    return response.status_code == 401


def login(api_key):
    banner("Login")
    response = requests.post(f"{BASE_URL}/api/auth/login", json={"api_key": api_key})
    show(response)
    if response.status_code == 200:
        return response.json().get("token")
    return None


def check_directory_without_token():
    banner("Directory without token")
    response = requests.get(f"{BASE_URL}/api/directory")
    show(response)
    return response.status_code == 401


def check_get(token, path, expected=(200,)):
    banner(f"GET {path}")
    response = requests.get(f"{BASE_URL}{path}", headers={"Authorization": f"Bearer {token}"})
    show(response)
    return response.status_code in expected


def check_logout(token):
    banner("Logout")
    response = requests.post(f"{BASE_URL}/api/auth/logout", headers={"Authorization": f"Bearer {token}"})
    show(response)
    return response.status_code == 200


def main():
    print(f"Base URL: {BASE_URL}")
    api_key = input("Enter an API key: ").strip()
    if not api_key:
        print("ERROR: API key is required")
        return

    results = {
        "Health": check_health(),
        "Login Invalid": check_login_invalid(),
        "Directory Without Token": check_directory_without_token(),
    }

    token = login(api_key)
    results["Login Valid"] = bool(token)
    if token:
        me = requests.get(f"{BASE_URL}/api/user/profile", headers={"Authorization": f"Bearer {token}"}).json()
        my_id = me.get("profile", {}).get("id", "")
        results["Profile"] = check_get(token, "/api/user/profile")
        results["Directory"] = check_get(token, "/api/directory")
        results["Own HR Record"] = check_get(token, f"/api/hr/{my_id}", expected=(200, 404))
        results["Permissions"] = check_get(token, "/api/permissions", expected=(200, 403))
        results["Logout"] = check_logout(token)
    else:
        print("\nERROR: Could not login. Remaining checks skipped.")

    print("\n" + "=" * 50)
    passed = sum(1 for v in results.values() if v)
    for name, ok in results.items():
        print(f"{'✓ PASS' if ok else '✗ FAIL'}: {name}")
    print(f"\nTotal: {passed}/{len(results)} checks passed")


if __name__ == "__main__":
    main()
