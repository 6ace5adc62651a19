#!/usr/bin/env python3
"""
Create a sign-in account for the Website Insights app.

Usage:
    python create_user.py

Hashes the password with bcrypt and offers to append the account
to .streamlit/secrets.toml (read by insights/auth.py).
Signed-in users are not bound by the anonymous demo quota.
"""

import re
from pathlib import Path

import bcrypt

SECRETS_PATH = Path(__file__).parent / ".streamlit" / "secrets.toml"
MIN_PASSWORD_LEN = 8


def validate_username(username: str) -> bool:
    """Lowercase letter first, then 2-19 lowercase letters, digits or underscores."""
    return bool(re.match(r"^[a-z][a-z0-9_]{2,19}$", username))


def generate_toml_block(username: str, display_name: str, email: str, password: str) -> str:
    """Build the secrets.toml block for one account."""
    hash_pwd = bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()
    display_name = display_name.replace('"', "")
    return f'''
[auth.credentials.usernames.{username}]
name = "{display_name}"
email = "{email}"
password = "{hash_pwd}"
'''


def user_exists(username: str) -> bool:
    if not SECRETS_PATH.exists():
        return False
    return f"[auth.credentials.usernames.{username}]" in SECRETS_PATH.read_text(encoding="utf-8")


def append_to_secrets(block: str) -> bool:
    try:
        with open(SECRETS_PATH, "a", encoding="utf-8") as f:
            f.write(block)
        return True
    except OSError as e:
        print(f"Write failed: {e}")
        return False


def main():
    print("=" * 50)
    print("   CREATE ACCOUNT")
    print("=" * 50)
    print()

    while True:
        username = input("Username (e.g. alex): ").strip().lower()
        if not username:
            print("Username is required.")
            continue
        if not validate_username(username):
            print("Invalid format. Rules:")
            print("  - starts with a letter")
            print("  - 3-20 characters")
            print("  - lowercase letters, digits, underscores")
            continue
        if user_exists(username):
            print(f"Account '{username}' already exists.")
            continue
        break

    display_name = input("Display name (e.g. Alex Martin): ").strip() or username.title()
    email = input("Email (optional): ").strip()

    while True:
        password = input(f"Password (min {MIN_PASSWORD_LEN} chars): ").strip()
        if len(password) < MIN_PASSWORD_LEN:
            print(f"Password too short (minimum {MIN_PASSWORD_LEN} characters).")
            continue
        if password != input("Confirm password: ").strip():
            print("Passwords do not match.")
            continue
        break

    print()
    print("-" * 50)
    block = generate_toml_block(username, display_name, email, password)
    print("Generated TOML block:")
    print(block)
    print("-" * 50)

    if not SECRETS_PATH.exists():
        print(f"{SECRETS_PATH} not found.")
        print("Create it (see .streamlit/secrets.toml.example) and paste the block above.")
        return

    choice = input(f"Append to {SECRETS_PATH.name}? [Y/n]: ").strip().lower()
    if choice in ("", "y", "yes"):
        if append_to_secrets(block):
            print()
            print(f"Account '{username}' added.")
        else:
            print("Failed. Copy the block manually.")
    else:
        print("Copy the block above into .streamlit/secrets.toml")


if __name__ == "__main__":
    main()
