#!/usr/bin/env python3
"""Create (or promote) an admin user for the back office.

Usage:
  python scripts/create_admin.py --email admin@example.nl --full-name "Jan de Vries"
"""
import argparse, getpass, sys
from pathlib import Path

from sqlalchemy import select

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dealership.app.db import models
from dealership.app.db.session import session_scope
from dealership.app.services.security import create_user, hash_password


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", type=str, required=True)
    ap.add_argument("--full-name", type=str, default=None)
    ap.add_argument("--password", type=str, default=None, help="Prompted for when omitted")
    args = ap.parse_args()

    password = args.password or getpass.getpass("Password: ")
    if len(password) < 8:
        print("Password must be at least 8 characters")
        sys.exit(1)

    with session_scope() as session:
        user = session.execute(
            select(models.User).where(models.User.email == args.email.lower())
        ).scalar_one_or_none()
        if user is None:
            create_user(session, args.email, password, full_name=args.full_name, is_admin=True)
            print(f"Created admin {args.email.lower()}")
        else:
            user.is_admin = True
            user.is_active = True
            user.hashed_password = hash_password(password)
            print(f"Updated existing user {user.email} to admin")


if __name__ == "__main__":
    main()
