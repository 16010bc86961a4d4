# scripts/create_admin.py
"""Create the first administrator account.

Usage:
    python scripts/create_admin.py --email admin@example.com
    ADMIN_EMAIL=... ADMIN_PASSWORD=... python scripts/create_admin.py
"""

import argparse
import getpass
import logging
import os
import sys
import uuid

from dotenv import load_dotenv

load_dotenv()

from passlib.context import CryptContext
from sqlmodel import Session, select

from subdesk.db.engine_sync import create_sync_db_and_tables, sync_engine
from subdesk.models.user import User

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

MIN_PASSWORD_LENGTH = 6


def create_admin(email: str, password: str) -> bool:
    """Insert a superuser. Returns False when the email is already taken."""
    create_sync_db_and_tables()
    email = email.strip().lower()

    with Session(sync_engine) as session:
        if session.exec(select(User).where(User.email == email)).first():
            logging.info(f"User {email} already exists, nothing to do.")
            return False

        session.add(
            User(
                id=uuid.uuid4(),
                email=email,
                hashed_password=pwd_context.hash(password),
                is_active=True,
                is_superuser=True,
                is_verified=True,
            )
        )
        session.commit()
    logging.info(f"Administrator {email} created.")
    return True


def _prompt_password() -> str:
    while True:
        password = getpass.getpass("Password: ")
        if len(password) < MIN_PASSWORD_LENGTH:
            print(f"Minimum {MIN_PASSWORD_LENGTH} characters.")
            continue
        if getpass.getpass("Confirm: ") == password:
            return password
        print("Passwords do not match.")


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    parser = argparse.ArgumentParser(description="Create the first subdesk administrator")
    parser.add_argument("--email", default=os.getenv("ADMIN_EMAIL"))
    args = parser.parse_args()

    email = args.email or input("Email: ").strip()
    if not email:
        print("An email is required.")
        return 1
    password = os.getenv("ADMIN_PASSWORD") or _prompt_password()
    if len(password) < MIN_PASSWORD_LENGTH:
        print(f"Password must have at least {MIN_PASSWORD_LENGTH} characters.")
        return 1

    create_admin(email, password)
    return 0


if __name__ == "__main__":
    sys.exit(main())
