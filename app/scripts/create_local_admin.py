"""
Script to create (or promote) an admin profile with a password for local use.
"""

import argparse
import asyncio
import os
import sys

# Add the project root to sys.path to allow importing from 'app'
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from fastapi import HTTPException

from app.core.auth import hash_password
from app.core.database import get_session_context, init_db
from app.services.profiles import create_profile, get_profile_by_email
from nexus_shared.schemas.common import Role


async def create_admin(email: str, password: str, create_tables: bool = False) -> None:
    if create_tables:
        await init_db()

    async with get_session_context() as session:
        profile = await get_profile_by_email(session, email)
        if profile:
            profile.role = Role.ADMIN.value
            profile.password_hash = hash_password(password)
            session.add(profile)
            print(f"Profile {email} already exists; promoted to admin and reset password.")
        else:
            try:
                await create_profile(session, email, password, role=Role.ADMIN)
            except HTTPException as exc:
                print(f"Error: {exc.detail}")
                sys.exit(1)
            print(f"Created admin profile: {email}")

    print("Done.")


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a local admin profile.")
    parser.add_argument("--email", required=True, help="Email address for the admin")
    parser.add_argument("--password", required=True, help="Password for the admin")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create tables first (development databases without migrations)",
    )

    args = parser.parse_args()

    asyncio.run(create_admin(args.email, args.password, args.create_tables))


if __name__ == "__main__":
    main()
