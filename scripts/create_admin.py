#!/usr/bin/env python3
"""Create an administrator profile interactively."""

import asyncio
import sys
from getpass import getpass
from pathlib import Path

root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

from hostpanel.core.exceptions import PanelError  # noqa: E402
from hostpanel.database import async_session_maker, create_db_and_tables  # noqa: E402
from hostpanel.services.profile_service import create_profile  # noqa: E402


async def create_admin() -> None:
    print("\n" + "=" * 60)
    print("  CREATE ADMIN - hostpanel")
    print("=" * 60 + "\n")

    try:
        email = input("Email: ").strip()
        username = input("Username: ").strip()
        password = getpass("Password: ")
        password_confirm = getpass("Confirm password: ")
    except EOFError:
        print("\nError: could not read input")
        sys.exit(1)

    if password != password_confirm:
        print("Error: passwords do not match")
        sys.exit(1)

    await create_db_and_tables()
    async with async_session_maker() as session:
        try:
            profile = await create_profile(
                session, email=email, username=username, password=password, admin=True
            )
        except PanelError as e:
            print(f"Error: {e.detail}")
            sys.exit(1)

    print("=" * 60)
    print("Admin created")
    print("=" * 60)
    print(f"  ID:        {profile.id}")
    print(f"  Username:  {profile.username}")
    print(f"  Email:     {profile.email}")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    try:
        asyncio.run(create_admin())
    except KeyboardInterrupt:
        print("\n\nCancelled")
        sys.exit(1)
