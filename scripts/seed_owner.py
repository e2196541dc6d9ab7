"""
Owner Seeding Script

Creates an owner account, or updates the password, name and role of an
existing account with the same email.
Run from project root: python scripts/seed_owner.py --email owner@example.com --password secret123
"""

import argparse
import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.config import setup_logging
from app.core.security import get_password_hash
from app.database import async_session_maker, engine, init_db
from app.models import UserRole, UserStatus
from app.services.accounts import create_user, get_user_by_email


async def seed_owner(email: str, password: str, name: str) -> None:
    await init_db()

    async with async_session_maker() as db:
        user = await get_user_by_email(db, email)
        if user is None:
            user = await create_user(
                db,
                name=name,
                email=email,
                password=password,
                role=UserRole.OWNER,
            )
            print(f"Owner #{user.id} created: {user.email}")
        else:
            user.name = name
            user.password_hash = get_password_hash(password)
            user.role = UserRole.OWNER
            user.status = UserStatus.ACTIVE
            await db.commit()
            print(f"User #{user.id} updated to owner: {user.email}")

    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or update an owner account")
    parser.add_argument("--email", required=True, help="Owner email")
    parser.add_argument("--password", required=True, help="Owner password (min 6 characters)")
    parser.add_argument("--name", default="Owner", help="Display name")
    args = parser.parse_args()

    if len(args.password) < 6:
        print("Password must be at least 6 characters")
        sys.exit(1)

    setup_logging()
    asyncio.run(seed_owner(args.email, args.password, args.name))
