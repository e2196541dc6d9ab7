"""
Password Reset Script

Sets a new password for an account without the email flow.
Run from project root: python scripts/reset_password.py --email staff@example.com --password newpass123
"""

import argparse
import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.config import setup_logging
from app.core.security import get_password_hash
from app.database import async_session_maker, engine
from app.services.accounts import get_user_by_email


async def reset_password(email: str, password: str) -> bool:
    async with async_session_maker() as db:
        user = await get_user_by_email(db, email)
        if user is None:
            print(f"No account found for {email}")
            await engine.dispose()
            return False

        user.password_hash = get_password_hash(password)
        user.reset_token = None
        user.reset_token_expires = None
        await db.commit()
        print(f"Password reset for user #{user.id} ({user.role.value})")

    await engine.dispose()
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Reset an account password")
    parser.add_argument("--email", required=True, help="Account email")
    parser.add_argument("--password", required=True, help="New password (min 6 characters)")
    args = parser.parse_args()

    if len(args.password) < 6:
        print("Password must be at least 6 characters")
        sys.exit(1)

    setup_logging()
    sys.exit(0 if asyncio.run(reset_password(args.email, args.password)) else 1)
