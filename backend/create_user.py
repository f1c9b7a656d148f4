"""
Bootstrap a platform super admin.

    python create_user.py admin@example.com --password 'S3cure-passphrase' --name "Platform Admin"

Running it again for an existing email resets the password and promotes the
user to super admin.
"""
import argparse
import asyncio
import os
import sys

# Add the current directory to sys.path to allow imports
sys.path.append(os.getcwd())

from sqlalchemy import select

from app.core.config import settings
from app.core.security import get_password_hash
from app.db.session import AsyncSessionLocal
from app.models.company import ROLE_SUPER_ADMIN, UserRoleAssignment
from app.models.user import User


async def create_super_admin(session_factory, email: str, password: str, full_name: str = "Platform Admin") -> User:
    if len(password) < settings.MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters")
    email = email.strip().lower()

    async with session_factory() as db:
        user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
        if user is None:
            user = User(email=email, full_name=full_name)
            db.add(user)
        user.hashed_password = get_password_hash(password)
        user.is_active = True
        await db.flush()

        assignment = (
            await db.execute(select(UserRoleAssignment).where(UserRoleAssignment.user_id == user.id))
        ).scalar_one_or_none()
        if assignment is None:
            db.add(UserRoleAssignment(user_id=user.id, role=ROLE_SUPER_ADMIN))
        else:
            assignment.role = ROLE_SUPER_ADMIN
        await db.commit()
        return user


def main() -> None:
    parser = argparse.ArgumentParser(description="Create or promote a platform super admin")
    parser.add_argument("email")
    parser.add_argument("--password", required=True)
    parser.add_argument("--name", default="Platform Admin")
    args = parser.parse_args()

    user = asyncio.run(create_super_admin(AsyncSessionLocal, args.email, args.password, args.name))
    print(f"Super admin ready: {user.email}")


if __name__ == "__main__":
    main()
