"""
Script to create (or reuse) a local tenant admin and print a session token for it.

The token works as ``Authorization: Bearer <token>`` against the API and as
``?token=<token>`` on the real-time socket.
"""

import asyncio
import argparse
import sys
import uuid
from datetime import timedelta

from sqlmodel import select

# Add the project root to sys.path to allow importing from 'app'
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from app.core.auth import create_jwt
from app.core.database import async_session_factory
from app.models.user import User
from studio_shared.schemas.common import Role


async def issue_token(email: str, tenant_id: uuid.UUID, hours: int) -> str:
    async with async_session_factory() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if not user:
            user = User(
                tenant_id=tenant_id,
                email=email,
                display_name=email.split("@")[0],
                role=Role.ADMIN.value,
            )
            session.add(user)
            await session.commit()
            print(f"Created admin user: {email}", file=sys.stderr)
        else:
            print(f"User {email} already exists.", file=sys.stderr)

    return create_jwt(user.id, user.tenant_id, user.role, expires_delta=timedelta(hours=hours))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local admin user and print a token.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument(
        "--tenant",
        default="00000000-0000-0000-0000-000000000001",
        help="Tenant id for a newly created user",
    )
    parser.add_argument("--hours", type=int, default=12, help="Token lifetime in hours")

    args = parser.parse_args()

    print(asyncio.run(issue_token(args.email, uuid.UUID(args.tenant), args.hours)))
