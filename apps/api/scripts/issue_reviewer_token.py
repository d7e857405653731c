"""
Issue Reviewer Token

Creates a signed access token with the reviewer role for use against the
/admin endpoints. If the email belongs to an existing account the token
carries that account's ID.

Usage:
    cd apps/api
    python scripts/issue_reviewer_token.py reviewer@example.com [hours]
"""

import asyncio
import sys
from datetime import timedelta
from pathlib import Path
from uuid import uuid4

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from app.core.auth import REVIEWER_ROLE
from app.core.database import async_session_maker, close_db
from app.core.security import create_access_token
from app.modules.users import UserRepository


async def issue_reviewer_token(email: str, hours: int) -> None:
    async with async_session_maker() as db:
        user = await UserRepository.get_by_email(db, email)

    subject = str(user.id) if user else str(uuid4())
    name = user.full_name if user else None

    token = create_access_token(
        subject,
        email=email.lower(),
        role=REVIEWER_ROLE,
        name=name,
        expires_delta=timedelta(hours=hours),
    )

    if user is None:
        print(f"No account found for {email}; token uses a fresh ID")
    print(f"  Subject: {subject}")
    print(f"  Expires in: {hours}h")
    print(f"  Token: {token}")

    await close_db()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(issue_reviewer_token(sys.argv[1], int(sys.argv[2]) if len(sys.argv) > 2 else 8))
