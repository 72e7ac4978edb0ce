#!/usr/bin/env python3
"""
First-time setup: create a ward, its executive secretary, and the default
interview types, then print a bearer token for the staff API.

Usage:
    python scripts/setup_first_user.py "Ward Name" "Stake Name" you@example.com ["Your Name"]
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from app.core.db import async_session_maker  # noqa: E402
from app.core.exceptions import ValidationError  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.models.interview_type import DEFAULT_INTERVIEW_TYPES  # noqa: E402
from app.services.ward_service import register_ward  # noqa: E402

USAGE = 'Usage: python scripts/setup_first_user.py "Ward Name" "Stake Name" your-email@example.com ["Your Name"]'


async def main(argv: list[str]) -> int:
    if len(argv) < 3:
        print("Error: ward name, stake name and email are required")
        print(USAGE)
        return 1
    ward_name, stake_name, email = argv[0], argv[1], argv[2]
    name = argv[3] if len(argv) > 3 else None

    print(f"Creating ward: {ward_name}")
    print(f"Stake: {stake_name}")
    print(f"Executive secretary email: {email}\n")

    async with async_session_maker() as session:
        try:
            ward, user = await register_ward(session, ward_name, stake_name, email, name)
            await session.commit()
        except ValidationError as e:
            await session.rollback()
            print(f"Error: {e}")
            return 1

    print(f"Ward created with ID: {ward.id}")
    print(f"Executive secretary user created with ID: {user.id}")
    for data in DEFAULT_INTERVIEW_TYPES:
        print(f"Created interview type: {data['name']}")
    print("\nStaff API token (send as 'Authorization: Bearer <token>'):")
    print(create_access_token(user.id))
    print(f"\nMembers can chat at POST /api/v1/wards/{ward.id}/chat")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1:])))
