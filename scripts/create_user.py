#!/usr/bin/env python3
"""Provision a user account for tokengate.

There is no sign-up endpoint; accounts are created out of band with this
script.

Usage:
    python scripts/create_user.py alice --admin
    python scripts/create_user.py bob --password-stdin < password.txt
"""

import argparse
import asyncio
import getpass
import sys


async def _create(username: str, password: str, authorities: list[str]) -> None:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tokengate.core import Base, build_engine, settings
    from tokengate.services.users import UserAlreadyExistsError, UserDirectory

    engine = build_engine(settings, pooled=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    directory = UserDirectory(async_sessionmaker(engine, class_=AsyncSession))
    try:
        principal = await directory.create_user(username, password, authorities)
    except UserAlreadyExistsError as e:
        print(f"ERROR: {e}")
        sys.exit(1)
    finally:
        await engine.dispose()

    print(f"Created {principal.subject} with {', '.join(principal.authorities)}")


def main():
    from tokengate.services.identity import Roles

    parser = argparse.ArgumentParser(description="Create a tokengate user account")
    parser.add_argument("username")
    parser.add_argument("--admin", action="store_true", help="Grant ROLE_ADMIN as well")
    parser.add_argument(
        "--password-stdin",
        action="store_true",
        help="Read the password from stdin instead of prompting",
    )
    args = parser.parse_args()

    if args.password_stdin:
        password = sys.stdin.readline().rstrip("\n")
    else:
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Repeat password: "):
            print("ERROR: Passwords do not match.")
            sys.exit(1)

    if len(password) < 12:
        print("ERROR: Password must be at least 12 characters.")
        sys.exit(1)

    authorities = [Roles.ROLE_USER.value]
    if args.admin:
        authorities.append(Roles.ROLE_ADMIN.value)

    asyncio.run(_create(args.username, password, authorities))


if __name__ == "__main__":
    main()
