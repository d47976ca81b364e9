"""
Creates a user account, e.g. the first admin.

    python -m scripts.create_user admin@example.com 'S3cret!' --role admin --rate 0
"""
import argparse
import asyncio

from pymongo.errors import DuplicateKeyError

from db import db, ensure_indexes
from utils.app_utils import create_user


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Create a user account.")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--role", choices=["admin", "user"], default="user")
    parser.add_argument("--rate", default="0.00", help="hourly rate, e.g. 45.00")
    return parser.parse_args(argv)


async def run(args):
    await ensure_indexes(db)
    try:
        user = await create_user(db, args.email, args.password, role=args.role, hourly_rate=args.rate)
    except DuplicateKeyError:
        print(f"User {args.email} already exists")
        return None
    print(f"Created {user['role']} {user['email']} ({user['_id']})")
    return user


def main(argv=None):
    asyncio.run(run(parse_args(argv)))


if __name__ == "__main__":
    main()
