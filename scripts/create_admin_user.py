#!/usr/bin/env python3
"""
Create an Admin User Account

This script:
1. Creates a new account (or reuses the one named with --account-id)
2. Checks if the email already exists
3. Creates or updates the user with a bcrypt-hashed password, role "admin"
   and a verified email address
4. Verifies creation

Connection settings come from .env (MONGODB_URI, MONGODB_DATABASE).

Usage:
    python scripts/create_admin_user.py --email admin@example.com --first-name Ada --last-name Lovelace
"""

import argparse
import asyncio
import getpass
import sys
from pathlib import Path

# Allow running from a source checkout without installing the package
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from motor.motor_asyncio import AsyncIOMotorClient

from portal.config import settings
from portal.mongodb_models import AccountDocument, UserDocument, UserRole, utc_now
from portal.services.auth_service import hash_password
from portal.utils.id_generator import ACCOUNT_PREFIX, USER_PREFIX, generate_id


async def get_or_create_account(db, account_id, account_name):
    """Return the account to attach the admin to, creating one if needed."""
    if account_id:
        existing = await db.accounts.find_one({"account_id": account_id})
        if not existing:
            print(f"❌ ERROR: Account {account_id} not found")
            return None
        print(f"✓ Using existing account '{existing['name']}' ({account_id})")
        return existing

    account = AccountDocument(
        account_id=generate_id(ACCOUNT_PREFIX),
        name=account_name,
        credits=settings.registration_free_credits
    ).to_mongo()
    await db.accounts.insert_one(account)
    print(f"✓ Created account '{account_name}'")
    print(f"  Account ID: {account['account_id']}")
    return account


async def create_or_update_user(db, account, args, password):
    """Create the admin user, or promote and re-password an existing one."""
    print("Hashing password with bcrypt...")
    password_hash = await hash_password(password)
    print(f"✓ Password hashed: {password_hash[:20]}...")

    existing_user = await db.users.find_one({"email": args.email})

    if existing_user:
        print(f"⚠ User {args.email} already exists")
        print("  Updating password and role...")
        await db.users.update_one(
            {"email": args.email},
            {
                "$set": {
                    "password_hash": password_hash,
                    "role": UserRole.ADMIN.value,
                    "is_email_verified": True,
                    "updated_at": utc_now()
                }
            }
        )
        print(f"✓ Updated user: {args.email}")
        return "updated"

    user = UserDocument(
        user_id=generate_id(USER_PREFIX),
        account_id=account["account_id"],
        first_name=args.first_name,
        last_name=args.last_name,
        email=args.email,
        username=args.username or args.email.split("@")[0],
        password_hash=password_hash,
        role=UserRole.ADMIN,
        is_email_verified=True
    ).to_mongo()
    await db.users.insert_one(user)
    print(f"✓ Created user: {args.email}")
    print(f"  User ID: {user['user_id']}")
    return "created"


async def verify_user(db, email):
    """Verify user was created correctly."""
    user = await db.users.find_one({"email": email})

    if not user:
        print("❌ ERROR: User not found after creation!")
        return False

    print("\n" + "=" * 60)
    print("USER ACCOUNT DETAILS")
    print("=" * 60)
    print(f"Name:             {user['first_name']} {user['last_name']}")
    print(f"Email:            {user['email']}")
    print(f"Username:         {user['username']}")
    print(f"Account:          {user['account_id']}")
    print(f"Role:             {user['role']}")
    print(f"Email Verified:   {user['is_email_verified']}")
    print(f"Password Hash:    {user['password_hash'][:30]}... (SECURELY HASHED)")
    print("=" * 60)

    if not user['password_hash'].startswith('$2b$'):
        print("❌ WARNING: Password hash format unexpected!")
        return False

    print("✓ Password is properly bcrypt hashed")
    return True


def parse_args():
    parser = argparse.ArgumentParser(description="Create or promote a portal admin user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--first-name", required=True)
    parser.add_argument("--last-name", required=True)
    parser.add_argument("--username", help="Defaults to the local part of the email")
    parser.add_argument("--account-id", help="Attach to an existing account instead of creating one")
    parser.add_argument("--account-name", default="Administration")
    return parser.parse_args()


async def main():
    args = parse_args()
    args.email = args.email.lower().strip()

    password = getpass.getpass("Admin password: ")
    if len(password) < 8:
        print("❌ ERROR: Password must be at least 8 characters")
        return 1

    print("=" * 60)
    print(f"Creating admin user in database '{settings.mongodb_database}'")
    print("=" * 60)

    client = AsyncIOMotorClient(settings.mongodb_uri, tz_aware=True)
    db = client[settings.mongodb_database]

    try:
        await client.admin.command('ping')
        print("✓ Connected to MongoDB")

        account = await get_or_create_account(db, args.account_id, args.account_name)
        if account is None:
            return 1

        action = await create_or_update_user(db, account, args, password)
        if not await verify_user(db, args.email):
            return 1

        print(f"\n✅ Admin user {action} successfully")
        return 0
    finally:
        client.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
