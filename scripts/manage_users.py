# scripts/manage_users.py

import asyncio
import argparse
from sqlalchemy.future import select
from app.db import async_session
from app.models.user import User
import uuid
import sys

ROLES = ("admin", "staff")

if sys.platform.startswith('win') and sys.version_info < (3, 10):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


async def add_user(name, pin_code, role):
    if role not in ROLES:
        print(f"❌ Role must be one of: {', '.join(ROLES)}")
        return
    if not (pin_code.isdigit() and len(pin_code) == 4):
        print("❌ PIN must be 4 digits")
        return

    async with async_session() as session:
        result = await session.execute(select(User).where(User.pin_code == pin_code))
        if result.scalar_one_or_none():
            print("⚠️  That PIN is already taken. Pick another one.")
            return

        session.add(User(id=str(uuid.uuid4()), name=name, pin_code=pin_code, role=role))
        await session.commit()
        print(f"✅ Created: {name} ({role})")


async def list_users():
    async with async_session() as session:
        result = await session.execute(select(User).order_by(User.role, User.name))
        for user in result.scalars().all():
            state = "active" if user.is_active else "inactive"
            print(f"{user.name:<20} {user.role:<6} {state}")


async def delete_users(name=None, role=None):
    async with async_session() as session:
        if name:
            result = await session.execute(select(User).where(User.name == name))
            user = result.scalar_one_or_none()
            if user:
                await session.delete(user)
                await session.commit()
                print(f"🗑️  Deleted user: {name}")
            else:
                print(f"⚠️  No user found with name: {name}")
        elif role:
            result = await session.execute(select(User).where(User.role == role))
            users = result.scalars().all()
            if users:
                for user in users:
                    await session.delete(user)
                await session.commit()
                print(f"🗑️  Deleted all users with role: {role}")
            else:
                print(f"⚠️  No users found with role: {role}")
        else:
            print("❌ Specify either --name or --role to delete users.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Manage back-office users")
    parser.add_argument("--add", action="store_true", help="Add a user")
    parser.add_argument("--list", action="store_true", help="List users")
    parser.add_argument("--delete", action="store_true", help="Delete users")
    parser.add_argument("--name", type=str, help="User name")
    parser.add_argument("--pin", type=str, help="4-digit PIN for --add")
    parser.add_argument("--role", type=str, help="Role (admin/staff)")

    args = parser.parse_args()

    if args.add and args.name and args.pin:
        asyncio.run(add_user(args.name, args.pin, args.role or "staff"))
    elif args.list:
        asyncio.run(list_users())
    elif args.delete:
        asyncio.run(delete_users(name=args.name, role=args.role))
    else:
        print("❗ Usage:")
        print("  python -m scripts.manage_users --add --name Sara --pin 4821 --role admin")
        print("  python -m scripts.manage_users --list")
        print("  python -m scripts.manage_users --delete --name Sara")
        print("  python -m scripts.manage_users --delete --role staff")
