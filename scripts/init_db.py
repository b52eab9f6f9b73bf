# scripts/init_db.py
import asyncio
from app.db import create_db_and_tables


async def create_tables():
    # Local sqlite setups only; production databases go through alembic
    await create_db_and_tables()
    print("✅ All missing tables created.")

if __name__ == "__main__":
    asyncio.run(create_tables())
