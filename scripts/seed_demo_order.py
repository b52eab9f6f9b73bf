# scripts/seed_demo_order.py
"""
Creates an order the way the storefront checkout would, so the delivery flow
can be walked through locally:

    python -m scripts.seed_demo_order --name "Fatima Al-Sabah" --phone 55512345
"""
import argparse
import asyncio
from decimal import Decimal

from app.db import async_session, create_db_and_tables
from app.models.order import Order, OrderStatus


async def create_order(name, phone, email, status):
    await create_db_and_tables()
    async with async_session() as session:
        order = Order(
            full_name=name,
            phone=phone,
            email=email,
            address="Block 3, Street 12, House 7",
            city="Salmiya",
            governorate="Hawalli",
            items=[{"name": "Rose Box", "quantity": 1, "price": "12.500"}],
            total_amount=Decimal("12.500"),
            payment_method="cash",
            order_status=OrderStatus(status),
        )
        session.add(order)
        await session.commit()
        print(f"✅ Created order {order.id} ({order.order_status.value})")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a demo order")
    parser.add_argument("--name", default="Demo Customer")
    parser.add_argument("--phone", default="55512345")
    parser.add_argument("--email", default=None)
    parser.add_argument("--status", default="pending", choices=[s.value for s in OrderStatus])
    args = parser.parse_args()

    asyncio.run(create_order(args.name, args.phone, args.email, args.status))
