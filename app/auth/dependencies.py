# auth/dependencies.py
from fastapi import Request, HTTPException, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from app.db import get_db
from app.models.order import Order
from app.models.user import User
from app.services.tracking.driver_session import SESSION_CODE_KEY, SESSION_ORDER_KEY, load_session_order

async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)):
    user_id = request.session.get("user_id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user or not user.is_active:
        raise HTTPException(status_code=404, detail="User not found")
    return user

async def get_current_admin_user(user: User = Depends(get_current_user)):
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="Admin access only")
    return user

async def get_driver_order(request: Request, db: AsyncSession = Depends(get_db)) -> Order:
    """Order the driver logged in for, re-checked against the current codes."""
    return await load_session_order(
        db,
        request.session.get(SESSION_ORDER_KEY),
        request.session.get(SESSION_CODE_KEY),
    )

async def get_driver_order_readonly(request: Request, db: AsyncSession = Depends(get_db)) -> Order:
    return await load_session_order(
        db,
        request.session.get(SESSION_ORDER_KEY),
        request.session.get(SESSION_CODE_KEY),
        allow_terminal=True,
    )
