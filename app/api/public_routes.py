import logging

from fastapi import APIRouter, Request, Form, Depends, HTTPException
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.db import get_db
from app.models.user import User

log = logging.getLogger(__name__)

router = APIRouter()

STAFF_ROLES = ("admin", "staff")


@router.get("/")
async def landing():
    return {"service": "Swiss Rose delivery tracking"}


# 🔐 Shared PIN login handler
async def handle_pin_login(request, role, pin_code, db):
    result = await db.execute(
        select(User).where(User.pin_code == pin_code, User.role == role, User.is_active == True)
    )
    user = result.scalar_one_or_none()

    if user:
        request.session["user_id"] = user.id
        request.session["role"] = user.role
        log.info("staff login: user=%s role=%s", user.id, user.role)
        return {"success": True, "role": user.role, "next_url": "/admin/orders"}

    # ❌ Invalid login
    log.warning("staff login rejected: role=%s", role)
    raise HTTPException(status_code=401, detail="Invalid PIN or role.")


@router.post("/login/{role}")
async def login_post(request: Request, role: str, pin_code: str = Form(...), db: AsyncSession = Depends(get_db)):
    if role not in STAFF_ROLES:
        raise HTTPException(status_code=404, detail="Unknown role")
    return await handle_pin_login(request, role, pin_code.strip(), db)


@router.get("/logout")
async def logout(request: Request):
    request.session.clear()
    return {"success": True}
