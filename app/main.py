### swissrose-tracking/app/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware
from sqlalchemy.future import select

import app.models  # registers all models via models/__init__.py
from sqlalchemy.orm import configure_mappers
configure_mappers()

from app.api import public_routes
from app.api import delivery
from app.core.config import settings
from app.core.errors import TrackingError
from app.db import create_db_and_tables, async_session
from app.models.user import User

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger(__name__)


# Create the FastAPI app
app = FastAPI(
    title="Swiss Rose Tracking API",
    version="1.0.0",
    description="Order status workflow, driver sessions and live delivery tracking.",
)


# ✅ Session middleware (required for PIN and driver code logins)
app.add_middleware(SessionMiddleware, secret_key=settings.session_secret)

# ✅ Allow frontend dev (CORS)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In prod, restrict this!
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TrackingError)
async def tracking_error_handler(request: Request, exc: TrackingError):
    body = {"detail": exc.message, "error": type(exc).__name__}
    status = getattr(exc, "status", None)
    if status:
        body["status"] = status
    return JSONResponse(status_code=exc.status_code, content=body)


@app.on_event("startup")
async def on_startup():
    log.info("🔧 Starting DB setup...")
    await create_db_and_tables()
    log.info("✅ DB schema ready.")

    async with async_session() as db:
        result = await db.execute(select(User).where(User.role == "admin"))
        existing_admin = result.scalars().first()

        if not existing_admin:
            log.info("👤 No admin found. Creating default admin user...")
            db.add(User(name="Admin", pin_code=settings.default_admin_pin, role="admin", is_active=True))
            await db.commit()
        else:
            log.info("🔐 Admin already exists. No seed needed.")


# ✅ Core app routers
app.include_router(public_routes.router)
app.include_router(delivery.router)
