from fastapi import APIRouter
from . import admin_routes
from . import driver_routes
from . import tracking_routes

router = APIRouter()

# Include admin routes
router.include_router(admin_routes.router, prefix="/admin/orders", tags=["Delivery Admin"])

# Include driver routes
router.include_router(driver_routes.router, prefix="/driver", tags=["Delivery Driver"])

# Include customer tracking routes
router.include_router(tracking_routes.router, tags=["Delivery Tracking"])

__all__ = ["router"]
