from sqlalchemy import Column, String, Float, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from app.models.base import Base
import uuid


class LocationStatus:
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"


class DriverLocation(Base):
    """Last known driver position for one order (one row per order, overwritten in place)."""
    __tablename__ = "driver_locations"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True)
    tracking_code = Column(String, nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    status = Column(String, nullable=False, default=LocationStatus.OUT_FOR_DELIVERY)  # mirror only, orders.order_status wins
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    order = relationship("Order", back_populates="driver_location")

    __table_args__ = (
        Index("idx_driver_locations_tracking", "tracking_code"),
    )
