from sqlalchemy import Column, String, DateTime, Text, Numeric, JSON, Enum, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from app.models.base import Base
import uuid, enum


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    PREPARING = "preparing"
    ON_DELIVERY = "on_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Order(Base):
    """Storefront order; the aggregate the delivery tracking works on."""
    __tablename__ = "orders"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Checkout snapshot (written by the storefront, read for notifications)
    full_name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=False)
    address = Column(Text, nullable=True)
    city = Column(String, nullable=True)
    governorate = Column(String, nullable=True)
    items = Column(JSON, nullable=True)
    total_amount = Column(Numeric(10, 3), nullable=False, default=0)
    payment_method = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    order_status = Column(
        Enum(
            OrderStatus,
            name="order_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        default=OrderStatus.PENDING,
        nullable=False,
    )

    # Delivery tracking: the three codes are generated together
    tracking_code = Column(String, unique=True, nullable=True)
    driver_code = Column(String, unique=True, nullable=True)
    driver_pin = Column(String, nullable=True)

    # Null until the driver registers through the driver entry flow
    driver_name = Column(String, nullable=True)
    driver_phone = Column(String, nullable=True)

    delivered_at = Column(DateTime, nullable=True)
    delivery_photo_url = Column(String, nullable=True)

    driver_location = relationship(
        "DriverLocation",
        back_populates="order",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_orders_status", "order_status"),
        Index("idx_orders_created", "created_at"),
    )
