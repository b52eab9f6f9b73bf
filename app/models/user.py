from sqlalchemy import Column, String, Boolean
from app.models.base import Base
import uuid


class User(Base):
    """Back-office staff member, signs in with a PIN."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    pin_code = Column(String, nullable=False, unique=True)
    role = Column(String, nullable=False)  # "admin", "staff"
    is_active = Column(Boolean, default=True)
