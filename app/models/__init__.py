from .base import Base
from .user import User
from .order import Order, OrderStatus
from .driver_location import DriverLocation, LocationStatus
