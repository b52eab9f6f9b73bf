"""
Access code generation for delivery tracking.

Codes are random and short enough to type on a phone. Nothing here checks
the database: callers must rely on the unique columns on ``orders`` and
retry on collision (see ``app.crud.order.allocate_tracking_codes``).
"""
import secrets
import string
from dataclasses import dataclass

from app.core.config import settings

CODE_ALPHABET = string.ascii_uppercase + string.digits  # 36 symbols
TRACKING_CODE_LENGTH = 6
DRIVER_CODE_LENGTH = 4


@dataclass(frozen=True)
class TrackingCodes:
    tracking_code: str
    driver_code: str
    driver_pin: str

    def as_dict(self) -> dict:
        return {
            "tracking_code": self.tracking_code,
            "driver_code": self.driver_code,
            "driver_pin": self.driver_pin,
        }


def _random_code(length: int) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def generate_tracking_code(prefix: str = None) -> str:
    """Customer-facing code, e.g. ``SR-7KQ2ZD``."""
    prefix = prefix or settings.tracking_code_prefix
    return f"{prefix}-{_random_code(TRACKING_CODE_LENGTH)}"


def generate_driver_code(prefix: str = None) -> str:
    """Driver login code, e.g. ``DRV-5R8A``."""
    prefix = prefix or settings.driver_code_prefix
    return f"{prefix}-{_random_code(DRIVER_CODE_LENGTH)}"


def generate_driver_pin() -> str:
    # 1000-9999: never a leading zero
    return str(1000 + secrets.randbelow(9000))


def generate_tracking_codes() -> TrackingCodes:
    return TrackingCodes(
        tracking_code=generate_tracking_code(),
        driver_code=generate_driver_code(),
        driver_pin=generate_driver_pin(),
    )
