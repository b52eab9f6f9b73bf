from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./tracking.db"
    database_echo: bool = False
    session_secret: str = "fallback-secret"  # 🔐 set SESSION_SECRET in production

    public_base_url: str = "http://localhost:8000"

    tracking_code_prefix: str = "SR"
    driver_code_prefix: str = "DRV"
    code_allocation_attempts: int = 5

    location_push_interval_seconds: float = 10.0
    max_delivery_photo_bytes: int = 5 * 1024 * 1024

    resend_api_key: str = ""
    order_from_email: str = "Swiss Rose <orders@swissrosekw.com>"
    admin_email: str = "orders@swissrosekw.com"

    default_admin_pin: str = "1234"  # seeded only when no admin exists


settings = Settings()
