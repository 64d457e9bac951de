"""Runtime settings read from the environment."""

import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    """Application settings.

    Everything here comes from environment variables so the same image can run
    locally and in production. Tests build their own instance and override the
    ``get_settings`` dependency.
    """

    # Auth
    jwt_secret: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"
    token_expire_hours: int = 24

    # WhatsApp Cloud API
    whatsapp_access_token: str = ""
    whatsapp_phone_number_id: str = ""
    whatsapp_api_version: str = "v22.0"
    whatsapp_verify_token: str = ""
    country_code: str = "+91"
    # Seconds between the three broadcast messages sent to one supplier
    broadcast_delay: float = 1.0

    # Commission rate (percent) applied to both sides of an accepted trade
    default_commission_rate: Decimal = Decimal("2.5")

    # Invoice files
    invoice_dir: Path = Path("uploads/invoices")
    public_base_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:3000"

    @property
    def whatsapp_messages_url(self) -> str:
        return (
            f"https://graph.facebook.com/{self.whatsapp_api_version}"
            f"/{self.whatsapp_phone_number_id}/messages"
        )

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        return cls(
            jwt_secret=os.getenv("JWT_SECRET", cls.jwt_secret),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", cls.jwt_algorithm),
            token_expire_hours=int(os.getenv("TOKEN_EXPIRE_HOURS", cls.token_expire_hours)),
            whatsapp_access_token=os.getenv("WHATSAPP_ACCESS_TOKEN", ""),
            whatsapp_phone_number_id=os.getenv("WHATSAPP_PHONE_NUMBER_ID", ""),
            whatsapp_api_version=os.getenv("WHATSAPP_API_VERSION", cls.whatsapp_api_version),
            whatsapp_verify_token=os.getenv("WHATSAPP_VERIFY_TOKEN", ""),
            country_code=os.getenv("WHATSAPP_COUNTRY_CODE", cls.country_code),
            broadcast_delay=float(os.getenv("BROADCAST_DELAY_SECONDS", cls.broadcast_delay)),
            default_commission_rate=Decimal(
                os.getenv("DEFAULT_COMMISSION_RATE", str(cls.default_commission_rate))
            ),
            invoice_dir=Path(os.getenv("INVOICE_DIR", str(cls.invoice_dir))),
            public_base_url=os.getenv("PUBLIC_BASE_URL", cls.public_base_url).rstrip("/"),
            frontend_url=os.getenv("FRONTEND_URL", cls.frontend_url).rstrip("/"),
        )


@lru_cache
def get_settings() -> Settings:
    """Dependency returning the process settings."""
    return Settings.from_env()
