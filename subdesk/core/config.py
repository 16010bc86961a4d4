# subdesk/core/config.py
"""
Application settings loaded from the environment (and .env).
"""
import os
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_DIR = os.path.join(os.path.dirname(__file__), "..", "..", "data")
DEFAULT_DATABASE_FILE = os.path.join(DATA_DIR, "db", "subdesk.sqlite")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "development"
    secret_key: str = ""
    port: int = 5000
    log_level: str = "INFO"

    # Record store
    database_url: str | None = None

    # Mail transport
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_pass: str | None = None
    smtp_use_tls: bool = True
    smtp_timeout: int = 30

    # Company profile copied into every new invoice
    company_name: str = "MyCompany Inc."
    company_logo: str = "Nil"
    company_email: str = "contact@mycompany.com"
    company_phone: str = "+1 (555) 123-4567"
    company_address: str = "123 Market Street, San Francisco, CA"
    default_currency: str = "USD"

    upload_dir: str = "uploads"
    allowed_origins: str = "http://localhost:3000,http://localhost:5173"

    scheduler_enabled: bool = True
    # Skip a reminder when the same threshold was already sent for the invoice.
    reminder_skip_already_sent: bool = False

    def company_profile(self) -> dict[str, str]:
        return {
            "name": self.company_name,
            "logo": self.company_logo,
            "email": self.company_email,
            "phone": self.company_phone,
            "address": self.company_address,
        }

    @property
    def origins(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
