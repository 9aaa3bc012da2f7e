from enum import Enum

from pydantic_settings import BaseSettings


class WaitMode(str, Enum):
    FIXED = "fixed"
    EVENT_DRIVEN = "event_driven"
    HYBRID = "hybrid"


class Settings(BaseSettings):
    rec_email: str = ""
    rec_password: str = ""
    rec_base_url: str = "https://www.rec.us/sfrecpark"

    authorized_user_emails: str = ""
    auth_url: str = "https://mcp-tennis-auth.pages.dev/login"
    auth_session_ttl_seconds: int = 3600

    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"

    database_url: str = "sqlite+aiosqlite:///./courtbook.db"

    browser_ttl_seconds: int = 300
    browser_headless: bool = True
    selenium_remote_url: str = ""
    chromedriver_path: str = ""
    wait_mode: WaitMode = WaitMode.HYBRID

    timezone: str = "America/Los_Angeles"
    operating_year: int | None = None
    default_court: str = "DuPont"
    pending_booking_ttl_seconds: int = 3600
    verification_timeout_seconds: int = 180
    history_default_days: int = 30

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def authorized_emails(self) -> list[str]:
        return [
            email.strip().lower()
            for email in self.authorized_user_emails.split(",")
            if email.strip()
        ]


settings = Settings()
