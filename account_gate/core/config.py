import json
from typing import List, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: Optional[str] = None

    # Database (PostgreSQL when deployed, SQLite for local development)
    DATABASE_URL: str = "sqlite+aiosqlite:///./account_gate.db"

    # API Configuration
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "AccountGate-API"
    VERSION: str = "1.0.0"

    # CORS
    ALLOWED_ORIGINS: List[str] = []

    # Log Level
    LOG_LEVEL: (
        str  # Required: Must be set in environment (e.g., INFO, DEBUG, WARNING, ERROR)
    )

    # Logging Configuration
    LOGGING_FRAME_DEPTH: int = (
        6  # Frame depth for finding logging call origin in stack trace
    )

    # Sentry Configuration
    SENTRY_DSN: Optional[str] = None  # Sentry DSN for error tracking

    # Telegram Bot
    TELEGRAM_BOT_TOKEN: Optional[str] = None
    TELEGRAM_API_BASE_URL: str = "https://api.telegram.org"
    # Admin chat IDs, JSON list ("[1, 2]") or comma-separated ("1,2")
    ADMIN_CHAT_IDS: Optional[str] = None
    TELEGRAM_WEBHOOK_URL: Optional[str] = None  # Public URL registered via setWebhook
    TELEGRAM_WEBHOOK_SECRET: Optional[str] = (
        None  # Compared against X-Telegram-Bot-Api-Secret-Token
    )
    TELEGRAM_POLLING_ENABLED: bool = False  # Long-poll getUpdates instead of webhook
    TELEGRAM_POLL_TIMEOUT_SECONDS: int = 10  # getUpdates long-poll timeout
    TELEGRAM_ANNOUNCE_STARTUP: bool = False  # Greet admins when the bot starts

    # Notification delivery
    NOTIFICATION_TIMEOUT_SECONDS: float = (
        10.0  # Per recipient, per transport attempt
    )

    # Public base URL used to build approve/reject links in notifications
    BASE_URL: Optional[str] = None
    ACTION_LINK_SECRET: Optional[str] = (
        None  # HMAC key for action links (defaults to the bot token)
    )

    # Admin HTTP API
    ADMIN_API_TOKEN: Optional[str] = None  # Bearer token for /admin endpoints

    # Verification
    PREAPPROVED_USER_IDS: Optional[str] = None  # Seeded as approved on start-up
    EXTERNAL_USER_ID_MAX_LENGTH: int = 64
    VERIFY_RATE_LIMIT: str = "20/minute"  # slowapi limit for /verify-account

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    # --------- Properties ---------
    @property
    def is_local(self) -> bool:
        """
        Check if running in local development environment.

        Supported values:
        - "local" or "local_dev" → True (local development)
        - "dev", "staging", "prod", or anything else → False (deployed)
        """
        if not self.ENVIRONMENT:
            return False
        env = self.ENVIRONMENT.lower()
        return env in ["local", "local_dev"]

    @property
    def admin_chat_ids(self) -> List[int]:
        """Admin chat IDs parsed from ADMIN_CHAT_IDS, invalid entries dropped."""
        chat_ids = []
        for raw in self._get_env_list("ADMIN_CHAT_IDS") or []:
            try:
                chat_ids.append(int(str(raw).strip()))
            except ValueError:
                continue
        return chat_ids

    @property
    def preapproved_user_ids(self) -> List[str]:
        values = self._get_env_list("PREAPPROVED_USER_IDS") or []
        return [str(v).strip() for v in values if str(v).strip()]

    @property
    def action_link_secret(self) -> Optional[str]:
        return self.ACTION_LINK_SECRET or self.TELEGRAM_BOT_TOKEN

    @property
    def public_base_url(self) -> Optional[str]:
        """BASE_URL normalized to an https URL without trailing slash."""
        if not self.BASE_URL:
            return None
        base_url = self.BASE_URL.strip().rstrip("/")
        if not base_url.startswith("http"):
            base_url = f"https://{base_url}"
        return base_url

    def _get_env_list(self, key: str) -> Optional[List[str]]:
        """Helper to parse env var list (JSON or comma-separated)."""
        raw_val = self.__dict__.get(key) or None
        if not raw_val:
            return None
        try:
            # Try JSON list first
            return (
                json.loads(raw_val) if raw_val.startswith("[") else raw_val.split(",")
            )
        except Exception:
            return None


settings = Settings()
