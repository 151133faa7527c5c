# user_admin/core/config.py
import os
from functools import lru_cache
from typing import List, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application Settings
    APP_NAME: str = "User Admin API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = int(os.environ.get("PORT", 8000))

    # Database Settings
    DATABASE_URL: str = "sqlite:///./user_admin.db"
    DATABASE_ECHO: bool = False

    # Listing
    USERS_PER_PAGE: int = 10
    USERS_MAX_PER_PAGE: int = 100
    USERS_FULLTEXT_SEARCH: bool = True

    # Passwords
    PASSWORD_LENGTH: int = 12
    PASSWORD_MIN_LENGTH: int = 6
    BCRYPT_ROUNDS: int = 12

    # Avatar Upload Settings
    UPLOAD_DIR: str = "uploads"
    AVATAR_SUBDIR: str = "avatars"
    AVATAR_MAX_KB: int = 2048
    ALLOWED_AVATAR_TYPES: List[str] = ["image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"]
    BASE_URL: str = "http://localhost:8000"

    # Cache
    CACHE_ENABLED: bool = True
    CACHE_TTL_SECONDS: int = 300
    CACHE_MAX_ENTRIES: int = 1024
    CACHE_PREFIX: str = "users:"
    REDIS_URL: Optional[str] = None

    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = 60

    # Mail Settings
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_TIMEOUT: int = 10
    MAIL_FROM: str = "no-reply@example.com"

    # CORS Settings
    ALLOWED_ORIGINS: str = "*"

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @model_validator(mode="after")
    def check_password_lengths(self) -> "Settings":
        if self.PASSWORD_LENGTH < self.PASSWORD_MIN_LENGTH:
            raise ValueError("PASSWORD_LENGTH must be at least PASSWORD_MIN_LENGTH")
        if self.USERS_PER_PAGE < 1 or self.USERS_MAX_PER_PAGE < self.USERS_PER_PAGE:
            raise ValueError("USERS_MAX_PER_PAGE must be >= USERS_PER_PAGE >= 1")
        return self

    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)

    @property
    def avatar_max_bytes(self) -> int:
        return self.AVATAR_MAX_KB * 1024


@lru_cache()
def get_settings() -> Settings:
    return Settings()
