from pydantic import model_validator
from pydantic_settings import BaseSettings
from typing import List

DEV_JWT_SECRET = "dev-jwt-secret-change-me"
DEV_JWT_REFRESH_SECRET = "dev-refresh-secret-change-me"


class Settings(BaseSettings):
    # App settings
    APP_NAME: str = "Harvex Marketplace API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Security settings
    JWT_SECRET: str = DEV_JWT_SECRET
    JWT_REFRESH_SECRET: str = DEV_JWT_REFRESH_SECRET
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    BCRYPT_ROUNDS: int = 12
    REFRESH_COOKIE_NAME: str = "refreshToken"
    REFRESH_COOKIE_PATH: str = "/api/auth"

    # Comma separated; matched case-insensitively
    ADMIN_EMAILS: str = ""

    # Database settings (PostgreSQL in production, SQLite locally)
    DATABASE_URL: str = "sqlite+aiosqlite:///./harvex.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300
    DB_POOL_TIMEOUT: int = 10
    DB_PRE_PING: bool = True

    # CORS settings
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:5173",
        "https://harvex.ca",
        "https://www.harvex.ca",
    ]

    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TTL_DAYS: int = 7
    # service calls slower than this are logged at WARNING
    SLOW_CALL_MS: int = 2000

    # Marketplace
    ISO_EXPIRY_DAYS: int = 30
    ISO_MATCH_THRESHOLD: int = 60
    ISO_MATCH_LIMIT: int = 5
    SHORTLIST_CHECK_MAX: int = 50

    # Per-client request limits, per minute
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    API_RATE_LIMIT: int = 100
    AUTH_RATE_LIMIT: int = 30
    PUBLIC_RATE_LIMIT: int = 60
    WRITE_RATE_LIMIT: int = 20

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def admin_emails(self) -> set:
        return {e.strip().lower() for e in self.ADMIN_EMAILS.split(",") if e.strip()}

    @property
    def uses_dev_secrets(self) -> bool:
        return self.JWT_SECRET == DEV_JWT_SECRET or self.JWT_REFRESH_SECRET == DEV_JWT_REFRESH_SECRET

    @model_validator(mode="after")
    def check_jwt_secrets(self):
        if not self.JWT_SECRET or not self.JWT_REFRESH_SECRET:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must not be empty")
        if self.JWT_SECRET == self.JWT_REFRESH_SECRET:
            raise ValueError("JWT_REFRESH_SECRET must differ from JWT_SECRET")
        return self


# Create settings instance
settings = Settings()
