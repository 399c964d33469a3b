# admin_mfa/core/config.py
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore")

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    JWT_SECRET: str = Field(...)
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30      # rememberMe
    SESSION_TOKEN_EXPIRE_HOURS: int = 12     # sin rememberMe
    MFA_ASSERTION_EXPIRE_MINUTES: int = 5

    # --- MFA ---
    MFA_DEFAULT_ISSUER: str = "Admin"
    MFA_RECOVERY_CODE_COUNT: int = 8
    MFA_RECOVERY_CODE_LENGTH: int = 8
    MFA_RECOVERY_CODE_ROUNDS: int = 10
    MFA_TOTP_DIGITS: int = 6
    MFA_TOTP_INTERVAL: int = 30
    MFA_TOTP_VALID_WINDOW: int = 1
    MFA_CONSUME_RETRIES: int = 3

    # --- cookies ---
    MFA_COOKIE_NAME: str = "admin_mfa"
    REFRESH_COOKIE_NAME: str = "admin_refresh"
    ACCESS_COOKIE_NAME: str = "jwtToken"
    REFRESH_COOKIE_PATH: str = "/admin"
    COOKIE_SECURE: bool | None = None
    COOKIE_DOMAIN: str | None = None
    COOKIE_SAMESITE: Literal["lax", "strict", "none"] = "lax"

    # --- base de datos ---
    DATABASE_URL: str | None = None
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "admin"
    DB_PASSWORD: str = ""
    DB_NAME: str = "admin_mfa"

    @property
    def async_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
                f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4")

    @property
    def cookie_secure(self) -> bool:
        # si no está configurado explícitamente, solo en producción
        if self.COOKIE_SECURE is not None:
            return self.COOKIE_SECURE
        return self.ENVIRONMENT == "production"


settings = Settings()  # type: ignore[call-arg]
