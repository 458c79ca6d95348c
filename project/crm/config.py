# crm/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./crm.db"

    AUTH_SECRET_KEY: str = "change-me-in-production"
    AUTH_REFRESH_SECRET_KEY: str | None = None   # по умолчанию тот же секрет
    AUTH_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    RESET_TOKEN_EXPIRE_MINUTES: int = 60
    VERIFICATION_TOKEN_EXPIRE_HOURS: int = 24

    # sha256_crypt rounds
    PASSWORD_HASH_ROUNDS: int = 535000

    ENVIRONMENT: str = "development"
    COOKIE_DOMAIN: str | None = None
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    ADMIN_EMAIL: str = "admin@example.com"
    ADMIN_PASSWORD: str = "Admin12345"
    ADMIN_FULL_NAME: str = "Administrator"

    LOG_DIR: str = "crm/log"
    LOG_PRINT: str = "0"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def refresh_secret(self) -> str:
        return self.AUTH_REFRESH_SECRET_KEY or self.AUTH_SECRET_KEY

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]


settings = Settings()
