from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    PROJECT_NAME: str = "SitePulse"
    API_PREFIX: str = "/api"
    ENVIRONMENT: str = "development"  # development, staging, production

    # Database (SQLite file for local dev, Postgres URL in production)
    DATABASE_URL: str = "sqlite:///./sitepulse.db"

    # Admin token verification
    SECRET_KEY: str = ""  # Must be set via environment variable
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours (matches cookie max-age)
    AUTH_COOKIE_NAME: str = "auth-token"

    # Comma-separated list of allowed origins for the tracker
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Tracker -> collector transport
    COLLECTOR_URL: str = "http://localhost:8000/api/analytics"
    COLLECTOR_TIMEOUT_SECONDS: float = 5.0

    # Local fallback store
    LOCAL_STORAGE_DIR: str = ".sitepulse"
    LOCAL_EVENT_LIMIT: int = 1000

    # Error tracking
    SENTRY_DSN: str = ""

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()
