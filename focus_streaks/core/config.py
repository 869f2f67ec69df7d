from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://streaks:streaks@db:5432/streaks"
    APP_ENV: str = "development"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://myapp.com,https://api.myapp.com"
    CORS_ORIGINS: str = "*"

    # Minutes of focus a civil day needs before it counts toward a streak.
    QUALIFYING_MINUTES: int = Field(default=30, ge=1)

    # Optimistic-concurrency retries for the per-user streak row.
    STREAK_WRITE_ATTEMPTS: int = Field(default=3, ge=1)
    STREAK_RETRY_WAIT_MAX: float = 1.0

    BATCH_MAX_ITEMS: int = Field(default=100, ge=1)

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
