from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    APP_NAME: str = "Project Controls API"
    DEBUG_MODE: bool = True
    ALLOWED_ORIGINS: str = "*"  # Comma separated list in production
    STORE_URL: str = "http://localhost:54321/rest/v1"
    STORE_TIMEOUT_SECONDS: float = 60.0
    FETCH_MAX_ATTEMPTS: int = 3
    FETCH_BACKOFF_SECONDS: float = 1.0
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    ANALYTICS_CACHE_MINUTES: int = 10
    TIMEZONE: str = "UTC"

    # Labor constants shared by every forecasting code path
    HOURS_PER_PERSON: float = 50.0
    DEFAULT_LABOR_RATE: float = 50.0
    BURDEN_RATE: float = 0.28
    FORECAST_WEEKS_AHEAD: int = 26
    HISTORICAL_WEEKS: int = 16
    RECENT_RATE_WEEKS: int = 4
    COPY_FORWARD_WEEKS: int = 4
    RECONCILIATION_EPSILON: float = 0.01

    class Config:
        env_file = ".env"

settings = Settings()
