from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://localhost:5432/goalkernel"
    db_pool_size: int = 5
    db_echo: bool = False
    create_schema_on_startup: bool = False

    # Server-wide zone used to cut timestamps into calendar days (streaks).
    default_tz: str = "UTC"
    log_level: str = "INFO"

    # Trend analytics
    trends_default_timeframe: str = "week"  # "week" | "month" | "all"

    # Dashboard summary
    summary_recent_milestones: int = 5

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
