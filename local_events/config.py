from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Supabase
    supabase_url: str = ""
    supabase_key: str = Field(
        default="",
        validation_alias=AliasChoices("SUPABASE_KEY", "SUPABASE_SECRET_KEY"),
    )

    # Telegram (failure alerts only)
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    # City
    city_name: str = "madison"
    city_timezone: str = "America/Chicago"

    # Browser
    browser_launch_timeout_ms: int = 30_000
    navigation_timeout_ms: int = 20_000
    default_wait_time_ms: int = 3_000

    # Scheduler
    inter_source_delay_seconds: float = 2.0
    run_once_delay_seconds: float = 1.0
    cycle_interval_seconds: float = 30.0
    error_backoff_seconds: float = 60.0
    staleness_hours: float = 4.0
    batch_size: int = 10

    # Source health
    source_error_threshold: float = 50.0
    source_warning_threshold: float = 75.0

    # Maintenance
    purge_days: int = 60

    # App
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"


settings = Settings()
