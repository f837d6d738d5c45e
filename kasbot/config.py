from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    telegram_bot_token: str = ""
    telegram_webhook_url: str = ""
    telegram_webhook_secret: str = ""

    # Primary (free tier) and fallback (paid) intent classifiers
    openrouter_api_key: str = ""
    primary_model: str = "qwen/qwen3-30b-a3b:free"
    deepseek_api_key: str = ""
    fallback_model: str = "deepseek-chat"
    classifier_timeout_seconds: float = 20.0
    primary_daily_threshold: int = 8000
    usage_per_primary_call: int = 5

    data_dir: str = "data"
    max_open_stores: int = 256
    timezone: str = "Asia/Jakarta"
    session_ttl_minutes: int = 5
    alert_throttle_hours: int = 6
    alert_window_days: int = 3


@lru_cache
def get_settings() -> Settings:
    return Settings()
