from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    database_url: str = "sqlite:///./loginguard.db"
    redis_url: str = "redis://localhost:6379/0"
    environment: str = "development"
    log_level: str = "INFO"

    lockout_max_attempts: int = 5
    lockout_window_minutes: int = 30
    lockout_duration_minutes: int = 30

    delay_base_ms: int = 1000
    delay_factor: float = 2.0
    delay_max_ms: int = 30000
    delay_window_minutes: int = 15

    block_duration_low_hours: int = 1
    block_duration_medium_hours: int = 24
    block_duration_high_hours: int = 168

    ip_block_failure_threshold: int = 20
    ip_block_window_minutes: int = 60
    ip_block_severity: str = "medium"

    suspicious_window_minutes: int = 5
    fanout_min_distinct_ips: int = 3
    fanout_min_attempts: int = 10
    automation_mean_interval_ms: float = 1000.0
    alert_cooldown_minutes: int = 5

    captcha_ttl_minutes: int = 10
    captcha_max_attempts: int = 5
    captcha_failure_threshold: int = 3
    captcha_challenge_type: str = "recaptcha"
    captcha_verify_url: str = "https://www.google.com/recaptcha/api/siteverify"
    captcha_secret_key: Optional[str] = None
    captcha_timeout_seconds: float = 5.0

    retention_cleared_days: int = 30
    retention_purge_days: int = 90
    archive_min_attempts: int = 50

    store_write_retries: int = 3
    store_retry_backoff_ms: int = 50

    count_cache_ttl_seconds: int = 0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
