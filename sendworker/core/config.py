from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "sendworker"
    APP_ENV: str = "local"
    LOG_LEVEL: str = "INFO"

    ADMIN_TOKEN: str = "change-me-admin-token"
    AUTH_DISABLED: bool = False

    DATABASE_URL: str

    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    CELERY_TASK_ALWAYS_EAGER: bool = False

    SEND_QUEUE_NAME: str = "send"

    # Send attempts per invocation before the outcome is Throttled/Failed.
    MAX_NUMBER_OF_ATTEMPTS: int = 5
    # Used for both the global throttle deadline and the per-job requeue delay.
    SEND_RETRY_DELAY_NUMBER_OF_SECONDS: float = 660.0
    # Countdown before a faulted message is handed back to a worker.
    REDELIVERY_DELAY_SECONDS: float = 5.0

    SEND_TASK_SOFT_TIME_LIMIT_SECONDS: int = 240
    SEND_TASK_TIME_LIMIT_SECONDS: int = 300

    # db | redis
    THROTTLE_STATE_BACKEND: str = "db"
    THROTTLE_STATE_REDIS_KEY: str = "sendworker:global:send_retry_delay_time"

    TELEGRAM_BOT_TOKEN: str | None = None
    TELEGRAM_API_BASE: str = "https://api.telegram.org"
    TELEGRAM_TIMEOUT_SECONDS: float = 10.0

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
