"""Service settings, read from environment variables."""
from dataclasses import dataclass
from functools import lru_cache
import os


@dataclass(frozen=True)
class Settings:
    database_url: str
    rabbitmq_host: str
    events_exchange: str
    default_payment_method: str
    log_level: str
    log_json: bool

    @property
    def publishing_enabled(self) -> bool:
        return bool(self.rabbitmq_host)


def _flag(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./orders.db"),
        # Empty host turns event publishing off.
        rabbitmq_host=os.getenv("RABBITMQ_HOST", ""),
        events_exchange=os.getenv("EVENTS_EXCHANGE", "events"),
        default_payment_method=os.getenv("DEFAULT_PAYMENT_METHOD", "Credit Card"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=_flag(os.getenv("LOG_JSON", "0")),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
