from datetime import UTC, datetime
from pathlib import Path

from pydantic_settings import BaseSettings


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Replaces the deprecated ``datetime.utcnow()`` while keeping datetimes
    naive so they stay compatible with SQLite (which doesn't store tz info).
    """
    return datetime.now(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "Subflash"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'subflash.db'}"

    # Scheduler configuration (see subflash.srs.parameters)
    request_retention: float = 0.9
    maximum_interval: int = 36500
    enable_fuzz: bool = True
    enable_short_term: bool = True
    learning_steps: list[str] = ["1m", "10m"]
    relearning_steps: list[str] = ["10m"]
    graduate_new_on_easy: bool = True
    hard_step_policy: str = "blended"  # blended, repeat

    max_new_cards_per_session: int = 10
    max_reviews_per_session: int = 20
    log_level: str = "INFO"
    debug: bool = False

    model_config = {"env_prefix": "SUBFLASH_", "env_file": ".env"}


settings = Settings()
