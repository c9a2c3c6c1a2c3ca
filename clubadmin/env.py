import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def load_env() -> None:
    """Load .env from project root if present.
    Values already set in the environment win.
    """
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)


@dataclass(frozen=True)
class Settings:
    database: str
    log_level: str
    store_retries: int


def get_settings() -> Settings:
    retries = os.getenv("CLUBADMIN_STORE_RETRIES", "2")
    try:
        store_retries = max(0, int(retries))
    except ValueError:
        raise SystemExit(f"CLUBADMIN_STORE_RETRIES must be an integer, got {retries!r}")
    return Settings(
        database=os.getenv("CLUBADMIN_DATABASE", "data/club.db"),
        log_level=os.getenv("CLUBADMIN_LOG_LEVEL", "INFO"),
        store_retries=store_retries,
    )
