"""
config.py
Storefront settings from the environment (.env is only read in dev/local).
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"

DEV_ENVS = ("dev", "local", "")
DEFAULT_API_URL = "http://127.0.0.1:8000/api"
DEFAULT_STORAGE_PATH = BASE_DIR / ".storefront" / "storage.json"


class Settings(BaseModel):
    env: str = ""
    api_base_url: str = DEFAULT_API_URL
    storage_path: Path = DEFAULT_STORAGE_PATH
    revalidate_interval: float = Field(default=1.0, gt=0)
    order_poll_interval: float = Field(default=30.0, gt=0)
    connect_timeout: float = Field(default=2.0, gt=0)
    read_timeout: float = Field(default=8.0, gt=0)
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def is_dev(self) -> bool:
        return self.env in DEV_ENVS

    @property
    def timeout(self):
        return (self.connect_timeout, self.read_timeout)


def _env_flag(name: str, default: str = "false") -> bool:
    return (os.getenv(name, default) or "").strip().lower() in ("1", "true", "yes", "on")


def load_settings(env_path: Optional[Path] = None) -> Settings:
    env_mode = (os.getenv("ENV", "") or "").lower()

    # only in local/dev, and never over real environment variables
    if env_mode in DEV_ENVS:
        load_dotenv(env_path or ENV_PATH, override=False)
        env_mode = (os.getenv("ENV", "") or "").lower()

    api_base_url = (os.getenv("STOREFRONT_API_URL", "") or "").strip()
    if not api_base_url:
        if env_mode in DEV_ENVS:
            api_base_url = DEFAULT_API_URL
        else:
            raise RuntimeError("STOREFRONT_API_URL missing")

    storage_path = (os.getenv("STOREFRONT_STORAGE_PATH", "") or "").strip()

    return Settings(
        env=env_mode,
        # normalize (avoids //)
        api_base_url=api_base_url.rstrip("/"),
        storage_path=Path(storage_path) if storage_path else DEFAULT_STORAGE_PATH,
        revalidate_interval=float(os.getenv("STOREFRONT_REVALIDATE_INTERVAL", "1.0")),
        order_poll_interval=float(os.getenv("STOREFRONT_ORDER_POLL_INTERVAL", "30.0")),
        log_level=(os.getenv("LOG_LEVEL", "INFO") or "INFO").upper(),
        log_json=_env_flag("LOG_JSON", "true" if env_mode in ("production", "prod") else "false"),
    )
