"""Configuration settings and logging setup."""
from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="INVOICE_BOOK_", env_file=".env", extra="ignore")

    environment: str = "development"
    log_level: str = "INFO"

    # Storage
    storage_backend: str = "file"
    data_dir: Path = Path("data")
    storage_retries: int = 3
    storage_backoff: float = 0.05

    # Printed invoice
    business_name: str = "ADINA KAOS"
    payment_accounts: List[str] = []
    watermark: bool = True
    watermark_opacity: float = 0.1

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
