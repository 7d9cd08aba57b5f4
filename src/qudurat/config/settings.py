"""Configuration model for Qudurat."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import yaml
from pydantic import BaseModel, Field


def _default_data_dir() -> Path:
    env = os.environ.get("QUDURAT_DATA_DIR")
    if env:
        return Path(env)
    return Path.home() / ".qudurat"


class CacheConfig(BaseModel):
    ttl_hours: int = 24
    reservation_timeout_minutes: int = 10
    low_water_mark: int = 50


class FewShotConfig(BaseModel):
    count: int = 3
    max_pool: int = 30
    use_quality_scoring: bool = True


class Settings(BaseModel):
    data_dir: Path = Field(default_factory=_default_data_dir)
    log_level: str = "INFO"
    cache: CacheConfig = Field(default_factory=CacheConfig)
    few_shot: FewShotConfig = Field(default_factory=FewShotConfig)

    @property
    def progress_db(self) -> Path:
        return self.data_dir / "progress.db"

    @property
    def cache_db(self) -> Path:
        return self.data_dir / "cache.db"

    @property
    def examples_db(self) -> Path:
        return self.data_dir / "examples.db"

    def get_log_level(self) -> str:
        return os.environ.get("QUDURAT_LOG_LEVEL") or self.log_level

    @classmethod
    def load(cls) -> "Settings":
        config_path = _default_data_dir() / "config.yaml"
        if config_path.exists():
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            return cls(**data)
        return cls()

    def save(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        config_path = self.data_dir / "config.yaml"
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(mode="json"), f,
                default_flow_style=False, allow_unicode=True,
            )


def configure_logging(level: str = "INFO") -> None:
    """Send log records to stderr so stdout stays free for protocol output."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    root.addHandler(handler)
