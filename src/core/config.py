"""Application configuration, read from the environment (CHESS_* variables)."""

import os
from functools import lru_cache
from typing import Self

from pydantic import BaseModel, Field, model_validator

ENV_PREFIX = "CHESS_"


class Settings(BaseModel):
    database_url: str = "sqlite:///./chess.db"

    # Connection pool bounds (ignored for SQLite)
    db_pool_max: int = Field(default=20, ge=1)
    db_pool_min: int = Field(default=5, ge=1)
    db_pool_timeout: float = Field(default=2.0, gt=0)
    db_pool_recycle: int = Field(default=30, ge=1)
    echo_sql: bool = False

    log_level: str = "INFO"
    # include exception details in 500 responses
    debug: bool = False
    allowed_origins: list[str] = ["*"]

    default_initial_time: int = Field(default=600, ge=0)
    default_increment: int = Field(default=5, ge=0)

    @model_validator(mode="after")
    def check_pool_bounds(self) -> Self:
        if self.db_pool_min > self.db_pool_max:
            raise ValueError("db_pool_min cannot be larger than db_pool_max.")
        return self


def settings_from_env(environ: dict[str, str] | None = None) -> Settings:
    """Build Settings from CHESS_* variables. Unset variables keep their default."""
    environ = dict(os.environ) if environ is None else environ
    values: dict[str, object] = {}
    for name in Settings.model_fields:
        raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if raw is None:
            continue
        if name == "allowed_origins":
            values[name] = [origin.strip() for origin in raw.split(",") if origin.strip()]
        elif name in ("echo_sql", "debug"):
            values[name] = raw.lower() in ("1", "true", "yes")
        else:
            values[name] = raw
    return Settings.model_validate(values)


@lru_cache
def get_settings() -> Settings:
    return settings_from_env()
