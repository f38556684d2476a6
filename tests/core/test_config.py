"""Unit tests for src/core/config.py"""

import pytest
from pydantic import ValidationError

from src.core.config import Settings, settings_from_env


def test_defaults() -> None:
    settings = settings_from_env({})
    assert settings == Settings()
    assert settings.db_pool_max == 20
    assert settings.db_pool_min == 5
    assert settings.db_pool_timeout == 2.0
    assert settings.default_initial_time == 600
    assert settings.default_increment == 5
    assert settings.allowed_origins == ["*"]


def test_values_from_environment() -> None:
    settings = settings_from_env(
        {
            "CHESS_DATABASE_URL": "postgresql+psycopg://chess@db/chess",
            "CHESS_DB_POOL_MAX": "10",
            "CHESS_DB_POOL_MIN": "2",
            "CHESS_DEBUG": "true",
            "CHESS_ECHO_SQL": "0",
            "CHESS_ALLOWED_ORIGINS": "http://localhost:3000, https://chess.dev",
            "UNRELATED": "ignored",
        }
    )
    assert settings.database_url == "postgresql+psycopg://chess@db/chess"
    assert settings.db_pool_max == 10
    assert settings.db_pool_min == 2
    assert settings.debug is True
    assert settings.echo_sql is False
    assert settings.allowed_origins == ["http://localhost:3000", "https://chess.dev"]


@pytest.mark.parametrize(
    "environ",
    [
        {"CHESS_DB_POOL_MIN": "30"},  # more than the maximum
        {"CHESS_DB_POOL_MAX": "0"},
        {"CHESS_DB_POOL_TIMEOUT": "-1"},
        {"CHESS_DEFAULT_INITIAL_TIME": "soon"},
    ],
)
def test_invalid_values(environ: dict[str, str]) -> None:
    with pytest.raises(ValidationError):
        settings_from_env(environ)
