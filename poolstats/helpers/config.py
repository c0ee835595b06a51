"""Configuration management and environment variable utilities."""

import os

from dotenv import load_dotenv


# Load environment variables from .env file
load_dotenv()


def get_required_env(key: str) -> str:
    """Get a required environment variable.

    Args:
        key: Environment variable name

    Returns:
        Environment variable value

    Raises:
        ValueError: If the environment variable is not set

    Example:
        ```python
        from poolstats.helpers.config import get_required_env

        db_host = get_required_env("DB_HOST")
        ```
    """
    value = os.getenv(key)
    if not value:
        msg = f"{key} environment variable is not set"
        raise ValueError(msg)
    return value


def get_optional_env(key: str, default: str | None = None) -> str | None:
    """Get an optional environment variable with a default value.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value or default
    """
    return os.getenv(key, default)


def get_bool_env(key: str, *, default: bool = False) -> bool:
    """Read a boolean flag ("1", "true", "yes", "on" are truthy)."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def get_int_env(key: str, default: int) -> int:
    """Read an integer environment variable.

    Raises:
        ValueError: If the variable is set but is not an integer
    """
    value = os.getenv(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        msg = f"{key} must be an integer, got {value!r}"
        raise ValueError(msg) from None


def get_database_url(database_url: str | None = None) -> str:
    """Get the Miningcore PostgreSQL URL from parameter or environment.

    ``DATABASE_URL`` wins when set, otherwise the URL is assembled from
    ``DB_HOST``, ``DB_PORT``, ``DB_USER``, ``DB_PASSWORD`` and ``DB_NAME``.

    Args:
        database_url: Optional URL to use directly

    Returns:
        str: SQLAlchemy URL using the async psycopg (v3) driver

    Raises:
        ValueError: If required environment variables are not set
    """
    if database_url:
        return database_url

    env_url = os.getenv("DATABASE_URL")
    if env_url:
        return env_url

    db_host = get_required_env("DB_HOST")
    db_port = get_optional_env("DB_PORT", "5432")
    db_user = get_required_env("DB_USER")
    db_password = get_required_env("DB_PASSWORD")
    db_name = get_required_env("DB_NAME")

    return (
        "postgresql+psycopg://"
        f"{db_user}:{db_password}"
        f"@{db_host}:{db_port}"
        f"/{db_name}"
    )


def get_log_level() -> str:
    """Log level for package loggers (``LOG_LEVEL``, default INFO)."""
    return (get_optional_env("LOG_LEVEL", "INFO") or "INFO").upper()


__all__ = [
    "get_bool_env",
    "get_database_url",
    "get_int_env",
    "get_log_level",
    "get_optional_env",
    "get_required_env",
]
