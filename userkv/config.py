"""Configuration management for the userkv service.

This module provides utilities for loading and validating configuration
from environment variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dotenv import load_dotenv

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

_PORT_UPPER_BOUND = 65536
_DEFAULT_PORT = 8000
_DEFAULT_HOST = "127.0.0.1"
_DEFAULT_DATABASE_PATH = "./db/userkv.db"
_DEFAULT_SHUTDOWN_GRACE_PERIOD = 5
_DEFAULT_LIST_BATCH_SIZE = 100

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def configure_logging(app_config: AppConfig) -> None:
    """Configure logging based on the application configuration.

    :param app_config: The application configuration instance
    """
    if not app_config.logging_level:
        logging.basicConfig(level=logging.INFO)
        return

    numeric_level = getattr(logging, app_config.logging_level.upper(), None)
    if not isinstance(numeric_level, int):
        LOGGER.warning("Invalid log level: %s, using INFO", app_config.logging_level)
        numeric_level = logging.INFO
    logging.basicConfig(level=numeric_level)


@dataclass
class AppConfig:
    """Holds application configuration loaded from environment variables.

    :param database_path: SQLite file backing the store, or ``:memory:``
    :param logging_level: Name of the root logging level
    :param root_path: ASGI root path when served behind a proxy
    :param host: Interface to listen on
    :param port: Port to listen on
    :param shutdown_grace_period: Seconds in-flight requests get to finish
        after a shutdown request, None to wait indefinitely
    :param list_batch_size: Rows fetched per batch when listing users
    :param seed_sample_users: Whether to write the sample users at startup
    """

    database_path: str
    logging_level: str | None
    root_path: str

    host: str
    port: int
    shutdown_grace_period: int | None

    list_batch_size: int
    seed_sample_users: bool


def get_env_str(
    var_name: str,
    default: str | None,
    value_checker: Callable[[str], bool] | None = None,
) -> str:
    """Get an environment variable as a string with optional constraints.

    :param var_name: Name of the environment variable
    :param default: Default value if the variable is not set
    :param value_checker: Optional function to validate the value
    :return: The environment variable value
    :raises ValueError: If the value does not meet the constraints
    """
    value = os.getenv(var_name, default)
    if value is None:
        msg = f"Environment variable {var_name} is required"
        raise ValueError(msg)

    if value_checker and not value_checker(value):
        msg = f"Environment variable {var_name} has invalid value: {value}"
        raise ValueError(msg)

    return value


def get_env_optional_int(
    var_name: str,
    default: int | None,
    value_checker: Callable[[int], bool] | None = None,
) -> int | None:
    """Get an environment variable as an integer with optional constraints.

    To indicate None, set the environment variable to an empty string.
    To indicate the default, leave the environment variable unset.
    To indicate an integer value, set the environment variable to that integer.

    :param var_name: Name of the environment variable
    :param default: Default value if the variable is not set
    :param value_checker: Optional function to validate the value
    :return: The environment variable value as an integer
    :raises ValueError: If the value does not meet the constraints or is not an integer
    """
    value_str = os.getenv(var_name)
    if value_str is None:
        return default

    if value_str == "":
        return None

    return _parse_int(var_name, value_str, value_checker)


def get_env_int(
    var_name: str,
    default: int,
    value_checker: Callable[[int], bool] | None = None,
) -> int:
    """Get an environment variable as an integer with optional constraints.

    An unset or empty variable gives the default, anything else must parse.

    :param var_name: Name of the environment variable
    :param default: Default value if the variable is not set
    :param value_checker: Optional function to validate the value
    :return: The environment variable value as an integer
    :raises ValueError: If the value does not meet the constraints or is not an integer
    """
    value_str = os.getenv(var_name)
    if value_str is None or value_str == "":
        return default

    return _parse_int(var_name, value_str, value_checker)


def _parse_int(
    var_name: str,
    value_str: str,
    value_checker: Callable[[int], bool] | None,
) -> int:
    if not value_str.strip().isdecimal():
        msg = f"Environment variable {var_name} must be an integer, got: {value_str}"
        raise ValueError(msg)

    value = int(value_str)

    if value_checker and not value_checker(value):
        msg = f"Environment variable {var_name} has invalid value: {value}"
        raise ValueError(msg)

    return value


def get_env_bool(var_name: str, *, default: bool) -> bool:
    """Get an environment variable as a boolean.

    Accepts ``1/0``, ``true/false``, ``yes/no`` and ``on/off`` in any case.

    :param var_name: Name of the environment variable
    :param default: Default value if the variable is unset or empty
    :return: The environment variable value as a boolean
    :raises ValueError: If the value is not a recognised boolean
    """
    value_str = os.getenv(var_name)
    if value_str is None or value_str == "":
        return default

    lowered = value_str.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False

    msg = f"Environment variable {var_name} must be a boolean, got: {value_str}"
    raise ValueError(msg)


def load_config_from_env(env_file: str | Path | None) -> AppConfig:
    """Load application configuration from environment variables.

    :param env_file: Optional ``.env`` file loaded first, without overriding
        variables that are already set
    :return: An AppConfig instance populated with environment variable values
    :raises ValueError: If any variable is malformed
    """
    if env_file:
        load_dotenv(dotenv_path=env_file)

    return AppConfig(
        database_path=get_env_str(
            "DATABASE_PATH",
            _DEFAULT_DATABASE_PATH,
            lambda path: path != "",
        ),
        logging_level=get_env_str("LOGGING_LEVEL", "INFO"),
        root_path=get_env_str("ROOT_PATH", ""),
        host=get_env_str("HOST", _DEFAULT_HOST, lambda host: host != ""),
        port=get_env_int(
            "PORT",
            _DEFAULT_PORT,
            lambda port: 0 < port < _PORT_UPPER_BOUND,
        ),
        shutdown_grace_period=get_env_optional_int(
            "SHUTDOWN_GRACE_PERIOD",
            _DEFAULT_SHUTDOWN_GRACE_PERIOD,
            lambda period: period >= 0,
        ),
        list_batch_size=get_env_int(
            "LIST_BATCH_SIZE",
            _DEFAULT_LIST_BATCH_SIZE,
            lambda size: size > 0,
        ),
        seed_sample_users=get_env_bool("SEED_SAMPLE_USERS", default=True),
    )
