"""Helper functions for loading LoanDesk configuration options."""

import functools
import os
from pathlib import Path
from typing import Optional

import structlog
import yaml

logger = structlog.get_logger('loandesk')

CONFIG_FILE_ENV = 'LOANDESK_CONFIG_FILE'


def to_list(value, delimiter=','):
    """Take a configuration setting and make sure it is a list.

    For example, we might have a configuration setting taken from the .config file,
    which is already a list.

    However, the same setting may be specified via an environment variable,
    using a comma delimited string!
    """
    if type(value) in [list, tuple]:
        return value

    # Otherwise, force string value
    value = str(value)

    return [x.strip() for x in value.split(delimiter) if x.strip()]


def is_true(value) -> bool:
    """Return True if the provided value looks like an affirmative."""
    return str(value).strip().lower() in ['1', 'y', 'yes', 't', 'true', 'on']


def get_config_file() -> Optional[Path]:
    """Return the path of the YAML config file, if one is configured."""
    cfg = os.getenv(CONFIG_FILE_ENV)

    if not cfg:
        return None

    return Path(cfg).expanduser().resolve()


@functools.lru_cache(maxsize=None)
def load_config_data() -> dict:
    """Load configuration data from the YAML config file.

    Returns an empty dict if no config file is configured.
    A configured file which does not exist is reported and ignored.
    """
    cfg_file = get_config_file()

    if cfg_file is None:
        return {}

    if not cfg_file.exists():
        logger.warning('Config file does not exist', path=str(cfg_file))
        return {}

    with open(cfg_file, encoding='utf-8') as cfg:
        data = yaml.safe_load(cfg)

    return data or {}


def get_setting(env_var=None, config_key=None, default_value=None, typecast=None):
    """Helper function for retrieving a configuration setting value.

    - First preference is to look for the environment variable
    - Second preference is to look for the value of the settings file
    - Third preference is the default value

    Arguments:
        env_var: Name of the environment variable e.g. 'LOANDESK_STATIC_ROOT'
        config_key: Key to lookup in the configuration file
        default_value: Value to return if first two options are not provided
        typecast: Function to use for typecasting the value (e.g. int, float, is_true)
    """

    def try_typecasting(value, source: str):
        """Attempt to typecast the value."""
        if typecast is None or value is None:
            return value

        try:
            return typecast(value)
        except (ValueError, TypeError):
            logger.error(
                'Failed to typecast setting value',
                value=value,
                typecast=getattr(typecast, '__name__', str(typecast)),
                source=source,
            )
            return default_value

    if env_var is not None:
        val = os.getenv(env_var, None)

        if val is not None:
            return try_typecasting(val, 'env')

    if config_key is not None:
        cfg_data = load_config_data()

        result = None

        # Hack to allow 'path traversal' in configuration file
        for key in config_key.strip().split('.'):
            if type(cfg_data) is not dict or key not in cfg_data:
                result = None
                break

            result = cfg_data[key]
            cfg_data = cfg_data[key]

        if result is not None:
            return try_typecasting(result, 'yaml')

    return try_typecasting(default_value, 'default')


def get_boolean_setting(env_var=None, config_key=None, default_value=False):
    """Helper function for retrieving a boolean configuration setting."""
    return is_true(get_setting(env_var, config_key, default_value))
