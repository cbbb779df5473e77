"""Configuration management for the request identity layer."""

import os
from dataclasses import dataclass, replace
from typing import Dict, Mapping, Optional

from .exceptions import ConfigurationError


@dataclass(frozen=True)
class IdentityConfig:
    """Environment-specific configuration."""

    # Environment name
    name: str

    # Lower-case inbound header names before lookup
    normalize_header_case: bool

    # Record identity on an X-Ray subsegment
    enable_xray: bool

    # Logging
    log_level: str


ENVIRONMENTS: Dict[str, IdentityConfig] = {
    'dev': IdentityConfig(
        name='dev',
        normalize_header_case=False,
        enable_xray=False,
        log_level='DEBUG'
    ),
    'staging': IdentityConfig(
        name='staging',
        normalize_header_case=False,
        enable_xray=True,
        log_level='INFO'
    ),
    'prod': IdentityConfig(
        name='prod',
        normalize_header_case=False,
        enable_xray=True,
        log_level='INFO'
    )
}

_TRUE_VALUES = ('1', 'true', 'yes', 'on')
_FALSE_VALUES = ('0', 'false', 'no', 'off')
_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def get_config(environment: str) -> IdentityConfig:
    """Get configuration for environment.

    Args:
        environment: Environment name (dev, staging, prod)

    Returns:
        IdentityConfig for the environment

    Raises:
        ConfigurationError: If environment not found
    """
    if environment not in ENVIRONMENTS:
        raise ConfigurationError(
            f"Unknown environment: {environment}. "
            f"Valid environments: {list(ENVIRONMENTS.keys())}",
            setting='ENVIRONMENT'
        )
    return ENVIRONMENTS[environment]


def _parse_bool(var_name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"Environment variable {var_name} must be a boolean, got '{value}'",
        setting=var_name
    )


def _parse_log_level(value: str) -> str:
    level = value.strip().upper()
    if level not in _LOG_LEVELS:
        raise ConfigurationError(
            f"Environment variable LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, "
            f"got '{value}'",
            setting='LOG_LEVEL'
        )
    return level


def load_config(environ: Optional[Mapping[str, str]] = None) -> IdentityConfig:
    """Load configuration from environment variables.

    ``ENVIRONMENT`` selects the preset; ``REQUEST_IDENTITY_NORMALIZE_HEADERS``,
    ``REQUEST_IDENTITY_ENABLE_XRAY`` and ``LOG_LEVEL`` override it.

    Args:
        environ: Variables to read, defaults to os.environ

    Returns:
        IdentityConfig

    Raises:
        ConfigurationError: If a variable has an invalid value
    """
    environ = os.environ if environ is None else environ
    config = get_config(environ.get('ENVIRONMENT', 'dev'))

    overrides = {}
    normalize = environ.get('REQUEST_IDENTITY_NORMALIZE_HEADERS')
    if normalize:
        overrides['normalize_header_case'] = _parse_bool(
            'REQUEST_IDENTITY_NORMALIZE_HEADERS', normalize
        )
    enable_xray = environ.get('REQUEST_IDENTITY_ENABLE_XRAY')
    if enable_xray:
        overrides['enable_xray'] = _parse_bool(
            'REQUEST_IDENTITY_ENABLE_XRAY', enable_xray
        )
    log_level = environ.get('LOG_LEVEL')
    if log_level:
        overrides['log_level'] = _parse_log_level(log_level)

    return replace(config, **overrides)
