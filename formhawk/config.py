"""
FormHawk Configuration Module

Scanner settings with defaults, overridable through environment variables.
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class BaseConfig:
    """Base configuration with safe defaults."""

    # Application
    APP_NAME = 'FormHawk'
    APP_VERSION = '1.0.0'

    # Transport
    SCANNER_TIMEOUT = int(os.environ.get('FORMHAWK_TIMEOUT', 30))
    SCANNER_CONCURRENT_REQUESTS = int(os.environ.get('FORMHAWK_CONCURRENT_REQUESTS', 10))
    SCANNER_DELAY_BETWEEN_REQUESTS = float(os.environ.get('FORMHAWK_DELAY', 0.5))  # seconds
    SCANNER_MAX_RETRIES = 3
    SCANNER_VERIFY_SSL = _env_bool('FORMHAWK_VERIFY_SSL', True)

    # Forms
    HTML_PARSER = os.environ.get('FORMHAWK_HTML_PARSER', 'lxml')
    NONCE_REFRESH_TIMEOUT = float(os.environ.get('FORMHAWK_NONCE_TIMEOUT', 30))
    SAMPLE_DEFAULT_VALUE = os.environ.get('FORMHAWK_SAMPLE_DEFAULT', '1')
    SKIP_ORIGINAL = False

    LOG_LEVEL = 'INFO'


class DevelopmentConfig(BaseConfig):
    """Development configuration."""

    SCANNER_VERIFY_SSL = _env_bool('FORMHAWK_VERIFY_SSL', False)

    # More verbose logging
    LOG_LEVEL = 'DEBUG'


class TestingConfig(BaseConfig):
    """Testing configuration."""

    # Faster scans for testing
    SCANNER_TIMEOUT = 5
    SCANNER_DELAY_BETWEEN_REQUESTS = 0
    SCANNER_MAX_RETRIES = 1
    NONCE_REFRESH_TIMEOUT = 1
    HTML_PARSER = 'html.parser'


class ProductionConfig(BaseConfig):
    """Production configuration."""

    LOG_LEVEL = 'WARNING'


# Configuration dictionary for easy access
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': ProductionConfig
}


def get_config(name=None):
    """Return the configuration class for ``name`` (or ``FORMHAWK_ENV``)."""
    if name is None:
        name = os.environ.get('FORMHAWK_ENV', 'default')
    return config.get(name, config['default'])
