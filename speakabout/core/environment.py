"""
Environment configuration and management module.

This module provides centralized environment detection and configuration
management for the different deployment environments (test, staging, prod),
plus accessors for the secrets the back-office reads at request time.
"""

import os
from enum import Enum
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv("speakabout/.env")


class ConfigurationError(RuntimeError):
    """Raised when a required environment variable is missing."""

    def __init__(self, variable: str, message: Optional[str] = None):
        self.variable = variable
        super().__init__(message or f"{variable} environment variable is not set")


class Environment(Enum):
    """Supported deployment environments"""

    TEST = "test"
    STAGING = "staging"
    PRODUCTION = "prod"


class EnvironmentConfig:
    """Environment configuration manager"""

    def __init__(self, environment: Optional[str] = None):
        """
        Initialize environment configuration.

        Args:
            environment (str, optional): Force specific environment.
                                       If None, auto-detect from environment variables.
        """
        self._environment = self._detect_environment(environment)
        self._config = self._load_config()

    def _detect_environment(self, force_env: Optional[str] = None) -> Environment:
        """
        Detect current environment based on environment variables.

        Priority:
        1. force_env parameter (for testing)
        2. PYTEST_RUNNING=1 -> test
        3. APP_ENV environment variable
        4. Default to production
        """
        if force_env:
            return Environment(force_env.lower())

        if os.getenv("PYTEST_RUNNING") == "1":
            return Environment.TEST

        app_env = os.getenv("APP_ENV", "prod").lower()

        env_mapping = {
            "development": Environment.STAGING,
            "dev": Environment.STAGING,
            "staging": Environment.STAGING,
            "stage": Environment.STAGING,
            "production": Environment.PRODUCTION,
            "prod": Environment.PRODUCTION,
            "test": Environment.TEST,
            "testing": Environment.TEST,
        }

        return env_mapping.get(app_env, Environment.PRODUCTION)

    def _load_config(self) -> Dict[str, Any]:
        """
        Load environment-specific configuration.

        Returns:
            Dict[str, Any]: Environment configuration dictionary
        """
        base_config = {
            "cors_origins": ["http://localhost:3000"],
            "debug": False,
            "log_level": "INFO",
            "expose_error_details": False,
            "secure_cookies": True,
        }

        env_configs = {
            Environment.TEST: {
                "debug": True,
                "log_level": "DEBUG",
                "cors_origins": ["*"],
                "expose_error_details": True,
                "secure_cookies": False,
            },
            Environment.STAGING: {
                "debug": True,
                "log_level": "DEBUG",
                "cors_origins": [
                    "http://localhost:3000",
                    "http://localhost:3001",
                    "https://staging.speakabout.ai",
                ],
                "expose_error_details": True,
                "secure_cookies": False,
            },
            Environment.PRODUCTION: {
                "debug": False,
                "log_level": "INFO",
                "cors_origins": ["https://speakabout.ai", "https://www.speakabout.ai"],
            },
        }

        config = base_config.copy()
        config.update(env_configs[self._environment])

        # Explicit override for the error-detail policy
        override = os.getenv("EXPOSE_ERROR_DETAILS")
        if override is not None:
            config["expose_error_details"] = override.lower() in ("1", "true", "yes")

        return config

    @property
    def environment(self) -> Environment:
        """Get current environment"""
        return self._environment

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by key.

        Args:
            key (str): Configuration key
            default (Any): Default value if key not found

        Returns:
            Any: Configuration value
        """
        return self._config.get(key, default)


# Global environment configuration instance
env_config = EnvironmentConfig()


# ================== Secrets (read at call time) ==================


def get_database_connection_string(environment: Optional[str] = None) -> str:
    """
    Get database connection string for the specified environment.

    Args:
        environment (str, optional): Force specific environment.
                                    If None, auto-detect from environment variables.

    Returns:
        str: PostgreSQL connection string from environment variable

    Raises:
        ConfigurationError: If connection string not found for the environment
    """
    env_name = EnvironmentConfig(environment).environment
    env_var_name = "DATABASE_URL_TEST" if env_name == Environment.TEST else "DATABASE_URL"

    conn_str = os.getenv(env_var_name)
    if not conn_str:
        raise ConfigurationError(
            env_var_name,
            f"Database connection string not found. "
            f"Please set {env_var_name} environment variable for environment: {env_name.value}",
        )

    return conn_str


def get_admin_credentials() -> tuple[str, str]:
    """
    Get the back-office operator's email and stored password hash.

    Raises:
        ConfigurationError: If either ADMIN_EMAIL or ADMIN_PASSWORD_HASH is unset
    """
    email = os.getenv("ADMIN_EMAIL")
    password_hash = os.getenv("ADMIN_PASSWORD_HASH")
    if not email:
        raise ConfigurationError("ADMIN_EMAIL")
    if not password_hash:
        raise ConfigurationError("ADMIN_PASSWORD_HASH")
    return email, password_hash


def get_jwt_secret() -> str:
    """Get the session token signing secret."""
    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise ConfigurationError("JWT_SECRET")
    return secret


def get_cron_secret() -> Optional[str]:
    """Get the cron bearer secret, or None when cron auth is disabled."""
    return os.getenv("CRON_SECRET") or None


def get_rate_limit_storage_uri() -> str:
    """Get the rate-limit storage URI (memory:// keeps counters in-process)."""
    return os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")


def get_login_delay_seconds() -> float:
    """Get the fixed delay applied before checking login credentials."""
    try:
        return max(0.0, float(os.getenv("LOGIN_DELAY_SECONDS", "1")))
    except ValueError:
        return 1.0


def get_log_format() -> str:
    """Get the log output format: json or text."""
    return os.getenv("LOG_FORMAT", "json").lower()
