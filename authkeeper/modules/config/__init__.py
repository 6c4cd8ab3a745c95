"""
Config Module - Black Box Interface

Purpose: Process-level configuration management
Interface: get_config(), ConfigModule.get(), ConfigModule.get_all()
Hidden: Config sources, validation logic, environment parsing

Authentication settings (secrets, lifetimes, allow-lists) live in
authkeeper.config.provider; this module only covers how the process runs.
"""

import os
from typing import Any, Dict

from dotenv import load_dotenv

# Configuration Contract: Required and Optional Keys

REQUIRED_CONFIG_KEYS = {
    "storage_backend": "Persistence backend for users and tokens (redis or memory)",
    "redis_host": "Redis server hostname",
    "redis_port": "Redis server port number",
    "redis_db": "Redis database number",
    "host": "API server bind address",
    "port": "API server port",
    "log_level": "Logging level (DEBUG, INFO, WARNING, ERROR)",
}

OPTIONAL_CONFIG_KEYS = {
    "redis_password": {
        "description": "Redis authentication password",
        "default": None,
    },
    "debug": {
        "description": "Enable debug mode",
        "default": False,
    },
}

SUPPORTED_BACKENDS = ("redis", "memory")


class ConfigModule:
    """Configuration management module."""

    def __init__(self):
        """Initialize with environment variables (and a .env file if present)."""
        load_dotenv()
        self._config = self._load_from_env()
        self._validate_required_keys()

    def _validate_required_keys(self) -> None:
        """
        Validate that all required configuration keys are present.

        Raises:
            ValueError: If required keys are missing or the backend is unknown
        """
        missing_keys = []
        for key in REQUIRED_CONFIG_KEYS:
            if key not in self._config or self._config[key] is None:
                missing_keys.append(key)

        if missing_keys:
            raise ValueError(
                f"Missing required configuration keys: {', '.join(missing_keys)}. "
                f"Check environment variables and deployment configuration."
            )

        if self._config["storage_backend"] not in SUPPORTED_BACKENDS:
            raise ValueError(
                f"Unsupported STORAGE_BACKEND '{self._config['storage_backend']}'. "
                f"Expected one of: {', '.join(SUPPORTED_BACKENDS)}"
            )

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment."""
        # Parse Redis port (might be in tcp://host:port format from K8s)
        redis_port_env = os.getenv("REDIS_PORT", "6379")
        if redis_port_env.startswith("tcp://"):
            redis_port = int(redis_port_env.split(":")[-1])
        else:
            redis_port = int(redis_port_env)

        return {
            "storage_backend": os.getenv("STORAGE_BACKEND", "redis").lower(),
            # Redis settings
            "redis_host": os.getenv("REDIS_HOST", "localhost"),
            "redis_port": redis_port,
            "redis_db": int(os.getenv("REDIS_DB", "0")),
            "redis_password": os.getenv("REDIS_PASSWORD"),
            # API settings
            "host": os.getenv("API_HOST", "0.0.0.0"),
            "port": int(os.getenv("API_PORT", "8080")),
            "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
            "debug": os.getenv("DEBUG", "false").lower() == "true",
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self._config.get(key, default)

    def get_all(self) -> Dict[str, Any]:
        """Get all configuration values."""
        return self._config.copy()

    @staticmethod
    def get_config_schema() -> Dict[str, Any]:
        """
        Get the configuration schema (contract) for this module.

        Returns:
            Dictionary with 'required' and 'optional' key specifications
        """
        return {
            "required": REQUIRED_CONFIG_KEYS.copy(),
            "optional": OPTIONAL_CONFIG_KEYS.copy(),
        }


# Singleton instance
_instance = None


def get_config() -> ConfigModule:
    """Get the configuration module singleton."""
    global _instance
    if _instance is None:
        _instance = ConfigModule()
    return _instance


__all__ = ["get_config", "ConfigModule"]
