"""
Bot Manager Configuration

This module provides configuration management for the bot manager process,
reading the control channel, HTTP listener, database and account secrets
from environment variables and validating them before anything starts.
"""

from pathlib import Path
from typing import Optional, Dict, Any
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from supervisor.errors import ConfigurationError


class ManagerConfig(BaseSettings):
    """
    Bot manager configuration with validation and environment variable support.

    Field names map case-insensitively onto environment variables, so
    ``db_host`` is read from ``DB_HOST``. Required values have no default
    and abort startup when absent.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Discord
    discord_bot_channel_id: int = Field(..., description="Control channel for commands and status")
    bot_manager_discord_token: str = Field(..., description="Token of the manager account")
    command_prefix: str = Field("!", description="Prefix of administrative chat commands")

    # HTTP API
    listen_api_port: int = Field(..., description="Port of the presence API")
    listen_api_host: str = Field("0.0.0.0", description="Bind address of the presence API")
    listen_api_key: str = Field(..., description="Shared secret expected in the x-api-key header")

    # Core Database Connection
    db_user: str = Field(..., description="Database username")
    db_password: str = Field(..., description="Database password")
    db_host: str = Field(..., description="Database host")
    db_port: int = Field(5432, description="Database port")
    db_name: str = Field(..., description="Database name")

    # Connection Pool Settings
    db_pool_size: int = Field(5, description="Database connection pool size")
    db_max_overflow: int = Field(10, description="Maximum connection overflow")
    db_echo: bool = Field(False, description="Enable SQL query logging")

    # Process
    shutdown_timeout_seconds: float = Field(10.0, description="Hard limit for graceful shutdown")

    @field_validator('listen_api_port', 'db_port')
    @classmethod
    def validate_port(cls, v):
        """Validate ports are in the valid range."""
        if not (1 <= v <= 65535):
            raise ValueError('Port must be between 1 and 65535')
        return v

    @field_validator('db_pool_size')
    @classmethod
    def validate_pool_size(cls, v):
        """Validate pool size is reasonable."""
        if v < 1:
            raise ValueError('Pool size must be at least 1')
        if v > 100:
            raise ValueError('Pool size should not exceed 100 for most applications')
        return v

    @field_validator('shutdown_timeout_seconds')
    @classmethod
    def validate_shutdown_timeout(cls, v):
        if v <= 0:
            raise ValueError('Shutdown timeout must be positive')
        return v

    @property
    def database_url(self) -> str:
        """
        Generate the complete database URL for SQLAlchemy.

        Returns:
            str: PostgreSQL connection URL using the asyncpg driver
        """
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    def get_connection_params(self) -> Dict[str, Any]:
        """
        Get connection parameters for direct asyncpg usage.

        Returns:
            Dict[str, Any]: Connection parameters
        """
        return {
            "host": self.db_host,
            "port": self.db_port,
            "user": self.db_user,
            "password": self.db_password,
            "database": self.db_name,
        }

    @classmethod
    def load(cls, env_file_path: Optional[Path] = None) -> "ManagerConfig":
        """
        Build the configuration, converting validation failures into a
        ConfigurationError that lists every offending variable.

        Args:
            env_file_path: Optional path to a .env file. Defaults to ./.env

        Returns:
            ManagerConfig: Validated instance
        """
        kwargs = {}
        if env_file_path is not None:
            kwargs["_env_file"] = str(env_file_path)

        try:
            return cls(**kwargs)
        except ValidationError as e:
            missing = []
            invalid = []
            for error in e.errors():
                variable = str(error['loc'][0]).upper() if error['loc'] else "?"
                if error['type'] == 'missing':
                    missing.append(variable)
                else:
                    invalid.append(f"{variable} ({error['msg']})")

            parts = []
            if missing:
                parts.append(f"missing environment variables: {', '.join(missing)}")
            if invalid:
                parts.append(f"invalid environment variables: {', '.join(invalid)}")
            raise ConfigurationError("; ".join(parts), missing=missing) from e


# Global configuration instance
_config: Optional[ManagerConfig] = None


def get_manager_config(env_file_path: Optional[Path] = None) -> ManagerConfig:
    """
    Get or create the global manager configuration instance.

    Args:
        env_file_path: Optional path to environment file

    Returns:
        ManagerConfig: Global configuration instance
    """
    global _config
    if _config is None:
        _config = ManagerConfig.load(env_file_path)
    return _config


def reset_manager_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _config
    _config = None
