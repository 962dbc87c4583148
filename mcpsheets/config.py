# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/config.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Google Sheets MCP server configuration.
This module defines configuration settings for the server using Pydantic.
It loads configuration from environment variables (prefix ``MCPSHEETS_``) or a
``.env`` file, with sensible defaults.

Examples:
    >>> from mcpsheets.config import Settings
    >>> s = Settings(_env_file=None)
    >>> s.port
    3000
    >>> s.session_idle_timeout
    600
"""

# Standard
from functools import lru_cache
from typing import List

# Third-Party
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings for the MCP server, session layer and Sheets client."""

    model_config = SettingsConfigDict(env_prefix="MCPSHEETS_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore")

    # Server
    app_name: str = "Google Sheets MCP"
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    log_level: str = "INFO"
    mcp_path: str = "/mcp"
    cors_allowed_origins: List[str] = ["*"]

    # MCP server identity
    server_name: str = "google-sheets-mcp"
    server_version: str = "1.0.0"
    server_instructions: str = "Tools for reading and writing Google Sheets. Pass a base64 encoded service account key as a Bearer token."

    # Session layer
    session_idle_timeout: int = Field(default=600, gt=0, description="Seconds without activity before a session is evicted")
    session_cleanup_interval: int = Field(default=60, gt=0, description="Seconds between reaper sweeps")
    mcp_json_response: bool = Field(default=False, description="Answer MCP POSTs with application/json instead of an SSE stream")

    # Google APIs
    sheets_api_base_url: str = "https://sheets.googleapis.com/v4"
    google_token_uri: str = "https://oauth2.googleapis.com/token"
    google_scopes: List[str] = ["https://www.googleapis.com/auth/spreadsheets"]
    http_timeout: float = 30.0

    # Retry policy for transient Sheets API failures
    retry_max_retries: int = 3
    retry_initial_delay: float = 1.0
    retry_max_delay: float = 10.0
    retry_factor: float = 2.0

    # Batch limits
    max_ranges_per_batch_get: int = 100
    max_updates_per_batch: int = 100

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and validate the log level name.

        Args:
            v: Raw log level

        Returns:
            str: Upper-cased log level

        Raises:
            ValueError: If the level is not a standard logging level

        Examples:
            >>> Settings(log_level="debug", _env_file=None).log_level
            'DEBUG'
        """
        level = v.upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("mcp_path")
    @classmethod
    def validate_mcp_path(cls, v: str) -> str:
        """Ensure the MCP endpoint path is absolute.

        Args:
            v: Raw path

        Returns:
            str: Path starting with ``/``

        Examples:
            >>> Settings(mcp_path="rpc", _env_file=None).mcp_path
            '/rpc'
        """
        return v if v.startswith("/") else f"/{v}"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: A cached instance of the Settings class.

    Examples:
        >>> settings = get_settings()
        >>> isinstance(settings, Settings)
        True
        >>> settings is get_settings()
        True
    """
    return Settings()


settings = get_settings()
