"""
Configuration for Datagate.

Settings are read from environment variables with the DATAGATE_ prefix:
    DATAGATE_LOG_LEVEL=DEBUG
    DATAGATE_LOG_FORMAT=json
    DATAGATE_AUTH_RETRIES=1
    DATAGATE_KNOWN_ACTIONS='["GET", "SET", "DELETE", "REQUEST"]'
    DATAGATE_GENERATE_IDS=false

Invariants:
    - Settings are immutable once created
    - validate_settings() reports every problem, not just the first

How to change safely:
    - New settings must have defaults
    - Never change the meaning of an existing setting
"""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_ACTIONS = ["GET", "SET", "DELETE", "REQUEST"]


class Settings(BaseSettings):
    """Datagate settings.

    Attributes:
        log_level: Logging level name
        log_format: 'text' or 'json'
        auth_retries: How many times to retry an authenticator timeout
        known_actions: Action verbs services handle; others give noaction
        generate_ids: Default for schemas that do not declare generateId
    """

    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text")
    auth_retries: int = Field(default=1)
    known_actions: list[str] = Field(default_factory=lambda: list(DEFAULT_ACTIONS))
    generate_ids: bool = Field(default=False)

    model_config = {"env_prefix": "DATAGATE_", "frozen": True}

    def validate_settings(self) -> list[str]:
        """Validate settings.

        Returns:
            List of problems (empty if valid)
        """
        errors = []
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            errors.append(f"log_level must be a logging level name, got {self.log_level!r}")
        if self.log_format not in ("text", "json"):
            errors.append(f"log_format must be 'text' or 'json', got {self.log_format!r}")
        if self.auth_retries < 0:
            errors.append("auth_retries must be >= 0")
        if not self.known_actions:
            errors.append("known_actions must not be empty")
        return errors

    def log_settings(self) -> None:
        """Log the settings (without secrets)."""
        logger.info(
            "Datagate settings",
            extra={
                "log_level": self.log_level,
                "log_format": self.log_format,
                "auth_retries": self.auth_retries,
                "known_actions": list(self.known_actions),
                "generate_ids": self.generate_ids,
            },
        )
