"""Configuration schema for gitpublish.

Uses Pydantic for schema enforcement and clear error messages.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator


DEFAULT_REMOTE = "origin"


class GitConfig(BaseModel):
    """Git-related settings."""

    remote: str = Field(
        default=DEFAULT_REMOTE,
        description="Remote that branches are resolved against and pushed to",
    )
    author: str = Field(
        default="",
        description="Default commit author name",
    )
    email: str = Field(
        default="",
        description="Default commit author email",
    )

    @field_validator("remote")
    @classmethod
    def validate_remote(cls, v: str) -> str:
        """Branch resolution and push always target origin."""
        if v != DEFAULT_REMOTE:
            raise ValueError(f"Only the '{DEFAULT_REMOTE}' remote is supported, got '{v}'")
        return v


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log level",
    )
    dir: str = Field(
        default="",
        description="Log directory (empty = ~/.gitpublish/logs)",
    )
    max_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Max log file size before rotation",
        ge=1024,
    )
    backup_count: int = Field(
        default=5,
        description="Number of rotated log files to keep",
        ge=0,
    )
    disable_file: bool = Field(
        default=False,
        description="Log to stderr only",
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v


class GitPublishConfig(BaseModel):
    """Root configuration."""

    version: int = Field(default=1, description="Config schema version")
    git: GitConfig = Field(default_factory=GitConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
