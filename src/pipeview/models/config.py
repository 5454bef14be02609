"""Configuration models."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, field_validator


class BootstrapConfig(BaseModel):
    """Bootstrap configuration loaded from environment variables.

    These are the minimal settings needed to start the sync worker.
    """

    base_url: str = Field(
        default="http://localhost:8080/jenkins/blue",
        description="Application URL base; REST paths are appended to it.",
    )
    organization: str = Field(default="jenkins")
    redis_url: str = Field(
        default="redis://localhost:6379/0",
    )
    event_stream: str = Field(
        default="pipeview:events",
        description="Redis stream carrying job lifecycle events.",
    )
    http_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Per-request timeout (seconds) for REST calls.",
    )
    log_level: str = Field(default="INFO")

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level
