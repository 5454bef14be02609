"""Load bootstrap configuration from environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pipeview.models.config import BootstrapConfig

_ENV_PREFIX = "PIPEVIEW_"

# BootstrapConfig field -> env var suffix
_ENV_FIELDS = {
    "base_url": "BASE_URL",
    "organization": "ORGANIZATION",
    "redis_url": "REDIS_URL",
    "event_stream": "EVENT_STREAM",
    "http_timeout": "HTTP_TIMEOUT",
    "log_level": "LOG_LEVEL",
}


def load_bootstrap_config(environ: Mapping[str, str] | None = None) -> BootstrapConfig:
    """Read PIPEVIEW_* settings; anything unset or blank keeps its default.

    ``environ`` defaults to ``os.environ``.
    """
    env = os.environ if environ is None else environ
    overrides = {}
    for field_name, suffix in _ENV_FIELDS.items():
        value = env.get(_ENV_PREFIX + suffix, "").strip()
        if value:
            overrides[field_name] = value
    return BootstrapConfig.model_validate(overrides)
