"""
This module manages the configuration of an EventSource connection.
It handles retrieval of settings from environment variables or direct input.
"""

from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from eventsource_client._retry import DEFAULT_RECONNECT_DELAY_MS

ENV_URL = "EVENTSOURCE_URL"
ENV_RECONNECT_DELAY_MS = "EVENTSOURCE_RECONNECT_DELAY_MS"
ENV_READ_TIMEOUT_MS = "EVENTSOURCE_READ_TIMEOUT_MS"
ENV_CONNECT_TIMEOUT_MS = "EVENTSOURCE_CONNECT_TIMEOUT_MS"
ENV_VERBOSE = "EVENTSOURCE_VERBOSE"

DEFAULT_READ_TIMEOUT_MS = 3600 * 1000
DEFAULT_CONNECT_TIMEOUT_MS = 10 * 1000
DEFAULT_MAX_REDIRECTS = 5

_ENV_FIELDS = {
    "reconnect_delay_ms": ENV_RECONNECT_DELAY_MS,
    "read_timeout_ms": ENV_READ_TIMEOUT_MS,
    "connect_timeout_ms": ENV_CONNECT_TIMEOUT_MS,
    "verbose": ENV_VERBOSE,
}


class EventSourceConfig(BaseModel):
    """
    Configuration for a single EventSource connection.
    Durations are expressed in milliseconds.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    url: str = Field(min_length=1)
    headers: Optional[dict[str, str]] = None
    reconnect_delay_ms: int = Field(default=DEFAULT_RECONNECT_DELAY_MS, ge=0)
    read_timeout_ms: int = Field(default=DEFAULT_READ_TIMEOUT_MS, gt=0)
    connect_timeout_ms: int = Field(default=DEFAULT_CONNECT_TIMEOUT_MS, gt=0)
    max_redirects: int = Field(default=DEFAULT_MAX_REDIRECTS, ge=0)
    verbose: bool = False

    # Reintentar también tras un fallo de transporte (por defecto el loop se detiene).
    auto_resume_on_failure: bool = False

    @property
    def read_timeout_s(self) -> float:
        return self.read_timeout_ms / 1000

    @property
    def connect_timeout_s(self) -> float:
        return self.connect_timeout_ms / 1000

    @staticmethod
    def from_env_or_value(url: str | None = None, **overrides: Any) -> EventSourceConfig:
        """
        Create an EventSourceConfig from explicit values or environment variables.

        Args:
            url: Optional stream URL provided by the user.
            **overrides: Any other field; explicit values take precedence over
                the environment.

        Returns:
            A validated EventSourceConfig instance.

        Raises:
            ValueError: If no URL is found in both the argument and environment.
            pydantic.ValidationError: If a value is out of range.
        """
        resolved_url = url or os.getenv(ENV_URL)

        if not resolved_url:
            raise ValueError(
                "Stream URL missing. Define EVENTSOURCE_URL in environment or pass url value"
            )

        values: dict[str, Any] = {}
        for name, env_name in _ENV_FIELDS.items():
            raw = os.getenv(env_name)
            if raw is not None and raw.strip():
                values[name] = raw.strip()
        values.update({k: v for k, v in overrides.items() if v is not None})

        return EventSourceConfig(url=resolved_url, **values)
