"""Logging setup and OpenTelemetry tracing for the assistant's model calls."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from importlib import import_module
from typing import Optional

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DEFAULT_OTLP_ENDPOINT = "http://localhost:4317"
_TRUTHY = {"1", "true", "yes", "on"}

_tracing_ready = False


@dataclass(slots=True)
class TracingSettings:
    """Where spans are exported and whether prompts are attached to them."""

    endpoint: str = DEFAULT_OTLP_ENDPOINT
    capture_sensitive: bool = False

    @classmethod
    def from_env(cls) -> "TracingSettings":
        endpoint = os.getenv("ASSISTANT_OTLP_ENDPOINT", DEFAULT_OTLP_ENDPOINT)
        # Prompts carry applicant answers, so capture stays opt-in.
        capture = os.getenv("ASSISTANT_TRACING_CAPTURE_SENSITIVE", "false")
        return cls(
            endpoint=endpoint.strip(),
            capture_sensitive=capture.strip().lower() in _TRUTHY,
        )


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure root logging for the CLI and the API server."""

    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)


def initialize_tracing(settings: Optional[TracingSettings] = None) -> bool:
    """Export Agent Framework spans over OTLP; return True on first setup."""

    global _tracing_ready
    if _tracing_ready:
        return False

    tracing = settings or TracingSettings.from_env()
    if not tracing.endpoint:
        logger.info("Tracing disabled: ASSISTANT_OTLP_ENDPOINT is blank")
        return False

    try:
        setup = getattr(
            import_module("agent_framework.observability"),
            "setup_observability",
        )
        setup(
            otlp_endpoint=tracing.endpoint,
            enable_sensitive_data=tracing.capture_sensitive,
        )
    except Exception as exc:  # pragma: no cover - exporter misconfiguration
        logger.warning("Could not enable tracing: %s", exc)
        return False

    _tracing_ready = True
    logger.info(
        "Exporting traces to %s (prompt capture %s)",
        tracing.endpoint,
        "on" if tracing.capture_sensitive else "off",
    )
    return True
