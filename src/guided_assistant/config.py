"""Configuration helpers for the guided assistant."""

from __future__ import annotations

import os
from dataclasses import dataclass
from importlib import import_module
from pathlib import Path
from typing import Optional

DEFAULT_APOLOGY = "Sorry, I encountered an issue processing your request."


@dataclass(slots=True)
class ModelSettings:
    """Holds model-related configuration for the runtime."""

    provider: str
    model: str
    endpoint: Optional[str]
    api_key: Optional[str]
    api_version: Optional[str]
    temperature: float = 0.2
    max_tokens: int = 512
    top_p: float = 0.95
    timeout: float = 30.0


@dataclass(slots=True)
class FlowSettings:
    """Tunables for the conversation flow and the generative fallback."""

    escalation_threshold: int = 2
    history_window: int = 4
    apology_message: str = DEFAULT_APOLOGY


@dataclass(slots=True)
class AppSettings:
    """Top-level application settings loaded from environment variables."""

    model: ModelSettings
    flow: FlowSettings
    output_dir: Path
    confirmation_log: Path
    redis_url: Optional[str]
    default_context: str = "default"

    @classmethod
    def load(cls) -> "AppSettings":
        """Load settings from the environment or .env file."""
        _ensure_dotenv()
        provider = os.getenv("MAF_MODEL_PROVIDER", "openai")
        model = os.getenv("MAF_MODEL")
        if not model:
            raise RuntimeError("MAF_MODEL environment variable is required.")
        endpoint = os.getenv("MAF_MODEL_ENDPOINT")
        api_key = os.getenv("MAF_MODEL_API_KEY") or None
        if not api_key and provider.lower() != "ollama":
            raise RuntimeError(
                "MAF_MODEL_API_KEY environment variable is required unless "
                "MAF_MODEL_PROVIDER is ollama."
            )
        api_version = os.getenv("MAF_MODEL_API_VERSION")

        temperature = _read_float("ASSISTANT_LLM_TEMPERATURE", 0.2)
        max_tokens = _read_int("ASSISTANT_LLM_MAX_TOKENS", 512, minimum=1)
        top_p = _read_float("ASSISTANT_LLM_TOP_P", 0.95)
        timeout = _read_float("ASSISTANT_LLM_TIMEOUT", 30.0)
        if timeout <= 0:
            raise RuntimeError("ASSISTANT_LLM_TIMEOUT must be positive")

        escalation_threshold = _read_int(
            "ASSISTANT_ESCALATION_THRESHOLD", 2, minimum=1
        )
        history_window = _read_int("ASSISTANT_HISTORY_WINDOW", 4, minimum=0)
        apology = os.getenv("ASSISTANT_APOLOGY_MESSAGE", "").strip()

        output_dir = Path(os.getenv("ASSISTANT_OUTPUT_DIR", "outputs"))
        output_dir.mkdir(parents=True, exist_ok=True)
        confirmation_log = Path(
            os.getenv(
                "ASSISTANT_CONFIRMATIONS_JSONL",
                str(output_dir / "confirmations.jsonl"),
            )
        )
        confirmation_log.parent.mkdir(parents=True, exist_ok=True)
        redis_url: Optional[str] = os.getenv("ASSISTANT_REDIS_URL", "")
        if redis_url is not None and not redis_url.strip():
            redis_url = None
        default_context = (
            os.getenv("ASSISTANT_DEFAULT_CONTEXT", "default").strip()
            or "default"
        )
        return cls(
            model=ModelSettings(
                provider=provider,
                model=model,
                endpoint=endpoint,
                api_key=api_key,
                api_version=api_version,
                temperature=temperature,
                max_tokens=max_tokens,
                top_p=top_p,
                timeout=timeout,
            ),
            flow=FlowSettings(
                escalation_threshold=escalation_threshold,
                history_window=history_window,
                apology_message=apology or DEFAULT_APOLOGY,
            ),
            output_dir=output_dir,
            confirmation_log=confirmation_log,
            redis_url=redis_url,
            default_context=default_context,
        )


def _read_int(name: str, default: int, *, minimum: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc
    if value < minimum:
        raise RuntimeError(f"{name} must be at least {minimum}")
    return value


def _read_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default))
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number") from exc


def _ensure_dotenv() -> None:
    """Load dotenv variables and provide a helpful error if missing."""

    try:
        dotenv_module = import_module("dotenv")
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dep
        raise RuntimeError(
            "python-dotenv is required. Install with `pip install "
            "python-dotenv`."
        ) from exc

    load_dotenv = getattr(dotenv_module, "load_dotenv")
    load_dotenv()
