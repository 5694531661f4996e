"""Thin wrappers around Microsoft Agent Framework chat completion clients.

The rest of the assistant only talks to :class:`MAFChatClient`, so the
provider-specific client classes are loaded lazily based on the configured
provider. Ollama servers are reached through their OpenAI-compatible
``/v1`` endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass
from importlib import import_module
from typing import Any, Iterable, List

from .config import ModelSettings

OLLAMA_DEFAULT_ENDPOINT = "http://localhost:11434/v1"
# Ollama ignores the key, the OpenAI client still requires one.
OLLAMA_PLACEHOLDER_KEY = "ollama"


def _framework() -> Any:
    try:
        return import_module("agent_framework")
    except ModuleNotFoundError as exc:  # pragma: no cover - MAF runtime
        raise MAFIntegrationError(
            "Microsoft Agent Framework is not installed. Reinstall the "
            "project dependencies (e.g. `pip install -e .`)."
        ) from exc


def _coerce_role(role: str) -> Any:
    role_cls = getattr(_framework(), "Role")
    try:
        return role_cls(role)
    except ValueError as exc:
        raise ValueError(
            "Unsupported role for MAF chat message: {role}".format(role=role)
        ) from exc


@dataclass(slots=True)
class ChatMessage:
    """Simple representation of a chat message compatible with this app."""

    role: str
    content: str


class MAFIntegrationError(RuntimeError):
    """Raised when the MAF client cannot be initialized."""


class MAFChatClient:
    """Wrapper that dispatches chat completion calls through MAF clients."""

    def __init__(self, settings: ModelSettings) -> None:
        self._settings = settings
        self._client = self._create_client(settings)

    @staticmethod
    def _create_client(settings: ModelSettings):
        provider = settings.provider.lower()
        try:
            if provider in {"azure-openai", "azure_openai", "azure"}:
                module = import_module("agent_framework.azure")
                client_cls = getattr(module, "AzureOpenAIChatClient")
                return client_cls(
                    api_key=settings.api_key,
                    deployment_name=settings.model,
                    endpoint=settings.endpoint,
                    api_version=settings.api_version,
                )
            if provider in {"openai", "oai"}:
                module = import_module("agent_framework.openai")
                client_cls = getattr(module, "OpenAIChatClient")
                return client_cls(
                    api_key=settings.api_key,
                    model_id=settings.model,
                    base_url=settings.endpoint,
                )
            if provider == "ollama":
                module = import_module("agent_framework.openai")
                client_cls = getattr(module, "OpenAIChatClient")
                return client_cls(
                    api_key=settings.api_key or OLLAMA_PLACEHOLDER_KEY,
                    model_id=settings.model,
                    base_url=settings.endpoint or OLLAMA_DEFAULT_ENDPOINT,
                )
        except ModuleNotFoundError as exc:  # pragma: no cover - MAF runtime
            missing = exc.name or "a required dependency"
            raise MAFIntegrationError(
                "Microsoft Agent Framework dependency '{missing}' is missing. "
                "Reinstall the project dependencies (e.g. `pip install -e .`)."
                .format(missing=missing)
            ) from exc
        raise MAFIntegrationError(
            f"Unsupported MAF provider '{settings.provider}'."
        )

    @staticmethod
    def _merge_consecutive_roles(
        messages: Iterable[ChatMessage],
    ) -> List[ChatMessage]:
        """Combine adjacent messages that share the same role.

        Chat templates expect user/assistant roles to alternate. History
        entries and the current request are all user-authored, so they are
        folded into one message instead of being sent back-to-back.
        """

        merged: List[ChatMessage] = []
        for message in messages:
            if merged and merged[-1].role == message.role:
                previous = merged[-1]
                previous.content = (
                    f"{previous.content}\n\n{message.content}".strip()
                )
                continue
            merged.append(
                ChatMessage(role=message.role, content=message.content)
            )
        return merged

    async def complete(self, messages: Iterable[ChatMessage]) -> ChatMessage:
        """Execute a chat completion call through the underlying MAF client."""

        merged_messages = self._merge_consecutive_roles(messages)
        message_cls = getattr(_framework(), "ChatMessage")
        payload: List[Any] = [
            message_cls(role=_coerce_role(msg.role), text=msg.content)
            for msg in merged_messages
        ]
        response = await self._client.get_response(
            messages=payload,
            temperature=self._settings.temperature,
            max_tokens=self._settings.max_tokens,
            top_p=self._settings.top_p,
        )
        return ChatMessage(role="assistant", content=response.text or "")
