"""Generative response service used for escalations and open-ended chat.

:class:`GenerativeResponder` never raises to its caller: transport errors,
timeouts and malformed replies all collapse into a fixed apology string so
the conversation controller can treat every reply as ordinary text.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import TYPE_CHECKING, Iterable, List, Optional, Protocol, Sequence, Tuple

from .config import DEFAULT_APOLOGY
from .maf_client import ChatMessage
from .prompts import (
    EMPTY_PROMPT_REPLY,
    SHORT_REPLY_FALLBACK,
    resolve_system_prompt,
)

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .config import AppSettings

logger = logging.getLogger(__name__)

MIN_REPLY_LENGTH = 15

PII_PATTERNS: Tuple[Tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b\d{3}[-.]?\d{2}[-.]?\d{4}\b"), "SSN"),
    (re.compile(r"\b\d{16}\b"), "CC_NUMBER"),
    (
        re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        "EMAIL",
    ),
    (re.compile(r"\(\d{3}\)\s*\d{3}[-.]?\d{4}\b"), "PHONE"),
    (re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b"), "PHONE"),
)

_DIALOGUE_MARKER = re.compile(r"\n(?:Human|User|AI|Assistant):", re.IGNORECASE)
_META_COMMENTARY: Tuple[re.Pattern[str], ...] = (
    re.compile(
        r"^(Yes|No),?\s*(the human|the user).{0,100}"
        r"(provided|asked|said|mentioned).{0,200}",
        re.IGNORECASE,
    ),
    re.compile(
        r"^(This|The)\s+(conversation|message|text|prompt).{0,200}",
        re.IGNORECASE,
    ),
    re.compile(
        r"^(Based on|According to).{0,50}(conversation|message|text).{0,100}",
        re.IGNORECASE,
    ),
    re.compile(
        r"^(I|As an AI).{0,50}(don't|cannot|can't|am unable to).{0,100}",
        re.IGNORECASE,
    ),
    re.compile(
        r"^The\s+AI\s+assistant\s+(does not|cannot|is unable to).{0,100}",
        re.IGNORECASE,
    ),
)
_TRAILING_MARKER = re.compile(r"\bHuman\b:?$", re.IGNORECASE)


class ResponseService(Protocol):
    """Anything able to answer free text given prior conversation context."""

    async def send(self, text: str, history: Sequence[str] = ()) -> str:
        ...


class CompletionClient(Protocol):
    async def complete(self, messages: Iterable[ChatMessage]) -> ChatMessage:
        ...


def redact(text: str) -> str:
    """Replace personal identifiers in ``text`` with redaction labels."""

    sanitized = text
    for pattern, label in PII_PATTERNS:
        sanitized = pattern.sub(f"[REDACTED_{label}]", sanitized)
    return sanitized


def clean_reply(raw: str) -> str:
    """Strip dialogue markers and meta commentary from a model reply."""

    cleaned = _DIALOGUE_MARKER.split(raw or "")[0].strip()
    for pattern in _META_COMMENTARY:
        cleaned = pattern.sub("", cleaned)
    cleaned = _TRAILING_MARKER.sub("", cleaned).strip()
    if len(cleaned) < MIN_REPLY_LENGTH:
        logger.warning(
            "Using fallback reply; cleaned model output was %d chars",
            len(cleaned),
        )
        return SHORT_REPLY_FALLBACK
    return cleaned


class GenerativeResponder:
    """Sends user text to the chat model and returns a cleaned reply."""

    def __init__(
        self,
        client: CompletionClient,
        *,
        system_prompt_hint: Optional[str] = None,
        history_window: int = 4,
        timeout: float = 30.0,
        apology: str = DEFAULT_APOLOGY,
    ) -> None:
        self._client = client
        self._system_prompt = resolve_system_prompt(system_prompt_hint)
        self._history_window = max(0, history_window)
        self._timeout = timeout
        self._apology = apology

    @classmethod
    def from_settings(
        cls,
        settings: "AppSettings",
        client: CompletionClient,
        *,
        system_prompt_hint: Optional[str] = None,
    ) -> "GenerativeResponder":
        return cls(
            client,
            system_prompt_hint=system_prompt_hint,
            history_window=settings.flow.history_window,
            timeout=settings.model.timeout,
            apology=settings.flow.apology_message,
        )

    @property
    def apology(self) -> str:
        return self._apology

    def build_messages(
        self,
        text: str,
        history: Sequence[str] = (),
    ) -> List[ChatMessage]:
        messages = [ChatMessage(role="system", content=self._system_prompt)]
        recent = list(history)[-self._history_window:] if self._history_window else []
        if recent:
            lines = "\n".join(f"- {redact(entry)}" for entry in recent)
            messages.append(
                ChatMessage(
                    role="user",
                    content=f"Earlier answers in this conversation:\n{lines}",
                )
            )
        messages.append(ChatMessage(role="user", content=redact(text)))
        return messages

    async def send(self, text: str, history: Sequence[str] = ()) -> str:
        """Return the model's reply to ``text`` or the apology on failure."""

        if not text or not text.strip():
            logger.warning("Received empty prompt; skipping model call.")
            return EMPTY_PROMPT_REPLY

        started = time.perf_counter()
        messages = self.build_messages(text, history)
        try:
            response = await asyncio.wait_for(
                self._client.complete(messages),
                timeout=self._timeout,
            )
            reply = clean_reply(response.content)
        except asyncio.TimeoutError:
            logger.warning(
                "Generative backend timed out after %.1fs", self._timeout
            )
            return self._apology
        except Exception:
            logger.exception("Generative backend call failed")
            return self._apology

        logger.info(
            "Generative reply in %.0fms (history entries: %d)",
            (time.perf_counter() - started) * 1000,
            len(history),
        )
        return reply
