"""Shared fixtures and fakes for the guided assistant tests."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import pytest

from guided_assistant.config import AppSettings, FlowSettings, ModelSettings
from guided_assistant.maf_client import ChatMessage

INCOME_PAGE = "/applications/financial/income"


class FakeResponder:
    """Records every request and answers with a canned reply."""

    def __init__(self, reply: str = "Could you share that as a number?") -> None:
        self.reply = reply
        self.calls: List[Tuple[str, List[str]]] = []

    async def send(self, text: str, history: Sequence[str] = ()) -> str:
        self.calls.append((text, list(history)))
        return self.reply


class FakeCompletionClient:
    """Stands in for MAFChatClient without touching the network."""

    def __init__(
        self,
        content: str = "A helpful answer from the model.",
        *,
        error: Optional[BaseException] = None,
        delay: float = 0.0,
    ) -> None:
        self.content = content
        self.error = error
        self.delay = delay
        self.calls: List[List[ChatMessage]] = []

    async def complete(self, messages: Iterable[ChatMessage]) -> ChatMessage:
        self.calls.append(list(messages))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ChatMessage(role="assistant", content=self.content)


@pytest.fixture
def responder() -> FakeResponder:
    return FakeResponder()


@pytest.fixture
def completion_client() -> FakeCompletionClient:
    return FakeCompletionClient()


@pytest.fixture
def app_settings(tmp_path: Path) -> AppSettings:
    return AppSettings(
        model=ModelSettings(
            provider="openai",
            model="test-model",
            endpoint=None,
            api_key="test-key",
            api_version=None,
        ),
        flow=FlowSettings(),
        output_dir=tmp_path,
        confirmation_log=tmp_path / "confirmations.jsonl",
        redis_url=None,
    )
