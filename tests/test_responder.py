"""
Tests for the generative responder.

Covers:
- PII redaction before text leaves the process
- Reply cleanup (dialogue markers, short replies)
- Failure handling (exceptions and timeouts become the apology)
- Prompt construction with a bounded history window
"""

import pytest

from guided_assistant.config import DEFAULT_APOLOGY
from guided_assistant.prompts import EMPTY_PROMPT_REPLY, SHORT_REPLY_FALLBACK
from guided_assistant.responder import GenerativeResponder, clean_reply, redact

from conftest import FakeCompletionClient


# ---------------------------------------------------------------------------
# Redaction and cleanup
# ---------------------------------------------------------------------------

class TestRedaction:

    def test_email_and_phone(self):
        text = redact("Call 555-123-4567 or write to jane.doe@example.org")
        assert "[REDACTED_PHONE]" in text
        assert "[REDACTED_EMAIL]" in text
        assert "555" not in text
        assert "example.org" not in text

    def test_ssn(self):
        assert redact("my ssn is 123-45-6789") == "my ssn is [REDACTED_SSN]"

    def test_plain_numbers_survive(self):
        assert redact("I work 40 hours at 15.50") == "I work 40 hours at 15.50"


class TestCleanReply:

    def test_cuts_at_dialogue_marker(self):
        raw = "Count everyone who earns wages.\nHuman: and what else?"
        assert clean_reply(raw) == "Count everyone who earns wages."

    def test_short_reply_uses_fallback(self):
        assert clean_reply("ok") == SHORT_REPLY_FALLBACK

    def test_empty_reply_uses_fallback(self):
        assert clean_reply("") == SHORT_REPLY_FALLBACK


# ---------------------------------------------------------------------------
# send()
# ---------------------------------------------------------------------------

class TestSend:

    @pytest.mark.asyncio
    async def test_returns_cleaned_reply(self, completion_client):
        responder = GenerativeResponder(completion_client)
        reply = await responder.send("What is income?")
        assert reply == "A helpful answer from the model."
        assert len(completion_client.calls) == 1

    @pytest.mark.asyncio
    async def test_blank_prompt_skips_model(self, completion_client):
        responder = GenerativeResponder(completion_client)
        assert await responder.send("   ") == EMPTY_PROMPT_REPLY
        assert completion_client.calls == []

    @pytest.mark.asyncio
    async def test_backend_error_returns_apology(self):
        client = FakeCompletionClient(error=ConnectionError("down"))
        responder = GenerativeResponder(client)
        assert await responder.send("hello there") == DEFAULT_APOLOGY

    @pytest.mark.asyncio
    async def test_malformed_response_returns_apology(self):
        class NoContentClient:
            async def complete(self, messages):
                return object()

        responder = GenerativeResponder(NoContentClient())
        assert await responder.send("hello there") == DEFAULT_APOLOGY

    @pytest.mark.asyncio
    async def test_timeout_returns_apology(self):
        client = FakeCompletionClient(delay=1.0)
        responder = GenerativeResponder(client, timeout=0.01, apology="Try later.")
        assert await responder.send("hello there") == "Try later."

    @pytest.mark.asyncio
    async def test_prompt_is_redacted(self, completion_client):
        responder = GenerativeResponder(completion_client)
        await responder.send("reach me at 555-123-4567")
        sent = completion_client.calls[0][-1]
        assert sent.role == "user"
        assert "[REDACTED_PHONE]" in sent.content


# ---------------------------------------------------------------------------
# build_messages()
# ---------------------------------------------------------------------------

class TestBuildMessages:

    def test_without_history(self, completion_client):
        responder = GenerativeResponder(completion_client)
        messages = responder.build_messages("Hi")
        assert [m.role for m in messages] == ["system", "user"]
        assert messages[-1].content == "Hi"

    def test_history_window_keeps_latest_entries(self, completion_client):
        responder = GenerativeResponder(completion_client, history_window=2)
        messages = responder.build_messages("Now?", ["first", "second", "third"])
        assert len(messages) == 3
        history = messages[1].content
        assert "first" not in history
        assert "- second" in history
        assert "- third" in history

    def test_zero_window_drops_history(self, completion_client):
        responder = GenerativeResponder(completion_client, history_window=0)
        messages = responder.build_messages("Now?", ["first"])
        assert [m.role for m in messages] == ["system", "user"]

    def test_hint_selects_system_prompt(self, completion_client):
        responder = GenerativeResponder(
            completion_client, system_prompt_hint="income_assistance"
        )
        system = responder.build_messages("Hi")[0].content
        assert "household income" in system

    def test_unknown_hint_uses_default_prompt(self, completion_client):
        default = GenerativeResponder(completion_client).build_messages("Hi")[0]
        unknown = GenerativeResponder(
            completion_client, system_prompt_hint="no_such_page"
        ).build_messages("Hi")[0]
        assert unknown.content == default.content

    def test_from_settings(self, app_settings, completion_client):
        app_settings.flow.apology_message = "Custom apology."
        responder = GenerativeResponder.from_settings(app_settings, completion_client)
        assert responder.apology == "Custom apology."
