"""
Tests for assistant sessions and the session manager.

Covers:
- The two-step confirm/switch action button
- One-shot confirmation, archive writes and the on_confirm callback
- Input handling around a completed script
- Session manager lookups and per-page responder hints
"""

import pytest

from guided_assistant.controller import ControllerStateError, ConversationMode
from guided_assistant.sessions import AssistantSession, SessionManager
from guided_assistant.transcript_store import ConfirmationRepository

from conftest import INCOME_PAGE, FakeResponder

TWO_EARNER_ANSWERS = ["2", "10", "40", "15", "20"]


@pytest.fixture
def repository(tmp_path):
    return ConfirmationRepository(tmp_path / "confirmations.jsonl", redis_url=None)


@pytest.fixture
def confirmed():
    return []


@pytest.fixture
def session(responder, repository, confirmed):
    return AssistantSession.create(
        INCOME_PAGE,
        responder,
        repository=repository,
        on_confirm=confirmed.append,
    )


async def _complete(session):
    for answer in TWO_EARNER_ANSWERS:
        await session.handle_user_message(answer)


class TestActionButton:

    def test_hidden_before_finalize(self, session):
        assert session.action_label is None
        with pytest.raises(ControllerStateError):
            session.press_action()

    @pytest.mark.asyncio
    async def test_confirm_then_switch(self, session, repository, confirmed):
        await _complete(session)
        assert session.action_label == "Confirm Estimate"

        assert session.press_action() == "confirmed"
        assert confirmed == ["36400"]
        assert session.confirmed_estimate == "36400"
        assert session.action_label == "Switch to Open-Ended Chat"

        records = repository.load_all()
        assert len(records) == 1
        assert records[0]["id"] == session.last_record_id
        assert records[0]["estimate"] == "36400"
        assert records[0]["context_key"] == INCOME_PAGE
        assert records[0]["answers"] == TWO_EARNER_ANSWERS

        assert session.press_action() == "switched"
        assert session.controller.mode is ConversationMode.OPEN_ENDED
        assert session.action_label is None

    @pytest.mark.asyncio
    async def test_confirm_is_one_shot(self, session, confirmed):
        await _complete(session)
        assert session.confirm() == "36400"
        assert session.confirm() is None
        assert confirmed == ["36400"]


    @pytest.mark.asyncio
    async def test_unwritable_archive_still_confirms(self, tmp_path, responder):
        confirmed = []
        # An existing directory cannot be opened as the JSONL archive.
        broken = ConfirmationRepository(tmp_path, redis_url=None)
        session = AssistantSession.create(
            INCOME_PAGE,
            responder,
            repository=broken,
            on_confirm=confirmed.append,
        )
        await _complete(session)

        assert session.press_action() == "confirmed"
        assert confirmed == ["36400"]
        assert session.confirmed_estimate == "36400"
        assert session.last_record_id is None
        assert session.action_label == "Switch to Open-Ended Chat"


class TestMessages:

    @pytest.mark.asyncio
    async def test_blank_input_is_ignored(self, session):
        assert await session.handle_user_message("   ") is None
        assert len(session.controller.messages) == 1

    @pytest.mark.asyncio
    async def test_input_is_stripped(self, session):
        result = await session.handle_user_message("  2  ")
        assert result is not None
        assert session.controller.answers == ["2"]

    @pytest.mark.asyncio
    async def test_completed_script_rejects_input(self, session):
        await _complete(session)
        with pytest.raises(ControllerStateError):
            await session.handle_user_message("more")

    @pytest.mark.asyncio
    async def test_open_ended_after_switch(self, session, responder):
        await _complete(session)
        session.switch_mode()
        result = await session.handle_user_message("Does overtime count?")
        assert result.assistant_text == responder.reply
        assert responder.calls[-1] == ("Does overtime count?", TWO_EARNER_ANSWERS)

    @pytest.mark.asyncio
    async def test_start_over(self, session):
        await _complete(session)
        session.confirm()
        session.start_over()
        assert session.confirmed_estimate is None
        assert session.has_confirmed is False
        assert session.controller.step_index == 0
        assert session.controller.answers == []

    def test_snapshot(self, session):
        snapshot = session.snapshot()
        assert snapshot["context_key"] == INCOME_PAGE
        assert snapshot["mode"] == "scripted"
        assert snapshot["question_count"] == 1
        assert snapshot["accepts_input"] is True
        assert snapshot["action_label"] is None
        assert snapshot["messages"][0]["author"] == "assistant"


class TestSessionManager:

    def test_responder_hint_follows_page(self, repository):
        hints = []

        def factory(hint):
            hints.append(hint)
            return FakeResponder()

        manager = SessionManager(factory, repository=repository)
        manager.create(INCOME_PAGE)
        manager.create("/nowhere")
        assert hints == ["income_assistance", "default_general_assistance"]
        assert len(manager) == 2

    def test_unknown_page_gets_open_ended_session(self):
        manager = SessionManager(lambda hint: FakeResponder())
        session = manager.create("/nowhere")
        assert session.controller.is_open_ended

    def test_get_and_drop(self):
        manager = SessionManager(lambda hint: FakeResponder())
        session = manager.create(INCOME_PAGE)
        assert manager.get(session.session_id) is session
        assert manager.drop(session.session_id) is True
        assert manager.drop(session.session_id) is False
        with pytest.raises(KeyError):
            manager.get(session.session_id)

    def test_from_settings(self, app_settings, completion_client):
        app_settings.flow.escalation_threshold = 3
        manager = SessionManager.from_settings(app_settings, completion_client)
        session = manager.create(INCOME_PAGE)
        assert session.repository is not None
        assert session.repository.archive_path == app_settings.confirmation_log
