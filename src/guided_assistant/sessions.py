"""Shared session orchestration for assistant conversations."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Literal, Optional
from uuid import uuid4

from .config import AppSettings
from .controller import (
    ControllerStateError,
    ConversationController,
    DEFAULT_ESCALATION_THRESHOLD,
    TurnResult,
)
from .prompts import ACTION_LABELS
from .registry import get_page_context, get_script_for_context
from .responder import CompletionClient, GenerativeResponder, ResponseService
from .transcript_store import ConfirmationRepository

logger = logging.getLogger(__name__)

OnConfirm = Callable[[str], None]
ResponderFactory = Callable[[str], ResponseService]
ActionOutcome = Literal["confirmed", "switched"]


def _new_session_id() -> str:
    return uuid4().hex


@dataclass(slots=True)
class AssistantSession:
    """One user's conversation plus the confirm/switch action button."""

    controller: ConversationController
    context_key: str
    session_id: str = field(default_factory=_new_session_id)
    has_confirmed: bool = False
    confirmed_estimate: Optional[str] = None
    last_record_id: Optional[str] = None
    on_confirm: Optional[OnConfirm] = None
    repository: Optional[ConfirmationRepository] = None
    _turn_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @classmethod
    def create(
        cls,
        context_key: str,
        responder: ResponseService,
        *,
        escalation_threshold: int = DEFAULT_ESCALATION_THRESHOLD,
        repository: Optional[ConfirmationRepository] = None,
        on_confirm: Optional[OnConfirm] = None,
    ) -> "AssistantSession":
        page = get_page_context(context_key)
        controller = ConversationController(
            responder,
            escalation_threshold=escalation_threshold,
        )
        controller.initialize(
            get_script_for_context(context_key),
            open_ended_welcome=page.open_ended_welcome,
        )
        return cls(
            controller=controller,
            context_key=context_key,
            repository=repository,
            on_confirm=on_confirm,
        )

    async def handle_user_message(self, user_text: str) -> Optional[TurnResult]:
        """Process a user message; blank input is ignored."""

        normalized = user_text.strip()
        if not normalized:
            return None
        async with self._turn_lock:
            if not self.controller.accepts_input:
                raise ControllerStateError(
                    "The guided script is complete. Switch modes or start over "
                    "to continue."
                )
            result = await self.controller.submit_answer(normalized)
        if self.controller.confirmation_pending:
            self.has_confirmed = False
        return result

    @property
    def action_label(self) -> Optional[str]:
        """Label of the action button, or ``None`` when it is hidden."""

        if not self.controller.confirmation_pending:
            return None
        if self.has_confirmed:
            return ACTION_LABELS.switch
        return ACTION_LABELS.confirm

    def confirm(self) -> Optional[str]:
        """Confirm the pending estimate once per pending cycle."""

        if self.has_confirmed:
            logger.warning(
                "Session %s already confirmed this estimate", self.session_id
            )
            return None
        estimate = self.controller.confirm()
        if estimate is None:
            return None
        self.last_record_id = self._archive(estimate)
        self.has_confirmed = True
        self.confirmed_estimate = estimate
        if self.on_confirm is not None:
            self.on_confirm(estimate)
        return estimate

    def _archive(self, estimate: str) -> Optional[str]:
        if self.repository is None:
            return None
        try:
            return self.repository.save_confirmation(
                context_key=self.context_key,
                estimate=estimate,
                answers=self.controller.answers,
                messages=self.controller.messages,
            )
        except OSError:
            # The estimate is still handed to on_confirm; only the record is lost.
            logger.exception(
                "Could not archive confirmation for session %s", self.session_id
            )
            return None

    def press_action(self) -> ActionOutcome:
        """First press confirms the estimate, the second switches modes."""

        if not self.controller.confirmation_pending:
            raise ControllerStateError("No confirmation is pending.")
        if not self.has_confirmed:
            self.confirm()
            return "confirmed"
        self.switch_mode()
        return "switched"

    def switch_mode(self) -> None:
        self.controller.switch_mode()
        self.has_confirmed = False

    def start_over(self) -> None:
        self.controller.reset()
        self.has_confirmed = False
        self.confirmed_estimate = None

    def snapshot(self) -> Dict[str, Any]:
        """Everything the presentation layer needs to render the chat."""

        controller = self.controller
        return {
            "session_id": self.session_id,
            "context_key": self.context_key,
            "mode": controller.mode.value,
            "step_index": controller.step_index,
            "question_count": controller.question_count,
            "confirmation_pending": controller.confirmation_pending,
            "action_label": self.action_label,
            "accepts_input": controller.accepts_input,
            "confirmed_estimate": self.confirmed_estimate,
            "messages": [entry.to_dict() for entry in controller.messages],
        }


class SessionManager:
    """In-memory registry of live sessions keyed by session id."""

    def __init__(
        self,
        responder_factory: ResponderFactory,
        *,
        escalation_threshold: int = DEFAULT_ESCALATION_THRESHOLD,
        repository: Optional[ConfirmationRepository] = None,
    ) -> None:
        self._responder_factory = responder_factory
        self._escalation_threshold = escalation_threshold
        self._repository = repository
        self._sessions: Dict[str, AssistantSession] = {}

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        client: CompletionClient,
    ) -> "SessionManager":
        def _factory(hint: str) -> ResponseService:
            return GenerativeResponder.from_settings(
                settings,
                client,
                system_prompt_hint=hint,
            )

        return cls(
            _factory,
            escalation_threshold=settings.flow.escalation_threshold,
            repository=ConfirmationRepository(
                archive_path=settings.confirmation_log,
                redis_url=settings.redis_url,
            ),
        )

    def create(
        self,
        context_key: str,
        *,
        on_confirm: Optional[OnConfirm] = None,
    ) -> AssistantSession:
        page = get_page_context(context_key)
        session = AssistantSession.create(
            context_key,
            self._responder_factory(page.system_prompt_hint),
            escalation_threshold=self._escalation_threshold,
            repository=self._repository,
            on_confirm=on_confirm,
        )
        self._sessions[session.session_id] = session
        logger.info(
            "Created session %s for context %s", session.session_id, context_key
        )
        return session

    def get(self, session_id: str) -> AssistantSession:
        """Return the session or raise ``KeyError``."""

        return self._sessions[session_id]

    def drop(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)
