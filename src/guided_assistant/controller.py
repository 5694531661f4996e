"""Conversation flow controller for scripted and open-ended assistant chats.

One :class:`ConversationController` owns the state of one conversation. In
scripted mode it walks the active question list, validating each answer,
queueing questions produced by ``Question.expand`` at the end of the list and
finalizing the script once the list is exhausted. Repeated invalid answers
are escalated to the generative response service. In open-ended mode every
input is forwarded to that service and the conversation never ends on its
own.

Callers must await each :meth:`ConversationController.submit_answer` before
issuing the next one; the controller holds no locks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from .prompts import (
    MODE_LABELS,
    NO_FINALIZER_MESSAGE,
    compose_clarification_request,
)
from .responder import ResponseService
from .script import Question, Script

logger = logging.getLogger(__name__)

INVALID_BUFFER_SIZE = 2
DEFAULT_ESCALATION_THRESHOLD = 2


class ConversationMode(str, Enum):
    """Whether input is driven by the script or passed to the model."""

    SCRIPTED = "scripted"
    OPEN_ENDED = "open_ended"


class Author(str, Enum):
    ASSISTANT = "assistant"
    USER = "user"


class ControllerStateError(RuntimeError):
    """Raised when the controller is used outside its contract."""


@dataclass(slots=True)
class ChatEntry:
    """One line of the conversation log."""

    text: str
    author: Author
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
        compare=False,
    )

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "author": self.author.value,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(slots=True)
class TurnResult:
    """Assistant reply for one user turn and whether the script ended."""

    assistant_text: str
    ended: bool


def _empty_questions() -> List[Question]:
    return []


def _empty_texts() -> List[str]:
    return []


def _empty_entries() -> List[ChatEntry]:
    return []


@dataclass(slots=True)
class ConversationState:
    """Mutable state of a single conversation."""

    mode: ConversationMode = ConversationMode.SCRIPTED
    active_questions: List[Question] = field(default_factory=_empty_questions)
    step_index: int = 0
    answers: List[str] = field(default_factory=_empty_texts)
    invalid_streak: int = 0
    invalid_buffer: List[str] = field(default_factory=_empty_texts)
    confirmation_pending: bool = False
    estimate: Optional[str] = None
    messages: List[ChatEntry] = field(default_factory=_empty_entries)

    def copy(self) -> "ConversationState":
        return ConversationState(
            mode=self.mode,
            active_questions=list(self.active_questions),
            step_index=self.step_index,
            answers=list(self.answers),
            invalid_streak=self.invalid_streak,
            invalid_buffer=list(self.invalid_buffer),
            confirmation_pending=self.confirmation_pending,
            estimate=self.estimate,
            messages=list(self.messages),
        )


class ConversationController:
    """State machine driving one guided conversation."""

    def __init__(
        self,
        responder: ResponseService,
        *,
        escalation_threshold: int = DEFAULT_ESCALATION_THRESHOLD,
    ) -> None:
        if escalation_threshold < 1:
            raise ValueError("escalation_threshold must be at least 1")
        self._responder = responder
        self._escalation_threshold = escalation_threshold
        self._script: Optional[Script] = None
        self._open_ended_welcome: Optional[str] = None
        self._state: Optional[ConversationState] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def initialize(
        self,
        script: Script,
        open_ended_welcome: Optional[str] = None,
    ) -> None:
        """Start a fresh conversation for ``script``.

        ``open_ended_welcome`` is the greeting used when the script has no
        questions; it overrides ``script.open_ended_welcome``.
        """

        self._script = script
        self._open_ended_welcome = open_ended_welcome
        state = ConversationState()
        if script.is_open_ended:
            state.mode = ConversationMode.OPEN_ENDED
            greeting = (
                open_ended_welcome
                or script.open_ended_welcome
                or script.welcome_message
            )
        else:
            state.active_questions = list(script.questions)
            greeting = (
                f"{script.welcome_message}\n{state.active_questions[0].prompt}"
            )
        state.messages.append(ChatEntry(text=greeting, author=Author.ASSISTANT))
        self._state = state

    def reset(self) -> None:
        """Restart the conversation with the script it was initialized with."""

        if self._script is None:
            raise ControllerStateError("Call initialize() before reset().")
        self.initialize(self._script, self._open_ended_welcome)

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------
    async def submit_answer(self, raw_input: str) -> TurnResult:
        """Process one user input and return the assistant's reply."""

        state = self._require_state("submit_answer")
        if (
            state.mode is ConversationMode.SCRIPTED
            and state.step_index >= len(state.active_questions)
        ):
            raise ControllerStateError(
                "No question is awaiting an answer "
                f"(step {state.step_index} of {len(state.active_questions)})."
            )

        state.confirmation_pending = False
        state.estimate = None
        state.messages.append(ChatEntry(text=raw_input, author=Author.USER))

        if state.mode is ConversationMode.OPEN_ENDED:
            result = await self._handle_open_ended(state, raw_input)
        else:
            result = await self._handle_scripted(state, raw_input)

        state.messages.append(
            ChatEntry(text=result.assistant_text, author=Author.ASSISTANT)
        )
        return result

    async def _handle_open_ended(
        self,
        state: ConversationState,
        raw_input: str,
    ) -> TurnResult:
        reply = await self._responder.send(raw_input, list(state.answers))
        state.step_index += 1
        self._clear_invalid(state)
        return TurnResult(assistant_text=reply, ended=False)

    async def _handle_scripted(
        self,
        state: ConversationState,
        raw_input: str,
    ) -> TurnResult:
        question = state.active_questions[state.step_index]
        if not question.validate(raw_input):
            return await self._handle_invalid(state, question, raw_input)

        state.answers.append(raw_input)
        self._clear_invalid(state)
        if question.expand is not None:
            generated = question.expand(raw_input, tuple(state.answers))
            if generated:
                state.active_questions.extend(generated)
                logger.debug(
                    "Question %s queued %d follow-up questions",
                    question.id,
                    len(generated),
                )
        state.step_index += 1

        if state.step_index < len(state.active_questions):
            next_prompt = state.active_questions[state.step_index].prompt
            return TurnResult(assistant_text=next_prompt, ended=False)
        return TurnResult(assistant_text=self._finalize(state), ended=True)

    async def _handle_invalid(
        self,
        state: ConversationState,
        question: Question,
        raw_input: str,
    ) -> TurnResult:
        script = self._require_script()
        state.invalid_streak += 1
        state.invalid_buffer.append(raw_input)
        del state.invalid_buffer[:-INVALID_BUFFER_SIZE]

        if state.invalid_streak >= self._escalation_threshold:
            logger.info(
                "Escalating question %s after %d invalid answers",
                question.id,
                state.invalid_streak,
            )
            request = compose_clarification_request(
                state.invalid_buffer,
                question.prompt,
            )
            reply = await self._responder.send(request, list(state.answers))
            self._clear_invalid(state)
            return TurnResult(assistant_text=reply, ended=False)

        text = question.invalid_message or script.fallback_invalid
        return TurnResult(assistant_text=text, ended=False)

    def _finalize(self, state: ConversationState) -> str:
        script = self._require_script()
        if script.finalize is None:
            logger.warning("Script finished without a finalize rule.")
            self._roll_back(state)
            return NO_FINALIZER_MESSAGE

        result = script.finalize(tuple(state.answers))
        if not result:
            logger.warning(
                "Finalization failed after %d answers; rolling back one step",
                len(state.answers),
            )
            self._roll_back(state)
            return script.fallback_error

        state.estimate = result.estimate
        state.confirmation_pending = result.requires_confirmation
        logger.info(
            "Script finalized (confirmation required: %s)",
            result.requires_confirmation,
        )
        return result.final_message

    @staticmethod
    def _roll_back(state: ConversationState) -> None:
        # The retracted answer is re-collected when the question is asked again.
        if state.step_index > 0:
            state.step_index -= 1
        if len(state.answers) > state.step_index:
            state.answers.pop()
        state.confirmation_pending = False
        state.estimate = None

    @staticmethod
    def _clear_invalid(state: ConversationState) -> None:
        state.invalid_streak = 0
        state.invalid_buffer.clear()

    # ------------------------------------------------------------------
    # Mode and confirmation
    # ------------------------------------------------------------------
    def switch_mode(self) -> ConversationMode:
        """Toggle between scripted and open-ended mode."""

        state = self._require_state("switch_mode")
        if state.mode is ConversationMode.SCRIPTED:
            state.mode = ConversationMode.OPEN_ENDED
        else:
            state.mode = ConversationMode.SCRIPTED
        state.confirmation_pending = False
        state.estimate = None
        state.messages.append(
            ChatEntry(
                text=MODE_LABELS.switched(
                    state.mode is ConversationMode.OPEN_ENDED
                ),
                author=Author.ASSISTANT,
            )
        )
        logger.info("Conversation switched to %s mode", state.mode.value)
        return state.mode

    def confirm(self) -> Optional[str]:
        """Return the pending estimate, or ``None`` when nothing is pending."""

        state = self._require_state("confirm")
        if not state.confirmation_pending:
            logger.warning("confirm() called without a pending estimate")
            return None
        logger.info("Estimate confirmed")
        return state.estimate

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def initialized(self) -> bool:
        return self._state is not None

    @property
    def script(self) -> Optional[Script]:
        return self._script

    @property
    def state(self) -> ConversationState:
        return self._require_state("state").copy()

    @property
    def messages(self) -> List[ChatEntry]:
        return list(self._require_state("messages").messages)

    @property
    def step_index(self) -> int:
        return self._require_state("step_index").step_index

    @property
    def question_count(self) -> int:
        return len(self._require_state("question_count").active_questions)

    @property
    def answers(self) -> List[str]:
        return list(self._require_state("answers").answers)

    @property
    def mode(self) -> ConversationMode:
        return self._require_state("mode").mode

    @property
    def is_open_ended(self) -> bool:
        return self.mode is ConversationMode.OPEN_ENDED

    @property
    def confirmation_pending(self) -> bool:
        return self._require_state("confirmation_pending").confirmation_pending

    @property
    def estimate(self) -> Optional[str]:
        return self._require_state("estimate").estimate

    @property
    def invalid_streak(self) -> int:
        return self._require_state("invalid_streak").invalid_streak

    @property
    def accepts_input(self) -> bool:
        """True when :meth:`submit_answer` may be called."""

        if self._state is None:
            return False
        if self._state.mode is ConversationMode.OPEN_ENDED:
            return True
        return self._state.step_index < len(self._state.active_questions)

    def _require_state(self, operation: str) -> ConversationState:
        if self._state is None:
            raise ControllerStateError(
                f"Call initialize() before {operation}."
            )
        return self._state

    def _require_script(self) -> Script:
        if self._script is None:
            raise ControllerStateError("Controller has no script.")
        return self._script
