"""Declarative script and question definitions for guided conversations."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

Validator = Callable[[str], bool]
Expander = Callable[[str, Sequence[str]], Sequence["Question"]]
Finalizer = Callable[[Sequence[str]], Optional["FinalResult"]]

_CURRENCY_SYMBOLS = re.compile(r"[$€£¥]")
_GROUPING = re.compile(r",")
_AMOUNT = re.compile(r"^[0-9]+(\.[0-9]+)?$")
_INTEGER = re.compile(r"^[0-9]+$")


def normalize_numeric(text: str) -> str:
    """Trim ``text`` and drop currency symbols and thousands separators."""

    cleaned = _CURRENCY_SYMBOLS.sub("", text).strip()
    return _GROUPING.sub("", cleaned)


def parse_amount(text: str) -> Optional[float]:
    """Return the decimal amount in ``text`` or ``None`` when unparseable."""

    cleaned = normalize_numeric(text)
    if not _AMOUNT.match(cleaned):
        return None
    return float(cleaned)


def parse_integer(text: str) -> Optional[int]:
    """Return the whole number in ``text`` or ``None`` when unparseable."""

    cleaned = normalize_numeric(text)
    if not _INTEGER.match(cleaned):
        return None
    return int(cleaned)


def accept_any(_: str) -> bool:
    return True


def positive_integer(text: str) -> bool:
    value = parse_integer(text)
    return value is not None and value > 0


def positive_amount(text: str) -> bool:
    value = parse_amount(text)
    return value is not None and value > 0


def bounded_amount(low_exclusive: float, high_inclusive: float) -> Validator:
    """Build a validator accepting amounts in ``(low, high]``."""

    def _validate(text: str) -> bool:
        value = parse_amount(text)
        if value is None:
            return False
        return low_exclusive < value <= high_inclusive

    return _validate


@dataclass(frozen=True, slots=True)
class Question:
    """One validated prompt/response unit of a script.

    ``type`` documents the expected answer shape; the controller never
    enforces it. ``expand`` may queue further questions once the answer is
    accepted and must stay pure and bounded.
    """

    id: str
    prompt: str
    type: str = "text"
    validate: Validator = accept_any
    invalid_message: Optional[str] = None
    expand: Optional[Expander] = None


@dataclass(frozen=True, slots=True)
class FinalResult:
    """Outcome computed from the confirmed answers of a finished script."""

    estimate: str
    requires_confirmation: bool
    final_message: str


def _empty_questions() -> List[Question]:
    return []


@dataclass(slots=True)
class Script:
    """Definition of a guided conversation.

    An empty ``questions`` list means the conversation is open-ended from the
    first turn.
    """

    welcome_message: str
    questions: List[Question] = field(default_factory=_empty_questions)
    fallback_invalid: str = "Invalid answer."
    fallback_error: str = "Error processing responses."
    finalize: Optional[Finalizer] = None
    open_ended_welcome: Optional[str] = None

    @property
    def is_open_ended(self) -> bool:
        return not self.questions
