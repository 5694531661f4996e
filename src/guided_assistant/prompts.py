"""Prompt scaffolding and fixed assistant wording."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence

DEFAULT_HINT = "default_general_assistance"

BASE_SYSTEM_PROMPT = (
    "You are a helpful assistant for people filling in a housing "
    "application. Provide direct, natural responses to questions. Keep "
    "responses concise but complete. Never mention that you are an AI. Never "
    "ask for personal information. Do not add dialog markers like \"Human:\" "
    "or \"AI:\" in your response."
)

HINT_FOCUS: Dict[str, str] = {
    DEFAULT_HINT: (
        "Answer general questions about the application and the current page."
    ),
    "income_assistance": (
        "Help the applicant work out their household income. When they give "
        "answers that are not plain numbers, explain the expected format "
        "(for example an hourly wage such as 15.50 or a whole number of "
        "hours per week) and restate the question."
    ),
    "household_members_info_summary": (
        "Explain how household members are counted and which details the "
        "application needs for each of them."
    ),
    "household_preferred_units": (
        "Explain unit types and bedroom counts without promising availability."
    ),
    "financial_vouchers": (
        "Explain housing vouchers, subsidies and rental assistance in plain "
        "language."
    ),
    "preferences_all": (
        "Explain housing preferences and how claiming one affects the "
        "application."
    ),
    "programs_selection_eligibility": (
        "Explain program eligibility criteria without deciding eligibility "
        "for the applicant."
    ),
    "review_terms": (
        "Clarify the terms and conditions in plain language without giving "
        "legal advice."
    ),
}

CLARIFICATION_TEMPLATE = (
    "User provided the following invalid responses: {responses}. Please help "
    "interpret or clarify the intended response."
)

EMPTY_PROMPT_REPLY = (
    "I didn't receive a message. What would you like to discuss?"
)
SHORT_REPLY_FALLBACK = (
    "I'd be happy to help with that. What specific information would you like?"
)
NO_FINALIZER_MESSAGE = "Assistant finished (no finalization logic)."


@dataclass(slots=True)
class ActionLabels:
    """Labels for the two-step action button shown after finalization."""

    confirm: str = "Confirm Estimate"
    switch: str = "Switch to Open-Ended Chat"


@dataclass(slots=True)
class ModeLabels:
    """Human names for the conversation modes."""

    scripted: str = "Guided Script"
    open_ended: str = "Open-Ended Chat"

    def switched(self, open_ended: bool) -> str:
        label = self.open_ended if open_ended else self.scripted
        return f"Switched to {label} Mode."


ACTION_LABELS = ActionLabels()
MODE_LABELS = ModeLabels()


def resolve_system_prompt(hint: Optional[str]) -> str:
    """Return the system prompt for a page hint, falling back to the default."""

    focus = HINT_FOCUS.get(hint or DEFAULT_HINT) or HINT_FOCUS[DEFAULT_HINT]
    return f"{BASE_SYSTEM_PROMPT}\n\n{focus}"


def compose_clarification_request(
    invalid_inputs: Sequence[str],
    question_prompt: Optional[str] = None,
) -> str:
    """Build the escalation request sent after repeated invalid answers."""

    request = CLARIFICATION_TEMPLATE.format(
        responses=", ".join(invalid_inputs[-2:])
    )
    if question_prompt:
        request = f"{request} The question asked was: \"{question_prompt}\""
    return request
