"""Lookup of scripts and open-ended welcome text by application page."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .income_script import INCOME_SCRIPT
from .prompts import DEFAULT_HINT
from .script import FinalResult, Script

DEFAULT_CONTEXT = "default"


@dataclass(frozen=True, slots=True)
class PageContext:
    """Assistant configuration attached to one application page."""

    open_ended_welcome: str
    system_prompt_hint: str = DEFAULT_HINT
    script: Optional[Script] = None


def _general_finalize(_: Sequence[str]) -> FinalResult:
    return FinalResult(
        estimate="LLM mode active.",
        requires_confirmation=False,
        final_message=(
            "Currently in AI Assistant mode. How can I assist you further?"
        ),
    )


GENERAL_SCRIPT = Script(
    welcome_message="Hello! I'm here to help you with your application.",
    questions=[],
    fallback_invalid="I'm ready for your question. Please type it in.",
    fallback_error="Sorry, I encountered an issue. Please try asking again.",
    finalize=_general_finalize,
    open_ended_welcome=(
        "You can ask me anything about this page or your application."
    ),
)


PAGE_CONTEXTS: Dict[str, PageContext] = {
    DEFAULT_CONTEXT: PageContext(
        open_ended_welcome=(
            "You can ask me anything about this page or your application."
        ),
        system_prompt_hint=DEFAULT_HINT,
    ),
    "/applications/financial/income": PageContext(
        open_ended_welcome=(
            "I can help calculate your income or answer any questions about "
            "income requirements."
        ),
        system_prompt_hint="income_assistance",
        script=INCOME_SCRIPT,
    ),
    "/applications/start/choose-language": PageContext(
        open_ended_welcome=(
            "I can help with language selection for your application. "
            "What's your question?"
        ),
        system_prompt_hint="start_choose_language",
    ),
    "/applications/start/what-to-expect": PageContext(
        open_ended_welcome=(
            "Questions about what to expect in the application process? "
            "I'm here to help."
        ),
        system_prompt_hint="start_what_to_expect",
    ),
    "/applications/start/autofill": PageContext(
        open_ended_welcome=(
            "Need help with auto-fill options for your application? Ask away."
        ),
        system_prompt_hint="start_autofill",
    ),
    "/applications/start/community-disclaimer": PageContext(
        open_ended_welcome=(
            "Understanding the community disclaimer? Let me clarify any "
            "points for you."
        ),
        system_prompt_hint="start_community_disclaimer",
    ),
    "/applications/contact/name": PageContext(
        open_ended_welcome=(
            "Questions about providing the primary applicant's name? "
            "I can assist."
        ),
        system_prompt_hint="contact_name",
    ),
    "/applications/contact/address": PageContext(
        open_ended_welcome=(
            "Need help with your address information? Let me know what you "
            "need."
        ),
        system_prompt_hint="contact_address",
    ),
    "/applications/household/add-members": PageContext(
        open_ended_welcome=(
            "Need assistance with adding household members or the process? "
            "Ask away."
        ),
        system_prompt_hint="household_add_members",
    ),
    "/applications/household/members-info": PageContext(
        open_ended_welcome=(
            "Need help with the overall household information summary or "
            "specific fields? Let me know."
        ),
        system_prompt_hint="household_members_info_summary",
    ),
    "/applications/household/preferred-units": PageContext(
        open_ended_welcome=(
            "Questions about selecting preferred unit types (e.g., number of "
            "bedrooms)? Ask me."
        ),
        system_prompt_hint="household_preferred_units",
    ),
    "/applications/household/student": PageContext(
        open_ended_welcome=(
            "Need help with declaring student status for household members? "
            "I can assist."
        ),
        system_prompt_hint="household_student_status",
    ),
    "/applications/household/ada": PageContext(
        open_ended_welcome=(
            "Questions about accessibility needs (ADA) for your household? "
            "I'm here to help."
        ),
        system_prompt_hint="household_ada_needs",
    ),
    "/applications/financial/vouchers": PageContext(
        open_ended_welcome=(
            "Questions about housing vouchers, subsidies, or rental "
            "assistance? I can help."
        ),
        system_prompt_hint="financial_vouchers",
    ),
    "/applications/preferences/all": PageContext(
        open_ended_welcome=(
            "Need help with declaring your housing preferences? Ask your "
            "questions."
        ),
        system_prompt_hint="preferences_all",
    ),
    "/applications/preferences/general": PageContext(
        open_ended_welcome=(
            "Questions about general housing preferences? I'm here to assist."
        ),
        system_prompt_hint="preferences_general",
    ),
    "/applications/programs/programs": PageContext(
        open_ended_welcome=(
            "Need help with program selection or understanding eligibility "
            "criteria? Ask away."
        ),
        system_prompt_hint="programs_selection_eligibility",
    ),
    "/applications/review/summary": PageContext(
        open_ended_welcome=(
            "Ask me anything about reviewing your application summary before "
            "submission."
        ),
        system_prompt_hint="review_summary",
    ),
    "/applications/review/terms": PageContext(
        open_ended_welcome=(
            "Need clarification on the terms and conditions before you "
            "submit? Ask me."
        ),
        system_prompt_hint="review_terms",
    ),
    "/applications/view": PageContext(
        open_ended_welcome=(
            "Need help viewing your submitted application or understanding "
            "its status? Ask your questions."
        ),
        system_prompt_hint="view_application_status",
    ),
}


def get_page_context(context_key: Optional[str]) -> PageContext:
    """Return the page context for ``context_key`` or the default entry."""

    if context_key and context_key in PAGE_CONTEXTS:
        return PAGE_CONTEXTS[context_key]
    return PAGE_CONTEXTS[DEFAULT_CONTEXT]


def get_script_for_context(context_key: Optional[str]) -> Script:
    """Return the specialised script for a page, else the general script."""

    page = get_page_context(context_key)
    if page.script is not None:
        return page.script
    return GENERAL_SCRIPT


def list_context_keys() -> List[str]:
    return sorted(PAGE_CONTEXTS)
