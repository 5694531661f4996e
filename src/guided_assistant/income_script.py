"""Household income calculator script."""

from __future__ import annotations

from typing import List, Optional, Sequence

from .script import (
    FinalResult,
    Question,
    Script,
    bounded_amount,
    parse_amount,
    parse_integer,
    positive_amount,
    positive_integer,
)

MAX_EARNERS = 12
WEEKS_PER_YEAR = 52
HOURS_PER_WEEK_LIMIT = 168


def _earner_count(raw: str) -> int:
    count = parse_integer(raw)
    if count is None or count < 1:
        return 1
    return min(count, MAX_EARNERS)


def expand_earners(answer: str, _: Sequence[str]) -> List[Question]:
    """Queue an hourly-rate and an hours-per-week question per earner."""

    questions: List[Question] = []
    for person in range(1, _earner_count(answer) + 1):
        questions.append(
            Question(
                id=f"hourly_rate_{person}",
                prompt=f"For person {person}, how much do you make per hour?",
                type="currency",
                validate=positive_amount,
                invalid_message=(
                    "Please enter an hourly amount greater than zero, "
                    "for example 15.50."
                ),
            )
        )
        questions.append(
            Question(
                id=f"hours_per_week_{person}",
                prompt=(
                    f"For person {person}, how many hours a week do you "
                    "usually work?"
                ),
                type="number",
                validate=bounded_amount(0, HOURS_PER_WEEK_LIMIT),
                invalid_message=(
                    "Please enter the hours you work in a week, more than 0 "
                    f"and at most {HOURS_PER_WEEK_LIMIT} (for example 37.5)."
                ),
            )
        )
    return questions


def _format_estimate(total: float) -> str:
    if total.is_integer():
        return str(int(total))
    return str(round(total, 2))


def _format_currency(total: float) -> str:
    if total.is_integer():
        return f"${total:,.0f}"
    return f"${total:,.2f}"


def finalize_income(answers: Sequence[str]) -> Optional[FinalResult]:
    """Compute the annual household income from the confirmed answers."""

    if not answers:
        return None
    household = parse_integer(answers[0])
    if household is None or household <= 0:
        return FinalResult(
            estimate="0",
            requires_confirmation=False,
            final_message="Invalid household count provided.",
        )
    earners = min(household, MAX_EARNERS)
    if len(answers) < 1 + earners * 2:
        return FinalResult(
            estimate="0",
            requires_confirmation=False,
            final_message=(
                "Some income details are missing, so I can't estimate your "
                "annual income yet."
            ),
        )

    total = 0.0
    for index in range(earners):
        rate = parse_amount(answers[1 + index * 2])
        hours = parse_amount(answers[2 + index * 2])
        if rate is None or hours is None:
            continue
        total += rate * hours * WEEKS_PER_YEAR

    return FinalResult(
        estimate=_format_estimate(total),
        requires_confirmation=True,
        final_message=(
            "Thank you! Based on your inputs, your estimated annual income is "
            f"{_format_currency(total)}. Confirm Estimate"
        ),
    )


def build_income_script() -> Script:
    return Script(
        welcome_message="Welcome! Let's calculate your income.",
        questions=[
            Question(
                id="household_income",
                prompt="How many people in your house earn an income?",
                type="number",
                validate=positive_integer,
                expand=expand_earners,
            )
        ],
        fallback_invalid="Invalid answer.",
        fallback_error="Error processing responses.",
        finalize=finalize_income,
        open_ended_welcome=(
            "I can help calculate your income or answer any questions about "
            "income requirements."
        ),
    )


INCOME_SCRIPT = build_income_script()
