"""
ExpenseMatcher

One bank debit to one existing expense record.
"""

from typing import List

import structlog

from ...config import get_settings
from ...models import BankEntry, CandidateMatch, Expense, MatchContext, MatchMode, MatchType, ReferenceData
from ..scoring import calculate_match_score, clamp_confidence, dates_within_days, format_currency

logger = structlog.get_logger()


def expense_label(expense: Expense, reference: ReferenceData) -> str:
    """Expense type name from the record, else from the expense type lookup."""
    if expense.type_name:
        return expense.type_name
    expense_type = reference.expense_type(expense.type_id)
    return (expense_type.name if expense_type else None) or "Expense"


class ExpenseMatcher:
    """Debits only; scored on amount and date alone."""

    name = "expense"

    def __init__(self, priority: int = 50, enabled: bool = True):
        self.priority = priority
        self.enabled = enabled
        self.settings = get_settings()

    def can_match(self, entry: BankEntry, context: MatchContext) -> bool:
        return entry.is_debit

    def generate_matches(self, entry: BankEntry, context: MatchContext) -> List[CandidateMatch]:
        matches = []
        for expense in context.available_expenses():
            if not dates_within_days(entry.statement_date, expense.transaction_date,
                                     self.settings.single_match_window_days):
                continue

            label = expense_label(expense, context.reference)
            matches.append(CandidateMatch(
                match_type=MatchType.EXPENSE,
                match_mode=MatchMode.MATCH,
                expense=expense,
                expense_type_id=expense.type_id,
                reason=f"Expense: {label} - {format_currency(expense.amount_cents)}",
            ))

        logger.debug("Expense candidates", entry_id=entry.id, candidates=len(matches))
        return matches

    def calculate_confidence(self, match: CandidateMatch, entry: BankEntry) -> float:
        if match.expense is None:
            return 0.0
        return clamp_confidence(calculate_match_score(entry, match.expense), match.match_mode)
