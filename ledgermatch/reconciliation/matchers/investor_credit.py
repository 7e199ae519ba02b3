"""
InvestorCreditMatcher

Matches bank credits (incoming payments) to:
- Single investor capital_in transactions
- Grouped capital_in transactions from the same investor
- Several bank credits summing to one capital_in (grouped_investor)
"""

from typing import List

import structlog

from ...config import get_settings
from ...models import (
    BankEntry,
    CandidateMatch,
    InvestorTransaction,
    InvestorTransactionType,
    MatchContext,
    MatchMode,
    MatchType,
)
from ..scoring import (
    amounts_match,
    apply_name_bonus,
    calculate_match_score,
    clamp_confidence,
    dates_within_days,
    format_currency,
    group_tier_score,
    max_date_diff,
    subset_tier_score,
)
from .base import find_entry_group, group_by_investor, investor_name_score, nearby_entries, sum_cents

logger = structlog.get_logger()


class InvestorCreditMatcher:
    """Credits only."""

    name = "investor_credit"

    def __init__(self, priority: int = 80, enabled: bool = True):
        self.priority = priority
        self.enabled = enabled
        self.settings = get_settings()

    def can_match(self, entry: BankEntry, context: MatchContext) -> bool:
        return entry.is_credit

    def generate_matches(self, entry: BankEntry, context: MatchContext) -> List[CandidateMatch]:
        reference = context.reference
        deposits = context.investor_transactions_of(InvestorTransactionType.CAPITAL_IN)
        matches = []

        for tx in deposits:
            if not dates_within_days(entry.statement_date, tx.transaction_date,
                                     self.settings.single_match_window_days):
                continue

            matches.append(CandidateMatch(
                match_type=MatchType.INVESTOR_CREDIT,
                match_mode=MatchMode.MATCH,
                investor_transactions=(tx,),
                investor=reference.investor(tx.investor_id),
                investor_id=tx.investor_id,
                reason=(
                    f"Investor credit: {reference.investor_label(tx.investor_id)} - "
                    f"{format_currency(tx.amount_cents)}"
                ),
            ))

        matches.extend(self.find_grouped_matches(entry, context, deposits))
        matches.extend(self.find_multi_entry_matches(entry, context, deposits))
        logger.debug("Investor credit candidates", entry_id=entry.id, candidates=len(matches))
        return matches

    def find_grouped_matches(
        self,
        entry: BankEntry,
        context: MatchContext,
        deposits: List[InvestorTransaction],
    ) -> List[CandidateMatch]:
        """Capital_in transactions of one investor summing to the entry."""
        reference = context.reference
        matches = []

        grouped = group_by_investor(entry, deposits, self.settings.group_proximity_threshold)
        for investor_id, group in grouped.items():
            if len(group) < 2:
                continue

            total = sum_cents(group)
            if not amounts_match(entry.abs_amount_cents, total, self.settings.amount_tolerance_cents):
                continue

            matches.append(CandidateMatch(
                match_type=MatchType.INVESTOR_CREDIT,
                match_mode=MatchMode.MATCH_GROUP,
                investor_transactions=tuple(group),
                investor=reference.investor(investor_id),
                investor_id=investor_id,
                reason=(
                    f"Grouped investor: {reference.investor_label(investor_id)} - "
                    f"{len(group)} transactions = {format_currency(total)}"
                ),
                metadata={"max_date_diff": max_date_diff(entry.statement_date, group)},
            ))

        return matches

    def find_multi_entry_matches(
        self,
        entry: BankEntry,
        context: MatchContext,
        deposits: List[InvestorTransaction],
    ) -> List[CandidateMatch]:
        """Several bank credits (including this one) summing to one capital_in."""
        reference = context.reference
        pool = nearby_entries(entry, context, credits=True,
                              window_days=self.settings.subset_sum_window_days)
        if len(pool) < 2:
            return []

        matches = []
        for tx in deposits:
            investor = reference.investor(tx.investor_id)
            name = investor.display_name if investor else ""

            group = find_entry_group(entry, tx, pool, name, self.settings)
            if group is None:
                continue

            matches.append(CandidateMatch(
                match_type=MatchType.INVESTOR_CREDIT,
                match_mode=MatchMode.GROUPED_INVESTOR,
                investor_transactions=(tx,),
                grouped_entries=tuple(group.entries),
                investor=investor,
                investor_id=tx.investor_id,
                reason=(
                    f"Split deposit: {len(group.entries)} payments -> "
                    f"{reference.investor_label(tx.investor_id)} ({format_currency(tx.amount_cents)})"
                ),
                metadata={
                    "all_same_day": group.all_same_day,
                    "all_near_transaction": group.all_near_transaction,
                },
            ))

        return matches

    def calculate_confidence(self, match: CandidateMatch, entry: BankEntry) -> float:
        name_score = investor_name_score(match, entry)

        if match.match_mode is MatchMode.GROUPED_INVESTOR:
            score = subset_tier_score(
                match.metadata.get("all_same_day", False),
                match.metadata.get("all_near_transaction", False),
            )
            return clamp_confidence(apply_name_bonus(score, name_score, 0.05, 0.95), match.match_mode)

        if match.match_mode is MatchMode.MATCH_GROUP:
            score = group_tier_score(match.metadata.get("max_date_diff", 0))
            return clamp_confidence(apply_name_bonus(score, name_score, 0.05, 0.95), match.match_mode)

        if not match.investor_transactions:
            return 0.0

        score = calculate_match_score(entry, match.investor_transactions[0])
        return clamp_confidence(apply_name_bonus(score, name_score, 0.15, 0.99), match.match_mode)
