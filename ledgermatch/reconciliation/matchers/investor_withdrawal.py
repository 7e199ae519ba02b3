"""
InvestorWithdrawalMatcher

Matches bank debits (outgoing payments) to:
- Single investor capital_out transactions
- Single investor interest withdrawals
- Grouped capital_out transactions from the same investor
- Grouped interest withdrawals from the same investor
- Combined capital_out + interest withdrawals of one investor (cross-table)
- Several bank debits summing to one capital_out (grouped_investor)
"""

from collections import OrderedDict
from typing import List

import structlog

from ...config import get_settings
from ...models import (
    BankEntry,
    CandidateMatch,
    InterestEntryType,
    InvestorInterestEntry,
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


class InvestorWithdrawalMatcher:
    """Debits only. Covers both the investor transaction and the interest ledgers."""

    name = "investor_withdrawal"

    def __init__(self, priority: int = 75, enabled: bool = True):
        self.priority = priority
        self.enabled = enabled
        self.settings = get_settings()

    def can_match(self, entry: BankEntry, context: MatchContext) -> bool:
        return entry.is_debit

    def generate_matches(self, entry: BankEntry, context: MatchContext) -> List[CandidateMatch]:
        reference = context.reference
        withdrawals = context.investor_transactions_of(InvestorTransactionType.CAPITAL_OUT)
        interest_debits = context.interest_entries_of(InterestEntryType.DEBIT)
        window = self.settings.single_match_window_days
        matches = []

        # 1. Single capital_out
        for tx in withdrawals:
            if not dates_within_days(entry.statement_date, tx.transaction_date, window):
                continue
            matches.append(CandidateMatch(
                match_type=MatchType.INVESTOR_WITHDRAWAL,
                match_mode=MatchMode.MATCH,
                investor_transactions=(tx,),
                investor=reference.investor(tx.investor_id),
                investor_id=tx.investor_id,
                reason=(
                    f"Investor withdrawal: {reference.investor_label(tx.investor_id)} - "
                    f"{format_currency(tx.amount_cents)}"
                ),
            ))

        # 2. Single interest withdrawal
        for interest in interest_debits:
            if not dates_within_days(entry.statement_date, interest.transaction_date, window):
                continue
            matches.append(CandidateMatch(
                match_type=MatchType.INTEREST_WITHDRAWAL,
                match_mode=MatchMode.MATCH,
                interest_entries=(interest,),
                investor=reference.investor(interest.investor_id),
                investor_id=interest.investor_id,
                reason=(
                    f"Interest withdrawal: {reference.investor_label(interest.investor_id)} - "
                    f"{format_currency(interest.amount_cents)}"
                ),
            ))

        matches.extend(self.find_grouped_capital_matches(entry, context, withdrawals))
        matches.extend(self.find_grouped_interest_matches(entry, context, interest_debits))
        matches.extend(self.find_cross_table_matches(entry, context, withdrawals, interest_debits))
        matches.extend(self.find_multi_entry_matches(entry, context, withdrawals))

        logger.debug(
            "Withdrawal candidates",
            entry_id=entry.id,
            capital_out=len(withdrawals),
            interest_debits=len(interest_debits),
            candidates=len(matches),
        )
        return matches

    def find_grouped_capital_matches(
        self,
        entry: BankEntry,
        context: MatchContext,
        withdrawals: List[InvestorTransaction],
    ) -> List[CandidateMatch]:
        reference = context.reference
        matches = []

        grouped = group_by_investor(entry, withdrawals, self.settings.group_proximity_threshold)
        for investor_id, group in grouped.items():
            if len(group) < 2:
                continue
            total = sum_cents(group)
            if not amounts_match(entry.abs_amount_cents, total, self.settings.amount_tolerance_cents):
                continue

            matches.append(CandidateMatch(
                match_type=MatchType.INVESTOR_WITHDRAWAL,
                match_mode=MatchMode.MATCH_GROUP,
                investor_transactions=tuple(group),
                investor=reference.investor(investor_id),
                investor_id=investor_id,
                reason=(
                    f"Grouped capital: {reference.investor_label(investor_id)} - "
                    f"{len(group)} transactions = {format_currency(total)}"
                ),
                metadata={"max_date_diff": max_date_diff(entry.statement_date, group)},
            ))

        return matches

    def find_grouped_interest_matches(
        self,
        entry: BankEntry,
        context: MatchContext,
        interest_debits: List[InvestorInterestEntry],
    ) -> List[CandidateMatch]:
        reference = context.reference
        matches = []

        grouped = group_by_investor(entry, interest_debits, self.settings.group_proximity_threshold)
        for investor_id, group in grouped.items():
            if len(group) < 2:
                continue
            total = sum_cents(group)
            if not amounts_match(entry.abs_amount_cents, total, self.settings.amount_tolerance_cents):
                continue

            matches.append(CandidateMatch(
                match_type=MatchType.INTEREST_WITHDRAWAL,
                match_mode=MatchMode.MATCH_GROUP,
                interest_entries=tuple(group),
                investor=reference.investor(investor_id),
                investor_id=investor_id,
                reason=(
                    f"Grouped interest: {reference.investor_label(investor_id)} - "
                    f"{len(group)} entries = {format_currency(total)}"
                ),
                metadata={"max_date_diff": max_date_diff(entry.statement_date, group)},
            ))

        return matches

    def find_cross_table_matches(
        self,
        entry: BankEntry,
        context: MatchContext,
        withdrawals: List[InvestorTransaction],
        interest_debits: List[InvestorInterestEntry],
    ) -> List[CandidateMatch]:
        """One payout covering capital and interest of the same investor."""
        reference = context.reference
        threshold = self.settings.group_proximity_threshold
        matches = []

        capital_by_investor = group_by_investor(entry, withdrawals, threshold)
        interest_by_investor = group_by_investor(entry, interest_debits, threshold)
        investor_ids = OrderedDict.fromkeys(list(capital_by_investor) + list(interest_by_investor))

        for investor_id in investor_ids:
            capital = capital_by_investor.get(investor_id, [])
            interest = interest_by_investor.get(investor_id, [])
            if not capital or not interest:
                continue

            total = sum_cents(capital) + sum_cents(interest)
            if not amounts_match(entry.abs_amount_cents, total, self.settings.amount_tolerance_cents):
                continue

            matches.append(CandidateMatch(
                match_type=MatchType.INVESTOR_WITHDRAWAL,
                match_mode=MatchMode.MATCH_GROUP,
                investor_transactions=tuple(capital),
                interest_entries=tuple(interest),
                investor=reference.investor(investor_id),
                investor_id=investor_id,
                reason=(
                    f"Combined: {reference.investor_label(investor_id)} - {len(capital)} capital + "
                    f"{len(interest)} interest = {format_currency(total)}"
                ),
                metadata={
                    "cross_table": True,
                    "max_date_diff": max_date_diff(entry.statement_date, capital + interest),
                },
            ))

        return matches

    def find_multi_entry_matches(
        self,
        entry: BankEntry,
        context: MatchContext,
        withdrawals: List[InvestorTransaction],
    ) -> List[CandidateMatch]:
        """Several bank debits (including this one) summing to one capital_out."""
        reference = context.reference
        pool = nearby_entries(entry, context, credits=False,
                              window_days=self.settings.subset_sum_window_days)
        if len(pool) < 2:
            return []

        matches = []
        for tx in withdrawals:
            investor = reference.investor(tx.investor_id)
            name = investor.display_name if investor else ""

            group = find_entry_group(entry, tx, pool, name, self.settings)
            if group is None:
                continue

            matches.append(CandidateMatch(
                match_type=MatchType.INVESTOR_WITHDRAWAL,
                match_mode=MatchMode.GROUPED_INVESTOR,
                investor_transactions=(tx,),
                grouped_entries=tuple(group.entries),
                investor=investor,
                investor_id=tx.investor_id,
                reason=(
                    f"Split withdrawal: {len(group.entries)} payments -> "
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

        record = (match.investor_transactions or match.interest_entries or (None,))[0]
        if record is None:
            return 0.0

        score = calculate_match_score(entry, record)
        return clamp_confidence(apply_name_bonus(score, name_score, 0.15, 0.99), match.match_mode)
