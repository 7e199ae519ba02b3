"""
LoanRepaymentMatcher

Matches bank credits (incoming payments) to:
- Single loan repayment transactions
- Grouped repayments from the same borrower
- Grouped repayments from borrowers sharing a contact email
- Date-grouped repayments from any borrowers (one transfer covering several)
- Several bank credits summing to one repayment (grouped_repayment)
"""

from collections import OrderedDict
from itertools import combinations
from typing import List, Optional

import structlog

from ...config import get_settings
from ...models import (
    BankEntry,
    CandidateMatch,
    LoanTransaction,
    LoanTransactionType,
    MatchContext,
    MatchMode,
    MatchType,
)
from ...utils.text_similarity import description_contains_name
from ..scoring import (
    amounts_match,
    apply_name_bonus,
    calculate_match_score,
    clamp_confidence,
    dates_within_days,
    days_between,
    format_currency,
    group_tier_score,
    max_date_diff,
    subset_tier_score,
)
from .base import find_entry_group, nearby_entries, sum_cents

logger = structlog.get_logger()


class LoanRepaymentMatcher:
    """Credits only; highest priority strategy."""

    name = "loan_repayment"

    def __init__(self, priority: int = 90, enabled: bool = True):
        self.priority = priority
        self.enabled = enabled
        self.settings = get_settings()

    def can_match(self, entry: BankEntry, context: MatchContext) -> bool:
        return entry.is_credit

    def generate_matches(self, entry: BankEntry, context: MatchContext) -> List[CandidateMatch]:
        reference = context.reference
        repayments = context.loan_transactions_of(LoanTransactionType.REPAYMENT)
        matches = []

        # 1. Single repayment matches
        for tx in repayments:
            if not dates_within_days(entry.statement_date, tx.transaction_date,
                                     self.settings.single_match_window_days):
                continue

            matches.append(CandidateMatch(
                match_type=MatchType.LOAN_REPAYMENT,
                match_mode=MatchMode.MATCH,
                loan_transactions=(tx,),
                loan=reference.loan(tx.loan_id),
                borrower=reference.borrower_for(tx),
                reason=f"Repayment: {reference.borrower_label(tx)} - {format_currency(tx.amount_cents)}",
            ))

        # 2. Grouped repayments from the same borrower
        matches.extend(self.find_borrower_grouped_matches(entry, context, repayments))

        # 3. Grouped repayments from borrowers sharing an email
        matches.extend(self.find_email_grouped_matches(entry, context, repayments))

        # 4. Date-grouped repayments from any borrowers
        matches.extend(self.find_date_grouped_matches(entry, context, repayments))

        # 5. Several bank credits -> one repayment
        matches.extend(self.find_multi_entry_matches(entry, context, repayments))

        logger.debug(
            "Repayment candidates",
            entry_id=entry.id,
            repayments=len(repayments),
            candidates=len(matches),
        )
        return matches

    def _near_entry(self, entry: BankEntry, repayments: List[LoanTransaction], days: int) -> List[LoanTransaction]:
        return [
            tx for tx in repayments
            if dates_within_days(entry.statement_date, tx.transaction_date, days)
        ]

    def find_borrower_grouped_matches(
        self,
        entry: BankEntry,
        context: MatchContext,
        repayments: List[LoanTransaction],
    ) -> List[CandidateMatch]:
        """Repayments of one borrower within the group window summing to the entry."""
        reference = context.reference
        tolerance = self.settings.amount_tolerance_cents
        matches = []

        by_borrower = OrderedDict()
        for tx in self._near_entry(entry, repayments, self.settings.group_window_days):
            borrower_id = reference.borrower_id_for(tx)
            if not borrower_id:
                continue
            by_borrower.setdefault(borrower_id, []).append(tx)

        for borrower_id, group in by_borrower.items():
            if len(group) < 2:
                continue

            total = sum_cents(group)
            if not amounts_match(entry.abs_amount_cents, total, tolerance):
                continue

            borrower = reference.borrower(borrower_id)
            loan_numbers = ", ".join(OrderedDict.fromkeys(
                (reference.loan(tx.loan_id).loan_number if reference.loan(tx.loan_id) else None) or "?"
                for tx in group
            ))
            label = borrower.display_name if borrower and borrower.display_name else "Unknown"

            matches.append(CandidateMatch(
                match_type=MatchType.LOAN_REPAYMENT,
                match_mode=MatchMode.MATCH_GROUP,
                loan_transactions=tuple(group),
                borrower=borrower,
                reason=(
                    f"Grouped repayments: {label} - {len(group)} payments "
                    f"({loan_numbers}) = {format_currency(total)}"
                ),
                metadata={
                    "grouped_by": "borrower",
                    "max_date_diff": max_date_diff(entry.statement_date, group),
                },
            ))

        return matches

    def find_email_grouped_matches(
        self,
        entry: BankEntry,
        context: MatchContext,
        repayments: List[LoanTransaction],
    ) -> List[CandidateMatch]:
        """Repayments of several borrowers who share one contact email."""
        reference = context.reference
        tolerance = self.settings.amount_tolerance_cents
        matches = []

        email_to_borrowers = OrderedDict()
        for borrower in reference.borrowers:
            email = (borrower.email or "").strip().lower()
            if email:
                email_to_borrowers.setdefault(email, set()).add(borrower.id)

        nearby = self._near_entry(entry, repayments, self.settings.group_window_days)

        for email, borrower_ids in email_to_borrowers.items():
            if len(borrower_ids) < 2:
                continue

            group = [tx for tx in nearby if reference.borrower_id_for(tx) in borrower_ids]
            if len(group) < 2:
                continue

            total = sum_cents(group)
            if not amounts_match(entry.abs_amount_cents, total, tolerance):
                continue

            matches.append(CandidateMatch(
                match_type=MatchType.LOAN_REPAYMENT,
                match_mode=MatchMode.MATCH_GROUP,
                loan_transactions=tuple(group),
                reason=f"Email-grouped repayments: {email} - {len(group)} payments = {format_currency(total)}",
                metadata={
                    "grouped_by": "email",
                    "email": email,
                    "max_date_diff": max_date_diff(entry.statement_date, group),
                },
            ))

        return matches

    def find_date_grouped_matches(
        self,
        entry: BankEntry,
        context: MatchContext,
        repayments: List[LoanTransaction],
    ) -> List[CandidateMatch]:
        """
        Repayments of any borrowers whose amounts sum to the entry.

        Windows are tried tightest first (1, 3, 7 days). Within a window the
        whole set is tried, then pairs, then triplets; the first window with a
        hit returns.
        """
        reference = context.reference
        tolerance = self.settings.amount_tolerance_cents
        entry_amount = entry.abs_amount_cents

        def candidate(txs, reason):
            return CandidateMatch(
                match_type=MatchType.LOAN_REPAYMENT,
                match_mode=MatchMode.MATCH_GROUP,
                loan_transactions=tuple(txs),
                reason=reason,
                metadata={
                    "grouped_by": "date",
                    "max_date_diff": max_date_diff(entry.statement_date, txs),
                },
            )

        for window in self.settings.date_group_windows:
            in_window = self._near_entry(entry, repayments, window)
            if len(in_window) < 2:
                continue

            total_all = sum_cents(in_window)
            if amounts_match(entry_amount, total_all, tolerance):
                names = ", ".join(OrderedDict.fromkeys(reference.borrower_label(tx) for tx in in_window))
                return [candidate(
                    in_window,
                    f"Date-grouped repayments: {len(in_window)} payments from {names} = {format_currency(total_all)}",
                )]

            # Pairs and triplets are searched over the repayments nearest the entry
            pool = sorted(
                in_window,
                key=lambda tx: days_between(entry.statement_date, tx.transaction_date),
            )[:self.settings.date_group_max_pool]
            pool.sort(key=in_window.index)

            matches = []
            for tx1, tx2 in combinations(pool, 2):
                pair_total = tx1.abs_amount_cents + tx2.abs_amount_cents
                if amounts_match(entry_amount, pair_total, tolerance):
                    matches.append(candidate(
                        (tx1, tx2),
                        f"Date-grouped repayments: {reference.borrower_label(tx1)} "
                        f"({format_currency(tx1.amount_cents)}) + {reference.borrower_label(tx2)} "
                        f"({format_currency(tx2.amount_cents)}) = {format_currency(pair_total)}",
                    ))
            if matches:
                return matches

            for triplet in combinations(pool, 3):
                triplet_total = sum_cents(triplet)
                if amounts_match(entry_amount, triplet_total, tolerance):
                    matches.append(candidate(
                        triplet,
                        f"Date-grouped repayments: 3 payments = {format_currency(triplet_total)}",
                    ))
            if matches:
                return matches

        return []

    def find_multi_entry_matches(
        self,
        entry: BankEntry,
        context: MatchContext,
        repayments: List[LoanTransaction],
    ) -> List[CandidateMatch]:
        """Several bank credits (including this one) summing to one repayment."""
        reference = context.reference
        pool = nearby_entries(entry, context, credits=True,
                              window_days=self.settings.subset_sum_window_days)
        if len(pool) < 2:
            return []

        matches = []
        for tx in repayments:
            loan = reference.loan(tx.loan_id)
            borrower = reference.borrower_for(tx)
            name = (loan.borrower_name if loan else None) or (borrower.display_name if borrower else "")

            group = find_entry_group(entry, tx, pool, name, self.settings)
            if group is None:
                continue

            matches.append(CandidateMatch(
                match_type=MatchType.LOAN_REPAYMENT,
                match_mode=MatchMode.GROUPED_REPAYMENT,
                loan_transactions=(tx,),
                grouped_entries=tuple(group.entries),
                loan=loan,
                borrower=borrower,
                reason=(
                    f"Split repayment: {len(group.entries)} payments -> "
                    f"{(loan.loan_number if loan else None) or 'Unknown'} ({reference.borrower_label(tx)})"
                ),
                metadata={
                    "all_same_day": group.all_same_day,
                    "all_near_transaction": group.all_near_transaction,
                },
            ))

        return matches

    def _name_score(self, match: CandidateMatch, entry: BankEntry) -> float:
        if match.borrower is None:
            return 0.0
        return description_contains_name(
            entry.description,
            match.borrower.full_name,
            match.borrower.business_name,
        )

    def calculate_confidence(self, match: CandidateMatch, entry: BankEntry) -> float:
        if match.match_mode is MatchMode.GROUPED_REPAYMENT:
            score = subset_tier_score(
                match.metadata.get("all_same_day", False),
                match.metadata.get("all_near_transaction", False),
            )
            score = apply_name_bonus(score, self._name_score(match, entry), 0.05, 0.95)
            return clamp_confidence(score, match.match_mode)

        if match.match_mode is MatchMode.MATCH_GROUP:
            score = group_tier_score(match.metadata.get("max_date_diff", 0))
            grouped_by = match.metadata.get("grouped_by")
            if grouped_by == "email":
                score -= 0.03
            elif grouped_by == "date":
                score -= 0.05
            score = apply_name_bonus(score, self._name_score(match, entry), 0.05, 0.95)
            return clamp_confidence(score, match.match_mode)

        tx: Optional[LoanTransaction] = match.loan_transactions[0] if match.loan_transactions else None
        if tx is None:
            return 0.0

        score = calculate_match_score(entry, tx)
        score = apply_name_bonus(score, self._name_score(match, entry), 0.15, 0.99)
        return clamp_confidence(score, match.match_mode)
