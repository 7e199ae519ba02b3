"""
Matcher strategy contract and helpers shared by several strategies.

Each strategy is responsible for:
1. Deciding whether it can handle a bank entry (can_match)
2. Proposing candidate matches for the entry (generate_matches)
3. Scoring its own candidates (calculate_confidence)

Strategies are plain classes satisfying the MatcherStrategy protocol; the
registry holds them as a list of instances.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from ...config import Settings
from ...models import BankEntry, CandidateMatch, LedgerRecord, MatchContext
from ...utils.text_similarity import description_contains_name, group_has_related_descriptions
from ..scoring import amounts_match, date_proximity_score, dates_within_days, find_subset_sum


@runtime_checkable
class MatcherStrategy(Protocol):
    """Contract every matcher strategy implements."""

    name: str
    priority: int
    enabled: bool

    def can_match(self, entry: BankEntry, context: MatchContext) -> bool:
        """Applicability gate, typically the sign of the entry."""
        ...

    def generate_matches(self, entry: BankEntry, context: MatchContext) -> List[CandidateMatch]:
        """Propose zero or more candidates. Must never mutate the context."""
        ...

    def calculate_confidence(self, match: CandidateMatch, entry: BankEntry) -> float:
        """Pure confidence score in [0, 1] for one candidate."""
        ...


@dataclass
class EntryGroup:
    """Several bank entries that together sum to one ledger record."""
    entries: List[BankEntry]
    all_same_day: bool
    all_near_transaction: bool


def nearby_entries(
    entry: BankEntry,
    context: MatchContext,
    credits: bool,
    window_days: int,
) -> List[BankEntry]:
    """Unreconciled, unclaimed bank entries of the same sign within the window."""
    nearby = []
    for other in context.bank_entries:
        if credits and not other.is_credit:
            continue
        if not credits and not other.is_debit:
            continue
        if other.is_reconciled:
            continue
        if other.id != entry.id and other.id in context.claims.bank_entry_ids:
            continue
        if dates_within_days(entry.statement_date, other.statement_date, window_days):
            nearby.append(other)
    return nearby


def find_entry_group(
    entry: BankEntry,
    record: LedgerRecord,
    pool: Sequence[BankEntry],
    counterparty_name: str,
    settings: Settings,
) -> Optional[EntryGroup]:
    """
    Find several bank entries (including this one) that sum to `record`.

    A numeric coincidence alone is not enough: the group must sit within
    `max_days_from_transaction` of the record, and either the descriptions
    look related or one of them names the counterparty.
    """
    entry_amount = entry.abs_amount_cents
    record_amount = record.abs_amount_cents
    tolerance = settings.amount_tolerance_cents

    if amounts_match(entry_amount, record_amount, tolerance):
        return None
    if entry_amount > record_amount + tolerance:
        return None
    # Every member, the anchor included, must sit near the record
    if not dates_within_days(entry.statement_date, record.transaction_date,
                             settings.max_days_from_transaction):
        return None

    subset = find_subset_sum(pool, record_amount, entry.id, tolerance_cents=tolerance)
    if not subset or len(subset) < 2:
        return None

    if not all(
        dates_within_days(e.statement_date, record.transaction_date, settings.max_days_from_transaction)
        for e in subset
    ):
        return None

    related = group_has_related_descriptions(subset)
    names_counterparty = bool(counterparty_name) and any(
        description_contains_name(e.description, counterparty_name, None) > settings.related_name_threshold
        for e in subset
    )
    if not related and not names_counterparty:
        return None

    return EntryGroup(
        entries=subset,
        all_same_day=all(
            dates_within_days(e.statement_date, entry.statement_date, 0) for e in subset
        ),
        all_near_transaction=all(
            dates_within_days(e.statement_date, record.transaction_date, settings.near_transaction_days)
            for e in subset
        ),
    )


def sum_cents(records: Sequence[LedgerRecord]) -> int:
    return sum(r.abs_amount_cents for r in records)


def group_by_investor(
    entry: BankEntry,
    records: Sequence[LedgerRecord],
    threshold: float,
) -> Dict[Optional[str], List[LedgerRecord]]:
    """Investor records close enough to the entry, keyed by investor in first-seen order."""
    grouped = OrderedDict()
    for record in records:
        if date_proximity_score(entry.statement_date, record.transaction_date) < threshold:
            continue
        grouped.setdefault(record.investor_id, []).append(record)
    return grouped


def investor_name_score(match: CandidateMatch, entry: BankEntry) -> float:
    if match.investor is None:
        return 0.0
    return description_contains_name(entry.description, match.investor.name, match.investor.business_name)
