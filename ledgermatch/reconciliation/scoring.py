"""
Scoring primitives for the matching engine.

Date proximity, amount comparison, the blended 1:1 match score, confidence
clamping and the bounded subset-sum search used for split payments.
All amounts are integer cents.
"""

from datetime import date
from itertools import combinations
from typing import List, Optional, Sequence, Tuple

from ..config import get_settings
from ..models import BankEntry, MatchMode

MATCH_CONFIDENCE_CAP = 0.99
GROUPED_CONFIDENCE_CAP = 0.95


def days_between(date1: Optional[date], date2: Optional[date]) -> Optional[int]:
    """Absolute day difference, or None when a date is missing."""
    if date1 is None or date2 is None:
        return None
    return abs((date1 - date2).days)


def dates_within_days(date1: Optional[date], date2: Optional[date], days: int) -> bool:
    """Check if two dates are within a number of days of each other."""
    diff = days_between(date1, date2)
    if diff is None:
        return False
    return diff <= days


def date_proximity_score(date1: Optional[date], date2: Optional[date]) -> float:
    """Score 0-1 that decreases as the dates move apart."""
    diff = days_between(date1, date2)
    if diff is None:
        return 0.0
    if diff == 0:
        return 1.0
    if diff <= 1:
        return 0.95
    if diff <= 3:
        return 0.85
    if diff <= 7:
        return 0.70
    if diff <= 14:
        return 0.50
    if diff <= 30:
        return 0.30
    return 0.1


def amounts_match(amount1_cents: int, amount2_cents: int, tolerance_cents: Optional[int] = None) -> bool:
    """Absolute-difference test on amounts in cents."""
    if tolerance_cents is None:
        tolerance_cents = get_settings().amount_tolerance_cents
    return abs(abs(amount1_cents) - abs(amount2_cents)) <= tolerance_cents


def amounts_within_percent(amount1_cents: int, amount2_cents: int, percent: float) -> bool:
    """Relative comparison: difference within `percent` of the larger amount."""
    a1 = abs(amount1_cents)
    a2 = abs(amount2_cents)
    if a1 == 0 and a2 == 0:
        return True
    if a1 == 0 or a2 == 0:
        return False
    return abs(a1 - a2) <= max(a1, a2) * (percent / 100)


def calculate_match_score(entry: BankEntry, record, date_field: str = "transaction_date") -> float:
    """
    Blend date and amount closeness into a base score (0 - 0.95) for a 1:1 candidate.

    Exact amount means within 0.1%, close amount within 5%.
    """
    entry_amount = entry.abs_amount_cents
    record_amount = abs(record.amount_cents or 0)

    exact_amount = amounts_within_percent(entry_amount, record_amount, 0.1)
    close_amount = amounts_within_percent(entry_amount, record_amount, 5)

    diff = days_between(entry.statement_date, getattr(record, date_field, None))
    if diff is None:
        diff = float("inf")

    same_day = diff == 0
    within_3 = diff <= 3
    within_7 = diff <= 7
    within_14 = diff <= 14
    within_30 = diff <= 30

    if exact_amount and same_day:
        return 0.95
    if exact_amount and within_3:
        return 0.85
    if exact_amount and within_7:
        return 0.75
    if close_amount and same_day:
        return 0.70
    if close_amount and within_3:
        return 0.60
    if exact_amount and within_14:
        return 0.50
    if close_amount and within_7:
        return 0.45
    if exact_amount and within_30:
        return 0.30
    if close_amount and within_14:
        return 0.25
    if exact_amount or close_amount:
        return 0.10
    return 0.0


def max_date_diff(entry_date: Optional[date], records: Sequence) -> int:
    """Largest day distance between the entry date and any record date."""
    diffs = [days_between(entry_date, r.transaction_date) for r in records]
    return max((d for d in diffs if d is not None), default=0)


def group_tier_score(max_diff: int) -> float:
    """Base score for a same-counterparty group, tiered by date spread."""
    if max_diff <= 1:
        return 0.92
    if max_diff <= 3:
        return 0.85
    if max_diff <= 7:
        return 0.75
    return 0.65


def subset_tier_score(all_same_day: bool, all_near_transaction: bool) -> float:
    """Base score for several bank entries summing to one record."""
    if all_same_day and all_near_transaction:
        return 0.92
    if all_near_transaction:
        return 0.80
    if all_same_day:
        return 0.75
    return 0.60


def apply_name_bonus(score: float, name_score: float, weight: float, cap: float) -> float:
    """Add a capped bonus when the counterparty's name appears in the description."""
    if name_score > 0:
        return min(score + name_score * weight, cap)
    return score


def clamp_confidence(score: float, match_mode: MatchMode) -> float:
    """Clamp to [0, 0.99] for 1:1 matches and [0, 0.95] for every other mode."""
    cap = MATCH_CONFIDENCE_CAP if match_mode is MatchMode.MATCH else GROUPED_CONFIDENCE_CAP
    return max(0.0, min(score, cap))


def format_currency(amount_cents: int) -> str:
    """Format an amount in cents for reason strings."""
    symbol = get_settings().currency_symbol
    return f"{symbol}{abs(amount_cents) / 100:,.2f}"


def _subset_key(anchor_date: Optional[date], combo: Tuple[BankEntry, ...]) -> Tuple:
    distances = [days_between(anchor_date, e.statement_date) or 0 for e in combo]
    return (sum(distances), max(distances, default=0), tuple(sorted(e.id for e in combo)))


def find_subset_sum(
    entries: Sequence[BankEntry],
    target_cents: int,
    must_include_id: str,
    tolerance_cents: Optional[int] = None,
    max_pool: Optional[int] = None,
    max_extra: Optional[int] = None,
) -> Optional[List[BankEntry]]:
    """
    Find a subset of bank entries whose absolute amounts sum to the target.

    The anchor entry (`must_include_id`) is always part of the subset and comes
    first in the result. Returns None when the anchor alone already matches the
    target, since that is a plain 1:1 match.

    The search is bounded: only the `max_pool` entries nearest to the anchor in
    time are considered, and at most `max_extra` entries are added to the
    anchor. Smaller subsets win; among subsets of the same size the one closest
    in time to the anchor wins (total day distance, then largest distance, then
    entry ids), so repeated runs pick the same subset.
    """
    settings = get_settings()
    if tolerance_cents is None:
        tolerance_cents = settings.amount_tolerance_cents
    if max_pool is None:
        max_pool = settings.subset_sum_max_pool
    if max_extra is None:
        max_extra = settings.subset_sum_max_extra

    anchor = next((e for e in entries if e.id == must_include_id), None)
    if anchor is None:
        return None

    target = abs(target_cents)
    anchor_amount = anchor.abs_amount_cents

    if amounts_match(anchor_amount, target, tolerance_cents):
        return None

    remaining = target - anchor_amount
    if remaining <= 0:
        return None

    pool = [
        e for e in entries
        if e.id != must_include_id
        and e.amount_cents
        and e.abs_amount_cents <= remaining + tolerance_cents
    ]
    pool.sort(key=lambda e: (
        days_between(anchor.statement_date, e.statement_date)
        if e.statement_date is not None else float("inf"),
        e.id,
    ))
    pool = pool[:max_pool]

    for size in range(1, min(len(pool), max_extra) + 1):
        best = None
        best_key = None
        for combo in combinations(pool, size):
            total = sum(e.abs_amount_cents for e in combo)
            if abs(total - remaining) > tolerance_cents:
                continue
            key = _subset_key(anchor.statement_date, combo)
            if best_key is None or key < best_key:
                best, best_key = combo, key
        if best is not None:
            return [anchor] + sorted(best, key=lambda e: _subset_key(anchor.statement_date, (e,)))

    return None
