"""
Shared fixtures for the match suggestion tests.
"""

from datetime import date, timedelta

import pytest

from ledgermatch.models import BankEntry, ClaimSet, MatchContext, ReferenceData
from ledgermatch.reconciliation import SuggestionEngine


BASE_DATE = date(2024, 1, 10)


def day(offset: int = 0) -> date:
    """BASE_DATE shifted by a number of days."""
    return BASE_DATE + timedelta(days=offset)


def credit(entry_id: str, cents: int, offset: int = 0, description: str = "") -> BankEntry:
    return BankEntry(id=entry_id, amount_cents=abs(cents), statement_date=day(offset), description=description)


def debit(entry_id: str, cents: int, offset: int = 0, description: str = "") -> BankEntry:
    return BankEntry(id=entry_id, amount_cents=-abs(cents), statement_date=day(offset), description=description)


@pytest.fixture
def engine():
    return SuggestionEngine()


@pytest.fixture
def make_context():
    """Build a MatchContext with a fresh claim set."""
    def _make(reference: ReferenceData, entries=(), claims=None) -> MatchContext:
        return MatchContext(
            reference=reference,
            claims=claims if claims is not None else ClaimSet(),
            bank_entries=tuple(entries),
        )
    return _make
