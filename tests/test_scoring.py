"""
Tests for the scoring primitives.
"""

import pytest
from datetime import date

from ledgermatch.models import LoanTransaction, MatchMode
from ledgermatch.reconciliation.scoring import (
    amounts_match,
    amounts_within_percent,
    apply_name_bonus,
    calculate_match_score,
    clamp_confidence,
    date_proximity_score,
    dates_within_days,
    format_currency,
    group_tier_score,
    max_date_diff,
    subset_tier_score,
)

from conftest import credit, day


def repayment(cents, offset=0):
    return LoanTransaction(id="tx", amount_cents=cents, transaction_date=day(offset))


class TestDateHelpers:
    """Date proximity tiers and window checks."""

    def test_dates_within_days(self):
        """Test window checks in both directions."""
        assert dates_within_days(day(0), day(3), 3)
        assert dates_within_days(day(3), day(0), 3)
        assert not dates_within_days(day(0), day(4), 3)

    def test_missing_dates_never_within(self):
        """Test missing dates are never within a window."""
        assert not dates_within_days(None, day(0), 30)
        assert not dates_within_days(day(0), None, 30)

    @pytest.mark.parametrize("offset,expected", [
        (0, 1.0),
        (1, 0.95),
        (3, 0.85),
        (7, 0.70),
        (14, 0.50),
        (30, 0.30),
        (31, 0.1),
    ])
    def test_date_proximity_tiers(self, offset, expected):
        """Test date proximity tiers."""
        assert date_proximity_score(day(0), day(offset)) == expected

    def test_date_proximity_missing_date(self):
        """Test a missing date scores zero proximity."""
        assert date_proximity_score(None, day(0)) == 0.0

    def test_max_date_diff(self):
        """Test the largest day distance over a group."""
        records = [repayment(100, 0), repayment(100, -2), repayment(100, 1)]
        assert max_date_diff(day(0), records) == 2


class TestAmountHelpers:
    """Absolute and relative amount comparison."""

    def test_amounts_match_within_tolerance(self):
        """Test amounts within tolerance match."""
        assert amounts_match(50000, 50100, 100)
        assert not amounts_match(50000, 50101, 100)

    def test_amounts_match_ignores_sign(self):
        """Test amount matching ignores sign."""
        assert amounts_match(-50000, 50000, 0)

    def test_amounts_match_default_tolerance(self):
        """Test the configured tolerance is used by default."""
        assert amounts_match(50000, 50050)
        assert not amounts_match(50000, 50500)

    def test_amounts_within_percent(self):
        """Test relative amount comparison."""
        assert amounts_within_percent(100000, 100100, 0.1)
        assert not amounts_within_percent(100000, 100200, 0.1)
        assert amounts_within_percent(100000, 104000, 5)

    def test_zero_amounts(self):
        """Test zero amounts compare equal only to zero."""
        assert amounts_within_percent(0, 0, 0.1)
        assert not amounts_within_percent(0, 100, 5)


class TestMatchScore:
    """Blended 1:1 match score tiers."""

    @pytest.mark.parametrize("record_cents,offset,expected", [
        (50000, 0, 0.95),
        (50000, 2, 0.85),
        (50000, 6, 0.75),
        (51000, 0, 0.70),
        (51000, 3, 0.60),
        (50000, 10, 0.50),
        (51000, 5, 0.45),
        (50000, 20, 0.30),
        (51000, 12, 0.25),
        (50000, 60, 0.10),
        (80000, 0, 0.0),
    ])
    def test_tiers(self, record_cents, offset, expected):
        """Test the blended single-match tiers."""
        entry = credit("e1", 50000)
        assert calculate_match_score(entry, repayment(record_cents, offset)) == expected

    def test_missing_record_date_only_amount_counts(self):
        """Test a record without a date scores on amount alone."""
        entry = credit("e1", 50000)
        record = LoanTransaction(id="tx", amount_cents=50000, transaction_date=None)
        assert calculate_match_score(entry, record) == 0.10


class TestConfidenceHelpers:
    """Group tiers, name bonus and clamping."""

    @pytest.mark.parametrize("max_diff,expected", [(0, 0.92), (1, 0.92), (3, 0.85), (7, 0.75), (8, 0.65)])
    def test_group_tier_score(self, max_diff, expected):
        """Test group tiers by date spread."""
        assert group_tier_score(max_diff) == expected

    def test_subset_tier_score(self):
        """Test split tiers by same-day and proximity flags."""
        assert subset_tier_score(True, True) == 0.92
        assert subset_tier_score(False, True) == 0.80
        assert subset_tier_score(True, False) == 0.75
        assert subset_tier_score(False, False) == 0.60

    def test_name_bonus_capped(self):
        """Test the name bonus respects its cap."""
        assert apply_name_bonus(0.95, 0.9, 0.15, 0.99) == 0.99
        assert apply_name_bonus(0.60, 1.0, 0.15, 0.99) == pytest.approx(0.75)
        assert apply_name_bonus(0.60, 0.0, 0.15, 0.99) == 0.60

    def test_clamp_confidence_by_mode(self):
        """Test single matches cap at 0.99 and other modes at 0.95."""
        assert clamp_confidence(1.2, MatchMode.MATCH) == 0.99
        assert clamp_confidence(1.2, MatchMode.MATCH_GROUP) == 0.95
        assert clamp_confidence(1.2, MatchMode.CREATE) == 0.95
        assert clamp_confidence(-0.1, MatchMode.MATCH) == 0.0


class TestFormatCurrency:
    """Currency display."""

    def test_format(self):
        """Test reason-string currency formatting."""
        assert format_currency(123450) == "£1,234.50"
        assert format_currency(-500) == "£5.00"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
