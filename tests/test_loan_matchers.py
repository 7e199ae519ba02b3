"""
Tests for the loan repayment and disbursement strategies.
"""

import pytest

from ledgermatch.models import (
    Borrower,
    Loan,
    LoanTransaction,
    LoanTransactionType,
    MatchMode,
    MatchType,
    ReferenceData,
)
from ledgermatch.reconciliation.matchers import LoanDisbursementMatcher, LoanRepaymentMatcher, base

from conftest import credit, day, debit


def loan_tx(tx_id, cents, offset=0, loan_id="L1", tx_type=LoanTransactionType.REPAYMENT, **kwargs):
    return LoanTransaction(
        id=tx_id,
        amount_cents=cents,
        transaction_date=day(offset),
        loan_id=loan_id,
        type=tx_type,
        **kwargs,
    )


@pytest.fixture
def repayment_matcher():
    return LoanRepaymentMatcher()


@pytest.fixture
def disbursement_matcher():
    return LoanDisbursementMatcher()


def score_all(matcher, entry, context):
    return [
        (matcher.calculate_confidence(match, entry), match)
        for match in matcher.generate_matches(entry, context)
    ]


class TestLoanRepaymentMatcher:
    """Repayment matching: single, grouped and split."""

    def test_only_credits(self, repayment_matcher, make_context):
        """Test the repayment strategy only accepts credits."""
        context = make_context(ReferenceData())
        assert repayment_matcher.can_match(credit("e1", 100), context)
        assert not repayment_matcher.can_match(debit("e1", 100), context)

    def test_single_exact_match_with_name_bonus(self, repayment_matcher, make_context):
        """Test an exact repayment with the borrower named in the description."""
        reference = ReferenceData(
            loan_transactions=[loan_tx("tx1", 50000)],
            loans=[Loan(id="L1", borrower_id="B1", loan_number="LN-001")],
            borrowers=[Borrower(id="B1", full_name="J Smith")],
        )
        entry = credit("e1", 50000, description="J Smith payment")

        scored = score_all(repayment_matcher, entry, make_context(reference, [entry]))

        assert len(scored) == 1
        score, match = scored[0]
        assert match.match_mode is MatchMode.MATCH
        assert match.match_type is MatchType.LOAN_REPAYMENT
        assert score == pytest.approx(0.99)

    def test_single_match_window(self, repayment_matcher, make_context):
        """Test repayments more than 30 days away are ignored."""
        reference = ReferenceData(loan_transactions=[loan_tx("tx1", 50000, offset=31)])
        entry = credit("e1", 50000)
        assert repayment_matcher.generate_matches(entry, make_context(reference, [entry])) == []

    def test_deleted_and_reconciled_records_excluded(self, repayment_matcher, make_context):
        """Test deleted and reconciled repayments are skipped."""
        reference = ReferenceData(
            loan_transactions=[
                loan_tx("tx1", 50000, is_deleted=True),
                loan_tx("tx2", 50000),
            ],
            reconciled_ids={"tx2"},
        )
        entry = credit("e1", 50000)
        assert repayment_matcher.generate_matches(entry, make_context(reference, [entry])) == []

    def test_borrower_group(self, repayment_matcher, make_context):
        """Test repayments of one borrower grouped against a credit."""
        reference = ReferenceData(
            loan_transactions=[
                loan_tx("tx1", 20000, offset=0, loan_id="L1"),
                loan_tx("tx2", 30000, offset=-1, loan_id="L2"),
            ],
            loans=[
                Loan(id="L1", borrower_id="B1", loan_number="LN-1"),
                Loan(id="L2", borrower_id="B1", loan_number="LN-2"),
            ],
            borrowers=[Borrower(id="B1", full_name="Mary Jones")],
        )
        entry = credit("e1", 50000, description="Payment received")

        scored = score_all(repayment_matcher, entry, make_context(reference, [entry]))
        groups = [(s, m) for s, m in scored if m.metadata.get("grouped_by") == "borrower"]

        assert len(groups) == 1
        score, match = groups[0]
        assert match.match_mode is MatchMode.MATCH_GROUP
        assert set(match.referenced_record_ids) == {"tx1", "tx2"}
        assert score == pytest.approx(0.92)

    def test_email_group_penalty(self, repayment_matcher, make_context):
        """Test borrowers sharing an email are grouped with a small penalty."""
        reference = ReferenceData(
            loan_transactions=[
                loan_tx("tx1", 20000, loan_id="L1"),
                loan_tx("tx2", 30000, loan_id="L2"),
            ],
            loans=[
                Loan(id="L1", borrower_id="B1"),
                Loan(id="L2", borrower_id="B2"),
            ],
            borrowers=[
                Borrower(id="B1", full_name="Anna Lee", email="family@example.com"),
                Borrower(id="B2", full_name="Tom Lee", email="Family@Example.com "),
            ],
        )
        entry = credit("e1", 50000, description="Transfer")

        scored = score_all(repayment_matcher, entry, make_context(reference, [entry]))
        email_groups = [(s, m) for s, m in scored if m.metadata.get("grouped_by") == "email"]

        assert len(email_groups) == 1
        assert email_groups[0][0] == pytest.approx(0.89)

    def test_date_group_across_borrowers(self, repayment_matcher, make_context):
        """Test a pair of repayments from different borrowers on the same day."""
        reference = ReferenceData(
            loan_transactions=[
                loan_tx("tx1", 20000, loan_id="L1"),
                loan_tx("tx2", 30000, loan_id="L2"),
                loan_tx("tx3", 70000, loan_id="L3"),
            ],
            loans=[
                Loan(id="L1", borrower_id="B1"),
                Loan(id="L2", borrower_id="B2"),
                Loan(id="L3", borrower_id="B3"),
            ],
        )
        entry = credit("e1", 50000, description="Bulk transfer")

        scored = score_all(repayment_matcher, entry, make_context(reference, [entry]))
        date_groups = [(s, m) for s, m in scored if m.metadata.get("grouped_by") == "date"]

        assert len(date_groups) == 1
        score, match = date_groups[0]
        assert set(match.referenced_record_ids) == {"tx1", "tx2"}
        assert score == pytest.approx(0.87)

    def test_date_group_widens_window(self, repayment_matcher, make_context):
        """Test the date search moves from the 1-day to the 3-day window when needed."""
        reference = ReferenceData(loan_transactions=[
            loan_tx("tx1", 10000, offset=0, loan_id="L1"),
            loan_tx("tx3", 5000, offset=1, loan_id="L3"),
            loan_tx("tx2", 20000, offset=2, loan_id="L2"),
        ])
        entry = credit("e1", 30000, description="Bulk transfer")

        scored = score_all(repayment_matcher, entry, make_context(reference, [entry]))
        date_groups = [(s, m) for s, m in scored if m.metadata.get("grouped_by") == "date"]

        assert len(date_groups) == 1
        score, match = date_groups[0]
        assert set(match.referenced_record_ids) == {"tx1", "tx2"}
        assert match.metadata["max_date_diff"] == 2
        # 3-day tier less the date-only penalty
        assert score == pytest.approx(0.80)

    def test_date_group_triplet(self, repayment_matcher, make_context):
        """Test three repayments are combined when no pair sums to the entry."""
        reference = ReferenceData(loan_transactions=[
            loan_tx("tx1", 10000, loan_id="L1"),
            loan_tx("tx2", 20000, loan_id="L2"),
            loan_tx("tx3", 30000, loan_id="L3"),
            loan_tx("tx4", 45000, loan_id="L4"),
        ])
        entry = credit("e1", 60000, description="Bulk transfer")

        scored = score_all(repayment_matcher, entry, make_context(reference, [entry]))
        date_groups = [(s, m) for s, m in scored if m.metadata.get("grouped_by") == "date"]

        assert len(date_groups) == 1
        score, match = date_groups[0]
        assert set(match.referenced_record_ids) == {"tx1", "tx2", "tx3"}
        assert match.record_total_cents == 60000
        assert score == pytest.approx(0.87)

    def test_group_sum_outside_tolerance_rejected(self, repayment_matcher, make_context):
        """Test groups off by more than one unit are rejected."""
        reference = ReferenceData(
            loan_transactions=[
                loan_tx("tx1", 20000, loan_id="L1"),
                loan_tx("tx2", 30000, loan_id="L1"),
            ],
            loans=[Loan(id="L1", borrower_id="B1")],
        )
        entry = credit("e1", 50200)

        scored = score_all(repayment_matcher, entry, make_context(reference, [entry]))
        assert not [m for _, m in scored if m.match_mode is MatchMode.MATCH_GROUP]

    def test_split_repayment(self, repayment_matcher, make_context):
        """Test several credits summing to one repayment."""
        reference = ReferenceData(
            loan_transactions=[loan_tx("tx1", 60000, loan_id="L1")],
            loans=[Loan(id="L1", borrower_id="B1", loan_number="LN-9", borrower_name="Tobie Holbrook")],
            borrowers=[Borrower(id="B1", full_name="Tobie Holbrook")],
        )
        entries = [
            credit("e1", 20000, description="TOBIE HOLBROOK LOAN PART1"),
            credit("e2", 40000, description="TOBIE HOLBROOK LOAN PART2"),
        ]

        scored = score_all(repayment_matcher, entries[0], make_context(reference, entries))
        grouped = [(s, m) for s, m in scored if m.match_mode is MatchMode.GROUPED_REPAYMENT]

        assert len(grouped) == 1
        score, match = grouped[0]
        assert [e.id for e in match.grouped_entries] == ["e1", "e2"]
        assert match.referenced_record_ids == ["tx1"]
        assert score == pytest.approx(0.95)


class TestLoanDisbursementMatcher:
    """Disbursement matching: single and split."""

    def test_only_debits(self, disbursement_matcher, make_context):
        """Test the disbursement strategy only accepts debits."""
        context = make_context(ReferenceData())
        assert disbursement_matcher.can_match(debit("e1", 100), context)
        assert not disbursement_matcher.can_match(credit("e1", 100), context)

    def test_single_disbursement(self, disbursement_matcher, make_context):
        """Test one debit matching one disbursement."""
        reference = ReferenceData(
            loan_transactions=[loan_tx("tx1", 100000, offset=2, tx_type=LoanTransactionType.DISBURSEMENT)],
            loans=[Loan(id="L1", borrower_id="B1")],
        )
        entry = debit("e1", 100000)

        scored = score_all(disbursement_matcher, entry, make_context(reference, [entry]))

        assert len(scored) == 1
        score, match = scored[0]
        assert match.match_type is MatchType.LOAN_DISBURSEMENT
        assert match.loan_id == "L1"
        assert score == pytest.approx(0.85)

    def test_repayments_not_considered(self, disbursement_matcher, make_context):
        """Test repayments never match debits."""
        reference = ReferenceData(loan_transactions=[loan_tx("tx1", 100000)])
        entry = debit("e1", 100000)
        assert disbursement_matcher.generate_matches(entry, make_context(reference, [entry])) == []

    def test_split_disbursement_with_borrower_name(self, disbursement_matcher, make_context):
        """Test a disbursement paid out in three named debits."""
        reference = ReferenceData(
            loan_transactions=[loan_tx("tx1", 50000, tx_type=LoanTransactionType.DISBURSEMENT)],
            loans=[Loan(id="L1", borrower_id="B1", borrower_name="Peter Brown")],
            borrowers=[Borrower(id="B1", full_name="Peter Brown")],
        )
        entries = [
            debit("e1", 10000, description="PETER BROWN ADVANCE 1"),
            debit("e2", 15000, description="PETER BROWN ADVANCE 2"),
            debit("e3", 25000, description="PETER BROWN ADVANCE 3"),
        ]

        scored = score_all(disbursement_matcher, entries[0], make_context(reference, entries))
        grouped = [(s, m) for s, m in scored if m.match_mode is MatchMode.GROUPED_DISBURSEMENT]

        assert len(grouped) == 1
        score, match = grouped[0]
        assert {e.id for e in match.grouped_entries} == {"e1", "e2", "e3"}
        assert score == pytest.approx(0.95)

    def test_numeric_coincidence_rejected(self, disbursement_matcher, make_context):
        """Test unrelated debits that happen to sum are not grouped."""
        reference = ReferenceData(
            loan_transactions=[loan_tx("tx1", 50000, tx_type=LoanTransactionType.DISBURSEMENT)],
            loans=[Loan(id="L1", borrower_id="B1", borrower_name="Peter Brown")],
            borrowers=[Borrower(id="B1", full_name="Peter Brown")],
        )
        entries = [
            debit("e1", 10000, description="TESCO STORES 1234"),
            debit("e2", 15000, description="AMAZON MARKETPLACE"),
            debit("e3", 25000, description="SHELL FUEL STATION"),
        ]

        matches = disbursement_matcher.generate_matches(entries[0], make_context(reference, entries))
        assert not [m for m in matches if m.match_mode is MatchMode.GROUPED_DISBURSEMENT]

    def test_far_records_skip_subset_search(self, disbursement_matcher, make_context, monkeypatch):
        """Test records outside the transaction window never reach the subset search."""
        calls = []

        def counting_search(*args, **kwargs):
            calls.append(args)
            return None

        monkeypatch.setattr(base, "find_subset_sum", counting_search)
        reference = ReferenceData(loan_transactions=[
            loan_tx(f"tx{i}", 30000, offset=-100 - i, tx_type=LoanTransactionType.DISBURSEMENT)
            for i in range(50)
        ])
        entries = [
            debit("e1", 10000, description="PETER BROWN ADVANCE 1"),
            debit("e2", 20000, description="PETER BROWN ADVANCE 2"),
        ]

        matches = disbursement_matcher.generate_matches(entries[0], make_context(reference, entries))

        assert matches == []
        assert calls == []

    def test_split_too_far_from_transaction_rejected(self, disbursement_matcher, make_context):
        """Test splits far from the disbursement date are rejected."""
        reference = ReferenceData(
            loan_transactions=[loan_tx("tx1", 30000, offset=20, tx_type=LoanTransactionType.DISBURSEMENT)],
            loans=[Loan(id="L1", borrower_name="Peter Brown")],
        )
        entries = [
            debit("e1", 10000, description="PETER BROWN ADVANCE 1"),
            debit("e2", 20000, description="PETER BROWN ADVANCE 2"),
        ]

        matches = disbursement_matcher.generate_matches(entries[0], make_context(reference, entries))
        assert not [m for m in matches if m.match_mode is MatchMode.GROUPED_DISBURSEMENT]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
