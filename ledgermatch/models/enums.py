"""Enumerations for the match suggestion engine."""

from enum import Enum


class MatchType(str, Enum):
    """Accounting event a bank entry is classified as."""
    LOAN_REPAYMENT = "loan_repayment"
    LOAN_DISBURSEMENT = "loan_disbursement"
    INVESTOR_CREDIT = "investor_credit"
    INVESTOR_WITHDRAWAL = "investor_withdrawal"
    INTEREST_WITHDRAWAL = "interest_withdrawal"
    EXPENSE = "expense"


class MatchMode(str, Enum):
    """
    How a suggestion relates the bank entry to ledger records.

    MATCH: one bank entry <-> one ledger record
    MATCH_GROUP: one bank entry <-> several ledger records summing to it
    GROUPED_*: several bank entries <-> one ledger record (subset-sum)
    CREATE: no existing record, classify as a new transaction
    """
    MATCH = "match"
    MATCH_GROUP = "match_group"
    GROUPED_DISBURSEMENT = "grouped_disbursement"
    GROUPED_REPAYMENT = "grouped_repayment"
    GROUPED_INVESTOR = "grouped_investor"
    CREATE = "create"

    @property
    def groups_bank_entries(self) -> bool:
        return self in (
            MatchMode.GROUPED_DISBURSEMENT,
            MatchMode.GROUPED_REPAYMENT,
            MatchMode.GROUPED_INVESTOR,
        )


class LoanTransactionType(str, Enum):
    DISBURSEMENT = "Disbursement"
    REPAYMENT = "Repayment"


class InvestorTransactionType(str, Enum):
    CAPITAL_IN = "capital_in"
    CAPITAL_OUT = "capital_out"


class InterestEntryType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"  # Interest withdrawn by the investor


class PatternDirection(str, Enum):
    """Bank transaction direction filter stored on learned patterns."""
    CREDIT = "CRDT"
    DEBIT = "DBIT"


class AuditAction(str, Enum):
    """Type of audit action recorded during a suggestion run."""
    RUN_STARTED = "run_started"
    SUGGESTION_MADE = "suggestion_made"
    BELOW_THRESHOLD = "below_threshold"
    NO_CANDIDATES = "no_candidates"
    ENTRY_SKIPPED = "entry_skipped"
    RECORDS_CLAIMED = "records_claimed"
    RUN_COMPLETED = "run_completed"
