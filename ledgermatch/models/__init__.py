"""Data models for the match suggestion engine."""

from .enums import (
    MatchType,
    MatchMode,
    LoanTransactionType,
    InvestorTransactionType,
    InterestEntryType,
    PatternDirection,
    AuditAction,
)
from .ledger import (
    BankEntry,
    LedgerRecord,
    LoanTransaction,
    InvestorTransaction,
    InvestorInterestEntry,
    Expense,
    ExpenseType,
    Loan,
    Borrower,
    Investor,
    Pattern,
    ReferenceData,
)
from .matching import (
    CandidateMatch,
    Suggestion,
    ClaimSet,
    MatchContext,
    AuditEntry,
    SuggestionSummary,
    SuggestionRunResult,
)

__all__ = [
    # Enums
    "MatchType",
    "MatchMode",
    "LoanTransactionType",
    "InvestorTransactionType",
    "InterestEntryType",
    "PatternDirection",
    "AuditAction",
    # Ledger
    "BankEntry",
    "LedgerRecord",
    "LoanTransaction",
    "InvestorTransaction",
    "InvestorInterestEntry",
    "Expense",
    "ExpenseType",
    "Loan",
    "Borrower",
    "Investor",
    "Pattern",
    "ReferenceData",
    # Matching
    "CandidateMatch",
    "Suggestion",
    "ClaimSet",
    "MatchContext",
    "AuditEntry",
    "SuggestionSummary",
    "SuggestionRunResult",
]
