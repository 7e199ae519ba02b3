"""Bank entry and ledger record models consumed by the matching engine."""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional, List, Dict, Any, Iterable, Set

from .enums import (
    LoanTransactionType,
    InvestorTransactionType,
    InterestEntryType,
    PatternDirection,
    MatchType,
)


@dataclass(frozen=True)
class BankEntry:
    """
    One imported bank-statement line.
    Amounts are stored in CENTS (signed integer): positive = credit, negative = debit.
    """
    id: str
    amount_cents: Optional[int] = None
    statement_date: Optional[date] = None
    description: str = ""
    is_reconciled: bool = False

    @property
    def amount(self) -> float:
        """Return amount in standard currency units."""
        return (self.amount_cents or 0) / 100.0

    @property
    def abs_amount_cents(self) -> int:
        return abs(self.amount_cents or 0)

    @property
    def is_credit(self) -> bool:
        return (self.amount_cents or 0) > 0

    @property
    def is_debit(self) -> bool:
        return (self.amount_cents or 0) < 0

    @property
    def is_matchable(self) -> bool:
        """Entries without a date or a non-zero amount never receive suggestions."""
        return self.statement_date is not None and bool(self.amount_cents)


@dataclass(frozen=True)
class LedgerRecord:
    """Fields shared by every ledger record family."""
    id: str
    amount_cents: Optional[int] = None
    transaction_date: Optional[date] = None

    @property
    def amount(self) -> float:
        return (self.amount_cents or 0) / 100.0

    @property
    def abs_amount_cents(self) -> int:
        return abs(self.amount_cents or 0)

    @property
    def is_matchable(self) -> bool:
        """Records with a missing date or amount are excluded from candidacy."""
        return self.transaction_date is not None and self.amount_cents is not None


@dataclass(frozen=True)
class LoanTransaction(LedgerRecord):
    loan_id: Optional[str] = None
    borrower_id: Optional[str] = None
    type: LoanTransactionType = LoanTransactionType.REPAYMENT
    principal_cents: int = 0
    interest_cents: int = 0
    fees_cents: int = 0
    is_deleted: bool = False


@dataclass(frozen=True)
class InvestorTransaction(LedgerRecord):
    investor_id: Optional[str] = None
    type: InvestorTransactionType = InvestorTransactionType.CAPITAL_IN


@dataclass(frozen=True)
class InvestorInterestEntry(LedgerRecord):
    investor_id: Optional[str] = None
    type: InterestEntryType = InterestEntryType.DEBIT


@dataclass(frozen=True)
class Expense(LedgerRecord):
    type_id: Optional[str] = None
    type_name: Optional[str] = None


@dataclass(frozen=True)
class Loan:
    id: str
    borrower_id: Optional[str] = None
    loan_number: Optional[str] = None
    borrower_name: Optional[str] = None
    status: str = "Live"

    @property
    def is_active(self) -> bool:
        return self.status in ("Live", "Active")


@dataclass(frozen=True)
class Borrower:
    id: str
    full_name: Optional[str] = None
    business_name: Optional[str] = None
    email: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.business_name or self.full_name or ""


@dataclass(frozen=True)
class Investor:
    id: str
    name: Optional[str] = None
    business_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.business_name or self.name or ""


@dataclass(frozen=True)
class ExpenseType:
    id: str
    name: str = ""


@dataclass(frozen=True)
class Pattern:
    """
    A description -> classification rule learned from earlier reconciliations.
    Amount bounds are in cents; None means unbounded.
    """
    id: str
    description_pattern: str
    match_type: MatchType
    amount_min_cents: Optional[int] = None
    amount_max_cents: Optional[int] = None
    transaction_type: Optional[PatternDirection] = None
    loan_id: Optional[str] = None
    investor_id: Optional[str] = None
    expense_type_id: Optional[str] = None
    match_count: int = 1
    confidence_score: float = 1.0
    default_capital_ratio: float = 1.0
    default_interest_ratio: float = 0.0
    default_fees_ratio: float = 0.0

    @property
    def default_split(self) -> Dict[str, float]:
        return {
            "capital": self.default_capital_ratio,
            "interest": self.default_interest_ratio,
            "fees": self.default_fees_ratio,
        }


def _index(records: Iterable[Any]) -> Dict[str, Any]:
    return {r.id: r for r in records}


@dataclass
class ReferenceData:
    """
    Read-only reference collections supplied by the persistence layer for one run.

    `reconciled_ids` holds ledger record ids that are already linked to a bank entry.
    """
    loan_transactions: List[LoanTransaction] = field(default_factory=list)
    loans: List[Loan] = field(default_factory=list)
    borrowers: List[Borrower] = field(default_factory=list)
    investors: List[Investor] = field(default_factory=list)
    investor_transactions: List[InvestorTransaction] = field(default_factory=list)
    investor_interest_entries: List[InvestorInterestEntry] = field(default_factory=list)
    expenses: List[Expense] = field(default_factory=list)
    expense_types: List[ExpenseType] = field(default_factory=list)
    patterns: List[Pattern] = field(default_factory=list)
    reconciled_ids: Set[str] = field(default_factory=set)

    def __post_init__(self):
        self._loans = _index(self.loans)
        self._borrowers = _index(self.borrowers)
        self._investors = _index(self.investors)
        self._expense_types = _index(self.expense_types)

    def loan(self, loan_id: Optional[str]) -> Optional[Loan]:
        return self._loans.get(loan_id) if loan_id else None

    def borrower(self, borrower_id: Optional[str]) -> Optional[Borrower]:
        return self._borrowers.get(borrower_id) if borrower_id else None

    def investor(self, investor_id: Optional[str]) -> Optional[Investor]:
        return self._investors.get(investor_id) if investor_id else None

    def expense_type(self, type_id: Optional[str]) -> Optional[ExpenseType]:
        return self._expense_types.get(type_id) if type_id else None

    def borrower_id_for(self, tx: LoanTransaction) -> Optional[str]:
        """Borrower of a loan transaction, via its loan first."""
        loan = self.loan(tx.loan_id)
        return (loan.borrower_id if loan else None) or tx.borrower_id

    def borrower_for(self, tx: LoanTransaction) -> Optional[Borrower]:
        return self.borrower(self.borrower_id_for(tx))

    def borrower_label(self, tx: LoanTransaction) -> str:
        """Human-readable borrower name; degrades to a placeholder label."""
        borrower = self.borrower_for(tx)
        if borrower and borrower.display_name:
            return borrower.display_name
        loan = self.loan(tx.loan_id)
        if loan and loan.borrower_name:
            return loan.borrower_name
        return "Unknown"

    def investor_label(self, investor_id: Optional[str]) -> str:
        investor = self.investor(investor_id)
        if investor and investor.display_name:
            return investor.display_name
        return "Unknown"
