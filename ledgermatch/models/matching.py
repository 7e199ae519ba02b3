"""Candidate, suggestion, claim and run-result models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple
from uuid import uuid4

from .enums import MatchType, MatchMode, AuditAction
from .ledger import (
    BankEntry,
    LoanTransaction,
    InvestorTransaction,
    InvestorInterestEntry,
    Expense,
    Loan,
    Borrower,
    Investor,
    ReferenceData,
)


@dataclass
class CandidateMatch:
    """
    A potential match produced by one strategy for one bank entry.

    `metadata` carries strategy-specific inputs used later for confidence scoring
    (e.g. all_same_day, max_date_diff, grouped_by, keyword_score).
    """
    match_type: MatchType
    match_mode: MatchMode
    reason: str = ""

    # Referenced ledger records
    loan_transactions: Tuple[LoanTransaction, ...] = ()
    investor_transactions: Tuple[InvestorTransaction, ...] = ()
    interest_entries: Tuple[InvestorInterestEntry, ...] = ()
    expense: Optional[Expense] = None

    # Several bank entries -> one record
    grouped_entries: Tuple[BankEntry, ...] = ()

    # Counterparty
    loan: Optional[Loan] = None
    borrower: Optional[Borrower] = None
    investor: Optional[Investor] = None

    # Classification targets for create mode
    loan_id: Optional[str] = None
    investor_id: Optional[str] = None
    expense_type_id: Optional[str] = None
    pattern_id: Optional[str] = None
    default_split: Optional[Dict[str, float]] = None

    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def referenced_record_ids(self) -> List[str]:
        ids = [tx.id for tx in self.loan_transactions]
        ids.extend(tx.id for tx in self.investor_transactions)
        ids.extend(i.id for i in self.interest_entries)
        if self.expense is not None:
            ids.append(self.expense.id)
        return ids

    @property
    def record_total_cents(self) -> int:
        """Sum of absolute amounts of all referenced ledger records."""
        records = (
            list(self.loan_transactions)
            + list(self.investor_transactions)
            + list(self.interest_entries)
        )
        if self.expense is not None:
            records.append(self.expense)
        return sum(r.abs_amount_cents for r in records)

    @property
    def grouped_total_cents(self) -> int:
        return sum(e.abs_amount_cents for e in self.grouped_entries)

    def to_suggestion(
        self,
        entry: BankEntry,
        confidence: float,
        matcher_name: str,
    ) -> "Suggestion":
        return Suggestion(
            entry_id=entry.id,
            type=self.match_type,
            match_mode=self.match_mode,
            confidence=confidence,
            matcher_name=matcher_name,
            reason=self.reason,
            referenced_record_ids=self.referenced_record_ids,
            grouped_entry_ids=[e.id for e in self.grouped_entries],
            loan_id=self.loan_id or (self.loan.id if self.loan else None),
            investor_id=self.investor_id or (self.investor.id if self.investor else None),
            expense_type_id=self.expense_type_id,
            pattern_id=self.pattern_id,
            default_split=self.default_split,
            candidate=self,
        )


@dataclass
class Suggestion:
    """The single best candidate chosen for a bank entry."""
    entry_id: str
    type: MatchType
    match_mode: MatchMode
    confidence: float
    matcher_name: str
    reason: str = ""
    referenced_record_ids: List[str] = field(default_factory=list)
    grouped_entry_ids: List[str] = field(default_factory=list)

    loan_id: Optional[str] = None
    investor_id: Optional[str] = None
    expense_type_id: Optional[str] = None
    pattern_id: Optional[str] = None
    default_split: Optional[Dict[str, float]] = None

    # Full candidate, kept for the accepting collaborator (allocation, amounts)
    candidate: Optional[CandidateMatch] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "entry_id": self.entry_id,
            "type": self.type.value,
            "match_mode": self.match_mode.value,
            "confidence": self.confidence,
            "matcher_name": self.matcher_name,
            "reason": self.reason,
            "referenced_record_ids": list(self.referenced_record_ids),
            "grouped_entry_ids": list(self.grouped_entry_ids),
            "loan_id": self.loan_id,
            "investor_id": self.investor_id,
            "expense_type_id": self.expense_type_id,
            "pattern_id": self.pattern_id,
            "default_split": self.default_split,
        }


@dataclass
class ClaimSet:
    """
    Ledger records already assigned to a suggestion in the current run, per family.

    Owned by the caller and threaded through the runner; never shared between runs.
    """
    loan_transaction_ids: set = field(default_factory=set)
    investor_transaction_ids: set = field(default_factory=set)
    interest_entry_ids: set = field(default_factory=set)
    expense_ids: set = field(default_factory=set)
    bank_entry_ids: set = field(default_factory=set)

    def claim(self, candidate: CandidateMatch) -> List[str]:
        """Claim every record the candidate references. Returns the claimed ids."""
        claimed = []
        for tx in candidate.loan_transactions:
            self.loan_transaction_ids.add(tx.id)
            claimed.append(tx.id)
        for tx in candidate.investor_transactions:
            self.investor_transaction_ids.add(tx.id)
            claimed.append(tx.id)
        for interest in candidate.interest_entries:
            self.interest_entry_ids.add(interest.id)
            claimed.append(interest.id)
        if candidate.expense is not None:
            self.expense_ids.add(candidate.expense.id)
            claimed.append(candidate.expense.id)
        if candidate.match_mode.groups_bank_entries:
            self.bank_entry_ids.update(e.id for e in candidate.grouped_entries)
        return claimed

    @property
    def total_claimed(self) -> int:
        return (
            len(self.loan_transaction_ids)
            + len(self.investor_transaction_ids)
            + len(self.interest_entry_ids)
            + len(self.expense_ids)
        )


@dataclass(frozen=True)
class MatchContext:
    """Everything a strategy may read while matching one entry. Strategies never mutate it."""
    reference: ReferenceData
    claims: ClaimSet
    bank_entries: Tuple[BankEntry, ...] = ()

    def is_available(self, record_id: str, claimed_ids: set) -> bool:
        """Record is neither reconciled already nor claimed earlier in this run."""
        return record_id not in self.reference.reconciled_ids and record_id not in claimed_ids

    def loan_transactions_of(self, tx_type) -> List[LoanTransaction]:
        """Unreconciled, unclaimed, non-deleted loan transactions of a type."""
        return [
            tx for tx in self.reference.loan_transactions
            if tx.type == tx_type
            and not tx.is_deleted
            and tx.is_matchable
            and self.is_available(tx.id, self.claims.loan_transaction_ids)
        ]

    def investor_transactions_of(self, tx_type) -> List[InvestorTransaction]:
        return [
            tx for tx in self.reference.investor_transactions
            if tx.type == tx_type
            and tx.is_matchable
            and self.is_available(tx.id, self.claims.investor_transaction_ids)
        ]

    def interest_entries_of(self, entry_type) -> List[InvestorInterestEntry]:
        return [
            i for i in self.reference.investor_interest_entries
            if i.type == entry_type
            and i.is_matchable
            and self.is_available(i.id, self.claims.interest_entry_ids)
        ]

    def available_expenses(self) -> List[Expense]:
        return [
            exp for exp in self.reference.expenses
            if exp.is_matchable
            and self.is_available(exp.id, self.claims.expense_ids)
        ]


@dataclass
class AuditEntry:
    """An entry in the audit log of a suggestion run."""
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.utcnow)

    action: AuditAction = AuditAction.SUGGESTION_MADE

    entry_id: Optional[str] = None
    record_ids: List[str] = field(default_factory=list)
    matcher_name: Optional[str] = None

    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SuggestionSummary:
    """Summary statistics of a suggestion run."""
    total_entries: int = 0
    considered_entries: int = 0
    suggested_entries: int = 0
    unmatched_entries: int = 0
    skipped_entries: int = 0
    claimed_records: int = 0

    by_match_mode: Dict[str, int] = field(default_factory=dict)
    by_matcher: Dict[str, int] = field(default_factory=dict)
    avg_confidence: float = 0.0

    processing_time_seconds: float = 0.0

    @property
    def suggestion_rate(self) -> float:
        """Percentage of considered entries that received a suggestion."""
        if self.considered_entries == 0:
            return 0.0
        return (self.suggested_entries / self.considered_entries) * 100


@dataclass
class SuggestionRunResult:
    """Complete result of one suggestion run."""
    run_id: str = field(default_factory=lambda: str(uuid4()))
    suggestions: Dict[str, Suggestion] = field(default_factory=dict)
    unmatched_entry_ids: List[str] = field(default_factory=list)
    summary: SuggestionSummary = field(default_factory=SuggestionSummary)
    audit_log: List[AuditEntry] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
