"""
FastAPI application for the match suggestion engine.
Stateless: every request carries one organization's data and gets a fresh run.
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional

import structlog
from fastapi import FastAPI
from pydantic import BaseModel, ConfigDict, Field

from .config import get_settings
from .models import (
    BankEntry,
    Borrower,
    Expense,
    ExpenseType,
    InterestEntryType,
    Investor,
    InvestorInterestEntry,
    InvestorTransaction,
    InvestorTransactionType,
    Loan,
    LoanTransaction,
    LoanTransactionType,
    MatchType,
    Pattern,
    PatternDirection,
    ReferenceData,
)
from .reconciliation import SuggestionEngine, create_matcher_set

logger = structlog.get_logger()
settings = get_settings()


def setup_logging():
    """Configure stdlib logging and structlog for console output."""
    logging.basicConfig(
        level=getattr(logging, settings.app_log_level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if settings.is_production
            else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting match suggestion API", env=settings.app_env)
    yield
    logger.info("Shutting down match suggestion API")


app = FastAPI(
    title="ledgermatch",
    description="Bank statement match suggestion engine",
    version="1.0.0",
    lifespan=lifespan,
)


def to_cents(amount: Optional[Decimal]) -> Optional[int]:
    """Convert a decimal currency amount to integer cents."""
    if amount is None:
        return None
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# Request/Response models
class BankEntryIn(BaseModel):
    id: str
    amount: Optional[Decimal] = None
    statement_date: Optional[date] = None
    description: str = ""
    is_reconciled: bool = False


class LoanTransactionIn(BaseModel):
    id: str
    loan_id: Optional[str] = None
    borrower_id: Optional[str] = None
    type: LoanTransactionType
    amount: Optional[Decimal] = None
    transaction_date: Optional[date] = Field(default=None, alias="date")
    principal_applied: Decimal = Decimal("0")
    interest_applied: Decimal = Decimal("0")
    fees_applied: Decimal = Decimal("0")
    is_deleted: bool = False

    model_config = ConfigDict(populate_by_name=True)


class LoanIn(BaseModel):
    id: str
    borrower_id: Optional[str] = None
    loan_number: Optional[str] = None
    borrower_name: Optional[str] = None
    status: str = "Live"


class BorrowerIn(BaseModel):
    id: str
    name: Optional[str] = None
    business_name: Optional[str] = None
    email: Optional[str] = None


class InvestorIn(BaseModel):
    id: str
    name: Optional[str] = None
    business_name: Optional[str] = None


class InvestorTransactionIn(BaseModel):
    id: str
    investor_id: Optional[str] = None
    type: InvestorTransactionType
    amount: Optional[Decimal] = None
    transaction_date: Optional[date] = Field(default=None, alias="date")

    model_config = ConfigDict(populate_by_name=True)


class InvestorInterestIn(BaseModel):
    id: str
    investor_id: Optional[str] = None
    type: InterestEntryType
    amount: Optional[Decimal] = None
    transaction_date: Optional[date] = Field(default=None, alias="date")

    model_config = ConfigDict(populate_by_name=True)


class ExpenseIn(BaseModel):
    id: str
    type_id: Optional[str] = None
    type_name: Optional[str] = None
    amount: Optional[Decimal] = None
    transaction_date: Optional[date] = Field(default=None, alias="date")

    model_config = ConfigDict(populate_by_name=True)


class ExpenseTypeIn(BaseModel):
    id: str
    name: str = ""


class PatternIn(BaseModel):
    id: str
    description_pattern: str
    match_type: MatchType
    amount_min: Optional[Decimal] = None
    amount_max: Optional[Decimal] = None
    transaction_type: Optional[PatternDirection] = None
    loan_id: Optional[str] = None
    investor_id: Optional[str] = None
    expense_type_id: Optional[str] = None
    match_count: int = 1
    confidence_score: float = 0.5
    default_capital_ratio: float = 1.0
    default_interest_ratio: float = 0.0
    default_fees_ratio: float = 0.0


class SuggestionRequest(BaseModel):
    bank_entries: List[BankEntryIn]
    loan_transactions: List[LoanTransactionIn] = []
    loans: List[LoanIn] = []
    borrowers: List[BorrowerIn] = []
    investors: List[InvestorIn] = []
    investor_transactions: List[InvestorTransactionIn] = []
    investor_interest: List[InvestorInterestIn] = []
    expenses: List[ExpenseIn] = []
    expense_types: List[ExpenseTypeIn] = []
    patterns: List[PatternIn] = []
    reconciled_ids: List[str] = []


class SuggestionOut(BaseModel):
    entry_id: str
    type: str
    match_mode: str
    confidence: float
    matcher_name: str
    reason: str
    referenced_record_ids: List[str]
    grouped_entry_ids: List[str]
    loan_id: Optional[str] = None
    investor_id: Optional[str] = None
    expense_type_id: Optional[str] = None
    pattern_id: Optional[str] = None
    default_split: Optional[Dict[str, float]] = None


class SummaryResponse(BaseModel):
    total_entries: int
    considered_entries: int
    suggested_entries: int
    unmatched_entries: int
    skipped_entries: int
    claimed_records: int
    suggestion_rate: float
    avg_confidence: float
    by_match_mode: Dict[str, int]
    by_matcher: Dict[str, int]
    processing_time_seconds: float


class SuggestionResponse(BaseModel):
    run_id: str
    suggestions: Dict[str, SuggestionOut]
    unmatched_entry_ids: List[str]
    summary: SummaryResponse


def build_reference(request: SuggestionRequest) -> ReferenceData:
    """Convert request payload into engine reference data (amounts in cents)."""
    return ReferenceData(
        loan_transactions=[
            LoanTransaction(
                id=tx.id,
                amount_cents=to_cents(tx.amount),
                transaction_date=tx.transaction_date,
                loan_id=tx.loan_id,
                borrower_id=tx.borrower_id,
                type=tx.type,
                principal_cents=to_cents(tx.principal_applied),
                interest_cents=to_cents(tx.interest_applied),
                fees_cents=to_cents(tx.fees_applied),
                is_deleted=tx.is_deleted,
            )
            for tx in request.loan_transactions
        ],
        loans=[
            Loan(
                id=loan.id,
                borrower_id=loan.borrower_id,
                loan_number=loan.loan_number,
                borrower_name=loan.borrower_name,
                status=loan.status,
            )
            for loan in request.loans
        ],
        borrowers=[
            Borrower(id=b.id, full_name=b.name, business_name=b.business_name, email=b.email)
            for b in request.borrowers
        ],
        investors=[
            Investor(id=i.id, name=i.name, business_name=i.business_name)
            for i in request.investors
        ],
        investor_transactions=[
            InvestorTransaction(
                id=tx.id,
                amount_cents=to_cents(tx.amount),
                transaction_date=tx.transaction_date,
                investor_id=tx.investor_id,
                type=tx.type,
            )
            for tx in request.investor_transactions
        ],
        investor_interest_entries=[
            InvestorInterestEntry(
                id=i.id,
                amount_cents=to_cents(i.amount),
                transaction_date=i.transaction_date,
                investor_id=i.investor_id,
                type=i.type,
            )
            for i in request.investor_interest
        ],
        expenses=[
            Expense(
                id=e.id,
                amount_cents=to_cents(e.amount),
                transaction_date=e.transaction_date,
                type_id=e.type_id,
                type_name=e.type_name,
            )
            for e in request.expenses
        ],
        expense_types=[ExpenseType(id=t.id, name=t.name) for t in request.expense_types],
        patterns=[
            Pattern(
                id=p.id,
                description_pattern=p.description_pattern,
                match_type=p.match_type,
                amount_min_cents=to_cents(p.amount_min),
                amount_max_cents=to_cents(p.amount_max),
                transaction_type=p.transaction_type,
                loan_id=p.loan_id,
                investor_id=p.investor_id,
                expense_type_id=p.expense_type_id,
                match_count=p.match_count,
                confidence_score=p.confidence_score,
                default_capital_ratio=p.default_capital_ratio,
                default_interest_ratio=p.default_interest_ratio,
                default_fees_ratio=p.default_fees_ratio,
            )
            for p in request.patterns
        ],
        reconciled_ids=set(request.reconciled_ids),
    )


# API Endpoints
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


@app.get("/api/matchers")
async def list_matchers():
    """Registered strategies with their priority and enabled flag."""
    return create_matcher_set(settings).status()


@app.post("/api/suggestions", response_model=SuggestionResponse)
def create_suggestions(request: SuggestionRequest):
    """Run the suggestion engine over one organization's bank entries."""
    entries = [
        BankEntry(
            id=e.id,
            amount_cents=to_cents(e.amount),
            statement_date=e.statement_date,
            description=e.description,
            is_reconciled=e.is_reconciled,
        )
        for e in request.bank_entries
    ]

    result = SuggestionEngine().run(entries, build_reference(request))
    summary = result.summary

    return SuggestionResponse(
        run_id=result.run_id,
        suggestions={
            entry_id: SuggestionOut(**suggestion.to_dict())
            for entry_id, suggestion in result.suggestions.items()
        },
        unmatched_entry_ids=result.unmatched_entry_ids,
        summary=SummaryResponse(
            total_entries=summary.total_entries,
            considered_entries=summary.considered_entries,
            suggested_entries=summary.suggested_entries,
            unmatched_entries=summary.unmatched_entries,
            skipped_entries=summary.skipped_entries,
            claimed_records=summary.claimed_records,
            suggestion_rate=round(summary.suggestion_rate, 2),
            avg_confidence=round(summary.avg_confidence, 4),
            by_match_mode=summary.by_match_mode,
            by_matcher=summary.by_matcher,
            processing_time_seconds=summary.processing_time_seconds,
        ),
    )
