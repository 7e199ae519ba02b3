"""Matcher strategies, one per kind of accounting event."""

from .base import MatcherStrategy
from .loan_repayment import LoanRepaymentMatcher
from .loan_disbursement import LoanDisbursementMatcher
from .investor_credit import InvestorCreditMatcher
from .investor_withdrawal import InvestorWithdrawalMatcher
from .expense import ExpenseMatcher
from .pattern import PatternMatcher

__all__ = [
    "MatcherStrategy",
    "LoanRepaymentMatcher",
    "LoanDisbursementMatcher",
    "InvestorCreditMatcher",
    "InvestorWithdrawalMatcher",
    "ExpenseMatcher",
    "PatternMatcher",
]
