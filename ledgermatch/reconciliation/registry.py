"""
Matcher registry.

Holds strategy instances ordered by priority (highest first) and lets
individual strategies be switched on and off.
"""

from typing import Dict, List, Optional

import structlog

from ..config import Settings, get_settings
from .matchers import (
    ExpenseMatcher,
    InvestorCreditMatcher,
    InvestorWithdrawalMatcher,
    LoanDisbursementMatcher,
    LoanRepaymentMatcher,
    MatcherStrategy,
    PatternMatcher,
)

logger = structlog.get_logger()


class MatcherRegistry:
    """Ordered collection of matcher strategies."""

    def __init__(self, matchers: Optional[List[MatcherStrategy]] = None):
        self._matchers: List[MatcherStrategy] = []
        for matcher in matchers or []:
            self.register(matcher)

    def register(self, matcher: MatcherStrategy) -> None:
        """Add a strategy, replacing any registered under the same name."""
        self._matchers = [m for m in self._matchers if m.name != matcher.name]
        self._matchers.append(matcher)
        # Stable sort keeps registration order among equal priorities
        self._matchers.sort(key=lambda m: m.priority, reverse=True)

    def unregister(self, name: str) -> bool:
        before = len(self._matchers)
        self._matchers = [m for m in self._matchers if m.name != name]
        return len(self._matchers) < before

    def get(self, name: str) -> Optional[MatcherStrategy]:
        return next((m for m in self._matchers if m.name == name), None)

    def set_enabled(self, name: str, enabled: bool) -> None:
        matcher = self.get(name)
        if matcher is None:
            raise KeyError(f"Unknown matcher: {name}")
        matcher.enabled = enabled
        logger.debug("Matcher toggled", matcher=name, enabled=enabled)

    @property
    def matchers(self) -> List[MatcherStrategy]:
        return list(self._matchers)

    @property
    def enabled_matchers(self) -> List[MatcherStrategy]:
        return [m for m in self._matchers if m.enabled]

    def status(self) -> Dict[str, Dict]:
        return {
            m.name: {"priority": m.priority, "enabled": m.enabled}
            for m in self._matchers
        }

    def __iter__(self):
        return iter(self._matchers)

    def __len__(self) -> int:
        return len(self._matchers)


def default_matchers(settings: Optional[Settings] = None) -> List[MatcherStrategy]:
    """The six standard strategies, enabled according to settings."""
    settings = settings or get_settings()
    return [
        LoanRepaymentMatcher(enabled=settings.enable_loan_repayments),
        LoanDisbursementMatcher(enabled=settings.enable_loan_disbursements),
        InvestorCreditMatcher(enabled=settings.enable_investor_credits),
        InvestorWithdrawalMatcher(enabled=settings.enable_investor_withdrawals),
        ExpenseMatcher(enabled=settings.enable_expenses),
        PatternMatcher(enabled=settings.enable_patterns),
    ]


def create_matcher_set(settings: Optional[Settings] = None) -> MatcherRegistry:
    """Registry preloaded with the default strategies."""
    return MatcherRegistry(default_matchers(settings))
