"""
PatternMatcher

Lowest-priority strategy. Suggests creating a new transaction when no
existing record fits, based on:
- Patterns learned from earlier reconciliations
- Expense keywords in debit descriptions
- Borrower names of live loans
- Investor names
"""

from typing import List, Optional

import structlog

from ...config import get_settings
from ...models import (
    BankEntry,
    CandidateMatch,
    MatchContext,
    MatchMode,
    MatchType,
    Pattern,
    PatternDirection,
)
from ...utils.text_similarity import (
    calculate_similarity,
    description_contains_name,
    extract_vendor_keywords,
    levenshtein_similarity,
)
from ..scoring import clamp_confidence

logger = structlog.get_logger()

EXPENSE_KEYWORDS = [
    "expense", "expenses", "bill", "bills", "fee", "fees", "charge", "charges",
    "utilities", "rent", "insurance", "subscription", "office", "supplies", "maintenance",
    "professional", "legal", "accounting", "tax", "vat", "hmrc", "council", "electric",
    "gas", "water", "phone", "internet", "broadband", "software", "license", "licence",
]

# Descriptions carrying these are never treated as a borrower/investor name hit
EXPENSE_FLAVOR_WORDS = ["expense", "expenses", "bill", "bills", "fee", "fees"]

GENERIC_FINANCE_WORDS = frozenset([
    "loan", "fund", "funding", "capital", "investment", "finance", "scheme", "limited", "ltd",
])

OTHER_CREATE_CONFIDENCE = 0.35
EXPENSE_KEYWORD_CONFIDENCE = 0.65


def _contains_any(description: Optional[str], words: List[str]) -> bool:
    desc_lower = (description or "").lower()
    return any(word in desc_lower for word in words)


def is_generic_name(name: str) -> bool:
    """True when every significant word of the name is a generic financial term."""
    significant = [w for w in name.lower().split() if len(w) > 2]
    return bool(significant) and all(w in GENERIC_FINANCE_WORDS for w in significant)


class PatternMatcher:
    """Create-mode suggestions for entries of either sign."""

    name = "pattern"

    def __init__(self, priority: int = 30, enabled: bool = True):
        self.priority = priority
        self.enabled = enabled
        self.settings = get_settings()

    def can_match(self, entry: BankEntry, context: MatchContext) -> bool:
        return True

    def generate_matches(self, entry: BankEntry, context: MatchContext) -> List[CandidateMatch]:
        reference = context.reference
        matches = self.find_pattern_matches(entry, reference.patterns)

        if entry.is_debit:
            expense_match = self.find_expense_keyword_match(entry)
            if expense_match:
                matches.append(expense_match)

        borrower_match = self.find_borrower_name_match(entry, context)
        if borrower_match:
            matches.append(borrower_match)

        investor_match = self.find_investor_name_match(entry, context)
        if investor_match:
            matches.append(investor_match)

        if matches:
            logger.debug(
                "Create suggestions proposed",
                entry_id=entry.id,
                match_types=[m.match_type.value for m in matches],
            )
        return matches

    def keyword_score(self, entry_keywords: List[str], pattern_keywords: List[str]) -> float:
        """
        Fuzzy keyword overlap between an entry and a learned pattern.

        Exact keyword 1.0, containment 0.7, close spelling 0.5, normalised by the
        pattern's keyword count.
        """
        hits = 0.0
        for entry_kw in entry_keywords:
            for pattern_kw in pattern_keywords:
                if entry_kw == pattern_kw:
                    hits += 1
                elif entry_kw in pattern_kw or pattern_kw in entry_kw:
                    hits += 0.7
                elif levenshtein_similarity(entry_kw, pattern_kw) >= self.settings.keyword_levenshtein_threshold:
                    hits += 0.5
        return hits / max(len(pattern_keywords), 1)

    def _pattern_applies(self, pattern: Pattern, entry: BankEntry) -> bool:
        amount = entry.abs_amount_cents
        if pattern.amount_min_cents and amount < pattern.amount_min_cents:
            return False
        if pattern.amount_max_cents and amount > pattern.amount_max_cents:
            return False
        if pattern.transaction_type is None:
            return True
        expected = PatternDirection.CREDIT if entry.is_credit else PatternDirection.DEBIT
        return pattern.transaction_type == expected

    def find_pattern_matches(self, entry: BankEntry, patterns: List[Pattern]) -> List[CandidateMatch]:
        entry_keywords = extract_vendor_keywords(entry.description)
        matches = []

        for pattern in patterns:
            pattern_keywords = extract_vendor_keywords(pattern.description_pattern)
            if not pattern_keywords:
                continue

            score = self.keyword_score(entry_keywords, pattern_keywords)
            if score < self.settings.pattern_keyword_threshold:
                continue
            if not self._pattern_applies(pattern, entry):
                continue

            uses = pattern.match_count or 1
            matches.append(CandidateMatch(
                match_type=pattern.match_type,
                match_mode=MatchMode.CREATE,
                loan_id=pattern.loan_id,
                investor_id=pattern.investor_id,
                expense_type_id=pattern.expense_type_id,
                pattern_id=pattern.id,
                default_split=pattern.default_split,
                reason=f'Pattern: "{pattern.description_pattern}" (used {uses}x)',
                metadata={
                    "keyword_score": score,
                    "usage_count": uses,
                    "pattern_confidence": pattern.confidence_score or 0.5,
                },
            ))

        return matches

    def find_expense_keyword_match(self, entry: BankEntry) -> Optional[CandidateMatch]:
        if not _contains_any(entry.description, EXPENSE_KEYWORDS):
            return None
        return CandidateMatch(
            match_type=MatchType.EXPENSE,
            match_mode=MatchMode.CREATE,
            reason="Description contains expense keyword",
            metadata={"expense_keyword": True},
        )

    def find_borrower_name_match(self, entry: BankEntry, context: MatchContext) -> Optional[CandidateMatch]:
        if _contains_any(entry.description, EXPENSE_FLAVOR_WORDS):
            return None

        reference = context.reference
        best = None
        best_score = 0.0

        for loan in reference.loans:
            if not loan.is_active:
                continue
            borrower = reference.borrower(loan.borrower_id)
            borrower_name = borrower.display_name if borrower else ""
            if not borrower_name:
                continue

            similarity = calculate_similarity(entry.description, borrower_name)
            if similarity > self.settings.borrower_name_threshold and similarity > best_score:
                best_score = similarity
                best = CandidateMatch(
                    match_type=MatchType.LOAN_REPAYMENT if entry.is_credit else MatchType.LOAN_DISBURSEMENT,
                    match_mode=MatchMode.CREATE,
                    loan_id=loan.id,
                    loan=loan,
                    borrower=borrower,
                    reason=f"Name match: {borrower_name} ({loan.loan_number or 'Unknown'})",
                    metadata={"name_score": similarity},
                )

        return best

    def find_investor_name_match(self, entry: BankEntry, context: MatchContext) -> Optional[CandidateMatch]:
        """Strict name match; names made only of generic finance words never match."""
        if _contains_any(entry.description, EXPENSE_FLAVOR_WORDS):
            return None

        best = None
        best_score = 0.0

        for investor in context.reference.investors:
            investor_name = investor.display_name
            if not investor_name or is_generic_name(investor_name):
                continue

            name_score = description_contains_name(entry.description, investor.name, investor.business_name)
            if name_score > self.settings.investor_name_threshold and name_score > best_score:
                best_score = name_score
                best = CandidateMatch(
                    match_type=MatchType.INVESTOR_CREDIT if entry.is_credit else MatchType.INVESTOR_WITHDRAWAL,
                    match_mode=MatchMode.CREATE,
                    investor_id=investor.id,
                    investor=investor,
                    reason=f"Investor name match: {investor_name}",
                    metadata={"name_score": name_score},
                )

        return best

    def calculate_confidence(self, match: CandidateMatch, entry: BankEntry) -> float:
        metadata = match.metadata

        if match.pattern_id:
            usage_boost = min(metadata.get("usage_count", 1) / 20, 0.15)
            score = (
                metadata.get("pattern_confidence", 0.5) * 0.6
                + metadata.get("keyword_score", 0.0) * 0.25
                + usage_boost
            )
        elif metadata.get("expense_keyword"):
            score = EXPENSE_KEYWORD_CONFIDENCE
        elif metadata.get("name_score"):
            score = metadata["name_score"]
        else:
            score = OTHER_CREATE_CONFIDENCE

        return clamp_confidence(score, match.match_mode)
