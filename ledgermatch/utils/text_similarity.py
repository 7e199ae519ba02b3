"""
Text similarity helpers for bank descriptions and counterparty names.

Bank descriptions are short, noisy and upper-cased ("FPS J SMITH REF 0012345"),
so matching relies on normalised substrings and keyword overlap rather than
embeddings. Edit distance comes from rapidfuzz.
"""

import re
from typing import List, Optional, Sequence

from rapidfuzz.distance import Levenshtein

from ..models import BankEntry

STOP_WORDS = frozenset([
    "from", "to", "the", "and", "for", "with", "payment", "transfer",
    "in", "out", "ltd", "limited",
])

VENDOR_STOP_WORDS = STOP_WORDS | frozenset([
    "plc", "inc", "corp", "llc",
    "card", "visa", "mastercard", "debit", "credit", "pos", "atm",
    "ref", "reference", "direct", "faster", "bacs", "chaps", "fps",
    "gbp", "usd", "eur", "aud", "purchase", "sale", "fee", "charge",
])

COUNTRY_CODES = frozenset(["gb", "uk", "au", "us", "de", "fr", "es", "it", "nl", "ie", "ca", "nz"])

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_COMPANY_SUFFIX = re.compile(r"\b(ltd|limited|plc|inc|llc|llp|co|company)\b")
_URL = re.compile(r"https?://\S+")
_DOMAIN_SUFFIX = re.compile(r"\.(com|co\.uk|org|net|io|app|co|uk|au|de|fr|es|it|nl|ie|ca|nz)")
_PHONE_INTL = re.compile(r"\+?\d{1,4}[\s\-]?\d{6,14}")
_PHONE_LOCAL = re.compile(r"\d{3}[\s\-]?\d{3}[\s\-]?\d{4}")
_TWO_LETTERS = re.compile(r"\b([a-z]{2})\b")
_LONG_NUMBER = re.compile(r"\b\d{5,}\b")
_PREFIXED_REFERENCE = re.compile(r"\b[a-z]{1,2}\d{5,}\b")


def extract_keywords(text: Optional[str]) -> List[str]:
    """Extract meaningful keywords from text, removing common words."""
    if not text:
        return []
    cleaned = _NON_ALNUM.sub(" ", text.lower())
    return [w for w in cleaned.split() if len(w) > 2 and w not in STOP_WORDS]


def extract_vendor_keywords(text: Optional[str], limit: int = 5) -> List[str]:
    """
    Extract vendor keywords from a messy bank description.

    Strips URLs, domain suffixes, phone numbers, country codes and reference
    numbers before tokenising. Only the first `limit` keywords are kept.
    """
    if not text:
        return []

    cleaned = text.lower()
    cleaned = cleaned.replace("www.", " ")
    cleaned = _URL.sub(" ", cleaned)
    cleaned = _DOMAIN_SUFFIX.sub(" ", cleaned)
    cleaned = _PHONE_INTL.sub(" ", cleaned)
    cleaned = _PHONE_LOCAL.sub(" ", cleaned)
    cleaned = _TWO_LETTERS.sub(
        lambda m: " " if m.group(1) in COUNTRY_CODES else m.group(0),
        cleaned,
    )
    cleaned = _LONG_NUMBER.sub(" ", cleaned)
    cleaned = _PREFIXED_REFERENCE.sub(" ", cleaned)
    cleaned = _NON_ALNUM.sub(" ", cleaned)

    keywords = [w for w in cleaned.split() if len(w) > 2 and w not in VENDOR_STOP_WORDS]
    return keywords[:limit]


def levenshtein_similarity(s1: Optional[str], s2: Optional[str]) -> float:
    """
    Edit-distance similarity on a 0-1 scale.

    Strings whose lengths differ by more than half of the longer one score 0.
    """
    if not s1 or not s2:
        return 0.0
    if s1 == s2:
        return 1.0

    max_len = max(len(s1), len(s2))
    if abs(len(s1) - len(s2)) / max_len > 0.5:
        return 0.0

    return float(Levenshtein.normalized_similarity(s1, s2))


def calculate_similarity(str1: Optional[str], str2: Optional[str]) -> float:
    """Keyword-based similarity between two strings."""
    if not str1 or not str2:
        return 0.0
    s1 = str1.lower()
    s2 = str2.lower()
    if s1 == s2:
        return 1.0
    if s1 in s2 or s2 in s1:
        return 0.8

    words1 = extract_keywords(s1)
    words2 = extract_keywords(s2)
    if not words1 or not words2:
        return 0.0

    matches = [
        w1 for w1 in words1
        if any(w1 in w2 or w2 in w1 for w2 in words2)
    ]
    return len(matches) / max(len(words1), len(words2))


def normalize_name(name: Optional[str]) -> str:
    """Normalise a name for comparison (drops Ltd, Limited, punctuation)."""
    if not name:
        return ""
    normalized = _COMPANY_SUFFIX.sub("", name.lower())
    normalized = _NON_ALNUM.sub(" ", normalized)
    return " ".join(normalized.split())


def _word_hit(words: Sequence[str], desc_norm: str, desc_words: Sequence[str],
              long_score: float, short_score: float) -> float:
    # Short words (3 chars) need an exact word so "the" never hits "together"
    for word in words:
        if len(word) >= 4:
            if word in desc_norm:
                return long_score
        elif word in desc_words:
            return short_score
    return 0.0


def description_contains_name(
    description: Optional[str],
    name: Optional[str],
    business_name: Optional[str] = None,
) -> float:
    """
    Score 0-1 indicating whether a party's name appears in a bank description.

    Business name is checked first since it is more specific.
    """
    if not description:
        return 0.0

    name_norm = normalize_name(name)
    biz_norm = normalize_name(business_name)
    desc_norm = normalize_name(description)

    if biz_norm and len(biz_norm) >= 3 and biz_norm in desc_norm:
        return 1.0

    if name_norm and len(name_norm) >= 3 and name_norm in desc_norm:
        return 0.9

    desc_words = desc_norm.split(" ")

    if biz_norm:
        words = [w for w in biz_norm.split(" ") if len(w) >= 3]
        score = _word_hit(words, desc_norm, desc_words, 0.8, 0.85)
        if score:
            return score

    if name_norm:
        words = [w for w in name_norm.split(" ") if len(w) >= 3]
        score = _word_hit(words, desc_norm, desc_words, 0.7, 0.75)
        if score:
            return score

    return 0.0


def descriptions_are_related(desc1: Optional[str], desc2: Optional[str]) -> bool:
    """
    Check whether two bank descriptions look like parts of the same transfer
    (e.g. "TOBIE HOLBROOK LOAN PART1" and "TOBIE HOLBROOK LOAN PART2").
    """
    if not desc1 or not desc2:
        return False

    words1 = [w for w in _NON_ALNUM.sub(" ", desc1.lower()).split() if len(w) >= 3]
    words2 = [w for w in _NON_ALNUM.sub(" ", desc2.lower()).split() if len(w) >= 3]
    if not words1 or not words2:
        return False

    matches = [w for w in words1 if w in words2]
    overlap_ratio = len(matches) / min(len(words1), len(words2))
    return overlap_ratio >= 0.5


def group_has_related_descriptions(entries: Sequence[BankEntry]) -> bool:
    """True if every entry's description is related to the first one's."""
    if len(entries) < 2:
        return True

    first = entries[0].description
    return all(descriptions_are_related(first, e.description) for e in entries[1:])
