"""Utility modules."""

from .text_similarity import (
    extract_keywords,
    extract_vendor_keywords,
    levenshtein_similarity,
    calculate_similarity,
    normalize_name,
    description_contains_name,
    descriptions_are_related,
    group_has_related_descriptions,
)
from .audit_logger import AuditLogger

__all__ = [
    "extract_keywords",
    "extract_vendor_keywords",
    "levenshtein_similarity",
    "calculate_similarity",
    "normalize_name",
    "description_contains_name",
    "descriptions_are_related",
    "group_has_related_descriptions",
    "AuditLogger",
]
