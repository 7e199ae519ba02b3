"""Match suggestion engine components."""

from .registry import MatcherRegistry, create_matcher_set, default_matchers
from .runner import SuggestionEngine, best_candidate, generate_all_suggestions, run_matchers

__all__ = [
    "MatcherRegistry",
    "create_matcher_set",
    "default_matchers",
    "SuggestionEngine",
    "best_candidate",
    "generate_all_suggestions",
    "run_matchers",
]
