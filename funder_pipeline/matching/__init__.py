"""AI-scored funder matching and its result cache."""

from .cache import MatchCache, compute_cache_key, income_bucket
from .details import get_funder_details
from .engine import FunderMatcher
from .parser import parse_matching_response
from .prompts import MATCHING_SYSTEM_PROMPT, FunderSample, build_matching_prompt
from .scoring_client import ScoringClient

__all__ = [
    "FunderMatcher",
    "FunderSample",
    "MATCHING_SYSTEM_PROMPT",
    "MatchCache",
    "ScoringClient",
    "build_matching_prompt",
    "compute_cache_key",
    "get_funder_details",
    "income_bucket",
    "parse_matching_response",
]
