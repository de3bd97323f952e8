from __future__ import annotations

from src.pipeline.cache import MatchResultCache
from src.pipeline.config import LoadedConfig, MatchingConfig, load_matching_config
from src.pipeline.matching import ScholarshipMatcher, fallback_explanation, increment_popularity

__all__ = [
    "LoadedConfig",
    "MatchResultCache",
    "MatchingConfig",
    "ScholarshipMatcher",
    "fallback_explanation",
    "increment_popularity",
    "load_matching_config",
]
