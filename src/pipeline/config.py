from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

from src.rank.weights import MajorCategoryTable, ScoringWeights

_POSITIVE_INT_FIELDS = (
    "retrieval_limit",
    "provider_limit",
    "category_limit",
    "cache_max_entries",
    "verification_batch_size",
)


@dataclass(frozen=True, slots=True)
class MatchingConfig:
    retrieval_limit: int = 100
    provider_limit: int = 3
    category_limit: int = 10
    best_match_threshold: int = 80
    cache_ttl_seconds: float = 300.0
    cache_max_entries: int = 256
    verification_batch_size: int = 5

    def __post_init__(self) -> None:
        for field_name in _POSITIVE_INT_FIELDS:
            value = getattr(self, field_name)
            if int(value) != value or value < 1:
                raise ValueError(f"Matching setting '{field_name}' must be a positive integer.")
        if not 0 <= self.best_match_threshold <= 100:
            raise ValueError("Matching setting 'best_match_threshold' must be between 0 and 100.")
        if self.cache_ttl_seconds <= 0:
            raise ValueError("Matching setting 'cache_ttl_seconds' must be positive.")

    @classmethod
    def baseline(cls) -> MatchingConfig:
        return cls()

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> MatchingConfig:
        values = payload or {}
        baseline = cls.baseline()
        return cls(
            retrieval_limit=int(values.get("retrieval_limit", baseline.retrieval_limit)),
            provider_limit=int(values.get("provider_limit", baseline.provider_limit)),
            category_limit=int(values.get("category_limit", baseline.category_limit)),
            best_match_threshold=int(values.get("best_match_threshold", baseline.best_match_threshold)),
            cache_ttl_seconds=float(values.get("cache_ttl_seconds", baseline.cache_ttl_seconds)),
            cache_max_entries=int(values.get("cache_max_entries", baseline.cache_max_entries)),
            verification_batch_size=int(
                values.get("verification_batch_size", baseline.verification_batch_size)
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(frozen=True, slots=True)
class LoadedConfig:
    matching: MatchingConfig
    scoring_weights: ScoringWeights
    major_categories: MajorCategoryTable


def load_matching_config(path: Path | None = None) -> LoadedConfig:
    """Read matching settings from a JSON file; a missing file yields the baselines."""

    payload: dict[str, Any] = {}
    if path is not None and path.exists():
        payload = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Config file '{path}' must contain a JSON object.")

    return LoadedConfig(
        matching=MatchingConfig.from_mapping(payload.get("matching")),
        scoring_weights=ScoringWeights.from_mapping(payload.get("scoring_weights")),
        major_categories=MajorCategoryTable.from_mapping(payload.get("major_categories")),
    )
