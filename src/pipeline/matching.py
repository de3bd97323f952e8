from __future__ import annotations

import concurrent.futures
import logging
from datetime import date
from typing import Any, Mapping, Sequence

from src.normalize.profile import UserProfile, normalize_answers, profile_fingerprint
from src.normalize.schema import coerce_float, is_missing
from src.pipeline.cache import MatchResultCache
from src.pipeline.config import MatchingConfig
from src.rank.categorize import categorize_matches
from src.rank.diversify import diversify_by_provider
from src.rank.eligibility import drop_disqualified, summarize_disqualifications
from src.rank.results import MatchResult
from src.rank.scoring import score_candidates
from src.rank.weights import MajorCategoryTable, ScoringWeights
from src.retrieve.strategies import DEFAULT_STRATEGIES, RetrievalStrategy, retrieve_candidates
from src.store.base import RecordStore

logger = logging.getLogger(__name__)


def increment_popularity(store: RecordStore, scholarship_id: str) -> bool:
    try:
        store.increment_popularity(scholarship_id)
    except Exception:  # noqa: BLE001
        logger.warning("Popularity update failed for scholarship %s", scholarship_id, exc_info=True)
        return False
    return True


def fallback_explanation(scholarship: Mapping[str, Any], profile: UserProfile) -> str:
    name = scholarship.get("name")
    name = "this" if is_missing(name) or not str(name).strip() else str(name).strip()
    amount = coerce_float(scholarship.get("amount")) or 0.0
    return (
        f"The {name} scholarship is a strong match for your profile. "
        f"With your GPA of {format(profile.gpa, 'g')} in {profile.major or 'your field'}, "
        f"you're well-positioned to apply for this ${amount:,.0f} award."
    )


class ScholarshipMatcher:
    """Runs the retrieve, score, filter, diversify and categorize stages for a profile."""

    def __init__(
        self,
        store: RecordStore,
        *,
        cache: MatchResultCache | None = None,
        config: MatchingConfig | None = None,
        weights: ScoringWeights | None = None,
        major_categories: MajorCategoryTable | None = None,
        strategies: Sequence[RetrievalStrategy] | None = None,
    ) -> None:
        self.store = store
        self.config = config or MatchingConfig.baseline()
        self.cache = cache or MatchResultCache(
            ttl_seconds=self.config.cache_ttl_seconds,
            max_entries=self.config.cache_max_entries,
        )
        self.weights = weights or ScoringWeights.baseline()
        self.major_categories = major_categories or MajorCategoryTable.baseline()
        self.strategies = tuple(strategies) if strategies is not None else DEFAULT_STRATEGIES
        self._background = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="popularity"
        )

    def __enter__(self) -> ScholarshipMatcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._background.shutdown(wait=True)

    def match_answers(self, raw_answers: Mapping[str, Any], *, today: date | None = None) -> MatchResult:
        return self.match(normalize_answers(raw_answers), today=today)

    def match(self, profile: UserProfile, *, today: date | None = None) -> MatchResult:
        effective_today = today or date.today()
        # Deadline scores depend on the day.
        cache_key = f"{profile_fingerprint(profile)}@{effective_today.isoformat()}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info("Using cached match result for %s", cache_key)
            return cached

        try:
            result = self._run(profile, effective_today)
        except Exception:  # noqa: BLE001
            logger.exception("Scholarship matching failed for %s", cache_key)
            return MatchResult.empty()

        if not result.is_empty:
            self.cache.set(cache_key, result)
        return result

    def _run(self, profile: UserProfile, today: date) -> MatchResult:
        candidates_df = retrieve_candidates(
            self.store,
            profile,
            strategies=self.strategies,
            limit=self.config.retrieval_limit,
        )
        if candidates_df.empty:
            logger.info("No candidate scholarships found")
            return MatchResult.empty()

        scored_df = score_candidates(
            candidates_df,
            profile,
            today=today,
            weights=self.weights,
            major_categories=self.major_categories,
        )
        eligible_df = drop_disqualified(scored_df)
        dropped = len(scored_df) - len(eligible_df)
        if dropped and logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Dropped %d disqualified candidates: %s",
                dropped,
                summarize_disqualifications(scored_df, profile, today),
            )

        ranked_df = diversify_by_provider(eligible_df, provider_limit=self.config.provider_limit)
        categories = categorize_matches(
            ranked_df,
            today=today,
            limit=self.config.category_limit,
            best_match_threshold=self.config.best_match_threshold,
        )
        logger.info(
            "Matched %d scholarships (%d scored, %d eligible)",
            len(ranked_df),
            len(scored_df),
            len(eligible_df),
        )
        return MatchResult(scholarships=ranked_df, categories=categories, total_matches=int(len(ranked_df)))

    def record_interest(self, scholarship_id: str) -> concurrent.futures.Future[bool]:
        """Queue a popularity bump without waiting for the store."""

        return self._background.submit(increment_popularity, self.store, scholarship_id)
