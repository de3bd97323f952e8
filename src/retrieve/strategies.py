from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Sequence

import pandas as pd

from src.normalize.profile import UserProfile
from src.normalize.schema import prepare_scholarship_df
from src.store.base import AnyOf, Contains, Eq, Filter, IsNull, Lte, RecordStore

logger = logging.getLogger(__name__)

DEFAULT_RETRIEVAL_LIMIT = 100
MATCH_FUNCTION = "match_scholarships"


class RetrievalError(RuntimeError):
    """A single retrieval strategy failed; the next strategy is tried."""


class RetrievalStrategy(ABC):
    name: str

    @abstractmethod
    def fetch(self, store: RecordStore, profile: UserProfile, *, limit: int) -> pd.DataFrame:
        """Return candidate scholarship rows for the profile."""


class ServerQueryStrategy(RetrievalStrategy):
    name = "server_query"

    def fetch(self, store: RecordStore, profile: UserProfile, *, limit: int) -> pd.DataFrame:
        return store.call_function(
            MATCH_FUNCTION,
            {
                "user_education": profile.education_level,
                "user_gpa": profile.gpa,
                "user_location": profile.location,
                "user_major": profile.major,
                "limit_count": limit,
            },
        )


def build_candidate_filters(profile: UserProfile) -> list[Filter]:
    return [
        AnyOf((IsNull("gpa_requirement"), Lte("gpa_requirement", profile.gpa))),
        AnyOf((Contains("education_level", profile.education_level), IsNull("education_level"))),
        AnyOf((Eq("state", profile.location), Eq("national", True), IsNull("state"))),
    ]


class FilteredQueryStrategy(RetrievalStrategy):
    name = "filtered_query"

    def fetch(self, store: RecordStore, profile: UserProfile, *, limit: int) -> pd.DataFrame:
        return store.query_scholarships(build_candidate_filters(profile), limit=limit)


class UnfilteredFetchStrategy(RetrievalStrategy):
    name = "unfiltered_fetch"

    def fetch(self, store: RecordStore, profile: UserProfile, *, limit: int) -> pd.DataFrame:
        return store.query_scholarships((), limit=limit)


DEFAULT_STRATEGIES: tuple[RetrievalStrategy, ...] = (
    ServerQueryStrategy(),
    FilteredQueryStrategy(),
    UnfilteredFetchStrategy(),
)


def retrieve_candidates(
    store: RecordStore,
    profile: UserProfile,
    *,
    strategies: Sequence[RetrievalStrategy] = DEFAULT_STRATEGIES,
    limit: int = DEFAULT_RETRIEVAL_LIMIT,
) -> pd.DataFrame:
    """Fetch a candidate pool, falling through the strategies in order.

    Each strategy runs at most once. When every strategy fails the result is
    an empty frame rather than an exception.
    """

    for strategy in strategies:
        try:
            candidates = strategy.fetch(store, profile, limit=limit)
            if candidates is None:
                raise RetrievalError(f"Strategy '{strategy.name}' returned no frame.")
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Candidate retrieval via %s failed (%s); trying next strategy.",
                strategy.name,
                type(exc).__name__,
                exc_info=True,
            )
            continue

        logger.info("Retrieved %d candidates via %s", len(candidates), strategy.name)
        return prepare_scholarship_df(candidates.head(limit))

    logger.error("All %d retrieval strategies failed; returning no candidates.", len(strategies))
    return prepare_scholarship_df([])
