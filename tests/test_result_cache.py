from __future__ import annotations

import pandas as pd
import pytest

from src.pipeline.cache import MatchResultCache
from src.rank.results import MatchCategory, MatchResult


class _FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _result(scholarship_id: str) -> MatchResult:
    scholarships = pd.DataFrame([{"id": scholarship_id, "score": 90}])
    return MatchResult(
        scholarships=scholarships,
        categories=[MatchCategory(name="Best Matches", scholarships=scholarships)],
        total_matches=1,
    )


def test_entry_is_served_within_ttl_and_evicted_after() -> None:
    clock = _FakeClock()
    cache = MatchResultCache(ttl_seconds=300, clock=clock)
    result = _result("a")

    cache.set("profile-1", result)
    clock.now += 240
    assert cache.get("profile-1") is result

    clock.now += 120
    assert cache.get("profile-1") is None
    assert len(cache) == 0


def test_entry_expires_exactly_at_ttl() -> None:
    clock = _FakeClock()
    cache = MatchResultCache(ttl_seconds=300, clock=clock)

    cache.set("profile-1", _result("a"))
    clock.now += 300

    assert cache.get("profile-1") is None


def test_set_overwrites_and_refreshes_timestamp() -> None:
    clock = _FakeClock()
    cache = MatchResultCache(ttl_seconds=300, clock=clock)
    newer = _result("b")

    cache.set("profile-1", _result("a"))
    clock.now += 200
    cache.set("profile-1", newer)
    clock.now += 200

    assert cache.get("profile-1") is newer
    assert len(cache) == 1


def test_oldest_entry_is_evicted_when_full() -> None:
    cache = MatchResultCache(ttl_seconds=300, max_entries=2, clock=_FakeClock())

    cache.set("one", _result("a"))
    cache.set("two", _result("b"))
    cache.set("three", _result("c"))

    assert cache.get("one") is None
    assert cache.get("two") is not None
    assert cache.get("three") is not None


def test_clear_empties_cache() -> None:
    cache = MatchResultCache(clock=_FakeClock())
    cache.set("one", _result("a"))

    cache.clear()

    assert len(cache) == 0
    assert cache.get("one") is None


@pytest.mark.parametrize("kwargs", [{"ttl_seconds": 0}, {"ttl_seconds": -5}, {"max_entries": 0}])
def test_invalid_cache_settings_are_rejected(kwargs: dict[str, int]) -> None:
    with pytest.raises(ValueError):
        MatchResultCache(**kwargs)
