from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence, Union

import pandas as pd


class StoreError(RuntimeError):
    """Raised by record stores for any failed query or write."""


@dataclass(frozen=True, slots=True)
class IsNull:
    column: str


@dataclass(frozen=True, slots=True)
class Eq:
    column: str
    value: Any


@dataclass(frozen=True, slots=True)
class Lte:
    column: str
    value: Any


@dataclass(frozen=True, slots=True)
class Contains:
    """Array column contains ``value``."""

    column: str
    value: Any


@dataclass(frozen=True, slots=True)
class AnyOf:
    """Disjunction of simple predicates."""

    predicates: tuple[Union[IsNull, Eq, Lte, Contains], ...]


Filter = Union[IsNull, Eq, Lte, Contains, AnyOf]


class RecordStore(ABC):
    """Scholarship persistence as seen by the matching pipeline."""

    table: str = "scholarships"

    @abstractmethod
    def query_scholarships(self, filters: Sequence[Filter] = (), *, limit: int = 100) -> pd.DataFrame:
        """Return rows matching every filter (ANDed), at most ``limit``."""

    @abstractmethod
    def call_function(self, name: str, params: Mapping[str, Any]) -> pd.DataFrame:
        """Run a server-side query function and return its rows."""

    @abstractmethod
    def upsert(self, records: Iterable[Mapping[str, Any]]) -> int:
        """Insert or replace records by id; returns the number written."""

    @abstractmethod
    def delete(self, scholarship_ids: Iterable[str]) -> int:
        """Delete records by id; returns the number removed."""

    @abstractmethod
    def increment_popularity(self, scholarship_id: str) -> None:
        """Bump the popularity counter of one scholarship."""
