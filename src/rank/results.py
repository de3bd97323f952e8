from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from src.io.serialization import frame_to_records
from src.normalize.schema import SCHOLARSHIP_COLUMNS


@dataclass(slots=True)
class MatchCategory:
    name: str
    scholarships: pd.DataFrame
    count: int = 0

    def __post_init__(self) -> None:
        self.count = int(len(self.scholarships))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "count": self.count,
            "scholarships": frame_to_records(self.scholarships),
        }


@dataclass(slots=True)
class MatchResult:
    scholarships: pd.DataFrame
    categories: list[MatchCategory] = field(default_factory=list)
    total_matches: int = 0

    @classmethod
    def empty(cls) -> MatchResult:
        return cls(
            scholarships=pd.DataFrame(columns=[*SCHOLARSHIP_COLUMNS, "score"]),
            categories=[],
            total_matches=0,
        )

    @property
    def is_empty(self) -> bool:
        return self.total_matches == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "scholarships": frame_to_records(self.scholarships),
            "categories": [category.to_dict() for category in self.categories],
            "totalMatches": self.total_matches,
        }
