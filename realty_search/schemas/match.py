# realty_search/schemas/match.py
from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PartialMatch(BaseModel):
    """
    A range (or city) filter that was not fully satisfied but still earned credit.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    filter_name: str
    expected: Union[int, float, str, bool]
    actual: Optional[Union[int, float, str, bool]] = None
    match_percentage: float

    @field_validator("match_percentage")
    @classmethod
    def percentage_in_range(cls, v: float) -> float:
        if not (0.0 <= v <= 1.0):
            raise ValueError("match_percentage must be in [0.0, 1.0]")
        return v


class FilterMatchResult(BaseModel):
    """
    Result of matching one listing against the extracted filters:
    - score: matched_weight / total_weight (1.0 when no filters were given)
    - matched_filters / unmatched_filters: filter names
    - partial_matches: range filters with fractional credit
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    score: float = 1.0
    matched_filters: List[str] = Field(default_factory=list)
    unmatched_filters: List[str] = Field(default_factory=list)
    partial_matches: List[PartialMatch] = Field(default_factory=list)
    total_weight: float = 0.0
    matched_weight: float = 0.0

    def is_full_match(self) -> bool:
        return not self.unmatched_filters and not self.partial_matches
