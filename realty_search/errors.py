from enum import Enum
from typing import Optional


class SearchErrorCode(str, Enum):
    NO_EMBEDDING = "NO_EMBEDDING"
    DATABASE_ERROR = "DATABASE_ERROR"
    INVALID_FILTERS = "INVALID_FILTERS"
    NO_RESULTS = "NO_RESULTS"


class SearchError(Exception):
    """Raised by the search orchestrator. The ranking core itself never raises."""

    def __init__(self, message: str, code: SearchErrorCode, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.code = code
        self.cause = cause

    def __str__(self) -> str:
        return f"[{self.code.value}] {super().__str__()}"


class CandidateSourceError(Exception):
    """A candidate source (vector search, listing store, fixtures) failed."""


class ListingNotFoundError(CandidateSourceError):
    """The requested listing is unknown to the source or has no embedding."""
