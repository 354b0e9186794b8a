# realty_search/config.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from realty_search.schemas.response import SearchConfig

load_dotenv()

# --- Logging ---

LOG_LEVEL: str = os.getenv("REALTY_SEARCH_LOG_LEVEL", "INFO").strip().upper() or "INFO"

# Optional file that receives DEBUG and above
LOG_FILE: Optional[str] = os.getenv("REALTY_SEARCH_LOG_FILE", "").strip() or None

# --- Candidate sources ---

# Offline candidate set used by smoke scripts and the fixture source
FIXTURES_PATH: Path = Path(os.getenv("REALTY_SEARCH_FIXTURES_PATH", "fixtures/listings_sample.json"))


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def load_search_config() -> SearchConfig:
    """
    Orchestration limits come from the environment.
    Ranking weights are NOT configurable here; they stay compiled-in defaults.
    """
    max_results = _env_int("REALTY_SEARCH_MAX_RESULTS", 20)
    return SearchConfig(
        similarity_threshold=_env_float("REALTY_SEARCH_SIMILARITY_THRESHOLD", 0.5),
        max_results=max_results if max_results >= 1 else 20,
    )
