"""
Candidate pool loading and query-side filtering.

Mirrors what the candidate store does before a pool reaches the
pipeline: location/sector substring filters, a minimum experience,
ordering by prior score and a hard cap on pool size.
"""

import json
from pathlib import Path
from typing import Iterable, Optional

import yaml
from loguru import logger

from shared.models import CandidateProfile, MatchFilters

MAX_POOL_SIZE = 200


def _contains(value: Optional[str], needle: Optional[str]) -> bool:
    if not needle or needle.lower() == "all":
        return True
    return bool(value) and needle.lower() in value.lower()


def filter_candidate_pool(
    candidates: Iterable[CandidateProfile],
    filters: Optional[MatchFilters] = None,
    cap: int = MAX_POOL_SIZE,
) -> list[CandidateProfile]:
    """
    Apply store-side filters and the hard pool cap.

    Candidates are ordered by prior_score (highest first, missing last)
    before capping; ties keep their input order.
    """
    filters = filters or MatchFilters()
    candidates = list(candidates)

    kept = [
        c
        for c in candidates
        if _contains(c.location, filters.location)
        and _contains(c.sector, filters.sector)
        and (
            not filters.min_experience
            or (c.years_experience is not None and c.years_experience >= filters.min_experience)
        )
    ]
    kept.sort(key=lambda c: (c.prior_score is None, -(c.prior_score or 0.0)))
    if len(kept) > cap:
        logger.info(f"Capping candidate pool at {cap} (had {len(kept)})")
        kept = kept[:cap]

    logger.info(f"Filtered candidate pool {len(candidates)} -> {len(kept)}")
    return kept


def load_candidate_pool(path: Path) -> list[CandidateProfile]:
    """Load candidates from a YAML or JSON file (a list, or {"candidates": [...]})."""
    if not path.exists():
        raise FileNotFoundError(f"Candidate file not found: {path}")

    with open(path) as f:
        if path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    if isinstance(data, dict):
        data = data.get("candidates", [])
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of candidates in {path}")

    candidates = [CandidateProfile.model_validate(item) for item in data]
    logger.info(f"Loaded {len(candidates)} candidates from {path}")
    return candidates
