"""
Ranker Service - Fast algorithmic pre-screening.

Scores every candidate in the pool on skills, experience, seniority and
location without any network calls.
"""

from .location import LocationMatcher, get_location_matcher
from .scorer import PreScreeningScorer, RankedCandidate
from .taxonomy import SkillsTaxonomy, get_taxonomy

__all__ = [
    "LocationMatcher",
    "get_location_matcher",
    "PreScreeningScorer",
    "RankedCandidate",
    "SkillsTaxonomy",
    "get_taxonomy",
]
