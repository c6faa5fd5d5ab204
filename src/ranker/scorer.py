"""
Pre-screening scorer.

Pure, deterministic scoring of one candidate against parsed job
requirements. Runs over the whole candidate pool, so it performs no I/O.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from shared.models import (
    CandidateProfile,
    MatchWeights,
    ParsedJobRequirement,
    PreScreeningScore,
    Seniority,
)

from .location import LocationMatcher, get_location_matcher
from .taxonomy import SkillsTaxonomy, get_taxonomy

NICE_TO_HAVE_FACTOR = 0.3
PARTIAL_SKILL_CREDIT = 0.5

EXPERIENCE_FLOOR = 20.0
EXPERIENCE_PENALTY_UNDER = 15.0  # points per year below the minimum
EXPERIENCE_PENALTY_OVER = 10.0  # points per year above the maximum
UNKNOWN_SCORE = 50.0

SENIORITY_SCORES = {0: 100.0, 1: 70.0}
SENIORITY_FAR_SCORE = 30.0


@dataclass
class RankedCandidate:
    """A candidate with its pre-screening score and rank position."""

    candidate: CandidateProfile
    score: PreScreeningScore
    input_index: int


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def experience_score(
    years: Optional[float],
    min_years: Optional[float],
    max_years: Optional[float],
) -> float:
    """100 inside [min, max], decaying linearly outside down to a floor."""
    if min_years is None and max_years is None:
        return 100.0
    if years is None:
        return UNKNOWN_SCORE

    if min_years is not None and years < min_years:
        shortfall = min_years - years
        return max(EXPERIENCE_FLOOR, 100.0 - shortfall * EXPERIENCE_PENALTY_UNDER)
    if max_years is not None and years > max_years:
        excess = years - max_years
        return max(EXPERIENCE_FLOOR, 100.0 - excess * EXPERIENCE_PENALTY_OVER)
    return 100.0


def seniority_score(
    candidate_level: Optional[str],
    required: Optional[Seniority],
) -> float:
    """Exact level 100, one level apart 70, further apart 30."""
    if required is None:
        return 100.0
    level = Seniority.from_text(candidate_level)
    if level is None:
        return UNKNOWN_SCORE
    return SENIORITY_SCORES.get(abs(level.rank - required.rank), SENIORITY_FAR_SCORE)


class PreScreeningScorer:
    """Scores and ranks candidates against parsed requirements."""

    def __init__(
        self,
        taxonomy: Optional[SkillsTaxonomy] = None,
        location_matcher: Optional[LocationMatcher] = None,
    ):
        self.taxonomy = taxonomy or get_taxonomy()
        self.location_matcher = location_matcher or get_location_matcher()

    def candidate_skills(self, candidate: CandidateProfile) -> frozenset[str]:
        """All of a candidate's skills in canonical form."""
        skills = set(self.taxonomy.normalize(candidate.skills_raw))
        skills |= self.taxonomy.canonicalize_all(
            [*candidate.hard_skills, *candidate.soft_skills, *candidate.certifications]
        )
        return frozenset(skills)

    def missing_certifications(
        self, skills_held: frozenset[str], required: Iterable[str]
    ) -> list[str]:
        """Required certifications not found among a candidate's skills."""
        missing = []
        for cert in required:
            label = self.taxonomy.canonicalize(cert)
            if not label or label in skills_held:
                continue
            if any(
                self.taxonomy.is_partial_match(label, skill)
                or re.search(r"\b" + re.escape(skill) + r"\b", label)
                for skill in skills_held
            ):
                continue
            missing.append(cert)
        return missing

    def passes(
        self,
        score: PreScreeningScore,
        min_score: float,
        max_deal_breakers: int = 1,
    ) -> bool:
        """
        Whether a candidate goes on to deep analysis.

        An incompatible location fails outright; otherwise the composite
        must reach ``min_score`` with at most ``max_deal_breakers``
        failures. A missing location is never incompatible.
        """
        if score.location_match is not None and not score.location_match.compatible:
            return False
        return (
            score.composite_score >= min_score
            and len(score.deal_breaker_failures) <= max_deal_breakers
        )

    def score(
        self,
        candidate: CandidateProfile,
        requirement: ParsedJobRequirement,
        weights: Optional[MatchWeights] = None,
    ) -> PreScreeningScore:
        """Score one candidate; all sub-scores and the composite are in [0, 100]."""
        weights = weights or MatchWeights()

        skills_held = self.candidate_skills(candidate)
        skill_match = self.taxonomy.match_skill_sets(
            skills_held,
            requirement.must_have_skills,
            requirement.nice_to_have_skills,
        )
        n_required = len(requirement.must_have_skills)
        if n_required:
            must = (
                len(skill_match.matched) + PARTIAL_SKILL_CREDIT * len(skill_match.partial)
            ) / n_required
        else:
            must = 1.0
        n_preferred = len(requirement.nice_to_have_skills)
        if n_preferred:
            nice = (
                len(skill_match.preferred_matched)
                + PARTIAL_SKILL_CREDIT * len(skill_match.preferred_partial)
            ) / n_preferred
        else:
            nice = 0.0
        skills = _clamp(must * 100 + NICE_TO_HAVE_FACTOR * nice * 100)

        location_match = self.location_matcher.match_location(
            candidate.location, requirement.location
        )
        experience = experience_score(
            candidate.years_experience,
            requirement.min_experience_years,
            requirement.max_experience_years,
        )
        seniority = seniority_score(candidate.seniority_level, requirement.seniority)

        deal_breakers = []
        if not location_match.compatible:
            deal_breakers.append(f"Location incompatible: {location_match.reason}")
        for cert in self.missing_certifications(skills_held, requirement.certifications_required):
            deal_breakers.append(f"Missing required certification: {cert}")

        composite = _clamp(
            weights.skills * skills
            + weights.location * location_match.score
            + weights.experience * experience
            + weights.seniority * seniority
        )

        return PreScreeningScore(
            candidate_id=candidate.id,
            skills_score=round(skills, 2),
            location_score=round(location_match.score, 2),
            experience_score=round(experience, 2),
            seniority_score=round(seniority, 2),
            composite_score=round(composite, 2),
            deal_breaker_failures=deal_breakers,
            skill_match=skill_match,
            location_match=location_match,
        )

    def rank(
        self,
        candidates: Iterable[CandidateProfile],
        requirement: ParsedJobRequirement,
        weights: Optional[MatchWeights] = None,
    ) -> list[RankedCandidate]:
        """
        Score every candidate and sort best first.

        Ties on composite score break on prior_score (higher first,
        missing last), then on input order.
        """
        scored = [
            RankedCandidate(candidate=c, score=self.score(c, requirement, weights), input_index=i)
            for i, c in enumerate(candidates)
        ]
        scored.sort(
            key=lambda r: (
                -r.score.composite_score,
                r.candidate.prior_score is None,
                -(r.candidate.prior_score or 0.0),
                r.input_index,
            )
        )
        return scored
