"""
Pydantic models for the matching pipeline.

Attributes are snake_case; the caller-facing JSON uses camelCase
aliases (dump with ``by_alias=True``).
"""

import re
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model accepting both snake_case and camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Seniority(str, Enum):
    """Seniority ladder, lowest first."""

    ENTRY = "entry"
    JUNIOR = "junior"
    MID = "mid"
    SENIOR = "senior"
    LEAD = "lead"
    MANAGER = "manager"
    DIRECTOR = "director"
    EXECUTIVE = "executive"

    @property
    def rank(self) -> int:
        return _SENIORITY_ORDER.index(self)

    @classmethod
    def from_text(cls, text: Optional[str]) -> Optional["Seniority"]:
        """
        Map a free-text level or job title onto the ladder.

        The longest alias found wins, so "Senior Manager" resolves to
        manager and "Senior Vice President" to executive. Modifier words
        such as "associate" only count when no other level is named:
        "Associate Director" is a director, "Senior Associate" senior.
        """
        if not text:
            return None
        normalized = " ".join(text.lower().replace("_", " ").split())
        try:
            return cls(normalized)
        except ValueError:
            pass

        found = [
            (alias, level)
            for alias, level in _SENIORITY_ALIASES.items()
            if re.search(r"(?<![a-z])" + re.escape(alias) + r"(?![a-z])", normalized)
        ]
        if any(alias not in _SENIORITY_MODIFIERS for alias, _ in found):
            found = [(alias, level) for alias, level in found if alias not in _SENIORITY_MODIFIERS]
        if not found:
            return None
        _, level = max(found, key=lambda item: (len(item[0]), item[1].rank))
        return level


_SENIORITY_ORDER = list(Seniority)

_SENIORITY_ALIASES: dict[str, Seniority] = {
    "entry": Seniority.ENTRY,
    "entry level": Seniority.ENTRY,
    "entry-level": Seniority.ENTRY,
    "graduate": Seniority.ENTRY,
    "intern": Seniority.ENTRY,
    "trainee": Seniority.ENTRY,
    "apprentice": Seniority.ENTRY,
    "junior": Seniority.JUNIOR,
    "jr": Seniority.JUNIOR,
    "associate": Seniority.JUNIOR,
    "mid": Seniority.MID,
    "mid-level": Seniority.MID,
    "mid level": Seniority.MID,
    "intermediate": Seniority.MID,
    "senior": Seniority.SENIOR,
    "sr": Seniority.SENIOR,
    "experienced": Seniority.SENIOR,
    "lead": Seniority.LEAD,
    "principal": Seniority.LEAD,
    "staff engineer": Seniority.LEAD,
    "staff software engineer": Seniority.LEAD,
    "staff accountant": Seniority.JUNIOR,
    "manager": Seniority.MANAGER,
    "mgr": Seniority.MANAGER,
    "team lead": Seniority.MANAGER,
    "supervisor": Seniority.MANAGER,
    "director": Seniority.DIRECTOR,
    "head": Seniority.DIRECTOR,
    "head of": Seniority.DIRECTOR,
    "vp": Seniority.EXECUTIVE,
    "vice president": Seniority.EXECUTIVE,
    "svp": Seniority.EXECUTIVE,
    "senior vice president": Seniority.EXECUTIVE,
    "c-level": Seniority.EXECUTIVE,
    "c level": Seniority.EXECUTIVE,
    "chief": Seniority.EXECUTIVE,
    "executive": Seniority.EXECUTIVE,
    "ceo": Seniority.EXECUTIVE,
    "cfo": Seniority.EXECUTIVE,
    "cto": Seniority.EXECUTIVE,
    "coo": Seniority.EXECUTIVE,
    "partner": Seniority.EXECUTIVE,
}

# Words that qualify another level rather than name one
_SENIORITY_MODIFIERS = {"associate"}


class WorkMode(str, Enum):
    """How a job expects to be worked."""

    REMOTE = "remote"
    HYBRID = "hybrid"
    ONSITE = "onsite"
    UNSPECIFIED = "unspecified"


class LocationRequirement(CamelModel):
    """Where a job is based and whether it can be done remotely."""

    model_config = ConfigDict(frozen=True)

    raw: str = Field(default="", description="Location text as written in the job")
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    work_mode: WorkMode = WorkMode.UNSPECIFIED

    @property
    def is_remote(self) -> bool:
        return self.work_mode == WorkMode.REMOTE

    @property
    def requires_onsite(self) -> bool:
        return self.work_mode == WorkMode.ONSITE


class ParsedJobRequirement(CamelModel):
    """Structured requirements extracted once per run from the job text."""

    model_config = ConfigDict(frozen=True)

    title: str
    must_have_skills: frozenset[str] = Field(default_factory=frozenset)
    nice_to_have_skills: frozenset[str] = Field(default_factory=frozenset)
    min_experience_years: Optional[float] = None
    max_experience_years: Optional[float] = None
    seniority: Optional[Seniority] = None
    location: LocationRequirement = Field(default_factory=LocationRequirement)
    sector: Optional[str] = None

    certifications_required: tuple[str, ...] = ()
    key_responsibilities: tuple[str, ...] = ()
    deal_breakers: tuple[str, ...] = ()
    education_requirement: Optional[str] = None

    @field_serializer("must_have_skills", "nice_to_have_skills")
    def _sorted_skills(self, skills: frozenset[str]) -> list[str]:
        return sorted(skills)


class CandidateProfile(CamelModel):
    """Read-only snapshot of a candidate supplied by the candidate store."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    skills_raw: str = ""
    years_experience: Optional[float] = None
    seniority_level: Optional[str] = None
    location: Optional[str] = None
    sector: Optional[str] = None
    prior_score: Optional[float] = Field(
        default=None, description="Existing CV quality score, tie-breaker only"
    )

    # Pass-through and prompt context
    email: Optional[str] = None
    job_title: Optional[str] = None
    summary: Optional[str] = None
    hard_skills: tuple[str, ...] = ()
    soft_skills: tuple[str, ...] = ()
    certifications: tuple[str, ...] = ()
    key_achievements: tuple[str, ...] = ()
    career_progression: Optional[str] = None
    education_level: Optional[str] = None


class MatchWeights(CamelModel):
    """
    Weights of the pre-screening sub-scores.

    Summing to 1.0 is the convention, not a rule: callers may over- or
    under-weight deliberately and the composite is clamped instead.
    """

    skills: float = Field(default=0.40, ge=0, le=1)
    experience: float = Field(default=0.25, ge=0, le=1)
    seniority: float = Field(default=0.20, ge=0, le=1)
    location: float = Field(default=0.15, ge=0, le=1)

    def merged(self, overrides: Optional[dict[str, Any]]) -> "MatchWeights":
        """Return a copy with a partial override applied (validated)."""
        if not overrides:
            return self
        return MatchWeights.model_validate({**self.model_dump(), **overrides})


class SkillMatchResult(CamelModel):
    """Overlap between a candidate's skills and a job's skills."""

    matched: list[str] = Field(default_factory=list)
    partial: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)
    coverage_ratio: float = 1.0

    preferred_matched: list[str] = Field(default_factory=list)
    preferred_partial: list[str] = Field(default_factory=list)
    preferred_missing: list[str] = Field(default_factory=list)
    preferred_coverage_ratio: float = 0.0


class LocationMatch(CamelModel):
    """Location compatibility verdict."""

    compatible: bool
    score: float = Field(ge=0, le=100)
    reason: str
    tier: str


class PreScreeningScore(CamelModel):
    """Stage-1 output for one candidate."""

    candidate_id: str
    skills_score: float
    location_score: float
    experience_score: float
    seniority_score: float
    composite_score: float
    deal_breaker_failures: list[str] = Field(default_factory=list)

    skill_match: SkillMatchResult = Field(default_factory=SkillMatchResult, exclude=True)
    location_match: Optional[LocationMatch] = Field(default=None, exclude=True)


OverqualificationRisk = Literal["none", "low", "medium", "high", "unknown"]
TrajectoryFit = Literal["poor", "moderate", "good", "excellent", "unknown"]
SalaryFit = Literal["below", "within", "above", "unknown"]


class DeepAssessment(CamelModel):
    """Deep-analysis verdict for one candidate."""

    candidate_id: str
    ai_score: float = Field(ge=0, le=100)
    explanation: str = ""
    skills_matched: list[str] = Field(default_factory=list)
    skills_missing: list[str] = Field(default_factory=list)
    skills_partial: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    fit_concerns: list[str] = Field(default_factory=list)
    interview_questions: list[str] = Field(default_factory=list)
    overqualification_risk: OverqualificationRisk = "unknown"
    career_trajectory_fit: TrajectoryFit = "unknown"
    salary_expectation_fit: SalaryFit = "unknown"


class CandidateSummary(CamelModel):
    """Pass-through identity block attached to each result."""

    id: str
    name: str = ""
    email: Optional[str] = None
    job_title: Optional[str] = None
    sector: Optional[str] = None
    location: Optional[str] = None
    years_experience: Optional[float] = None
    prior_score: Optional[float] = None

    @classmethod
    def from_profile(cls, candidate: CandidateProfile) -> "CandidateSummary":
        return cls(
            id=candidate.id,
            name=candidate.name,
            email=candidate.email,
            job_title=candidate.job_title,
            sector=candidate.sector,
            location=candidate.location,
            years_experience=candidate.years_experience,
            prior_score=candidate.prior_score,
        )


class EnrichedMatchResult(CamelModel):
    """Final output for one deep-analyzed candidate."""

    candidate_id: str
    algorithmic_score: float
    ai_score: Optional[float] = None
    final_score: float
    score_basis: Literal["blended", "algorithmic"] = Field(
        description="Which scores final_score was computed from"
    )

    skills_matched: list[str] = Field(default_factory=list)
    skills_missing: list[str] = Field(default_factory=list)
    skills_partial: list[str] = Field(default_factory=list)

    strengths: list[str] = Field(default_factory=list)
    fit_concerns: list[str] = Field(default_factory=list)
    interview_questions: list[str] = Field(default_factory=list)
    explanation: str = ""

    overqualification_risk: str = "unknown"
    career_trajectory_fit: str = "unknown"
    salary_expectation_fit: str = "unknown"

    candidate: Optional[CandidateSummary] = None


class PipelineStats(CamelModel):
    """Run telemetry returned with every result."""

    total_candidates: int = 0
    pre_screened_count: int = 0
    ai_analyzed_count: int = 0
    processing_time_ms: float = 0.0

    analysis_budget: int = 0
    selected_for_analysis: int = 0
    failed_analysis_count: int = 0
    timed_out: bool = False
    analysis_errors: dict[str, int] = Field(
        default_factory=dict, description="Failed deep-analysis batches by error code"
    )

    @property
    def partial(self) -> bool:
        """True when fewer candidates were analyzed than were selected."""
        return self.ai_analyzed_count < self.selected_for_analysis


class PipelineResult(CamelModel):
    """The sole artifact returned to the caller."""

    matches: list[EnrichedMatchResult] = Field(default_factory=list)
    parsed_requirements: ParsedJobRequirement
    stats: PipelineStats


class MatchFilters(CamelModel):
    """Query-side filters applied by the candidate store."""

    location: Optional[str] = None
    sector: Optional[str] = None
    min_experience: Optional[float] = Field(default=None, ge=0)
    max_results: int = Field(default=25, ge=1, le=100)


class MatchRequest(CamelModel):
    """A caller's matching request."""

    job_description: str
    filters: MatchFilters = Field(default_factory=MatchFilters)
    weights: Optional[dict[str, float]] = None
