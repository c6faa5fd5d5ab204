"""
Deep candidate analysis using the LLM.

Sends pre-screened candidates to the model in small batches and turns
the per-candidate verdicts into DeepAssessment objects. A failed batch
or a malformed entry only loses the candidates concerned.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as SchemaError

from shared.errors import MatchingError
from shared.llm import LLMGateway
from shared.models import (
    CandidateProfile,
    DeepAssessment,
    MatchWeights,
    ParsedJobRequirement,
    PreScreeningScore,
)

SYSTEM_PROMPT = """You are an expert senior recruitment consultant performing detailed candidate assessments.

For every candidate, analyze them against the job requirements and provide:
1. A refined holistic match score from 0-100
2. A classification of each required and preferred skill as matched, missing or partial. The pre-screen classification is mechanical; override it where the candidate's context shows otherwise.
3. 2-4 sentences of specific strengths for this role, and 2-4 sentences of concerns or gaps
4. 2-3 targeted interview questions probing the weakest areas
5. Risk signals: overqualification risk, career trajectory fit, salary expectation fit

Scoring guidelines:
- 90-100: Exceptional match, hire immediately
- 80-89: Strong match, prioritize for interview
- 70-79: Good match, worth interviewing
- 60-69: Moderate match, consider if pipeline is thin
- 50-59: Weak match, significant gaps
- Below 50: Poor match, do not progress

Be specific and actionable. Reference exact skills, experience and requirements.

IMPORTANT: Respond ONLY with valid JSON in the exact format specified. Return one entry per candidate, using the candidate ID exactly as given."""

RESPONSE_FORMAT = """{"analyses": [
  {
    "cv_id": "<candidate ID>",
    "match_score": <0-100>,
    "explanation": "<2-3 sentence explanation of the score>",
    "skills_matched": ["<skill>", ...],
    "skills_missing": ["<skill>", ...],
    "skills_partial": ["<skill>", ...],
    "strengths": ["<strength>", ...],
    "fit_concerns": ["<concern>", ...],
    "interview_questions": ["<question>", ...],
    "overqualification_risk": "<none|low|medium|high>",
    "career_trajectory_fit": "<poor|moderate|good|excellent>",
    "salary_expectation_fit": "<below|within|above|unknown>"
  }
]}"""

RISK_VALUES = {"none", "low", "medium", "high"}
TRAJECTORY_VALUES = {"poor", "moderate", "good", "excellent"}
SALARY_VALUES = {"below", "within", "above", "unknown"}


class AssessmentPayload(BaseModel):
    """Boundary schema for one entry of the analysis payload."""

    cv_id: str
    match_score: float
    explanation: str
    skills_matched: list[str] = Field(default_factory=list)
    skills_missing: list[str] = Field(default_factory=list)
    skills_partial: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    fit_concerns: list[str] = Field(default_factory=list)
    interview_questions: list[str] = Field(default_factory=list)
    overqualification_risk: str = "unknown"
    career_trajectory_fit: str = "unknown"
    salary_expectation_fit: str = "unknown"

    @field_validator("cv_id", mode="before")
    @classmethod
    def _id_as_str(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator(
        "skills_matched",
        "skills_missing",
        "skills_partial",
        "strengths",
        "fit_concerns",
        "interview_questions",
        mode="before",
    )
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @staticmethod
    def _enum(value: Optional[str], allowed: set[str]) -> str:
        value = (value or "").strip().lower()
        return value if value in allowed else "unknown"

    def to_assessment(self) -> DeepAssessment:
        score = self.match_score
        if not 0 <= score <= 100:
            logger.warning(f"Invalid score {score} for {self.cv_id}, clamping to range 0-100")
            score = max(0.0, min(100.0, score))

        return DeepAssessment(
            candidate_id=self.cv_id,
            ai_score=score,
            explanation=self.explanation.strip(),
            skills_matched=self.skills_matched,
            skills_missing=self.skills_missing,
            skills_partial=self.skills_partial,
            strengths=self.strengths,
            fit_concerns=self.fit_concerns,
            interview_questions=self.interview_questions,
            overqualification_risk=self._enum(self.overqualification_risk, RISK_VALUES),
            career_trajectory_fit=self._enum(self.career_trajectory_fit, TRAJECTORY_VALUES),
            salary_expectation_fit=self._enum(self.salary_expectation_fit, SALARY_VALUES),
        )


@dataclass
class AnalysisOutcome:
    """What a deep-analysis pass produced."""

    assessments: dict[str, DeepAssessment] = field(default_factory=dict)
    failed_ids: list[str] = field(default_factory=list)
    timed_out: bool = False
    errors: dict[int, str] = field(default_factory=dict)  # batch number -> error code


def _format_list(items: Any, empty: str = "None") -> str:
    items = [str(i) for i in items or [] if i]
    return ", ".join(items) if items else empty


def _format_years(years: Optional[float]) -> str:
    return f"{years:g} years" if years is not None else "Not specified"


class DeepAnalyzer:
    """Runs the expensive, model-backed assessment on a pre-selected subset."""

    def __init__(
        self,
        gateway: LLMGateway,
        batch_size: int = 5,
        max_concurrency: int = 3,
        model: Optional[str] = None,
    ):
        self.gateway = gateway
        self.batch_size = max(1, batch_size)
        self.max_concurrency = max(1, max_concurrency)
        self.model = model

    def _requirements_section(
        self, requirement: ParsedJobRequirement, job_description: str
    ) -> str:
        if requirement.min_experience_years is None:
            experience = "Not specified"
        elif requirement.max_experience_years is None:
            experience = f"{requirement.min_experience_years:g}+ years"
        else:
            experience = (
                f"{requirement.min_experience_years:g}-"
                f"{requirement.max_experience_years:g} years"
            )
        location = requirement.location
        place = location.city or location.region or location.raw or "Flexible"

        section = f"""## Job Requirements Summary
**Title:** {requirement.title}
**Seniority:** {requirement.seniority.value if requirement.seniority else "Not specified"}
**Location:** {place} (work mode: {location.work_mode.value})
**Experience Required:** {experience}
**Sector:** {requirement.sector or "Not specified"}

**Must-Have Skills:** {_format_list(sorted(requirement.must_have_skills))}
**Nice-to-Have Skills:** {_format_list(sorted(requirement.nice_to_have_skills))}
**Required Certifications:** {_format_list(requirement.certifications_required, "None specified")}
**Deal Breakers:** {_format_list(requirement.deal_breakers, "None specified")}
**Education:** {requirement.education_requirement or "Not specified"}"""

        if requirement.key_responsibilities:
            responsibilities = "\n".join(f"- {r}" for r in requirement.key_responsibilities)
            section += f"\n\n**Key Responsibilities:**\n{responsibilities}"

        if job_description:
            section += f"\n\n## Full Job Description\n{job_description.strip()}"
        return section

    def _candidate_section(
        self,
        index: int,
        candidate: CandidateProfile,
        score: Optional[PreScreeningScore],
    ) -> str:
        lines = [
            f"### Candidate {index} (ID: {candidate.id})",
            f"**Current Role:** {candidate.job_title or 'Not specified'}",
            f"**Location:** {candidate.location or 'Not specified'}",
            f"**Experience:** {_format_years(candidate.years_experience)}",
            f"**Seniority:** {candidate.seniority_level or 'Not specified'}",
            f"**Sector:** {candidate.sector or 'Not specified'}",
            f"**Skills:** {candidate.skills_raw or 'Not specified'}",
        ]
        if candidate.hard_skills or candidate.soft_skills:
            lines.append(
                f"**Hard / Soft Skills:** {_format_list(candidate.hard_skills)} / "
                f"{_format_list(candidate.soft_skills)}"
            )
        if score is not None:
            match = score.skill_match
            lines += [
                f"**Pre-Screen Score:** {score.composite_score:.0f}/100",
                f"**Skills Matched:** {_format_list(match.matched)}",
                f"**Skills Partial:** {_format_list(match.partial)}",
                f"**Skills Missing:** {_format_list(match.missing)}",
            ]
            if score.location_match is not None:
                lines.append(f"**Location Fit:** {score.location_match.reason}")
        lines += [
            f"**Key Achievements:** {' | '.join(candidate.key_achievements[:3]) or 'Not specified'}",
            f"**Career Progression:** {candidate.career_progression or 'Not specified'}",
            f"**Education:** {candidate.education_level or 'Not specified'}",
            f"**Certifications:** {_format_list(candidate.certifications, 'None listed')}",
            f"**Summary:** {candidate.summary or 'No summary available'}",
        ]
        return "\n".join(lines)

    def build_prompt(
        self,
        requirement: ParsedJobRequirement,
        batch: list[CandidateProfile],
        scores: dict[str, PreScreeningScore],
        job_description: str = "",
        weights: Optional[MatchWeights] = None,
    ) -> str:
        weights = weights or MatchWeights()
        candidates = "\n\n---\n\n".join(
            self._candidate_section(i, c, scores.get(c.id)) for i, c in enumerate(batch, 1)
        )
        return f"""{self._requirements_section(requirement, job_description)}

## Recruiter Priorities
Skills {weights.skills:.0%}, experience {weights.experience:.0%}, seniority {weights.seniority:.0%}, location {weights.location:.0%}.

## Candidates to Analyze (Pre-Screened)
{candidates}

## Task:
Analyze each candidate and respond in the following JSON format only:

{RESPONSE_FORMAT}"""

    def _parse_batch(
        self,
        payload: dict[str, Any],
        batch: list[CandidateProfile],
        batch_no: int,
    ) -> dict[str, DeepAssessment]:
        expected = {c.id for c in batch}
        entries = payload.get("analyses")
        if not isinstance(entries, list):
            logger.bind(stage="deep_analysis", batch=batch_no).error(
                "Analysis payload has no 'analyses' list"
            )
            return {}

        assessments: dict[str, DeepAssessment] = {}
        for entry in entries:
            try:
                parsed = AssessmentPayload.model_validate(entry)
            except SchemaError as e:
                cv_id = entry.get("cv_id") if isinstance(entry, dict) else None
                logger.bind(stage="deep_analysis", batch=batch_no, candidate_id=cv_id).warning(
                    f"Dropping malformed assessment: {e.error_count()} validation errors"
                )
                continue
            if parsed.cv_id not in expected:
                logger.bind(stage="deep_analysis", batch=batch_no).warning(
                    f"Ignoring assessment for unknown candidate {parsed.cv_id}"
                )
                continue
            assessments.setdefault(parsed.cv_id, parsed.to_assessment())
        return assessments

    async def _analyze_batch(
        self,
        semaphore: asyncio.Semaphore,
        batch_no: int,
        batch: list[CandidateProfile],
        requirement: ParsedJobRequirement,
        scores: dict[str, PreScreeningScore],
        job_description: str,
        weights: Optional[MatchWeights],
    ) -> tuple[dict[str, DeepAssessment], Optional[str]]:
        ids = [c.id for c in batch]
        context = {"stage": "deep_analysis", "batch": batch_no, "candidate_ids": ids}
        log = logger.bind(**context)

        async with semaphore:
            prompt = self.build_prompt(requirement, batch, scores, job_description, weights)
            try:
                payload = await self.gateway.complete_json(
                    SYSTEM_PROMPT,
                    prompt,
                    model=self.model,
                    temperature=0.2,
                    max_tokens=1200 * len(batch) + 500,
                    context=context,
                )
            except MatchingError as e:
                log.error(f"Deep analysis failed for batch {batch_no} ({e.code}): {e.message}")
                return {}, e.code
            except Exception as e:
                log.exception(f"Unexpected error analysing batch {batch_no}: {e}")
                return {}, "internal_error"

        assessments = self._parse_batch(payload, batch, batch_no)
        missing = [i for i in ids if i not in assessments]
        if missing:
            log.warning(f"Batch {batch_no}: no usable assessment for {missing}")
        log.info(f"Batch {batch_no}: analyzed {len(assessments)}/{len(batch)} candidates")
        return assessments, None

    async def run(
        self,
        requirement: ParsedJobRequirement,
        top_candidates: list[CandidateProfile],
        weights: Optional[MatchWeights] = None,
        scores: Optional[dict[str, PreScreeningScore]] = None,
        job_description: str = "",
        deadline_seconds: Optional[float] = None,
    ) -> AnalysisOutcome:
        """
        Analyze exactly the candidates given, batch by batch.

        Batches run concurrently up to max_concurrency. When the deadline
        passes, unfinished batches are cancelled and whatever completed is
        returned.
        A failed batch records its error code in ``errors``.
        """
        outcome = AnalysisOutcome()
        if not top_candidates:
            return outcome

        scores = scores or {}
        semaphore = asyncio.Semaphore(self.max_concurrency)
        batches = [
            top_candidates[i : i + self.batch_size]
            for i in range(0, len(top_candidates), self.batch_size)
        ]
        logger.info(
            f"Deep analysis: {len(top_candidates)} candidates in {len(batches)} batches "
            f"(concurrency {self.max_concurrency})"
        )

        tasks = [
            asyncio.create_task(
                self._analyze_batch(
                    semaphore, n, batch, requirement, scores, job_description, weights
                )
            )
            for n, batch in enumerate(batches, 1)
        ]
        done, pending = await asyncio.wait(tasks, timeout=deadline_seconds)

        if pending:
            outcome.timed_out = True
            logger.bind(stage="deep_analysis").warning(
                f"Deadline of {deadline_seconds}s reached, cancelling {len(pending)} batches"
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        for batch_no, task in enumerate(tasks, 1):
            if task in done:
                assessments, error = task.result()
                outcome.assessments.update(assessments)
                if error:
                    outcome.errors[batch_no] = error

        outcome.failed_ids = [c.id for c in top_candidates if c.id not in outcome.assessments]
        return outcome

    async def analyze(
        self,
        requirement: ParsedJobRequirement,
        top_candidates: list[CandidateProfile],
        weights: Optional[MatchWeights] = None,
        **kwargs: Any,
    ) -> dict[str, DeepAssessment]:
        """Assessments keyed by candidate id; failed candidates are absent."""
        outcome = await self.run(requirement, top_candidates, weights, **kwargs)
        return outcome.assessments
