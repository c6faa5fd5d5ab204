"""
Matching pipeline orchestrator.

Parse → pre-screen and rank the whole pool → truncate to the analysis
budget → deep-analyze → merge and final-rank → return with telemetry.

The parse stage can abort a run. Deep-analysis failures shrink the
result set and show up in the stats, unless a quota or rate limit left
no candidate analyzed at all.
"""

import time
from collections import Counter
from typing import Optional

from loguru import logger

from matcher.deep_analyzer import AnalysisOutcome, DeepAnalyzer
from matcher.job_parser import JobRequirementParser
from ranker.scorer import PreScreeningScorer, RankedCandidate
from shared.config import PipelineConfig, Settings, get_settings
from shared.errors import QuotaExceeded, RateLimited, ValidationError
from shared.llm import LLMGateway
from shared.models import (
    CandidateProfile,
    CandidateSummary,
    DeepAssessment,
    EnrichedMatchResult,
    MatchWeights,
    PipelineResult,
    PipelineStats,
)


def blend_scores(
    algorithmic_score: float,
    ai_score: Optional[float],
    algorithmic_blend: float,
    ai_blend: float,
) -> tuple[float, str]:
    """
    Combine the pre-screen and AI scores.

    Returns:
        Tuple of (final score, basis). The basis is "algorithmic" only
        when no AI score exists.
    """
    if ai_score is None:
        return round(algorithmic_score, 2), "algorithmic"
    total = algorithmic_blend + ai_blend
    if total <= 0:
        return round(algorithmic_score, 2), "algorithmic"
    final = (algorithmic_score * algorithmic_blend + ai_score * ai_blend) / total
    return round(max(0.0, min(100.0, final)), 2), "blended"


class MatchingPipeline:
    """Two-stage CV-to-job matching: cheap pre-screen, then deep analysis."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        settings: Optional[Settings] = None,
        gateway: Optional[LLMGateway] = None,
        parser: Optional[JobRequirementParser] = None,
        scorer: Optional[PreScreeningScorer] = None,
        analyzer: Optional[DeepAnalyzer] = None,
    ):
        self.settings = settings or get_settings()
        self.config = config or self.settings.pipeline_config()

        self.gateway = gateway or LLMGateway(
            settings=self.settings,
            max_attempts=self.config.llm_max_attempts,
            initial_retry_delay=self.config.llm_initial_retry_delay,
            timeout_seconds=self.config.llm_timeout_seconds,
        )
        self.parser = parser or JobRequirementParser(
            self.gateway, min_chars=self.config.min_job_description_chars
        )
        self.scorer = scorer or PreScreeningScorer()
        self.analyzer = analyzer or DeepAnalyzer(
            self.gateway,
            batch_size=self.config.deep_batch_size,
            max_concurrency=self.config.deep_max_concurrency,
        )

    def analysis_budget(self, max_results: int) -> int:
        """Number of candidates deep analysis may spend calls on."""
        return max(0, min(max_results, self.config.analysis_budget_cap))

    def merge(
        self,
        ranked: RankedCandidate,
        assessment: DeepAssessment,
    ) -> EnrichedMatchResult:
        """Combine one candidate's pre-screen score with its deep assessment."""
        algorithmic = ranked.score.composite_score
        final, basis = blend_scores(
            algorithmic,
            assessment.ai_score,
            self.config.algorithmic_blend,
            self.config.ai_blend,
        )
        return EnrichedMatchResult(
            candidate_id=ranked.candidate.id,
            algorithmic_score=algorithmic,
            ai_score=assessment.ai_score,
            final_score=final,
            score_basis=basis,
            skills_matched=assessment.skills_matched,
            skills_missing=assessment.skills_missing,
            skills_partial=assessment.skills_partial,
            strengths=assessment.strengths,
            fit_concerns=assessment.fit_concerns,
            interview_questions=assessment.interview_questions,
            explanation=assessment.explanation,
            overqualification_risk=assessment.overqualification_risk,
            career_trajectory_fit=assessment.career_trajectory_fit,
            salary_expectation_fit=assessment.salary_expectation_fit,
            candidate=CandidateSummary.from_profile(ranked.candidate),
        )

    def _raise_if_unanalyzable(self, outcome: AnalysisOutcome) -> None:
        """
        Surface a throttling or billing failure that left nothing analyzed.

        When some candidates were analyzed the result is a partial success
        and the failures only show up in the stats.
        """
        if outcome.assessments or not outcome.errors:
            return
        codes = set(outcome.errors.values())
        context = {"stage": "deep_analysis", "batches": sorted(outcome.errors)}
        if codes == {QuotaExceeded.code}:
            raise QuotaExceeded(context=context)
        if codes == {RateLimited.code}:
            raise RateLimited(attempts=self.config.llm_max_attempts, context=context)

    async def run(
        self,
        candidate_pool: list[CandidateProfile],
        job_description: str,
        weights: Optional[MatchWeights] = None,
        max_results: int = 25,
        deadline_seconds: Optional[float] = None,
    ) -> PipelineResult:
        """
        Run the full pipeline for one job description.

        Args:
            candidate_pool: Candidates already filtered and capped by the store
            job_description: Free-text job description
            weights: Pre-screening weights (config default if None)
            max_results: Maximum matches to return
            deadline_seconds: Overall budget for deep analysis (config default if None)

        Raises:
            ValidationError: description too short; no model call is made
            ExtractionError, RateLimited, QuotaExceeded: requirement parsing failed
            RateLimited, QuotaExceeded: every deep-analysis batch was throttled
                or out of credits
        """
        start = time.perf_counter()
        weights = weights or self.config.weights
        deadline = deadline_seconds if deadline_seconds is not None else self.config.deadline_seconds

        if max_results < 1:
            raise ValidationError("max_results must be at least 1")
        text = (job_description or "").strip()
        if len(text) < self.config.min_job_description_chars:
            raise ValidationError(
                f"Job description must be at least "
                f"{self.config.min_job_description_chars} characters"
            )

        stats = PipelineStats(total_candidates=len(candidate_pool))
        logger.info(f"Starting matching pipeline: {stats.total_candidates} candidates")

        # Stage 1: parse (fatal on failure)
        requirement = await self.parser.parse(text)

        # Stage 2: pre-screen the whole pool
        ranked = self.scorer.rank(candidate_pool, requirement, weights)
        survivors = [
            r
            for r in ranked
            if self.scorer.passes(
                r.score, self.config.min_prescreen_score, self.config.max_deal_breakers
            )
        ]
        stats.pre_screened_count = len(survivors)
        logger.info(
            f"Pre-screened {stats.total_candidates} -> {stats.pre_screened_count} candidates "
            f"(min score {self.config.min_prescreen_score})"
        )

        # Stage 3: truncate to the analysis budget
        stats.analysis_budget = self.analysis_budget(max_results)
        selected = survivors[: stats.analysis_budget]
        stats.selected_for_analysis = len(selected)

        # Stage 4: deep analysis
        outcome = await self.analyzer.run(
            requirement,
            [r.candidate for r in selected],
            weights=weights,
            scores={r.candidate.id: r.score for r in selected},
            job_description=text,
            deadline_seconds=deadline,
        )
        stats.timed_out = outcome.timed_out
        stats.analysis_errors = dict(Counter(outcome.errors.values()))
        self._raise_if_unanalyzable(outcome)

        # Stage 5: merge and final-rank; candidates without an assessment are dropped
        merged: list[tuple[int, EnrichedMatchResult]] = []
        for position, entry in enumerate(selected):
            assessment = outcome.assessments.get(entry.candidate.id)
            if assessment is not None:
                merged.append((position, self.merge(entry, assessment)))
        merged.sort(key=lambda item: (-item[1].final_score, item[0]))
        matches = [result for _, result in merged][:max_results]

        stats.ai_analyzed_count = len(merged)
        stats.failed_analysis_count = stats.selected_for_analysis - stats.ai_analyzed_count
        stats.processing_time_ms = round((time.perf_counter() - start) * 1000, 1)

        if stats.partial:
            logger.warning(
                f"Partial analysis: {stats.ai_analyzed_count}/{stats.selected_for_analysis} "
                f"candidates analyzed (timed_out={stats.timed_out}, "
                f"failed={outcome.failed_ids})"
            )
        logger.info(
            f"Pipeline complete: {len(matches)} matches in {stats.processing_time_ms:.0f}ms"
        )

        return PipelineResult(matches=matches, parsed_requirements=requirement, stats=stats)
