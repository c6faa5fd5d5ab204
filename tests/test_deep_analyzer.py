"""Tests for deep analysis."""

from conftest import FakeGateway, default_analysis
from matcher.deep_analyzer import AssessmentPayload, DeepAnalyzer
from shared.errors import ProviderError, QuotaExceeded
from shared.models import CandidateProfile, ParsedJobRequirement


def make_pool(n):
    return [
        CandidateProfile(id=str(i), name=f"Candidate {i}", skills_raw="python", years_experience=5)
        for i in range(1, n + 1)
    ]


class TestAssessmentPayload:
    """Tests for the per-candidate boundary schema."""

    def test_score_is_clamped(self):
        payload = AssessmentPayload.model_validate(
            {"cv_id": "1", "match_score": 130, "explanation": "Great"}
        )
        assert payload.to_assessment().ai_score == 100

    def test_integer_id_and_unknown_enums(self):
        payload = AssessmentPayload.model_validate({
            "cv_id": 7,
            "match_score": 55,
            "explanation": "Fine",
            "overqualification_risk": "HIGH",
            "career_trajectory_fit": "stellar",
            "strengths": None,
        })
        assessment = payload.to_assessment()
        assert assessment.candidate_id == "7"
        assert assessment.overqualification_risk == "high"
        assert assessment.career_trajectory_fit == "unknown"
        assert assessment.strengths == []


class TestDeepAnalyzer:
    """Tests for DeepAnalyzer.run."""

    async def test_analyzes_in_batches(self, london_requirement):
        """Every candidate given is analyzed, batch by batch."""
        gateway = FakeGateway()
        analyzer = DeepAnalyzer(gateway, batch_size=5)

        outcome = await analyzer.run(london_requirement, make_pool(12))

        assert gateway.call_count == 3
        assert sorted(outcome.assessments, key=int) == [str(i) for i in range(1, 13)]
        assert outcome.failed_ids == []
        assert not outcome.timed_out

    async def test_empty_input_makes_no_call(self, london_requirement):
        gateway = FakeGateway()
        outcome = await DeepAnalyzer(gateway).run(london_requirement, [])
        assert outcome.assessments == {}
        assert gateway.call_count == 0

    async def test_malformed_entry_loses_only_that_candidate(self, london_requirement):
        """One bad entry in a batch of 10 still yields 9 assessments."""
        def analyze(ids):
            payload = default_analysis(ids)
            payload["analyses"][3].pop("match_score")
            return payload

        analyzer = DeepAnalyzer(FakeGateway(analyze=analyze), batch_size=10)
        outcome = await analyzer.run(london_requirement, make_pool(10))

        assert len(outcome.assessments) == 9
        assert outcome.failed_ids == ["4"]

    async def test_failed_batch_loses_only_its_candidates(self, london_requirement):
        def analyze(ids):
            if "1" in ids:
                return ProviderError("upstream 500")
            return default_analysis(ids)

        analyzer = DeepAnalyzer(FakeGateway(analyze=analyze), batch_size=2)
        outcome = await analyzer.run(london_requirement, make_pool(6))

        assert sorted(outcome.assessments) == ["3", "4", "5", "6"]
        assert outcome.failed_ids == ["1", "2"]
        assert outcome.errors == {1: "provider_error"}

    async def test_unexpected_error_is_contained(self, london_requirement):
        def analyze(ids):
            if "2" in ids:
                raise KeyError("boom")
            return default_analysis(ids)

        analyzer = DeepAnalyzer(FakeGateway(analyze=analyze), batch_size=1)
        outcome = await analyzer.run(london_requirement, make_pool(3))
        assert sorted(outcome.assessments) == ["1", "3"]
        assert outcome.errors == {2: "internal_error"}

    async def test_unknown_and_duplicate_ids(self, london_requirement):
        """Entries for other candidates are ignored; the first duplicate wins."""
        def analyze(ids):
            payload = default_analysis(ids, score=70)
            payload["analyses"].append(default_analysis(["999"])["analyses"][0])
            payload["analyses"].append(default_analysis([ids[0]], score=10)["analyses"][0])
            return payload

        analyzer = DeepAnalyzer(FakeGateway(analyze=analyze), batch_size=5)
        outcome = await analyzer.run(london_requirement, make_pool(2))

        assert set(outcome.assessments) == {"1", "2"}
        assert outcome.assessments["1"].ai_score == 70

    async def test_missing_analyses_list(self, london_requirement):
        analyzer = DeepAnalyzer(FakeGateway(analyze=lambda ids: {"results": []}))
        outcome = await analyzer.run(london_requirement, make_pool(2))
        assert outcome.assessments == {}
        assert outcome.failed_ids == ["1", "2"]

    async def test_deadline_keeps_completed_batches(self, london_requirement):
        """Batches still running at the deadline are cancelled."""
        gateway = FakeGateway(slow_ids={"2"})
        analyzer = DeepAnalyzer(gateway, batch_size=1, max_concurrency=3)

        outcome = await analyzer.run(london_requirement, make_pool(3), deadline_seconds=0.5)

        assert outcome.timed_out
        assert sorted(outcome.assessments) == ["1", "3"]
        assert outcome.failed_ids == ["2"]

    async def test_prompt_carries_context(self, london_requirement):
        """The prompt includes requirements, candidate ids and the response format."""
        gateway = FakeGateway()
        await DeepAnalyzer(gateway).run(
            london_requirement, make_pool(2), job_description="Full job text here"
        )
        prompt = gateway.prompts[0]
        assert "**Title:** Python Developer" in prompt
        assert "(ID: 1)" in prompt and "(ID: 2)" in prompt
        assert "Full job text here" in prompt
        assert '"analyses"' in prompt

    async def test_analyze_returns_mapping(self, london_requirement):
        assessments = await DeepAnalyzer(FakeGateway()).analyze(london_requirement, make_pool(2))
        assert set(assessments) == {"1", "2"}
        assert assessments["1"].ai_score == 80

    async def test_quota_errors_are_recorded(self, london_requirement):
        analyzer = DeepAnalyzer(FakeGateway(analyze=lambda ids: QuotaExceeded()), batch_size=2)
        outcome = await analyzer.run(london_requirement, make_pool(4))

        assert outcome.assessments == {}
        assert outcome.errors == {1: "quota_exceeded", 2: "quota_exceeded"}

    async def test_prompt_includes_responsibilities_and_education(self):
        requirement = ParsedJobRequirement(
            title="Financial Controller",
            key_responsibilities=("Own the month-end close", "Manage a team of four"),
            education_requirement="Degree in accounting or finance",
        )
        gateway = FakeGateway()
        await DeepAnalyzer(gateway).run(requirement, make_pool(1))

        prompt = gateway.prompts[0]
        assert "- Own the month-end close" in prompt
        assert "- Manage a team of four" in prompt
        assert "**Education:** Degree in accounting or finance" in prompt
