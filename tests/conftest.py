"""
Pytest configuration and shared fixtures for the matching pipeline tests.
"""

import asyncio
from typing import Any, Callable, Optional

import pytest

from shared.config import Settings
from shared.models import CandidateProfile, LocationRequirement, ParsedJobRequirement, WorkMode

JOB_DESCRIPTION = (
    "We are hiring a Python Developer to join our London office. You will need "
    "at least 4 years of commercial Python experience and solid SQL skills."
)


def default_analysis(candidate_ids: list[str], score: float = 80.0) -> dict[str, Any]:
    """A well-formed analysis payload covering every candidate id."""
    return {
        "analyses": [
            {
                "cv_id": cid,
                "match_score": score,
                "explanation": f"Candidate {cid} fits the role.",
                "skills_matched": ["python"],
                "strengths": ["Strong Python background"],
                "fit_concerns": [],
                "interview_questions": ["Describe a recent Python project."],
                "overqualification_risk": "low",
                "career_trajectory_fit": "good",
                "salary_expectation_fit": "within",
            }
            for cid in candidate_ids
        ]
    }


class FakeGateway:
    """
    Stand-in for LLMGateway.

    Parse calls return (or raise) ``parse_payload``; analysis calls are
    answered by ``analyze(candidate_ids)``. Candidates in ``slow_ids``
    make their batch hang so deadlines can be exercised.
    """

    def __init__(
        self,
        parse_payload: Any = None,
        analyze: Optional[Callable[[list[str]], Any]] = None,
        slow_ids: Optional[set[str]] = None,
    ):
        self.parse_payload = parse_payload
        self.analyze = analyze or default_analysis
        self.slow_ids = slow_ids or set()
        self.call_count = 0
        self.calls: list[dict[str, Any]] = []
        self.prompts: list[str] = []

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 4096,
        context: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        self.call_count += 1
        context = context or {}
        self.calls.append(context)
        self.prompts.append(user_prompt)

        if context.get("stage") == "parse":
            if isinstance(self.parse_payload, Exception):
                raise self.parse_payload
            return self.parse_payload

        ids = list(context.get("candidate_ids", []))
        if self.slow_ids.intersection(ids):
            await asyncio.sleep(30)
        result = self.analyze(ids)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def settings():
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, openai_api_key="sk-test")


@pytest.fixture
def london_payload():
    """Extraction payload for a London-based Python role."""
    return {
        "title": "Python Developer",
        "must_have_skills": ["Python"],
        "nice_to_have_skills": [],
        "min_experience_years": 4,
        "max_experience_years": None,
        "seniority": None,
        "location": {"raw": "London", "city": "London", "region": None, "work_mode": "onsite"},
        "sector": "Technology",
    }


@pytest.fixture
def london_requirement():
    """Parsed requirement matching ``london_payload``."""
    return ParsedJobRequirement(
        title="Python Developer",
        must_have_skills=frozenset({"python"}),
        min_experience_years=4,
        location=LocationRequirement(raw="London", city="London", work_mode=WorkMode.ONSITE),
    )


@pytest.fixture
def abc_pool():
    """Three candidates: A and C fit the London role, B does not."""
    return [
        CandidateProfile(id="A", name="Alice", skills_raw="python, sql", years_experience=6, location="London"),
        CandidateProfile(id="B", name="Bob", skills_raw="java", years_experience=2, location=None),
        CandidateProfile(id="C", name="Carol", skills_raw="python", years_experience=5, location="London"),
    ]
