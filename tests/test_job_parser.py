"""Tests for the job requirement parser."""

import pytest

from conftest import JOB_DESCRIPTION, FakeGateway
from matcher.job_parser import JobRequirementParser
from shared.errors import ExtractionError, ProviderError, QuotaExceeded, RateLimited, ValidationError
from shared.models import Seniority, WorkMode


class TestJobRequirementParser:
    """Tests for JobRequirementParser.parse."""

    async def test_short_description_makes_no_call(self):
        """Descriptions under 50 characters fail before the model is called."""
        gateway = FakeGateway()
        parser = JobRequirementParser(gateway)

        with pytest.raises(ValidationError):
            await parser.parse("Python dev, London")
        assert gateway.call_count == 0

    async def test_whitespace_does_not_count(self):
        gateway = FakeGateway()
        with pytest.raises(ValidationError):
            await JobRequirementParser(gateway).parse(" " * 80 + "short" + " " * 80)
        assert gateway.call_count == 0

    async def test_parses_payload(self, london_payload):
        """A valid payload becomes a canonical ParsedJobRequirement."""
        gateway = FakeGateway(parse_payload={
            **london_payload,
            "must_have_skills": ["Python", "Postgres", "JS"],
            "nice_to_have_skills": ["Docker", "python"],
            "seniority": "Senior",
        })
        requirement = await JobRequirementParser(gateway).parse(JOB_DESCRIPTION)

        assert gateway.call_count == 1
        assert gateway.calls[0]["stage"] == "parse"
        assert requirement.title == "Python Developer"
        assert requirement.must_have_skills == frozenset({"python", "sql", "javascript"})
        # must-haves are not repeated as nice-to-haves
        assert requirement.nice_to_have_skills == frozenset({"docker"})
        assert requirement.seniority == Seniority.SENIOR
        assert requirement.location.city == "London"
        assert requirement.location.work_mode == WorkMode.ONSITE
        assert requirement.min_experience_years == 4

    async def test_inverted_experience_range(self, london_payload):
        """A maximum below the minimum is dropped."""
        gateway = FakeGateway(parse_payload={
            **london_payload, "min_experience_years": 5, "max_experience_years": 3,
        })
        requirement = await JobRequirementParser(gateway).parse(JOB_DESCRIPTION)
        assert requirement.min_experience_years == 5
        assert requirement.max_experience_years is None

    @pytest.mark.parametrize(
        "work_mode,expected",
        [
            ("Remote", WorkMode.REMOTE),
            ("office", WorkMode.ONSITE),
            ("on-site", WorkMode.ONSITE),
            ("flexible", WorkMode.UNSPECIFIED),
            (None, WorkMode.UNSPECIFIED),
        ],
    )
    async def test_work_mode_normalization(self, london_payload, work_mode, expected):
        payload = {**london_payload, "location": {"raw": "London", "work_mode": work_mode}}
        requirement = await JobRequirementParser(FakeGateway(parse_payload=payload)).parse(JOB_DESCRIPTION)
        assert requirement.location.work_mode == expected

    async def test_null_optional_fields(self, london_payload):
        """Null lists and location from the model are treated as empty."""
        payload = {
            **london_payload,
            "nice_to_have_skills": None,
            "deal_breakers": None,
            "location": None,
        }
        requirement = await JobRequirementParser(FakeGateway(parse_payload=payload)).parse(JOB_DESCRIPTION)
        assert requirement.nice_to_have_skills == frozenset()
        assert requirement.deal_breakers == ()
        assert requirement.location.work_mode == WorkMode.UNSPECIFIED

    async def test_incomplete_payload(self, london_payload):
        """Missing required fields raise ExtractionError."""
        payload = {k: v for k, v in london_payload.items() if k != "must_have_skills"}
        with pytest.raises(ExtractionError) as exc_info:
            await JobRequirementParser(FakeGateway(parse_payload=payload)).parse(JOB_DESCRIPTION)
        assert exc_info.value.retryable

    async def test_empty_title(self, london_payload):
        with pytest.raises(ExtractionError):
            await JobRequirementParser(
                FakeGateway(parse_payload={**london_payload, "title": ""})
            ).parse(JOB_DESCRIPTION)

    async def test_provider_error_becomes_extraction_error(self):
        gateway = FakeGateway(parse_payload=ProviderError("JSON parse error"))
        with pytest.raises(ExtractionError):
            await JobRequirementParser(gateway).parse(JOB_DESCRIPTION)

    @pytest.mark.parametrize("error", [RateLimited(attempts=3), QuotaExceeded()])
    async def test_throttling_errors_propagate(self, error):
        """Rate limit and quota errors keep their own type."""
        gateway = FakeGateway(parse_payload=error)
        with pytest.raises(type(error)):
            await JobRequirementParser(gateway).parse(JOB_DESCRIPTION)
