"""
Job requirement parser.

Extracts structured requirements from a free-text job description with
one LLM call, validates the payload and converts it to a
ParsedJobRequirement.
"""

from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as SchemaError

from ranker.taxonomy import SkillsTaxonomy, get_taxonomy
from shared.errors import ExtractionError, ProviderError, ValidationError
from shared.llm import LLMGateway
from shared.models import (
    LocationRequirement,
    ParsedJobRequirement,
    Seniority,
    WorkMode,
)

MIN_DESCRIPTION_CHARS = 50

SYSTEM_PROMPT = """You are an expert recruitment consultant specializing in analyzing job descriptions. Your task is to extract structured requirements from a job description with high accuracy.

Guidelines:
1. Skills: split them into "must_have_skills" (explicitly required, essential, mandatory) and "nice_to_have_skills" (desirable, advantageous, a plus). Use short skill names ("Python", "Financial Modelling", "ACCA"), one skill per entry.
2. Experience: "5+ years" means min 5 and max null; "3-5 years" means min 3 and max 5. If no number is stated, infer a sensible minimum from the seniority of the role.
3. Seniority: one of entry, junior, mid, senior, lead, manager, director, executive. Infer it from the title, responsibilities and experience even when not stated ("5+ years in a regulated environment" implies senior).
4. Location: extract city and region if mentioned. work_mode is "remote" only for fully remote roles, "hybrid" for a mix of office and home working, "onsite" when office presence is explicitly required, otherwise "unspecified". Default country is UK.
5. Certifications and deal breakers: list mandatory qualifications, certifications and visa or sponsorship constraints.
6. Extract only what is stated or clearly implied.

IMPORTANT: Respond ONLY with valid JSON in the exact format specified. No other text."""

RESPONSE_FORMAT = """{
  "title": "<job title>",
  "must_have_skills": ["<skill>", ...],
  "nice_to_have_skills": ["<skill>", ...],
  "min_experience_years": <number or null>,
  "max_experience_years": <number or null>,
  "seniority": "<entry|junior|mid|senior|lead|manager|director|executive>",
  "location": {"raw": "<as written>", "city": "<city or null>", "region": "<region or null>", "country": "<country or null>", "work_mode": "<remote|hybrid|onsite|unspecified>"},
  "sector": "<industry sector or null>",
  "certifications_required": ["<certification>", ...],
  "key_responsibilities": ["<responsibility>", ...],
  "deal_breakers": ["<absolute requirement>", ...],
  "education_requirement": "<minimum education or null>"
}"""


class ExtractedLocation(BaseModel):
    """Location block as returned by the model."""

    raw: str = ""
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    work_mode: WorkMode = WorkMode.UNSPECIFIED

    @field_validator("work_mode", mode="before")
    @classmethod
    def _work_mode(cls, value: Any) -> Any:
        if value is None:
            return WorkMode.UNSPECIFIED
        text = str(value).lower().replace("-", "").replace(" ", "")
        aliases = {"office": "onsite", "inoffice": "onsite", "fullyremote": "remote"}
        text = aliases.get(text, text)
        return text if text in WorkMode._value2member_map_ else WorkMode.UNSPECIFIED


class ExtractedRequirements(BaseModel):
    """Boundary schema for the extraction payload."""

    title: str = Field(min_length=1)
    must_have_skills: list[str]
    nice_to_have_skills: list[str] = Field(default_factory=list)
    min_experience_years: Optional[float] = Field(default=None, ge=0)
    max_experience_years: Optional[float] = Field(default=None, ge=0)
    seniority: Optional[str] = None
    location: ExtractedLocation = Field(default_factory=ExtractedLocation)
    sector: Optional[str] = None
    certifications_required: list[str] = Field(default_factory=list)
    key_responsibilities: list[str] = Field(default_factory=list)
    deal_breakers: list[str] = Field(default_factory=list)
    education_requirement: Optional[str] = None

    @field_validator(
        "nice_to_have_skills",
        "certifications_required",
        "key_responsibilities",
        "deal_breakers",
        mode="before",
    )
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("location", mode="before")
    @classmethod
    def _null_location(cls, value: Any) -> Any:
        return {} if value is None else value


class JobRequirementParser:
    """Turns a job description into a ParsedJobRequirement."""

    def __init__(
        self,
        gateway: LLMGateway,
        taxonomy: Optional[SkillsTaxonomy] = None,
        min_chars: int = MIN_DESCRIPTION_CHARS,
    ):
        self.gateway = gateway
        self.taxonomy = taxonomy or get_taxonomy()
        self.min_chars = min_chars

    async def parse(self, job_description: str) -> ParsedJobRequirement:
        """
        Extract structured requirements from the job description.

        Raises:
            ValidationError: description shorter than the minimum (no model call)
            ExtractionError: the call failed or returned an incomplete structure
            RateLimited, QuotaExceeded: propagated from the gateway
        """
        text = (job_description or "").strip()
        if len(text) < self.min_chars:
            raise ValidationError(
                f"Job description must be at least {self.min_chars} characters"
            )

        user_prompt = f"""## Job Description:
{text}

## Task:
Extract the structured requirements of this job.
Respond in the following JSON format only:

{RESPONSE_FORMAT}"""

        try:
            payload = await self.gateway.complete_json(
                SYSTEM_PROMPT,
                user_prompt,
                temperature=0.1,
                max_tokens=2000,
                context={"stage": "parse"},
            )
        except ProviderError as e:
            raise ExtractionError(
                f"Failed to parse job requirements: {e.message}", context=e.context
            ) from e

        try:
            extracted = ExtractedRequirements.model_validate(payload)
        except SchemaError as e:
            logger.error(f"Job requirement payload failed validation: {e}")
            raise ExtractionError(
                "Job requirement extraction returned an incomplete structure",
                context={"stage": "parse", "errors": e.error_count()},
            ) from e

        requirement = self._to_requirement(extracted)
        logger.info(
            f"Parsed requirements for '{requirement.title}': "
            f"{len(requirement.must_have_skills)} must-have, "
            f"{len(requirement.nice_to_have_skills)} nice-to-have, "
            f"seniority={requirement.seniority.value if requirement.seniority else None}"
        )
        return requirement

    def _to_requirement(self, extracted: ExtractedRequirements) -> ParsedJobRequirement:
        must_have = self.taxonomy.canonicalize_all(extracted.must_have_skills)
        nice_to_have = self.taxonomy.canonicalize_all(extracted.nice_to_have_skills) - must_have

        min_years = extracted.min_experience_years
        max_years = extracted.max_experience_years
        if min_years is not None and max_years is not None and max_years < min_years:
            logger.warning(
                f"Inverted experience range {min_years}-{max_years}, dropping maximum"
            )
            max_years = None

        location = extracted.location
        return ParsedJobRequirement(
            title=extracted.title.strip(),
            must_have_skills=must_have,
            nice_to_have_skills=nice_to_have,
            min_experience_years=min_years,
            max_experience_years=max_years,
            seniority=Seniority.from_text(extracted.seniority),
            location=LocationRequirement(
                raw=location.raw,
                city=location.city or None,
                region=location.region or None,
                country=location.country or None,
                work_mode=location.work_mode,
            ),
            sector=extracted.sector or None,
            certifications_required=tuple(extracted.certifications_required),
            key_responsibilities=tuple(extracted.key_responsibilities),
            deal_breakers=tuple(extracted.deal_breakers),
            education_requirement=extracted.education_requirement or None,
        )
