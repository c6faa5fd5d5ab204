"""
Application configuration using Pydantic Settings.
Loads from environment variables and .env file.
"""

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import MatchWeights


class PipelineConfig(BaseModel):
    """
    Every tunable of a pipeline run in one place.

    Passed explicitly into the orchestrator; the defaults here are the
    documented ones.
    """

    weights: MatchWeights = Field(default_factory=MatchWeights)

    # Final ranking blend: final = algorithmic * a + ai * b
    algorithmic_blend: float = Field(default=0.4, ge=0, le=1)
    ai_blend: float = Field(default=0.6, ge=0, le=1)

    # Stage 3 truncation
    analysis_budget_cap: int = Field(default=50, ge=1)
    min_prescreen_score: float = Field(default=30.0, ge=0, le=100)
    max_deal_breakers: int = Field(default=1, ge=0)

    # Stage 4
    deep_batch_size: int = Field(default=5, ge=1)
    deep_max_concurrency: int = Field(default=3, ge=1)
    deadline_seconds: Optional[float] = Field(default=120.0, gt=0)

    # Gateway retry policy
    llm_max_attempts: int = Field(default=3, ge=1)
    llm_initial_retry_delay: float = Field(default=1.0, ge=0)
    llm_timeout_seconds: float = Field(default=45.0, gt=0)

    min_job_description_chars: int = Field(default=50, ge=1)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # OpenAI / LLM
    openai_api_key: SecretStr = Field(default=SecretStr(""))
    openai_base_url: Optional[str] = Field(default=None)
    openai_model: str = Field(default="gpt-4o")

    # Matching weights (pre-screening composite)
    weight_skills: float = Field(default=0.40)
    weight_experience: float = Field(default=0.25)
    weight_seniority: float = Field(default=0.20)
    weight_location: float = Field(default=0.15)

    # Pipeline settings
    matcher_algorithmic_blend: float = Field(default=0.4)
    matcher_ai_blend: float = Field(default=0.6)
    matcher_analysis_budget_cap: int = Field(
        default=50, description="Max candidates sent to deep analysis per run"
    )
    matcher_min_prescreen_score: float = Field(
        default=30.0, description="Composite score below which a candidate is discarded"
    )
    matcher_max_deal_breakers: int = Field(
        default=1, description="Deal-breaker failures a candidate may have and still be analyzed"
    )
    matcher_batch_size: int = Field(default=5, description="Candidates per deep-analysis call")
    matcher_max_concurrency: int = Field(default=3, description="Concurrent deep-analysis calls")
    matcher_deadline_seconds: float = Field(default=120.0)
    matcher_max_pool_size: int = Field(
        default=200, description="Hard cap on candidates loaded into one run"
    )

    # Retry policy
    llm_max_attempts: int = Field(default=3)
    llm_initial_retry_delay: float = Field(default=1.0)
    llm_timeout_seconds: float = Field(default=45.0)

    min_job_description_chars: int = Field(default=50)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    def match_weights(self) -> MatchWeights:
        return MatchWeights(
            skills=self.weight_skills,
            experience=self.weight_experience,
            seniority=self.weight_seniority,
            location=self.weight_location,
        )

    def pipeline_config(self) -> PipelineConfig:
        """Build the explicit pipeline configuration from settings."""
        return PipelineConfig(
            weights=self.match_weights(),
            algorithmic_blend=self.matcher_algorithmic_blend,
            ai_blend=self.matcher_ai_blend,
            analysis_budget_cap=self.matcher_analysis_budget_cap,
            min_prescreen_score=self.matcher_min_prescreen_score,
            max_deal_breakers=self.matcher_max_deal_breakers,
            deep_batch_size=self.matcher_batch_size,
            deep_max_concurrency=self.matcher_max_concurrency,
            deadline_seconds=self.matcher_deadline_seconds,
            llm_max_attempts=self.llm_max_attempts,
            llm_initial_retry_delay=self.llm_initial_retry_delay,
            llm_timeout_seconds=self.llm_timeout_seconds,
            min_job_description_chars=self.min_job_description_chars,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
