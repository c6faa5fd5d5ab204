# Shared module for common utilities, models, and configuration
from .config import PipelineConfig, Settings, get_settings
from .errors import (
    ExtractionError,
    MatchingError,
    ProviderError,
    QuotaExceeded,
    RateLimited,
    ValidationError,
)
from .llm import LLMGateway
from .models import (
    CandidateProfile,
    EnrichedMatchResult,
    MatchWeights,
    ParsedJobRequirement,
    PipelineResult,
)

__all__ = [
    "PipelineConfig",
    "Settings",
    "get_settings",
    "MatchingError",
    "ValidationError",
    "ExtractionError",
    "RateLimited",
    "QuotaExceeded",
    "ProviderError",
    "LLMGateway",
    "CandidateProfile",
    "EnrichedMatchResult",
    "MatchWeights",
    "ParsedJobRequirement",
    "PipelineResult",
]
