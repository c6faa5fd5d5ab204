"""
Caller-facing request handling.

Transport-agnostic: validates a match request payload, runs the
pipeline and maps every outcome to an HTTP-style status code and a JSON
body.
"""

from typing import Any

from loguru import logger
from pydantic import ValidationError as SchemaError

from shared.errors import MatchingError, ValidationError
from shared.models import CandidateProfile, MatchRequest

from .orchestrator import MatchingPipeline
from .pool import filter_candidate_pool


async def handle_match_request(
    payload: dict[str, Any],
    candidate_pool: list[CandidateProfile],
    pipeline: MatchingPipeline,
) -> tuple[int, dict[str, Any]]:
    """
    Run one matching request.

    Returns:
        Tuple of (status code, response body). Successful bodies are the
        camelCase PipelineResult; failures are the error payload, with
        unexpected exceptions reported as a generic 500.
    """
    try:
        try:
            request = MatchRequest.model_validate(payload)
            weights = pipeline.config.weights.merged(request.weights)
        except SchemaError as e:
            raise ValidationError(f"Invalid match request: {e.error_count()} errors") from e

        pool = filter_candidate_pool(candidate_pool, request.filters)
        result = await pipeline.run(
            pool,
            request.job_description,
            weights=weights,
            max_results=request.filters.max_results,
        )
    except MatchingError as e:
        logger.bind(error=e.code).warning(f"Match request failed: {e.message}")
        return e.status_code, e.to_payload()
    except Exception as e:
        logger.exception(f"Unexpected error handling match request: {e}")
        error = MatchingError("Internal error while matching candidates")
        return error.status_code, error.to_payload()

    return 200, result.model_dump(mode="json", by_alias=True)
