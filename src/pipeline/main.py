"""
Matching Pipeline - Main entry point.

Ranks a candidate pool against a job description:
Parse → Pre-screen → Deep analysis → Final ranking

Usage:
    # Match candidates from a YAML pool
    match-candidates --job job.txt --candidates candidates.yaml

    # Filter the pool and return the top 10
    match-candidates -j job.txt -c candidates.json --location London -n 10
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import click
from loguru import logger
from pydantic import ValidationError as SchemaError

from shared.config import get_settings
from shared.errors import MatchingError
from shared.models import MatchFilters

from .orchestrator import MatchingPipeline
from .pool import filter_candidate_pool, load_candidate_pool


def setup_logging():
    """Configure loguru logging."""
    settings = get_settings()
    logger.remove()

    if settings.log_format == "json":
        logger.add(
            sys.stderr,
            format="{message}",
            level=settings.log_level,
            serialize=True,
        )
    else:
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
                "<level>{message}</level>"
            ),
            level=settings.log_level,
        )


def parse_weight_overrides(values: tuple[str, ...]) -> dict[str, float]:
    """Parse ``name=value`` pairs given with --weight."""
    overrides = {}
    for value in values:
        name, sep, number = value.partition("=")
        if not sep:
            raise click.BadParameter(f"Expected name=value, got '{value}'")
        try:
            overrides[name.strip()] = float(number)
        except ValueError:
            raise click.BadParameter(f"Weight '{name}' is not a number: {number}")
    return overrides


@click.command()
@click.option(
    "--job",
    "-j",
    "job_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="File containing the job description",
)
@click.option(
    "--candidates",
    "-c",
    "candidates_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="YAML or JSON file with the candidate pool",
)
@click.option("--location", "-l", type=str, default=None, help="Only candidates in this location")
@click.option("--sector", "-s", type=str, default=None, help="Only candidates in this sector")
@click.option(
    "--min-experience",
    "-e",
    type=click.FloatRange(min=0),
    default=None,
    help="Minimum years of experience",
)
@click.option(
    "--max-results",
    "-n",
    type=click.IntRange(1, 100),
    default=25,
    help="Maximum matches to return",
)
@click.option(
    "--weight",
    "-w",
    "weights",
    multiple=True,
    help="Override a weight, e.g. --weight skills=0.5",
)
@click.option(
    "--deadline",
    type=float,
    default=None,
    help="Seconds allowed for deep analysis",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the JSON result to a file instead of stdout",
)
def main(
    job_path: Path,
    candidates_path: Path,
    location: Optional[str],
    sector: Optional[str],
    min_experience: Optional[float],
    max_results: int,
    weights: tuple[str, ...],
    deadline: Optional[float],
    output: Optional[Path],
):
    """CV Matcher - Ranks candidates for a job with pre-screening and LLM analysis."""
    setup_logging()
    settings = get_settings()

    pipeline = MatchingPipeline(settings=settings)
    try:
        match_weights = pipeline.config.weights.merged(parse_weight_overrides(weights))
    except SchemaError as e:
        raise click.BadParameter(f"Invalid weights: {e.error_count()} errors", param_hint="--weight")

    filters = MatchFilters(
        location=location,
        sector=sector,
        min_experience=min_experience,
        max_results=max_results,
    )
    pool = filter_candidate_pool(
        load_candidate_pool(candidates_path),
        filters,
        cap=settings.matcher_max_pool_size,
    )

    try:
        result = asyncio.run(
            pipeline.run(
                pool,
                job_path.read_text(),
                weights=match_weights,
                max_results=max_results,
                deadline_seconds=deadline,
            )
        )
    except MatchingError as e:
        logger.error(f"Matching failed: {e.message}")
        click.echo(json.dumps(e.to_payload(), indent=2), err=True)
        sys.exit(1)

    body = result.model_dump_json(by_alias=True, indent=2)
    if output:
        output.write_text(body)
        logger.info(f"Wrote {len(result.matches)} matches to {output}")
    else:
        click.echo(body)

    stats = result.stats
    click.echo(
        f"Candidates: {stats.total_candidates}, Pre-screened: {stats.pre_screened_count}, "
        f"Analyzed: {stats.ai_analyzed_count}, Time: {stats.processing_time_ms:.0f}ms",
        err=True,
    )


if __name__ == "__main__":
    main()
