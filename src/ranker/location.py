"""
Location matching.

Classifies whether a candidate's stated location suits a job's location
requirement using a static table of UK regions, region adjacency and
city-to-city commute times.

Missing information never produces a hard rejection here; at worst it
lowers the score.
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from loguru import logger

from shared.models import LocationMatch, LocationRequirement

DEFAULT_LOCATIONS_PATH = Path(__file__).parent / "data" / "locations.yaml"

UNKNOWN_LOCATION_SCORE = 50.0
MISMATCH_SCORE = 20.0
INCOMPATIBLE_SCORE = 10.0

# (max commute minutes, score, tier)
COMMUTE_TIERS = [
    (30, 90.0, "short_commute"),
    (60, 80.0, "commutable"),
    (90, 60.0, "long_commute"),
]
SAME_REGION_SCORE = 75.0
ADJACENT_REGION_SCORE = 60.0


@dataclass
class Region:
    """A named region and the place names that belong to it."""

    key: str
    name: str
    cities: list[str] = field(default_factory=list)
    aliases: list[str] = field(default_factory=list)


def normalize_location(location: str) -> str:
    """Lower-case, drop punctuation and collapse whitespace."""
    return " ".join(re.sub(r"[,.;()/]", " ", location.lower()).split())


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(r"\b" + re.escape(phrase) + r"\b", text) is not None


class LocationMatcher:
    """Heuristic, conservative location compatibility."""

    def __init__(self, locations_path: Optional[Path] = None):
        self.regions: dict[str, Region] = {}
        self.adjacency: dict[str, set[str]] = {}
        self.commute: dict[tuple[str, str], int] = {}

        if locations_path:
            self.load_tables(locations_path)

    def load_tables(self, path: Path) -> None:
        """Load regions, adjacency and commute times from YAML."""
        if not path.exists():
            logger.warning(f"Location tables not found: {path}")
            return

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        self.regions = {
            key: Region(
                key=key,
                name=value.get("name", key),
                cities=[normalize_location(c) for c in value.get("cities", [])],
                aliases=[normalize_location(a) for a in value.get("aliases", [])],
            )
            for key, value in (data.get("regions") or {}).items()
        }

        self.adjacency = {}
        for key, neighbours in (data.get("adjacent_regions") or {}).items():
            for other in neighbours or []:
                self.adjacency.setdefault(key, set()).add(other)
                self.adjacency.setdefault(other, set()).add(key)

        self.commute = {}
        for origin, destinations in (data.get("commute_minutes") or {}).items():
            for destination, minutes in (destinations or {}).items():
                a, b = normalize_location(origin), normalize_location(destination)
                self.commute[(a, b)] = int(minutes)
                self.commute[(b, a)] = int(minutes)

        logger.debug(
            f"Loaded {len(self.regions)} regions, {len(self.commute) // 2} commute pairs"
        )

    def find_region(self, location: str) -> Optional[str]:
        """Return the region key a place name belongs to, if known."""
        normalized = normalize_location(location)
        if not normalized:
            return None

        for key, region in self.regions.items():
            names = region.cities + region.aliases + [normalize_location(region.name)]
            if any(_contains_phrase(normalized, name) for name in names):
                return key
        return None

    def find_city(self, location: str) -> Optional[str]:
        """Return the first known city mentioned in a location string."""
        normalized = normalize_location(location)
        for region in self.regions.values():
            for city in region.cities:
                if _contains_phrase(normalized, city):
                    return city
        return None

    def commute_minutes(self, city_a: str, city_b: str) -> Optional[int]:
        return self.commute.get((city_a, city_b))

    def _job_places(self, job_location: LocationRequirement) -> list[str]:
        places = [job_location.city, job_location.region]
        if not job_location.city and not job_location.region:
            places.append(job_location.raw)
        return [normalize_location(p) for p in places if p and normalize_location(p)]

    def match_location(
        self,
        candidate_location: Optional[str],
        job_location: LocationRequirement,
    ) -> LocationMatch:
        """
        Score a candidate location against a job location requirement.

        Policy, in priority order: remote job; exact city/region match;
        commutable (commute table, same region, adjacent region);
        unknown candidate location; everything else.
        """
        if job_location.is_remote:
            return LocationMatch(
                compatible=True, score=100.0, reason="Fully remote role", tier="remote"
            )

        candidate = normalize_location(candidate_location or "")
        if not candidate:
            return LocationMatch(
                compatible=True,
                score=UNKNOWN_LOCATION_SCORE,
                reason="Candidate location unknown",
                tier="unknown",
            )

        job_places = self._job_places(job_location)
        for place in job_places:
            # a broader candidate string ("England", "North") is not an exact match
            if candidate == place or _contains_phrase(candidate, place):
                return LocationMatch(
                    compatible=True,
                    score=100.0,
                    reason=f"Location match: {place}",
                    tier="exact",
                )

        candidate_city = self.find_city(candidate)
        job_city = None
        for place in job_places:
            job_city = self.find_city(place)
            if job_city:
                break

        if candidate_city and candidate_city == job_city:
            return LocationMatch(
                compatible=True,
                score=100.0,
                reason=f"Location match: {job_city}",
                tier="exact",
            )

        if candidate_city and job_city:
            minutes = self.commute_minutes(candidate_city, job_city)
            if minutes is not None:
                for limit, score, tier in COMMUTE_TIERS:
                    if minutes <= limit and score > SAME_REGION_SCORE:
                        return LocationMatch(
                            compatible=True,
                            score=score,
                            reason=f"Commutable (~{minutes} minutes to {job_city})",
                            tier=tier,
                        )

        candidate_region = self.find_region(candidate)
        job_region = None
        for place in job_places:
            job_region = self.find_region(place)
            if job_region:
                break

        if candidate_region and job_region and candidate_region == job_region:
            return LocationMatch(
                compatible=True,
                score=SAME_REGION_SCORE,
                reason=f"Same region: {self.regions[job_region].name}",
                tier="same_region",
            )

        if candidate_city and job_city:
            minutes = self.commute_minutes(candidate_city, job_city)
            if minutes is not None and minutes <= COMMUTE_TIERS[-1][0]:
                return LocationMatch(
                    compatible=True,
                    score=ADJACENT_REGION_SCORE,
                    reason=f"Long commute (~{minutes} minutes to {job_city})",
                    tier="long_commute",
                )

        if (
            candidate_region
            and job_region
            and candidate_region in self.adjacency.get(job_region, set())
        ):
            return LocationMatch(
                compatible=True,
                score=ADJACENT_REGION_SCORE,
                reason=(
                    f"Neighbouring region: {self.regions[candidate_region].name} "
                    f"-> {self.regions[job_region].name}"
                ),
                tier="adjacent_region",
            )

        clearly_elsewhere = bool(candidate_region and job_region)
        if job_location.requires_onsite and clearly_elsewhere:
            return LocationMatch(
                compatible=False,
                score=INCOMPATIBLE_SCORE,
                reason=(
                    f"On-site role in {self.regions[job_region].name}, "
                    f"candidate in {self.regions[candidate_region].name}"
                ),
                tier="incompatible",
            )

        return LocationMatch(
            compatible=True,
            score=MISMATCH_SCORE,
            reason="Different or unrecognized location",
            tier="mismatch",
        )


@lru_cache
def get_location_matcher() -> LocationMatcher:
    """Shared read-only matcher built from the bundled tables."""
    return LocationMatcher(DEFAULT_LOCATIONS_PATH)
