"""
Skills taxonomy.

Maps free-text skill mentions onto canonical labels using a synonym
table loaded from YAML, and measures how a candidate's skills cover a
job's required and preferred skills.
"""

import re
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

import yaml
from loguru import logger

from shared.models import SkillMatchResult

DEFAULT_SKILLS_PATH = Path(__file__).parent / "data" / "skills.yaml"

_SPLIT_PATTERN = re.compile(r"[,;|\n]")
_TOKEN_PATTERN = re.compile(r"[\s\-_/]+")
_BULLET_CHARS = "-*•·–\t "

# Endings that turn a word into a related form ("account" -> "accounting")
_WORD_SUFFIXES = {
    "s", "es", "ed", "er", "ers", "ing", "ings", "ling", "ment", "ments",
    "al", "ion", "ions", "ation", "ations", "ance", "ancy",
}
_MIN_STEM_LENGTH = 3


class SkillsTaxonomy:
    """Canonicalizes skills and computes skill-set overlap."""

    def __init__(self, skills_path: Optional[Path] = None):
        self._canonical: dict[str, str] = {}

        if skills_path:
            self.load_synonyms(skills_path)

    def load_synonyms(self, path: Path) -> None:
        """Load the canonical -> synonyms table from a YAML file."""
        if not path.exists():
            logger.warning(f"Skills taxonomy file not found: {path}")
            return

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        self._canonical = {}
        for canonical, synonyms in (data.get("skills") or {}).items():
            label = self._normalize_text(str(canonical))
            self._canonical.setdefault(label, label)
            for synonym in synonyms or []:
                # first definition wins when a synonym is listed twice
                self._canonical.setdefault(self._normalize_text(str(synonym)), label)

        logger.debug(f"Loaded {len(self._canonical)} skill labels")

    @property
    def size(self) -> int:
        return len(self._canonical)

    def _normalize_text(self, text: str) -> str:
        """Lower-case, trim and collapse whitespace."""
        return " ".join(text.lower().split())

    def canonicalize(self, skill: str) -> str:
        """
        Return the canonical label for one skill.

        Unknown skills pass through normalized but otherwise unchanged.
        """
        normalized = self._normalize_text(skill.strip(_BULLET_CHARS))
        return self._canonical.get(normalized, normalized)

    def canonicalize_all(self, skills: Iterable[str]) -> frozenset[str]:
        return frozenset(c for c in (self.canonicalize(s) for s in skills) if c)

    def normalize(self, raw_skill_text: Optional[str]) -> frozenset[str]:
        """Split a free-text skills field and canonicalize every token."""
        if not raw_skill_text:
            return frozenset()
        return self.canonicalize_all(_SPLIT_PATTERN.split(raw_skill_text))

    @staticmethod
    def _tokens(skill: str) -> list[str]:
        return [t for t in _TOKEN_PATTERN.split(skill) if t]

    @staticmethod
    def _related_words(a: str, b: str) -> bool:
        """Same word, or one is the other plus a common ending."""
        if a == b:
            return True
        stem, word = sorted((a, b), key=len)
        return (
            len(stem) >= _MIN_STEM_LENGTH
            and word.startswith(stem)
            and word[len(stem):] in _WORD_SUFFIXES
        )

    def is_partial_match(self, required: str, candidate: str) -> bool:
        """
        True when one skill's words appear as a contiguous run in the other's.

        Words compare equal up to a common ending. "react" vs "react native"
        and "account" vs "accounting" are partial; "java" vs "javascript"
        is not.
        """
        if required == candidate:
            return False
        req_tokens = self._tokens(required)
        cand_tokens = self._tokens(candidate)
        if not req_tokens or not cand_tokens:
            return False

        shorter, longer = sorted((req_tokens, cand_tokens), key=len)
        span = len(shorter)
        return any(
            all(self._related_words(a, b) for a, b in zip(shorter, longer[i : i + span]))
            for i in range(len(longer) - span + 1)
        )

    def _classify(
        self, skills: Iterable[str], candidate_skills: frozenset[str]
    ) -> tuple[list[str], list[str], list[str]]:
        matched, partial, missing = [], [], []
        for skill in sorted(self.canonicalize_all(skills)):
            if skill in candidate_skills:
                matched.append(skill)
            elif any(self.is_partial_match(skill, c) for c in candidate_skills):
                partial.append(skill)
            else:
                missing.append(skill)
        return matched, partial, missing

    def match_skill_sets(
        self,
        candidate_skills: Iterable[str],
        required: Iterable[str],
        preferred: Iterable[str] = (),
    ) -> SkillMatchResult:
        """
        Classify each required and preferred skill as matched, partial or missing.

        Returns:
            SkillMatchResult; coverage_ratio is |matched| / |required|,
            or 1.0 when nothing is required.
        """
        candidate = self.canonicalize_all(candidate_skills)

        matched, partial, missing = self._classify(required, candidate)
        pref_matched, pref_partial, pref_missing = self._classify(preferred, candidate)

        n_required = len(matched) + len(partial) + len(missing)
        n_preferred = len(pref_matched) + len(pref_partial) + len(pref_missing)

        return SkillMatchResult(
            matched=matched,
            partial=partial,
            missing=missing,
            coverage_ratio=len(matched) / n_required if n_required else 1.0,
            preferred_matched=pref_matched,
            preferred_partial=pref_partial,
            preferred_missing=pref_missing,
            preferred_coverage_ratio=len(pref_matched) / n_preferred if n_preferred else 0.0,
        )


@lru_cache
def get_taxonomy() -> SkillsTaxonomy:
    """Shared read-only taxonomy built from the bundled table."""
    return SkillsTaxonomy(DEFAULT_SKILLS_PATH)
