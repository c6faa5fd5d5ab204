"""Tests for the skills taxonomy."""

import pytest

from ranker.taxonomy import SkillsTaxonomy, get_taxonomy


@pytest.fixture
def taxonomy():
    return get_taxonomy()


class TestCanonicalize:
    """Tests for synonym resolution."""

    def test_bundled_table_loads(self, taxonomy):
        """The bundled YAML table is non-trivial."""
        assert taxonomy.size > 100

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("JS", "javascript"),
            ("ReactJS", "react"),
            ("react-native", "react native"),
            ("  Python 3 ", "python"),
            ("Postgres", "sql"),
            ("k8s", "kubernetes"),
            ("Financial Modelling", "financial modeling"),
        ],
    )
    def test_synonyms_map_to_canonical(self, taxonomy, raw, expected):
        """Known synonyms resolve to their canonical label."""
        assert taxonomy.canonicalize(raw) == expected

    def test_unknown_skill_passes_through(self, taxonomy):
        """Unknown skills are normalized but kept."""
        assert taxonomy.canonicalize("  Quantum   Basket Weaving ") == "quantum basket weaving"

    def test_synonym_lookup_is_exact(self, taxonomy):
        """A synonym inside a longer phrase is not substituted."""
        assert taxonomy.canonicalize("contracts") == "contracts"

    def test_normalize_splits_free_text(self, taxonomy):
        """Free-text skill fields split on common separators and bullets."""
        skills = taxonomy.normalize("JS; Python\n- Docker | sql server, ")
        assert skills == frozenset({"javascript", "python", "docker", "sql"})

    def test_normalize_empty(self, taxonomy):
        """Empty skill text yields no skills."""
        assert taxonomy.normalize(None) == frozenset()
        assert taxonomy.normalize("") == frozenset()

    def test_missing_table_is_empty(self, tmp_path):
        """A missing table leaves the taxonomy empty instead of failing."""
        taxonomy = SkillsTaxonomy(tmp_path / "missing.yaml")
        assert taxonomy.size == 0
        assert taxonomy.canonicalize("JS") == "js"

    def test_custom_table(self, tmp_path):
        """Tables can be loaded from any YAML file."""
        path = tmp_path / "skills.yaml"
        path.write_text("skills:\n  golang: [go, go lang]\n")
        taxonomy = SkillsTaxonomy(path)
        assert taxonomy.canonicalize("Go Lang") == "golang"


class TestPartialMatch:
    """Tests for word-level partial matching."""

    def test_react_vs_react_native(self, taxonomy):
        assert taxonomy.is_partial_match("react", "react native")
        assert taxonomy.is_partial_match("react native", "react")

    def test_java_vs_javascript(self, taxonomy):
        """Substring within a word is not a partial match."""
        assert not taxonomy.is_partial_match("java", "javascript")

    def test_identical_is_not_partial(self, taxonomy):
        assert not taxonomy.is_partial_match("python", "python")


class TestMatchSkillSets:
    """Tests for skill-set coverage."""

    def test_js_matches_javascript(self, taxonomy):
        """A candidate listing "JS" matches a "javascript" requirement."""
        result = taxonomy.match_skill_sets(["JS"], ["javascript"])
        assert result.matched == ["javascript"]
        assert result.missing == []
        assert result.coverage_ratio == 1.0

    def test_matched_partial_missing(self, taxonomy):
        """Each required skill lands in exactly one bucket."""
        result = taxonomy.match_skill_sets(
            ["python", "react native"], ["python", "react", "java"]
        )
        assert result.matched == ["python"]
        assert result.partial == ["react"]
        assert result.missing == ["java"]
        assert result.coverage_ratio == pytest.approx(1 / 3)

    def test_no_requirements_full_coverage(self, taxonomy):
        """Nothing required means full coverage."""
        result = taxonomy.match_skill_sets(["python"], [])
        assert result.coverage_ratio == 1.0
        assert result.preferred_coverage_ratio == 0.0

    def test_preferred_skills(self, taxonomy):
        """Preferred skills are classified separately."""
        result = taxonomy.match_skill_sets(["python", "aws"], ["python"], ["AWS", "docker"])
        assert result.preferred_matched == ["aws"]
        assert result.preferred_missing == ["docker"]
        assert result.preferred_coverage_ratio == 0.5


class TestWordEndings:
    """Tests for partial matching across word endings."""

    @pytest.mark.parametrize(
        "required,candidate",
        [
            ("account", "accounting"),
            ("audit", "auditing"),
            ("budget", "budgets"),
            ("management account", "management accounting"),
            ("forecast", "financial forecasting"),
        ],
    )
    def test_related_forms_are_partial(self, taxonomy, required, candidate):
        assert taxonomy.is_partial_match(required, candidate)

    @pytest.mark.parametrize(
        "required,candidate",
        [("java", "javascript"), ("go", "going"), ("net", "network"), ("sql", "nosql")],
    )
    def test_unrelated_words_are_not_partial(self, taxonomy, required, candidate):
        assert not taxonomy.is_partial_match(required, candidate)

    def test_account_vs_accounting_in_skill_sets(self, taxonomy):
        result = taxonomy.match_skill_sets(["accounting"], ["account"])
        assert result.partial == ["account"]
        assert result.missing == []
