"""
Tests for normalization, edit-distance similarity and criterion evaluation.
"""

import pytest

from config.settings import PROJECT_ROOT
from matching.contact_resolution.exceptions import ConfigurationError
from matching.contact_resolution.matchers import (
    ComparisonMode,
    CriterionEvaluator,
    MatchCriterion,
    NormalizationMode,
    Normalizer,
    edit_distance,
    load_criteria,
    parse_criteria,
    similarity,
    validate_criteria,
)


# =============================================================================
# NORMALIZER
# =============================================================================

@pytest.mark.parametrize(
    "raw, mode, expected",
    [
        ("  Juan   PÉREZ-Soto ", NormalizationMode.DEFAULT, "juan perez soto"),
        ("José  Ñuñez", NormalizationMode.DEFAULT, "jose nunez"),
        (" Juan.Perez@X.com ", NormalizationMode.EMAIL, "juan.perez@x.com"),
        ("+56 9 1234 5678", NormalizationMode.PHONE, "12345678"),
        ("1234-567", NormalizationMode.PHONE, "1234567"),
        ("12.345.678-K", NormalizationMode.NATIONAL_ID, "12345678k"),
        (12345, NormalizationMode.DEFAULT, "12345"),
    ],
)
def test_normalize_modes(raw, mode, expected):
    assert Normalizer().normalize(raw, mode) == expected


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_normalize_empty_input(raw):
    for mode in NormalizationMode:
        assert Normalizer().normalize(raw, mode) == ""


def test_phone_digits_configurable():
    assert Normalizer(phone_digits=9).normalize("+56 9 1234 5678", NormalizationMode.PHONE) == "912345678"


# =============================================================================
# SIMILARITY
# =============================================================================

def test_edit_distance_classic():
    assert edit_distance("kitten", "sitting") == 3
    assert edit_distance("", "abc") == 3
    assert edit_distance("same", "same") == 0


@pytest.mark.parametrize(
    "a, b",
    [("kitten", "sitting"), ("juan perez", "juan peres"), ("", "x"), ("abc", "cba")],
)
def test_edit_distance_symmetric(a, b):
    assert edit_distance(a, b) == edit_distance(b, a)


@pytest.mark.parametrize("text", ["a", "juan perez", "12345678k"])
@pytest.mark.parametrize("threshold", [0.1, 0.8, 1.0])
def test_similarity_identity(text, threshold):
    assert similarity(text, text, threshold) == 1.0


def test_similarity_partial_and_threshold():
    assert similarity("juan perez", "juan peres", 0.8) == pytest.approx(0.9)
    # Below threshold is a non-match, not a small score
    assert similarity("juan perez", "juan peres", 0.95) == 0.0
    assert similarity("abc", "xyz", 0.1) == 0.0


def test_similarity_empty():
    assert similarity("", "abc", 0.5) == 0.0
    assert similarity("abc", "", 0.5) == 0.0


# =============================================================================
# CRITERION EVALUATOR
# =============================================================================

def criterion(**kwargs) -> MatchCriterion:
    defaults = {"field": "f", "weight": 50, "mode": ComparisonMode.EXACT}
    defaults.update(kwargs)
    return MatchCriterion(**defaults)


def test_missing_values_never_match():
    evaluator = CriterionEvaluator()
    for a, b in [(None, "x"), ("x", None), ("", "x"), ("  ", "x"), ("!!!", "x")]:
        result = evaluator.evaluate(a, b, criterion())
        assert result.score == 0
        assert not result.matched


def test_exact_mode():
    evaluator = CriterionEvaluator()
    c = criterion(field="rut", weight=100, normalization=NormalizationMode.NATIONAL_ID)

    result = evaluator.evaluate("12.345.678-5", "12345678-5", c)
    assert result.matched
    assert result.score == 100
    assert result.name == "rut"

    result = evaluator.evaluate("12.345.678-5", "11111111-1", c)
    assert not result.matched
    assert result.score == 0


def test_fuzzy_mode_scales_weight():
    evaluator = CriterionEvaluator()
    c = criterion(field="full_name", mode=ComparisonMode.FUZZY, threshold=0.8)

    result = evaluator.evaluate("Juan Perez", "Juan Peres", c)
    assert result.matched
    assert result.score == pytest.approx(45.0)

    result = evaluator.evaluate("Juan Pérez", "Juan Perez", c)
    assert result.score == pytest.approx(50.0)

    result = evaluator.evaluate("Juan Perez", "Maria Gonzalez", c)
    assert not result.matched
    assert result.score == 0


def test_contains_mode():
    evaluator = CriterionEvaluator()
    c = criterion(field="address", weight=30, mode=ComparisonMode.CONTAINS)

    result = evaluator.evaluate("Av. Providencia 1234", "av providencia 1234, Santiago", c)
    assert result.matched
    assert result.score == 30

    assert not evaluator.evaluate("Los Leones 55", "Av. Providencia 1234", c).matched


def test_normalized_mode_phone():
    evaluator = CriterionEvaluator()
    c = criterion(
        field="phone", weight=70, mode=ComparisonMode.NORMALIZED,
        normalization=NormalizationMode.PHONE,
    )

    result = evaluator.evaluate("+56 9 1234 5678", "912345678", c)
    assert result.matched
    assert result.score == 70

    assert not evaluator.evaluate("+56 9 1234 5678", "+56 9 8765 4321", c).matched


# =============================================================================
# CRITERION TABLE
# =============================================================================

def test_bundled_criteria_table():
    criteria = load_criteria(PROJECT_ROOT / "config" / "matching_criteria.yaml")

    by_name = {c.name: c for c in criteria}
    assert set(by_name) == {"rut", "email", "phone", "full_name", "address"}
    assert sum(c.weight for c in criteria) == 330
    assert by_name["rut"].mode is ComparisonMode.EXACT
    assert by_name["email"].threshold == 0.9
    assert by_name["phone"].normalization is NormalizationMode.PHONE
    assert by_name["address"].mode is ComparisonMode.CONTAINS


def test_load_custom_criteria(tmp_path):
    path = tmp_path / "criteria.yaml"
    path.write_text(
        "rut:\n  weight: 10\n  mode: exact\n"
        "full_name:\n  weight: 5\n  mode: fuzzy\n  threshold: 0.7\n",
        encoding="utf-8",
    )
    criteria = load_criteria(path)
    assert [c.name for c in criteria] == ["rut", "full_name"]
    assert criteria[1].threshold == 0.7


def test_load_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_criteria(tmp_path / "nope.yaml")


@pytest.mark.parametrize(
    "table",
    [
        {},
        None,
        ["rut"],
        {"rut": {"weight": 0, "mode": "exact"}},
        {"rut": {"weight": -5, "mode": "exact"}},
        {"rut": {"weight": 1.5, "mode": "exact"}},
        {"rut": {"weight": 10, "mode": "ml"}},
        {"rut": {"weight": 10, "mode": "exact", "normalization": "soundex"}},
        {"full_name": {"weight": 10, "mode": "fuzzy"}},
        {"full_name": {"weight": 10, "mode": "fuzzy", "threshold": 1.5}},
        {"rut": "exact"},
    ],
)
def test_invalid_criteria_tables(table):
    with pytest.raises(ConfigurationError):
        parse_criteria(table)


def test_validate_criteria_rejects_empty_set():
    with pytest.raises(ConfigurationError):
        validate_criteria([])
