"""Tests for display case ID generation, validation and probability estimates."""

import string

import pytest

from casebook.cases.case_ids import (
    CASE_ID_ALPHABET,
    calculate_total_combinations,
    estimate_collision_probability,
    format_case_id,
    generate_case_id,
    is_valid_case_id,
    normalize_case_id,
)
from casebook.cases.errors import CaseValidationError


def test_alphabet_has_32_unambiguous_symbols():
    assert len(CASE_ID_ALPHABET) == 32
    assert len(set(CASE_ID_ALPHABET)) == 32
    for ambiguous in "01IO":
        assert ambiguous not in CASE_ID_ALPHABET
    assert set(CASE_ID_ALPHABET) <= set(string.digits + string.ascii_uppercase)


def test_generated_ids_use_alphabet_and_length():
    for _ in range(500):
        case_id = generate_case_id()
        assert len(case_id) == 10
        assert set(case_id) <= set(CASE_ID_ALPHABET)
        assert is_valid_case_id(case_id)


def test_generate_respects_requested_length():
    case_id = generate_case_id(12)
    assert len(case_id) == 12
    assert set(case_id) <= set(CASE_ID_ALPHABET)


def test_generate_rejects_non_positive_length():
    with pytest.raises(CaseValidationError):
        generate_case_id(0)


@pytest.mark.parametrize("case_id", [
    "ABCDEFGH23",
    "abcdefgh23",
    "zzzzzzzzzz",
    "2345678923",
])
def test_valid_case_ids(case_id):
    assert is_valid_case_id(case_id)


@pytest.mark.parametrize("case_id", [
    "",
    "ABCDEFGH2",        # too short
    "ABCDEFGH234",      # too long
    "ABCDEFGH20",       # contains 0
    "ABCDEFGH21",       # contains 1
    "ABCDEFGHI2",       # contains I
    "ABCDEFGHO2",       # contains O
    "ABCD-FGH23",
    None,
    1234567892,
])
def test_invalid_case_ids(case_id):
    assert not is_valid_case_id(case_id)


def test_fallback_length_only_with_flag():
    fallback = "ABCDEFGH2345"
    assert not is_valid_case_id(fallback)
    assert is_valid_case_id(fallback, include_fallback=True)


@pytest.mark.parametrize("case_id", [
    "abcdefgh23", "ABCDEFGH23", "abcdefghio", "aBcDeFgH1", "lowercase!", "mnpqrstuvw",
])
def test_validation_ignores_case(case_id):
    assert is_valid_case_id(case_id) == is_valid_case_id(case_id.upper())


def test_normalize_uppercases_and_strips():
    assert normalize_case_id("  abcdefgh23 ") == "ABCDEFGH23"
    assert normalize_case_id("abcdefgh2345") == "ABCDEFGH2345"


def test_normalize_rejects_malformed():
    with pytest.raises(CaseValidationError):
        normalize_case_id("ABC")
    with pytest.raises(CaseValidationError):
        normalize_case_id(None)


def test_format_case_id_truncates_to_display_length():
    assert format_case_id("abcdefgh2345") == "ABCDEFGH23"


def test_total_combinations():
    assert calculate_total_combinations() == 32 ** 10
    assert calculate_total_combinations(12) == 32 ** 12


def test_collision_probability_for_ten_thousand_cases_is_negligible():
    probability = estimate_collision_probability(10_000)
    assert 0 < probability < 1e-6


def test_collision_probability_grows_with_case_count():
    assert estimate_collision_probability(1_000) < estimate_collision_probability(1_000_000)
    assert estimate_collision_probability(100_000_000) > 0.5


def test_collision_probability_edge_cases():
    assert estimate_collision_probability(0) == 0.0
    assert estimate_collision_probability(1) == 0.0
    with pytest.raises(CaseValidationError):
        estimate_collision_probability(-1)


def test_normalize_is_idempotent():
    for _ in range(50):
        once = normalize_case_id(generate_case_id().lower())
        assert normalize_case_id(once) == once
