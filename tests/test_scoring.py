"""Tests for the privacy scorer."""

from screenguard.scoring import CATEGORY_WEIGHTS, describe, label, score
from screenguard.types import PiiCategory


def test_empty_counts_are_safe():
    assert score({}) == 100
    assert label(score({})) == "SAFE"


def test_single_password():
    value = score({PiiCategory.PASSWORD: 1})
    assert value == 75
    assert label(value) == "MODERATE"


def test_repeated_ssn_diminishing_penalty():
    value = score({PiiCategory.SSN: 2})
    assert value == 74
    assert label(value) == "MODERATE"


def test_repeat_penalty_is_capped_at_one_weight():
    assert score({PiiCategory.SSN: 50}) == 100 - 20 - 20


def test_rounds_half_up():
    # 100 - 25 - 7.5
    assert score({PiiCategory.PASSWORD: 2}) == 68
    # 100 - 8 - 2.4
    assert score({PiiCategory.PHONE: 2}) == 90


def test_zero_counts_and_unknown_types_ignored():
    assert score({PiiCategory.EMAIL: 0, "passport": 3}) == 100


def test_accepts_wire_names():
    assert score({"email": 1, "credit_card": 1}) == 70


def test_weights_table():
    assert CATEGORY_WEIGHTS == {
        PiiCategory.PASSWORD: 25,
        PiiCategory.SSN: 20,
        PiiCategory.CREDIT_CARD: 20,
        PiiCategory.API_KEY: 15,
        PiiCategory.ADDRESS: 10,
        PiiCategory.EMAIL: 10,
        PiiCategory.PHONE: 8,
    }


def test_monotonic_and_bounded():
    base = {c: 1 for c in PiiCategory}
    for category in PiiCategory:
        previous = 100
        for count in range(0, 12):
            counts = {category: count}
            value = score(counts)
            assert 0 <= value <= 100
            assert value <= previous
            previous = value
        # Same property with every other category present
        previous = score({**base, category: 0})
        for count in range(0, 12):
            value = score({**base, category: count})
            assert 0 <= value <= previous
            previous = value


def test_everything_everywhere_is_clamped_to_zero():
    assert score({c: 10 for c in PiiCategory}) == 0
    assert label(0) == "HIGH RISK"


def test_label_thresholds():
    assert label(80) == "SAFE"
    assert label(79) == "MODERATE"
    assert label(50) == "MODERATE"
    assert label(49) == "HIGH RISK"


def test_describe():
    counts = {PiiCategory.EMAIL: 2, PiiCategory.CREDIT_CARD: 1, PiiCategory.SSN: 0}
    text = describe(counts, 64)
    assert text.startswith("Privacy Score: 64/100 (MODERATE)")
    assert "📧 2 email" in text
    assert "💳 1 credit card" in text
    assert "ssn" not in text
    assert describe({}, 100) == "No PII detected on this page"
