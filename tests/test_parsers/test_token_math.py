"""Tests for integer-only token arithmetic."""

import pytest

from src.parsers.token_math import (
    NOT_AVAILABLE,
    allocation_percentage,
    format_token_balance,
    holding_percentage,
    percentage_hundredths,
    round_half_up_div,
    to_raw_units,
    to_whole_units,
    tokens_for_sale,
)

ONE_BILLION = 1_000_000_000


def test_round_half_up_div():
    assert round_half_up_div(5, 2) == 3
    assert round_half_up_div(3, 2) == 2
    assert round_half_up_div(1, 4) == 0
    assert round_half_up_div(3, 4) == 1
    assert round_half_up_div(0, 7) == 0


def test_round_half_up_div_rejects_bad_input():
    with pytest.raises(ValueError):
        round_half_up_div(1, 0)
    with pytest.raises(ValueError):
        round_half_up_div(-1, 3)


def test_to_whole_units_rounds_half_up():
    assert to_whole_units(1_500_000_000, 9) == 2
    assert to_whole_units(1_499_999_999, 9) == 1
    assert to_whole_units(42, 0) == 42
    assert to_whole_units(150_000_000 * 10**18, 18) == 150_000_000


def test_to_raw_units():
    assert to_raw_units(150_000_000, 9) == 150_000_000 * 10**9


def test_creator_allocation_base_scenario():
    supply = ONE_BILLION * 10**18
    initial = 150_000_000 * 10**18
    assert allocation_percentage(initial, supply) == "15.00%"
    assert tokens_for_sale(ONE_BILLION, 150_000_000) == 850_000_000


def test_tokens_for_sale_never_negative():
    assert tokens_for_sale(100, 250) == 0


def test_holding_percentage_full_and_partial():
    assert holding_percentage(10**18, 10**18) == "100.00"
    assert holding_percentage(1, 3) == "33.33"
    assert holding_percentage(2, 3) == "66.67"
    assert holding_percentage(0, 500) == "0.00"


def test_holding_percentage_not_available_only_for_zero_initial():
    assert holding_percentage(123, 0) == NOT_AVAILABLE
    assert holding_percentage(0, 0) == NOT_AVAILABLE


def test_holding_percentage_above_initial():
    # creator bought more after launch
    assert holding_percentage(3, 2) == "150.00"


def test_holding_percentage_exact_at_large_magnitudes():
    initial = 10**27
    held = 123_456_789_012_345_678_901_234_567
    # 12.3456789...% -> 12.35
    assert holding_percentage(held, initial) == "12.35"
    assert percentage_hundredths(held, initial) == 1235


def test_percentage_hundredths_half_up():
    # 1/8 = 12.5% exactly -> 1250 hundredths; 1/1600 = 0.0625% -> 6.25 -> 6
    assert percentage_hundredths(1, 8) == 1250
    assert percentage_hundredths(1, 1600) == 6
    # 0.005% -> 0.5 hundredths -> rounds up to 1
    assert percentage_hundredths(1, 20_000) == 1


def test_format_token_balance():
    assert format_token_balance(150_000_000) == "150,000,000"
    assert format_token_balance("850000000") == "850,000,000"
    assert format_token_balance(0) == "0"
