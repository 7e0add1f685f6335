#!/usr/bin/env python3
"""
Tests for the slab quantity calculator.
"""

import pytest

from area_calculator import (
    combine_size,
    compute_area,
    format_operand,
    parse_size_string,
    quantity_formula,
    split_size,
)


def test_inches_example():
    result = compute_area("60", "120", "in", "10")
    assert result.total_area == 500.0
    assert result.formula == "(60 × 120 × 10) ÷ 144 = 500.00 sqft"


def test_centimetres_use_929():
    result = compute_area("100", "200", "cm", "5")
    assert result.total_area == round(100 * 200 * 5 / 929, 2)
    assert result.formula.startswith("(100 × 200 × 5) ÷ 929 = ")
    assert result.formula.endswith(" sqft")


def test_decimal_inputs():
    result = compute_area("60.5", "120", "in", "2")
    assert result.total_area == round(60.5 * 120 * 2 / 144, 2)
    assert "60.5 × 120 × 2" in result.formula


def test_halves_round_up():
    result = compute_area("1", "18", "in", "1")
    assert result.total_area == 0.13
    assert result.formula == "(1 × 18 × 1) ÷ 144 = 0.13 sqft"


def test_overflowing_area_gives_no_result():
    assert compute_area("1e200", "1e200", "in", "1") is None


def test_unit_spellings():
    assert compute_area("12", "12", "inches", "1").total_area == 1.0
    assert compute_area("12", "12", " IN ", "1").total_area == 1.0
    assert compute_area("929", "1", "centimeters", "1").total_area == 1.0


@pytest.mark.parametrize("length,height,unit,pieces", [
    ("", "120", "in", "10"),
    ("60", "", "in", "10"),
    ("60", "120", "in", ""),
    ("abc", "120", "in", "10"),
    ("0", "120", "in", "10"),
    ("60", "-5", "in", "10"),
    ("60", "120", "in", "0"),
    ("60", "120", "ft", "10"),
    ("nan", "120", "in", "10"),
    ("inf", "120", "in", "10"),
])
def test_invalid_inputs_give_no_result(length, height, unit, pieces):
    assert compute_area(length, height, unit, pieces) is None


def test_format_operand():
    assert format_operand(60.0) == "60"
    assert format_operand(60.5) == "60.5"


def test_parse_size_string():
    assert parse_size_string("60x120") == (60.0, 120.0)
    assert parse_size_string(" 60 X 120 ") == (60.0, 120.0)
    assert parse_size_string("60*120") == (60.0, 120.0)
    assert parse_size_string("60-120") == (60.0, 120.0)
    assert parse_size_string("60.5x12") == (60.5, 12.0)
    assert parse_size_string("60x") is None
    assert parse_size_string("") is None
    assert parse_size_string("sixty by ten") is None


def test_combine_and_split_size():
    assert combine_size("60", "120") == "60x120"
    assert combine_size("60", "") == ""
    assert split_size("60x120") == ("60", "120")
    assert split_size("60") == ("60", "")
    assert split_size("") == ("", "")


def test_quantity_formula_for_stored_product():
    assert quantity_formula("60x120", "inches", 10) == "(60 × 120 × 10) ÷ 144 = 500.00 sqft"
    assert quantity_formula("60x120", "in", "10") == "(60 × 120 × 10) ÷ 144 = 500.00 sqft"


def test_quantity_formula_treats_other_units_as_cm():
    formula = quantity_formula("100x200", "metres", 5)
    assert "÷ 929" in formula


def test_quantity_formula_missing_data():
    assert quantity_formula("", "in", 10) is None
    assert quantity_formula("60x120", "in", None) is None
    assert quantity_formula("not a size", "in", 10) is None
