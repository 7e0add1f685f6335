#!/usr/bin/env python3
"""
Slab Quantity Calculator

Derives the available quantity (sqft) of a stone lot from slab size and
piece count:

    inches:       (length * height * pieces) / 144
    centimetres:  (length * height * pieces) / 929

929 is the rounded cm²-per-sqft figure the sales team quotes with; it is
kept as-is rather than replaced with the exact 929.0304.
"""

import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Optional

# Divisors keyed by every unit spelling the backend and the forms use
UNIT_DIVISORS = {
    "in": 144,
    "inch": 144,
    "inches": 144,
    "cm": 929,
    "centimeters": 929,
    "centimetres": 929,
}

SIZE_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)[x*-](\d+(?:\.\d+)?)$")
SIZE_SEPARATORS = re.compile(r"[x*-]")


@dataclass
class ProductDimensions:
    """Slab size and piece count for one form submission."""
    length: float
    height: float
    unit: str
    piece_count: float

    @property
    def divisor(self) -> int:
        return UNIT_DIVISORS[self.unit]


@dataclass
class AreaResult:
    """Computed quantity and the derivation shown next to it."""
    total_area: float  # sqft, 2 decimal places
    formula: str


def _parse_positive(value) -> Optional[float]:
    """Parse free text into a finite positive float, or None."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def format_operand(value: float) -> str:
    """Render a number the way the UI always has: 60 not 60.0, 60.5 as 60.5."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def parse_size_string(size: str) -> Optional[tuple[float, float]]:
    """
    Parse a combined size like "60x120", "60 * 120" or "60-120".

    Returns:
        (length, height) or None if the string does not match
    """
    if not size:
        return None
    cleaned = re.sub(r"\s+", "", size).lower()
    match = SIZE_PATTERN.match(cleaned)
    if not match:
        return None
    return float(match.group(1)), float(match.group(2))


def combine_size(length: str, height: str) -> str:
    """Build the stored size value from the two form inputs."""
    length = (length or "").strip()
    height = (height or "").strip()
    if length and height:
        return f"{length}x{height}"
    return ""


def split_size(size: str) -> tuple[str, str]:
    """Split a stored size back into (length, height) form values."""
    if not size:
        return "", ""
    parts = SIZE_SEPARATORS.split(size.strip().lower())
    length = parts[0].strip() if parts else ""
    height = parts[1].strip() if len(parts) > 1 else ""
    return length, height


def parse_dimensions(length: str, height: str, unit: str, piece_count: str) -> Optional[ProductDimensions]:
    """Validate the raw inputs. Returns None for anything non-numeric or not positive."""
    unit = (unit or "").strip().lower()
    if unit not in UNIT_DIVISORS:
        return None

    parsed_length = _parse_positive(length)
    parsed_height = _parse_positive(height)
    parsed_pieces = _parse_positive(piece_count)
    if parsed_length is None or parsed_height is None or parsed_pieces is None:
        return None

    return ProductDimensions(
        length=parsed_length,
        height=parsed_height,
        unit=unit,
        piece_count=parsed_pieces,
    )


def round_half_up(value: float) -> Decimal:
    """Round to 2 places with halves going up (0.125 -> 0.13), as the form always has."""
    return Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP, context=Context(prec=400))


def area_from_dimensions(dimensions: ProductDimensions) -> AreaResult:
    divisor = dimensions.divisor
    area = round_half_up((dimensions.length * dimensions.height * dimensions.piece_count) / divisor)
    formula = (
        f"({format_operand(dimensions.length)} × {format_operand(dimensions.height)} × "
        f"{format_operand(dimensions.piece_count)}) ÷ {divisor} = {area} sqft"
    )
    return AreaResult(total_area=float(area), formula=formula)


def compute_area(length: str, height: str, unit: str, piece_count: str) -> Optional[AreaResult]:
    """
    Compute total area from free-text slab length, height, unit and piece count.

    Args:
        length: Slab length as typed
        height: Slab height as typed
        unit: "in" or "cm"
        piece_count: Number of pieces as typed

    Returns:
        AreaResult, or None when any input is missing, non-numeric, zero or negative
    """
    dimensions = parse_dimensions(length, height, unit, piece_count)
    if dimensions is None:
        return None
    if not math.isfinite(dimensions.length * dimensions.height * dimensions.piece_count):
        return None
    return area_from_dimensions(dimensions)


def quantity_formula(size: str, size_unit: str, pieces) -> Optional[str]:
    """
    Derivation tooltip for a stored product (size "60x120", unit, pieces).

    Anything other than inches is treated as centimetres, matching how
    products saved before the unit field existed are displayed.
    """
    if not size or not pieces:
        return None
    parsed = parse_size_string(size)
    if parsed is None:
        return None

    unit = (size_unit or "").strip().lower()
    if UNIT_DIVISORS.get(unit) != 144:
        unit = "cm"

    result = compute_area(str(parsed[0]), str(parsed[1]), unit, str(pieces))
    return result.formula if result else None
