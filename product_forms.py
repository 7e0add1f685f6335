#!/usr/bin/env python3
"""
Feeder form handling: validation and backend payloads for the product,
login and registration forms.

Validation problems never raise. They come back as a {field: message} dict
that the page renders next to the inputs.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Optional

from area_calculator import AreaResult, combine_size, compute_area, split_size
from catalog_api import UploadFile

CATEGORIES = [
    "Imported Marble",
    "Imported Granite",
    "Exotics",
    "Onyx",
    "Travertine",
    "Indian Marble",
    "Indian Granite",
    "Semi Precious Stone",
    "Quartzite",
    "Sandstone",
]

APPLICATION_AREAS = ["Flooring", "Countertops", "Walls", "Exterior", "Interior"]

FINISHES = ["Polish", "Leather", "Flute", "River", "Satin", "Dual"]

SIZE_UNITS = ["in", "cm"]

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB
MAX_IMAGES = 10
ACCEPTED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")
MIN_PASSWORD_LENGTH = 8


def parse_finishes(finishes: Optional[str]) -> list[str]:
    """'Polish, Leather' -> ['polish', 'leather']"""
    if not finishes:
        return []
    return [f.strip().lower() for f in finishes.split(",")]


def parse_application_areas(areas) -> list[str]:
    """Backend stores areas as 'Flooring,Walls'; older records hold a list."""
    if not areas:
        return []
    if isinstance(areas, str):
        return [a.strip() for a in areas.split(",") if a.strip()]
    if isinstance(areas, list):
        return list(areas)
    return []


@dataclass
class ProductForm:
    """Values of the add/edit product form, as submitted."""
    name: str = ""
    category: str = ""
    price: str = ""
    quantity_available: str = ""
    size_length: str = ""
    size_height: str = ""
    size_unit: str = "in"
    number_of_pieces: str = ""
    thickness: str = ""
    finishes: list[str] = field(default_factory=list)
    application_areas: list[str] = field(default_factory=list)
    description: str = ""
    auto_calculate: bool = True
    existing_images: list[str] = field(default_factory=list)

    @property
    def size(self) -> str:
        return combine_size(self.size_length, self.size_height)

    @classmethod
    def from_product(cls, product: dict) -> "ProductForm":
        """Prefill from a backend product for the edit page."""
        length, height = split_size(product.get("size") or "")
        pieces = product.get("numberOfPieces")
        return cls(
            name=product.get("name") or "",
            category=product.get("category") or "",
            price=_to_str(product.get("price")),
            quantity_available=_to_str(product.get("quantityAvailable")),
            size_length=length,
            size_height=height,
            size_unit="cm" if (product.get("sizeUnit") or "").lower().startswith("c") else "in",
            number_of_pieces=_to_str(pieces),
            thickness=product.get("thickness") or "",
            finishes=parse_finishes(product.get("finishes")),
            application_areas=parse_application_areas(product.get("applicationAreas")),
            description=product.get("description") or "",
            existing_images=list(product.get("image") or []),
        )

    @classmethod
    def from_request_form(cls, form) -> "ProductForm":
        """Build from a werkzeug MultiDict (request.form)."""
        return cls(
            name=form.get("name", "").strip(),
            category=form.get("category", ""),
            price=form.get("price", "").strip(),
            quantity_available=form.get("quantityAvailable", "").strip(),
            size_length=form.get("sizeLength", "").strip(),
            size_height=form.get("sizeHeight", "").strip(),
            size_unit=form.get("sizeUnit", "in") or "in",
            number_of_pieces=form.get("numberOfPieces", "").strip(),
            thickness=form.get("thickness", "").strip(),
            finishes=[f.lower() for f in form.getlist("finishes")],
            application_areas=form.getlist("applicationAreas"),
            description=form.get("description", "").strip(),
            auto_calculate=form.get("autoCalculate") in ("on", "true", "1"),
            existing_images=form.getlist("existingImages"),
        )

    def calculate_quantity(self) -> Optional[AreaResult]:
        """Area from the size inputs, or None when they are incomplete."""
        if not self.auto_calculate:
            return None
        return compute_area(self.size_length, self.size_height, self.size_unit, self.number_of_pieces)

    def apply_auto_quantity(self) -> Optional[AreaResult]:
        """Overwrite quantity_available with the calculated area when auto-calculate is on."""
        result = self.calculate_quantity()
        if result is not None:
            self.quantity_available = _format_quantity(result.total_area)
        return result

    def validate(self) -> dict[str, str]:
        errors = {}
        if len(self.name) < 2:
            errors["name"] = "Product name must be at least 2 characters"
        if not self.category:
            errors["category"] = "Please select a category"
        if not self.price:
            errors["price"] = "Price is required"
        if not self.quantity_available:
            errors["quantityAvailable"] = "Quantity is required"
        if not self.application_areas:
            errors["applicationAreas"] = "Please select at least one application area"
        if self.size_unit not in SIZE_UNITS:
            errors["sizeUnit"] = "Unit must be in or cm"
        if self.auto_calculate and self.size_length and self.size_height and self.number_of_pieces:
            if compute_area(self.size_length, self.size_height, self.size_unit, self.number_of_pieces) is None:
                errors["size"] = "Please enter valid numbers for size and pieces"
        return errors

    def to_fields(self) -> dict:
        """Multipart fields for create-post / updateProduct."""
        return {
            "name": self.name,
            "category": self.category,
            "price": self.price,
            "quantityAvailable": self.quantity_available,
            "size": self.size,
            "sizeLength": self.size_length,
            "sizeHeight": self.size_height,
            "sizeUnit": self.size_unit or "in",
            "numberOfPieces": self.number_of_pieces,
            "thickness": self.thickness,
            "finishes": ",".join(self.finishes),
            "applicationAreas": ",".join(self.application_areas),
            "description": self.description,
        }


def validate_images(new_images: list[UploadFile], existing_count: int = 0) -> Optional[str]:
    """
    Check uploaded images against type, size and count limits.

    Returns:
        Error message, or None if all images are acceptable
    """
    if existing_count + len(new_images) > MAX_IMAGES:
        return f"You can only upload up to {MAX_IMAGES} images in total"
    for image in new_images:
        if image.content_type not in ACCEPTED_IMAGE_TYPES:
            return "Invalid file type. Only JPG, PNG and WebP are allowed"
        if image.size > MAX_FILE_SIZE:
            return "File size too large. Maximum size is 5MB"
    if existing_count + len(new_images) == 0:
        return "You must have at least one image"
    return None


def validate_price(value: str) -> Optional[float]:
    """Bulk-edit price: a positive number, else None."""
    try:
        price = float((value or "").strip())
    except ValueError:
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price


def validate_login(email: str, password: str) -> dict[str, str]:
    errors = {}
    if not email.strip():
        errors["email"] = "Email is required"
    elif not EMAIL_PATTERN.search(email):
        errors["email"] = "Email is invalid"
    if not password:
        errors["password"] = "Password is required"
    return errors


def validate_registration(name: str, email: str, password: str, confirm_password: str) -> dict[str, str]:
    errors = {}
    if not name.strip():
        errors["name"] = "Name is required"
    if not email.strip():
        errors["email"] = "Email is required"
    elif not EMAIL_PATTERN.search(email):
        errors["email"] = "Email is invalid"
    if not password:
        errors["password"] = "Password is required"
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if password != confirm_password:
        errors["confirmPassword"] = "Passwords do not match"
    return errors


def _to_str(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _format_quantity(area: float) -> str:
    # 500.0 -> "500", 12.5 -> "12.5", like the quantity field has always shown
    return _to_str(area)
