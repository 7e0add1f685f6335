#!/usr/bin/env python3
"""
Product QR Codes and Printable QR Cards

Every product gets a QR code pointing at its public page:

    <origin>/product/<postId>

The printable card is the 600x900 branded template with the QR code in the
white space at the bottom right and the product name wrapped underneath it.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import qrcode
from qrcode.constants import ERROR_CORRECT_M
from qrcode.exceptions import DataOverflowError
from flask import has_request_context, request
from PIL import Image, ImageDraw, ImageFont

import feeder_config
from compositor import ImageSource, image_to_png_bytes, load_image

# (width_px, margin_modules) per download
QR_PRESETS = {
    "card": (200, 1),
    "simple": (300, 1),
    "form": (200, 2),
}

# Card layout (px, on the 600x900 template)
CARD_WIDTH = 600
CARD_HEIGHT = 900
CARD_QR_X = 380
CARD_QR_Y = 640
CARD_QR_SIZE = 150
CARD_TEXT_Y = 810
CARD_LINE_HEIGHT = 20
CARD_TEXT_MAX_WIDTH = 150  # same as the QR code
CARD_MAX_LINES = 3
CARD_FONT_SIZE = 16

BOLD_FONT_CANDIDATES = [
    "arialbd.ttf",
    "Arial Bold.ttf",
    "DejaVuSans-Bold.ttf",
    "LiberationSans-Bold.ttf",
]


@dataclass
class QRCardResult:
    """PNG bytes for download, or the message to show instead."""
    png: Optional[bytes] = None
    error: Optional[str] = None
    fell_back: bool = False

    @property
    def ok(self) -> bool:
        return self.png is not None


def current_origin() -> str:
    """Origin of the current request, or the public site when there is none."""
    if has_request_context():
        return request.host_url.rstrip("/")
    return feeder_config.PUBLIC_SITE_URL.rstrip("/")


def build_product_url(product_id: str, origin: Optional[str] = None) -> str:
    """Public product page URL encoded into every QR code."""
    if origin is None:
        origin = current_origin()
    return f"{origin.rstrip('/')}/product/{product_id}"


def encode_qr_image(url: str, width: int = 200, margin: int = 1) -> Image.Image:
    """
    Encode url as a black-on-white QR code exactly width x width pixels.

    The module matrix is drawn one pixel per module and scaled up with
    nearest-neighbour, so the same arguments always give the same pixels.
    """
    qr = qrcode.QRCode(border=margin, error_correction=ERROR_CORRECT_M)
    qr.add_data(url)
    qr.make(fit=True)

    matrix = qr.get_matrix()
    size = len(matrix)
    image = Image.new("RGB", (size, size), (255, 255, 255))
    pixels = image.load()
    for y, row in enumerate(matrix):
        for x, dark in enumerate(row):
            if dark:
                pixels[x, y] = (0, 0, 0)

    return image.resize((width, width), Image.Resampling.NEAREST)


def encode_qr(url: str, width: int = 200, margin: int = 1) -> bytes:
    """Encode url and return PNG bytes."""
    return image_to_png_bytes(encode_qr_image(url, width=width, margin=margin))


def encode_product_qr(product_id: str, preset: str = "card", origin: Optional[str] = None) -> bytes:
    width, margin = QR_PRESETS[preset]
    return encode_qr(build_product_url(product_id, origin), width=width, margin=margin)


def capitalize_name(name: str) -> str:
    """'CALACATTA gold marble' -> 'Calacatta Gold Marble'."""
    return " ".join(word[:1].upper() + word[1:].lower() for word in name.split(" "))


def wrap_card_text(
    text: str,
    measure: Callable[[str], float],
    max_width: float = CARD_TEXT_MAX_WIDTH,
    max_lines: int = CARD_MAX_LINES,
) -> list[str]:
    """
    Greedy word wrap for the card caption.

    Words accumulate into a line until the measured width passes max_width.
    Once the last allowed line is reached with words still to come, that line
    is closed with "..." and the rest is dropped.
    """
    words = text.split(" ")
    lines = []
    line = ""
    line_count = 0

    for i, word in enumerate(words):
        if line_count >= max_lines - 1 and i < len(words) - 1:
            lines.append((line + "...").strip())
            return lines

        test_line = line + word + " "
        if measure(test_line) > max_width and i > 0:
            lines.append(line.strip())
            line = word + " "
            line_count += 1
        else:
            line = test_line

    if line_count < max_lines:
        lines.append(line.strip())
    return lines


def load_card_font(size: int = CARD_FONT_SIZE) -> ImageFont.ImageFont:
    for candidate in BOLD_FONT_CANDIDATES:
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue
    logging.warning("No bold TrueType font found, using Pillow default font")
    return ImageFont.load_default(size=size)


def compose_qr_card(
    product_id: str,
    product_name: str,
    template: Optional[ImageSource] = None,
    origin: Optional[str] = None,
    fallback_to_plain: bool = False,
) -> QRCardResult:
    """
    Build the printable QR card for a product.

    Args:
        product_id: Product postId
        product_name: Name printed under the QR code
        template: Card template (defaults to assets/qr-template.png)
        origin: Site origin for the QR payload (defaults to the current request)
        fallback_to_plain: Return the bare QR code when the template is missing
            instead of an error

    Returns:
        QRCardResult with PNG bytes or a user-facing error message
    """
    try:
        width, margin = QR_PRESETS["card"]
        qr_image = encode_qr_image(build_product_url(product_id, origin), width=width, margin=margin)
    except (ValueError, DataOverflowError) as e:
        logging.error("Error generating QR code for %s: %s", product_id, e)
        return QRCardResult(error="Failed to generate QR code")

    if template is None:
        template = Path(feeder_config.QR_TEMPLATE_PATH)

    loaded = load_image(template)
    if not loaded.ok:
        logging.error("Error loading template image: %s", loaded.error)
        if fallback_to_plain:
            return QRCardResult(png=image_to_png_bytes(qr_image), fell_back=True)
        return QRCardResult(error="Failed to load template image")

    card = loaded.image.convert("RGB").resize((CARD_WIDTH, CARD_HEIGHT), Image.Resampling.LANCZOS)
    qr_small = qr_image.resize((CARD_QR_SIZE, CARD_QR_SIZE), Image.Resampling.LANCZOS)
    card.paste(qr_small, (CARD_QR_X, CARD_QR_Y))

    draw = ImageDraw.Draw(card)
    font = load_card_font()
    center_x = CARD_QR_X + CARD_QR_SIZE // 2
    lines = wrap_card_text(capitalize_name(product_name), lambda s: draw.textlength(s, font=font))

    y = CARD_TEXT_Y
    for line in lines:
        draw.text((center_x, y), line, font=font, fill=(0, 0, 0), anchor="ms")
        y += CARD_LINE_HEIGHT

    return QRCardResult(png=image_to_png_bytes(card))


def card_filename(product_id: str) -> str:
    return f"evershine-product-{product_id}.png"


def simple_qr_filename(product_id: str) -> str:
    return f"evershine-qr-{product_id}.png"


def form_qr_filename(product_id: str) -> str:
    return f"product-qr-{product_id}.png"
