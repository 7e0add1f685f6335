#!/usr/bin/env python3
"""
Tests for product QR codes and printable QR cards.
"""

import io

from flask import Flask
from PIL import Image

from qr_cards import (
    CARD_QR_SIZE,
    CARD_QR_X,
    CARD_QR_Y,
    build_product_url,
    capitalize_name,
    card_filename,
    compose_qr_card,
    current_origin,
    encode_product_qr,
    encode_qr,
    form_qr_filename,
    simple_qr_filename,
    wrap_card_text,
)

ORIGIN = "https://evershine.example"


def char_width(text):
    """Fake font: every character is 10px wide, so 150px fits 15 characters."""
    return len(text) * 10


def open_png(data):
    return Image.open(io.BytesIO(data))


def test_product_url():
    assert build_product_url("abc123", ORIGIN) == "https://evershine.example/product/abc123"
    assert build_product_url("abc123", ORIGIN + "/") == "https://evershine.example/product/abc123"


def test_origin_comes_from_request():
    app = Flask(__name__)
    with app.test_request_context("/", base_url="http://feeder.local:5000"):
        assert current_origin() == "http://feeder.local:5000"
        assert build_product_url("p1") == "http://feeder.local:5000/product/p1"


def test_encode_is_deterministic():
    first = encode_qr(f"{ORIGIN}/product/p1", width=300, margin=1)
    second = encode_qr(f"{ORIGIN}/product/p1", width=300, margin=1)
    assert first == second
    assert first != encode_qr(f"{ORIGIN}/product/p2", width=300, margin=1)


def test_preset_sizes():
    assert open_png(encode_product_qr("p1", preset="simple", origin=ORIGIN)).size == (300, 300)
    assert open_png(encode_product_qr("p1", preset="form", origin=ORIGIN)).size == (200, 200)
    assert open_png(encode_product_qr("p1", preset="card", origin=ORIGIN)).size == (200, 200)


def test_qr_is_black_on_white():
    image = open_png(encode_product_qr("p1", preset="simple", origin=ORIGIN)).convert("RGB")
    colours = {colour for _, colour in image.getcolors()}
    assert colours == {(0, 0, 0), (255, 255, 255)}


def test_capitalize_name():
    assert capitalize_name("CALACATTA gold marble") == "Calacatta Gold Marble"
    assert capitalize_name("onyx") == "Onyx"


def test_wrap_short_name():
    assert wrap_card_text("Onyx", char_width) == ["Onyx"]


def test_wrap_three_lines():
    lines = wrap_card_text("Calacatta Gold Marble Extra Premium", char_width)
    assert lines == ["Calacatta Gold", "Marble Extra", "Premium"]


def test_wrap_truncates_after_three_lines():
    lines = wrap_card_text("Calacatta Gold Marble Extra Premium Slab Stone", char_width)
    assert len(lines) == 3
    assert lines[:2] == ["Calacatta Gold", "Marble Extra"]
    assert lines[2].endswith("...")


def test_wrap_long_single_word_stays_on_first_line():
    assert wrap_card_text("Supercalifragilisticexpialidocious", char_width) == [
        "Supercalifragilisticexpialidocious"
    ]


def test_card_on_template(tmp_path):
    template = tmp_path / "qr-template.png"
    Image.new("RGB", (600, 900), (255, 255, 255)).save(template)

    result = compose_qr_card("p1", "calacatta gold", template=template, origin=ORIGIN)

    assert result.ok
    assert not result.fell_back
    card = open_png(result.png).convert("RGB")
    assert card.size == (600, 900)

    qr_region = card.crop((CARD_QR_X, CARD_QR_Y, CARD_QR_X + CARD_QR_SIZE, CARD_QR_Y + CARD_QR_SIZE))
    assert qr_region.getextrema()[0][0] < 50
    # Nothing drawn above the QR code
    assert card.crop((0, 0, 600, 600)).getextrema() == ((255, 255), (255, 255), (255, 255))


def test_template_is_scaled_to_card_size(tmp_path):
    template = tmp_path / "qr-template.png"
    Image.new("RGB", (300, 450), (255, 255, 255)).save(template)
    result = compose_qr_card("p1", "Onyx", template=template, origin=ORIGIN)
    assert open_png(result.png).size == (600, 900)


def test_missing_template_is_an_error(tmp_path):
    result = compose_qr_card("p1", "Onyx", template=tmp_path / "missing.png", origin=ORIGIN)
    assert not result.ok
    assert result.error == "Failed to load template image"


def test_missing_template_can_fall_back_to_plain_qr(tmp_path):
    result = compose_qr_card(
        "p1", "Onyx", template=tmp_path / "missing.png", origin=ORIGIN, fallback_to_plain=True
    )
    assert result.ok
    assert result.fell_back
    assert result.png == encode_product_qr("p1", preset="card", origin=ORIGIN)


def test_filenames():
    assert card_filename("p1") == "evershine-product-p1.png"
    assert simple_qr_filename("p1") == "evershine-qr-p1.png"
    assert form_qr_filename("p1") == "product-qr-p1.png"
