#!/usr/bin/env python3
"""
Tests for the bookmatch compositor. Source images are built in memory so
flips can be checked pixel by pixel.
"""

import base64
import io
from unittest import mock

import requests
from PIL import Image

import compositor
from compositor import (
    CompositionSpec,
    Tile,
    compose_image,
    create_bookmatched_texture,
    load_image,
    plan_bookmatch,
)

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)
GREEN = (0, 255, 0, 255)
WHITE = (255, 255, 255, 255)


def marker_image(width, height):
    """Red top-left pixel, blue top-right, green bottom-left, rest white."""
    image = Image.new("RGBA", (width, height), WHITE)
    image.putpixel((0, 0), RED)
    image.putpixel((width - 1, 0), BLUE)
    image.putpixel((0, height - 1), GREEN)
    return image


def png_bytes(image):
    buffer = io.BytesIO()
    image.save(buffer, "PNG")
    return buffer.getvalue()


def decode_data_url(data_url):
    assert data_url.startswith("data:image/png;base64,")
    return Image.open(io.BytesIO(base64.b64decode(data_url.split(",", 1)[1])))


def test_known_size_uses_mirror_2x2():
    spec = plan_bookmatch(488, 488, known_sizes={(488, 488)})
    assert spec.strategy == "mirror-2x2"
    assert (spec.canvas_width, spec.canvas_height) == (976, 976)
    assert [(t.flip_x, t.flip_y) for t in spec.tiles] == [
        (False, False), (True, False), (False, True), (True, True),
    ]


def test_near_square_uses_square_grid():
    spec = plan_bookmatch(500, 510, known_sizes=set())
    assert spec.strategy == "square-4x4"
    assert (spec.canvas_width, spec.canvas_height) == (2000, 2040)
    assert len(spec.tiles) == 16


def test_twenty_pixels_off_is_not_square():
    assert plan_bookmatch(500, 520, known_sizes=set()).strategy == "grid-4x4"
    assert plan_bookmatch(500, 519, known_sizes=set()).strategy == "square-4x4"


def test_rect_grid_flips_alternate():
    spec = plan_bookmatch(300, 100, known_sizes=set())
    assert spec.strategy == "grid-4x4"
    by_position = {(t.offset_x, t.offset_y): (t.flip_x, t.flip_y) for t in spec.tiles}
    assert by_position[(0, 0)] == (False, False)
    assert by_position[(300, 0)] == (True, False)
    assert by_position[(0, 100)] == (False, True)
    assert by_position[(300, 100)] == (True, True)
    assert by_position[(900, 300)] == (True, True)


def test_compose_image_applies_flips():
    source = marker_image(4, 4)
    spec = CompositionSpec(8, 8, [
        Tile(0, 0),
        Tile(4, 0, flip_x=True),
        Tile(0, 4, flip_y=True),
        Tile(4, 4, flip_x=True, flip_y=True),
    ])
    canvas = compose_image(source, spec)

    assert canvas.size == (8, 8)
    assert canvas.getpixel((0, 0)) == RED
    # Horizontal mirror puts red on the right edge of its quadrant
    assert canvas.getpixel((7, 0)) == RED
    assert canvas.getpixel((4, 0)) == BLUE
    # Vertical mirror puts red on the bottom edge
    assert canvas.getpixel((0, 7)) == RED
    assert canvas.getpixel((0, 4)) == GREEN
    assert canvas.getpixel((7, 7)) == RED


def test_bookmatched_texture_from_bytes():
    texture = create_bookmatched_texture(png_bytes(marker_image(10, 10)), known_sizes={(10, 10)})

    assert not texture.fell_back
    assert texture.strategy == "mirror-2x2"
    assert texture.background_size == "20px 20px"
    assert texture.background_position == "center"

    composed = decode_data_url(texture.data_url)
    assert composed.size == (20, 20)
    assert composed.getpixel((19, 19))[:3] == RED[:3]


def test_background_size_is_twice_source_for_grids():
    texture = create_bookmatched_texture(png_bytes(marker_image(30, 10)), known_sizes=set())
    assert texture.strategy == "grid-4x4"
    assert texture.background_size == "60px 20px"
    assert decode_data_url(texture.data_url).size == (120, 40)


def test_unloadable_url_falls_back_to_original():
    url = "https://cdn.example.com/slab.jpg"
    with mock.patch.object(compositor, "fetch_image_bytes", side_effect=requests.ConnectionError("down")):
        texture = create_bookmatched_texture(url)

    assert texture.fell_back
    assert texture.data_url == url
    assert texture.background_size == "400px 400px"


def test_load_image_reports_decode_failure():
    result = load_image(b"definitely not an image")
    assert not result.ok
    assert result.error.startswith("decode failed")


def test_load_image_from_path(tmp_path):
    path = tmp_path / "slab.png"
    marker_image(5, 7).save(path)
    result = load_image(path)
    assert result.ok
    assert result.image.size == (5, 7)


def test_load_image_missing_file(tmp_path):
    result = load_image(tmp_path / "missing.png")
    assert not result.ok


def test_load_image_from_data_url():
    data_url = compositor.png_data_url(png_bytes(marker_image(3, 3)))
    result = load_image(data_url)
    assert result.ok
    assert result.image.size == (3, 3)


def test_local_paths_are_never_read_for_textures(tmp_path):
    path = tmp_path / "secret.png"
    marker_image(7, 9).save(path)

    texture = create_bookmatched_texture(str(path))

    assert texture.fell_back
    assert texture.data_url == str(path)
    assert texture.background_size == "400px 400px"


def test_site_relative_path_falls_back():
    texture = create_bookmatched_texture("/uploads/slab.jpg")
    assert texture.fell_back
    assert texture.data_url == "/uploads/slab.jpg"
