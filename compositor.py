#!/usr/bin/env python3
"""
Image Compositor

Draws a source image into a larger canvas at computed offsets with optional
axis flips. Used for bookmatched slab textures (room mockup previews) and,
via qr_cards.py, for printable QR cards.

Bookmatch strategies:
  mirror-2x2  - Known photo sizes (BOOKMATCH_SIZES): original, h-flip,
                v-flip and both-flip quadrants at 2x the source size
  square-4x4  - Other near-square photos: 4x4 grid, odd columns flip
                horizontally, odd rows flip vertically
  grid-4x4    - Non-square photos: same 4x4 alternating-flip grid

The reported CSS background size is always 2x the source, even for the 4x4
canvases. Mockup previews have always rendered that way.
"""

import base64
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import requests
from PIL import Image, ImageOps, UnidentifiedImageError

import feeder_config

# Photos within this many pixels of square use the square strategy
NEAR_SQUARE_TOLERANCE = 20
GRID_SIZE = 4

# Product photo URLs the bookmatcher will load
TEXTURE_URL_PREFIXES = ("http://", "https://", "data:")

PLACEHOLDER_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="100" height="100" viewBox="0 0 100 100">'
    '<rect width="100" height="100" fill="#f0f0f0"/>'
    '<path d="M30 40 L50 65 L70 40" stroke="#cccccc" stroke-width="2" fill="none"/>'
    '<circle cx="50" cy="30" r="10" fill="#cccccc"/>'
    '</svg>'
)
PLACEHOLDER_DATA_URL = "data:image/svg+xml;base64," + base64.b64encode(PLACEHOLDER_SVG.encode()).decode()

ImageSource = Union[str, Path, bytes, Image.Image]


@dataclass
class ImageLoadResult:
    """Outcome of decoding an image: either an image or the reason it failed."""
    image: Optional[Image.Image] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.image is not None

    @classmethod
    def success(cls, image: Image.Image) -> "ImageLoadResult":
        return cls(image=image)

    @classmethod
    def failure(cls, reason: str) -> "ImageLoadResult":
        return cls(error=reason)


@dataclass
class Tile:
    """One draw of the source image into the canvas."""
    offset_x: int
    offset_y: int
    flip_x: bool = False
    flip_y: bool = False


@dataclass
class CompositionSpec:
    canvas_width: int
    canvas_height: int
    tiles: list[Tile] = field(default_factory=list)
    strategy: str = ""


@dataclass
class BookmatchTexture:
    """Texture handed to the visualizer as a repeating CSS background."""
    data_url: str
    background_size: str
    background_position: str = "center"
    strategy: str = ""
    fell_back: bool = False


def fetch_image_bytes(url: str, timeout: Optional[float] = None) -> tuple[bytes, str]:
    """
    Fetch remote image bytes.

    Returns:
        (content, content_type)

    Raises:
        requests.RequestException: on transport errors or non-2xx responses
    """
    response = requests.get(url, headers={"Accept": "image/*"}, timeout=timeout)
    response.raise_for_status()
    return response.content, response.headers.get("Content-Type") or "image/jpeg"


def load_image(source: ImageSource, timeout: Optional[float] = feeder_config.REQUEST_TIMEOUT) -> ImageLoadResult:
    """
    Decode an image from a URL, file path, raw bytes or an already-open image.

    Never raises: failures come back as ImageLoadResult.failure(reason).
    """
    if isinstance(source, Image.Image):
        return ImageLoadResult.success(source)

    try:
        if isinstance(source, bytes):
            data = source
        elif isinstance(source, str) and source.startswith(("http://", "https://")):
            data, _ = fetch_image_bytes(source, timeout=timeout)
        elif isinstance(source, str) and source.startswith("data:"):
            data = base64.b64decode(source.split(",", 1)[1])
        else:
            data = Path(source).read_bytes()

        image = Image.open(io.BytesIO(data))
        image.load()
        return ImageLoadResult.success(image)
    except requests.RequestException as e:
        logging.warning("Failed to fetch image %s: %s", source, e)
        return ImageLoadResult.failure(f"fetch failed: {e}")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logging.warning("Failed to decode image %s: %s", str(source)[:120], e)
        return ImageLoadResult.failure(f"decode failed: {e}")


def image_to_png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, "PNG")
    return buffer.getvalue()


def png_data_url(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode()


def compose_image(image: Image.Image, spec: CompositionSpec) -> Image.Image:
    """Draw every tile of spec onto a fresh transparent canvas."""
    source = image.convert("RGBA")
    mirrored = {}

    canvas = Image.new("RGBA", (spec.canvas_width, spec.canvas_height), (0, 0, 0, 0))
    for tile in spec.tiles:
        key = (tile.flip_x, tile.flip_y)
        if key not in mirrored:
            variant = source
            if tile.flip_x:
                variant = ImageOps.mirror(variant)
            if tile.flip_y:
                variant = ImageOps.flip(variant)
            mirrored[key] = variant
        canvas.paste(mirrored[key], (tile.offset_x, tile.offset_y))
    return canvas


def compose(image: Image.Image, spec: CompositionSpec) -> str:
    """Compose and encode as a PNG data URL."""
    return png_data_url(image_to_png_bytes(compose_image(image, spec)))


def _mirror_2x2_spec(width: int, height: int) -> CompositionSpec:
    return CompositionSpec(
        canvas_width=width * 2,
        canvas_height=height * 2,
        tiles=[
            Tile(0, 0),
            Tile(width, 0, flip_x=True),
            Tile(0, height, flip_y=True),
            Tile(width, height, flip_x=True, flip_y=True),
        ],
        strategy="mirror-2x2",
    )


def _square_grid_spec(width: int, height: int) -> CompositionSpec:
    tiles = []
    for y in range(GRID_SIZE):
        for x in range(GRID_SIZE):
            tiles.append(Tile(x * width, y * height, flip_x=x % 2 == 1, flip_y=y % 2 == 1))
    return CompositionSpec(width * GRID_SIZE, height * GRID_SIZE, tiles, strategy="square-4x4")


def _rect_grid_spec(width: int, height: int) -> CompositionSpec:
    tiles = []
    for y in range(GRID_SIZE):
        for x in range(GRID_SIZE):
            flip_horizontal = x % 2 == 1
            flip_vertical = y % 2 == 1
            pos_x, pos_y = x * width, y * height

            if flip_horizontal and flip_vertical:
                tiles.append(Tile(pos_x, pos_y, flip_x=True, flip_y=True))
            elif flip_horizontal:
                tiles.append(Tile(pos_x, pos_y, flip_x=True))
            elif flip_vertical:
                tiles.append(Tile(pos_x, pos_y, flip_y=True))
            else:
                tiles.append(Tile(pos_x, pos_y))
    return CompositionSpec(width * GRID_SIZE, height * GRID_SIZE, tiles, strategy="grid-4x4")


def plan_bookmatch(width: int, height: int, known_sizes: Optional[set] = None) -> CompositionSpec:
    """Pick the tiling strategy for a source photo of the given size."""
    if known_sizes is None:
        known_sizes = feeder_config.BOOKMATCH_SIZES

    if (width, height) in known_sizes:
        return _mirror_2x2_spec(width, height)
    if abs(width - height) < NEAR_SQUARE_TOLERANCE:
        return _square_grid_spec(width, height)
    return _rect_grid_spec(width, height)


def create_bookmatched_texture(image_url: ImageSource, known_sizes: Optional[set] = None) -> BookmatchTexture:
    """
    Build a bookmatched texture for a product photo.

    Strings must be http(s) or data: URLs; local paths are never read. If the
    photo cannot be loaded the original URL is returned unchanged as the
    texture (fell_back=True).
    """
    if isinstance(image_url, str) and not image_url.startswith(TEXTURE_URL_PREFIXES):
        result = ImageLoadResult.failure("unsupported image url")
    else:
        result = load_image(image_url)

    if not result.ok:
        logging.error("Error loading product image for bookmatching: %s", result.error)
        fallback = image_url if isinstance(image_url, str) else PLACEHOLDER_DATA_URL
        return BookmatchTexture(
            data_url=fallback,
            background_size="400px 400px",
            fell_back=True,
        )

    width, height = result.image.size
    spec = plan_bookmatch(width, height, known_sizes)
    logging.info("Bookmatching %dx%d image with %s", width, height, spec.strategy)

    return BookmatchTexture(
        data_url=compose(result.image, spec),
        background_size=f"{width * 2}px {height * 2}px",
        background_position="center",
        strategy=spec.strategy,
    )
