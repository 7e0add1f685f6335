#!/usr/bin/env python3
"""
Room Mockup Visualizer

Shows a product in room mockups: the bookmatched slab texture is laid as a
repeating background behind each transparent mockup photo. All mockups are
loaded in parallel and the preview is only ready once every load has
finished, successfully or not.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import feeder_config
from compositor import BookmatchTexture, create_bookmatched_texture, load_image

MOCKUPS = [
    {"id": "bathroom", "name": "Bathroom", "file": "bathroom.png"},
    {"id": "modern-bedroom", "name": "Modern Bedroom", "file": "modern-bedroom.png"},
    {"id": "living-room", "name": "Living Room", "file": "living-room.jpeg"},
    {"id": "bedroom-green", "name": "Bedroom", "file": "bedroom-green.png"},
    {"id": "luxury-living", "name": "Luxury Living", "file": "luxury-living.png"},
    {"id": "minimalist", "name": "Minimalist", "file": "minimalist.png"},
]

MAX_PRELOAD_WORKERS = 6


@dataclass
class VisualizerState:
    product_name: str
    texture: BookmatchTexture
    mockups_loaded: dict[str, bool] = field(default_factory=dict)
    active_mockup: str = MOCKUPS[0]["id"]

    @property
    def ready(self) -> bool:
        # Every mockup has reported in, whether it loaded or not
        return len(self.mockups_loaded) == len(MOCKUPS)

    @property
    def available_mockups(self) -> list[dict]:
        return [m for m in MOCKUPS if self.mockups_loaded.get(m["id"])]


def _mockup_loads(mockup: dict, mockups_dir: Path) -> bool:
    result = load_image(mockups_dir / mockup["file"])
    if not result.ok:
        logging.warning("Mockup %s failed to load: %s", mockup["id"], result.error)
    return result.ok


def preload_mockups(mockups_dir: Optional[Path] = None) -> dict[str, bool]:
    """
    Load every mockup in parallel and wait for all of them.

    Returns:
        Dict of mockup id -> whether it loaded
    """
    if mockups_dir is None:
        mockups_dir = feeder_config.MOCKUPS_DIR

    loaded = {}
    with ThreadPoolExecutor(max_workers=MAX_PRELOAD_WORKERS) as executor:
        futures = {executor.submit(_mockup_loads, m, mockups_dir): m["id"] for m in MOCKUPS}
        for future in as_completed(futures):
            loaded[futures[future]] = future.result()

    logging.info("Preloaded %d/%d mockups", sum(loaded.values()), len(MOCKUPS))
    return loaded


def build_visualizer(
    product_image: str,
    product_name: str,
    mockups_dir: Optional[Path] = None,
    active_mockup: Optional[str] = None,
) -> VisualizerState:
    """Bookmatch the product photo and preload the mockups for the preview page."""
    texture = create_bookmatched_texture(product_image)
    state = VisualizerState(
        product_name=product_name,
        texture=texture,
        mockups_loaded=preload_mockups(mockups_dir),
    )
    if active_mockup and any(m["id"] == active_mockup for m in MOCKUPS):
        state.active_mockup = active_mockup
    return state
