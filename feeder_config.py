#!/usr/bin/env python3
"""
Feeder Catalog Configuration

Loads config.bat (if present) into the environment and exposes the settings
shared by the web app, the catalog client and the image tools.
"""

import logging
import os
import sys
from pathlib import Path

APP_DIR = Path(__file__).parent


def load_config_bat(config_path: Path) -> int:
    """
    Load `set KEY=VALUE` lines from a Windows config.bat into os.environ.

    Returns:
        Number of variables loaded
    """
    if not config_path.exists():
        return 0

    loaded = 0
    with open(config_path, "r") as f:
        for line in f:
            line = line.strip()
            if line.startswith("set ") and "=" in line:
                parts = line[4:].split("=", 1)
                if len(parts) == 2:
                    os.environ[parts[0]] = parts[1]
                    loaded += 1
    return loaded


def parse_known_sizes(value: str) -> set[tuple[int, int]]:
    """Parse '488x488,646x646' into {(488, 488), (646, 646)}."""
    sizes = set()
    for item in value.split(","):
        item = item.strip().lower()
        if not item:
            continue
        try:
            w, h = item.split("x", 1)
            sizes.add((int(w), int(h)))
        except ValueError:
            logging.warning("Ignoring malformed bookmatch size: %s", item)
    return sizes


def setup_logging(level: int = logging.INFO) -> None:
    """Configure console logging for the web app."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stdout,
    )


load_config_bat(APP_DIR / "config.bat")

# Backend REST API (read once at import)
API_URL = (
    os.environ.get("FEEDER_API_URL")
    or os.environ.get("NEXT_PUBLIC_API_URL")
    or "https://evershinebackend-2.onrender.com"
)

# Used for QR payloads when there is no request to take the origin from
PUBLIC_SITE_URL = os.environ.get("FEEDER_PUBLIC_SITE_URL", "https://evershine-agent.vercel.app")

SECRET_KEY = os.environ.get("FEEDER_SECRET_KEY", "dev-feeder-secret")

# Unset means no timeout on backend/proxy requests
_timeout = os.environ.get("FEEDER_REQUEST_TIMEOUT", "").strip()
REQUEST_TIMEOUT = float(_timeout) if _timeout else None

ASSETS_DIR = Path(os.environ.get("FEEDER_ASSETS_DIR", str(APP_DIR / "assets")))
QR_TEMPLATE_PATH = ASSETS_DIR / "qr-template.png"
MOCKUPS_DIR = ASSETS_DIR / "mockups"

BOOKMATCH_SIZES = parse_known_sizes(os.environ.get("FEEDER_BOOKMATCH_SIZES", "488x488,646x646"))

PORT = int(os.environ.get("PORT", 5000))
