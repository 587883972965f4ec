"""Locate certificate template images."""

from __future__ import annotations

import logging
import os

logger = logging.getLogger("certdesk.certgen")

PACKAGE_ASSET_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "assets", "images")

BACKGROUND_IMAGE = "background_image.png"
LOGO_LEFT = "logo_left.png"
LOGO_RIGHT = "logo_right.png"


def candidate_paths(filename: str, asset_dir: str | None = None, cwd: str | None = None) -> list[str]:
    """Lookup order: renderer-local assets, ``<cwd>/images``, ``<cwd>/server/images``."""

    base = cwd or os.getcwd()
    return [
        os.path.join(asset_dir or PACKAGE_ASSET_DIR, filename),
        os.path.join(base, "images", filename),
        os.path.join(base, "server", "images", filename),
    ]


def resolve_asset(filename: str, asset_dir: str | None = None, cwd: str | None = None) -> str | None:
    attempts = candidate_paths(filename, asset_dir, cwd)
    for path in attempts:
        if os.path.isfile(path):
            return path
    logger.warning("[CERT-ASSET-MISSING] file=%s tried=%s", filename, attempts)
    return None
