"""Screen capture and image file helpers (Pillow)."""

import logging
import os
from typing import Optional

from PIL import Image, ImageGrab

from uireplay.errors import CaptureError, ReferenceImageError
from uireplay.window import WindowLocator

logger = logging.getLogger(__name__)


class ScreenCapture:
    """Grabs the frontmost window, or the whole screen when its bounds are unknown."""

    def __init__(self, locator: Optional[WindowLocator] = None):
        self.locator = locator or WindowLocator()

    def capture(self) -> Image.Image:
        bbox = self.locator.current_bounds()
        try:
            image = ImageGrab.grab(bbox=bbox, all_screens=True)
        except OSError as exc:
            raise CaptureError(f"Screen capture failed: {exc}") from exc
        return image.convert("RGB")


def load_image(path: str) -> Image.Image:
    """Read an image file fully into memory as RGB."""
    try:
        with Image.open(path) as img:
            return img.convert("RGB")
    except OSError as exc:
        raise ReferenceImageError(
            f"Failed reading image file: {os.path.abspath(path)}"
        ) from exc


def save_image(image: Image.Image, path: str):
    """Write ``image`` as PNG."""
    image.save(path, "PNG")
    logger.debug("Wrote %s", path)
