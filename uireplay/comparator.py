"""PSNR-based fuzzy screenshot comparison and delta images."""

import logging
import math
from typing import Optional

import numpy as np
from PIL import Image

from uireplay.models import ComparisonResult

logger = logging.getLogger(__name__)

# Score reported for identical images; also the upper clamp.
IDENTICAL_SCORE = 1000.0
DEFAULT_THRESHOLD = 65.0
_PEAK = 255.0


def _as_rgb_array(image) -> np.ndarray:
    """H x W x 3 int32 view of a Pillow image or an RGB(A) array."""
    if isinstance(image, Image.Image):
        return np.asarray(image.convert("RGB"), dtype=np.int32)
    arr = np.asarray(image)
    if arr.ndim != 3 or arr.shape[2] < 3:
        raise ValueError(f"Expected an H x W x 3 pixel buffer, got shape {arr.shape}")
    return arr[..., :3].astype(np.int32)


def _same_size(a: np.ndarray, b: np.ndarray) -> bool:
    return a.shape[:2] == b.shape[:2]


def peak_signal_to_noise_ratio(source, target) -> float:
    """PSNR in dB over the R, G and B channels.

    0 when the images differ in size or either is missing,
    ``IDENTICAL_SCORE`` when they are pixel-identical.
    """
    if source is None or target is None:
        return 0.0
    a = _as_rgb_array(source)
    b = _as_rgb_array(target)
    if not _same_size(a, b):
        return 0.0

    diff = (a - b).astype(np.int64)
    sq_sum = int(np.sum(diff * diff))
    mean_square_error = sq_sum / (3.0 * a.shape[0] * a.shape[1])
    if mean_square_error == 0:
        return IDENTICAL_SCORE
    ratio = 10 * math.log10((_PEAK * _PEAK) / mean_square_error)
    return min(ratio, IDENTICAL_SCORE)


def generate_delta(source, target, white_equals: bool = False) -> Optional[Image.Image]:
    """Per-channel |source - target| image, or None when sizes differ.

    With ``white_equals`` exactly equal pixels are drawn white instead of black.
    """
    a = _as_rgb_array(source)
    b = _as_rgb_array(target)
    if not _same_size(a, b):
        return None
    absdiff = np.abs(a - b).astype(np.uint8)
    if white_equals:
        equal = np.all(absdiff == 0, axis=2)
        absdiff[equal] = 255
    return Image.fromarray(absdiff)


class PerceptualComparator:
    """Decides whether two screenshots are close enough.

    A higher threshold means a stricter match.
    """

    def __init__(self, threshold: float = DEFAULT_THRESHOLD, white_equals: bool = False):
        self.threshold = float(threshold)
        self.white_equals = white_equals

    def score(self, source, target) -> float:
        return peak_signal_to_noise_ratio(source, target)

    def compare(
        self,
        source,
        target,
        threshold: Optional[float] = None,
        with_delta: bool = True,
    ) -> ComparisonResult:
        limit = self.threshold if threshold is None else float(threshold)
        a = _as_rgb_array(source)
        b = _as_rgb_array(target)
        if not _same_size(a, b):
            logger.debug("Image sizes differ: %s vs %s", a.shape[:2], b.shape[:2])
            return ComparisonResult(score=0.0, matched=False, delta=None, dimensions_match=False)

        score = peak_signal_to_noise_ratio(a, b)
        logger.debug("Signal=%.3f dB (threshold %.3f)", score, limit)
        delta = self.generate_delta(a, b) if with_delta else None
        return ComparisonResult(score=score, matched=score > limit, delta=delta)

    def generate_delta(self, source, target, white_equals: Optional[bool] = None) -> Optional[Image.Image]:
        if white_equals is None:
            white_equals = self.white_equals
        return generate_delta(source, target, white_equals=white_equals)
