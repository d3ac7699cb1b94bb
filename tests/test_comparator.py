"""Tests for comparator.py -- PSNR scoring, thresholds and delta images."""

import math

import numpy as np
import pytest
from PIL import Image

from uireplay.comparator import (
    IDENTICAL_SCORE,
    PerceptualComparator,
    generate_delta,
    peak_signal_to_noise_ratio,
)


def _solid(color, size=(4, 3)):
    return Image.new("RGB", size, color)


class TestScore:
    def test_identical_images_score_sentinel(self):
        img = _solid((10, 20, 30))
        assert peak_signal_to_noise_ratio(img, img.copy()) == IDENTICAL_SCORE

    def test_known_error(self):
        # One channel off by 1 everywhere: MSE = 1/3
        a = _solid((0, 0, 0))
        b = _solid((1, 0, 0))
        expected = 10 * math.log10(255 * 255 / (1 / 3))
        assert peak_signal_to_noise_ratio(a, b) == pytest.approx(expected)

    def test_symmetric(self):
        a = _solid((0, 50, 100))
        b = _solid((3, 40, 90))
        assert peak_signal_to_noise_ratio(a, b) == peak_signal_to_noise_ratio(b, a)

    def test_size_mismatch_scores_zero(self):
        assert peak_signal_to_noise_ratio(_solid((0, 0, 0)), _solid((0, 0, 0), (5, 3))) == 0.0

    def test_missing_image_scores_zero(self):
        assert peak_signal_to_noise_ratio(None, _solid((0, 0, 0))) == 0.0

    def test_opposite_extremes_score_zero(self):
        assert peak_signal_to_noise_ratio(_solid((0, 0, 0)), _solid((255, 255, 255))) == 0.0

    def test_accepts_arrays(self):
        arr = np.zeros((3, 4, 4), dtype=np.uint8)
        assert peak_signal_to_noise_ratio(arr, _solid((0, 0, 0))) == IDENTICAL_SCORE

    def test_rejects_flat_arrays(self):
        with pytest.raises(ValueError):
            peak_signal_to_noise_ratio(np.zeros((3, 4)), np.zeros((3, 4)))


class TestCompare:
    def test_identical_matches(self):
        img = _solid((1, 2, 3))
        result = PerceptualComparator().compare(img, img.copy())
        assert result.matched
        assert result.score == IDENTICAL_SCORE
        assert result.dimensions_match

    def test_threshold_is_strict(self):
        a = _solid((0, 0, 0))
        b = _solid((1, 0, 0))
        score = peak_signal_to_noise_ratio(a, b)
        comparator = PerceptualComparator()
        assert not comparator.compare(a, b, threshold=score).matched
        assert comparator.compare(a, b, threshold=score - 0.01).matched

    def test_default_threshold_rejects_visible_change(self):
        a = _solid((0, 0, 0))
        b = _solid((40, 40, 40))
        result = PerceptualComparator().compare(a, b)
        assert not result.matched
        assert result.score < 65

    def test_dimension_mismatch(self):
        result = PerceptualComparator().compare(_solid((0, 0, 0)), _solid((0, 0, 0), (2, 2)))
        assert not result.matched
        assert result.score == 0.0
        assert result.delta is None
        assert not result.dimensions_match

    def test_delta_optional(self):
        img = _solid((0, 0, 0))
        assert PerceptualComparator().compare(img, img, with_delta=False).delta is None
        assert PerceptualComparator().compare(img, img).delta is not None


class TestDelta:
    def test_absolute_difference_per_channel(self):
        delta = generate_delta(_solid((10, 200, 0)), _solid((30, 100, 0)))
        assert delta.size == (4, 3)
        assert delta.getpixel((0, 0)) == (20, 100, 0)

    def test_equal_pixels_black_by_default(self):
        img = _solid((7, 7, 7))
        assert generate_delta(img, img).getpixel((1, 1)) == (0, 0, 0)

    def test_white_equals(self):
        a = _solid((7, 7, 7))
        b = a.copy()
        b.putpixel((0, 0), (9, 7, 7))
        delta = generate_delta(a, b, white_equals=True)
        assert delta.getpixel((1, 1)) == (255, 255, 255)
        assert delta.getpixel((0, 0)) == (2, 0, 0)

    def test_comparator_default_white_equals(self):
        img = _solid((7, 7, 7))
        delta = PerceptualComparator(white_equals=True).generate_delta(img, img)
        assert delta.getpixel((0, 0)) == (255, 255, 255)

    def test_size_mismatch_has_no_delta(self):
        assert generate_delta(_solid((0, 0, 0)), _solid((0, 0, 0), (1, 1))) is None
