"""
Tests for pure dimension math: resize targets, crop pre-scaling and the
advisory checks built on them.
"""

import numpy as np
import pytest

from errors import ConfigurationError, Severity, UpscaleNotAllowed
from geometry import round_half_away
from sizing import (
    Dimensions,
    ResizeMode,
    check_crop_upscale,
    check_resize_warnings,
    compute_prescale_for_crop,
    compute_resize_target,
    parse_resize_mode,
)
from sizing.render import crop_region, render, resize_image


class TestRoundHalfAway:
    def test_halves_round_up(self):
        assert round_half_away(2.5) == 3
        assert round_half_away(0.5) == 1

    def test_negative_halves_round_away_from_zero(self):
        assert round_half_away(-2.5) == -3

    def test_non_halves(self):
        assert round_half_away(2.49) == 2
        assert round_half_away(2.51) == 3


class TestComputeResizeTarget:
    """Tests for compute_resize_target."""

    def test_longest_side_landscape(self):
        assert compute_resize_target(4000, 2000, 1000) == Dimensions(1000, 500)

    def test_longest_side_portrait(self):
        assert compute_resize_target(2000, 4000, 1000) == Dimensions(500, 1000)

    def test_auto_and_fit_behave_like_longest(self):
        for mode in ("auto", "fit"):
            assert compute_resize_target(4000, 2000, 1000, mode) == Dimensions(1000, 500)

    def test_shortest_side(self):
        assert compute_resize_target(4000, 2000, 500, "shortest") == Dimensions(1000, 500)

    def test_width_mode(self):
        assert compute_resize_target(500, 1000, 250, "width") == Dimensions(250, 500)

    def test_height_mode(self):
        assert compute_resize_target(500, 1000, 250, ResizeMode.HEIGHT) == Dimensions(125, 250)

    def test_half_pixels_round_away_from_zero(self):
        # 100 / 400 * 10 = 2.5
        assert compute_resize_target(400, 100, 10, "width") == Dimensions(10, 3)

    def test_other_side_never_below_one(self):
        assert compute_resize_target(10000, 10, 100, "width").height == 1

    def test_idempotent(self):
        first = compute_resize_target(3001, 1999, 1000)
        second = compute_resize_target(first.width, first.height, 1000)
        assert first == second

    def test_idempotent_for_all_modes(self):
        for mode in ResizeMode:
            first = compute_resize_target(1234, 987, 640, mode)
            assert compute_resize_target(first.width, first.height, 640, mode) == first

    def test_force_square(self):
        assert compute_resize_target(4000, 2000, 300, force_square=True) == Dimensions(300, 300)

    def test_without_aspect_preservation(self):
        result = compute_resize_target(4000, 2000, 300, "width", preserve_aspect_ratio=False)
        assert result == Dimensions(300, 300)

    def test_max_dimension_scales_down_uniformly(self):
        result = compute_resize_target(100, 50, 20000)
        assert result == Dimensions(10000, 5000)

    def test_custom_max_dimension(self):
        result = compute_resize_target(100, 200, 1000, "width", max_dimension=1000)
        assert result == Dimensions(500, 1000)

    def test_upscale_disabled_raises_with_axis(self):
        with pytest.raises(UpscaleNotAllowed) as excinfo:
            compute_resize_target(800, 600, 1000, upscale=False)
        assert excinfo.value.axis == "width"
        assert excinfo.value.target == (1000, 750)

    def test_upscale_disabled_allows_downscale(self):
        assert compute_resize_target(800, 600, 400, upscale=False) == Dimensions(400, 300)

    def test_non_positive_source_raises(self):
        with pytest.raises(ConfigurationError, match="source_width must be positive"):
            compute_resize_target(0, 100, 50)

    def test_non_positive_dimension_raises(self):
        with pytest.raises(ConfigurationError, match="dimension must be positive"):
            compute_resize_target(100, 100, -5)

    def test_unknown_mode_raises(self):
        with pytest.raises(ConfigurationError, match="Unknown resize mode"):
            compute_resize_target(100, 100, 50, "diagonal")


class TestParseResizeMode:
    def test_case_insensitive(self):
        assert parse_resize_mode("Longest") == ResizeMode.LONGEST

    def test_passes_enum_through(self):
        assert parse_resize_mode(ResizeMode.FIT) is ResizeMode.FIT


class TestComputePrescaleForCrop:
    """Tests for compute_prescale_for_crop."""

    def test_downscale_to_cover(self):
        plan = compute_prescale_for_crop(4000, 2000, 800, 800)
        assert plan.scale == pytest.approx(0.4)
        assert (plan.width, plan.height) == (1600, 800)
        assert not plan.requires_upscale

    def test_upscale_to_cover(self):
        plan = compute_prescale_for_crop(1000, 500, 800, 800)
        assert plan.scale == pytest.approx(1.6)
        assert (plan.width, plan.height) == (1600, 800)
        assert plan.requires_upscale

    def test_scaled_source_always_covers_target(self):
        for source in ((333, 777), (1001, 999), (50, 4000), (4000, 50)):
            plan = compute_prescale_for_crop(*source, 500, 300)
            assert plan.width >= 500
            assert plan.height >= 300

    def test_exact_fit_has_unit_scale(self):
        plan = compute_prescale_for_crop(800, 800, 800, 800)
        assert plan.scale == 1.0
        assert plan.dimensions == Dimensions(800, 800)

    def test_non_positive_target_raises(self):
        with pytest.raises(ConfigurationError):
            compute_prescale_for_crop(100, 100, 0, 50)


class TestCheckCropUpscale:
    def test_height_too_small(self):
        with pytest.raises(UpscaleNotAllowed, match="height") as excinfo:
            check_crop_upscale(1000, 500, 800, 800)
        assert excinfo.value.axis == "height"

    def test_width_checked_first(self):
        with pytest.raises(UpscaleNotAllowed) as excinfo:
            check_crop_upscale(100, 100, 800, 800)
        assert excinfo.value.axis == "width"

    def test_fits(self):
        check_crop_upscale(1000, 1000, 800, 800)


class TestCheckResizeWarnings:
    def test_extreme_upscale(self):
        issues = check_resize_warnings(Dimensions(100, 100), Dimensions(400, 400))
        assert [i.code for i in issues] == ["extreme_upscale"]

    def test_extreme_downscale(self):
        issues = check_resize_warnings(Dimensions(5000, 5000), Dimensions(100, 100))
        assert [i.code for i in issues] == ["extreme_downscale"]

    def test_aspect_change_is_info(self):
        issues = check_resize_warnings(Dimensions(400, 200), Dimensions(100, 100))
        assert len(issues) == 1
        assert issues[0].code == "aspect_ratio_change"
        assert issues[0].severity == Severity.INFO

    def test_force_square_suppresses_aspect_change(self):
        issues = check_resize_warnings(Dimensions(400, 200), Dimensions(100, 100), force_square=True)
        assert issues == []


class TestRender:
    """Pixel rendering helpers."""

    def test_resize_to_exact_size(self):
        img = np.zeros((50, 100, 3), dtype=np.uint8)
        out = resize_image(img, 40, 20)
        assert out.shape == (20, 40, 3)

    def test_render_crops_then_scales(self):
        img = np.zeros((100, 100, 3), dtype=np.uint8)
        img[:50, :50] = 255
        out = render(img, (0, 0, 50, 50), (10, 10))
        assert out.shape == (10, 10, 3)
        assert np.all(out == 255)

    def test_render_keeps_alpha(self):
        img = np.zeros((20, 20, 4), dtype=np.uint8)
        assert render(img, None, (10, 10)).shape == (10, 10, 4)

    def test_render_does_not_mutate_input(self):
        img = np.full((20, 20, 3), 7, dtype=np.uint8)
        original = img.copy()
        render(img, (5, 5, 15, 15), (30, 30))
        assert np.array_equal(img, original)

    def test_crop_region_outside_image_raises(self):
        img = np.zeros((20, 20, 3), dtype=np.uint8)
        with pytest.raises(ValueError):
            crop_region(img, (10, 10, 30, 30))
