"""Tests for crop modes and rule-of-thirds crop placement."""

import pytest

from cropping import (
    CropMode,
    CropPlacement,
    anchor_focus_point,
    parse_crop_mode,
    snap_to_thirds,
    solve_crop,
    thirds_anchors,
    validate_crop_offsets,
)
from errors import ConfigurationError
from geometry import CENTER, FocusPoint


class TestSolveCrop:
    """Tests for solve_crop."""

    def test_centered_crop_without_snap(self):
        placement = solve_crop(CENTER, 1000, 800, 800, 800, snap_to_thirds_grid=False)
        assert placement == CropPlacement(x=100, y=0, width=800, height=800)

    def test_output_size_always_equals_target(self):
        placement = solve_crop(FocusPoint(0.1, 0.9), 1600, 900, 640, 480)
        assert (placement.width, placement.height) == (640, 480)

    def test_snaps_to_nearest_thirds_intersection(self):
        # Focus at (2100, 2100) snaps to (2000, 2000)
        placement = solve_crop(FocusPoint(0.7, 0.7), 3000, 3000, 1000, 1000)
        assert (placement.x, placement.y) == (1500, 1500)

    def test_snap_disabled_uses_raw_focus(self):
        placement = solve_crop(
            FocusPoint(0.7, 0.7), 3000, 3000, 1000, 1000, snap_to_thirds_grid=False
        )
        assert (placement.x, placement.y) == (1600, 1600)

    def test_clamps_at_far_edge(self):
        placement = solve_crop(FocusPoint(1.0, 1.0), 1000, 800, 400, 400, snap_to_thirds_grid=False)
        assert (placement.x, placement.y) == (600, 400)

    def test_clamps_at_origin(self):
        placement = solve_crop(FocusPoint(0.0, 0.0), 1000, 800, 400, 400, snap_to_thirds_grid=False)
        assert (placement.x, placement.y) == (0, 0)

    def test_target_larger_than_source_pins_origin(self):
        placement = solve_crop(CENTER, 500, 400, 800, 800, snap_to_thirds_grid=False)
        assert placement == CropPlacement(x=0, y=0, width=800, height=800)

    def test_always_contained_in_source(self):
        for fx in (0.0, 0.2, 0.5, 0.77, 1.0):
            for fy in (0.0, 0.33, 0.5, 0.9, 1.0):
                for snap in (True, False):
                    p = solve_crop(FocusPoint(fx, fy), 1200, 700, 500, 500, snap_to_thirds_grid=snap)
                    assert 0 <= p.x and p.right <= 1200
                    assert 0 <= p.y and p.bottom <= 700

    def test_non_positive_size_raises(self):
        with pytest.raises(ConfigurationError, match="target_width must be positive"):
            solve_crop(CENTER, 100, 100, 0, 50)

    def test_as_rect(self):
        placement = CropPlacement(x=10, y=20, width=30, height=40)
        assert placement.as_rect() == (10, 20, 40, 60)


class TestThirds:
    def test_anchor_order(self):
        assert thirds_anchors(300, 600) == [(100, 200), (200, 200), (100, 400), (200, 400)]

    def test_nearest_anchor(self):
        assert snap_to_thirds(290, 10, 300, 300) == (200, 100)

    def test_tie_goes_to_first_anchor(self):
        assert snap_to_thirds(150, 150, 300, 300) == (100, 100)


class TestValidateCropOffsets:
    def test_inside_passes(self):
        validate_crop_offsets(CropPlacement(0, 0, 100, 100), 100, 100)

    def test_exceeding_width_raises(self):
        with pytest.raises(ValueError, match="exceeds source width"):
            validate_crop_offsets(CropPlacement(600, 0, 500, 500), 1000, 1000)

    def test_exceeding_height_raises(self):
        with pytest.raises(ValueError, match="exceeds source height"):
            validate_crop_offsets(CropPlacement(0, 600, 500, 500), 1000, 1000)

    def test_negative_offset_raises(self):
        with pytest.raises(ValueError, match="Invalid crop offsets"):
            validate_crop_offsets(CropPlacement(-1, 0, 10, 10), 100, 100)


class TestCropModes:
    def test_anchor_points(self):
        assert anchor_focus_point("center") == FocusPoint(0.5, 0.5)
        assert anchor_focus_point("top-left") == FocusPoint(0.25, 0.25)
        assert anchor_focus_point(CropMode.BOTTOM) == FocusPoint(0.5, 0.75)

    def test_heuristic_mode_has_no_anchor(self):
        with pytest.raises(ValueError, match="no fixed anchor"):
            anchor_focus_point("smart")

    def test_parse_is_case_insensitive(self):
        assert parse_crop_mode("Top-Right") == CropMode.TOP_RIGHT

    def test_parse_unknown_raises(self):
        with pytest.raises(ValueError, match="Unknown crop mode"):
            parse_crop_mode("diagonal")

    def test_heuristic_and_ai_flags(self):
        assert CropMode.SALIENCY.is_heuristic
        assert not CropMode.SALIENCY.is_ai
        assert CropMode.FACE.is_ai
        assert not CropMode.CENTER.is_heuristic

    def test_focus_point_is_clamped(self):
        assert FocusPoint(1.5, -0.2) == FocusPoint(1.0, 0.0)
