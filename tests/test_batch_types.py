"""Tests for batch data types, scheduling config and file discovery."""

import numpy as np
import pytest

from batch import (
    Artifact,
    BatchConfig,
    BatchSummary,
    ImageResult,
    ImageRun,
    ImageState,
    SourceImage,
    collect_images,
    find_images,
)


class TestImageRun:
    """Per-image state machine."""

    def test_starts_pending(self):
        run = ImageRun("a.png")
        assert run.state == ImageState.PENDING
        assert run.history == [(ImageState.PENDING, None)]

    def test_happy_path(self):
        run = ImageRun("a.png")
        run.advance(ImageState.VALIDATING)
        run.advance(ImageState.EXECUTING, 1)
        run.advance(ImageState.EXECUTING, 2)
        run.advance(ImageState.COMPLETED)
        assert run.is_terminal
        assert run.current_step == 2
        assert [state for state, _ in run.history] == [
            ImageState.PENDING,
            ImageState.VALIDATING,
            ImageState.EXECUTING,
            ImageState.EXECUTING,
            ImageState.COMPLETED,
        ]

    def test_fail_from_any_active_state(self):
        for steps in ([], [ImageState.VALIDATING], [ImageState.VALIDATING, ImageState.EXECUTING]):
            run = ImageRun("a.png")
            for state in steps:
                run.advance(state, 1)
            run.advance(ImageState.FAILED)
            assert run.state == ImageState.FAILED

    def test_cannot_skip_validation(self):
        run = ImageRun("a.png")
        with pytest.raises(RuntimeError, match="pending -> executing"):
            run.advance(ImageState.EXECUTING, 1)

    def test_completes_without_steps(self):
        run = ImageRun("a.png")
        run.advance(ImageState.VALIDATING)
        run.advance(ImageState.COMPLETED)
        assert run.is_terminal
        assert [state for state, _ in run.history] == [
            ImageState.PENDING, ImageState.VALIDATING, ImageState.COMPLETED
        ]

    def test_cannot_complete_without_validating(self):
        run = ImageRun("a.png")
        with pytest.raises(RuntimeError, match="Illegal state transition"):
            run.advance(ImageState.COMPLETED)

    def test_terminal_states_are_final(self):
        run = ImageRun("a.png")
        run.advance(ImageState.FAILED)
        with pytest.raises(RuntimeError):
            run.advance(ImageState.VALIDATING)


class TestSourceImage:
    def test_from_rgb_array(self):
        image = SourceImage.from_array("a.png", np.zeros((20, 30, 3), dtype=np.uint8))
        assert (image.width, image.height) == (30, 20)
        assert not image.has_alpha
        assert image.size_bytes == 20 * 30 * 3
        assert image.extension == "png"

    def test_from_rgba_array(self):
        image = SourceImage.from_array("a.PNG", np.zeros((20, 30, 4), dtype=np.uint8))
        assert image.has_alpha
        assert image.extension == "png"

    def test_rejects_non_image_array(self):
        with pytest.raises(ValueError, match="2D or 3D"):
            SourceImage.from_array("a.png", np.zeros(5))


class TestBatchConfig:
    def test_defaults(self):
        config = BatchConfig()
        config.validate()
        assert not config.parallel
        assert config.group_size == 4

    def test_group_size_must_be_positive(self):
        with pytest.raises(ValueError, match="group_size must be positive"):
            BatchConfig(group_size=0).validate()

    def test_group_size_upper_bound(self):
        with pytest.raises(ValueError, match="exceeds the maximum"):
            BatchConfig(group_size=1000).validate()


class TestBatchSummary:
    def _summary(self):
        ok = ImageResult(
            image_name="a.png",
            success=True,
            state=ImageState.COMPLETED,
            artifacts=[
                Artifact("a.webp", b"image", "webp", 10, 10),
                Artifact("a-site.webmanifest", b"{}", "webmanifest", kind="manifest"),
            ],
        )
        failed = ImageResult.failure("b.png", RuntimeError("boom"))
        return BatchSummary(results=[ok, failed], duration_s=1.23456)

    def test_counts(self):
        summary = self._summary()
        assert summary.total == 2
        assert summary.succeeded == 1
        assert summary.failed == 1

    def test_failure_result(self):
        failed = self._summary().results[1]
        assert failed.state == ImageState.FAILED
        assert failed.error == "boom"
        assert failed.primary is None

    def test_primary_artifact(self):
        ok = self._summary().results[0]
        assert ok.primary.name == "a.webp"
        assert ok.primary.size_bytes == 5

    def test_write_outputs_skips_failures(self, tmp_path):
        written = self._summary().write_outputs(tmp_path / "out")
        assert [p.name for p in written] == ["a.webp", "a-site.webmanifest"]
        assert (tmp_path / "out" / "a.webp").read_bytes() == b"image"

    def test_to_dict(self):
        data = self._summary().to_dict()
        assert data["succeeded"] == 1
        assert data["durationSeconds"] == 1.235
        assert data["results"][1]["state"] == "failed"
        assert data["results"][0]["artifacts"][0]["size"] == 5


class TestFindImages:
    def test_directory_listing_sorted_and_filtered(self, tmp_path):
        for name in ("b.png", "a.JPG", "notes.txt"):
            (tmp_path / name).write_bytes(b"x")
        assert [p.name for p in find_images(tmp_path)] == ["a.JPG", "b.png"]

    def test_single_file(self, tmp_path):
        path = tmp_path / "a.webp"
        path.write_bytes(b"x")
        assert find_images(path) == [path.resolve()]

    def test_unsupported_file_raises(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_bytes(b"x")
        with pytest.raises(ValueError, match="not a supported image file"):
            find_images(path)

    def test_missing_path_raises(self, tmp_path):
        with pytest.raises(ValueError, match="not a valid file or directory"):
            find_images(tmp_path / "missing")

    def test_collect_drops_repeats(self, tmp_path):
        (tmp_path / "a.png").write_bytes(b"x")
        (tmp_path / "b.png").write_bytes(b"x")
        images = collect_images([tmp_path / "b.png", tmp_path])
        assert [p.name for p in images] == ["b.png", "a.png"]
