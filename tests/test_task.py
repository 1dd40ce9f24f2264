"""Tests for Task authoring, derived metadata, estimates and export/import."""

import json

import pytest

from errors import ConfigurationError
from tasks import Processor, Task, format_duration, list_templates


def _processors(task):
    return [s.processor.value for s in task.steps]


def _sample_task():
    task = Task("Sample", "resize, crop, optimize, rename")
    task.add_resize(1200)
    task.add_smart_crop(800, 600)
    task.add_optimize(80, "webp")
    task.add_rename("{name}-{dimensions}")
    return task


class TestTaskBasics:
    def test_new_task(self):
        task = Task()
        assert task.name == "Untitled Task"
        assert task.id.startswith("task_")
        assert len(task) == 0
        assert task.steps == ()

    def test_ids_are_unique(self):
        assert Task().id != Task().id

    def test_add_step_assigns_contiguous_orders(self):
        task = _sample_task()
        assert [s.order for s in task.steps] == [1, 2, 3, 4]
        assert len({s.id for s in task.steps}) == 4

    def test_add_step_unknown_processor_raises(self):
        with pytest.raises(ConfigurationError, match="Invalid processor"):
            Task().add_step("blur")

    def test_add_step_invalid_options_leave_task_unchanged(self):
        task = Task()
        with pytest.raises(ConfigurationError):
            task.add_resize(0)
        assert len(task) == 0

    def test_steps_view_is_immutable(self):
        task = _sample_task()
        assert isinstance(task.steps, tuple)

    def test_queries(self):
        task = _sample_task()
        crop = task.steps[1]
        assert task.get_step(crop.id) is crop
        assert task.get_step("missing") is None
        assert task.has_processor("crop")
        assert not task.has_processor(Processor.FAVICON)
        assert task.has_optimization()
        assert task.optimization_step() is task.steps[2]
        assert task.steps_by_processor("rename") == [task.steps[3]]


class TestTaskMutators:
    def test_remove_by_index_renumbers(self):
        task = _sample_task()
        assert task.remove_step(1)
        assert _processors(task) == ["resize", "optimize", "rename"]
        assert [s.order for s in task.steps] == [1, 2, 3]

    def test_remove_by_id(self):
        task = _sample_task()
        rename = task.steps[3]
        assert task.remove_step(rename.id)
        assert task.get_step(rename.id) is None

    def test_remove_missing_returns_false(self):
        task = _sample_task()
        assert not task.remove_step(10)
        assert not task.remove_step(-1)
        assert not task.remove_step("missing")
        assert not task.remove_step(True)
        assert len(task) == 4

    def test_move_up_and_down(self):
        task = _sample_task()
        assert task.move_step_up(3)
        assert _processors(task) == ["resize", "crop", "rename", "optimize"]
        assert task.move_step_down(0)
        assert _processors(task) == ["crop", "resize", "rename", "optimize"]
        assert [s.order for s in task.steps] == [1, 2, 3, 4]

    def test_move_out_of_range_returns_false(self):
        task = _sample_task()
        assert not task.move_step_up(0)
        assert not task.move_step_down(3)
        assert not task.move_step_up(9)
        assert _processors(task) == ["resize", "crop", "optimize", "rename"]

    def test_moved_step_keeps_identity(self):
        task = _sample_task()
        crop_id = task.steps[1].id
        task.move_step_up(1)
        assert task.steps[0].id == crop_id
        assert task.steps[0].order == 1

    def test_disable_step(self):
        task = _sample_task()
        assert task.set_step_enabled(1, False)
        assert len(task.enabled_steps()) == 3
        assert task.metadata.step_count == 3
        assert "crop" not in task.processor_count()
        assert not task.metadata.has_smart_crop

    def test_reenable_step_by_id(self):
        task = _sample_task()
        step_id = task.steps[0].id
        task.set_step_enabled(step_id, False)
        assert task.set_step_enabled(step_id, True)
        assert task.metadata.step_count == 4

    def test_clear(self):
        task = _sample_task()
        task.clear()
        assert len(task) == 0
        assert task.metadata.step_count == 0


class TestTaskMetadata:
    def test_processor_count(self):
        task = _sample_task()
        task.add_resize(400)
        assert dict(task.metadata.processor_count) == {
            "resize": 2, "crop": 1, "optimize": 1, "rename": 1,
        }

    def test_metadata_is_read_only(self):
        task = _sample_task()
        with pytest.raises(TypeError):
            task.metadata.processor_count["resize"] = 10

    def test_flags(self):
        task = Task()
        task.add_smart_crop(500, 500)
        task.add_optimize(85, "auto")
        assert task.metadata.has_smart_crop
        assert task.metadata.has_auto_optimization

    def test_anchor_crop_is_not_smart(self):
        task = Task()
        task.add_crop(500, 500, "center")
        assert not task.metadata.has_smart_crop

    def test_categories(self):
        favicon = Task()
        favicon.add_favicon()
        template = Task()
        template.add_template("open-graph")
        optimize = Task()
        optimize.add_optimize()
        assert favicon.metadata.category == "favicon"
        assert template.metadata.category == "template"
        assert optimize.metadata.category == "optimization-only"
        assert _sample_task().metadata.category == "general"

    def test_estimated_outputs(self):
        task = Task()
        task.add_favicon(
            sizes=[16, 32],
            formats=["png"],
            generateManifest=False,
            generateHtml=False,
            includeAppleTouch=False,
            includeAndroid=False,
        )
        assert task.estimate_output_count() == 3

    def test_optimization_levels(self):
        cases = [
            ({"quality": 60, "compressionMode": "aggressive"}, "aggressive"),
            ({"quality": 85}, "balanced"),
            ({"quality": 95, "compressionMode": "balanced"}, "high-quality"),
            ({"quality": 95, "compressionMode": "aggressive"}, "standard"),
        ]
        for options, expected in cases:
            task = Task()
            task.add_step("optimize", options)
            assert task.optimization_level() == expected, options
        assert Task().optimization_level() == "none"

    def test_disabled_optimize_has_no_level(self):
        task = Task()
        task.add_optimize(60, "webp")
        task.set_step_enabled(0, False)
        assert task.optimization_level() == "none"


class TestTimeEstimate:
    def test_resize_only(self):
        task = Task()
        task.add_resize(800)
        estimate = task.get_time_estimate(3)
        assert estimate.per_image_ms == 100
        assert estimate.total_ms == 300
        assert estimate.formatted == "300ms"
        assert estimate.complexity_factor == 1.0

    def test_ai_crop_multiplier(self):
        task = Task()
        task.add_smart_crop(500, 500)
        estimate = task.get_time_estimate()
        assert estimate.per_image_ms == pytest.approx(450)
        assert estimate.complexity_factor == 3.0

    def test_anchor_crop_has_no_multiplier(self):
        task = Task()
        task.add_crop(500, 500, "center")
        assert task.get_time_estimate().per_image_ms == pytest.approx(150)

    def test_content_analysis_multiplier(self):
        task = Task()
        task.add_optimize()
        assert task.get_time_estimate().per_image_ms == pytest.approx(240)

    def test_aggressive_optimize_multiplier(self):
        task = Task()
        task.add_optimize(60, compressionMode="aggressive", analyzeContent=False)
        estimate = task.get_time_estimate()
        assert estimate.per_image_ms == pytest.approx(300)
        assert estimate.complexity_factor == 1.5

    def test_favicon_scales_with_sizes_and_formats(self):
        task = Task()
        task.add_favicon(sizes=[16, 32], formats=["png"])
        estimate = task.get_time_estimate()
        assert estimate.per_image_ms == pytest.approx(1000)
        assert estimate.formatted == "1.0s"

    def test_disabled_steps_are_free(self):
        task = _sample_task()
        full = task.get_time_estimate().per_image_ms
        task.set_step_enabled(1, False)
        assert task.get_time_estimate().per_image_ms == pytest.approx(full - 450)

    def test_zero_images(self):
        assert _sample_task().get_time_estimate(0).total_ms == 0

    def test_negative_images_raise(self):
        with pytest.raises(ValueError, match="non-negative"):
            _sample_task().get_time_estimate(-1)

    def test_to_dict(self):
        data = _sample_task().get_time_estimate(2).to_dict()
        assert set(data) == {
            "perImage", "total", "formatted", "stepCount", "imageCount", "complexityFactor",
        }
        assert data["imageCount"] == 2


class TestFormatDuration:
    def test_milliseconds(self):
        assert format_duration(500) == "500ms"

    def test_seconds(self):
        assert format_duration(1500) == "1.5s"

    def test_minutes(self):
        assert format_duration(125000) == "2m 5s"


class TestValidationSummary:
    def test_task_types(self):
        empty = Task()
        optimize = Task()
        optimize.add_optimize()
        basic = Task()
        basic.add_resize(800)
        basic.add_crop(400, 400, "center")
        general = Task()
        general.add_resize(800)
        general.add_rename("{name}-small")
        favicon = Task()
        favicon.add_resize(512)
        favicon.add_favicon()

        assert empty.get_validation_summary()["taskType"] == "empty"
        assert optimize.get_validation_summary()["taskType"] == "optimization-only"
        assert basic.get_validation_summary()["taskType"] == "basic"
        assert general.get_validation_summary()["taskType"] == "general"
        assert favicon.get_validation_summary()["taskType"] == "favicon"

    def test_summary_counts(self):
        task = _sample_task()
        task.set_step_enabled(3, False)
        summary = task.get_validation_summary()
        assert summary["totalSteps"] == 3
        assert summary["disabledSteps"] == 1
        assert summary["canProceed"]
        assert summary["requiresImage"]
        assert summary["hasSmartCrop"]

    def test_blocking_error_stops_task(self):
        task = Task()
        task.add_step("template")
        summary = task.get_validation_summary()
        assert summary["status"] == "invalid"
        assert not summary["canProceed"]
        assert summary["errorCount"] == 1

    def test_strict_validate_raises(self):
        task = Task()
        task.add_step("template")
        with pytest.raises(ConfigurationError, match="Task validation failed"):
            task.validate(strict=True)

    def test_description(self):
        task = Task()
        task.add_resize(800)
        task.add_smart_crop(300, 300)
        task.add_rename("{name}-thumb")
        assert task.get_description().splitlines() == [
            "1. Resize to 800px (longest)",
            "2. Crop to 300x300 (AI smart mode)",
            '3. Rename with pattern: "{name}-thumb"',
        ]

    def test_empty_description(self):
        assert Task().get_description() == "No processing steps configured"

    def test_compatibility_notes(self):
        task = Task()
        task.add_resize(512)
        task.add_favicon()
        task.add_optimize()
        gif = task.check_compatibility("image/gif")
        png = task.check_compatibility("image/png")
        assert len(gif["warnings"]) == 2
        assert not gif["recommended"]
        assert png["warnings"] == []
        assert png["compatible"]


class TestTaskSerialization:
    def test_json_round_trip(self):
        task = _sample_task()
        task.set_step_enabled(3, False)

        restored = Task.from_json(task.to_json())

        assert restored.id == task.id
        assert restored.name == task.name
        assert restored.created_at == task.created_at
        assert [s.id for s in restored.steps] == [s.id for s in task.steps]
        assert restored.get_validation_summary() == task.get_validation_summary()
        assert restored.to_dict() == task.to_dict()

    def test_export_record_shape(self):
        data = json.loads(_sample_task().to_json())
        assert data["version"] == "1.0"
        assert data["steps"][1]["processor"] == "crop"
        assert data["steps"][1]["options"]["confidenceThreshold"] == 70
        assert data["metadata"]["stepCount"] == 4

    def test_stored_metadata_is_ignored(self):
        data = _sample_task().to_dict()
        data["metadata"] = {"stepCount": 99}
        assert Task.from_dict(data).metadata.step_count == 4

    def test_step_orders_rebuilt_from_position(self):
        data = _sample_task().to_dict()
        for step in data["steps"]:
            step["order"] = 7
        assert [s.order for s in Task.from_dict(data).steps] == [1, 2, 3, 4]

    def test_invalid_json_raises(self):
        with pytest.raises(ConfigurationError, match="Invalid task JSON"):
            Task.from_json("{not json")

    def test_non_mapping_raises(self):
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            Task.from_dict([])

    def test_steps_must_be_a_list(self):
        with pytest.raises(ConfigurationError, match="must be a list"):
            Task.from_dict({"steps": "resize"})

    def test_unknown_processor_in_record_raises(self):
        with pytest.raises(ConfigurationError, match="Invalid processor"):
            Task.from_dict({"steps": [{"processor": "blur", "options": {}}]})

    def test_clone(self):
        task = _sample_task()
        copy = task.clone("Copy")

        assert copy.id != task.id
        assert copy.name == "Copy"
        assert [s.id for s in copy.steps] == [s.id for s in task.steps]

        copy.add_resize(100)
        assert len(copy) == 5
        assert len(task) == 4

    def test_simple_dict(self):
        data = _sample_task().to_simple_dict()
        assert data["stepCount"] == 4
        assert data["taskType"] == "general"
        assert data["canProceed"]


class TestTemplates:
    def test_every_template_builds_and_validates(self):
        for name in list_templates():
            task = Task.from_template(name)
            assert len(task) > 0, name
            assert task.validate().is_valid, name

    def test_web_optimized(self):
        task = Task.from_template("web-optimized")
        assert task.name == "Web Optimization"
        assert _processors(task) == ["resize", "optimize", "rename"]
        assert task.steps[0].options.dimension == 1920

    def test_unknown_template_raises(self):
        with pytest.raises(ConfigurationError, match="Unknown template"):
            Task.from_template("nope")
