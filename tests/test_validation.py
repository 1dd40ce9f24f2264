"""Tests for step, task-logic and image validation."""

from types import SimpleNamespace

from errors import Severity
from tasks import StepSpec, Task, ValidationReport, validate_image_info, validate_steps


def _codes(issues):
    return [issue.code for issue in issues]


def _image(width, height, has_alpha=False):
    return SimpleNamespace(width=width, height=height, has_alpha=has_alpha)


class TestValidationReport:
    def test_empty_report_is_valid(self):
        report = ValidationReport()
        assert report.is_valid
        assert report.status == "valid"

    def test_warnings_only(self):
        task = Task()
        task.add_crop(400, 400, "center")
        report = task.validate()
        assert report.is_valid
        assert report.status == "has_warnings"

    def test_to_dict(self):
        task = Task()
        task.add_step("template")
        data = task.validate().to_dict()
        assert data["valid"] is False
        assert data["errors"][0]["code"] == "missing_template"


class TestStepValidation:
    def test_empty_task_warns(self):
        report = Task().validate()
        assert report.is_valid
        assert _codes(report.warnings) == ["empty_task"]

    def test_crop_below_minimum_is_an_error(self):
        task = Task()
        task.add_crop(20, 20, "center")
        assert "crop_too_small" in _codes(task.validate().errors)

    def test_issues_tagged_with_step(self):
        task = Task()
        task.add_resize(800)
        task.add_crop(20, 20, "center")
        error = task.validate().errors[0]
        assert error.step_order == 2
        assert error.processor == "crop"

    def test_extreme_ai_crop_aspect_is_info(self):
        task = Task()
        task.add_resize(2000)
        task.add_crop(2000, 500, "smart")
        issues = [i for i in task.validate().warnings if i.code == "extreme_ai_aspect"]
        assert len(issues) == 1
        assert issues[0].severity == Severity.INFO

    def test_large_resize_dimension_warns(self):
        task = Task()
        task.add_resize(6000)
        assert "large_dimension" in _codes(task.validate().warnings)

    def test_force_square_distortion(self):
        task = Task()
        task.add_resize(500, forceSquare=True, maintainAspectRatio=False)
        assert "force_square_distortion" in _codes(task.validate().warnings)

    def test_rename_without_placeholders_is_coerced_not_flagged(self):
        task = Task()
        task.add_rename("static")
        assert task.steps[0].options.pattern == "{name}-{index}"
        assert "no_placeholders" not in _codes(task.validate().warnings)

    def test_rename_unknown_placeholder_is_info(self):
        task = Task()
        task.add_rename("{name}-{colour}")
        assert "unknown_placeholders" in _codes(task.validate().warnings)

    def test_favicon_unsupported_format(self):
        task = Task()
        task.add_resize(512)
        task.add_favicon(formats=["png", "gif"])
        assert "unsupported_format" in _codes(task.validate().warnings)

    def test_favicon_without_sizes_is_an_error(self):
        task = Task()
        task.add_favicon(sizes=[4, 2048])
        assert "no_favicon_sizes" in _codes(task.validate().errors)


class TestTaskLogic:
    def test_crop_without_resize(self):
        task = Task()
        task.add_crop(400, 400, "center")
        assert "crop_without_resize" in _codes(task.validate().warnings)

    def test_multiple_optimize(self):
        task = Task()
        task.add_resize(800)
        task.add_optimize(80, "webp")
        task.add_optimize(70, "jpg")
        assert "multiple_optimize" in _codes(task.validate().warnings)

    def test_early_rename(self):
        task = Task()
        task.add_rename("{name}-x")
        task.add_resize(800)
        assert "early_rename" in _codes(task.validate().warnings)

    def test_rename_last_is_fine(self):
        task = Task()
        task.add_resize(800)
        task.add_rename("{name}-x")
        assert "early_rename" not in _codes(task.validate().warnings)

    def test_favicon_without_preparation(self):
        task = Task()
        task.add_favicon()
        assert "favicon_without_preparation" in _codes(task.validate().warnings)

    def test_optimize_after_favicon(self):
        task = Task()
        task.add_resize(512)
        task.add_favicon()
        task.add_optimize()
        assert "optimize_after_favicon" in _codes(task.validate().warnings)

    def test_optimization_only(self):
        task = Task()
        task.add_optimize()
        assert "optimization_only" in _codes(task.validate().warnings)

    def test_disabled_steps_ignored(self):
        task = Task()
        task.add_crop(20, 20, "center")
        task.add_resize(800)
        task.set_step_enabled(0, False)
        report = task.validate()
        assert report.is_valid
        assert "crop_without_resize" not in _codes(report.warnings)

    def test_logic_issues_never_block(self):
        task = Task()
        task.add_rename("{name}-x")
        task.add_favicon()
        task.add_optimize()
        task.add_optimize()
        assert task.validate().is_valid


class TestImageValidation:
    def test_missing_dimensions(self):
        issues = validate_image_info(_image(0, 100))
        assert _codes(issues) == ["missing_dimensions"]
        assert issues[0].is_blocking

    def test_tiny_source(self):
        assert "very_small_source" in _codes(validate_image_info(_image(5, 5)))

    def test_extreme_aspect(self):
        assert "extreme_aspect_ratio" in _codes(validate_image_info(_image(2000, 100)))

    def test_resize_without_upscale_on_small_image(self):
        task = Task()
        task.add_resize(2000, upscale=False)
        assert "upscale_not_allowed" in _codes(task.validate(_image(800, 600)).warnings)

    def test_extreme_upscale(self):
        task = Task()
        task.add_resize(2000)
        assert "extreme_upscale" in _codes(task.validate(_image(200, 100)).warnings)

    def test_crop_larger_than_source(self):
        task = Task()
        task.add_crop(1000, 1000, "center")
        assert "source_too_small" in _codes(task.validate(_image(500, 500)).warnings)

    def test_jpg_output_with_alpha(self):
        task = Task()
        task.add_optimize(80, "jpg")
        report = task.validate(_image(400, 300, has_alpha=True))
        assert "transparency_lost" in _codes(report.warnings)

    def test_max_width_not_applied(self):
        task = Task()
        task.add_optimize(maxDisplayWidth=1920)
        report = task.validate(_image(800, 600))
        assert "max_width_not_applied" in _codes(report.warnings)

    def test_favicon_non_square_source(self):
        task = Task()
        task.add_resize(512)
        task.add_favicon()
        report = task.validate(_image(800, 400))
        assert "non_square_source" in _codes(report.warnings)

    def test_missing_dimensions_blocks_task(self):
        task = Task()
        task.add_resize(800)
        report = validate_steps(task.steps, _image(0, 0))
        assert not report.is_valid

    def test_validate_steps_accepts_plain_step_list(self):
        steps = [StepSpec.create("resize", {"dimension": 300})]
        assert validate_steps(steps).is_valid
