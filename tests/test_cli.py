"""Tests for the imgtask command line."""

import json
import logging

from PIL import Image

import imgtask
from batch.types import BatchSummary, ImageResult, ImageState
from logging_utils import (
    ProgressAwareHandler,
    log_run_summary,
    progress_enabled,
    resolve_log_level,
)
from tasks import Task


def _write_task(path, task):
    path.write_text(task.to_json(), encoding="utf-8")
    return path


class TestRun:
    def test_writes_outputs_and_report(self, tmp_path, write_images):
        images = write_images({"a.png": (80, 40), "b.png": (40, 80)})
        task = Task("Small")
        task.add_resize(20)
        task.add_optimize(80, "png")
        task_file = _write_task(tmp_path / "task.json", task)
        out = tmp_path / "out"
        report = tmp_path / "report.json"

        code = imgtask.main([
            "-q", "run", str(task_file), str(images), "-o", str(out), "--report", str(report),
        ])

        assert code == 0
        assert sorted(p.name for p in out.iterdir()) == ["a.png", "b.png"]
        with Image.open(out / "a.png") as img:
            assert img.size == (20, 10)
        data = json.loads(report.read_text(encoding="utf-8"))
        assert data["total"] == 2
        assert data["succeeded"] == 2

    def test_failed_images_exit_code(self, tmp_path, write_images):
        images = write_images({"big.png": (400, 300), "small.png": (50, 40)})
        task = Task()
        task.add_resize(300, upscale=False)
        task_file = _write_task(tmp_path / "task.json", task)
        out = tmp_path / "out"

        code = imgtask.main(["-q", "run", str(task_file), str(images), "-o", str(out), "--parallel"])

        assert code == 2
        assert [p.name for p in out.iterdir()] == ["big.png"]

    def test_unknown_task(self, tmp_path, write_images):
        images = write_images({"a.png": (10, 10)})
        code = imgtask.main(["-q", "run", "no-such-template", str(images), "-o", str(tmp_path / "out")])
        assert code == 1

    def test_invalid_task_is_rejected_before_running(self, tmp_path, write_images):
        images = write_images({"a.png": (100, 100)})
        task = Task()
        task.add_crop(20, 20, "center")
        task_file = _write_task(tmp_path / "task.json", task)
        out = tmp_path / "out"

        assert imgtask.main(["-q", "run", str(task_file), str(images), "-o", str(out)]) == 1
        assert not out.exists()

    def test_bad_group_size(self, tmp_path, write_images):
        images = write_images({"a.png": (10, 10)})
        code = imgtask.main([
            "-q", "run", "web-optimized", str(images), "-o", str(tmp_path / "out"),
            "--parallel", "--group-size", "0",
        ])
        assert code == 1


class TestDescribe:
    def test_describe_template(self, capsys):
        assert imgtask.main(["-q", "describe", "web-optimized"]) == 0
        out = capsys.readouterr().out
        assert "Web Optimization (" in out
        assert "Execution order: resize -> optimize -> rename" in out

    def test_describe_reports_errors(self, tmp_path, capsys):
        task = Task()
        task.add_template("")
        task_file = _write_task(tmp_path / "task.json", task)
        assert imgtask.main(["-q", "describe", str(task_file)]) == 1
        assert "[error] step 1:" in capsys.readouterr().out

    def test_estimate(self, capsys):
        assert imgtask.main(["-q", "estimate", "web-optimized", "--images", "10"]) == 0
        assert "3 step(s) x 10 image(s)" in capsys.readouterr().out


class TestTemplates:
    def test_list(self, capsys):
        assert imgtask.main(["-q", "templates"]) == 0
        out = capsys.readouterr().out
        assert "favicon-package" in out
        assert "web-optimized" in out

    def test_export_to_file(self, tmp_path):
        path = tmp_path / "social.json"
        assert imgtask.main(["-q", "template", "social-media", "-o", str(path)]) == 0
        task = Task.from_json(path.read_text(encoding="utf-8"))
        assert task.name == "Social Media Posts"
        assert [s.processor.value for s in task.steps] == ["resize", "crop", "optimize"]

    def test_export_to_stdout(self, capsys):
        assert imgtask.main(["-q", "template", "optimization-only"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["name"] == "Optimization Only"

    def test_unknown_template(self):
        assert imgtask.main(["-q", "template", "nope"]) == 1


class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert imgtask.main([]) == 1
        assert "usage: imgtask" in capsys.readouterr().out


class TestLogLevels:
    def test_explicit_level_wins(self):
        assert resolve_log_level("warning", verbose=2) == logging.WARNING

    def test_modifiers(self):
        assert resolve_log_level() == logging.INFO
        assert resolve_log_level(verbose=1) == logging.DEBUG
        assert resolve_log_level(quiet=1) == logging.WARNING
        assert resolve_log_level(quiet=2) == logging.ERROR

    def test_progress_hidden_when_quiet(self):
        assert progress_enabled(logging.INFO)
        assert not progress_enabled(logging.WARNING)


class TestLogOutput:
    def test_handler_writes_formatted_records(self, capsys):
        handler = ProgressAwareHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        log = logging.getLogger("imgtask.tests.handler")
        log.propagate = False
        log.addHandler(handler)
        try:
            log.warning("resized %d image(s)", 3)
        finally:
            log.removeHandler(handler)
        assert capsys.readouterr().out == "WARNING resized 3 image(s)\n"

    def test_run_summary_lists_failures(self, caplog):
        summary = BatchSummary(results=[
            ImageResult(image_name="a.png", success=True, state=ImageState.COMPLETED),
            ImageResult.failure("b.png", ValueError("too small")),
        ])
        log = logging.getLogger("imgtask.tests.summary")
        with caplog.at_level(logging.INFO, logger="imgtask.tests.summary"):
            log_run_summary(log, summary, "out", 1)
        assert "Run Complete!" in caplog.messages
        assert "Failed:    1" in caplog.messages
        assert "Files written to out: 1" in caplog.messages
        failures = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert [r.getMessage() for r in failures] == ["  b.png: too small"]
