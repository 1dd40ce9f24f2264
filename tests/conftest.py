"""Shared pytest setup for the imgtask suite.

Tests marked ``slow`` run the real OpenCV detectors and are skipped unless
``--slow`` is given:

    pytest            # fast suite
    pytest --slow     # everything
"""
import pytest
from PIL import Image


def pytest_addoption(parser):
    parser.addoption(
        "--slow",
        action="store_true",
        default=False,
        help="Also run tests that load real OpenCV detectors",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--slow"):
        return
    skip_slow = pytest.mark.skip(reason="needs --slow (real OpenCV detectors)")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture
def write_images(tmp_path):
    """Write solid-color images into a new directory under tmp_path.

    Call with a mapping of file name to (width, height); the file extension
    picks the format. Returns the directory.
    """
    def write(sizes, directory="in", color=(30, 60, 90)):
        target = tmp_path / directory
        target.mkdir()
        for name, size in sizes.items():
            Image.new("RGB", size, color).save(target / name)
        return target

    return write
