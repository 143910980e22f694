"""Tests for image loading."""

import pytest
from PyQt6.QtCore import Qt
from PyQt6.QtGui import QImage

from annotator_engine.core.errors import ImageLoadError
from annotator_engine.workers.image_loader import (
    ImageLoader,
    get_image_files,
    is_image_file,
    load_image,
)

pytestmark = pytest.mark.usefixtures("qapp")


@pytest.fixture
def sample_png(tmp_path):
    """Write a small PNG to disk."""
    image = QImage(32, 24, QImage.Format.Format_ARGB32)
    image.fill(Qt.GlobalColor.red)
    path = tmp_path / "sample.png"
    assert image.save(str(path), "PNG")
    return path


class TestLoadImage:
    """Tests for load_image."""

    def test_load(self, sample_png):
        """Test decoding a valid file."""
        image = load_image(str(sample_png))

        assert (image.width(), image.height()) == (32, 24)

    def test_missing_file(self, tmp_path):
        """Test that a missing file raises with a reason."""
        with pytest.raises(ImageLoadError) as excinfo:
            load_image(str(tmp_path / "nope.png"))

        assert excinfo.value.reason == "file not found"

    def test_corrupt_file(self, tmp_path):
        """Test that undecodable data raises."""
        path = tmp_path / "broken.png"
        path.write_bytes(b"not really a png")

        with pytest.raises(ImageLoadError):
            load_image(str(path))


class TestImageFiles:
    """Tests for file discovery."""

    def test_is_image_file(self):
        """Test extension filtering."""
        assert is_image_file("a.PNG")
        assert is_image_file("dir/b.jpeg")
        assert not is_image_file("notes.txt")

    def test_get_image_files_sorted(self, tmp_path):
        """Test listing a directory."""
        for name in ("b.png", "a.jpg", "c.txt"):
            (tmp_path / name).write_bytes(b"")

        files = get_image_files(tmp_path)

        assert [f.rsplit("/", 1)[-1] for f in files] == ["a.jpg", "b.png"]

    def test_get_image_files_missing_dir(self, tmp_path):
        """Test a directory that does not exist."""
        assert get_image_files(tmp_path / "missing") == []


class TestImageLoader:
    """Tests for the background loader."""

    def test_run_emits_per_item(self, sample_png, tmp_path):
        """Test that every request ends in loaded or failed."""
        loader = ImageLoader([(0, str(sample_png)), (1, str(tmp_path / "gone.png"))])
        loaded, failed, progress = [], [], []
        loader.image_loaded.connect(lambda i, image: loaded.append((i, image.width())))
        loader.image_failed.connect(lambda i, reason: failed.append((i, reason)))
        loader.progress.connect(lambda done, total: progress.append((done, total)))

        # Run synchronously; direct connections deliver on this thread
        loader.run()

        assert loaded == [(0, 32)]
        assert failed == [(1, "file not found")]
        assert progress == [(1, 2), (2, 2)]

    def test_stop(self, sample_png):
        """Test that a stopped loader emits nothing."""
        loader = ImageLoader([(0, str(sample_png))])
        loaded = []
        loader.image_loaded.connect(lambda i, image: loaded.append(i))

        loader.stop()
        loader.run()

        assert loaded == []
