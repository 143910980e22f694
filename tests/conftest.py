"""Pytest configuration and fixtures."""

import os
import sys
from pathlib import Path

import pytest

# Render without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))


@pytest.fixture(scope="session")
def qapp():
    """Create a QApplication for tests that need it."""
    from PyQt6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])

    yield app


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def make_session(qapp):
    """Factory for sessions whose images are already marked loaded (800x600)."""
    from annotator_engine.core.config import EngineConfig
    from annotator_engine.core.session import AnnotationSession, TaskVariant

    def factory(count=2, variant=TaskVariant.BOUNDING_BOX, loaded=True, **config_values):
        config = EngineConfig(**config_values)
        session = AnnotationSession.create(
            [f"image_{i}.png" for i in range(count)], variant, config=config
        )
        if loaded:
            for i in range(count):
                session.mark_image_loaded(i, 800, 600)
        return session

    return factory


@pytest.fixture
def box_session(make_session):
    """Two-item bounding box session, first label (vehicle) selected."""
    return make_session()


@pytest.fixture
def sample_config_yaml(tmp_path):
    """Create a sample configuration file."""
    yaml_path = tmp_path / "annotator.yaml"
    yaml_path.write_text(
        "minZoom: 0.25\n"
        "maxZoom: 4.0\n"
        "minBoxSize: 8\n"
        "strictCompletion: true\n"
    )
    return yaml_path
