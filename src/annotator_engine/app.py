"""Application bootstrap for Annotator Engine."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from PyQt6.QtWidgets import QApplication

from .core.config import DEFAULT_CONFIG_PATH, ConfigManager
from .core.errors import AnnotatorError
from .core.session import AnnotationSession, TaskVariant
from .ui.main_window import MainWindow
from .workers.image_loader import get_image_files, is_image_file

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)

logger = logging.getLogger(__name__)


def create_application(argv: Optional[Sequence[str]] = None) -> QApplication:
    """
    Create and configure the Qt application.

    Returns:
        Configured QApplication instance
    """
    app = QApplication.instance() or QApplication(list(argv or sys.argv))
    app.setApplicationName("Annotator Engine")
    app.setApplicationVersion("1.0.0")
    app.setOrganizationName("Annotator Engine")
    return app


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="annotator-engine",
        description="Annotate images with boxes, segmentation masks or keypoints.",
    )
    parser.add_argument(
        "images", nargs="+",
        help="Image files or directories of images, in work order",
    )
    parser.add_argument(
        "--variant", choices=[v.value for v in TaskVariant],
        default=TaskVariant.BOUNDING_BOX.value,
        help="Annotation task variant",
    )
    parser.add_argument(
        "--category", default="",
        help="Task category, used to pick the default label set",
    )
    parser.add_argument(
        "--config", type=Path, default=DEFAULT_CONFIG_PATH,
        help="Path to the YAML configuration file",
    )
    return parser.parse_args(argv)


def collect_images(paths: Sequence[str]) -> List[str]:
    """Expand directories into their image files, keeping argument order."""
    images: List[str] = []
    for path in paths:
        if Path(path).is_dir():
            images.extend(get_image_files(Path(path)))
        elif is_image_file(path):
            images.append(path)
        else:
            logger.warning(f"Skipping unsupported file: {path}")
    return images


def run(argv: Optional[Sequence[str]] = None) -> int:
    """
    Run the Annotator Engine application.

    Returns:
        Exit code
    """
    args = parse_args(argv)
    logger.info("Starting Annotator Engine")

    images = collect_images(args.images)
    if not images:
        logger.error("No images to annotate")
        return 2

    try:
        app = create_application()
        logger.info("QApplication created")

        config = ConfigManager(args.config).config
        session = AnnotationSession.create(
            images, TaskVariant(args.variant), category=args.category, config=config
        )

        window = MainWindow(session)
        window.show()
        window.start_loading()
        logger.info("MainWindow shown")

        return app.exec()

    except AnnotatorError as e:
        logger.error(f"Application error: {e}", exc_info=True)
        return 1


def main() -> None:
    """Main entry point for the application."""
    sys.exit(run())


if __name__ == "__main__":
    main()
