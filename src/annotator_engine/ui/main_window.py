"""Main application window for the annotation engine."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction, QActionGroup, QColor, QIcon, QPixmap
from PyQt6.QtWidgets import (
    QDockWidget, QFileDialog, QLabel, QListWidget, QListWidgetItem, QMainWindow,
    QMessageBox, QSlider, QStatusBar, QToolBar
)

from ..core.export import build_submission, load_submission, write_submission
from ..core.session import AnnotationSession, TaskVariant
from ..core.state_machine import Tool
from ..core.taxonomy import Label
from ..workers.image_loader import ImageLoader
from .canvas import AnnotationCanvas
from .history_panel import HistoryPanel

logger = logging.getLogger(__name__)

# Tools offered per task variant, in toolbar order
VARIANT_TOOLS: Dict[TaskVariant, tuple] = {
    TaskVariant.BOUNDING_BOX: (Tool.DRAW, Tool.SELECT, Tool.PAN),
    TaskVariant.SEGMENTATION: (Tool.PAINT, Tool.ERASE, Tool.PAN),
    TaskVariant.KEYPOINT: (Tool.KEYPOINT, Tool.SELECT, Tool.PAN),
}

TOOL_NAMES = {
    Tool.DRAW: "Draw Box",
    Tool.SELECT: "Select",
    Tool.PAINT: "Paint",
    Tool.ERASE: "Erase",
    Tool.KEYPOINT: "Place Keypoint",
    Tool.PAN: "Pan",
}


def _swatch(color: str, size: int = 12) -> QIcon:
    """Create a square color swatch icon."""
    pixmap = QPixmap(size, size)
    pixmap.fill(QColor(color))
    return QIcon(pixmap)


class MainWindow(QMainWindow):
    """
    Window hosting one annotation session.

    Central canvas, a label list and history dock, a toolbar with the
    variant's tools, and a status bar with progress.
    """

    def __init__(self, session: AnnotationSession) -> None:
        """
        Initialize the main window.

        Args:
            session: Session to annotate
        """
        super().__init__()
        self.session = session
        self.image_loader: Optional[ImageLoader] = None
        self.tool_actions: Dict[Tool, QAction] = {}

        self.canvas = AnnotationCanvas(session)
        self.setCentralWidget(self.canvas)
        self.setWindowTitle("Annotator Engine")
        self.resize(1200, 800)

        self._create_status_bar()
        self._create_label_dock()
        self._create_history_dock()
        self._create_toolbar()
        self._create_menus()
        self._setup_connections()
        self._update_status()

        logger.info("MainWindow initialization complete")

    # === UI construction ===

    def _create_status_bar(self) -> None:
        """Create the status bar."""
        self.status_bar = QStatusBar()
        self.setStatusBar(self.status_bar)

        self.label_label = QLabel()
        self.status_bar.addPermanentWidget(self.label_label)

        self.zoom_label = QLabel()
        self.status_bar.addPermanentWidget(self.zoom_label)

        self.progress_label = QLabel()
        self.status_bar.addPermanentWidget(self.progress_label)

    def _create_label_dock(self) -> None:
        """Create the label list dock; clicking a row selects that label."""
        self.label_list = QListWidget()
        for label in self.session.taxonomy:
            text = f"{label.name} [{label.shortcut}]" if label.shortcut else label.name
            item = QListWidgetItem(_swatch(label.color), text)
            item.setData(Qt.ItemDataRole.UserRole, label.id)
            item.setToolTip(label.description)
            self.label_list.addItem(item)
        self.label_list.itemClicked.connect(
            lambda item: self.session.machine.select_label(item.data(Qt.ItemDataRole.UserRole))
        )

        dock = QDockWidget("Labels", self)
        dock.setObjectName("LabelsDock")
        dock.setWidget(self.label_list)
        self.addDockWidget(Qt.DockWidgetArea.RightDockWidgetArea, dock)

    def _create_history_dock(self) -> None:
        """Create the history dock."""
        self.history_panel = HistoryPanel(self.session)
        dock = QDockWidget("History", self)
        dock.setObjectName("HistoryDock")
        dock.setWidget(self.history_panel)
        self.addDockWidget(Qt.DockWidgetArea.RightDockWidgetArea, dock)

    def _create_toolbar(self) -> None:
        """Create the main toolbar."""
        self.toolbar = QToolBar()
        self.toolbar.setObjectName("MainToolBar")
        self.addToolBar(self.toolbar)

        previous_action = QAction("Previous", self)
        previous_action.triggered.connect(self.session.previous_item)
        self.toolbar.addAction(previous_action)

        next_action = QAction("Next", self)
        next_action.triggered.connect(self.session.next_item)
        self.toolbar.addAction(next_action)

        self.toolbar.addSeparator()

        tools = QActionGroup(self)
        for tool in VARIANT_TOOLS[self.session.variant]:
            action = QAction(TOOL_NAMES[tool], self)
            action.setCheckable(True)
            action.triggered.connect(lambda _checked, t=tool: self.session.machine.set_tool(t))
            tools.addAction(action)
            self.tool_actions[tool] = action
        self.toolbar.addActions(tools.actions())
        current = self.tool_actions.get(self.session.machine.tool)
        if current:
            current.setChecked(True)

        self.toolbar.addSeparator()

        zoom_in_action = QAction("Zoom In", self)
        zoom_in_action.setShortcut("Ctrl++")
        zoom_in_action.triggered.connect(lambda: self.session.zoom_in())
        self.toolbar.addAction(zoom_in_action)

        zoom_out_action = QAction("Zoom Out", self)
        zoom_out_action.setShortcut("Ctrl+-")
        zoom_out_action.triggered.connect(lambda: self.session.zoom_out())
        self.toolbar.addAction(zoom_out_action)

        reset_action = QAction("Reset View", self)
        reset_action.setShortcut("Ctrl+0")
        reset_action.triggered.connect(self.session.reset_view)
        self.toolbar.addAction(reset_action)

        if self.session.variant == TaskVariant.SEGMENTATION:
            self.brush_slider = QSlider(Qt.Orientation.Horizontal)
            self.brush_slider.setRange(
                self.session.config.min_brush_radius, self.session.config.max_brush_radius
            )
            self.brush_slider.setValue(int(self.session.machine.brush_radius))
            self.brush_slider.setMaximumWidth(150)
            self.brush_slider.setToolTip("Brush size")
            self.brush_slider.valueChanged.connect(self.session.machine.set_brush_radius)
            self.toolbar.addWidget(self.brush_slider)

        if self.session.variant == TaskVariant.BOUNDING_BOX:
            self.confidence_slider = QSlider(Qt.Orientation.Horizontal)
            self.confidence_slider.setRange(0, 100)
            self.confidence_slider.setValue(self.session.machine.confidence)
            self.confidence_slider.setMaximumWidth(150)
            self.confidence_slider.setToolTip("Confidence")
            self.confidence_slider.valueChanged.connect(self.session.machine.set_confidence)
            self.toolbar.addWidget(self.confidence_slider)

        self.toolbar.addSeparator()

        self.submit_action = QAction("Submit", self)
        self.submit_action.triggered.connect(self._submit)
        self.toolbar.addAction(self.submit_action)

    def _create_menus(self) -> None:
        """Create the menu bar."""
        menubar = self.menuBar()

        file_menu = menubar.addMenu("File")

        load_action = QAction("Load Draft...", self)
        load_action.setShortcut("Ctrl+O")
        load_action.triggered.connect(self._load_draft)
        file_menu.addAction(load_action)

        save_action = QAction("Save Draft...", self)
        save_action.setShortcut("Ctrl+S")
        save_action.triggered.connect(self._save_draft)
        file_menu.addAction(save_action)

        file_menu.addSeparator()

        exit_action = QAction("Exit", self)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        edit_menu = menubar.addMenu("Edit")

        self.undo_action = QAction("Undo", self)
        self.undo_action.setShortcut("Ctrl+Z")
        self.undo_action.triggered.connect(self.session.undo)
        edit_menu.addAction(self.undo_action)

        self.redo_action = QAction("Redo", self)
        self.redo_action.setShortcut("Ctrl+Shift+Z")
        self.redo_action.triggered.connect(self.session.redo)
        edit_menu.addAction(self.redo_action)

        edit_menu.addSeparator()

        clear_action = QAction("Clear Item", self)
        clear_action.triggered.connect(self.session.clear_item)
        edit_menu.addAction(clear_action)

    def _setup_connections(self) -> None:
        """Set up signal/slot connections."""
        self.canvas.status_message.connect(lambda message: self.status_bar.showMessage(message, 4000))
        self.session.annotations_changed.connect(self._update_status)
        self.session.item_changed.connect(self._update_status)
        self.session.item_status_changed.connect(self._update_status)
        self.session.viewport_changed.connect(self._update_status)
        self.session.machine.label_changed.connect(self._on_label_changed)
        self._on_label_changed(self.session.machine.selected_label)

    # === Image loading ===

    def start_loading(self) -> None:
        """Decode every item's image in the background."""
        requests = [(i, item.source) for i, item in enumerate(self.session.items)]
        self.image_loader = ImageLoader(requests)
        self.image_loader.image_loaded.connect(self.canvas.set_image)
        self.image_loader.image_failed.connect(self.canvas.mark_failed)
        self.image_loader.start()

    def closeEvent(self, event) -> None:
        """Stop the loader and dispose of the session."""
        if self.image_loader is not None:
            self.image_loader.stop()
            self.image_loader.wait()
        self.session.dispose()
        super().closeEvent(event)

    # === Status ===

    def _on_label_changed(self, label: Optional[Label]) -> None:
        self.label_label.setText(f"Label: {label.name}" if label else "No label")
        for row in range(self.label_list.count()):
            item = self.label_list.item(row)
            if label and item.data(Qt.ItemDataRole.UserRole) == label.id:
                self.label_list.setCurrentRow(row)
                break

    def _update_status(self, *_args) -> None:
        """Refresh progress, zoom and action availability."""
        if self.session.closed:
            return
        session = self.session
        self.progress_label.setText(
            f"Item {session.current_index + 1}/{session.item_count} | "
            f"{session.completed_count()}/{session.item_count} complete"
        )
        self.zoom_label.setText(f"{round(session.viewport.zoom * 100)}%")
        history = session.store.history
        self.undo_action.setEnabled(history.can_undo())
        self.redo_action.setEnabled(history.can_redo())
        self.undo_action.setToolTip(history.undo_description())
        self.redo_action.setToolTip(history.redo_description())
        self.submit_action.setEnabled(session.can_submit())

    # === Submission and drafts ===

    def _ask_path(self, title: str, save: bool) -> Optional[Path]:
        if save:
            path, _ = QFileDialog.getSaveFileName(self, title, "", "JSON Files (*.json)")
        else:
            path, _ = QFileDialog.getOpenFileName(self, title, "", "JSON Files (*.json)")
        return Path(path) if path else None

    def _submit(self) -> None:
        """Write the submission payload once every item is complete."""
        if not self.session.can_submit():
            QMessageBox.warning(self, "Submit", "Every item needs annotations before submitting.")
            return
        path = self._ask_path("Save Submission", save=True)
        if path is None:
            return
        include_masks = self.session.variant == TaskVariant.SEGMENTATION
        if write_submission(build_submission(self.session, include_masks), path):
            self.status_bar.showMessage(f"Submission written to {path}", 4000)

    def _save_draft(self) -> None:
        path = self._ask_path("Save Draft", save=True)
        if path and write_submission(build_submission(self.session), path):
            self.status_bar.showMessage(f"Draft saved to {path}", 4000)

    def _load_draft(self) -> None:
        path = self._ask_path("Load Draft", save=False)
        if path is None:
            return
        try:
            restored = load_submission(path)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load draft {path}: {e}")
            QMessageBox.critical(self, "Load Draft", f"Could not read {path}:\n{e}")
            return
        self.session.load_annotations(restored)
        self.status_bar.showMessage(f"Draft loaded from {path}", 4000)

