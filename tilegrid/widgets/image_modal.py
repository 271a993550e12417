"""
Full-size image dialog opened when a tile is activated.

Closes on Escape, on the close button, or on a click outside the image.
"""

from PySide6.QtCore import Qt
from PySide6.QtGui import QImage, QPixmap
from PySide6.QtWidgets import QDialog, QHBoxLayout, QLabel, QPushButton, QVBoxLayout

from tilegrid.utils.tile_image_loader import TileImageLoader

MODAL_KEY = "modal"


class ImageModal(QDialog):
    def __init__(self, image_loader: TileImageLoader, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Image")
        self.setModal(True)
        self.resize(1000, 750)
        self.setStyleSheet("QDialog { background-color: rgba(0, 0, 0, 230); }")

        self._image_loader = image_loader
        self._image_loader.image_loaded.connect(self._on_image_loaded)
        self._image_loader.image_failed.connect(self._on_image_failed)
        self._current_src: str | None = None
        self._pixmap: QPixmap | None = None

        layout = QVBoxLayout(self)
        top_bar = QHBoxLayout()
        top_bar.addStretch()
        self.close_button = QPushButton("×")
        self.close_button.setFixedSize(36, 36)
        self.close_button.setStyleSheet("font-size: 22px; color: white; background: transparent;")
        self.close_button.clicked.connect(self.close_modal)
        top_bar.addWidget(self.close_button)
        layout.addLayout(top_bar)

        self.image_label = QLabel()
        self.image_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.image_label.setStyleSheet("color: #ccc;")
        layout.addWidget(self.image_label, stretch=1)

    def open_image(self, src: str):
        self._current_src = src
        self._pixmap = None
        self.image_label.setPixmap(QPixmap())
        self.image_label.setText("Loading...")
        self._image_loader.cancel(MODAL_KEY)
        self._image_loader.load(MODAL_KEY, src)
        self.show()
        self.raise_()
        self.activateWindow()

    def close_modal(self):
        self._image_loader.cancel(MODAL_KEY)
        self._current_src = None
        self.hide()

    def reject(self):
        # Escape lands here.
        self.close_modal()

    def _on_image_loaded(self, key: str, image: QImage):
        if key != MODAL_KEY or self._current_src is None:
            return
        self._pixmap = QPixmap.fromImage(image)
        self.image_label.setText("")
        self._rescale()

    def _on_image_failed(self, key: str, error: str):
        if key != MODAL_KEY or self._current_src is None:
            return
        self.image_label.setText(f"Could not load image: {error}")

    def _rescale(self):
        if self._pixmap is None:
            return
        self.image_label.setPixmap(self._pixmap.scaled(
            self.image_label.size(), Qt.AspectRatioMode.KeepAspectRatio,
            Qt.TransformationMode.SmoothTransformation))

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._rescale()

    def mousePressEvent(self, event):
        # Click on the backdrop (anywhere but the image itself) closes.
        pixmap = self.image_label.pixmap()
        label_pos = self.image_label.mapFrom(self, event.position().toPoint())
        if pixmap is None or pixmap.isNull():
            self.close_modal()
            return
        image_rect = pixmap.rect()
        image_rect.moveCenter(self.image_label.rect().center())
        if not image_rect.contains(label_pos):
            self.close_modal()
            return
        super().mousePressEvent(event)
