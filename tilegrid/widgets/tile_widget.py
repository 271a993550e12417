from PySide6.QtCore import QEasingCurve, QPropertyAnimation, QRect, Qt, Signal
from PySide6.QtGui import QImage, QPainter, QPixmap
from PySide6.QtWidgets import QFrame, QGraphicsOpacityEffect

from tilegrid.models.tile_patterns import TileItem

FADE_IN_MS = 300


class TileWidget(QFrame):
    """Absolute-positioned tile: placeholder until the image arrives, then a cover-fit image."""

    clicked = Signal(str)  # item id

    def __init__(self, item: TileItem, parent=None):
        super().__init__(parent)
        self.item = item
        self._pixmap: QPixmap | None = None
        self.setObjectName(f"masonry-item-{item.id}")
        self.setCursor(Qt.CursorShape.PointingHandCursor)
        self.setToolTip(f"Item {item.id}")
        self.setStyleSheet(
            "QFrame { border: 2px solid #ccc; background-color: #2a2a2a; }"
        )
        self._opacity = QGraphicsOpacityEffect(self)
        self._opacity.setOpacity(1.0)
        self.setGraphicsEffect(self._opacity)
        self._fade = None

    @property
    def has_image(self) -> bool:
        return self._pixmap is not None

    def set_image(self, image: QImage):
        """Swap the placeholder for the image and fade it in."""
        self._pixmap = QPixmap.fromImage(image)
        self._opacity.setOpacity(0.0)
        self._fade = QPropertyAnimation(self._opacity, b"opacity", self)
        self._fade.setDuration(FADE_IN_MS)
        self._fade.setStartValue(0.0)
        self._fade.setEndValue(1.0)
        self._fade.setEasingCurve(QEasingCurve.Type.InOutQuad)
        self._fade.start()
        self.update()

    def paintEvent(self, event):
        super().paintEvent(event)
        if self._pixmap is None or self._pixmap.isNull():
            return
        target = self.contentsRect()
        # Cover: scale to fill, crop the overflow around the center.
        scaled = self._pixmap.scaled(target.size(), Qt.AspectRatioMode.KeepAspectRatioByExpanding,
                                     Qt.TransformationMode.SmoothTransformation)
        source = QRect((scaled.width() - target.width()) // 2,
                       (scaled.height() - target.height()) // 2,
                       target.width(), target.height())
        painter = QPainter(self)
        painter.drawPixmap(target, scaled, source)
        painter.end()

    def mouseReleaseEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton and self.rect().contains(event.position().toPoint()):
            self.clicked.emit(self.item.id)
        super().mouseReleaseEvent(event)
