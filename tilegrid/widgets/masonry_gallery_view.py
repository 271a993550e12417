"""Scrollable Qt renderer for the masonry gallery."""

from PySide6.QtCore import Qt
from PySide6.QtGui import QImage
from PySide6.QtWidgets import QScrollArea, QWidget

from tilegrid.models.tile_patterns import TileItem
from tilegrid.utils.flow_log import log_flow
from tilegrid.utils.tile_image_loader import TileImageLoader
from tilegrid.widgets.masonry_layout import Position
from tilegrid.widgets.tile_widget import TileWidget


class MasonryGalleryView(QScrollArea):
    """
    Renderer and viewport for MasonryGalleryController.

    Tiles are children of one container widget and positioned absolutely.
    Only tiles the controller asked to show exist as widgets.
    """

    def __init__(self, image_loader: TileImageLoader, parent=None):
        super().__init__(parent)
        self._image_loader = image_loader
        self._controller = None
        self._tiles: dict[str, TileWidget] = {}
        self._content_height = 0

        self._container = QWidget()
        self._container.setObjectName("masonry-container")
        self.setWidget(self._container)
        self.setWidgetResizable(True)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.verticalScrollBar().setSingleStep(40)

        self._image_loader.image_loaded.connect(self._on_image_loaded)
        self._image_loader.image_failed.connect(self._on_image_failed)

    # ========== Controller wiring ==========

    def attach_controller(self, controller):
        self._controller = controller
        self.verticalScrollBar().valueChanged.connect(self._on_scroll_value_changed)

    def detach_controller(self):
        if self._controller is None:
            return
        self.verticalScrollBar().valueChanged.disconnect(self._on_scroll_value_changed)
        self._controller = None

    def _on_scroll_value_changed(self, _value: int):
        if self._controller is not None:
            self._controller.on_scroll()

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._update_container_height()
        if self._controller is None:
            return
        if event.oldSize().width() != event.size().width():
            self._controller.on_resize()
        elif event.oldSize().height() != event.size().height():
            # Columns are unchanged; only the window moved.
            self._controller.on_scroll()

    # ========== Viewport queries ==========

    def scroll_offset(self) -> int:
        return self.verticalScrollBar().value()

    def viewport_height(self) -> int:
        return self.viewport().height()

    def container_width(self) -> int:
        return self.viewport().width()

    # ========== Renderer ==========

    def set_content_height(self, height: int):
        self._content_height = height
        self._update_container_height()

    def _update_container_height(self):
        # The container is at least one viewport tall.
        self._container.setMinimumHeight(max(self._content_height, self.viewport().height()))

    def show_tile(self, item: TileItem, position: Position):
        tile = self._tiles.get(item.id)
        if tile is None:
            tile = TileWidget(item, self._container)
            tile.clicked.connect(self._on_tile_clicked)
            self._tiles[item.id] = tile
            self._image_loader.load(item.id, item.src)
        tile.setGeometry(position.to_qrect())
        tile.show()

    def hide_tile(self, item_id: str):
        tile = self._tiles.pop(item_id, None)
        if tile is None:
            return
        self._image_loader.cancel(item_id)
        tile.hide()
        tile.deleteLater()

    def clear_tiles(self):
        for item_id in list(self._tiles):
            self.hide_tile(item_id)
        self._content_height = 0
        self._update_container_height()

    # ========== Loader / tile callbacks ==========

    def _on_image_loaded(self, item_id: str, image: QImage):
        tile = self._tiles.get(item_id)
        if tile is None:
            # Scrolled out of the buffer before the image arrived.
            return
        tile.set_image(image)

    def _on_image_failed(self, item_id: str, error: str):
        if self._controller is not None:
            self._controller.on_render_failed(item_id)
        else:
            self.hide_tile(item_id)
        log_flow("RENDER", f"Tile {item_id} discarded: {error}")

    def _on_tile_clicked(self, item_id: str):
        if self._controller is not None:
            self._controller.activate(item_id)
