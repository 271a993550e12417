from PySide6.QtGui import QCloseEvent
from PySide6.QtWidgets import QApplication, QMainWindow

from tilegrid.models.paginated_tile_model import PaginatedTileModel
from tilegrid.utils.image_probe import create_probe
from tilegrid.utils.settings import DEFAULT_SETTINGS, GalleryOptions, settings
from tilegrid.utils.tile_image_loader import TileImageLoader
from tilegrid.widgets.image_modal import ImageModal
from tilegrid.widgets.masonry_gallery_controller import MasonryGalleryController
from tilegrid.widgets.masonry_gallery_view import MasonryGalleryView


class MainWindow(QMainWindow):
    def __init__(self, app: QApplication, source: str):
        super().__init__()
        self.app = app
        self.setWindowTitle(f"tilegrid - {source}")
        self.resize(1280, 900)

        options = GalleryOptions.from_settings(settings)
        timeout = settings.value('probe_timeout_s', DEFAULT_SETTINGS['probe_timeout_s'], type=float)
        name_template = settings.value('image_name_template',
                                       DEFAULT_SETTINGS['image_name_template'], type=str)
        load_workers = settings.value('image_load_workers',
                                      DEFAULT_SETTINGS['image_load_workers'], type=int)

        self.tile_loader = TileImageLoader(max_workers=max(1, load_workers), timeout=timeout)
        self.modal_loader = TileImageLoader(max_workers=1, timeout=timeout)
        self.gallery_view = MasonryGalleryView(self.tile_loader, self)
        self.setCentralWidget(self.gallery_view)
        self.image_modal = ImageModal(self.modal_loader, self)

        self.tile_model = PaginatedTileModel(
            create_probe(source, name_template=name_template, timeout=timeout),
            page_size=options.page_size,
            base_unit=options.base_unit,
            retry_base_ms=options.batch_retry_base_ms,
            retry_max_ms=options.batch_retry_max_ms,
            max_workers=max(1, settings.value('probe_workers', DEFAULT_SETTINGS['probe_workers'], type=int)),
        )
        self.controller = MasonryGalleryController(
            self.gallery_view, self.tile_model, options, modal=self.image_modal)

        # Restore the window geometry.
        if settings.contains('geometry'):
            self.restoreGeometry(settings.value('geometry', type=bytes))

    def start(self):
        self.show()
        self.controller.init()

    def closeEvent(self, event: QCloseEvent):
        """Save the window geometry and tear the gallery down before closing."""
        settings.setValue('geometry', self.saveGeometry())
        self.controller.destroy()
        self.tile_loader.close()
        self.modal_loader.close()
        super().closeEvent(event)
