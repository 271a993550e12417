import math
import time
from typing import Callable

from PySide6.QtCore import QTimer

from tilegrid.models.paginated_tile_model import PaginatedTileModel, PaginationState
from tilegrid.models.tile_patterns import TileItem
from tilegrid.utils.flow_log import log_flow
from tilegrid.utils.settings import GalleryOptions
from tilegrid.widgets.masonry_layout import PackResult, Position, pack_items
from tilegrid.widgets.masonry_viewport_service import (ViewportWindow, plan_visibility,
                                                       should_load_more)

# Quiet period that coalesces a burst of resize events into one re-pack.
RESIZE_DEBOUNCE_MS = 150


class MasonryGalleryController:
    """
    Drives pagination, packing and virtualization for one gallery view.

    The view is the renderer and the viewport: it shows/hides tiles and
    reports scroll offset and geometry. The controller never touches widgets
    directly.
    """

    def __init__(self, view, model: PaginatedTileModel, options: GalleryOptions,
                 modal=None, resize_timer=None, schedule: Callable | None = None):
        self._view = view
        self._model = model
        self._options = options
        self._modal = modal
        self._resize_timer = resize_timer if resize_timer is not None else self._create_resize_timer()
        self._schedule = schedule
        self._pack = PackResult(num_columns=1)
        self._items_by_id: dict[str, TileItem] = {}
        self._visible: set[str] = set()
        self._broken: set[str] = set()
        self._attached = False
        self._destroyed = False

    @staticmethod
    def _create_resize_timer():
        timer = QTimer()
        timer.setSingleShot(True)
        timer.setInterval(RESIZE_DEBOUNCE_MS)
        return timer

    # ========== Read-only state ==========

    @property
    def items(self) -> list[TileItem]:
        return list(self._model.items)

    @property
    def pagination_state(self) -> PaginationState:
        return self._model.state

    @property
    def positions(self) -> dict[str, Position]:
        return dict(self._pack.positions)

    @property
    def content_height(self) -> int:
        return self._pack.content_height

    @property
    def num_columns(self) -> int:
        return self._pack.num_columns

    @property
    def visible_ids(self) -> set[str]:
        return set(self._visible)

    # ========== Public operations ==========

    def init(self):
        """Attach scroll/resize listeners and request the first batch."""
        if self._destroyed or self._attached:
            return
        self._model.items_appended.connect(self._on_items_appended)
        self._model.batch_failed.connect(self._on_batch_failed)
        self._resize_timer.timeout.connect(self.layout_items)
        self._view.attach_controller(self)
        self._attached = True
        self.layout_items()
        self.load_next_page()

    def load_next_page(self) -> bool:
        if self._destroyed:
            return False
        return self._model.request_next_page()

    def layout_items(self):
        """Re-pack every tile from scratch and re-filter visibility."""
        if self._destroyed:
            return
        self._pack = pack_items(self._model.items, self._view.container_width(),
                                self._options.base_unit, self._options.gap)
        self._view.set_content_height(self._pack.content_height)
        self._apply_visibility(relayout=True)

    def destroy(self):
        """Detach listeners and clear rendered tiles. Safe mid-fetch; idempotent."""
        if self._destroyed:
            return
        self._destroyed = True
        self._resize_timer.stop()
        if self._attached:
            self._model.items_appended.disconnect(self._on_items_appended)
            self._model.batch_failed.disconnect(self._on_batch_failed)
            self._resize_timer.timeout.disconnect(self.layout_items)
            self._view.detach_controller()
            self._attached = False
        self._model.close()
        self._view.clear_tiles()
        self._visible.clear()
        log_flow("MASONRY", "Gallery destroyed", level="INFO")

    # ========== View events ==========

    def on_scroll(self):
        """Cheap refilter on scroll, plus the load-more check. Never re-packs."""
        if self._destroyed:
            return
        self._apply_visibility(relayout=False)
        self._check_load_trigger()

    def on_resize(self):
        if self._destroyed:
            return
        # Restarting a running single-shot timer pushes the re-pack back.
        self._resize_timer.start()

    def activate(self, item_id: str):
        item = self._items_by_id.get(item_id)
        if item is None or self._modal is None:
            return
        self._modal.open_image(item.src)

    def on_render_failed(self, item_id: str):
        """Discard a tile whose image could not be loaded; it keeps its cell."""
        if self._destroyed or item_id in self._broken:
            return
        self._broken.add(item_id)
        self._visible.discard(item_id)
        self._view.hide_tile(item_id)
        log_flow("RENDER", f"Image failed to load for tile {item_id}, removed", level="WARNING")

    # ========== Internals ==========

    def _on_items_appended(self, new_items: list):
        if self._destroyed:
            return
        for item in new_items:
            self._items_by_id[item.id] = item
        self.layout_items()
        # Keep fetching while the content does not reach past the load threshold.
        if self._model.has_more:
            self._check_load_trigger()

    def _on_batch_failed(self, page: int, message: str):
        # Without a retry the gallery stalls when there is nothing to scroll.
        self._schedule_retry()

    def _schedule_retry(self):
        delay_ms = max(0, math.ceil((self._model.state.retry_at - time.time()) * 1000))
        if self._schedule is not None:
            self._schedule(delay_ms, self._on_retry_due)
        else:
            QTimer.singleShot(delay_ms, self._on_retry_due)

    def _on_retry_due(self):
        if self._destroyed or self._model.is_loading or not self._model.has_more:
            return
        if time.time() < self._model.state.retry_at:
            # Timer fired early.
            self._schedule_retry()
            return
        self._check_load_trigger()

    def _viewport_window(self) -> ViewportWindow:
        return ViewportWindow(
            scroll_y=self._view.scroll_offset(),
            viewport_height=self._view.viewport_height(),
            buffer=self._options.virtualize_buffer,
        )

    def _apply_visibility(self, relayout: bool):
        window = self._viewport_window()
        plan = plan_visibility((item.id for item in self._model.items), self._pack.positions,
                               window, self._visible, relayout=relayout)
        for item_id in plan.hide:
            self._view.hide_tile(item_id)
        shown = 0
        for item_id in plan.show:
            if item_id in self._broken:
                continue
            self._view.show_tile(self._items_by_id[item_id], self._pack.positions[item_id])
            shown += 1
        self._visible = plan.visible - self._broken
        log_flow("VIEWPORT", f"Window {window.top}..{window.bottom}: visible={len(self._visible)} "
                             f"shown={shown} hidden={len(plan.hide)} relayout={relayout}",
                 throttle_key=None if relayout else "viewport_scroll",
                 every_s=None if relayout else 0.25)

    def _check_load_trigger(self):
        if should_load_more(self._pack.content_height, self._view.scroll_offset(),
                            self._view.viewport_height()):
            self.load_next_page()
