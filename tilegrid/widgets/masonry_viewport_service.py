from dataclasses import dataclass, field
from typing import Iterable, Mapping

from tilegrid.widgets.masonry_layout import Position

# Load the next page once less than this many pixels remain below the viewport.
LOAD_MORE_THRESHOLD = 1000


@dataclass(frozen=True)
class ViewportWindow:
    """Vertical pixel range, padded by the virtualization buffer, that keeps tiles alive."""
    scroll_y: int
    viewport_height: int
    buffer: int

    @property
    def top(self) -> int:
        return self.scroll_y - self.buffer

    @property
    def bottom(self) -> int:
        return self.scroll_y + self.viewport_height + self.buffer


@dataclass
class VisibilityPlan:
    """Tiles to (re)show with their positions and tiles to tear down."""
    show: list[str] = field(default_factory=list)
    hide: list[str] = field(default_factory=list)
    visible: set[str] = field(default_factory=set)


def is_visible(position: Position, window: ViewportWindow) -> bool:
    return position.top < window.bottom and position.bottom > window.top


def plan_visibility(order: Iterable[str], positions: Mapping[str, Position],
                    window: ViewportWindow, previously_visible: set[str],
                    relayout: bool = True) -> VisibilityPlan:
    """
    Classify tiles against the padded viewport.

    After a relayout every visible tile is listed in `show` because its
    position may have moved. A scroll-only refilter lists just the tiles that
    entered the window.
    """
    plan = VisibilityPlan()
    for item_id in order:
        position = positions.get(item_id)
        if position is None:
            continue
        if is_visible(position, window):
            plan.visible.add(item_id)
            if relayout or item_id not in previously_visible:
                plan.show.append(item_id)
        elif item_id in previously_visible:
            plan.hide.append(item_id)
    return plan


def remaining_scroll(content_height: int, scroll_y: int, viewport_height: int) -> int:
    # The container is never shorter than the viewport.
    container_bottom = max(content_height, viewport_height)
    return container_bottom - (scroll_y + viewport_height)


def should_load_more(content_height: int, scroll_y: int, viewport_height: int) -> bool:
    return remaining_scroll(content_height, scroll_y, viewport_height) < LOAD_MORE_THRESHOLD
