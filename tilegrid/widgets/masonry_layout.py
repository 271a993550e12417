"""Masonry layout calculator for the tile grid."""

from dataclasses import dataclass, field
from typing import Iterable

from PySide6.QtCore import QRect

from tilegrid.models.tile_patterns import Pattern, TileItem
from tilegrid.utils.flow_log import log_flow


@dataclass(frozen=True)
class Position:
    """Pixel box assigned to a tile by one layout pass."""
    left: int
    top: int
    width: int
    height: int

    @property
    def bottom(self) -> int:
        return self.top + self.height

    def to_qrect(self) -> QRect:
        return QRect(self.left, self.top, self.width, self.height)


@dataclass
class PackResult:
    """Output of one full packing pass."""
    num_columns: int
    positions: dict[str, Position] = field(default_factory=dict)
    # Grid cell rectangles (col, row, width, height) per item id.
    cells: dict[str, tuple[int, int, int, int]] = field(default_factory=dict)
    content_height: int = 0


def column_count(container_width: int, base_unit: int, gap: int) -> int:
    """Number of grid columns that fit in the container (at least 1)."""
    return max(1, container_width // (base_unit + gap))


def _fits(grid: dict, x: int, y: int, width: int, height: int, cols: int) -> bool:
    if x + width > cols:
        return False
    for row in range(y, y + height):
        for col in range(x, x + width):
            if (row, col) in grid:
                return False
    return True


def pack_items(items: Iterable[TileItem], container_width: int,
               base_unit: int = 200, gap: int = 10) -> PackResult:
    """
    Assign every item a non-overlapping cell region, in order.

    A scan cursor walks the grid row-major. Each item is placed at the first
    cursor position where its whole footprint is free; after a placement the
    cursor moves one column on, so the next item starts searching from there.
    The layout is rebuilt from scratch on every call.

    Args:
        items: Tiles in fetch order
        container_width: Available width in pixels
        base_unit: Pixel size of one grid cell
        gap: Spacing between cells in pixels

    Returns:
        PackResult with per-item positions and the total content height
    """
    cols = column_count(container_width, base_unit, gap)
    step = base_unit + gap
    result = PackResult(num_columns=cols)
    grid: dict[tuple[int, int], str] = {}  # (row, col) -> item id
    x = y = 0
    clamped = 0

    for item in items:
        pattern = item.pattern
        if pattern.width > cols:
            # Would never fit; the scan below must terminate.
            pattern = Pattern(width=cols, height=pattern.height)
            clamped += 1

        while not _fits(grid, x, y, pattern.width, pattern.height, cols):
            x += 1
            if x >= cols:
                x = 0
                y += 1

        for row in range(y, y + pattern.height):
            for col in range(x, x + pattern.width):
                grid[(row, col)] = item.id

        result.cells[item.id] = (x, y, pattern.width, pattern.height)
        result.positions[item.id] = Position(
            left=x * step,
            top=y * step,
            width=pattern.width * base_unit + (pattern.width - 1) * gap,
            height=pattern.height * base_unit + (pattern.height - 1) * gap,
        )

        x += 1
        if x >= cols:
            x = 0
            y += 1

    if result.positions:
        result.content_height = max(p.bottom for p in result.positions.values()) + gap

    if clamped:
        log_flow("MASONRY", f"Clamped {clamped} tile(s) wider than {cols} column(s)",
                 level="WARNING", throttle_key="masonry_clamp", every_s=5.0)
    log_flow("MASONRY", f"Packed {len(result.positions)} tiles into {cols} columns, "
                        f"height={result.content_height}")
    return result
