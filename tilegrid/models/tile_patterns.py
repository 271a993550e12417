"""Tile footprint catalog and the immutable tile record."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Pattern:
    """Tile footprint in grid cells."""
    width: int
    height: int


# Order matters: the Nth fetched slot always gets PATTERNS[N % len(PATTERNS)].
PATTERNS = (
    Pattern(width=2, height=1),  # Horizontal rectangle
    Pattern(width=1, height=2),  # Vertical rectangle
    Pattern(width=2, height=2),  # Large square
    Pattern(width=1, height=1),  # Small square
)


def pattern_for(global_index: int) -> Pattern:
    return PATTERNS[global_index % len(PATTERNS)]


@dataclass(frozen=True)
class TileItem:
    """One fetched tile. Created once per existing slot, never mutated."""
    id: str
    index: int  # Global slot index (page * page_size + position in page)
    width: int
    height: int
    pattern: Pattern
    src: str


def make_tile_item(page: int, index_in_page: int, page_size: int,
                   base_unit: int, src: str) -> TileItem:
    global_index = page * page_size + index_in_page
    pattern = pattern_for(global_index)
    return TileItem(
        id=f"{page}-{index_in_page}",
        index=global_index,
        width=round(pattern.width * base_unit),
        height=round(pattern.height * base_unit),
        pattern=pattern,
        src=src,
    )
