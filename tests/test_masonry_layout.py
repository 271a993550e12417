import random

from tilegrid.models.tile_patterns import PATTERNS, Pattern, TileItem, make_tile_item
from tilegrid.widgets.masonry_layout import Position, column_count, pack_items


def make_items(count, page_size=24, base_unit=200):
    return [make_tile_item(0, i, page_size, base_unit, f"/images/{i + 1}.png") for i in range(count)]


def make_random_items(count, seed):
    rng = random.Random(seed)
    items = []
    for i in range(count):
        pattern = rng.choice(PATTERNS)
        items.append(TileItem(id=f"r-{i}", index=i, width=pattern.width * 200,
                              height=pattern.height * 200, pattern=pattern, src=""))
    return items


def assert_no_overlap(result):
    seen = {}
    for item_id, (col, row, width, height) in result.cells.items():
        assert col >= 0 and col + width <= result.num_columns
        for r in range(row, row + height):
            for c in range(col, col + width):
                assert (r, c) not in seen, f"{item_id} overlaps {seen[(r, c)]} at {(r, c)}"
                seen[(r, c)] = item_id


def test_column_count_floors_and_never_drops_below_one():
    assert column_count(840, 200, 10) == 4
    assert column_count(820, 200, 10) == 3
    assert column_count(209, 200, 10) == 1
    assert column_count(0, 200, 10) == 1


def test_golden_four_columns():
    result = pack_items(make_items(4), container_width=840, base_unit=200, gap=10)

    assert result.num_columns == 4
    assert result.positions == {
        "0-0": Position(left=0, top=0, width=410, height=200),
        "0-1": Position(left=420, top=0, width=200, height=410),
        "0-2": Position(left=0, top=210, width=410, height=410),
        "0-3": Position(left=630, top=210, width=200, height=200),
    }
    assert result.content_height == 630


def test_golden_eight_items_four_columns():
    result = pack_items(make_items(8), container_width=840)

    assert result.cells == {
        "0-0": (0, 0, 2, 1),
        "0-1": (2, 0, 1, 2),
        "0-2": (0, 1, 2, 2),
        "0-3": (3, 1, 1, 1),
        "0-4": (2, 2, 2, 1),
        "0-5": (0, 3, 1, 2),
        "0-6": (1, 3, 2, 2),
        "0-7": (3, 3, 1, 1),
    }
    assert result.content_height == 1050


def test_resize_to_three_columns_repacks_from_scratch():
    items = make_items(4)
    wide = pack_items(items, container_width=840)
    narrow = pack_items(items, container_width=820)

    assert narrow.num_columns == 3
    assert narrow.positions["0-3"] == Position(left=420, top=420, width=200, height=200)
    assert narrow.positions["0-3"] != wide.positions["0-3"]
    assert narrow.content_height == 630


def test_empty_layout_has_zero_height():
    result = pack_items([], container_width=840)

    assert result.positions == {}
    assert result.content_height == 0


def test_pattern_wider_than_grid_is_clamped():
    result = pack_items(make_items(6), container_width=300)

    assert result.num_columns == 1
    assert all(position.width == 200 for position in result.positions.values())
    assert result.cells["0-2"] == (0, 3, 1, 2)  # 2x2 clamped to 1x2
    assert_no_overlap(result)


def test_no_overlap_for_random_sequences():
    for seed in range(20):
        items = make_random_items(60, seed)
        for width in (210, 420, 630, 840, 1260, 2000):
            assert_no_overlap(pack_items(items, container_width=width))


def test_packing_is_deterministic():
    items = make_random_items(80, seed=7)

    first = pack_items(items, container_width=1050)
    second = pack_items(list(items), container_width=1050)

    assert first.positions == second.positions
    assert first.content_height == second.content_height


def test_gap_is_included_in_spanning_tiles():
    items = [TileItem(id="a", index=0, width=40, height=40, pattern=Pattern(2, 2), src="")]

    result = pack_items(items, container_width=100, base_unit=20, gap=5)

    assert result.positions["a"] == Position(left=0, top=0, width=45, height=45)
    assert result.content_height == 50
    assert result.positions["a"].to_qrect().bottom() == 44  # QRect bottom is inclusive
