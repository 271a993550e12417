from tilegrid.models.tile_patterns import PATTERNS, Pattern, make_tile_item, pattern_for


def test_catalog_order():
    assert PATTERNS == (Pattern(2, 1), Pattern(1, 2), Pattern(2, 2), Pattern(1, 1))


def test_pattern_for_cycles_by_global_index():
    assert [pattern_for(i) for i in range(8)] == list(PATTERNS) * 2
    assert pattern_for(1001) == pattern_for(1001)


def test_make_tile_item_uses_page_and_global_index():
    item = make_tile_item(page=2, index_in_page=3, page_size=10, base_unit=150, src="x.png")

    assert item.id == "2-3"
    assert item.index == 23
    assert item.pattern == PATTERNS[23 % 4]
    assert (item.width, item.height) == (150, 150)
    assert item.src == "x.png"
