import pytest

from artiscan.interaction.inventory_grid import GridCursor
from artiscan.layout.profiles import GridMetrics, Point, Rect

METRICS = GridMetrics(
    origin=Point(100, 200),
    columns=8,
    visible_rows=5,
    column_pitch=50,
    row_height=60,
    scroll_ticks_per_row=5,
    region=Rect(75, 170, 400, 300),
)


def test_position_is_row_major():
    cursor = GridCursor(METRICS)
    pos = cursor.position(19)
    assert (pos.row, pos.col) == (2, 3)
    with pytest.raises(ValueError):
        cursor.position(-1)


def test_screen_point_tracks_the_view():
    cursor = GridCursor(METRICS)
    assert cursor.screen_point(0) == Point(100, 200)
    assert cursor.screen_point(9) == Point(150, 260)
    assert not cursor.is_visible(40)
    with pytest.raises(ValueError):
        cursor.screen_point(40)

    cursor.advance_view()
    assert cursor.is_visible(40)
    assert not cursor.is_visible(0)
    assert cursor.screen_point(40) == Point(100, 440)


def test_scroll_amount_scrolls_down():
    assert GridCursor(METRICS).scroll_amount() == -5


def test_cell_rect_is_centered_inside_the_cell():
    rect = GridCursor(METRICS).cell_rect(0)
    assert rect.width == rect.height == 30
    assert rect.center == Point(100, 200)


def test_rows_traversed():
    cursor = GridCursor(METRICS)
    assert cursor.rows_traversed(7) == 0
    assert cursor.rows_traversed(8) == 1


def test_rejects_degenerate_grid():
    bad = GridMetrics(Point(0, 0), 0, 5, 10, 10, 1, Rect(0, 0, 1, 1))
    with pytest.raises(ValueError):
        GridCursor(bad)
