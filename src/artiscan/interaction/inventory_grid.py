"""
Row-major cursor over the artifact inventory grid.

The grid shows `visible_rows` rows of `columns` cells at a time; scrolling moves
the view down one row per `scroll_ticks_per_row` wheel ticks. The cursor keeps
track of which logical row is at the top of the view so any slot index can be
turned into an on-screen click point.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..layout.profiles import GridMetrics, Point, Rect

# Fraction of the cell pitch sampled when probing a slot.
CELL_SAMPLE_REL = 0.6


@dataclass(frozen=True)
class SlotPosition:
    """Represents a single logical inventory slot."""

    index: int  # 0.., row-major over the whole inventory
    row: int  # logical row (not screen row)
    col: int  # 0..columns-1 (left to right)


class GridCursor:
    def __init__(self, metrics: GridMetrics, top_row: int = 0) -> None:
        if metrics.columns < 1 or metrics.visible_rows < 1:
            raise ValueError("grid needs at least one column and one visible row")
        self.metrics = metrics
        self.top_row = top_row

    def position(self, index: int) -> SlotPosition:
        if index < 0:
            raise ValueError(f"slot index must be >= 0, got {index}")
        row, col = divmod(index, self.metrics.columns)
        return SlotPosition(index=index, row=row, col=col)

    def is_visible(self, index: int) -> bool:
        row = self.position(index).row
        return self.top_row <= row < self.top_row + self.metrics.visible_rows

    def screen_point(self, index: int) -> Point:
        """
        Window-relative center of a visible slot.
        """
        pos = self.position(index)
        if not self.is_visible(index):
            raise ValueError(
                f"slot {index} (row {pos.row}) is not visible; top row is {self.top_row}"
            )
        return self.metrics.cell_center(pos.row - self.top_row, pos.col)

    def cell_rect(self, index: int) -> Rect:
        """
        Square sample around the center of a visible slot, used for emptiness checks.
        """
        center = self.screen_point(index)
        side = max(1, int(min(self.metrics.column_pitch, self.metrics.row_height) * CELL_SAMPLE_REL))
        return Rect(center.x - side // 2, center.y - side // 2, side, side)

    def scroll_amount(self) -> int:
        """
        Wheel ticks that reveal the next row (negative scrolls down).
        """
        return -abs(self.metrics.scroll_ticks_per_row)

    def advance_view(self) -> None:
        self.top_row += 1

    def rows_traversed(self, index: int) -> int:
        return self.position(index).row
