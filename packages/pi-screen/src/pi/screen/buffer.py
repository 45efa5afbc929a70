"""Fixed-size grid of styled cells."""

from __future__ import annotations

from typing import Iterable, Optional

from pi.screen.styled import BLANK, StyledChar, styled_chars_to_string

# A ``None`` cell is the second column of a double-width glyph.
Cell = Optional[StyledChar]


class CellBuffer:
    """A ``height x width`` grid of cells, initialised to blank spaces.

    Writes are last-write-wins per cell.  Anything that falls outside the
    grid is silently dropped.
    """

    def __init__(self, width: int, height: int) -> None:
        if width < 0 or height < 0:
            raise ValueError(f"buffer size must be non-negative, got {width}x{height}")
        self.width = width
        self.height = height
        self._rows: list[list[Cell]] = [[BLANK] * width for _ in range(height)]

    def cell(self, x: int, y: int) -> Cell:
        """Return the cell at ``(x, y)``; ``None`` marks a wide-glyph continuation."""
        return self._rows[y][x]

    def paste(self, x: int, y: int, chars: Iterable[StyledChar]) -> None:
        """Paste *chars* left to right starting at column *x* of row *y*.

        Overwriting either half of a wide glyph blanks the other half, so
        every cell keeps its column.
        """
        if not 0 <= y < self.height:
            return

        row = self._rows[y]
        col = x
        for ch in chars:
            if ch.width > 1:
                if col >= 0 and col + 1 < self.width:
                    self._repair_before(row, col)
                    row[col] = ch
                    row[col + 1] = None
                    self._repair_after(row, col + 2)
                else:
                    # Only half of the glyph is on screen
                    filler = StyledChar(" ", 1, ch.styles)
                    for c in (col, col + 1):
                        if 0 <= c < self.width:
                            self._repair_before(row, c)
                            row[c] = filler
                            self._repair_after(row, c + 1)
            elif 0 <= col < self.width:
                self._repair_before(row, col)
                row[col] = ch
                self._repair_after(row, col + 1)
            col += ch.width

    def _repair_before(self, row: list[Cell], col: int) -> None:
        # Writing over a continuation cell orphans the head on its left.
        if col > 0 and row[col] is None:
            head = row[col - 1]
            row[col - 1] = StyledChar(" ", 1, head.styles if head is not None else ())

    def _repair_after(self, row: list[Cell], col: int) -> None:
        # A continuation cell right after a fresh write lost its head.
        if col < self.width and row[col] is None:
            row[col] = BLANK

    def render_rows(self, trim: bool = True) -> list[str]:
        """Serialise every row to an ANSI string, one per row."""
        lines: list[str] = []
        for row in self._rows:
            line = styled_chars_to_string([cell for cell in row if cell is not None])
            lines.append(line.rstrip() if trim else line)
        return lines
