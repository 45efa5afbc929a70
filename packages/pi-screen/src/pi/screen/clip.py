"""Rectangular clip regions and the stack that scopes them."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pi.screen.ansi import slice_by_column, visible_width, widest_line

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Clip:
    """Visible area for writes; ``None`` leaves that side unbounded.

    ``x2`` and ``y2`` are exclusive.
    """

    x1: int | None = None
    x2: int | None = None
    y1: int | None = None
    y2: int | None = None

    @property
    def clips_horizontally(self) -> bool:
        return self.x1 is not None or self.x2 is not None

    @property
    def clips_vertically(self) -> bool:
        return self.y1 is not None or self.y2 is not None


class ClipStack:
    """Stack of clip regions.  Only the top entry is ever consulted.

    Nested regions replace their parent rather than intersecting with it:
    callers push bounds that are already absolute.
    """

    def __init__(self) -> None:
        self._clips: list[Clip] = []

    def push(self, clip: Clip) -> None:
        self._clips.append(clip)

    def pop(self) -> Clip | None:
        """Pop the innermost region; an empty stack is left alone."""
        if not self._clips:
            logger.debug("unclip with no active clip region ignored")
            return None
        return self._clips.pop()

    @property
    def top(self) -> Clip | None:
        return self._clips[-1] if self._clips else None

    @property
    def depth(self) -> int:
        return len(self._clips)


def clip_lines(
    clip: Clip,
    x: int,
    y: int,
    lines: list[str],
) -> tuple[int, int, list[str]] | None:
    """Cut a multi-line write at ``(x, y)`` down to *clip*.

    Returns the possibly moved anchor and the surviving lines, or ``None``
    when the write lies entirely outside the region.
    """
    if clip.clips_horizontally:
        width = widest_line("\n".join(lines))
        if clip.x1 is not None and x + width < clip.x1:
            return None
        if clip.x2 is not None and x > clip.x2:
            return None

    if clip.clips_vertically:
        height = len(lines)
        if clip.y1 is not None and y + height < clip.y1:
            return None
        if clip.y2 is not None and y > clip.y2:
            return None

    if clip.clips_horizontally:
        start = clip.x1 - x if clip.x1 is not None and x < clip.x1 else 0
        sliced: list[str] = []
        for line in lines:
            width = visible_width(line)
            end = clip.x2 - x if clip.x2 is not None and x + width > clip.x2 else width
            sliced.append(slice_by_column(line, start, end))
        lines = sliced
        if clip.x1 is not None and x < clip.x1:
            x = clip.x1

    if clip.clips_vertically:
        height = len(lines)
        start = clip.y1 - y if clip.y1 is not None and y < clip.y1 else 0
        end = clip.y2 - y if clip.y2 is not None and y + height > clip.y2 else height
        lines = lines[start:end] if end > start else []
        if clip.y1 is not None and y < clip.y1:
            y = clip.y1

    return (x, y, lines)
