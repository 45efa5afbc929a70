"""Virtual output: the operation log behind every frame.

Nodes do not paint directly.  They log positioned writes, interleaved with
clip and unclip directives, and :meth:`Output.get` replays the log once
against a blank cell buffer.  Log order is paint order: later writes win
every cell they cover.  Pixel transforms run last, over the serialised
rows, so nothing written by a node can overwrite them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, NamedTuple, Sequence, Union

from pi.screen.buffer import CellBuffer
from pi.screen.clip import Clip, ClipStack, clip_lines
from pi.screen.config import ScreenOptions
from pi.screen.pixel_transform import PixelTransformRegistry, apply_pixel_transformations
from pi.screen.styled import tokenize

logger = logging.getLogger(__name__)

__all__ = [
    "OutputTransformer",
    "WriteOperation",
    "ClipOperation",
    "UnclipOperation",
    "Operation",
    "RenderResult",
    "Output",
]

# Rewrites one line of a write before it is composited; receives the line
# and its index among the write's visible lines.
OutputTransformer = Callable[[str, int], str]


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WriteOperation:
    x: int
    y: int
    text: str
    transformers: tuple[OutputTransformer, ...] = ()


@dataclass(frozen=True)
class ClipOperation:
    clip: Clip


@dataclass(frozen=True)
class UnclipOperation:
    pass


Operation = Union[WriteOperation, ClipOperation, UnclipOperation]


class RenderResult(NamedTuple):
    output: str
    height: int


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


class Output:
    """Operation log for one frame of a ``width x height`` screen.

    *registry* supplies the pixel transforms applied at the end of
    :meth:`get`; without one the pass is skipped.
    """

    def __init__(
        self,
        width: int,
        height: int,
        registry: PixelTransformRegistry | None = None,
        trim_trailing_whitespace: bool = True,
    ) -> None:
        if width < 0 or height < 0:
            raise ValueError(f"output size must be non-negative, got {width}x{height}")
        self.width = width
        self.height = height
        self.registry = registry
        self.trim_trailing_whitespace = trim_trailing_whitespace
        self._operations: list[Operation] = []

    @classmethod
    def from_options(
        cls,
        options: ScreenOptions,
        registry: PixelTransformRegistry | None = None,
    ) -> Output:
        return cls(
            options.width,
            options.height,
            registry=registry,
            trim_trailing_whitespace=options.trim_trailing_whitespace,
        )

    @property
    def operations(self) -> tuple[Operation, ...]:
        return tuple(self._operations)

    # ------------------------------------------------------------------
    # Logging operations
    # ------------------------------------------------------------------

    def write(
        self,
        x: int,
        y: int,
        text: str,
        transformers: Sequence[OutputTransformer] = (),
    ) -> None:
        """Log *text* anchored at ``(x, y)``; empty text is ignored."""
        if not text:
            return
        self._operations.append(WriteOperation(x, y, text, tuple(transformers)))

    def clip(self, clip: Clip) -> None:
        """Restrict the writes that follow to *clip* until :meth:`unclip`."""
        self._operations.append(ClipOperation(clip))

    def unclip(self) -> None:
        self._operations.append(UnclipOperation())

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    def get(self) -> RenderResult:
        """Replay the log and return the frame text and its height.

        The height is the buffer height, whatever trailing rows are blank.
        """
        # Every row exists up front so bottom margin/padding is kept
        buffer = CellBuffer(self.width, self.height)
        clips = ClipStack()

        for operation in self._operations:
            if isinstance(operation, ClipOperation):
                clips.push(operation.clip)
            elif isinstance(operation, UnclipOperation):
                clips.pop()
            else:
                self._replay_write(buffer, clips.top, operation)

        if clips.depth:
            logger.debug("%d clip region(s) left open at end of frame", clips.depth)

        lines = buffer.render_rows(trim=self.trim_trailing_whitespace)

        if self.registry is not None:
            lines = apply_pixel_transformations(lines, self.registry.snapshot())

        return RenderResult("\n".join(lines), buffer.height)

    @staticmethod
    def _replay_write(
        buffer: CellBuffer,
        clip: Clip | None,
        operation: WriteOperation,
    ) -> None:
        x, y = operation.x, operation.y
        lines = operation.text.split("\n")

        if clip is not None:
            clipped = clip_lines(clip, x, y, lines)
            if clipped is None:
                return
            x, y, lines = clipped

        for index, line in enumerate(lines):
            row = y + index
            # Text taller than the buffer loses its overflowing lines
            if not 0 <= row < buffer.height:
                continue

            for transformer in operation.transformers:
                line = transformer(line, index)

            buffer.paste(x, row, tokenize(line))
