"""Pixel transforms: rewrites of rectangular regions of the final frame.

A pixel transform pairs a cell range with a ``str -> str`` function.  After
every write has been composited and each row serialised, the registered
transforms run in registration order over the text inside their range.  A
transform never shifts the rest of its row: its output is truncated or
padded back to the width of the text it was given.

Example::

    registry = PixelTransformRegistry()
    handle = registry.register([(2, 0), (6, 0)], lambda s: f"\\x1b[7m{s}\\x1b[27m")
    output = Output(40, 5, registry=registry)
    ...
    handle.dispose()
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Mapping, NamedTuple, Sequence, Union

from pi.screen.ansi import fit_to_width, slice_by_column, visible_width

logger = logging.getLogger(__name__)

__all__ = [
    "Point",
    "PixelRange",
    "RangeLike",
    "TransformFn",
    "normalize_range",
    "PixelTransformation",
    "PixelTransformHandle",
    "PixelTransformRegistry",
    "PixelTransform",
    "apply_pixel_transformations",
]

TransformFn = Callable[[str], str]


# ---------------------------------------------------------------------------
# Ranges
# ---------------------------------------------------------------------------


class Point(NamedTuple):
    x: int
    y: int


class PixelRange(NamedTuple):
    """Inclusive range of cells, read in row-major order."""

    start: Point
    end: Point


# Point, (x, y) or {"x": .., "y": ..}
PointLike = Union[Point, Sequence[int], Mapping[str, int]]
# PixelRange, a single point, or a sequence of one or two points
RangeLike = Union[PixelRange, Point, Sequence[PointLike], Mapping[str, Any]]


def _to_point(value: PointLike) -> Point:
    if isinstance(value, Point):
        return value
    if isinstance(value, Mapping):
        return Point(int(value["x"]), int(value["y"]))
    if isinstance(value, Sequence) and len(value) == 2:
        return Point(int(value[0]), int(value[1]))
    raise ValueError(f"not a point: {value!r}")


def normalize_range(range_: RangeLike) -> PixelRange:
    """Resolve *range_* to an inclusive ``PixelRange``.

    A single point becomes a one-cell range with ``start == end``.
    """
    if isinstance(range_, PixelRange):
        return range_
    if isinstance(range_, Point):
        return PixelRange(range_, range_)
    if isinstance(range_, Mapping):
        if "start" in range_:
            return PixelRange(_to_point(range_["start"]), _to_point(range_["end"]))
        point = _to_point(range_)  # type: ignore[arg-type]
        return PixelRange(point, point)
    if len(range_) == 2 and all(isinstance(v, int) for v in range_):
        # A bare (x, y) pair
        point = _to_point(range_)  # type: ignore[arg-type]
        return PixelRange(point, point)

    points = [_to_point(p) for p in range_]
    if len(points) == 1:
        return PixelRange(points[0], points[0])
    if len(points) == 2:
        return PixelRange(points[0], points[1])
    raise ValueError(f"a pixel range takes one or two points, got {len(points)}")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PixelTransformation:
    range: PixelRange
    transform: TransformFn
    revision: int


class PixelTransformHandle:
    """Handle returned by :meth:`PixelTransformRegistry.register`.

    Disposing the handle removes the transformation; it can also be used as
    a context manager.
    """

    def __init__(self, registry: PixelTransformRegistry, revision: int) -> None:
        self._registry = registry
        self.revision = revision

    @property
    def active(self) -> bool:
        return self in self._registry

    def dispose(self) -> None:
        self._registry.unregister(self)

    def __enter__(self) -> PixelTransformHandle:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    def __repr__(self) -> str:
        return f"PixelTransformHandle(revision={self.revision})"


class PixelTransformRegistry:
    """Ordered set of pixel transformations shared by a render loop.

    Entries iterate in registration order, which is also the order in which
    they are applied.  Every entry carries a revision id drawn from a
    monotonically increasing counter; the id doubles as the handle key.

    Mutation, :meth:`snapshot` and the listener list are serialised with a
    lock, so a frame always sees a consistent set even if another thread
    registers while it renders.  Listeners run outside the lock and may
    call back into the registry.
    """

    def __init__(self) -> None:
        self._entries: dict[int, PixelTransformation] = {}
        self._revisions = itertools.count(1)
        self._lock = threading.Lock()
        self._listeners: list[Callable[[], None]] = []

    def register(self, range_: RangeLike, transform: TransformFn) -> PixelTransformHandle:
        """Add a transformation and return its handle."""
        if not callable(transform):
            raise TypeError("transform must be callable")
        normalized = normalize_range(range_)
        with self._lock:
            revision = next(self._revisions)
            self._entries[revision] = PixelTransformation(normalized, transform, revision)
        logger.debug("registered pixel transform %d over %s", revision, normalized)
        self._notify()
        return PixelTransformHandle(self, revision)

    def unregister(self, handle: PixelTransformHandle) -> None:
        """Remove the transformation behind *handle* (no-op if already gone)."""
        with self._lock:
            removed = self._entries.pop(handle.revision, None)
        if removed is None:
            return
        logger.debug("unregistered pixel transform %d", handle.revision)
        self._notify()

    def clear(self) -> None:
        """Drop every transformation (full teardown)."""
        with self._lock:
            if not self._entries:
                return
            self._entries.clear()
        logger.debug("cleared pixel transforms")
        self._notify()

    def get(self, handle: PixelTransformHandle) -> PixelTransformation | None:
        with self._lock:
            return self._entries.get(handle.revision)

    def snapshot(self) -> tuple[PixelTransformation, ...]:
        """Return the current transformations in registration order."""
        with self._lock:
            return tuple(self._entries.values())

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Call *listener* after every change; returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener()

    def __contains__(self, handle: object) -> bool:
        if not isinstance(handle, PixelTransformHandle):
            return False
        with self._lock:
            return handle.revision in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ---------------------------------------------------------------------------
# Lifecycle helper
# ---------------------------------------------------------------------------


class PixelTransform:
    """Registration owned by a node that declares a pixel transform.

    ``mount`` registers, ``unmount`` removes.  While mounted, a change of
    range (compared by value) or of transform function re-registers the
    entry, which moves it to the end of the application order.  Setting an
    equal range is a no-op; setting a transform always bumps the revision.
    """

    def __init__(
        self,
        registry: PixelTransformRegistry,
        range_: RangeLike,
        transform: TransformFn,
    ) -> None:
        self._registry = registry
        self._range = normalize_range(range_)
        self._transform = transform
        self._handle: PixelTransformHandle | None = None

    @property
    def range(self) -> PixelRange:
        return self._range

    @property
    def handle(self) -> PixelTransformHandle | None:
        return self._handle

    @property
    def mounted(self) -> bool:
        return self._handle is not None

    @property
    def revision(self) -> int | None:
        return self._handle.revision if self._handle is not None else None

    def mount(self) -> None:
        if self._handle is None:
            self._handle = self._registry.register(self._range, self._transform)

    def unmount(self) -> None:
        if self._handle is not None:
            self._handle.dispose()
            self._handle = None

    def set_range(self, range_: RangeLike) -> None:
        normalized = normalize_range(range_)
        if normalized == self._range:
            return
        self._range = normalized
        self._reregister()

    def set_transform(self, transform: TransformFn) -> None:
        self._transform = transform
        self._reregister()

    def _reregister(self) -> None:
        if self._handle is None:
            return
        self._handle.dispose()
        self._handle = self._registry.register(self._range, self._transform)


# ---------------------------------------------------------------------------
# The pass
# ---------------------------------------------------------------------------


def _span(range_: PixelRange, y: int, line_width: int) -> tuple[int, int]:
    start, end = range_
    if start.y == end.y:
        return (start.x, end.x)
    if y == start.y:
        return (start.x, line_width - 1)
    if y == end.y:
        return (0, end.x)
    return (0, line_width - 1)


def apply_pixel_transformations(
    lines: list[str],
    transformations: Sequence[PixelTransformation],
) -> list[str]:
    """Apply *transformations* in order to the serialised frame *lines*.

    Later transformations see the output of earlier ones.  Exceptions raised
    by a transform function propagate to the caller.
    """
    if not transformations:
        return lines

    result = list(lines)

    for transformation in transformations:
        start, end = transformation.range

        for y in range(max(start.y, 0), min(end.y, len(result) - 1) + 1):
            line = result[y]
            if not line:
                continue

            line_width = visible_width(line)
            start_x, end_x = _span(transformation.range, y, line_width)

            start_x = max(0, min(start_x, line_width))
            end_x = max(start_x, min(end_x, line_width - 1))

            target = slice_by_column(line, start_x, end_x + 1)
            if not target:
                continue

            before = slice_by_column(line, 0, start_x)
            after = slice_by_column(line, end_x + 1)

            transformed = fit_to_width(transformation.transform(target), visible_width(target))
            result[y] = before + transformed + after

    return result
