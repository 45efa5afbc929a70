"""Tests for pi.screen.pixel_transform -- ranges, registry and the pass."""

from __future__ import annotations

import threading

import pytest

from pi.screen.ansi import visible_width
from pi.screen.pixel_transform import (
    PixelRange,
    PixelTransform,
    PixelTransformHandle,
    PixelTransformRegistry,
    Point,
    apply_pixel_transformations,
    normalize_range,
)


def _inverse(text: str) -> str:
    return f"\x1b[7m{text}\x1b[27m"


# ---------------------------------------------------------------------------
# normalize_range
# ---------------------------------------------------------------------------


class TestNormalizeRange:
    def test_single_point_list(self) -> None:
        assert normalize_range([(1, 2)]) == PixelRange(Point(1, 2), Point(1, 2))

    def test_two_point_mappings(self) -> None:
        result = normalize_range([{"x": 1, "y": 0}, {"x": 3, "y": 0}])
        assert result == PixelRange(Point(1, 0), Point(3, 0))

    def test_bare_point(self) -> None:
        assert normalize_range(Point(4, 5)) == PixelRange(Point(4, 5), Point(4, 5))

    def test_bare_pair(self) -> None:
        assert normalize_range((4, 5)) == PixelRange(Point(4, 5), Point(4, 5))

    def test_start_end_mapping(self) -> None:
        result = normalize_range({"start": {"x": 0, "y": 1}, "end": (2, 3)})
        assert result == PixelRange(Point(0, 1), Point(2, 3))

    def test_pixel_range_passthrough(self) -> None:
        range_ = PixelRange(Point(0, 0), Point(1, 1))
        assert normalize_range(range_) is range_

    def test_empty_rejected(self) -> None:
        with pytest.raises(ValueError):
            normalize_range([])

    def test_three_points_rejected(self) -> None:
        with pytest.raises(ValueError):
            normalize_range([(0, 0), (1, 1), (2, 2)])


# ---------------------------------------------------------------------------
# PixelTransformRegistry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_register_returns_handle(self) -> None:
        registry = PixelTransformRegistry()
        handle = registry.register([(0, 0)], str.upper)
        assert isinstance(handle, PixelTransformHandle)
        assert handle.active is True
        assert len(registry) == 1

    def test_revisions_increase(self) -> None:
        registry = PixelTransformRegistry()
        first = registry.register([(0, 0)], str.upper)
        second = registry.register([(0, 0)], str.upper)
        assert second.revision > first.revision

    def test_snapshot_in_registration_order(self) -> None:
        registry = PixelTransformRegistry()
        a = registry.register([(0, 0)], str.upper)
        b = registry.register([(1, 0)], str.lower)
        assert [t.revision for t in registry.snapshot()] == [a.revision, b.revision]

    def test_snapshot_unaffected_by_later_changes(self) -> None:
        registry = PixelTransformRegistry()
        registry.register([(0, 0)], str.upper)
        snapshot = registry.snapshot()
        registry.clear()
        assert len(snapshot) == 1

    def test_dispose_removes(self) -> None:
        registry = PixelTransformRegistry()
        handle = registry.register([(0, 0)], str.upper)
        handle.dispose()
        assert handle.active is False
        assert len(registry) == 0

    def test_dispose_twice_is_noop(self) -> None:
        registry = PixelTransformRegistry()
        handle = registry.register([(0, 0)], str.upper)
        handle.dispose()
        handle.dispose()
        assert len(registry) == 0

    def test_context_manager_disposes(self) -> None:
        registry = PixelTransformRegistry()
        with registry.register([(0, 0)], str.upper) as handle:
            assert handle in registry
        assert handle not in registry

    def test_clear(self) -> None:
        registry = PixelTransformRegistry()
        registry.register([(0, 0)], str.upper)
        registry.register([(1, 0)], str.upper)
        registry.clear()
        assert registry.snapshot() == ()

    def test_non_callable_rejected(self) -> None:
        registry = PixelTransformRegistry()
        with pytest.raises(TypeError):
            registry.register([(0, 0)], "upper")  # type: ignore[arg-type]

    def test_get_entry(self) -> None:
        registry = PixelTransformRegistry()
        handle = registry.register([(2, 1)], str.upper)
        entry = registry.get(handle)
        assert entry is not None
        assert entry.range == PixelRange(Point(2, 1), Point(2, 1))
        assert entry.transform is str.upper


class TestRegistryListeners:
    def test_listener_notified_on_changes(self) -> None:
        registry = PixelTransformRegistry()
        calls: list[int] = []
        registry.subscribe(lambda: calls.append(len(registry)))
        handle = registry.register([(0, 0)], str.upper)
        handle.dispose()
        registry.register([(0, 0)], str.upper)
        registry.clear()
        assert calls == [1, 0, 1, 0]

    def test_no_notification_for_noop_changes(self) -> None:
        registry = PixelTransformRegistry()
        handle = registry.register([(0, 0)], str.upper)
        handle.dispose()
        calls: list[str] = []
        registry.subscribe(lambda: calls.append("changed"))
        handle.dispose()
        registry.clear()
        assert calls == []

    def test_unsubscribe(self) -> None:
        registry = PixelTransformRegistry()
        calls: list[str] = []
        unsubscribe = registry.subscribe(lambda: calls.append("changed"))
        unsubscribe()
        unsubscribe()
        registry.register([(0, 0)], str.upper)
        assert calls == []

    def test_listener_may_unsubscribe_during_notification(self) -> None:
        registry = PixelTransformRegistry()
        calls: list[str] = []

        def once() -> None:
            calls.append("once")
            unsubscribe_once()

        unsubscribe_once = registry.subscribe(once)
        registry.subscribe(lambda: calls.append("always"))
        registry.register([(0, 0)], str.upper)
        registry.register([(1, 0)], str.upper)
        assert calls == ["once", "always", "always"]

    def test_concurrent_subscribers(self) -> None:
        registry = PixelTransformRegistry()
        calls: list[int] = []

        def churn() -> None:
            for _ in range(200):
                unsubscribe = registry.subscribe(lambda: None)
                unsubscribe()

        registry.subscribe(lambda: calls.append(1))
        threads = [threading.Thread(target=churn) for _ in range(4)]
        for thread in threads:
            thread.start()
        for _ in range(50):
            registry.register([(0, 0)], str.upper)
        for thread in threads:
            thread.join()
        assert len(calls) == 50
        assert len(registry._listeners) == 1


# ---------------------------------------------------------------------------
# PixelTransform lifecycle
# ---------------------------------------------------------------------------


class TestPixelTransformLifecycle:
    def test_not_registered_until_mounted(self) -> None:
        registry = PixelTransformRegistry()
        node = PixelTransform(registry, [(0, 0)], str.upper)
        assert node.mounted is False
        assert len(registry) == 0
        node.mount()
        assert node.mounted is True
        assert len(registry) == 1

    def test_mount_twice_registers_once(self) -> None:
        registry = PixelTransformRegistry()
        node = PixelTransform(registry, [(0, 0)], str.upper)
        node.mount()
        node.mount()
        assert len(registry) == 1

    def test_unmount_removes(self) -> None:
        registry = PixelTransformRegistry()
        node = PixelTransform(registry, [(0, 0)], str.upper)
        node.mount()
        node.unmount()
        assert node.revision is None
        assert len(registry) == 0

    def test_equal_range_keeps_revision(self) -> None:
        registry = PixelTransformRegistry()
        node = PixelTransform(registry, [(1, 0), (3, 0)], str.upper)
        node.mount()
        revision = node.revision
        node.set_range([{"x": 1, "y": 0}, {"x": 3, "y": 0}])
        assert node.revision == revision

    def test_new_range_reregisters_at_end(self) -> None:
        registry = PixelTransformRegistry()
        node = PixelTransform(registry, [(0, 0)], str.upper)
        node.mount()
        other = registry.register([(1, 0)], str.lower)
        node.set_range([(2, 0)])
        snapshot = registry.snapshot()
        assert [t.revision for t in snapshot] == [other.revision, node.revision]
        assert snapshot[-1].range == PixelRange(Point(2, 0), Point(2, 0))

    def test_new_transform_bumps_revision(self) -> None:
        registry = PixelTransformRegistry()
        node = PixelTransform(registry, [(0, 0)], str.upper)
        node.mount()
        revision = node.revision
        node.set_transform(str.lower)
        assert node.revision != revision
        assert len(registry) == 1
        assert registry.snapshot()[0].transform is str.lower

    def test_changes_while_unmounted_not_registered(self) -> None:
        registry = PixelTransformRegistry()
        node = PixelTransform(registry, [(0, 0)], str.upper)
        node.set_range([(5, 5)])
        node.set_transform(str.lower)
        assert len(registry) == 0
        node.mount()
        assert registry.snapshot()[0].range == PixelRange(Point(5, 5), Point(5, 5))


# ---------------------------------------------------------------------------
# apply_pixel_transformations
# ---------------------------------------------------------------------------


def _apply(lines: list[str], *entries: tuple[object, object]) -> list[str]:
    registry = PixelTransformRegistry()
    for range_, transform in entries:
        registry.register(range_, transform)  # type: ignore[arg-type]
    return apply_pixel_transformations(lines, registry.snapshot())


class TestApplyPixelTransformations:
    def test_no_transformations_returns_input(self) -> None:
        lines = ["abc"]
        assert apply_pixel_transformations(lines, ()) is lines

    def test_single_line_span(self) -> None:
        assert _apply(["Hello"], ([(1, 0), (3, 0)], str.upper)) == ["HELLo"]

    def test_single_cell(self) -> None:
        assert _apply(["Hello"], ([(4, 0)], str.upper)) == ["HellO"]

    def test_wider_output_truncated(self) -> None:
        assert _apply(["Hello"], ([(1, 0), (3, 0)], lambda s: f"[{s}]")) == ["H[elo"]

    def test_narrower_output_padded(self) -> None:
        assert _apply(["Hello"], ([(1, 0), (3, 0)], lambda s: "x")) == ["Hx  o"]

    def test_multi_line_range(self) -> None:
        lines = ["abcdef", "ghijkl", "mnopqr"]
        result = _apply(lines, ([(3, 0), (2, 2)], str.upper))
        assert result == ["abcDEF", "GHIJKL", "MNOpqr"]

    def test_span_clamped_to_row_width(self) -> None:
        assert _apply(["abc"], ([(1, 0), (10, 0)], str.upper)) == ["aBC"]

    def test_span_beyond_row_untouched(self) -> None:
        assert _apply(["abc"], ([(5, 0), (7, 0)], str.upper)) == ["abc"]

    def test_rows_beyond_frame_ignored(self) -> None:
        assert _apply(["abc"], ([(0, 3), (2, 4)], str.upper)) == ["abc"]

    def test_negative_start_row(self) -> None:
        assert _apply(["abc"], ([(0, -1), (1, 0)], str.upper)) == ["ABc"]

    def test_empty_rows_skipped(self) -> None:
        calls: list[str] = []

        def record(text: str) -> str:
            calls.append(text)
            return text

        assert _apply(["", "ab"], ([(0, 0), (1, 1)], record)) == ["", "ab"]
        assert calls == ["ab"]

    def test_later_transform_sees_earlier_output(self) -> None:
        result = _apply(
            ["hello"],
            ([(0, 0), (4, 0)], str.upper),
            ([(0, 0), (4, 0)], lambda s: s.replace("E", "3")),
        )
        assert result == ["H3LLO"]

    def test_width_preserved_with_styles_and_wide_glyphs(self) -> None:
        line = "\x1b[32m世界abc\x1b[0m"
        result = _apply([line], ([(1, 0), (4, 0)], _inverse))
        assert visible_width(result[0]) == visible_width(line) == 7

    def test_width_preserved_for_any_span(self) -> None:
        line = "a\x1b[1m世b\x1b[22m界c"
        for start in range(0, 7):
            for end in range(start, 7):
                result = _apply([line], ([(start, 0), (end, 0)], lambda s: s * 3))
                assert visible_width(result[0]) == visible_width(line)

    def test_errors_propagate(self) -> None:
        def broken(text: str) -> str:
            raise ValueError("bad transform")

        with pytest.raises(ValueError, match="bad transform"):
            _apply(["abc"], ([(0, 0)], broken))
