"""Tests for guillotine strip packing."""

import pytest

from sheetnester.tools.nesting import nesting_logic
from sheetnester.tools.nesting.algorithms.strip_nester import StripNester, VERTICAL, HORIZONTAL


class TestStripNester:
    """Tests for StripNester."""

    def test_three_rectangles_in_a_row(self, rectangle_part):
        """Three 100x50 parts exactly fill a 300x50 sheet."""
        result = nesting_logic.nest([rectangle_part("r", 100, 50, quantity=3)], 300, 50, algorithm="guillotine")

        assert result.failed == []
        assert result.total_bins == 1
        assert sorted(p.x for p in result.placed) == [0.0, 100.0, 200.0]
        assert all(p.y == 0.0 for p in result.placed)
        assert all(p.rotation == 0.0 for p in result.placed)
        assert result.efficiency == pytest.approx(1.0)

    def test_oversized_part_fails(self, rectangle_part):
        result = nesting_logic.nest([rectangle_part("big", 1000, 1000)], 500, 500, algorithm="guillotine")
        assert result.placed == []
        assert result.failed == ["big"]
        assert result.total_bins == 0
        assert result.efficiency == 0.0

    def test_gap_is_split_between_neighbours(self, rectangle_part):
        result = nesting_logic.nest([rectangle_part("r", 100, 50, quantity=2)], 300, 60,
                                    algorithm="guillotine", gap=10)
        xs = sorted(p.x for p in result.placed)
        assert xs[0] == pytest.approx(5.0)
        assert xs[1] - (xs[0] + 100) == pytest.approx(10.0)
        assert all(p.y == pytest.approx(5.0) for p in result.placed)

    def test_margin_offsets_positions(self, rectangle_part):
        result = nesting_logic.nest([rectangle_part("r", 100, 50)], 320, 70, algorithm="guillotine", margin=10)
        assert (result.placed[0].x, result.placed[0].y) == (10.0, 10.0)

    def test_rotates_when_only_rotated_fits(self, rectangle_part):
        result = nesting_logic.nest([rectangle_part("tall", 50, 100)], 300, 60, algorithm="guillotine")
        assert result.failed == []
        assert result.placed[0].rotation == 90.0

    def test_rotation_can_be_disabled(self, rectangle_part):
        result = nesting_logic.nest([rectangle_part("tall", 50, 100)], 300, 60, algorithm="guillotine",
                                    allow_rotation=False)
        assert result.failed == ["tall"]

    def test_aligns_long_side_with_portrait_sheet(self, rectangle_part):
        result = nesting_logic.nest([rectangle_part("wide", 80, 20)], 100, 300, algorithm="guillotine")
        assert result.placed[0].rotation == 90.0

    def test_overflow_opens_new_sheet(self, rectangle_part):
        result = nesting_logic.nest([rectangle_part("r", 100, 50, quantity=4)], 200, 50, algorithm="guillotine")
        assert result.total_bins == 2
        assert sorted(p.bin_id for p in result.placed) == [0, 0, 1, 1]
        assert result.efficiency == pytest.approx(1.0)

    def test_rectangles_never_overlap(self, rectangle_part):
        parts = [rectangle_part("a", 70, 30, quantity=5), rectangle_part("b", 40, 45, quantity=4),
                 rectangle_part("c", 25, 25, quantity=6)]
        result = nesting_logic.nest(parts, 200, 120, algorithm="guillotine", gap=2, margin=3)
        sizes = {"a": (70, 30), "b": (40, 45), "c": (25, 25)}

        boxes = []
        for p in result.placed:
            w, h = sizes[p.part_id]
            if p.rotation == 90:
                w, h = h, w
            assert p.x >= 3 and p.y >= 3 and p.x + w <= 197 and p.y + h <= 117
            boxes.append((p.bin_id, p.x, p.y, p.x + w, p.y + h))

        for i, a in enumerate(boxes):
            for b in boxes[i + 1:]:
                if a[0] != b[0]:
                    continue
                separated = (a[3] + 2 - 1e-9 <= b[1] or b[3] + 2 - 1e-9 <= a[1] or
                             a[4] + 2 - 1e-9 <= b[2] or b[4] + 2 - 1e-9 <= a[2])
                assert separated

    def test_both_directions_are_tried(self, rectangle_part):
        nester = StripNester(300, 50)
        parts = [rectangle_part("r", 100, 50)] * 3
        vertical = nester._run(parts, VERTICAL)
        horizontal = nester._run(parts, HORIZONTAL)
        assert vertical.bin_count == horizontal.bin_count == 1
        assert nester.nest(parts).total_bins == 1
