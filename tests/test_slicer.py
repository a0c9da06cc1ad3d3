"""
Tests for the page slicer.
"""

import random
import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


SURFACE_WIDTH = 100


def make_geometry(capacity_px):
    """Geometry with one page unit per surface pixel."""
    from utils.units import PageGeometry

    return PageGeometry(page_width=SURFACE_WIDTH, page_height=capacity_px, margin=0)


def stack(heights, gap):
    """Block rectangles stacked top to bottom with ``gap`` between them."""
    from utils.slicer import BlockRect

    rects = []
    top = 0
    for i, height in enumerate(heights):
        if i > 0:
            top += gap
        rects.append(BlockRect(top, height))
        top += height
    return rects, top


def slice_blocks(heights, gap, capacity):
    from utils.slicer import compute_page_slices

    rects, total = stack(heights, gap)
    return rects, total, compute_page_slices(rects, SURFACE_WIDTH, total, make_geometry(capacity))


class TestScenarios:
    """Reference pagination cases."""

    def test_two_blocks_then_one(self):
        """Three 500px blocks, 24px gap, 1100px capacity."""
        rects, total, slices = slice_blocks([500, 500, 500], 24, 1100)

        assert len(slices) == 2
        assert (slices[0].first_block, slices[0].last_block) == (0, 1)
        assert (slices[0].y_start, slices[0].y_end) == (0, 1024)
        assert slices[0].height_px == 1024
        assert (slices[1].first_block, slices[1].last_block) == (2, 2)
        assert (slices[1].y_start, slices[1].y_end) == (1048, 1548)
        assert not any(s.clipped for s in slices)

    def test_oversized_block_is_clipped(self):
        """A 2000px block on a 1200px page yields one clipped slice."""
        rects, total, slices = slice_blocks([2000], 24, 1200)

        assert len(slices) == 1
        assert (slices[0].y_start, slices[0].y_end) == (0, 1200)
        assert slices[0].clipped is True

    def test_oversized_block_logs_warning(self, caplog):
        import logging

        with caplog.at_level(logging.WARNING):
            slice_blocks([2000], 24, 1200)

        assert any("clipping" in r.message for r in caplog.records)

    def test_zero_capacity(self):
        """A page with no usable height is rejected."""
        from utils.errors import DegenerateGeometryError

        with pytest.raises(DegenerateGeometryError):
            slice_blocks([100], 24, 0)

    def test_negative_usable_height(self):
        from utils.slicer import compute_page_slices, BlockRect
        from utils.units import PageGeometry
        from utils.errors import DegenerateGeometryError

        geometry = PageGeometry(page_width=200, page_height=80, margin=50)

        with pytest.raises(DegenerateGeometryError):
            compute_page_slices([BlockRect(0, 10)], SURFACE_WIDTH, 10, geometry)


class TestSlicingProperties:
    """Properties that hold for any block sequence."""

    @pytest.fixture
    def random_layouts(self):
        """Reproducible random block stacks with their capacities."""
        rng = random.Random(1234)
        layouts = []
        for _ in range(60):
            heights = [rng.randint(1, 900) for _ in range(rng.randint(1, 25))]
            gap = rng.choice([0, 8, 24, 67])
            capacity = rng.randint(300, 1500)
            layouts.append((heights, gap, capacity))
        return layouts

    def test_every_block_on_exactly_one_page(self, random_layouts):
        for heights, gap, capacity in random_layouts:
            _, _, slices = slice_blocks(heights, gap, capacity)

            placed = [i for s in slices for i in s.block_indices]
            assert placed == list(range(len(heights)))

    def test_no_block_is_split(self, random_layouts):
        """Slice edges coincide with block edges unless clipped."""
        for heights, gap, capacity in random_layouts:
            rects, _, slices = slice_blocks(heights, gap, capacity)

            for s in slices:
                assert s.y_start == rects[s.first_block].top_px
                if s.clipped:
                    assert s.first_block == s.last_block
                    assert rects[s.first_block].height_px > capacity
                else:
                    assert s.y_end == rects[s.last_block].bottom_px

    def test_slices_fit_on_a_page(self, random_layouts):
        for heights, gap, capacity in random_layouts:
            _, _, slices = slice_blocks(heights, gap, capacity)

            for s in slices:
                assert 0 < s.height_px <= capacity
                assert s.height_units <= s.usable_height

    def test_slices_are_ordered_and_disjoint(self, random_layouts):
        for heights, gap, capacity in random_layouts:
            _, total, slices = slice_blocks(heights, gap, capacity)

            for a, b in zip(slices, slices[1:]):
                assert a.y_end <= b.y_start
            assert slices[0].y_start == 0
            assert slices[-1].y_end <= total

    def test_pages_are_filled_greedily(self, random_layouts):
        """The next block never fits on the page before it."""
        for heights, gap, capacity in random_layouts:
            rects, _, slices = slice_blocks(heights, gap, capacity)

            for s in slices[:-1]:
                next_rect = rects[s.last_block + 1]
                assert next_rect.bottom_px - s.y_start > capacity

    def test_height_is_accounted_for(self, random_layouts):
        """Slices plus uncovered ranges add up to the surface height."""
        from utils.slicer import uncovered_ranges

        for heights, gap, capacity in random_layouts:
            _, total, slices = slice_blocks(heights, gap, capacity)

            gaps = uncovered_ranges(slices, total)
            covered = sum(s.height_px for s in slices)
            uncovered = sum(end - start for start, end in gaps)
            assert covered + uncovered == total

    def test_deterministic(self, random_layouts):
        for heights, gap, capacity in random_layouts[:10]:
            _, _, first = slice_blocks(heights, gap, capacity)
            _, _, second = slice_blocks(heights, gap, capacity)

            assert first == second


class TestUncoveredRanges:
    """Test uncovered_ranges function."""

    def test_gap_at_page_break(self):
        from utils.slicer import uncovered_ranges

        _, total, slices = slice_blocks([500, 500, 500], 24, 1100)

        assert uncovered_ranges(slices, total) == [(1024, 1048)]

    def test_clipped_tail(self):
        from utils.slicer import uncovered_ranges

        _, total, slices = slice_blocks([2000], 24, 1200)

        assert uncovered_ranges(slices, total) == [(1200, 2000)]

    def test_single_page_has_none(self):
        from utils.slicer import uncovered_ranges

        _, total, slices = slice_blocks([100, 100], 10, 1000)

        assert len(slices) == 1
        assert uncovered_ranges(slices, total) == []


class TestPageSlice:
    """Test PageSlice class."""

    def test_physical_height(self):
        from utils.slicer import PageSlice

        page_slice = PageSlice(
            y_start=100, y_end=500, px_to_unit=0.5, margin=20,
            usable_width=300, usable_height=700, first_block=1, last_block=3
        )

        assert page_slice.height_px == 400
        assert page_slice.height_units == pytest.approx(200.0)
        assert list(page_slice.block_indices) == [1, 2, 3]
        assert page_slice.to_dict()["blocks"] == [1, 3]

    def test_page_capacity(self):
        from utils.slicer import page_capacity
        from utils.units import PageGeometry

        geometry = PageGeometry(page_width=600, page_height=800, margin=50)
        px_to_unit, capacity = page_capacity(1000, geometry)

        assert px_to_unit == pytest.approx(0.5)
        assert capacity == 1400
