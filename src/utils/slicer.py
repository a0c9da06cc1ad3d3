"""
Page slicer.

Partitions the rendered surface into page-sized vertical ranges so that
page breaks only fall between blocks. Pure functions over block
rectangles and page geometry; no rendering or I/O.

Packing is greedy and single-pass: each page takes as many whole
consecutive blocks as fit in its pixel capacity, and the next page starts
at the top of the first block that did not fit. The result is
deterministic for identical inputs.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .errors import DegenerateGeometryError
from .units import PageGeometry, px_to_units

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class BlockRect:
    """Vertical extent of one block on the surface, in raster pixels."""
    top_px: int
    height_px: int

    @property
    def bottom_px(self) -> int:
        return self.top_px + self.height_px


@dataclass(frozen=True)
class PageSlice:
    """A vertical pixel range of the surface destined for one page."""
    y_start: int
    y_end: int
    px_to_unit: float
    margin: float
    usable_width: float
    usable_height: float
    first_block: int            # index of the first block on this page
    last_block: int             # index of the last block (inclusive)
    clipped: bool = False       # oversized block cut at page capacity

    @property
    def height_px(self) -> int:
        return self.y_end - self.y_start

    @property
    def height_units(self) -> float:
        return px_to_units(self.height_px, self.px_to_unit)

    @property
    def block_indices(self) -> range:
        return range(self.first_block, self.last_block + 1)

    def to_dict(self):
        return {
            "y_start": self.y_start,
            "y_end": self.y_end,
            "height_px": self.height_px,
            "height_units": round(self.height_units, 3),
            "px_to_unit": self.px_to_unit,
            "margin": self.margin,
            "usable_width": self.usable_width,
            "usable_height": self.usable_height,
            "blocks": [self.first_block, self.last_block],
            "clipped": self.clipped,
        }


# ============================================================================
# Slicing
# ============================================================================

def page_capacity(
    surface_width_px: int,
    geometry: PageGeometry
) -> Tuple[float, int]:
    """
    Scale factor and per-page pixel capacity for a surface.

    Returns:
        (px_to_unit, capacity_px)

    Raises:
        DegenerateGeometryError: If no pixel fits on a page
    """
    px_to_unit = geometry.px_to_unit(surface_width_px)
    capacity_px = geometry.capacity_px(px_to_unit)
    if capacity_px <= 0:
        raise DegenerateGeometryError(
            f"Page capacity is {capacity_px}px: usable height "
            f"{geometry.usable_height:.2f}{geometry.unit} with margin "
            f"{geometry.margin}{geometry.unit}"
        )
    return px_to_unit, capacity_px


def compute_page_slices(
    rects: Sequence[BlockRect],
    surface_width_px: int,
    surface_height_px: int,
    geometry: PageGeometry
) -> List[PageSlice]:
    """
    Decide where page breaks go so that no block is split.

    Args:
        rects: Block rectangles in surface order
        surface_width_px: Width of the full surface
        surface_height_px: Height of the full surface
        geometry: Usable area of the target page

    Returns:
        One PageSlice per output page, in order

    Raises:
        DegenerateGeometryError: If the page capacity is not positive
    """
    px_to_unit, capacity_px = page_capacity(surface_width_px, geometry)
    logger.debug(
        f"Slicing {len(rects)} blocks: surface {surface_width_px}x{surface_height_px}px, "
        f"px_to_unit={px_to_unit:.5f}, capacity={capacity_px}px"
    )

    def make_slice(y_start, y_end, first, last, clipped=False):
        return PageSlice(
            y_start=y_start,
            y_end=y_end,
            px_to_unit=px_to_unit,
            margin=geometry.margin,
            usable_width=geometry.usable_width,
            usable_height=geometry.usable_height,
            first_block=first,
            last_block=last,
            clipped=clipped,
        )

    slices: List[PageSlice] = []
    index = 0

    while index < len(rects):
        first = index
        # Page starts at the top of the first unplaced block
        page_start = rects[first].top_px
        page_end = page_start

        while index < len(rects) and rects[index].bottom_px - page_start <= capacity_px:
            page_end = rects[index].bottom_px
            index += 1

        if index > first:
            slices.append(make_slice(page_start, page_end, first, index - 1))
            continue

        # A single block taller than a page: place it alone, cut at capacity
        rect = rects[first]
        logger.warning(
            f"Block {first} is {rect.height_px}px tall but a page holds {capacity_px}px; "
            f"clipping {rect.height_px - capacity_px}px of content"
        )
        slices.append(make_slice(rect.top_px, rect.top_px + capacity_px, first, first, clipped=True))
        index += 1

    logger.info(f"Computed {len(slices)} page slice(s) for {len(rects)} block(s)")
    return slices


def uncovered_ranges(
    slices: Sequence[PageSlice],
    surface_height_px: int
) -> List[Tuple[int, int]]:
    """
    Pixel ranges of the surface that belong to no slice.

    These are the inter-block gaps at page breaks and the clipped tails of
    oversized blocks.
    """
    gaps: List[Tuple[int, int]] = []
    cursor = 0
    for s in slices:
        if s.y_start > cursor:
            gaps.append((cursor, s.y_start))
        cursor = max(cursor, s.y_end)
    if cursor < surface_height_px:
        gaps.append((cursor, surface_height_px))
    return gaps
