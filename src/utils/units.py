"""
Page geometry and pixel-to-page unit conversion.

The surface is measured in raster pixels, pages in physical units
(pt, mm, cm or in). A single scale factor, ``px_to_unit``, maps one to
the other; it is derived once per run from the surface width and the
usable page width, and both the slicer and the assembler use that same
value.
"""

import math
import logging
from dataclasses import dataclass
from typing import Dict, Tuple

from .errors import DegenerateGeometryError

logger = logging.getLogger(__name__)


# Points per unit
UNIT_SCALE: Dict[str, float] = {
    "pt": 1.0,
    "mm": 72.0 / 25.4,
    "cm": 72.0 / 2.54,
    "in": 72.0,
}

# Portrait (width, height) in points
PAGE_FORMATS_PT: Dict[str, Tuple[float, float]] = {
    "a3": (841.89, 1190.55),
    "a4": (595.28, 841.89),
    "a5": (420.94, 595.28),
    "letter": (612.0, 792.0),
    "legal": (612.0, 1008.0),
}

_ORIENTATIONS = {
    "p": "p", "portrait": "p",
    "l": "l", "landscape": "l",
}


def normalize_orientation(orientation: str) -> str:
    """Return 'p' or 'l' for any accepted spelling."""
    key = (orientation or "p").strip().lower()
    if key not in _ORIENTATIONS:
        raise ValueError(f"Unknown page orientation: {orientation!r}")
    return _ORIENTATIONS[key]


def page_size(page_format: str, orientation: str = "p", unit: str = "pt") -> Tuple[float, float]:
    """
    Size of a named page format.

    Args:
        page_format: One of PAGE_FORMATS_PT
        orientation: 'p'/'portrait' or 'l'/'landscape'
        unit: One of UNIT_SCALE

    Returns:
        (width, height) in ``unit``
    """
    fmt = (page_format or "").strip().lower()
    if fmt not in PAGE_FORMATS_PT:
        raise ValueError(f"Unknown page format: {page_format!r}")
    if unit not in UNIT_SCALE:
        raise ValueError(f"Unknown unit: {unit!r}")

    width_pt, height_pt = PAGE_FORMATS_PT[fmt]
    if normalize_orientation(orientation) == "l":
        width_pt, height_pt = height_pt, width_pt

    k = UNIT_SCALE[unit]
    return width_pt / k, height_pt / k


def px_to_units(pixels: float, px_to_unit: float) -> float:
    """physical = pixels * (usable page width / surface width)."""
    return pixels * px_to_unit


@dataclass(frozen=True)
class PageGeometry:
    """Usable area of the target page in physical units."""
    page_width: float
    page_height: float
    margin: float
    unit: str = "pt"

    @property
    def usable_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def usable_height(self) -> float:
        return self.page_height - 2 * self.margin

    @classmethod
    def from_format(
        cls,
        page_format: str = "a4",
        orientation: str = "p",
        unit: str = "pt",
        margin: float = 28.0
    ) -> "PageGeometry":
        width, height = page_size(page_format, orientation, unit)
        return cls(page_width=width, page_height=height, margin=margin, unit=unit)

    def px_to_unit(self, surface_width_px: int) -> float:
        """
        Scale factor from surface pixels to page units.

        Raises:
            DegenerateGeometryError: If the surface or the usable width is empty
        """
        if surface_width_px <= 0:
            raise DegenerateGeometryError(f"Surface width must be positive, got {surface_width_px}")
        if self.usable_width <= 0:
            raise DegenerateGeometryError(
                f"Margins ({self.margin}{self.unit}) leave no usable width "
                f"on a {self.page_width:.2f}{self.unit} wide page"
            )
        return self.usable_width / surface_width_px

    def capacity_px(self, px_to_unit: float) -> int:
        """Number of surface pixels that fit in the usable page height."""
        if px_to_unit <= 0:
            raise DegenerateGeometryError(f"Scale factor must be positive, got {px_to_unit}")
        return math.floor(self.usable_height / px_to_unit)
