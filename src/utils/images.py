"""
Image utilities for the pagination pipeline.

Provides:
- Cropping page slices out of the rendered surface
- PNG encoding of slice images
- Debug visualization of block rectangles and page breaks
"""

import logging
from typing import List, Tuple, Optional, Sequence
import numpy as np

from .errors import EncodingError

logger = logging.getLogger(__name__)


# ============================================================================
# Slicing and Encoding
# ============================================================================

def crop_rows(image: np.ndarray, y_start: int, y_end: int) -> np.ndarray:
    """
    Extract a full-width horizontal band of an image.

    Args:
        image: Source image (H x W or H x W x C)
        y_start: First row (inclusive)
        y_end: Last row (exclusive)

    Returns:
        View of rows ``y_start:y_end``
    """
    height = image.shape[0]
    if not 0 <= y_start < y_end <= height:
        raise ValueError(f"Row range [{y_start}, {y_end}) outside image of height {height}")
    return image[y_start:y_end]


def rgb_to_bgr(image: np.ndarray) -> np.ndarray:
    """Convert RGB to BGR for OpenCV."""
    import cv2

    if len(image.shape) == 2:
        return image
    if image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2BGRA)
    raise ValueError(f"Unexpected image shape: {image.shape}")


def encode_png(image: np.ndarray, compression: int = 6) -> bytes:
    """
    Encode an RGB image as PNG.

    Args:
        image: RGB image
        compression: zlib level, 0-9

    Returns:
        PNG file contents

    Raises:
        EncodingError: If the image is empty or OpenCV refuses it
    """
    import cv2

    if image is None or image.size == 0:
        raise EncodingError("Cannot encode an empty image")

    try:
        ok, buffer = cv2.imencode(
            ".png",
            rgb_to_bgr(np.ascontiguousarray(image)),
            [cv2.IMWRITE_PNG_COMPRESSION, compression]
        )
    except cv2.error as e:
        raise EncodingError(f"PNG encoding failed: {e}") from e

    if not ok:
        raise EncodingError(f"PNG encoding failed for image of shape {image.shape}")
    return buffer.tobytes()


# ============================================================================
# Debug Visualization
# ============================================================================

def draw_debug_image(
    image: np.ndarray,
    rects: Sequence[Tuple[int, int]],
    breaks: Sequence[Tuple[int, int]],
    labels: Optional[List[str]] = None,
    line_width: int = 2
) -> np.ndarray:
    """
    Draw block rectangles and page slices on the surface for debugging.

    Args:
        image: RGB surface
        rects: (top, height) of each block
        breaks: (y_start, y_end) of each page slice
        labels: Optional labels for each slice
        line_width: Line thickness

    Returns:
        BGR image with blocks in green and slice bounds in red
    """
    import cv2

    debug_img = rgb_to_bgr(image).copy()
    width = debug_img.shape[1]

    for top, height in rects:
        cv2.rectangle(debug_img, (0, top), (width - 1, top + height - 1), (0, 180, 0), line_width)

    for i, (y_start, y_end) in enumerate(breaks):
        cv2.line(debug_img, (0, y_start), (width - 1, y_start), (0, 0, 255), line_width)
        cv2.line(debug_img, (0, y_end - 1), (width - 1, y_end - 1), (0, 0, 255), line_width)

        if labels and i < len(labels):
            cv2.putText(
                debug_img,
                labels[i],
                (10, y_start + 30),
                cv2.FONT_HERSHEY_SIMPLEX,
                1.0,
                (0, 0, 255),
                2
            )

    return debug_img


def save_image(image: np.ndarray, output_path) -> None:
    """Write a BGR image to disk."""
    import cv2
    from pathlib import Path

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(output_path), image):
        raise EncodingError(f"Could not write image: {output_path}")
    logger.debug(f"Saved image: {output_path}")
