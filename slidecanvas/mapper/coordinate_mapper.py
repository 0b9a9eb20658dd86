"""
Coordinate Mapper - Maps logical canvas pixels to deck EMUs
"""

import logging
from typing import Dict, Any, Tuple

from ..model.coordinates import Coordinates, CANVAS_WIDTH, CANVAS_HEIGHT

logger = logging.getLogger(__name__)

EMU_PER_INCH = 914400
EMU_PER_POINT = 12700

# 13.333" x 7.5" widescreen deck
DEFAULT_SLIDE_WIDTH_INCHES = 13.333333


class CoordinateMapper:
    """
    Converts logical pixels to EMUs with one scale factor per export.

    Only the physical slide width is configurable. The height is derived from
    the canvas aspect ratio, so the horizontal and vertical factors are the
    same number and every object type converts through it.
    """

    def __init__(self, config: Dict[str, Any] = None):
        """
        Initialize Coordinate Mapper.

        Args:
            config: Full configuration or its 'deck' section
        """
        config = config or {}
        deck_config = config.get('deck', config)
        width_inches = deck_config.get('slide_width', DEFAULT_SLIDE_WIDTH_INCHES)

        self.slide_width_emu = int(round(width_inches * EMU_PER_INCH))
        self.scale = self.slide_width_emu / CANVAS_WIDTH
        self.slide_height_emu = int(round(CANVAS_HEIGHT * self.scale))
        logger.info(f"CoordinateMapper: slide {self.slide_width_emu}x{self.slide_height_emu} EMU, "
                    f"{self.scale:.2f} EMU/px")

    @property
    def slide_size(self) -> Tuple[int, int]:
        return self.slide_width_emu, self.slide_height_emu

    def to_emu(self, px: float) -> int:
        return int(round(px * self.scale))

    def from_emu(self, emu: float) -> float:
        return emu / self.scale

    def box_to_emu(self, coords: Coordinates) -> Tuple[int, int, int, int]:
        """
        Convert a box to (left, top, width, height) EMUs.

        Width and height are converted from the rounded edges so adjacent
        boxes stay adjacent after rounding.
        """
        left = self.to_emu(coords.x)
        top = self.to_emu(coords.y)
        width = self.to_emu(coords.x + coords.width) - left
        height = self.to_emu(coords.y + coords.height) - top
        return left, top, max(width, 1), max(height, 1)

    def px_to_pt(self, px: float) -> float:
        """Logical pixels to points through the same scale as geometry (font sizes, line widths)."""
        return px * self.scale / EMU_PER_POINT
