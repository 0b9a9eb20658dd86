"""
Page Layout - Slides-per-page presets and slot geometry for paginated export

All page geometry is in PDF points; margins and spacing are configured in
millimetres and converted here.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Dict, Optional, Tuple

from ..errors import ExportInitError

logger = logging.getLogger(__name__)

POINTS_PER_MM = 72.0 / 25.4
SLIDE_ASPECT = 16.0 / 9.0

# (x0, y0, x1, y1) in points
Rect = Tuple[float, float, float, float]


@dataclass(frozen=True)
class PageLayoutPreset:
    id: str
    slides_per_page: int
    orientation: str  # 'landscape' | 'portrait'
    columns: int
    rows: int


PRESETS: Dict[str, PageLayoutPreset] = {
    '1-slide': PageLayoutPreset('1-slide', 1, 'landscape', 1, 1),
    '2-slides': PageLayoutPreset('2-slides', 2, 'portrait', 1, 2),
    '3-slides': PageLayoutPreset('3-slides', 3, 'portrait', 1, 3),
    '4-slides': PageLayoutPreset('4-slides', 4, 'landscape', 2, 2),
}


@dataclass(frozen=True)
class PageSlot:
    """One slide position on a page and the notes area below it (None if notes are off)."""
    slide_rect: Rect
    notes_rect: Optional[Rect] = None

    @property
    def slide_width(self) -> float:
        return self.slide_rect[2] - self.slide_rect[0]

    @property
    def slide_height(self) -> float:
        return self.slide_rect[3] - self.slide_rect[1]

    @property
    def notes_height(self) -> float:
        if self.notes_rect is None:
            return 0.0
        return self.notes_rect[3] - self.notes_rect[1]


def get_preset(preset_id: str) -> PageLayoutPreset:
    """
    Look up a slides-per-page preset.

    Raises:
        ExportInitError: For an unknown preset id
    """
    try:
        return PRESETS[preset_id]
    except KeyError:
        raise ExportInitError(
            f"Unknown page layout '{preset_id}', expected one of {', '.join(PRESETS)}"
        ) from None


def paginate(slide_count: int, slides_per_page: int) -> List[int]:
    """Number of slides on each page, e.g. 5 slides at 2 per page -> [2, 2, 1]."""
    if slides_per_page < 1:
        raise ValueError("slides_per_page must be at least 1")
    pages = []
    remaining = slide_count
    while remaining > 0:
        pages.append(min(slides_per_page, remaining))
        remaining -= slides_per_page
    return pages


def page_count(slide_count: int, slides_per_page: int) -> int:
    return math.ceil(slide_count / slides_per_page) if slide_count > 0 else 0


def compute_slots(page_width: float, page_height: float, preset: PageLayoutPreset,
                  margin_mm: float = 10.0, spacing_mm: float = 5.0,
                  include_notes: bool = False, notes_fraction: float = 0.7) -> List[PageSlot]:
    """
    Compute the slide rectangle of every slot on a page.

    The usable area is the page minus margins and inter-slot spacing, split
    into an equal grid. Each slide box is the largest 16:9 box fitting its
    cell, centred horizontally and top-aligned. With notes, the box height is
    first limited to notes_fraction of the cell height and the rest of the
    cell below the slide is the notes area.

    Args:
        page_width: Page width in points
        page_height: Page height in points
        preset: Grid preset
        margin_mm: Page margin
        spacing_mm: Gap between cells
        include_notes: Reserve room for speaker notes
        notes_fraction: Share of the cell height given to the slide when notes are on

    Returns:
        Slots in row-major order

    Raises:
        ExportInitError: If the page leaves no room for a slide
    """
    margin = margin_mm * POINTS_PER_MM
    spacing = spacing_mm * POINTS_PER_MM
    columns, rows = preset.columns, preset.rows

    cell_width = (page_width - 2 * margin - spacing * (columns - 1)) / columns
    cell_height = (page_height - 2 * margin - spacing * (rows - 1)) / rows
    if cell_width <= 0 or cell_height <= 0:
        raise ExportInitError(f"Page {page_width:.0f}x{page_height:.0f}pt too small for layout '{preset.id}'")

    max_height = cell_height * notes_fraction if include_notes else cell_height
    slide_width = min(cell_width, max_height * SLIDE_ASPECT)
    slide_height = slide_width / SLIDE_ASPECT

    slots = []
    for row in range(rows):
        for col in range(columns):
            cell_x = margin + col * (cell_width + spacing)
            cell_y = margin + row * (cell_height + spacing)
            x0 = cell_x + (cell_width - slide_width) / 2
            slide_rect = (x0, cell_y, x0 + slide_width, cell_y + slide_height)
            notes_rect = None
            if include_notes:
                notes_rect = (x0, cell_y + slide_height, x0 + slide_width, cell_y + cell_height)
            slots.append(PageSlot(slide_rect, notes_rect))

    logger.debug(f"Layout '{preset.id}': cell {cell_width:.1f}x{cell_height:.1f}pt, "
                 f"slide {slide_width:.1f}x{slide_height:.1f}pt")
    return slots
