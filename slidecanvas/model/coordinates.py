"""
Coordinates - Geometry primitives over the fixed 1920x1080 logical canvas

All slides use a 1920x1080 (16:9) coordinate system with the origin at the
top-left corner. Objects may sit partially or fully off-canvas while editing,
so nothing here rejects such positions; only the explicit containment checks
report them.
"""

from dataclasses import dataclass
from typing import Dict, Any, Iterable, Tuple


CANVAS_WIDTH = 1920
CANVAS_HEIGHT = 1080
ASPECT_RATIO = CANVAS_WIDTH / CANVAS_HEIGHT


@dataclass(frozen=True)
class Coordinates:
    """A box in logical canvas pixels."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Coordinates':
        return cls(
            x=float(data.get('x', 0)),
            y=float(data.get('y', 0)),
            width=float(data.get('width', 0)),
            height=float(data.get('height', 0)),
        )

    def to_dict(self) -> Dict[str, float]:
        return {'x': self.x, 'y': self.y, 'width': self.width, 'height': self.height}


@dataclass(frozen=True)
class Point:
    x: float
    y: float


# Common safe zones
SAFE_ZONES = {
    # 10% margin on all sides
    'standard': Coordinates(192, 108, 1536, 864),
    # 5% margin for fuller layouts
    'extended': Coordinates(96, 54, 1728, 972),
    'full': Coordinates(0, 0, CANVAS_WIDTH, CANVAS_HEIGHT),
}

# 12-column grid
GRID_SYSTEM = {
    'columns': 12,
    'column_width': 160,
    'gutter': 30,
    'margin': 120,
}

LAYOUT_PRESETS = {
    'fullscreen': Coordinates(0, 0, 1920, 1080),
    'centered': Coordinates(480, 270, 960, 540),
    'header': Coordinates(120, 80, 1680, 140),
    'footer': Coordinates(120, 960, 1680, 60),
    'left_half': Coordinates(0, 0, 960, 1080),
    'right_half': Coordinates(960, 0, 960, 1080),
    'top_half': Coordinates(0, 0, 1920, 540),
    'bottom_half': Coordinates(0, 540, 1920, 540),
    'main_content': Coordinates(120, 240, 1680, 720),
    'sidebar': Coordinates(1520, 120, 320, 840),
}


def validate_coordinates(coords: Coordinates) -> bool:
    """
    Check the size invariant. Positions are unconstrained.

    Args:
        coords: Box to check

    Returns:
        True if width and height are both positive
    """
    return coords.width > 0 and coords.height > 0


def is_within_bounds(coords: Coordinates) -> bool:
    """Strict full-containment test against the canvas."""
    return (
        coords.x >= 0 and
        coords.y >= 0 and
        coords.x + coords.width <= CANVAS_WIDTH and
        coords.y + coords.height <= CANVAS_HEIGHT
    )


def scale_coordinates(coords: Coordinates, sx: float, sy: float = None) -> Coordinates:
    """
    Scale a box about the canvas origin. No bounds checking.

    Args:
        coords: Box to scale
        sx: Horizontal factor
        sy: Vertical factor, defaults to sx

    Returns:
        Scaled box
    """
    if sy is None:
        sy = sx
    return Coordinates(
        x=coords.x * sx,
        y=coords.y * sy,
        width=coords.width * sx,
        height=coords.height * sy,
    )


def translate_coordinates(coords: Coordinates, dx: float, dy: float) -> Coordinates:
    return Coordinates(coords.x + dx, coords.y + dy, coords.width, coords.height)


def scale_about_center(coords: Coordinates, factor: float) -> Coordinates:
    """Scale a box about its own center, as a CSS scale() transform does."""
    width = coords.width * factor
    height = coords.height * factor
    return Coordinates(
        x=coords.x + (coords.width - width) / 2,
        y=coords.y + (coords.height - height) / 2,
        width=width,
        height=height,
    )


def contains_point(coords: Coordinates, x: float, y: float) -> bool:
    """Point-in-box test, inclusive on all four edges."""
    return coords.x <= x <= coords.right and coords.y <= y <= coords.bottom


def get_center(coords: Coordinates) -> Point:
    return Point(coords.x + coords.width / 2, coords.y + coords.height / 2)


def get_bounding_box(rects: Iterable[Coordinates]) -> Coordinates:
    """
    Minimal rectangle enclosing every input box.

    Args:
        rects: Boxes to enclose

    Returns:
        Enclosing box, or a zero box for empty input
    """
    rects = list(rects)
    if not rects:
        return Coordinates(0, 0, 0, 0)

    min_x = min(r.x for r in rects)
    min_y = min(r.y for r in rects)
    max_x = max(r.right for r in rects)
    max_y = max(r.bottom for r in rects)
    return Coordinates(min_x, min_y, max_x - min_x, max_y - min_y)


def do_overlap(a: Coordinates, b: Coordinates) -> bool:
    """
    Half-open overlap test. Boxes that only share an edge do not overlap.
    """
    return (
        a.x < b.right and
        b.x < a.right and
        a.y < b.bottom and
        b.y < a.bottom
    )


def constrain_to_slide(coords: Coordinates) -> Coordinates:
    """
    Clamp a box onto the canvas.

    Oversized dimensions shrink to exactly the canvas dimension first, then
    the box moves the shortest distance needed to lie fully inside the
    canvas. Applying the function twice gives the same result as once.

    Args:
        coords: Box to clamp

    Returns:
        Box fully inside [0, 1920] x [0, 1080]
    """
    width = min(coords.width, CANVAS_WIDTH)
    height = min(coords.height, CANVAS_HEIGHT)
    x = min(max(coords.x, 0), CANVAS_WIDTH - width)
    y = min(max(coords.y, 0), CANVAS_HEIGHT - height)
    return Coordinates(x, y, width, height)


def contain_box(box: Coordinates, aspect_ratio: float) -> Coordinates:
    """
    Largest box with the given aspect ratio that fits inside `box`, centered
    along the axis that has spare room.

    Args:
        box: Target box
        aspect_ratio: Source width / height

    Returns:
        Placed box
    """
    if box.aspect_ratio > aspect_ratio:
        # Box is wider than the source: height constrains
        width = box.height * aspect_ratio
        return Coordinates(box.x + (box.width - width) / 2, box.y, width, box.height)

    height = box.width / aspect_ratio
    return Coordinates(box.x, box.y + (box.height - height) / 2, box.width, height)


def center_box(box: Coordinates, width: float, height: float) -> Coordinates:
    """Box of the given size centered on `box`."""
    return Coordinates(
        box.x + (box.width - width) / 2,
        box.y + (box.height - height) / 2,
        width,
        height,
    )


def cover_crop(box: Coordinates, aspect_ratio: float) -> Tuple[float, float, float, float]:
    """
    Symmetric source crop so a source of `aspect_ratio` fills `box` without
    distortion.

    Returns:
        (left, top, right, bottom) crop as fractions of the source size
    """
    box_ratio = box.aspect_ratio
    if aspect_ratio > box_ratio:
        visible = box_ratio / aspect_ratio
        side = (1 - visible) / 2
        return (side, 0.0, side, 0.0)

    visible = aspect_ratio / box_ratio
    side = (1 - visible) / 2
    return (0.0, side, 0.0, side)


def percent_to_pixels(percent: float, dimension: str) -> int:
    size = CANVAS_WIDTH if dimension == 'width' else CANVAS_HEIGHT
    return round(percent / 100 * size)


def pixels_to_percent(pixels: float, dimension: str) -> float:
    size = CANVAS_WIDTH if dimension == 'width' else CANVAS_HEIGHT
    return pixels / size * 100


def snap_to_grid(value: float, grid_size: float = GRID_SYSTEM['column_width']) -> float:
    return round(value / grid_size) * grid_size


def get_grid_column(column_index: int, span: int = 1) -> Coordinates:
    """Horizontal extent of a grid column span. Caller sets y and height."""
    x = GRID_SYSTEM['margin'] + column_index * GRID_SYSTEM['column_width']
    width = span * GRID_SYSTEM['column_width'] - GRID_SYSTEM['gutter']
    return Coordinates(x, 0, width, 0)
