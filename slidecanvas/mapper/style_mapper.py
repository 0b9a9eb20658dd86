"""
Style Mapper - Maps canvas styles (colours, roles, gradients) to PowerPoint styles
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Any, List, Optional, Tuple

from pptx.dml.color import RGBColor
from pptx.util import Pt

from .font_mapper import FontMapper
from ..model.slide_model import TextObject
from ..utils.xml_utils import set_solid_fill_alpha, replace_gradient_stops

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]

# Professional palette
DEFAULT_PALETTE = {
    'primary': '#1976D2',
    'primaryLight': '#42A5F5',
    'primaryDark': '#0D47A1',
    'secondary': '#424242',
    'accent': '#FF6B35',
    'background': '#FFFFFF',
    'surface': '#F5F5F5',
    'text': '#212121',
    'textLight': '#757575',
    'heading': '#0D47A1',
}

# Sizes in logical pixels
DEFAULT_TYPOGRAPHY = {
    'title': {'font_size': 96, 'font_weight': 700},
    'subtitle': {'font_size': 48, 'font_weight': 400},
    'sectionHeader': {'font_size': 72, 'font_weight': 600},
    'heading1': {'font_size': 64, 'font_weight': 600},
    'heading2': {'font_size': 48, 'font_weight': 600},
    'heading3': {'font_size': 36, 'font_weight': 600},
    'body': {'font_size': 28, 'font_weight': 400},
    'bodyLarge': {'font_size': 32, 'font_weight': 400},
    'bodySmall': {'font_size': 24, 'font_weight': 400},
    'bullet': {'font_size': 32, 'font_weight': 400},
    'quote': {'font_size': 48, 'font_weight': 300, 'italic': True},
    'citation': {'font_size': 28, 'font_weight': 400},
    'caption': {'font_size': 20, 'font_weight': 400},
    'label': {'font_size': 18, 'font_weight': 500},
    'footnote': {'font_size': 16, 'font_weight': 400},
    'code': {'font_size': 24, 'font_weight': 400, 'font_family': 'monospace'},
}

# Content role -> typographic role when the object names none
CONTENT_ROLE_TYPOGRAPHY = {
    'title': 'title',
    'subtitle': 'subtitle',
    'heading': 'heading2',
    'section': 'sectionHeader',
    'body': 'body',
    'bullet': 'bullet',
    'bullets': 'bullet',
    'quote': 'quote',
    'citation': 'citation',
    'caption': 'caption',
    'label': 'label',
    'code': 'code',
    'footnote': 'footnote',
    'pageNumber': 'footnote',
    'date': 'footnote',
    'footer': 'footnote',
    'header': 'label',
    'watermark': 'heading1',
}

# Content role -> colour role when the object names none
CONTENT_ROLE_COLOR = {
    'title': 'heading',
    'heading': 'heading',
    'section': 'heading',
    'subtitle': 'textLight',
    'quote': 'primary',
    'citation': 'textLight',
    'caption': 'textLight',
    'label': 'textLight',
    'footnote': 'textLight',
    'pageNumber': 'textLight',
    'date': 'textLight',
    'footer': 'textLight',
    'header': 'textLight',
    'watermark': 'textLight',
}

NAMED_COLORS = {
    'white': '#FFFFFF',
    'black': '#000000',
    'red': '#FF0000',
    'green': '#008000',
    'blue': '#0000FF',
    'gray': '#808080',
    'grey': '#808080',
    'orange': '#FFA500',
    'yellow': '#FFFF00',
    'purple': '#800080',
}

GRADIENT_DIRECTIONS = {
    'to top': 0,
    'to top right': 45,
    'to right': 90,
    'to bottom right': 135,
    'to bottom': 180,
    'to bottom left': 225,
    'to left': 270,
    'to top left': 315,
}

_RGBA_PATTERN = re.compile(r'rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*(?:,\s*([\d.]+)\s*)?\)')
_GRADIENT_PATTERN = re.compile(r'^\s*linear-gradient\((.*)\)\s*$', re.DOTALL)
_ANGLE_PATTERN = re.compile(r'^(-?[\d.]+)deg$')
_STOP_POSITION_PATTERN = re.compile(r'^(.*?)\s+(-?[\d.]+)%$')


@dataclass(frozen=True)
class TextStyleSpec:
    """Fully resolved style for a text object. `font_size` is in logical pixels."""

    font_name: str
    font_size: float
    bold: bool
    italic: bool
    color: Optional[RGB]
    align: Optional[str]


@dataclass(frozen=True)
class GradientSpec:
    """Linear gradient. `angle` uses CSS degrees (0 = towards the top, clockwise)."""

    angle: float
    stops: List[Tuple[float, RGB]]


def _split_top_level(value: str) -> List[str]:
    """Split on commas that are not nested inside parentheses."""
    parts, depth, current = [], 0, []
    for char in value:
        if char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
        if char == ',' and depth == 0:
            parts.append(''.join(current).strip())
            current = []
        else:
            current.append(char)
    parts.append(''.join(current).strip())
    return [p for p in parts if p]


class StyleMapper:
    """
    Maps canvas visual styles to PowerPoint attributes.
    """

    def __init__(self, config: Dict[str, Any] = None):
        """
        Initialize Style Mapper.

        Args:
            config: Full configuration or its 'mapper' section
        """
        config = config or {}
        mapper_config = config.get('mapper', config)
        self.config = mapper_config
        self.font_mapper = FontMapper(mapper_config)

        self.palette = {**DEFAULT_PALETTE, **(mapper_config.get('palette') or {})}
        self.typography = {role: dict(style) for role, style in DEFAULT_TYPOGRAPHY.items()}
        for role, style in (mapper_config.get('typography') or {}).items():
            self.typography.setdefault(role, {}).update(style)
        self.default_font_size = mapper_config.get('default_font_size', 28)
        self.bold_weight = mapper_config.get('bold_weight', 600)

        logger.info(f"StyleMapper initialized with {len(self.palette)} palette colours, "
                    f"{len(self.typography)} typography roles")

    # Colours

    def hex_to_rgb(self, hex_color: str) -> Optional[RGB]:
        """
        Convert hex color to RGB tuple.

        Args:
            hex_color: Hex color string (e.g., '#FF0000', '#F00', '#FF000080'), or None

        Returns:
            RGB tuple (r, g, b), or None if conversion fails
        """
        if not hex_color or not isinstance(hex_color, str):
            return None

        hex_color = hex_color.strip().lstrip('#')

        try:
            if len(hex_color) in (6, 8):
                return (int(hex_color[0:2], 16), int(hex_color[2:4], 16), int(hex_color[4:6], 16))
            elif len(hex_color) in (3, 4):
                return (int(hex_color[0] * 2, 16), int(hex_color[1] * 2, 16), int(hex_color[2] * 2, 16))
        except ValueError:
            logger.warning(f"Invalid hex color: {hex_color}")

        return None

    def rgba_to_rgb_opacity(self, rgba_str: str) -> Tuple[Optional[RGB], float]:
        """
        Parse RGBA string and extract RGB and opacity.

        Args:
            rgba_str: RGBA string like 'rgba(10, 66, 117, 0.08)'

        Returns:
            Tuple of (rgb_tuple or None, opacity_float)
        """
        if not rgba_str or not isinstance(rgba_str, str):
            return (None, 1.0)

        match = _RGBA_PATTERN.match(rgba_str.strip())
        if match:
            r, g, b, a = match.groups()
            rgb = (min(int(r), 255), min(int(g), 255), min(int(b), 255))
            opacity = float(a) if a else 1.0
            return (rgb, opacity)

        return (None, 1.0)

    def parse_color(self, value: Optional[str]) -> Optional[Tuple[RGB, float]]:
        """
        Parse any supported colour notation.

        Accepts palette role names, hex (#RGB, #RRGGBB and the alpha forms),
        rgb()/rgba() and a few CSS colour names.

        Args:
            value: Colour string

        Returns:
            (rgb, opacity), or None for 'transparent', 'none' and unparsable values
        """
        if not value or not isinstance(value, str):
            return None

        text = value.strip()
        if text.lower() in ('transparent', 'none'):
            return None

        if text in self.palette:
            text = self.palette[text]
        elif text.lower() in NAMED_COLORS:
            text = NAMED_COLORS[text.lower()]

        if text.startswith('#'):
            rgb = self.hex_to_rgb(text)
            if rgb is None:
                return None
            digits = text.lstrip('#')
            opacity = 1.0
            if len(digits) == 8:
                opacity = int(digits[6:8], 16) / 255
            elif len(digits) == 4:
                opacity = int(digits[3] * 2, 16) / 255
            return rgb, opacity

        rgb, opacity = self.rgba_to_rgb_opacity(text)
        if rgb is not None:
            return rgb, opacity

        logger.warning(f"Unrecognised colour: {value!r}")
        return None

    def color_for_role(self, role: Optional[str]) -> Optional[str]:
        if not role:
            return None
        return self.palette.get(role)

    @staticmethod
    def rgb_to_hex(rgb: RGB) -> str:
        return '%02X%02X%02X' % tuple(rgb)

    @staticmethod
    def blend_toward_white(rgb: RGB, opacity: Optional[float]) -> RGB:
        """Flatten a translucent colour over white."""
        if opacity is None or opacity >= 1:
            return tuple(rgb)
        opacity = max(0.0, opacity)
        return tuple(int(round(c * opacity + 255 * (1 - opacity))) for c in rgb)

    # Gradients

    def parse_gradient(self, value: str) -> Optional[GradientSpec]:
        """
        Parse a CSS linear-gradient().

        Stops without a position are spread evenly between their neighbours,
        as CSS does.

        Args:
            value: e.g. 'linear-gradient(135deg, #1976D2 0%, #0D47A1 100%)'

        Returns:
            GradientSpec, or None if the value is not a usable linear gradient
        """
        match = _GRADIENT_PATTERN.match(value or '')
        if not match:
            return None

        parts = _split_top_level(match.group(1))
        angle = 180.0
        if parts:
            head = parts[0].strip().lower()
            angle_match = _ANGLE_PATTERN.match(head)
            if angle_match:
                angle = float(angle_match.group(1))
                parts = parts[1:]
            elif head in GRADIENT_DIRECTIONS:
                angle = float(GRADIENT_DIRECTIONS[head])
                parts = parts[1:]

        colors = []
        positions = []
        for part in parts:
            position = None
            stop_match = _STOP_POSITION_PATTERN.match(part)
            color_text = part
            if stop_match:
                color_text, position = stop_match.group(1), float(stop_match.group(2)) / 100
            parsed = self.parse_color(color_text)
            if parsed is None:
                continue
            colors.append(parsed[0])
            positions.append(position)

        if len(colors) < 2:
            logger.warning(f"Gradient needs at least two colour stops: {value!r}")
            return None

        if positions[0] is None:
            positions[0] = 0.0
        if positions[-1] is None:
            positions[-1] = 1.0
        i = 0
        while i < len(positions):
            if positions[i] is None:
                start = i - 1
                end = i
                while positions[end] is None:
                    end += 1
                step = (positions[end] - positions[start]) / (end - start)
                for k in range(start + 1, end):
                    positions[k] = positions[start] + step * (k - start)
                i = end
            i += 1

        return GradientSpec(angle=angle, stops=list(zip(positions, colors)))

    @staticmethod
    def css_angle_to_pptx(css_angle: float) -> float:
        """
        Convert a CSS gradient angle to python-pptx's gradient_angle.

        CSS measures clockwise from 'to top'; DrawingML measures clockwise
        from 'to right' and python-pptx exposes that counter-clockwise.
        """
        clockwise = (css_angle - 90) % 360
        return (360 - clockwise) % 360

    # Typography

    def typography_for(self, role: Optional[str]) -> Dict[str, Any]:
        return self.typography.get(role or '', {})

    def resolve_text_style(self, obj: TextObject, typographic_role: Optional[str] = None,
                           color_role: Optional[str] = None) -> TextStyleSpec:
        """
        Resolve a text object's effective style.

        Precedence: customStyles, then the object's typographic/colour roles,
        then the hints passed in (zone defaults), then content-role defaults.

        Args:
            obj: Text object
            typographic_role: Fallback typographic role
            color_role: Fallback colour role

        Returns:
            TextStyleSpec with the font size in logical pixels
        """
        custom = obj.custom_styles
        type_role = (obj.typographic_role or typographic_role or
                     CONTENT_ROLE_TYPOGRAPHY.get(obj.role, 'body'))
        typography = self.typography_for(type_role)

        font_size = (custom and custom.font_size) or typography.get('font_size', self.default_font_size)
        font_weight = (custom and custom.font_weight) or typography.get('font_weight', 400)

        color_value = custom.color if custom and custom.color else None
        if color_value is None:
            role = obj.color_role or color_role or CONTENT_ROLE_COLOR.get(obj.role, 'text')
            color_value = self.color_for_role(role)
        parsed = self.parse_color(color_value)

        return TextStyleSpec(
            font_name=self.font_mapper.map_font(typography.get('font_family')),
            font_size=float(font_size),
            bold=int(font_weight) >= self.bold_weight,
            italic=bool(typography.get('italic', False)),
            color=self.blend_toward_white(*parsed) if parsed else None,
            align=custom.text_align if custom else None,
        )

    # python-pptx application

    def apply_fill(self, fill, color: Optional[str], opacity: Optional[float] = None,
                   alpha_parent=None) -> bool:
        """
        Apply a solid colour to a python-pptx FillFormat.

        Args:
            fill: FillFormat
            color: Colour string in any parse_color notation
            opacity: Extra opacity multiplied with the colour's own alpha
            alpha_parent: XML element holding the fill, needed to write alpha

        Returns:
            True if a fill was set, False if the fill was made transparent
        """
        parsed = self.parse_color(color)
        if parsed is None:
            fill.background()
            return False

        rgb, color_opacity = parsed
        fill.solid()
        fill.fore_color.rgb = RGBColor(*rgb)

        effective = color_opacity * (opacity if opacity is not None else 1.0)
        if effective < 1.0:
            if alpha_parent is not None:
                self._set_shape_transparency(alpha_parent, effective)
            else:
                fill.fore_color.rgb = RGBColor(*self.blend_toward_white(rgb, effective))
        return True

    def apply_gradient(self, fill, gradient: GradientSpec):
        fill.gradient()
        fill.gradient_angle = self.css_angle_to_pptx(gradient.angle)
        replace_gradient_stops(
            fill.gradient_stops._gsLst,
            [(position, self.rgb_to_hex(rgb)) for position, rgb in gradient.stops],
        )

    def apply_shape_style(self, shape, fill: Optional[str], stroke: Optional[str],
                          stroke_width_pt: Optional[float], opacity: Optional[float] = None):
        """
        Apply fill, outline and opacity to a PowerPoint autoshape or freeform.

        Args:
            shape: PowerPoint shape object
            fill: Fill colour, None for no fill
            stroke: Outline colour, None for no outline
            stroke_width_pt: Outline width in points
            opacity: Shape opacity from the object transform
        """
        self.apply_fill(shape.fill, fill, opacity, alpha_parent=shape._element.spPr)

        parsed_stroke = self.parse_color(stroke)
        if parsed_stroke is not None and (stroke_width_pt is None or stroke_width_pt > 0):
            shape.line.color.rgb = RGBColor(*parsed_stroke[0])
            shape.line.width = Pt(stroke_width_pt if stroke_width_pt is not None else 1)
        else:
            shape.line.fill.background()

    def _set_shape_transparency(self, element, opacity: float):
        """
        Set fill transparency via XML manipulation.

        Args:
            element: spPr / tcPr element holding the solid fill
            opacity: Opacity value (0.0-1.0, where 1.0 is fully opaque)
        """
        if not set_solid_fill_alpha(element, opacity):
            logger.debug("No solid fill found for transparency")
