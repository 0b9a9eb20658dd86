"""
Slide Model - Canvas object model for slides

Slides hold positioned, typed objects on the 1920x1080 logical canvas. The
object union is closed: every variant is listed in OBJECT_TYPES, and anything
else parses into UnsupportedObject so it still round-trips and can be reported
by the exporters instead of failing the whole document.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Dict, Any, Optional, Union

from .coordinates import Coordinates, validate_coordinates, is_within_bounds, do_overlap
from ..errors import ModelError

logger = logging.getLogger(__name__)


class SlideType(str, Enum):
    TITLE = 'title'
    SECTION = 'section'
    CONTENT = 'content'
    BULLETS = 'bullets'
    IMAGE = 'image'
    IMAGE_WITH_TEXT = 'imageWithText'
    TWO_COLUMN = 'twoColumn'
    THREE_COLUMN = 'threeColumn'
    QUOTE = 'quote'
    COMPARISON = 'comparison'
    TIMELINE = 'timeline'
    CHART = 'chart'
    TABLE = 'table'
    VIDEO = 'video'
    BLANK = 'blank'
    CUSTOM = 'custom'


SHAPE_KINDS = ('rectangle', 'circle', 'triangle', 'arrow', 'line', 'custom')
CHART_TYPES = ('bar', 'line', 'pie', 'scatter', 'area')
IMAGE_FITS = ('cover', 'contain', 'fill', 'none', 'scale-down')
BACKGROUND_TYPES = ('color', 'gradient', 'image', 'video')


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ModelError(f"Invalid timestamp: {value!r}")


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Transform:
    """Visual transform applied around the object's own box."""

    rotation: Optional[float] = None
    scale: Optional[float] = None
    skew_x: Optional[float] = None
    skew_y: Optional[float] = None
    opacity: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['Transform']:
        if not data:
            return None
        return cls(
            rotation=data.get('rotation'),
            scale=data.get('scale'),
            skew_x=data.get('skewX'),
            skew_y=data.get('skewY'),
            opacity=data.get('opacity'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'rotation': self.rotation,
            'scale': self.scale,
            'skewX': self.skew_x,
            'skewY': self.skew_y,
            'opacity': self.opacity,
        })


@dataclass
class SlideObject:
    """Fields shared by every object variant."""

    id: str
    coordinates: Coordinates
    z_index: int = 0
    transform: Optional[Transform] = None
    locked: Optional[bool] = None
    visible: Optional[bool] = None
    name: Optional[str] = None
    group_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    type = 'object'

    @property
    def is_visible(self) -> bool:
        return self.visible is not False

    def _common_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update(_drop_none({
            'id': self.id,
            'type': self.type,
            'coordinates': self.coordinates.to_dict(),
            'zIndex': self.z_index,
            'transform': self.transform.to_dict() if self.transform else None,
            'locked': self.locked,
            'visible': self.visible,
            'name': self.name,
            'groupId': self.group_id,
        }))
        return data

    def _variant_dict(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        data = self._common_dict()
        data.update(_drop_none(self._variant_dict()))
        return data


@dataclass(frozen=True)
class TextStyle:
    font_size: Optional[float] = None
    font_weight: Optional[int] = None
    color: Optional[str] = None
    text_align: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['TextStyle']:
        if not data:
            return None
        return cls(
            font_size=data.get('fontSize'),
            font_weight=data.get('fontWeight'),
            color=data.get('color'),
            text_align=data.get('textAlign'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'fontSize': self.font_size,
            'fontWeight': self.font_weight,
            'color': self.color,
            'textAlign': self.text_align,
        })


@dataclass
class TextObject(SlideObject):
    """Text box. `content` may embed **bold** run markers."""

    content: str = ''
    role: str = 'body'
    typographic_role: Optional[str] = None
    color_role: Optional[str] = None
    custom_styles: Optional[TextStyle] = None

    type = 'text'

    def _variant_dict(self) -> Dict[str, Any]:
        return {
            'content': self.content,
            'role': self.role,
            'typographicRole': self.typographic_role,
            'colorRole': self.color_role,
            'customStyles': self.custom_styles.to_dict() if self.custom_styles else None,
        }

    @classmethod
    def _variant_kwargs(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'content': str(data.get('content') or ''),
            'role': data.get('role', 'body'),
            'typographic_role': data.get('typographicRole'),
            'color_role': data.get('colorRole'),
            'custom_styles': TextStyle.from_dict(data.get('customStyles')),
        }


@dataclass(frozen=True)
class ImageFilters:
    """CSS-style filters: brightness/contrast/saturation in percent, blur in px."""

    brightness: Optional[float] = None
    contrast: Optional[float] = None
    saturation: Optional[float] = None
    blur: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['ImageFilters']:
        if not data:
            return None
        return cls(
            brightness=data.get('brightness'),
            contrast=data.get('contrast'),
            saturation=data.get('saturation'),
            blur=data.get('blur'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'brightness': self.brightness,
            'contrast': self.contrast,
            'saturation': self.saturation,
            'blur': self.blur,
        })

    @property
    def is_identity(self) -> bool:
        return (
            self.brightness in (None, 100) and
            self.contrast in (None, 100) and
            self.saturation in (None, 100) and
            not self.blur
        )


@dataclass
class ImageObject(SlideObject):
    src: str = ''
    alt: Optional[str] = None
    fit: str = 'contain'
    filters: Optional[ImageFilters] = None
    variants: Optional[List[str]] = None
    hero_index: Optional[int] = None
    cycle_on_playback: Optional[bool] = None
    cycle_interval: Optional[int] = None

    type = 'image'

    @property
    def effective_src(self) -> str:
        """Source shown in static output: the hero variant if one exists, else `src`."""
        if self.variants:
            index = self.hero_index or 0
            if 0 <= index < len(self.variants) and self.variants[index]:
                return self.variants[index]
        return self.src

    def _variant_dict(self) -> Dict[str, Any]:
        return {
            'src': self.src,
            'alt': self.alt,
            'fit': self.fit,
            'filters': self.filters.to_dict() if self.filters else None,
            'variants': list(self.variants) if self.variants is not None else None,
            'heroIndex': self.hero_index,
            'cycleOnPlayback': self.cycle_on_playback,
            'cycleInterval': self.cycle_interval,
        }

    @classmethod
    def _variant_kwargs(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        variants = data.get('variants')
        return {
            'src': data.get('src') or '',
            'alt': data.get('alt'),
            'fit': data.get('fit') or 'contain',
            'filters': ImageFilters.from_dict(data.get('filters')),
            'variants': list(variants) if variants is not None else None,
            'hero_index': data.get('heroIndex'),
            'cycle_on_playback': data.get('cycleOnPlayback'),
            'cycle_interval': data.get('cycleInterval'),
        }


@dataclass
class VideoObject(SlideObject):
    src: str = ''
    poster: Optional[str] = None
    autoplay: Optional[bool] = None
    loop: Optional[bool] = None
    muted: Optional[bool] = None
    controls: Optional[bool] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    type = 'video'

    def _variant_dict(self) -> Dict[str, Any]:
        return {
            'src': self.src,
            'poster': self.poster,
            'autoplay': self.autoplay,
            'loop': self.loop,
            'muted': self.muted,
            'controls': self.controls,
            'startTime': self.start_time,
            'endTime': self.end_time,
        }

    @classmethod
    def _variant_kwargs(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'src': data.get('src') or '',
            'poster': data.get('poster'),
            'autoplay': data.get('autoplay'),
            'loop': data.get('loop'),
            'muted': data.get('muted'),
            'controls': data.get('controls'),
            'start_time': data.get('startTime'),
            'end_time': data.get('endTime'),
        }


@dataclass
class ShapeObject(SlideObject):
    shape: str = 'rectangle'
    fill: Optional[str] = None
    stroke: Optional[str] = None
    stroke_width: Optional[float] = None
    custom_path: Optional[str] = None

    type = 'shape'

    def _variant_dict(self) -> Dict[str, Any]:
        return {
            'shape': self.shape,
            'fill': self.fill,
            'stroke': self.stroke,
            'strokeWidth': self.stroke_width,
            'customPath': self.custom_path,
        }

    @classmethod
    def _variant_kwargs(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'shape': data.get('shape') or 'rectangle',
            'fill': data.get('fill'),
            'stroke': data.get('stroke'),
            'stroke_width': data.get('strokeWidth'),
            'custom_path': data.get('customPath'),
        }


@dataclass(frozen=True)
class TableStyles:
    header_background: Optional[str] = None
    header_text: Optional[str] = None
    cell_background: Optional[str] = None
    cell_text: Optional[str] = None
    border_color: Optional[str] = None
    border_width: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['TableStyles']:
        if not data:
            return None
        return cls(
            header_background=data.get('headerBackground'),
            header_text=data.get('headerText'),
            cell_background=data.get('cellBackground'),
            cell_text=data.get('cellText'),
            border_color=data.get('borderColor'),
            border_width=data.get('borderWidth'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'headerBackground': self.header_background,
            'headerText': self.header_text,
            'cellBackground': self.cell_background,
            'cellText': self.cell_text,
            'borderColor': self.border_color,
            'borderWidth': self.border_width,
        })


@dataclass
class TableObject(SlideObject):
    data: List[List[Union[str, int, float]]] = field(default_factory=list)
    headers: Optional[List[str]] = None
    styles: Optional[TableStyles] = None

    type = 'table'

    def _variant_dict(self) -> Dict[str, Any]:
        return {
            'data': [list(row) for row in self.data],
            'headers': list(self.headers) if self.headers is not None else None,
            'styles': self.styles.to_dict() if self.styles else None,
        }

    @classmethod
    def _variant_kwargs(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        headers = data.get('headers')
        return {
            'data': [list(row) for row in (data.get('data') or [])],
            'headers': list(headers) if headers is not None else None,
            'styles': TableStyles.from_dict(data.get('styles')),
        }


@dataclass
class ChartObject(SlideObject):
    """Chart. `data` is {labels, values} or Chart.js style {labels, datasets}."""

    chart_type: str = 'bar'
    data: Dict[str, Any] = field(default_factory=dict)
    options: Optional[Dict[str, Any]] = None

    type = 'chart'

    def _variant_dict(self) -> Dict[str, Any]:
        return {
            'chartType': self.chart_type,
            'data': self.data,
            'options': self.options,
        }

    @classmethod
    def _variant_kwargs(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'chart_type': data.get('chartType') or 'bar',
            'data': data.get('data') or {},
            'options': data.get('options'),
        }


@dataclass
class UnsupportedObject(SlideObject):
    """Object whose type has no model variant. Kept verbatim for round-tripping."""

    object_type: str = ''
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> str:
        return self.object_type

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.raw)


SlideObjectUnion = Union[
    TextObject, ImageObject, VideoObject, ShapeObject, TableObject, ChartObject, UnsupportedObject
]

OBJECT_TYPES = {
    'text': TextObject,
    'image': ImageObject,
    'video': VideoObject,
    'shape': ShapeObject,
    'table': TableObject,
    'chart': ChartObject,
}

_COMMON_KEYS = ('id', 'type', 'coordinates', 'zIndex', 'transform', 'locked', 'visible', 'name', 'groupId')

_VARIANT_KEYS = {
    'text': ('content', 'role', 'typographicRole', 'colorRole', 'customStyles'),
    'image': ('src', 'alt', 'fit', 'filters', 'variants', 'heroIndex', 'cycleOnPlayback', 'cycleInterval'),
    'video': ('src', 'poster', 'autoplay', 'loop', 'muted', 'controls', 'startTime', 'endTime'),
    'shape': ('shape', 'fill', 'stroke', 'strokeWidth', 'customPath'),
    'table': ('data', 'headers', 'styles'),
    'chart': ('chartType', 'data', 'options'),
}


def slide_object_from_dict(data: Dict[str, Any]) -> SlideObjectUnion:
    """
    Build a slide object from its JSON dictionary.

    Args:
        data: Object dictionary with camelCase keys

    Returns:
        Typed slide object. Unknown types yield UnsupportedObject.

    Raises:
        ModelError: If id or coordinates are missing or the box is degenerate
    """
    if not isinstance(data, dict):
        raise ModelError(f"Slide object must be a mapping, got {type(data).__name__}")

    object_id = data.get('id')
    object_type = data.get('type')
    if not object_id:
        raise ModelError("Slide object is missing 'id'")
    if not object_type:
        raise ModelError(f"Slide object {object_id} is missing 'type'")
    if not isinstance(data.get('coordinates'), dict):
        raise ModelError(f"Slide object {object_id} is missing 'coordinates'")

    coordinates = Coordinates.from_dict(data['coordinates'])
    if not validate_coordinates(coordinates):
        raise ModelError(
            f"Slide object {object_id} has non-positive size "
            f"{coordinates.width}x{coordinates.height}"
        )

    common = {
        'id': str(object_id),
        'coordinates': coordinates,
        'z_index': int(data.get('zIndex') or 0),
        'transform': Transform.from_dict(data.get('transform')),
        'locked': data.get('locked'),
        'visible': data.get('visible'),
        'name': data.get('name'),
        'group_id': data.get('groupId'),
    }

    cls = OBJECT_TYPES.get(object_type)
    if cls is None:
        logger.debug(f"Object {object_id}: unknown type '{object_type}' kept as unsupported")
        return UnsupportedObject(object_type=str(object_type), raw=dict(data), **common)

    known = set(_COMMON_KEYS) | set(_VARIANT_KEYS[object_type])
    extra = {k: v for k, v in data.items() if k not in known}
    return cls(extra=extra, **common, **cls._variant_kwargs(data))


@dataclass(frozen=True)
class SlideBackground:
    type: str
    value: str
    opacity: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['SlideBackground']:
        if not data:
            return None
        return cls(type=data.get('type', 'color'), value=str(data.get('value', '')), opacity=data.get('opacity'))

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({'type': self.type, 'value': self.value, 'opacity': self.opacity})


_SLIDE_KEYS = ('id', 'type', 'objects', 'order', 'background', 'notes', 'createdAt', 'updatedAt',
               'templateId', 'templateLayoutId')


@dataclass
class Slide:
    """
    One slide. `order` decides its position in exports; list position is not
    trusted.
    """

    id: str
    type: str = SlideType.CUSTOM.value
    objects: List[SlideObjectUnion] = field(default_factory=list)
    order: float = 0
    background: Optional[SlideBackground] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    template_id: Optional[str] = None
    template_layout_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Slide':
        """
        Build a slide from its JSON dictionary.

        Unmodelled keys (transitions, animations, layout guides, ...) are kept
        in `extra` so they survive a round trip.
        """
        if not isinstance(data, dict):
            raise ModelError(f"Slide must be a mapping, got {type(data).__name__}")
        if not data.get('id'):
            raise ModelError("Slide is missing 'id'")

        slide_type = data.get('type') or SlideType.CUSTOM.value
        if isinstance(slide_type, SlideType):
            slide_type = slide_type.value

        return cls(
            id=str(data['id']),
            type=str(slide_type),
            objects=[slide_object_from_dict(obj) for obj in data.get('objects') or []],
            order=data.get('order', 0),
            background=SlideBackground.from_dict(data.get('background')),
            notes=data.get('notes'),
            created_at=_parse_datetime(data.get('createdAt')),
            updated_at=_parse_datetime(data.get('updatedAt')),
            template_id=data.get('templateId'),
            template_layout_id=data.get('templateLayoutId'),
            extra={k: v for k, v in data.items() if k not in _SLIDE_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update(_drop_none({
            'id': self.id,
            'type': self.type,
            'objects': [obj.to_dict() for obj in self.objects],
            'order': self.order,
            'background': self.background.to_dict() if self.background else None,
            'notes': self.notes,
            'createdAt': _format_datetime(self.created_at),
            'updatedAt': _format_datetime(self.updated_at),
            'templateId': self.template_id,
            'templateLayoutId': self.template_layout_id,
        }))
        return data

    def __repr__(self) -> str:
        return f"Slide(id={self.id!r}, type={self.type!r}, order={self.order}, objects={len(self.objects)})"


@dataclass(frozen=True)
class PresentationInfo:
    """Deck-level metadata written into the exported artifact."""

    title: str = 'Untitled Presentation'
    author: Optional[str] = None
    description: Optional[str] = None
    company: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PresentationInfo':
        if not data:
            return cls()
        return cls(
            title=data.get('title') or cls.title,
            author=data.get('author') or data.get('createdBy'),
            description=data.get('description'),
            company=data.get('company'),
        )


def validate_slide_object(obj: SlideObject) -> bool:
    """
    Strict containment check for final-render sanity checks. Never used
    while editing, where off-canvas positions are legal.
    """
    return is_within_bounds(obj.coordinates)


def get_objects_in_zone(slide: Slide, zone_coordinates: Coordinates) -> List[SlideObjectUnion]:
    """
    Objects whose box overlaps the zone. An object may belong to zero or
    several zones.
    """
    return [obj for obj in slide.objects if do_overlap(obj.coordinates, zone_coordinates)]


def slides_from_data(data: Any) -> List[Slide]:
    """Parse a list of slide dictionaries."""
    if not isinstance(data, list):
        raise ModelError(f"Expected a list of slides, got {type(data).__name__}")
    return [Slide.from_dict(item) for item in data]
