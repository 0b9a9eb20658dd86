"""
Template Model - Zones, layouts and master elements

A Template maps each slide type to a SlideLayout: the zones content may occupy
plus optional background and master elements. Zone geometry must lie fully
inside the canvas; a zone that does not is a template-authoring error.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Dict, Any, Optional, Tuple, Union

import yaml

from .coordinates import Coordinates, is_within_bounds, validate_coordinates
from ..errors import TemplateError

logger = logging.getLogger(__name__)

MASTER_ELEMENT_TYPES = ('logo', 'pageNumber', 'date', 'footer', 'header', 'watermark')


@dataclass(frozen=True)
class BackgroundDefinition:
    """Template background. `value` is a colour, CSS gradient or image URL."""

    type: str
    value: str
    opacity: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['BackgroundDefinition']:
        if not data:
            return None
        value = data.get('value', '')
        if isinstance(value, dict):
            value = value.get('url', '')
        return cls(type=data.get('type', 'solid'), value=str(value), opacity=data.get('opacity'))


@dataclass(frozen=True)
class TemplateZone:
    id: str
    role: str
    coordinates: Coordinates
    accepted_types: Tuple[str, ...] = ('text',)
    required: bool = False
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    default_typographic_role: Optional[str] = None
    default_color_role: Optional[str] = None
    alignment: Optional[Dict[str, str]] = None
    z_index: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TemplateZone':
        return cls(
            id=data['id'],
            role=data.get('role', 'body'),
            coordinates=Coordinates.from_dict(data.get('coordinates') or {}),
            accepted_types=tuple(data.get('acceptedTypes') or ('text',)),
            required=bool(data.get('required', False)),
            min_items=data.get('minItems'),
            max_items=data.get('maxItems'),
            default_typographic_role=data.get('defaultTypographicRole'),
            default_color_role=data.get('defaultColorRole'),
            alignment=data.get('alignment'),
            z_index=data.get('zIndex'),
        )


@dataclass(frozen=True)
class MasterElement:
    """
    Decoration repeated across slides (logo, page number, footer...).

    Visibility filters: `visible_on`/`exclude_from` hold slide types,
    `visible_on_slides`/`exclude_from_slides` hold 1-based slide numbers.
    """

    id: str
    type: str
    coordinates: Coordinates
    content: Optional[str] = None
    typographic_role: Optional[str] = None
    color_role: Optional[str] = None
    z_index: Optional[int] = None
    visible_on: Optional[Tuple[str, ...]] = None
    exclude_from: Optional[Tuple[str, ...]] = None
    visible_on_slides: Optional[Tuple[int, ...]] = None
    exclude_from_slides: Optional[Tuple[int, ...]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MasterElement':
        def _tuple(key):
            value = data.get(key)
            return tuple(value) if value is not None else None

        content = data.get('content')
        if isinstance(content, dict):
            content = content.get('url')

        return cls(
            id=data['id'],
            type=data.get('type', 'footer'),
            coordinates=Coordinates.from_dict(data.get('coordinates') or {}),
            content=content,
            typographic_role=data.get('typographicRole'),
            color_role=data.get('colorRole'),
            z_index=data.get('zIndex'),
            visible_on=_tuple('visibleOn'),
            exclude_from=_tuple('excludeFrom'),
            visible_on_slides=_tuple('visibleOnSlides'),
            exclude_from_slides=_tuple('excludeFromSlides'),
        )


@dataclass(frozen=True)
class SlideLayout:
    slide_type: str
    zones: Tuple[TemplateZone, ...] = ()
    background: Optional[BackgroundDefinition] = None
    master_elements: Tuple[MasterElement, ...] = ()

    @classmethod
    def from_dict(cls, slide_type: str, data: Dict[str, Any]) -> 'SlideLayout':
        return cls(
            slide_type=data.get('slideType', slide_type),
            zones=tuple(TemplateZone.from_dict(z) for z in data.get('zones') or []),
            background=BackgroundDefinition.from_dict(data.get('background')),
            master_elements=tuple(MasterElement.from_dict(m) for m in data.get('masterElements') or []),
        )


@dataclass(frozen=True)
class Template:
    id: str
    name: str
    layouts: Dict[str, SlideLayout] = field(default_factory=dict)
    global_master_elements: Tuple[MasterElement, ...] = ()
    default_background: Optional[BackgroundDefinition] = None
    description: Optional[str] = None
    author: Optional[str] = None
    version: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Template':
        if 'id' not in data:
            raise TemplateError("Template is missing 'id'")
        layouts = {
            slide_type: SlideLayout.from_dict(slide_type, layout)
            for slide_type, layout in (data.get('layouts') or {}).items()
        }
        return cls(
            id=data['id'],
            name=data.get('name', data['id']),
            layouts=layouts,
            global_master_elements=tuple(
                MasterElement.from_dict(m) for m in data.get('globalMasterElements') or []
            ),
            default_background=BackgroundDefinition.from_dict(data.get('defaultBackground')),
            description=data.get('description'),
            author=data.get('author'),
            version=data.get('version'),
        )


def validate_template_zone(zone: TemplateZone) -> bool:
    """A zone is valid when its box has positive size and lies fully inside the canvas."""
    return validate_coordinates(zone.coordinates) and is_within_bounds(zone.coordinates)


def validate_template(template: Template) -> List[str]:
    """
    Collect authoring errors in a template.

    Args:
        template: Template to check

    Returns:
        List of error messages, empty when the template is valid
    """
    errors = []
    for slide_type, layout in template.layouts.items():
        for zone in layout.zones:
            if not validate_template_zone(zone):
                errors.append(f"Invalid zone coordinates in {slide_type}: {zone.id}")
        for element in layout.master_elements:
            if not validate_coordinates(element.coordinates):
                errors.append(f"Invalid master element size in {slide_type}: {element.id}")
    for element in template.global_master_elements:
        if not validate_coordinates(element.coordinates):
            errors.append(f"Invalid global master element size: {element.id}")
    return errors


def load_template(source: Union[str, Path, Dict[str, Any]], strict: bool = True) -> Template:
    """
    Load a template from a YAML file or an already-parsed dictionary.

    Args:
        source: Path to a YAML/JSON file, or a template dictionary
        strict: Raise on authoring errors instead of only logging them

    Returns:
        Parsed Template

    Raises:
        TemplateError: If the file is unreadable or, when strict, invalid
    """
    if isinstance(source, dict):
        data = source
    else:
        path = Path(source)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise TemplateError(f"Cannot read template {path}: {e}") from e
        if not isinstance(data, dict):
            raise TemplateError(f"Template {path} must contain a mapping")

    try:
        template = Template.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise TemplateError(f"Malformed template: {e}") from e

    errors = validate_template(template)
    if errors:
        if strict:
            raise TemplateError("; ".join(errors))
        for error in errors:
            logger.warning(f"Template '{template.id}': {error}")

    logger.info(f"Loaded template '{template.id}' with {len(template.layouts)} layouts")
    return template
