"""
Layout Engine - Resolves template layouts, master elements and backgrounds per slide
"""

import logging
from datetime import date
from pathlib import Path
from typing import List, Dict, Optional, NamedTuple

from ..model.coordinates import SAFE_ZONES
from ..model.slide_model import (
    Slide, SlideBackground, SlideObjectUnion, TextObject, ImageObject, TextStyle, SlideType,
    get_objects_in_zone,
)
from ..model.template import Template, SlideLayout, TemplateZone, MasterElement, BackgroundDefinition, load_template

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / 'templates'
DEFAULT_TEMPLATE_PATH = TEMPLATES_DIR / 'modern.yaml'

# Used when neither the slide type nor 'custom' has a layout in the template
FALLBACK_LAYOUT = SlideLayout(
    slide_type=SlideType.CUSTOM.value,
    zones=(
        TemplateZone(
            id='canvas',
            role='body',
            coordinates=SAFE_ZONES['full'],
            accepted_types=('text', 'image', 'video', 'shape', 'table', 'chart'),
        ),
    ),
)

# Template background types -> slide background types
_BACKGROUND_TYPES = {
    'solid': 'color',
    'color': 'color',
    'gradient': 'gradient',
    'image': 'image',
    'video': 'video',
    'pattern': 'image',
}

_TEXT_MASTER_TYPES = ('pageNumber', 'date', 'footer', 'header', 'watermark')


class MasterObject(NamedTuple):
    """A visible master element and the slide object that draws it."""

    element: MasterElement
    obj: SlideObjectUnion


class LayoutEngine:
    """
    Resolves, per slide, the layout, decorations and background from a template.
    """

    def __init__(self, template: Optional[Template] = None):
        """
        Initialize Layout Engine.

        Args:
            template: Active template. Defaults to the bundled modern template.
        """
        self.template = template or load_template(DEFAULT_TEMPLATE_PATH)
        logger.info(f"LayoutEngine using template '{self.template.id}' ({len(self.template.layouts)} layouts)")

    def has_layout(self, slide_type: str) -> bool:
        return slide_type in self.template.layouts

    def resolve_layout(self, slide_type: str) -> SlideLayout:
        """
        Layout for a slide type. Unknown types get the custom layout, and if
        the template has none, a single full-canvas zone. Never raises.
        """
        layout = self.template.layouts.get(slide_type)
        if layout is not None:
            return layout

        logger.warning(f"No layout for slide type '{slide_type}', falling back to custom layout")
        return self.template.layouts.get(SlideType.CUSTOM.value, FALLBACK_LAYOUT)

    @staticmethod
    def is_master_visible(element: MasterElement, slide_type: str, slide_number: int) -> bool:
        """
        Apply a master element's visibility filters.

        Args:
            element: Master element
            slide_type: Type of the slide being drawn
            slide_number: 1-based position of the slide in the export

        Returns:
            True if the element is drawn on this slide
        """
        if element.exclude_from and slide_type in element.exclude_from:
            return False
        if element.visible_on is not None and slide_type not in element.visible_on:
            return False
        if element.exclude_from_slides and slide_number in element.exclude_from_slides:
            return False
        if element.visible_on_slides is not None and slide_number not in element.visible_on_slides:
            return False
        return True

    def master_elements_for(self, slide: Slide, slide_number: int) -> List[MasterElement]:
        """Visible master elements: template-wide ones first, then the layout's own."""
        layout = self.resolve_layout(slide.type)
        candidates = list(self.template.global_master_elements) + list(layout.master_elements)
        return [e for e in candidates if self.is_master_visible(e, slide.type, slide_number)]

    def master_objects(self, slide: Slide, slide_number: int, export_date: date) -> List[MasterObject]:
        """
        Convert visible master elements into drawable slide objects.

        Elements with nothing to draw (a logo without an image) are dropped.

        Args:
            slide: Slide being drawn
            slide_number: 1-based slide number, used by page numbers
            export_date: Date stamped by date elements

        Returns:
            List of MasterObject in template order
        """
        results = []
        for element in self.master_elements_for(slide, slide_number):
            obj = self._master_to_object(element, slide_number, export_date)
            if obj is None:
                logger.debug(f"Master element '{element.id}' has no content, skipped")
                continue
            results.append(MasterObject(element, obj))
        return results

    def _master_to_object(self, element: MasterElement, slide_number: int,
                          export_date: date) -> Optional[SlideObjectUnion]:
        common = {
            'id': f"master:{element.id}",
            'coordinates': element.coordinates,
            'z_index': element.z_index or 0,
        }

        if element.type == 'logo':
            if not element.content:
                return None
            return ImageObject(src=element.content, alt=element.id, fit='contain', **common)

        if element.type not in _TEXT_MASTER_TYPES:
            logger.warning(f"Unknown master element type '{element.type}' ({element.id})")
            return None

        if element.type == 'pageNumber':
            content = str(slide_number)
        elif element.type == 'date':
            content = export_date.strftime(element.content) if element.content else export_date.isoformat()
        else:
            content = element.content
        if not content:
            return None

        return TextObject(
            content=content,
            role=element.type,
            typographic_role=element.typographic_role or 'footnote',
            color_role=element.color_role or 'textLight',
            custom_styles=TextStyle(text_align='center') if element.type == 'pageNumber' else None,
            **common,
        )

    def background_for(self, slide: Slide) -> Optional[SlideBackground]:
        """
        Effective background: the slide's own, else the layout's, else the
        template default.
        """
        if slide.background is not None:
            return slide.background

        layout = self.resolve_layout(slide.type)
        definition = layout.background or self.template.default_background
        return self._to_slide_background(definition)

    @staticmethod
    def _to_slide_background(definition: Optional[BackgroundDefinition]) -> Optional[SlideBackground]:
        if definition is None or not definition.value:
            return None
        bg_type = _BACKGROUND_TYPES.get(definition.type)
        if bg_type is None:
            logger.warning(f"Unsupported template background type '{definition.type}'")
            return None
        return SlideBackground(type=bg_type, value=definition.value, opacity=definition.opacity)

    def zone_style_hints(self, slide: Slide, obj: SlideObjectUnion) -> Dict[str, Optional[str]]:
        """
        Default typography/colour roles from the first zone of the slide's
        layout that overlaps the object and accepts its type.
        """
        layout = self.resolve_layout(slide.type)
        for zone in layout.zones:
            if obj.type in zone.accepted_types and obj in get_objects_in_zone(slide, zone.coordinates):
                return {
                    'typographic_role': zone.default_typographic_role,
                    'color_role': zone.default_color_role,
                }
        return {'typographic_role': None, 'color_role': None}

    def assign_objects_to_zones(self, slide: Slide) -> Dict[str, List[SlideObjectUnion]]:
        """Objects overlapping each zone of the slide's layout, keyed by zone id."""
        layout = self.resolve_layout(slide.type)
        return {zone.id: get_objects_in_zone(slide, zone.coordinates) for zone in layout.zones}

    def check_zone_requirements(self, slide: Slide) -> List[str]:
        """
        Report zone contract violations for a slide.

        Checks required zones that hold no accepted object, min/max item
        counts and objects of a type the zone does not accept.

        Returns:
            Human-readable issues, empty when the slide satisfies its layout
        """
        issues = []
        layout = self.resolve_layout(slide.type)
        assignments = self.assign_objects_to_zones(slide)

        for zone in layout.zones:
            members = assignments.get(zone.id, [])
            accepted = [o for o in members if o.type in zone.accepted_types]

            if zone.required and not accepted:
                issues.append(f"Zone '{zone.id}' is required but empty")
            if zone.min_items is not None and len(accepted) < zone.min_items:
                issues.append(f"Zone '{zone.id}' needs at least {zone.min_items} items, has {len(accepted)}")
            if zone.max_items is not None and len(accepted) > zone.max_items:
                issues.append(f"Zone '{zone.id}' allows at most {zone.max_items} items, has {len(accepted)}")
            for obj in members:
                if obj.type not in zone.accepted_types:
                    issues.append(f"Object '{obj.id}' of type '{obj.type}' overlaps zone '{zone.id}' "
                                  f"which accepts {list(zone.accepted_types)}")
        return issues
