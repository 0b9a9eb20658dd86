"""
Canvas Model Module
Slide, object and template data structures and canvas geometry.
"""

from .coordinates import Coordinates, Point, CANVAS_WIDTH, CANVAS_HEIGHT
from .slide_model import (
    Slide, SlideBackground, PresentationInfo, TextObject, ImageObject, VideoObject, ShapeObject,
    TableObject, ChartObject, UnsupportedObject, slide_object_from_dict, slides_from_data,
)
from .template import Template, SlideLayout, TemplateZone, MasterElement, load_template

__all__ = [
    'Coordinates', 'Point', 'CANVAS_WIDTH', 'CANVAS_HEIGHT',
    'Slide', 'SlideBackground', 'PresentationInfo', 'TextObject', 'ImageObject', 'VideoObject',
    'ShapeObject', 'TableObject', 'ChartObject', 'UnsupportedObject', 'slide_object_from_dict',
    'slides_from_data',
    'Template', 'SlideLayout', 'TemplateZone', 'MasterElement', 'load_template',
]
