"""
Style Mapper Module
Maps canvas styles and geometry to PowerPoint attributes.
"""

from .coordinate_mapper import CoordinateMapper
from .style_mapper import StyleMapper
from .font_mapper import FontMapper

__all__ = ['CoordinateMapper', 'StyleMapper', 'FontMapper']
