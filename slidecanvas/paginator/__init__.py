"""
PDF Paginator Module
Lays rasterized slides out on PDF pages.
"""

from .pdf_generator import PDFGenerator
from .page_layout import PRESETS, PageLayoutPreset, get_preset, compute_slots, paginate
from .slide_rasterizer import SlideRasterizer

__all__ = ['PDFGenerator', 'PRESETS', 'PageLayoutPreset', 'get_preset', 'compute_slots', 'paginate',
           'SlideRasterizer']
