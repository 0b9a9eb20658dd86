"""
Layout Module
Resolves template layouts, master elements and backgrounds per slide.
"""

from .layout_engine import LayoutEngine, MasterObject

__all__ = ['LayoutEngine', 'MasterObject']
