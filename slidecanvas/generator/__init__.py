"""
PPTX Generator Module
Generates PowerPoint presentations from canvas slides.
"""

from .pptx_generator import PPTXGenerator
from .element_renderer import ElementRenderer
from .asset_loader import AssetLoader

__all__ = ['PPTXGenerator', 'ElementRenderer', 'AssetLoader']
