"""
slidecanvas - Slide canvas model with PowerPoint and PDF export.
"""

from .errors import (
    SlideCanvasError, ModelError, TemplateError, ObjectEncodingError, AssetLoadError,
    UnsupportedObjectError, ExportError, ExportInitError, ExportSerializationError,
)
from .export import ExportOptions, ExportResult, ExportWarning, CancellationToken
from .exporter import load_presentation, export_pptx, export_pdf, export_file
from .model import Slide, PresentationInfo, Coordinates

__version__ = '0.1.0'

__all__ = [
    'SlideCanvasError', 'ModelError', 'TemplateError', 'ObjectEncodingError', 'AssetLoadError',
    'UnsupportedObjectError', 'ExportError', 'ExportInitError', 'ExportSerializationError',
    'ExportOptions', 'ExportResult', 'ExportWarning', 'CancellationToken',
    'load_presentation', 'export_pptx', 'export_pdf', 'export_file',
    'Slide', 'PresentationInfo', 'Coordinates',
]
