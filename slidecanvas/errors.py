"""
Export Errors - Typed error taxonomy for the export pipeline

Object-scoped errors are recoverable: the coordinator records a warning and
substitutes a placeholder. ExportError and its subclasses are fatal.
"""

from typing import Optional


class SlideCanvasError(Exception):
    """Base class for all slidecanvas errors."""


class ModelError(SlideCanvasError):
    """Input slide or object data is malformed."""


class TemplateError(SlideCanvasError):
    """A template violates its authoring rules (e.g. zone outside the canvas)."""


class ObjectEncodingError(SlideCanvasError):
    """
    A single slide object could not be encoded.

    Attributes:
        object_id: Id of the failing object, if known
        code: Short machine-readable reason
    """

    code = 'encoding_failed'

    def __init__(self, message: str, object_id: Optional[str] = None):
        super().__init__(message)
        self.object_id = object_id


class AssetLoadError(ObjectEncodingError):
    """An image or background asset could not be fetched or decoded."""

    code = 'asset_load_failed'


class UnsupportedObjectError(ObjectEncodingError):
    """The object type has no encoder in this backend. The object is skipped."""

    code = 'unsupported_object'


class ExportError(SlideCanvasError):
    """Fatal export failure. No artifact is produced."""


class ExportInitError(ExportError):
    """The output document could not be initialized."""


class ExportSerializationError(ExportError):
    """The finished document could not be serialized."""
