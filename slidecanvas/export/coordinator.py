"""
Export Coordinator - Backend-agnostic export orchestration

Sorts slides and objects, dispatches each object to the active backend,
turns object-scoped failures into warnings plus placeholders, reports
progress and honours cancellation between slides. Backends own the native
document; the coordinator owns ordering and failure policy.
"""

import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Callable, Sequence

from ..errors import (
    ExportError, ExportInitError, ExportSerializationError, UnsupportedObjectError,
)
from ..layout.layout_engine import LayoutEngine, MasterObject
from ..model.slide_model import Slide, SlideBackground, SlideObjectUnion, PresentationInfo

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


@dataclass
class ExportOptions:
    """
    Per-export settings.

    Args:
        layout: Slides-per-page preset id (paginated backend only)
        include_notes: Attach/draw speaker notes
        quality: Image quality 0.0-1.0
        filename: Output filename; derived from the title when absent
    """

    layout: str = '1-slide'
    include_notes: bool = False
    quality: float = 0.8
    filename: Optional[str] = None


@dataclass(frozen=True)
class ExportWarning:
    slide_id: Optional[str]
    object_id: Optional[str]
    code: str
    message: str

    def __str__(self) -> str:
        where = self.slide_id or '-'
        if self.object_id:
            where = f"{where}/{self.object_id}"
        return f"[{self.code}] {where}: {self.message}"


@dataclass
class ExportResult:
    data: Optional[bytes]
    filename: str
    content_type: str
    slide_count: int = 0
    page_count: Optional[int] = None
    warnings: List[ExportWarning] = field(default_factory=list)
    cancelled: bool = False


class CancellationToken:
    """Thread-safe cancellation flag checked between slides."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class ExportContext:
    """
    Read-only state threaded through one export call. Only the warnings list
    grows while the export runs.
    """

    options: ExportOptions
    info: PresentationInfo
    layout_engine: LayoutEngine
    export_date: date
    total_slides: int = 0
    warnings: List[ExportWarning] = field(default_factory=list)

    def warn(self, slide_id: Optional[str], object_id: Optional[str], code: str, message: str):
        warning = ExportWarning(slide_id, object_id, code, message)
        self.warnings.append(warning)
        logger.warning(str(warning))


class ExportBackend:
    """
    Native document builder driven by the coordinator.

    The coordinator calls open() once, then for every slide add_slide(),
    encode_object() per visible object (when object_dispatch is True) and
    close_slide(), then finalize(). abort() runs instead of finalize() on
    cancellation or fatal errors.
    """

    content_type = 'application/octet-stream'
    extension = 'bin'
    object_dispatch = True

    def open(self, context: ExportContext):
        raise NotImplementedError

    def prepare(self, slides: Sequence[Slide], context: ExportContext):
        """Called once with the ordered slides before the first add_slide()."""

    def add_slide(self, slide: Slide, index: int, background: Optional[SlideBackground],
                  context: ExportContext):
        raise NotImplementedError

    def encode_object(self, obj: SlideObjectUnion, slide: Slide, context: ExportContext):
        raise NotImplementedError

    def encode_placeholder(self, obj: SlideObjectUnion, slide: Slide, context: ExportContext,
                           reason: str):
        raise NotImplementedError

    def close_slide(self, slide: Slide, index: int, context: ExportContext):
        """Called after the slide's objects are encoded."""

    def finalize(self, context: ExportContext) -> bytes:
        raise NotImplementedError

    def abort(self):
        """Release resources after cancellation or a fatal error."""

    @property
    def page_count(self) -> Optional[int]:
        return None


def sort_slides(slides: Sequence[Slide]) -> List[Slide]:
    """Slides in ascending `order`; input position only breaks ties."""
    return sorted(slides, key=lambda s: s.order)


def ordered_objects(slide: Slide) -> List[SlideObjectUnion]:
    """Visible objects in ascending zIndex, list order preserved on ties."""
    return sorted((o for o in slide.objects if o.is_visible), key=lambda o: o.z_index)


def stack_slide(slide: Slide, masters: Sequence[MasterObject]) -> List[SlideObjectUnion]:
    """
    Final paint order for a slide: master elements without their own z-index
    first, then everything else by zIndex. Masters with a z-index sort among
    the slide objects and stay below them on ties.
    """
    bottom = [m.obj for m in masters if m.element.z_index is None]
    layered = [m.obj for m in masters if m.element.z_index is not None]
    return bottom + sorted(layered + ordered_objects(slide), key=lambda o: o.z_index)


def default_filename(title: Optional[str], extension: str) -> str:
    """Title with every non-alphanumeric character replaced by '_'."""
    stem = re.sub(r'[^A-Za-z0-9]', '_', title or 'presentation') or 'presentation'
    return f"{stem}.{extension}"


class ExportCoordinator:
    """
    Runs one backend over a set of slides.
    """

    def __init__(self, backend: ExportBackend, layout_engine: Optional[LayoutEngine] = None,
                 options: Optional[ExportOptions] = None, info: Optional[PresentationInfo] = None,
                 export_date: Optional[date] = None):
        """
        Initialize Export Coordinator.

        Args:
            backend: Backend building the native document
            layout_engine: Template resolution; defaults to the bundled template
            options: Export options
            info: Presentation metadata
            export_date: Date stamped by date master elements; defaults to today
        """
        self.backend = backend
        self.layout_engine = layout_engine or LayoutEngine()
        self.options = options or ExportOptions()
        self.info = info or PresentationInfo()
        self.export_date = export_date or date.today()

    def export(self, slides: Sequence[Slide], on_progress: Optional[ProgressCallback] = None,
               cancel_token: Optional[CancellationToken] = None) -> ExportResult:
        """
        Export slides through the backend.

        Args:
            slides: Slides in any order; `order` decides the output order
            on_progress: Called with the completed fraction after each slide
            cancel_token: Checked before each slide

        Returns:
            ExportResult with the artifact, or cancelled=True and no data

        Raises:
            ExportInitError: The output document could not be created
            ExportSerializationError: The finished document could not be written
            ExportError: Any other failure that is not scoped to one object
        """
        ordered = sort_slides(slides)
        context = ExportContext(
            options=self.options,
            info=self.info,
            layout_engine=self.layout_engine,
            export_date=self.export_date,
            total_slides=len(ordered),
        )
        filename = self.options.filename or default_filename(self.info.title, self.backend.extension)
        logger.info(f"Exporting {len(ordered)} slides with {type(self.backend).__name__} -> {filename}")

        try:
            self.backend.open(context)
        except ExportError:
            raise
        except Exception as e:
            raise ExportInitError(f"Cannot create output document: {e}") from e

        try:
            self.backend.prepare(ordered, context)
            for index, slide in enumerate(ordered):
                if cancel_token is not None and cancel_token.is_cancelled:
                    logger.info(f"Export cancelled before slide {index + 1}/{len(ordered)}")
                    self.backend.abort()
                    return ExportResult(
                        data=None,
                        filename=filename,
                        content_type=self.backend.content_type,
                        slide_count=index,
                        warnings=list(context.warnings),
                        cancelled=True,
                    )

                self._export_slide(slide, index, context)
                if on_progress is not None:
                    on_progress((index + 1) / len(ordered))

            data = self.backend.finalize(context)
        except ExportError:
            self.backend.abort()
            raise
        except Exception as e:
            self.backend.abort()
            raise ExportError(f"Export failed: {e}") from e

        if not ordered and on_progress is not None:
            on_progress(1.0)
        if data is None:
            raise ExportSerializationError("Backend produced no output")

        logger.info(f"Export complete: {len(ordered)} slides, {len(data)} bytes, "
                    f"{len(context.warnings)} warnings")
        return ExportResult(
            data=data,
            filename=filename,
            content_type=self.backend.content_type,
            slide_count=len(ordered),
            page_count=self.backend.page_count,
            warnings=list(context.warnings),
        )

    def _export_slide(self, slide: Slide, index: int, context: ExportContext):
        engine = self.layout_engine
        if not engine.has_layout(slide.type):
            context.warn(slide.id, None, 'layout_fallback',
                         f"No layout for slide type '{slide.type}', using the custom layout")

        background = engine.background_for(slide)
        masters = engine.master_objects(slide, index + 1, context.export_date)
        logger.info(f"Slide {index + 1}/{context.total_slides} ({slide.id}): "
                    f"{len(slide.objects)} objects, {len(masters)} master elements")

        self.backend.add_slide(slide, index, background, context)
        if self.backend.object_dispatch:
            for obj in stack_slide(slide, masters):
                self._encode(obj, slide, context)
        self.backend.close_slide(slide, index, context)

    def _encode(self, obj: SlideObjectUnion, slide: Slide, context: ExportContext):
        try:
            self.backend.encode_object(obj, slide, context)
        except ExportError:
            raise
        except UnsupportedObjectError as e:
            context.warn(slide.id, obj.id, e.code, str(e))
        except Exception as e:
            code = getattr(e, 'code', 'encoding_failed')
            context.warn(slide.id, obj.id, code, str(e))
            try:
                self.backend.encode_placeholder(obj, slide, context, str(e))
            except Exception as placeholder_error:
                logger.error(f"Placeholder for {obj.id} failed: {placeholder_error}", exc_info=True)
                context.warn(slide.id, obj.id, 'placeholder_failed', str(placeholder_error))
