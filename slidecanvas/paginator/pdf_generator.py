"""
PDF Generator - Paginated-document export backend built on PyMuPDF

Each logical slide is rasterized by an injected render_slide(slide, index)
callable and composited into its slot on an A4 page, with a slide number and
optional speaker notes below it.
"""

import io
import logging
from concurrent.futures import ThreadPoolExecutor, Future
from typing import Dict, Any, Optional, List, Callable, Sequence, Union

import fitz  # PyMuPDF
from PIL import Image

from ..errors import ExportInitError, ExportSerializationError
from ..export.coordinator import ExportBackend, ExportContext
from ..model.slide_model import Slide, SlideBackground, SlideObjectUnion
from .page_layout import PageSlot, POINTS_PER_MM, get_preset, compute_slots
from .slide_rasterizer import SlideRasterizer

logger = logging.getLogger(__name__)

RenderedSlide = Union[Image.Image, bytes]
RenderSlide = Callable[[Slide, int], RenderedSlide]

LABEL_COLOR = (100 / 255, 100 / 255, 100 / 255)
NOTES_COLOR = (60 / 255, 60 / 255, 60 / 255)
PLACEHOLDER_FILL = (0.93, 0.93, 0.93)
PLACEHOLDER_STROKE = (0.7, 0.7, 0.7)
LINE_HEIGHT = 1.2


def wrap_text(text: str, width: float, fontname: str = 'helv', fontsize: float = 9) -> List[str]:
    """
    Greedy word wrap using the font's advance widths.

    Words wider than the line are broken between characters.
    """
    def fits(candidate: str) -> bool:
        return fitz.get_text_length(candidate, fontname=fontname, fontsize=fontsize) <= width

    lines = []
    for paragraph in text.splitlines() or ['']:
        words = paragraph.split()
        if not words:
            lines.append('')
            continue
        current = ''
        for word in words:
            candidate = f"{current} {word}" if current else word
            if fits(candidate):
                current = candidate
                continue
            if current:
                lines.append(current)
            current = ''
            for char in word:
                if current and not fits(current + char):
                    lines.append(current)
                    current = char
                else:
                    current += char
        lines.append(current)
    return lines


class PDFGenerator(ExportBackend):
    """
    Composites rasterized slides onto pages according to a slides-per-page preset.
    """

    content_type = 'application/pdf'
    extension = 'pdf'
    object_dispatch = False

    def __init__(self, config: Dict[str, Any] = None, render_slide: Optional[RenderSlide] = None):
        """
        Initialize PDF Generator.

        Args:
            config: Full configuration dictionary or its 'pdf' section
            render_slide: Callable returning a Pillow image (or encoded image
                bytes) for a slide; defaults to the built-in SlideRasterizer
        """
        config = config or {}
        self.config = config
        pdf_config = config.get('pdf', config)
        self.page_format = pdf_config.get('page_format', 'a4')
        self.margin_mm = pdf_config.get('margin_mm', 10.0)
        self.spacing_mm = pdf_config.get('spacing_mm', 5.0)
        self.notes_fraction = pdf_config.get('notes_fraction', 0.7)
        self.min_notes_height_mm = pdf_config.get('min_notes_height_mm', 10.0)
        self.label_font_size = pdf_config.get('label_font_size', 8)
        self.notes_font_size = pdf_config.get('notes_font_size', 9)
        self.render_workers = max(1, int(pdf_config.get('render_workers', 1)))
        self.garbage = pdf_config.get('garbage', 3)

        self.render_slide = render_slide
        self.doc = None
        self.page = None
        self.preset = None
        self._renderer: Optional[RenderSlide] = None
        self._slots: List[PageSlot] = []
        self._slides: List[Slide] = []
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Dict[int, Future] = {}
        self._window = 0
        self._page_count = 0

    @property
    def page_count(self) -> Optional[int]:
        return self._page_count

    def open(self, context: ExportContext):
        options = context.options
        self.preset = get_preset(options.layout)

        width, height = fitz.paper_size(self.page_format)
        if width <= 0 or height <= 0:
            raise ExportInitError(f"Unknown page format '{self.page_format}'")
        if self.preset.orientation == 'landscape':
            width, height = max(width, height), min(width, height)
        else:
            width, height = min(width, height), max(width, height)
        self.page_width, self.page_height = width, height

        self._slots = compute_slots(
            width, height, self.preset,
            margin_mm=self.margin_mm,
            spacing_mm=self.spacing_mm,
            include_notes=options.include_notes,
            notes_fraction=self.notes_fraction,
        )
        self._renderer = self.render_slide or SlideRasterizer(
            self.config, context.layout_engine, export_date=context.export_date
        )
        self.doc = fitz.open()
        self._page_count = 0
        logger.info(f"PDF document opened: {self.page_format} {self.preset.orientation}, "
                    f"{self.preset.slides_per_page} slide(s) per page")

    def prepare(self, slides: Sequence[Slide], context: ExportContext):
        """Start the bounded render-ahead window when more than one worker is configured."""
        self._slides = list(slides)
        if self.render_workers > 1 and len(self._slides) > 1:
            self._executor = ThreadPoolExecutor(max_workers=self.render_workers,
                                                thread_name_prefix='slide-render')
            self._window = self.render_workers * 2
            for index in range(min(self._window, len(self._slides))):
                self._submit(index)
            logger.debug(f"Rendering ahead with {self.render_workers} workers, window {self._window}")

    def _submit(self, index: int):
        self._pending[index] = self._executor.submit(self._renderer, self._slides[index], index)

    def _rendered(self, slide: Slide, index: int) -> RenderedSlide:
        future = self._pending.pop(index, None)
        if future is None:
            return self._renderer(slide, index)
        upcoming = index + self._window
        if upcoming < len(self._slides) and upcoming not in self._pending:
            self._submit(upcoming)
        return future.result()

    def add_slide(self, slide: Slide, index: int, background: Optional[SlideBackground],
                  context: ExportContext):
        if index % self.preset.slides_per_page == 0:
            self.page = self.doc.new_page(width=self.page_width, height=self.page_height)
            self._page_count += 1
            logger.debug(f"Started page {self._page_count}")

    def encode_object(self, obj: SlideObjectUnion, slide: Slide, context: ExportContext):
        """No-op: objects are drawn by the slide renderer in close_slide()."""

    def encode_placeholder(self, obj: SlideObjectUnion, slide: Slide, context: ExportContext,
                           reason: str):
        """No-op: the slide renderer draws its own placeholders."""

    def close_slide(self, slide: Slide, index: int, context: ExportContext):
        """Rasterize the slide and composite it, its number and its notes into the slot."""
        slot = self._slots[index % self.preset.slides_per_page]
        rect = fitz.Rect(slot.slide_rect)

        try:
            rendered = self._rendered(slide, index)
            jpeg = self._to_jpeg(rendered, context.options.quality)
            self.page.insert_image(rect, stream=jpeg)
        except Exception as e:
            logger.error(f"Failed to render slide {slide.id}: {e}", exc_info=True)
            context.warn(slide.id, None, 'render_failed', f"Slide could not be rendered: {e}")
            self._draw_placeholder(rect, index)

        self._add_slide_number(rect, index + 1)

        if context.options.include_notes and slide.notes and slot.notes_rect is not None:
            self._add_speaker_notes(slide.notes, slot)

    @staticmethod
    def _to_jpeg(rendered: RenderedSlide, quality: float) -> bytes:
        """Encode a rendered slide as JPEG, flattening transparency onto white."""
        if isinstance(rendered, (bytes, bytearray)):
            image = Image.open(io.BytesIO(rendered))
            image.load()
        elif isinstance(rendered, Image.Image):
            image = rendered
        else:
            raise TypeError(f"render_slide returned {type(rendered).__name__}, expected an image")

        if image.mode in ('RGBA', 'LA', 'P'):
            rgba = image.convert('RGBA')
            flattened = Image.new('RGB', rgba.size, (255, 255, 255))
            flattened.paste(rgba, mask=rgba.split()[-1])
            image = flattened
        elif image.mode != 'RGB':
            image = image.convert('RGB')

        jpeg_quality = max(1, min(95, round(quality * 100)))
        buffer = io.BytesIO()
        image.save(buffer, format='JPEG', quality=jpeg_quality)
        return buffer.getvalue()

    def _draw_placeholder(self, rect: fitz.Rect, index: int):
        self.page.draw_rect(rect, color=PLACEHOLDER_STROKE, fill=PLACEHOLDER_FILL, width=0.5)
        message = f"Slide {index + 1} could not be rendered"
        self.page.insert_textbox(rect, message, fontsize=self.notes_font_size, fontname='helv',
                                 color=LABEL_COLOR, align=fitz.TEXT_ALIGN_CENTER)

    def _add_slide_number(self, rect: fitz.Rect, number: int):
        """Right-aligned number near the slide's bottom-right corner."""
        text = str(number)
        text_width = fitz.get_text_length(text, fontname='helv', fontsize=self.label_font_size)
        point = fitz.Point(rect.x1 - 5 * POINTS_PER_MM - text_width, rect.y1 - 2 * POINTS_PER_MM)
        self.page.insert_text(point, text, fontsize=self.label_font_size, fontname='helv',
                              color=LABEL_COLOR)

    def _add_speaker_notes(self, notes: str, slot: PageSlot):
        """
        Draw a "Notes:" heading and the wrapped notes below the slide.

        Nothing is drawn when the notes area is shorter than the configured
        minimum. Lines that do not fit are cut and the last kept line ends
        with an ellipsis.
        """
        if slot.notes_height < self.min_notes_height_mm * POINTS_PER_MM:
            logger.debug(f"Notes area {slot.notes_height:.1f}pt too small, skipping notes")
            return

        x0, y0, x1, y1 = slot.notes_rect
        size = self.notes_font_size
        self.page.insert_text(fitz.Point(x0, y0 + 5 * POINTS_PER_MM), 'Notes:',
                              fontsize=size, fontname='hebo', color=NOTES_COLOR)

        first_baseline = y0 + 10 * POINTS_PER_MM
        if first_baseline > y1:
            return
        step = size * LINE_HEIGHT
        max_lines = 1 + int((y1 - first_baseline) // step)
        width = (x1 - x0) - 4 * POINTS_PER_MM
        lines = wrap_text(notes, width, fontname='helv', fontsize=size)
        if len(lines) > max_lines:
            lines = lines[:max_lines]
            lines[-1] = lines[-1].rstrip() + '...'
            logger.debug(f"Speaker notes truncated to {max_lines} lines")

        self.page.insert_text(fitz.Point(x0 + 2 * POINTS_PER_MM, first_baseline), lines,
                              fontsize=size, fontname='helv', color=NOTES_COLOR,
                              lineheight=LINE_HEIGHT)

    def finalize(self, context: ExportContext) -> bytes:
        try:
            if self.doc.page_count == 0:
                raise ExportSerializationError("PDF export produced no pages")
            info = context.info
            self.doc.set_metadata({
                'title': info.title or '',
                'author': info.author or '',
                'subject': info.description or '',
                'keywords': info.company or '',
                'creator': 'slidecanvas',
                'producer': 'slidecanvas',
            })
            data = self.doc.tobytes(garbage=self.garbage, deflate=True)
        except ExportSerializationError:
            self._release()
            raise
        except Exception as e:
            self._release()
            raise ExportSerializationError(f"Failed to write PDF: {e}") from e

        logger.info(f"PDF serialized: {self._page_count} pages, {len(data)} bytes")
        self._release()
        return data

    def abort(self):
        logger.info("Discarding partially built PDF")
        self._release()

    def _release(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
            self._executor = None
        self._pending.clear()
        if self.doc is not None:
            self.doc.close()
            self.doc = None
        self.page = None
        closer = getattr(self._renderer, 'close', None)
        if self.render_slide is None and callable(closer):
            closer()
