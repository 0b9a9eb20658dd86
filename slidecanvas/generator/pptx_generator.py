"""
PPTX Generator - Slide-deck export backend built on python-pptx
"""

import io
import logging
from typing import Dict, Any, Optional

from pptx import Presentation
from pptx.dml.color import RGBColor

from ..errors import AssetLoadError
from ..export.coordinator import ExportBackend, ExportContext
from ..mapper.coordinate_mapper import CoordinateMapper
from ..mapper.style_mapper import StyleMapper
from ..model.coordinates import SAFE_ZONES
from ..model.slide_model import Slide, SlideBackground, SlideObjectUnion, TextObject, ImageObject
from .asset_loader import AssetLoader
from .element_renderer import ElementRenderer

logger = logging.getLogger(__name__)

BLANK_LAYOUT_INDEX = 6


class PPTXGenerator(ExportBackend):
    """
    Builds one native slide per logical slide and serializes the deck.

    All geometry goes through a single CoordinateMapper, so every object type
    shares the same pixel-to-EMU scale.
    """

    content_type = 'application/vnd.openxmlformats-officedocument.presentationml.presentation'
    extension = 'pptx'

    def __init__(self, config: Dict[str, Any] = None, asset_loader: Optional[AssetLoader] = None):
        """
        Initialize PPTX Generator.

        Args:
            config: Full configuration dictionary (deck, mapper and assets sections)
            asset_loader: Loader for image sources; a private one is created if absent
        """
        config = config or {}
        self.config = config
        self.mapper = CoordinateMapper(config)
        self.style_mapper = StyleMapper(config)
        self._owns_loader = asset_loader is None
        self.asset_loader = asset_loader or AssetLoader(config)
        self.element_renderer = ElementRenderer(self.style_mapper, self.mapper, self.asset_loader, config)

        self.prs = None
        self._slide = None
        logger.info(f"PPTXGenerator initialized, slide {self.mapper.slide_width_emu}x{self.mapper.slide_height_emu} EMU")

    def open(self, context: ExportContext):
        self.prs = Presentation()
        self.prs.slide_width, self.prs.slide_height = self.mapper.slide_size

        info = context.info
        props = self.prs.core_properties
        props.title = info.title
        if info.author:
            props.author = info.author
            props.last_modified_by = info.author
        if info.description:
            props.subject = info.description
        if info.company:
            props.category = info.company

    def add_slide(self, slide: Slide, index: int, background: Optional[SlideBackground],
                  context: ExportContext):
        """
        Append a blank native slide, draw its background and attach notes.

        Args:
            slide: Logical slide
            index: Position in the export
            background: Effective background after template fallbacks
            context: Export context
        """
        blank_layout = self.prs.slide_layouts[BLANK_LAYOUT_INDEX]
        self._slide = self.prs.slides.add_slide(blank_layout)

        if background is not None:
            self._set_background(slide, background, context)

        if slide.notes:
            self._slide.notes_slide.notes_text_frame.text = slide.notes

    def encode_object(self, obj: SlideObjectUnion, slide: Slide, context: ExportContext):
        hints = None
        if isinstance(obj, TextObject):
            hints = context.layout_engine.zone_style_hints(slide, obj)

        def warn(code: str, message: str):
            context.warn(slide.id, obj.id, code, message)

        self.element_renderer.render_element(self._slide, obj, hints, warn)

    def encode_placeholder(self, obj: SlideObjectUnion, slide: Slide, context: ExportContext,
                           reason: str):
        label = None
        if isinstance(obj, ImageObject):
            label = obj.alt or self.asset_loader.placeholder_label(obj.effective_src)
        elif isinstance(obj, TextObject):
            label = obj.content
        self.element_renderer.render_placeholder(self._slide, obj, label or f"[{obj.type}]")

    def finalize(self, context: ExportContext) -> bytes:
        buffer = io.BytesIO()
        self.prs.save(buffer)
        logger.info(f"Presentation serialized: {len(self.prs.slides)} slides, {buffer.tell()} bytes")
        self._release()
        return buffer.getvalue()

    def abort(self):
        logger.info("Discarding partially built presentation")
        self._release()

    def _release(self):
        self.prs = None
        self._slide = None
        if self._owns_loader:
            self.asset_loader.close()

    def _set_background(self, slide: Slide, background: SlideBackground, context: ExportContext):
        """
        Set a slide background.

        Colours are flattened over white by their opacity, CSS linear
        gradients become deck gradients, images are placed full-bleed at the
        bottom of the stacking order. Anything else is reported and skipped.
        """
        fill = self._slide.background.fill

        if background.type == 'color':
            parsed = self.style_mapper.parse_color(background.value)
            if parsed is None:
                context.warn(slide.id, None, 'invalid_background', f"Unusable background colour {background.value!r}")
                return
            rgb, alpha = parsed
            opacity = alpha * (background.opacity if background.opacity is not None else 1.0)
            fill.solid()
            fill.fore_color.rgb = RGBColor(*self.style_mapper.blend_toward_white(rgb, opacity))

        elif background.type == 'gradient':
            gradient = self.style_mapper.parse_gradient(background.value)
            if gradient is None:
                parsed = self.style_mapper.parse_color(background.value)
                if parsed is None:
                    context.warn(slide.id, None, 'invalid_background',
                                 f"Unusable background gradient {background.value!r}")
                    return
                fill.solid()
                fill.fore_color.rgb = RGBColor(*parsed[0])
                return
            self.style_mapper.apply_gradient(fill, gradient)

        elif background.type == 'image':
            if self.asset_loader.is_placeholder(background.value):
                return
            try:
                image = self.asset_loader.load_image(background.value)
            except AssetLoadError as e:
                context.warn(slide.id, None, e.code, f"Background image: {e}")
                return
            full = SAFE_ZONES['full']
            placed, crop = self.element_renderer.fit_image(full, image.width, image.height, 'cover')
            picture = self._slide.shapes.add_picture(image.stream, *self.mapper.box_to_emu(placed))
            picture.name = f"background:{slide.id}"
            picture.crop_left, picture.crop_top, picture.crop_right, picture.crop_bottom = crop

        else:
            context.warn(slide.id, None, 'unsupported_background',
                         f"Background type '{background.type}' is not supported in deck export")
