"""
Slide Rasterizer - Default render_slide implementation drawn with Pillow

Good enough for handouts produced without a browser: backgrounds, shapes,
text, images, tables and simple charts. Callers with a real renderer inject
their own render_slide into PDFGenerator instead.
"""

import logging
import math
from datetime import date
from typing import Dict, Any, List, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from ..errors import AssetLoadError, ObjectEncodingError
from ..export.coordinator import stack_slide
from ..generator.asset_loader import AssetLoader
from ..generator.element_renderer import ElementRenderer, parse_svg_path, chart_series, chart_number
from ..layout.layout_engine import LayoutEngine
from ..mapper.rich_text import parse_bold_runs, split_paragraphs
from ..mapper.style_mapper import StyleMapper, GradientSpec
from ..model.coordinates import CANVAS_WIDTH, CANVAS_HEIGHT, Coordinates, SAFE_ZONES, scale_about_center
from ..model.slide_model import (
    Slide, SlideBackground, SlideObjectUnion, TextObject, ImageObject, ShapeObject, TableObject,
    ChartObject,
)

logger = logging.getLogger(__name__)

RGBA = Tuple[int, int, int, int]

FONT_FILES = {
    False: ('DejaVuSans.ttf', 'Arial.ttf', 'arial.ttf', 'LiberationSans-Regular.ttf'),
    True: ('DejaVuSans-Bold.ttf', 'Arial Bold.ttf', 'arialbd.ttf', 'LiberationSans-Bold.ttf'),
}

PLACEHOLDER_FILL = (224, 224, 224, 255)
PLACEHOLDER_STROKE = (189, 189, 189, 255)
PLACEHOLDER_TEXT = (117, 117, 117, 255)
LINE_SPACING = 1.2


class SlideRasterizer:
    """
    Callable render_slide(slide, index) -> PIL.Image drawing the 1920x1080
    canvas, scaled by `raster_scale`.
    """

    def __init__(self, config: Dict[str, Any] = None, layout_engine: Optional[LayoutEngine] = None,
                 style_mapper: Optional[StyleMapper] = None, asset_loader: Optional[AssetLoader] = None,
                 export_date: Optional[date] = None):
        """
        Initialize Slide Rasterizer.

        Args:
            config: Full configuration dictionary
            layout_engine: Template resolution for backgrounds and master elements
            style_mapper: Colour and typography resolution
            asset_loader: Image loader; a private one is created (and closed) if absent
            export_date: Date stamped by date master elements
        """
        config = config or {}
        pdf_config = config.get('pdf', {})
        deck_config = config.get('deck', {})
        self.scale = float(pdf_config.get('raster_scale', 1.0))
        self.width = max(1, round(CANVAS_WIDTH * self.scale))
        self.height = max(1, round(CANVAS_HEIGHT * self.scale))

        self.layout_engine = layout_engine or LayoutEngine()
        self.style_mapper = style_mapper or StyleMapper(config)
        self._owns_loader = asset_loader is None
        self.asset_loader = asset_loader or AssetLoader(config)
        self.export_date = export_date or date.today()

        self.shape_default_fill = deck_config.get('shape_default_fill', '#FFFFFF')
        self.chart_colors = deck_config.get('chart_colors') or ['#0088CC', '#FF6633', '#99CC00', '#FF3366']
        self._fonts: Dict[Tuple[bool, int], Any] = {}

    def __call__(self, slide: Slide, index: int) -> Image.Image:
        canvas = Image.new('RGBA', (self.width, self.height), (255, 255, 255, 255))
        background = self.layout_engine.background_for(slide)
        if background is not None:
            self._draw_background(canvas, background)

        masters = self.layout_engine.master_objects(slide, index + 1, self.export_date)
        for obj in stack_slide(slide, masters):
            try:
                self._draw_object(canvas, obj, slide)
            except Exception as e:
                logger.warning(f"Rasterizing {slide.id}/{obj.id} failed: {e}")
                self._draw_placeholder(ImageDraw.Draw(canvas), obj.coordinates, str(obj.type))

        return canvas.convert('RGB')

    def close(self):
        if self._owns_loader:
            self.asset_loader.close()

    # Helpers

    def _px(self, value: float) -> float:
        return value * self.scale

    def _rect(self, box: Coordinates) -> Tuple[float, float, float, float]:
        return (self._px(box.x), self._px(box.y), self._px(box.right), self._px(box.bottom))

    def _rgba(self, value: Optional[str], opacity: Optional[float] = None) -> Optional[RGBA]:
        parsed = self.style_mapper.parse_color(value)
        if parsed is None:
            return None
        rgb, alpha = parsed
        if opacity is not None:
            alpha *= max(0.0, min(1.0, opacity))
        return tuple(rgb) + (int(round(alpha * 255)),)

    def _font(self, size_px: float, bold: bool = False):
        size = max(1, int(round(size_px * self.scale)))
        key = (bold, size)
        font = self._fonts.get(key)
        if font is None:
            for name in FONT_FILES[bold]:
                try:
                    font = ImageFont.truetype(name, size)
                    break
                except OSError:
                    continue
            else:
                logger.debug(f"No TrueType font found, using Pillow's default at {size}px")
                font = ImageFont.load_default(size)
            self._fonts[key] = font
        return font

    # Backgrounds

    def _draw_background(self, canvas: Image.Image, background: SlideBackground):
        if background.type == 'color':
            color = self._rgba(background.value, background.opacity)
            if color is not None:
                layer = Image.new('RGBA', canvas.size, color)
                canvas.alpha_composite(layer)
        elif background.type == 'gradient':
            gradient = self.style_mapper.parse_gradient(background.value)
            if gradient is not None:
                canvas.alpha_composite(self._gradient_image(gradient, canvas.size))
        elif background.type == 'image' and not self.asset_loader.is_placeholder(background.value):
            try:
                image = self.asset_loader.open_image(background.value)
            except AssetLoadError as e:
                logger.warning(f"Background image skipped: {e}")
                return
            self._paste_image(canvas, image, SAFE_ZONES['full'], 'cover')
        else:
            logger.debug(f"Background type '{background.type}' not rasterized")

    @staticmethod
    def _gradient_image(gradient: GradientSpec, size: Tuple[int, int]) -> Image.Image:
        """Linear gradient along the CSS angle, built as a strip and rotated into place."""
        stops = gradient.stops
        strip = Image.new('RGBA', (256, 1))
        for i in range(256):
            position = i / 255
            color = stops[-1][1]
            for (p0, c0), (p1, c1) in zip(stops, stops[1:]):
                if p0 <= position <= p1:
                    t = (position - p0) / (p1 - p0) if p1 > p0 else 0
                    color = tuple(int(round(a + (b - a) * t)) for a, b in zip(c0, c1))
                    break
            else:
                if position < stops[0][0]:
                    color = stops[0][1]
            strip.putpixel((i, 0), tuple(color) + (255,))

        width, height = size
        diagonal = int(math.ceil(math.hypot(width, height))) + 2
        square = strip.resize((diagonal, diagonal), Image.BILINEAR)
        rotated = square.rotate(90 - gradient.angle, resample=Image.BILINEAR)
        left = (diagonal - width) // 2
        top = (diagonal - height) // 2
        return rotated.crop((left, top, left + width, top + height))

    # Objects

    def _draw_object(self, canvas: Image.Image, obj: SlideObjectUnion, slide: Slide):
        transform = obj.transform
        rotation = float(transform.rotation) if transform and transform.rotation else 0.0
        target = Image.new('RGBA', canvas.size, (0, 0, 0, 0)) if rotation else canvas
        box = obj.coordinates
        if transform is not None and transform.scale not in (None, 1):
            box = scale_about_center(box, transform.scale)

        if isinstance(obj, TextObject):
            self._draw_text(target, obj, box, slide)
        elif isinstance(obj, ImageObject):
            self._draw_image(target, obj, box)
        elif isinstance(obj, ShapeObject):
            self._draw_shape(target, obj, box)
        elif isinstance(obj, TableObject):
            self._draw_table(target, obj, box)
        elif isinstance(obj, ChartObject):
            self._draw_chart(target, obj, box)
        else:
            self._draw_placeholder(ImageDraw.Draw(target), box, f"[{obj.type}]")

        if rotation:
            center = ((box.x + box.width / 2) * self.scale, (box.y + box.height / 2) * self.scale)
            target = target.rotate(-rotation, resample=Image.BICUBIC, center=center)
            canvas.alpha_composite(target)

    def _draw_placeholder(self, draw: ImageDraw.ImageDraw, box: Coordinates, label: Optional[str]):
        rect = self._rect(box)
        draw.rectangle(rect, fill=PLACEHOLDER_FILL, outline=PLACEHOLDER_STROKE, width=max(1, round(self.scale)))
        if label:
            font = self._font(self.style_mapper.typography_for('caption').get('font_size', 20))
            center = ((rect[0] + rect[2]) / 2, (rect[1] + rect[3]) / 2)
            draw.text(center, label, fill=PLACEHOLDER_TEXT, font=font, anchor='mm')

    def _draw_text(self, canvas: Image.Image, obj: TextObject, box: Coordinates, slide: Slide):
        hints = self.layout_engine.zone_style_hints(slide, obj)
        style = self.style_mapper.resolve_text_style(obj, hints.get('typographic_role'), hints.get('color_role'))
        color = tuple(style.color or (0, 0, 0)) + (255,)
        draw = ImageDraw.Draw(canvas)
        x0, y0, x1, y1 = self._rect(box)
        max_width = x1 - x0
        line_height = style.font_size * self.scale * LINE_SPACING

        y = y0
        for runs in split_paragraphs(parse_bold_runs(obj.content or '')):
            words = [(word, run.bold or style.bold) for run in runs for word in run.text.split()]
            for line in self._wrap_words(draw, words, style.font_size, max_width) or [[]]:
                if y + line_height > y1 + line_height / 2:
                    return
                width = self._line_width(draw, line, style.font_size)
                if style.align == 'center':
                    x = x0 + (max_width - width) / 2
                elif style.align == 'right':
                    x = x1 - width
                else:
                    x = x0
                for word, bold in line:
                    font = self._font(style.font_size, bold)
                    draw.text((x, y), word, fill=color, font=font)
                    x += draw.textlength(word + ' ', font=font)
                y += line_height

    def _line_width(self, draw: ImageDraw.ImageDraw, line: List[Tuple[str, bool]], size: float) -> float:
        text_width = sum(draw.textlength(word + ' ', font=self._font(size, bold)) for word, bold in line)
        if line:
            text_width -= draw.textlength(' ', font=self._font(size, line[-1][1]))
        return text_width

    def _wrap_words(self, draw: ImageDraw.ImageDraw, words: List[Tuple[str, bool]], size: float,
                    max_width: float) -> List[List[Tuple[str, bool]]]:
        lines, current = [], []
        for word in words:
            candidate = current + [word]
            if current and self._line_width(draw, candidate, size) > max_width:
                lines.append(current)
                current = [word]
            else:
                current = candidate
        if current:
            lines.append(current)
        return lines

    def _draw_image(self, canvas: Image.Image, obj: ImageObject, box: Coordinates):
        src = obj.effective_src
        if self.asset_loader.is_placeholder(src):
            label = obj.alt or self.asset_loader.placeholder_label(src)
            self._draw_placeholder(ImageDraw.Draw(canvas), box, label)
            return
        image = self.asset_loader.open_image(src, obj.filters)
        self._paste_image(canvas, image, box, obj.fit)

    def _paste_image(self, canvas: Image.Image, image: Image.Image, box: Coordinates, fit: str):
        placed, crop = ElementRenderer.fit_image(box, image.width, image.height, fit)
        image = image.convert('RGBA')
        if crop is not None:
            left, top, right, bottom = crop
            image = image.crop((
                round(left * image.width), round(top * image.height),
                round(image.width * (1 - right)), round(image.height * (1 - bottom)),
            ))
        x0, y0, x1, y1 = (round(v) for v in self._rect(placed))
        if x1 <= x0 or y1 <= y0:
            return
        resized = image.resize((x1 - x0, y1 - y0), Image.LANCZOS)
        if x0 >= 0 and y0 >= 0:
            canvas.alpha_composite(resized, dest=(x0, y0))
        else:
            # alpha_composite rejects negative offsets
            canvas.paste(resized, (x0, y0), resized)

    def _draw_shape(self, canvas: Image.Image, obj: ShapeObject, box: Coordinates):
        opacity = obj.transform.opacity if obj.transform is not None else None
        fill = self._rgba(obj.fill or self.shape_default_fill, opacity)
        outline = self._rgba(obj.stroke, opacity)
        stroke_width = max(1, round((obj.stroke_width or 1) * self.scale))
        layer = Image.new('RGBA', canvas.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        x0, y0, x1, y1 = self._rect(box)
        outline_width = stroke_width if outline else 0

        kind = obj.shape or 'rectangle'
        if kind == 'line':
            color = self._rgba(obj.stroke or obj.fill or self.style_mapper.palette['text'], opacity)
            draw.line([(x0, y0), (x1, y1)], fill=color, width=stroke_width)
        elif kind == 'circle':
            draw.ellipse((x0, y0, x1, y1), fill=fill, outline=outline, width=outline_width)
        elif kind == 'triangle':
            draw.polygon([((x0 + x1) / 2, y0), (x1, y1), (x0, y1)], fill=fill, outline=outline,
                         width=outline_width)
        elif kind == 'arrow':
            w, h = x1 - x0, y1 - y0
            head = x0 + w * 0.6
            draw.polygon([
                (x0, y0 + h * 0.25), (head, y0 + h * 0.25), (head, y0), (x1, y0 + h / 2),
                (head, y1), (head, y0 + h * 0.75), (x0, y0 + h * 0.75),
            ], fill=fill, outline=outline, width=outline_width)
        elif kind == 'custom' and obj.custom_path:
            try:
                contours = parse_svg_path(obj.custom_path)
            except ValueError as e:
                logger.debug(f"{obj.id}: {e}; drawn as rectangle")
                draw.rectangle((x0, y0, x1, y1), fill=fill, outline=outline, width=outline_width)
            else:
                for contour in contours:
                    points = [(x0 + px * self.scale, y0 + py * self.scale) for px, py in contour]
                    draw.polygon(points, fill=fill, outline=outline, width=outline_width)
        else:
            draw.rectangle((x0, y0, x1, y1), fill=fill, outline=outline, width=outline_width)

        canvas.alpha_composite(layer)

    def _draw_table(self, canvas: Image.Image, obj: TableObject, box: Coordinates):
        headers = list(obj.headers) if obj.headers else []
        grid = ([(headers, True)] if headers else []) + [(list(row), False) for row in obj.data]
        cols = max([len(values) for values, _ in grid] + [0])
        if not grid or cols == 0:
            raise ObjectEncodingError(f"Table {obj.id} has no cells", obj.id)

        styles = obj.styles
        draw = ImageDraw.Draw(canvas)
        x0, y0, x1, y1 = self._rect(box)
        cell_w = (x1 - x0) / cols
        cell_h = (y1 - y0) / len(grid)
        border = self._rgba((styles and styles.border_color) or '#CCCCCC')
        border_width = max(1, round(((styles and styles.border_width) or 1) * self.scale))
        font_px = self.style_mapper.typography_for('bodySmall').get('font_size', 24)

        for row_index, (values, is_header) in enumerate(grid):
            background = (styles and styles.header_background) if is_header else (styles and styles.cell_background)
            if is_header and not background:
                background = '#F0F0F0'
            text_value = (styles and styles.header_text) if is_header else (styles and styles.cell_text)
            text_color = self._rgba(text_value) or (0, 0, 0, 255)
            font = self._font(font_px, bold=is_header)
            for col_index in range(cols):
                rect = (x0 + col_index * cell_w, y0 + row_index * cell_h,
                        x0 + (col_index + 1) * cell_w, y0 + (row_index + 1) * cell_h)
                draw.rectangle(rect, fill=self._rgba(background) if background else None, outline=border,
                               width=border_width)
                value = values[col_index] if col_index < len(values) else ''
                text = '' if value is None else str(value)
                if text:
                    draw.text((rect[0] + 8 * self.scale, (rect[1] + rect[3]) / 2), text, fill=text_color,
                              font=font, anchor='lm')

    def _draw_chart(self, canvas: Image.Image, obj: ChartObject, box: Coordinates):
        """Bars, lines, areas, scatter points or pie slices; no axes or legend."""
        labels, series = chart_series(obj)
        colors = [self._rgba(c) or (0, 136, 204, 255) for c in self.chart_colors]
        draw = ImageDraw.Draw(canvas)
        x0, y0, x1, y1 = self._rect(box)

        if obj.chart_type == 'pie':
            values = [max(0.0, chart_number(v, obj) or 0.0) for v in series[0][1]]
            total = sum(values)
            if total <= 0:
                raise ObjectEncodingError(f"Chart {obj.id} has no positive values", obj.id)
            side = min(x1 - x0, y1 - y0)
            cx, cy = (x0 + x1) / 2, (y0 + y1) / 2
            bounds = (cx - side / 2, cy - side / 2, cx + side / 2, cy + side / 2)
            start = -90.0
            for index, value in enumerate(values):
                sweep = 360.0 * value / total
                draw.pieslice(bounds, start, start + sweep, fill=colors[index % len(colors)])
                start += sweep
            return

        numeric = []
        for _, values in series:
            for v in values:
                n = chart_number(v.get('y') if isinstance(v, dict) else v, obj)
                if n is not None:
                    numeric.append(n)
        if not numeric:
            raise ObjectEncodingError(f"Chart {obj.id} has no numeric values", obj.id)
        low, high = min(0.0, min(numeric)), max(0.0, max(numeric))
        span = (high - low) or 1.0
        count = max(len(values) for _, values in series)

        def y_for(value: float) -> float:
            return y1 - (value - low) / span * (y1 - y0)

        baseline = y_for(0.0)
        slot = (x1 - x0) / count
        for series_index, (_, values) in enumerate(series):
            color = colors[series_index % len(colors)]
            points = []
            for index, value in enumerate(values):
                n = chart_number(value.get('y') if isinstance(value, dict) else value, obj)
                if n is None:
                    continue
                points.append((x0 + slot * (index + 0.5), y_for(n)))
            if obj.chart_type in ('line', 'area', 'scatter'):
                if obj.chart_type == 'area' and len(points) > 1:
                    polygon = [(points[0][0], baseline)] + points + [(points[-1][0], baseline)]
                    draw.polygon(polygon, fill=color[:3] + (128,))
                if obj.chart_type != 'scatter' and len(points) > 1:
                    draw.line(points, fill=color, width=max(1, round(3 * self.scale)))
                radius = 5 * self.scale
                for px, py in points:
                    draw.ellipse((px - radius, py - radius, px + radius, py + radius), fill=color)
            else:
                bar_width = slot * 0.8 / len(series)
                for px, py in points:
                    left = px - slot * 0.4 + series_index * bar_width
                    draw.rectangle((left, min(py, baseline), left + bar_width, max(py, baseline)), fill=color)
