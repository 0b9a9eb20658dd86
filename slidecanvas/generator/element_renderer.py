"""
Element Renderer - Renders individual slide objects to PowerPoint
"""

import logging
import re
from typing import Dict, Any, List, Optional, Tuple, Callable

from pptx.chart.data import CategoryChartData, XyChartData
from pptx.dml.color import RGBColor
from pptx.enum.chart import XL_CHART_TYPE, XL_LEGEND_POSITION
from pptx.enum.shapes import MSO_SHAPE, MSO_CONNECTOR
from pptx.enum.text import PP_ALIGN, MSO_ANCHOR, MSO_AUTO_SIZE
from pptx.util import Pt, Emu

from ..errors import ObjectEncodingError, UnsupportedObjectError
from ..mapper.coordinate_mapper import CoordinateMapper
from ..mapper.rich_text import parse_bold_runs, split_paragraphs
from ..mapper.style_mapper import StyleMapper
from ..model.coordinates import Coordinates, contain_box, center_box, cover_crop, scale_about_center
from ..model.slide_model import (
    SlideObjectUnion, TextObject, ImageObject, VideoObject, ShapeObject, TableObject, ChartObject,
    UnsupportedObject,
)
from ..utils.xml_utils import set_run_font_xml, set_cell_border, set_solid_fill_alpha
from .asset_loader import AssetLoader

logger = logging.getLogger(__name__)

WarnCallback = Callable[[str, str], None]

SHAPE_TYPES = {
    'rectangle': MSO_SHAPE.RECTANGLE,
    'circle': MSO_SHAPE.OVAL,
    'triangle': MSO_SHAPE.ISOSCELES_TRIANGLE,
    'arrow': MSO_SHAPE.RIGHT_ARROW,
}

CHART_TYPES = {
    'bar': XL_CHART_TYPE.COLUMN_CLUSTERED,
    'line': XL_CHART_TYPE.LINE_MARKERS,
    'pie': XL_CHART_TYPE.PIE,
    'area': XL_CHART_TYPE.AREA,
    'scatter': XL_CHART_TYPE.XY_SCATTER,
}

ALIGNMENTS = {
    'left': PP_ALIGN.LEFT,
    'center': PP_ALIGN.CENTER,
    'right': PP_ALIGN.RIGHT,
    'justify': PP_ALIGN.JUSTIFY,
}

DEFAULT_CHART_COLORS = ['#0088CC', '#FF6633', '#99CC00', '#FF3366']

# Characters XML 1.0 cannot carry
_XML_ILLEGAL = re.compile(r'[\x00-\x08\x0B\x0C\x0E-\x1F\uFFFE\uFFFF]')

_PATH_TOKEN = re.compile(r'[MmLlHhVvZzCcSsQqTtAa]|[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?')
_PATH_ARGS = {'M': 2, 'L': 2, 'H': 1, 'V': 1, 'Z': 0, 'C': 6, 'S': 4, 'Q': 4, 'T': 2, 'A': 7}


def parse_svg_path(path: str) -> List[List[Tuple[float, float]]]:
    """
    Flatten an SVG path into polygon contours.

    Curves and arcs contribute only their end points.

    Args:
        path: SVG path data

    Returns:
        Contours of (x, y) points, each with at least two points

    Raises:
        ValueError: If the path data is malformed
    """
    tokens = _PATH_TOKEN.findall(path or '')
    if not tokens or tokens[0] not in ('M', 'm'):
        raise ValueError(f"Path must start with a moveto: {path!r}")

    contours = []
    current = []
    x = y = 0.0
    start = (0.0, 0.0)
    command = None
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token.isalpha():
            command = token
            i += 1
            if command in ('Z', 'z'):
                if current:
                    contours.append(current)
                current = []
                x, y = start
                continue

        upper = command.upper()
        count = _PATH_ARGS[upper]
        args = tokens[i:i + count]
        if count == 0 or len(args) < count or any(a.isalpha() for a in args):
            raise ValueError(f"Bad arguments for '{command}' in path {path!r}")
        values = [float(a) for a in args]
        i += count
        relative = command.islower()

        if upper == 'H':
            x = values[0] + (x if relative else 0)
        elif upper == 'V':
            y = values[0] + (y if relative else 0)
        else:
            nx, ny = values[-2], values[-1]
            x, y = (x + nx, y + ny) if relative else (nx, ny)

        if upper == 'M':
            if current:
                contours.append(current)
            current = [(x, y)]
            start = (x, y)
            # Further coordinate pairs after a moveto are linetos
            command = 'l' if relative else 'L'
        else:
            current.append((x, y))

    if current:
        contours.append(current)
    contours = [c for c in contours if len(c) >= 2]
    if not contours:
        raise ValueError(f"Path has no drawable segments: {path!r}")
    return contours


def chart_series(obj: ChartObject) -> Tuple[List[Any], List[Tuple[str, List[Any]]]]:
    """
    Labels and (name, values) series of a chart.

    Accepts {labels, values} or Chart.js style {labels, datasets: [{label, data}]}.

    Raises:
        ObjectEncodingError: If no series carries data
    """
    data = obj.data or {}
    labels = list(data.get('labels') or [])
    datasets = data.get('datasets')
    if datasets:
        series = [
            (str(ds.get('label') or f"Series {i + 1}"), list(ds.get('data') or []))
            for i, ds in enumerate(datasets) if isinstance(ds, dict)
        ]
    else:
        series = [(str(data.get('label') or 'Series 1'), list(data.get('values') or []))]

    series = [(name, values) for name, values in series if values]
    if not series:
        raise ObjectEncodingError(f"Chart {obj.id} has no data", obj.id)
    return labels, series


def chart_number(value: Any, obj: ChartObject) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ObjectEncodingError(f"Chart {obj.id} has a non-numeric value: {value!r}", obj.id)


class ElementRenderer:
    """
    Renders slide objects to PowerPoint shapes.
    """

    def __init__(self, style_mapper: StyleMapper, coordinate_mapper: CoordinateMapper,
                 asset_loader: AssetLoader, config: Dict[str, Any] = None):
        """
        Initialize Element Renderer.

        Args:
            style_mapper: StyleMapper instance
            coordinate_mapper: The export's single pixel-to-EMU mapper
            asset_loader: Loader for image sources
            config: Full configuration or its 'deck' section
        """
        config = config or {}
        deck_config = config.get('deck', config)
        self.style_mapper = style_mapper
        self.mapper = coordinate_mapper
        self.asset_loader = asset_loader

        self.shape_default_fill = deck_config.get('shape_default_fill', '#FFFFFF')
        self.placeholder_fill = deck_config.get('placeholder_fill', '#E0E0E0')
        self.placeholder_stroke = deck_config.get('placeholder_stroke', '#BDBDBD')
        self.placeholder_text = deck_config.get('placeholder_text', '#757575')
        self.chart_colors = deck_config.get('chart_colors') or DEFAULT_CHART_COLORS
        self.table_header_background = deck_config.get('table_header_background', '#F0F0F0')
        self.table_border_color = deck_config.get('table_border_color', '#CCCCCC')
        self.table_text_role = deck_config.get('table_text_role', 'bodySmall')

    # Geometry helpers

    @staticmethod
    def _box(obj: SlideObjectUnion) -> Coordinates:
        """Object box after the transform's scale, which CSS applies about the centre."""
        transform = obj.transform
        if transform is not None and transform.scale not in (None, 1):
            return scale_about_center(obj.coordinates, transform.scale)
        return obj.coordinates

    def _add_frame(self, box: Coordinates) -> Tuple[int, int, int, int]:
        return self.mapper.box_to_emu(box)

    @staticmethod
    def _apply_rotation(shape, obj: SlideObjectUnion):
        transform = obj.transform
        if transform is None:
            return
        if transform.rotation:
            shape.rotation = float(transform.rotation) % 360
        if transform.skew_x or transform.skew_y:
            logger.debug(f"{obj.id}: skew has no deck equivalent, ignored")

    @staticmethod
    def _opacity(obj: SlideObjectUnion) -> Optional[float]:
        return obj.transform.opacity if obj.transform is not None else None

    def _font_pt(self, px: float) -> Pt:
        return Pt(self.mapper.px_to_pt(px))

    # Text

    def render_text(self, slide, obj: TextObject, hints: Optional[Dict[str, Optional[str]]] = None) -> Any:
        """
        Render a text object, one paragraph per line and one run per bold segment.

        Args:
            slide: PowerPoint slide object
            obj: Text object
            hints: Zone style hints (typographic_role, color_role)

        Returns:
            Created textbox
        """
        hints = hints or {}
        style = self.style_mapper.resolve_text_style(
            obj, hints.get('typographic_role'), hints.get('color_role')
        )
        content = _XML_ILLEGAL.sub('', obj.content or '')

        textbox = slide.shapes.add_textbox(*self._add_frame(self._box(obj)))
        textbox.name = obj.id
        text_frame = textbox.text_frame
        text_frame.word_wrap = True
        text_frame.auto_size = MSO_AUTO_SIZE.NONE
        text_frame.vertical_anchor = MSO_ANCHOR.TOP
        text_frame.margin_left = text_frame.margin_right = 0
        text_frame.margin_top = text_frame.margin_bottom = 0

        font_size = self._font_pt(style.font_size)
        alignment = ALIGNMENTS.get(style.align or 'left', PP_ALIGN.LEFT)

        for index, runs in enumerate(split_paragraphs(parse_bold_runs(content))):
            paragraph = text_frame.paragraphs[0] if index == 0 else text_frame.add_paragraph()
            paragraph.alignment = alignment
            for run_info in runs:
                run = paragraph.add_run()
                run.text = run_info.text
                run.font.size = font_size
                run.font.bold = run_info.bold or style.bold
                run.font.italic = style.italic
                if style.color is not None:
                    run.font.color.rgb = RGBColor(*style.color)
                set_run_font_xml(run, style.font_name)

        self._apply_rotation(textbox, obj)
        return textbox

    # Images

    def render_image(self, slide, obj: ImageObject) -> Any:
        """
        Render an image object.

        Placeholder sources become a placeholder box. Real images keep their
        aspect ratio according to `fit`.

        Args:
            slide: PowerPoint slide object
            obj: Image object

        Returns:
            Created picture (or placeholder shape)

        Raises:
            AssetLoadError: If the image cannot be fetched or decoded
        """
        src = obj.effective_src
        if self.asset_loader.is_placeholder(src):
            label = obj.alt or self.asset_loader.placeholder_label(src)
            return self.render_placeholder(slide, obj, label)

        image = self.asset_loader.load_image(src, obj.filters)
        box = self._box(obj)
        placed, crop = self.fit_image(box, image.width, image.height, obj.fit)
        logger.debug(f"Image {obj.id}: {image.width}x{image.height} fit={obj.fit} -> "
                     f"({placed.x:.1f}, {placed.y:.1f}, {placed.width:.1f}x{placed.height:.1f})")

        picture = slide.shapes.add_picture(image.stream, *self._add_frame(placed))
        picture.name = obj.id
        if crop is not None:
            picture.crop_left, picture.crop_top, picture.crop_right, picture.crop_bottom = crop
        self._apply_rotation(picture, obj)
        return picture

    @staticmethod
    def fit_image(box: Coordinates, natural_width: float, natural_height: float,
                  fit: str) -> Tuple[Coordinates, Optional[Tuple[float, float, float, float]]]:
        """
        Placement box and optional (left, top, right, bottom) crop fractions
        for an image of the given natural size.
        """
        aspect = natural_width / natural_height
        if fit == 'fill':
            return box, None
        if fit == 'cover':
            return box, cover_crop(box, aspect)
        if fit == 'none':
            width = min(natural_width, box.width)
            height = min(natural_height, box.height)
            crop_x = max(0.0, (natural_width - box.width) / 2 / natural_width)
            crop_y = max(0.0, (natural_height - box.height) / 2 / natural_height)
            crop = (crop_x, crop_y, crop_x, crop_y) if crop_x or crop_y else None
            return center_box(box, width, height), crop
        if fit == 'scale-down' and natural_width <= box.width and natural_height <= box.height:
            return center_box(box, natural_width, natural_height), None
        return contain_box(box, aspect), None

    # Shapes

    def render_shape(self, slide, obj: ShapeObject, warn: Optional[WarnCallback] = None) -> Any:
        """
        Render a shape object.

        Args:
            slide: PowerPoint slide object
            obj: Shape object
            warn: Receives (code, message) for recoverable degradations

        Returns:
            Created shape object
        """
        box = self._box(obj)
        kind = obj.shape or 'rectangle'
        stroke_pt = self.mapper.px_to_pt(obj.stroke_width) if obj.stroke_width is not None else None

        if kind == 'line':
            return self._render_line(slide, obj, box, stroke_pt)

        if kind == 'custom' and obj.custom_path:
            try:
                contours = parse_svg_path(obj.custom_path)
            except ValueError as e:
                if warn:
                    warn('invalid_path', f"{e}; drawn as rectangle")
            else:
                return self._render_freeform(slide, obj, box, contours, stroke_pt)

        mso_shape = SHAPE_TYPES.get(kind)
        if mso_shape is None:
            if kind != 'custom' and warn:
                warn('unknown_shape', f"Unknown shape '{kind}', drawn as rectangle")
            mso_shape = MSO_SHAPE.RECTANGLE

        shape = slide.shapes.add_shape(mso_shape, *self._add_frame(box))
        shape.name = obj.id
        self.style_mapper.apply_shape_style(
            shape, obj.fill or self.shape_default_fill, obj.stroke, stroke_pt, self._opacity(obj)
        )
        self._apply_rotation(shape, obj)
        return shape

    def _render_line(self, slide, obj: ShapeObject, box: Coordinates, stroke_pt: Optional[float]) -> Any:
        begin_x, begin_y = self.mapper.to_emu(box.x), self.mapper.to_emu(box.y)
        end_x, end_y = self.mapper.to_emu(box.right), self.mapper.to_emu(box.bottom)
        connector = slide.shapes.add_connector(MSO_CONNECTOR.STRAIGHT, begin_x, begin_y, end_x, end_y)
        connector.name = obj.id

        parsed = self.style_mapper.parse_color(obj.stroke or obj.fill or self.style_mapper.palette['text'])
        if parsed is not None:
            connector.line.color.rgb = RGBColor(*parsed[0])
            opacity = parsed[1] * (self._opacity(obj) if self._opacity(obj) is not None else 1.0)
            if opacity < 1:
                set_solid_fill_alpha(connector._element.spPr, opacity)
        connector.line.width = Pt(stroke_pt if stroke_pt is not None else 1)
        self._apply_rotation(connector, obj)
        return connector

    def _render_freeform(self, slide, obj: ShapeObject, box: Coordinates,
                         contours: List[List[Tuple[float, float]]], stroke_pt: Optional[float]) -> Any:
        first = contours[0]
        builder = slide.shapes.build_freeform(first[0][0], first[0][1], scale=self.mapper.scale)
        builder.add_line_segments(first[1:], close=True)
        for contour in contours[1:]:
            builder.move_to(*contour[0])
            builder.add_line_segments(contour[1:], close=True)

        shape = builder.convert_to_shape(self.mapper.to_emu(box.x), self.mapper.to_emu(box.y))
        shape.name = obj.id
        self.style_mapper.apply_shape_style(
            shape, obj.fill or self.shape_default_fill, obj.stroke, stroke_pt, self._opacity(obj)
        )
        self._apply_rotation(shape, obj)
        return shape

    # Tables

    def render_table(self, slide, obj: TableObject) -> Any:
        """
        Render a table object.

        A header row exists only when `headers` is given. Ragged rows are
        padded with empty cells; columns share the width equally.

        Args:
            slide: PowerPoint slide object
            obj: Table object

        Returns:
            Created graphic frame

        Raises:
            ObjectEncodingError: If the table has no cells
        """
        headers = list(obj.headers) if obj.headers else []
        rows_data = [list(row) for row in obj.data]
        cols = max([len(headers)] + [len(row) for row in rows_data])
        rows = len(rows_data) + (1 if headers else 0)
        if rows == 0 or cols == 0:
            raise ObjectEncodingError(f"Table {obj.id} has no cells", obj.id)

        logger.info(f"Rendering table {obj.id}: {rows}x{cols}")
        left, top, width, height = self._add_frame(obj.coordinates)
        frame = slide.shapes.add_table(rows, cols, left, top, width, height)
        frame.name = obj.id
        table = frame.table
        table.first_row = bool(headers)

        col_width = width // cols
        for index, column in enumerate(table.columns):
            column.width = Emu(col_width if index < cols - 1 else width - col_width * (cols - 1))
        row_height = height // rows
        for index, row in enumerate(table.rows):
            row.height = Emu(row_height if index < rows - 1 else height - row_height * (rows - 1))

        styles = obj.styles
        font_px = self.style_mapper.typography_for(self.table_text_role).get('font_size', 24)
        font_size = self._font_pt(font_px)
        border_color = self.style_mapper.parse_color((styles and styles.border_color) or self.table_border_color)
        border_width = styles.border_width if styles else None

        grid = []
        if headers:
            grid.append((headers, True))
        grid.extend((row, False) for row in rows_data)

        for row_index, (values, is_header) in enumerate(grid):
            background = (styles and styles.header_background) if is_header else (styles and styles.cell_background)
            if is_header and not background:
                background = self.table_header_background
            text_color = (styles and styles.header_text) if is_header else (styles and styles.cell_text)

            for col_index in range(cols):
                value = values[col_index] if col_index < len(values) else ''
                cell = table.cell(row_index, col_index)
                cell.text = _XML_ILLEGAL.sub('', '' if value is None else str(value))
                cell.vertical_anchor = MSO_ANCHOR.MIDDLE

                if background:
                    self.style_mapper.apply_fill(cell.fill, background)
                for paragraph in cell.text_frame.paragraphs:
                    for run in paragraph.runs:
                        run.font.size = font_size
                        run.font.bold = is_header
                        parsed = self.style_mapper.parse_color(text_color)
                        if parsed is not None:
                            run.font.color.rgb = RGBColor(*parsed[0])

                if border_width and border_color is not None:
                    width_emu = self.mapper.to_emu(border_width)
                    set_cell_border(cell, self.style_mapper.rgb_to_hex(border_color[0]), width_emu)

        return frame

    # Charts

    def render_chart(self, slide, obj: ChartObject, warn: Optional[WarnCallback] = None) -> Any:
        """
        Render a chart object.

        `data` is either {labels, values} or Chart.js style
        {labels, datasets: [{label, data}]}.

        Args:
            slide: PowerPoint slide object
            obj: Chart object
            warn: Receives (code, message) for recoverable degradations

        Returns:
            Created graphic frame

        Raises:
            ObjectEncodingError: If the chart has no usable data
        """
        chart_type = CHART_TYPES.get(obj.chart_type)
        if chart_type is None:
            if warn:
                warn('unknown_chart', f"Unknown chart type '{obj.chart_type}', drawn as bar chart")
            chart_type = XL_CHART_TYPE.COLUMN_CLUSTERED

        labels, series = chart_series(obj)
        if chart_type == XL_CHART_TYPE.PIE:
            series = series[:1]

        if chart_type == XL_CHART_TYPE.XY_SCATTER:
            chart_data = XyChartData()
            for name, values in series:
                xy_series = chart_data.add_series(name)
                for index, value in enumerate(values):
                    if isinstance(value, dict):
                        xy_series.add_data_point(chart_number(value.get('x'), obj), chart_number(value.get('y'), obj))
                    else:
                        x = labels[index] if index < len(labels) else index + 1
                        x = x if isinstance(x, (int, float)) else index + 1
                        xy_series.add_data_point(x, chart_number(value, obj))
        else:
            count = max(len(values) for _, values in series)
            categories = [str(label) for label in labels[:count]]
            categories.extend(str(i + 1) for i in range(len(categories), count))
            chart_data = CategoryChartData()
            chart_data.categories = categories
            for name, values in series:
                numbers = [chart_number(v, obj) for v in values]
                numbers.extend([None] * (count - len(numbers)))
                chart_data.add_series(name, numbers)

        frame = slide.shapes.add_chart(chart_type, *self._add_frame(obj.coordinates), chart_data)
        frame.name = obj.id
        chart = frame.chart
        chart.has_legend = True
        chart.legend.position = XL_LEGEND_POSITION.BOTTOM
        chart.legend.include_in_layout = False

        title = (obj.options or {}).get('title')
        if isinstance(title, dict):
            title = title.get('text') if title.get('display', True) else None
        if title:
            chart.has_title = True
            chart.chart_title.text_frame.text = str(title)

        self._apply_chart_colors(chart, chart_type)
        return frame

    def _apply_chart_colors(self, chart, chart_type):
        colors = [self.style_mapper.parse_color(c) for c in self.chart_colors]
        colors = [c[0] for c in colors if c is not None]
        if not colors:
            return

        plot_series = chart.plots[0].series
        if chart_type == XL_CHART_TYPE.PIE:
            for index, point in enumerate(plot_series[0].points):
                point.format.fill.solid()
                point.format.fill.fore_color.rgb = RGBColor(*colors[index % len(colors)])
            return

        for index, series in enumerate(plot_series):
            rgb = RGBColor(*colors[index % len(colors)])
            if chart_type == XL_CHART_TYPE.XY_SCATTER:
                # Series line stays noFill, else the chart reads back as XY_SCATTER_LINES
                series.marker.format.fill.solid()
                series.marker.format.fill.fore_color.rgb = rgb
            elif chart_type == XL_CHART_TYPE.LINE_MARKERS:
                series.format.line.color.rgb = rgb
                series.marker.format.fill.solid()
                series.marker.format.fill.fore_color.rgb = rgb
            else:
                series.format.fill.solid()
                series.format.fill.fore_color.rgb = rgb

    # Placeholders

    def render_placeholder(self, slide, obj: SlideObjectUnion, label: Optional[str] = None) -> Any:
        """
        Draw a neutral tinted box in place of an object, with optional centred text.

        Args:
            slide: PowerPoint slide object
            obj: Object being replaced
            label: Text shown in the box (alt text or a description)

        Returns:
            Created shape
        """
        shape = slide.shapes.add_shape(MSO_SHAPE.RECTANGLE, *self._add_frame(obj.coordinates))
        shape.name = obj.id
        self.style_mapper.apply_shape_style(shape, self.placeholder_fill, self.placeholder_stroke, 0.75)

        if label:
            text_frame = shape.text_frame
            text_frame.word_wrap = True
            text_frame.vertical_anchor = MSO_ANCHOR.MIDDLE
            paragraph = text_frame.paragraphs[0]
            paragraph.alignment = PP_ALIGN.CENTER
            run = paragraph.add_run()
            run.text = _XML_ILLEGAL.sub('', label)
            font_px = self.style_mapper.typography_for('caption').get('font_size', 20)
            run.font.size = self._font_pt(font_px)
            parsed = self.style_mapper.parse_color(self.placeholder_text)
            if parsed is not None:
                run.font.color.rgb = RGBColor(*parsed[0])
        return shape

    def render_element(self, slide, obj: SlideObjectUnion, hints: Optional[Dict[str, Optional[str]]] = None,
                       warn: Optional[WarnCallback] = None) -> Any:
        """
        Render any object type to the slide.

        Args:
            slide: PowerPoint slide object
            obj: Slide object to render
            hints: Zone style hints for text objects
            warn: Receives (code, message) for recoverable degradations

        Returns:
            Created shape/object

        Raises:
            UnsupportedObjectError: For object types the deck cannot hold
        """
        if isinstance(obj, TextObject):
            return self.render_text(slide, obj, hints)
        elif isinstance(obj, ImageObject):
            return self.render_image(slide, obj)
        elif isinstance(obj, ShapeObject):
            return self.render_shape(slide, obj, warn)
        elif isinstance(obj, TableObject):
            return self.render_table(slide, obj)
        elif isinstance(obj, ChartObject):
            return self.render_chart(slide, obj, warn)
        elif isinstance(obj, VideoObject):
            raise UnsupportedObjectError(f"Video {obj.id} cannot be embedded in a deck export", obj.id)
        elif isinstance(obj, UnsupportedObject):
            raise UnsupportedObjectError(f"Unknown object type '{obj.type}'", obj.id)
        raise UnsupportedObjectError(f"No encoder for {type(obj).__name__}", obj.id)
