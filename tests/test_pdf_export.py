"""
Tests for page layout and the paginated document backend.
"""

import io
import threading
import time
import unittest
import sys
from pathlib import Path

import fitz  # PyMuPDF
from PIL import Image

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from slidecanvas.errors import ExportInitError, ExportSerializationError
from slidecanvas.export.coordinator import ExportOptions, CancellationToken
from slidecanvas.exporter import export_pdf
from slidecanvas.layout.layout_engine import LayoutEngine
from slidecanvas.model.coordinates import Coordinates
from slidecanvas.model.slide_model import (
    Slide, SlideBackground, TextObject, ShapeObject, TableObject, ChartObject, PresentationInfo,
)
from slidecanvas.model.template import load_template
from slidecanvas.paginator.page_layout import (
    PRESETS, POINTS_PER_MM, SLIDE_ASPECT, compute_slots, get_preset, paginate, page_count,
)
from slidecanvas.paginator.pdf_generator import PDFGenerator, wrap_text
from slidecanvas.paginator.slide_rasterizer import SlideRasterizer

A4_PORTRAIT = (595.0, 842.0)
A4_LANDSCAPE = (842.0, 595.0)
COLORS = [(220, 30, 30), (30, 160, 30), (30, 30, 220), (230, 200, 20), (120, 40, 160)]


def plain_template():
    return load_template({'id': 'plain', 'layouts': {'custom': {'zones': []}}})


def solid_renderer(slide, index):
    return Image.new('RGB', (320, 180), COLORS[index % len(COLORS)])


def slides(count, **kwargs):
    return [Slide(id=f"s{i}", order=i, **kwargs) for i in range(count)]


def open_pdf(data):
    return fitz.open(stream=data, filetype='pdf')


class TestPagination(unittest.TestCase):

    def test_paginate(self):
        self.assertEqual(paginate(5, 2), [2, 2, 1])
        self.assertEqual(paginate(4, 4), [4])
        self.assertEqual(paginate(0, 3), [])
        self.assertEqual(page_count(7, 3), 3)
        self.assertEqual(page_count(0, 3), 0)
        with self.assertRaises(ValueError):
            paginate(3, 0)

    def test_pages_hold_every_slide_once(self):
        for preset in PRESETS.values():
            for count in range(0, 11):
                pages = paginate(count, preset.slides_per_page)
                self.assertEqual(sum(pages), count)
                self.assertTrue(all(1 <= n <= preset.slides_per_page for n in pages))
                self.assertEqual(len(pages), page_count(count, preset.slides_per_page))

    def test_unknown_preset(self):
        with self.assertRaises(ExportInitError):
            get_preset('6-slides')


class TestSlots(unittest.TestCase):
    """Slot geometry in points."""

    def test_two_slides_portrait(self):
        slots = compute_slots(*A4_PORTRAIT, PRESETS['2-slides'])
        margin = 10 * POINTS_PER_MM
        spacing = 5 * POINTS_PER_MM
        cell_height = (A4_PORTRAIT[1] - 2 * margin - spacing) / 2

        self.assertEqual(len(slots), 2)
        for slot in slots:
            self.assertAlmostEqual(slot.slide_width / slot.slide_height, SLIDE_ASPECT)
            self.assertIsNone(slot.notes_rect)
        # Width limited: the box spans the usable width
        self.assertAlmostEqual(slots[0].slide_rect[0], margin)
        self.assertAlmostEqual(slots[0].slide_rect[2], A4_PORTRAIT[0] - margin)
        # Top-aligned in each cell
        self.assertAlmostEqual(slots[0].slide_rect[1], margin)
        self.assertAlmostEqual(slots[1].slide_rect[1], margin + cell_height + spacing)

    def test_slots_stay_inside_margins(self):
        margin = 10 * POINTS_PER_MM
        for preset in PRESETS.values():
            size = A4_LANDSCAPE if preset.orientation == 'landscape' else A4_PORTRAIT
            for notes in (False, True):
                for slot in compute_slots(*size, preset, include_notes=notes):
                    x0, y0, x1, y1 = slot.slide_rect
                    self.assertGreaterEqual(x0, margin - 1e-6)
                    self.assertGreaterEqual(y0, margin - 1e-6)
                    self.assertLessEqual(x1, size[0] - margin + 1e-6)
                    self.assertLessEqual(y1, size[1] - margin + 1e-6)

    def test_notes_shrink_slide_and_fill_rest_of_cell(self):
        preset = PRESETS['2-slides']
        plain = compute_slots(*A4_PORTRAIT, preset)
        with_notes = compute_slots(*A4_PORTRAIT, preset, include_notes=True)
        margin = 10 * POINTS_PER_MM
        spacing = 5 * POINTS_PER_MM
        cell_height = (A4_PORTRAIT[1] - 2 * margin - spacing) / 2

        slot = with_notes[0]
        self.assertLess(slot.slide_height, plain[0].slide_height)
        self.assertAlmostEqual(slot.slide_height, cell_height * 0.7)
        self.assertAlmostEqual(slot.notes_rect[1], slot.slide_rect[3])
        self.assertAlmostEqual(slot.notes_rect[3], margin + cell_height)
        # Narrower box is centred horizontally
        left_gap = slot.slide_rect[0] - margin
        right_gap = (A4_PORTRAIT[0] - margin) - slot.slide_rect[2]
        self.assertAlmostEqual(left_gap, right_gap)

    def test_four_slides_grid_is_row_major(self):
        slots = compute_slots(*A4_LANDSCAPE, PRESETS['4-slides'])
        self.assertLess(slots[0].slide_rect[0], slots[1].slide_rect[0])
        self.assertAlmostEqual(slots[0].slide_rect[1], slots[1].slide_rect[1])
        self.assertLess(slots[1].slide_rect[1], slots[2].slide_rect[1])

    def test_page_too_small(self):
        with self.assertRaises(ExportInitError):
            compute_slots(40, 40, PRESETS['1-slide'])


class TestWrapText(unittest.TestCase):

    def test_lines_fit_width(self):
        text = "The quick brown fox jumps over the lazy dog " * 5
        lines = wrap_text(text, 120)
        self.assertGreater(len(lines), 1)
        for line in lines:
            self.assertLessEqual(fitz.get_text_length(line, fontname='helv', fontsize=9), 120)
        self.assertEqual(' '.join(lines).split(), text.split())

    def test_long_word_is_broken(self):
        lines = wrap_text('x' * 200, 50)
        self.assertGreater(len(lines), 1)
        self.assertEqual(''.join(lines), 'x' * 200)

    def test_blank_lines_are_kept(self):
        self.assertEqual(wrap_text("one\n\ntwo", 200), ['one', '', 'two'])


class TestPdfExport(unittest.TestCase):

    def export(self, slide_list, **kwargs):
        kwargs.setdefault('template', plain_template())
        kwargs.setdefault('render_slide', solid_renderer)
        return export_pdf(slide_list, **kwargs)

    def test_five_slides_two_per_page(self):
        result = self.export(slides(5), options=ExportOptions(layout='2-slides'))

        self.assertEqual(result.page_count, 3)
        self.assertEqual(result.slide_count, 5)
        doc = open_pdf(result.data)
        self.assertEqual(doc.page_count, 3)
        self.assertEqual([len(page.get_images()) for page in doc], [2, 2, 1])
        # Portrait preset
        self.assertLess(doc[0].rect.width, doc[0].rect.height)
        doc.close()

    def test_single_slide_pages_are_landscape_a4(self):
        result = self.export(slides(2))
        doc = open_pdf(result.data)
        self.assertEqual(doc.page_count, 2)
        self.assertAlmostEqual(doc[0].rect.width, 842, delta=1)
        self.assertAlmostEqual(doc[0].rect.height, 595, delta=1)
        doc.close()

    def test_slide_numbers_are_printed(self):
        result = self.export(slides(4), options=ExportOptions(layout='4-slides'))
        doc = open_pdf(result.data)
        words = [w[4] for w in doc[0].get_text('words')]
        self.assertEqual(sorted(words), ['1', '2', '3', '4'])
        doc.close()

    def test_notes_drawn_only_when_requested(self):
        slide_list = [Slide(id='a', notes='Mention the quarterly figures')]

        with_notes = open_pdf(self.export(slide_list, options=ExportOptions(include_notes=True)).data)
        text = with_notes[0].get_text()
        self.assertIn('Notes:', text)
        self.assertIn('Mention the quarterly figures', text)
        with_notes.close()

        without = open_pdf(self.export(slide_list).data)
        self.assertNotIn('Notes:', without[0].get_text())
        without.close()

    def test_long_notes_are_truncated(self):
        notes = ' '.join(f"word{i}" for i in range(3000))
        result = self.export([Slide(id='a', notes=notes)],
                             options=ExportOptions(layout='4-slides', include_notes=True))
        doc = open_pdf(result.data)
        text = doc[0].get_text()
        self.assertIn('...', text)
        self.assertNotIn('word2999', text)
        doc.close()

    def test_metadata_and_filename(self):
        info = PresentationInfo(title='Handout 2024', author='Ana')
        result = self.export(slides(1), info=info)

        self.assertEqual(result.filename, 'Handout_2024.pdf')
        self.assertEqual(result.content_type, 'application/pdf')
        doc = open_pdf(result.data)
        self.assertEqual(doc.metadata['title'], 'Handout 2024')
        self.assertEqual(doc.metadata['author'], 'Ana')
        doc.close()

    def test_empty_export_fails(self):
        with self.assertRaises(ExportSerializationError):
            self.export([])

    def test_unknown_layout_fails_before_rendering(self):
        calls = []

        def render(slide, index):
            calls.append(index)
            return solid_renderer(slide, index)

        with self.assertRaises(ExportInitError):
            self.export(slides(2), render_slide=render, options=ExportOptions(layout='9-slides'))
        self.assertEqual(calls, [])

    def test_render_failure_keeps_page_and_warns(self):
        def render(slide, index):
            if index == 1:
                raise RuntimeError('renderer crashed')
            return solid_renderer(slide, index)

        result = self.export(slides(3), render_slide=render)

        self.assertEqual([(w.slide_id, w.code) for w in result.warnings], [('s1', 'render_failed')])
        doc = open_pdf(result.data)
        self.assertEqual(doc.page_count, 3)
        self.assertIn('could not be rendered', doc[1].get_text())
        self.assertEqual(len(doc[1].get_images()), 0)
        doc.close()

    def test_renderer_may_return_encoded_bytes(self):
        def render(slide, index):
            buffer = io.BytesIO()
            Image.new('RGBA', (160, 90), (0, 0, 0, 0)).save(buffer, format='PNG')
            return buffer.getvalue()

        result = self.export(slides(1), render_slide=render)
        self.assertEqual(result.warnings, [])
        self.assertEqual(open_pdf(result.data)[0].get_images()[0][2:4], (160, 90))

    def test_parallel_rendering_keeps_slide_order(self):
        active = []
        peak = []
        lock = threading.Lock()

        def render(slide, index):
            with lock:
                active.append(index)
                peak.append(len(active))
            # Later slides finish first
            time.sleep(0.02 * (5 - index))
            with lock:
                active.remove(index)
            return solid_renderer(slide, index)

        result = self.export(slides(5), render_slide=render, config={'pdf': {'render_workers': 2}})

        self.assertGreater(max(peak), 1)
        doc = open_pdf(result.data)
        for index, page in enumerate(doc):
            pixmap = page.get_pixmap()
            center = pixmap.pixel(pixmap.width // 2, pixmap.height // 3)
            for got, expected in zip(center, COLORS[index]):
                self.assertAlmostEqual(got, expected, delta=25)
        doc.close()

    def test_progress_and_cancel(self):
        token = CancellationToken()
        seen = []

        def on_progress(fraction):
            seen.append(fraction)
            if len(seen) == 2:
                token.cancel()

        result = self.export(slides(4), on_progress=on_progress, cancel_token=token)
        self.assertTrue(result.cancelled)
        self.assertIsNone(result.data)
        self.assertEqual(seen, [0.25, 0.5])

    def test_object_encoding_is_left_to_the_slide_renderer(self):
        generator = PDFGenerator({}, render_slide=solid_renderer)
        slide = Slide(id='s', objects=[ShapeObject(id='box', coordinates=Coordinates(0, 0, 10, 10))])
        self.assertFalse(generator.object_dispatch)
        self.assertIsNone(generator.encode_object(slide.objects[0], slide, None))
        self.assertIsNone(generator.encode_placeholder(slide.objects[0], slide, None, 'reason'))

    def test_jpeg_flattens_transparency_onto_white(self):
        jpeg = PDFGenerator._to_jpeg(Image.new('RGBA', (20, 20), (0, 0, 0, 0)), 0.9)
        decoded = Image.open(io.BytesIO(jpeg))
        self.assertEqual(decoded.format, 'JPEG')
        for channel in decoded.convert('RGB').getpixel((10, 10)):
            self.assertGreater(channel, 245)


class TestBuiltInRasterizer(unittest.TestCase):

    def setUp(self):
        self.config = {'pdf': {'raster_scale': 0.25}}

    def rasterizer(self):
        return SlideRasterizer(self.config, LayoutEngine(plain_template()))

    def test_draws_background_and_shapes(self):
        slide = Slide(id='s', background=SlideBackground('color', '#FF0000'), objects=[
            ShapeObject(id='box', coordinates=Coordinates(0, 0, 960, 1080), fill='#0000FF'),
        ])
        rasterizer = self.rasterizer()
        image = rasterizer(slide, 0)
        rasterizer.close()

        self.assertEqual(image.size, (480, 270))
        self.assertEqual(image.mode, 'RGB')
        self.assertEqual(image.getpixel((100, 135)), (0, 0, 255))
        self.assertEqual(image.getpixel((400, 135)), (255, 0, 0))

    def test_every_object_type_renders(self):
        slide = Slide(id='s', objects=[
            TextObject(id='t', coordinates=Coordinates(100, 100, 800, 200), content='Hello **world**',
                       role='title'),
            ShapeObject(id='c', coordinates=Coordinates(1000, 100, 200, 200), shape='circle', fill='accent'),
            ShapeObject(id='l', coordinates=Coordinates(1300, 100, 300, 0.5), shape='line', stroke='#000000'),
            ShapeObject(id='p', coordinates=Coordinates(1600, 100, 200, 200), shape='custom',
                        custom_path='M 0 0 L 200 0 L 100 200 Z'),
            TableObject(id='tb', coordinates=Coordinates(100, 400, 800, 300), headers=['A', 'B'],
                        data=[[1, 2], [3, 4]]),
            ChartObject(id='ch', coordinates=Coordinates(1000, 400, 800, 500), chart_type='bar',
                        data={'labels': ['x', 'y'], 'values': [3, 5]}),
        ])
        rasterizer = self.rasterizer()
        image = rasterizer(slide, 0)
        rasterizer.close()

        self.assertEqual(image.size, (480, 270))
        # Something other than white was drawn
        self.assertLess(min(image.convert('L').getdata()), 200)

    def test_bad_object_does_not_blank_the_slide(self):
        slide = Slide(id='s', objects=[
            ChartObject(id='broken', coordinates=Coordinates(0, 0, 960, 1080), chart_type='bar',
                        data={'datasets': [{'data': 5}]}),
            ShapeObject(id='box', coordinates=Coordinates(960, 0, 960, 1080), fill='#0000FF', z_index=1),
        ])
        rasterizer = self.rasterizer()
        image = rasterizer(slide, 0)
        rasterizer.close()
        self.assertEqual(image.getpixel((400, 135)), (0, 0, 255))

        result = export_pdf([slide], template=plain_template(), config=self.config)
        self.assertNotIn('render_failed', [w.code for w in result.warnings])
        self.assertEqual(open_pdf(result.data).page_count, 1)

    def test_default_renderer_is_used_by_export(self):
        slide = Slide(id='s', objects=[TextObject(id='t', coordinates=Coordinates(100, 100, 800, 200),
                                                  content='Built-in')])
        result = export_pdf([slide], template=plain_template(), config=self.config)
        self.assertEqual(result.warnings, [])
        self.assertEqual(open_pdf(result.data).page_count, 1)


if __name__ == '__main__':
    unittest.main()
