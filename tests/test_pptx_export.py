"""
End-to-end tests for the slide-deck export backend.
"""

import base64
import io
import unittest
import sys
from datetime import date
from pathlib import Path

from PIL import Image
from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.chart import XL_CHART_TYPE
from pptx.enum.shapes import MSO_SHAPE_TYPE
from pptx.util import Pt

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from slidecanvas.export.coordinator import ExportOptions, CancellationToken
from slidecanvas.exporter import export_pptx
from slidecanvas.model.coordinates import Coordinates
from slidecanvas.model.slide_model import (
    Slide, SlideBackground, TextObject, ImageObject, VideoObject, ShapeObject, TableObject,
    ChartObject, PresentationInfo, Transform,
)
from slidecanvas.model.template import load_template

EMU_PER_PX = 6350


def plain_template():
    return load_template({'id': 'plain', 'layouts': {'custom': {'zones': []}}})


def image_data_url(width, height):
    buffer = io.BytesIO()
    Image.new('RGB', (width, height), (20, 120, 200)).save(buffer, format='PNG')
    return 'data:image/png;base64,' + base64.b64encode(buffer.getvalue()).decode('ascii')


def text(obj_id, content, x=100, y=100, z=0):
    return TextObject(id=obj_id, coordinates=Coordinates(x, y, 600, 100), content=content, z_index=z)


class DeckExportCase(unittest.TestCase):

    def export(self, slides, **kwargs):
        kwargs.setdefault('template', plain_template())
        result = export_pptx(slides, **kwargs)
        self.assertFalse(result.cancelled)
        return result, Presentation(io.BytesIO(result.data))

    @staticmethod
    def shape_names(deck_slide):
        return [shape.name for shape in deck_slide.shapes]

    @staticmethod
    def find(deck_slide, name):
        for shape in deck_slide.shapes:
            if shape.name == name:
                return shape
        return None


class TestDeckStructure(DeckExportCase):

    def test_slides_follow_order_field(self):
        slides = [
            Slide(id='c', order=3, objects=[text('tc', 'Third')]),
            Slide(id='a', order=1, objects=[text('ta', 'First')]),
            Slide(id='b', order=2, objects=[text('tb', 'Second')]),
        ]
        result, deck = self.export(slides)

        self.assertEqual(result.slide_count, 3)
        self.assertEqual(len(deck.slides), 3)
        texts = [deck_slide.shapes[0].text_frame.text for deck_slide in deck.slides]
        self.assertEqual(texts, ['First', 'Second', 'Third'])

    def test_slide_size_is_widescreen(self):
        _, deck = self.export([Slide(id='s')])
        self.assertEqual((deck.slide_width, deck.slide_height), (12192000, 6858000))

    def test_objects_stack_by_z_index(self):
        slide = Slide(id='s', objects=[
            text('top', 'Top', z=5),
            ShapeObject(id='bottom', coordinates=Coordinates(0, 0, 500, 500), fill='#FF0000', z_index=1),
            text('middle', 'Middle', z=3),
        ])
        _, deck = self.export([slide])
        self.assertEqual(self.shape_names(deck.slides[0]), ['bottom', 'middle', 'top'])

    def test_hidden_objects_are_skipped(self):
        slide = Slide(id='s', objects=[text('shown', 'x'), TextObject(
            id='hidden', coordinates=Coordinates(0, 0, 10, 10), content='y', visible=False)])
        _, deck = self.export([slide])
        self.assertEqual(self.shape_names(deck.slides[0]), ['shown'])

    def test_bold_runs_become_separate_runs(self):
        _, deck = self.export([Slide(id='s', objects=[text('t', 'Hello **world**!\nnext')])])
        frame = deck.slides[0].shapes[0].text_frame
        runs = frame.paragraphs[0].runs
        self.assertEqual([r.text for r in runs], ['Hello ', 'world', '!'])
        self.assertEqual([bool(r.font.bold) for r in runs], [False, True, False])
        self.assertEqual(frame.paragraphs[1].runs[0].text, 'next')

    def test_font_size_is_scaled_to_points(self):
        title = TextObject(id='t', coordinates=Coordinates(100, 100, 1600, 200), content='Title', role='title')
        _, deck = self.export([Slide(id='s', objects=[title])])

        run = deck.slides[0].shapes[0].text_frame.paragraphs[0].runs[0]
        self.assertEqual(run.font.size, Pt(48))
        self.assertTrue(run.font.bold)

    def test_geometry_uses_single_scale(self):
        obj = TextObject(id='t', coordinates=Coordinates(960, 540, 480, 270), content='x')
        _, deck = self.export([Slide(id='s', objects=[obj])])
        shape = deck.slides[0].shapes[0]
        self.assertEqual((shape.left, shape.top), (960 * EMU_PER_PX, 540 * EMU_PER_PX))
        self.assertEqual((shape.width, shape.height), (480 * EMU_PER_PX, 270 * EMU_PER_PX))


class TestImages(DeckExportCase):

    def test_contain_fit_centres_narrow_image(self):
        image = ImageObject(id='img', coordinates=Coordinates(100, 100, 800, 450), src=image_data_url(400, 300))
        result, deck = self.export([Slide(id='s', objects=[image])])

        self.assertEqual(result.warnings, [])
        picture = self.find(deck.slides[0], 'img')
        self.assertEqual(picture.width, 600 * EMU_PER_PX)
        self.assertEqual(picture.height, 450 * EMU_PER_PX)
        self.assertEqual(picture.left, 200 * EMU_PER_PX)
        self.assertEqual(picture.top, 100 * EMU_PER_PX)

    def test_cover_fit_crops_symmetrically(self):
        image = ImageObject(id='img', coordinates=Coordinates(0, 0, 800, 400), src=image_data_url(400, 400),
                            fit='cover')
        _, deck = self.export([Slide(id='s', objects=[image])])

        picture = self.find(deck.slides[0], 'img')
        self.assertEqual((picture.width, picture.height), (800 * EMU_PER_PX, 400 * EMU_PER_PX))
        self.assertAlmostEqual(picture.crop_top, 0.25)
        self.assertAlmostEqual(picture.crop_bottom, 0.25)
        self.assertAlmostEqual(picture.crop_left, 0.0)

    def test_scale_down_never_enlarges(self):
        image = ImageObject(id='img', coordinates=Coordinates(100, 100, 800, 450), src=image_data_url(400, 300),
                            fit='scale-down')
        _, deck = self.export([Slide(id='s', objects=[image])])

        picture = self.find(deck.slides[0], 'img')
        self.assertEqual((picture.width, picture.height), (400 * EMU_PER_PX, 300 * EMU_PER_PX))
        self.assertEqual((picture.left, picture.top), (300 * EMU_PER_PX, 175 * EMU_PER_PX))

    def test_hero_variant_is_used(self):
        image = ImageObject(id='img', coordinates=Coordinates(0, 0, 800, 400), src='',
                            variants=['', image_data_url(200, 100)], hero_index=1)
        result, deck = self.export([Slide(id='s', objects=[image])])

        self.assertEqual(result.warnings, [])
        self.assertEqual(self.find(deck.slides[0], 'img').shape_type, MSO_SHAPE_TYPE.PICTURE)

    def test_empty_src_draws_labelled_placeholder(self):
        image = ImageObject(id='img', coordinates=Coordinates(0, 0, 400, 300), src='', alt='Team photo')
        result, deck = self.export([Slide(id='s', objects=[image])])

        self.assertEqual(result.warnings, [])
        shape = self.find(deck.slides[0], 'img')
        self.assertEqual(shape.text_frame.text, 'Team photo')

    def test_unloadable_image_warns_and_draws_placeholder(self):
        image = ImageObject(id='img', coordinates=Coordinates(0, 0, 400, 300), src='/nonexistent/photo.png')
        result, deck = self.export([Slide(id='s', objects=[image, text('after', 'still here', z=1)])])

        self.assertEqual([(w.slide_id, w.object_id, w.code) for w in result.warnings],
                         [('s', 'img', 'asset_load_failed')])
        self.assertEqual(self.find(deck.slides[0], 'img').text_frame.text, '[image]')
        self.assertIsNotNone(self.find(deck.slides[0], 'after'))


class TestOtherObjects(DeckExportCase):

    def test_video_is_reported_and_skipped(self):
        video = VideoObject(id='vid', coordinates=Coordinates(0, 0, 640, 360), src='clip.mp4')
        result, deck = self.export([Slide(id='s', objects=[video, text('t', 'x', z=1)])])

        self.assertEqual([w.code for w in result.warnings], ['unsupported_object'])
        self.assertEqual(self.shape_names(deck.slides[0]), ['t'])

    def test_table_without_headers_has_no_header_row(self):
        table = TableObject(id='tbl', coordinates=Coordinates(100, 100, 900, 300),
                            data=[['a', 'b', 'c'], ['d', 'e']])
        _, deck = self.export([Slide(id='s', objects=[table])])

        frame = self.find(deck.slides[0], 'tbl')
        self.assertTrue(frame.has_table)
        self.assertEqual((len(frame.table.rows), len(frame.table.columns)), (2, 3))
        self.assertFalse(frame.table.first_row)
        self.assertEqual(frame.table.cell(0, 0).text, 'a')
        self.assertEqual(frame.table.cell(1, 2).text, '')

    def test_table_headers_add_a_row(self):
        table = TableObject(id='tbl', coordinates=Coordinates(100, 100, 900, 300),
                            headers=['Name', 'Score'], data=[['Ana', 3]])
        _, deck = self.export([Slide(id='s', objects=[table])])

        table_shape = self.find(deck.slides[0], 'tbl').table
        self.assertEqual(len(table_shape.rows), 2)
        self.assertTrue(table_shape.first_row)
        self.assertEqual(table_shape.cell(1, 1).text, '3')

    def test_charts(self):
        pie = ChartObject(id='pie', coordinates=Coordinates(0, 0, 800, 500), chart_type='pie',
                          data={'labels': ['A', 'B'], 'values': [3, 7]})
        bars = ChartObject(id='bars', coordinates=Coordinates(900, 0, 800, 500), chart_type='bar',
                           data={'labels': ['Q1', 'Q2'], 'datasets': [
                               {'label': 'North', 'data': [1, 2]}, {'label': 'South', 'data': [3, 4]}]},
                           z_index=1)
        _, deck = self.export([Slide(id='s', objects=[pie, bars])])

        pie_chart = self.find(deck.slides[0], 'pie').chart
        self.assertEqual(pie_chart.chart_type, XL_CHART_TYPE.PIE)
        self.assertEqual(list(pie_chart.plots[0].categories), ['A', 'B'])
        bar_chart = self.find(deck.slides[0], 'bars').chart
        self.assertEqual([s.name for s in bar_chart.plots[0].series], ['North', 'South'])

    def test_chart_without_data_becomes_placeholder(self):
        chart = ChartObject(id='c', coordinates=Coordinates(0, 0, 800, 500), chart_type='line', data={})
        result, deck = self.export([Slide(id='s', objects=[chart])])

        self.assertEqual([w.code for w in result.warnings], ['encoding_failed'])
        self.assertIsNotNone(self.find(deck.slides[0], 'c'))

    def test_unknown_shape_falls_back_to_rectangle(self):
        shape = ShapeObject(id='sh', coordinates=Coordinates(0, 0, 100, 100), shape='hexagram')
        result, deck = self.export([Slide(id='s', objects=[shape])])

        self.assertEqual([w.code for w in result.warnings], ['unknown_shape'])
        self.assertIsNotNone(self.find(deck.slides[0], 'sh'))


    def test_transform_rotates_and_scales_about_centre(self):
        obj = ShapeObject(id='sh', coordinates=Coordinates(100, 100, 200, 100), fill='#00FF00',
                          transform=Transform(rotation=390, scale=0.5))
        _, deck = self.export([Slide(id='s', objects=[obj])])

        shape = self.find(deck.slides[0], 'sh')
        self.assertAlmostEqual(shape.rotation, 30.0)
        self.assertEqual((shape.left, shape.top), (150 * EMU_PER_PX, 125 * EMU_PER_PX))
        self.assertEqual(shape.width, 100 * EMU_PER_PX)

    def test_custom_path_becomes_freeform(self):
        obj = ShapeObject(id='tri', coordinates=Coordinates(200, 200, 100, 80), shape='custom',
                          custom_path='M0 0 L100 0 L50 80 Z')
        result, deck = self.export([Slide(id='s', objects=[obj])])

        self.assertEqual(result.warnings, [])
        shape = self.find(deck.slides[0], 'tri')
        self.assertEqual(shape.shape_type, MSO_SHAPE_TYPE.FREEFORM)
        self.assertEqual((shape.left, shape.top), (200 * EMU_PER_PX, 200 * EMU_PER_PX))

    def test_bad_custom_path_warns_and_draws_rectangle(self):
        obj = ShapeObject(id='bad', coordinates=Coordinates(0, 0, 100, 80), shape='custom', custom_path='L 5')
        result, deck = self.export([Slide(id='s', objects=[obj])])

        self.assertEqual([w.code for w in result.warnings], ['invalid_path'])
        self.assertEqual(self.find(deck.slides[0], 'bad').shape_type, MSO_SHAPE_TYPE.AUTO_SHAPE)

    def test_line_spans_box_diagonal(self):
        obj = ShapeObject(id='ln', coordinates=Coordinates(10, 20, 300, 40), shape='line', stroke='#000000')
        _, deck = self.export([Slide(id='s', objects=[obj])])

        line = self.find(deck.slides[0], 'ln')
        self.assertEqual((line.begin_x, line.begin_y), (10 * EMU_PER_PX, 20 * EMU_PER_PX))
        self.assertEqual((line.end_x, line.end_y), (310 * EMU_PER_PX, 60 * EMU_PER_PX))

    def test_scatter_chart_uses_xy_data(self):
        chart = ChartObject(id='xy', coordinates=Coordinates(0, 0, 800, 500), chart_type='scatter',
                            data={'datasets': [{'label': 'Runs', 'data': [{'x': 1, 'y': 2}, {'x': 3, 'y': 5}]}]})
        _, deck = self.export([Slide(id='s', objects=[chart])])

        plot_chart = self.find(deck.slides[0], 'xy').chart
        self.assertEqual(plot_chart.chart_type, XL_CHART_TYPE.XY_SCATTER)
        series = plot_chart.plots[0].series[0]
        self.assertEqual(series.name, 'Runs')
        self.assertEqual(list(series.values), [2.0, 5.0])

    def test_scatter_chart_draws_markers_without_lines(self):
        chart = ChartObject(id='xy', coordinates=Coordinates(0, 0, 800, 500), chart_type='scatter',
                            data={'labels': [1, 2, 3], 'values': [2, 5, 3]})
        _, deck = self.export([Slide(id='s', objects=[chart])])

        plot_chart = self.find(deck.slides[0], 'xy').chart
        self.assertEqual(plot_chart.chart_type, XL_CHART_TYPE.XY_SCATTER)
        series = plot_chart.plots[0].series[0]
        self.assertEqual(list(series.values), [2.0, 5.0, 3.0])
        self.assertEqual(series.marker.format.fill.fore_color.rgb, RGBColor(0x00, 0x88, 0xCC))

    def test_line_applies_rotation_and_opacity(self):
        obj = ShapeObject(id='ln', coordinates=Coordinates(10, 20, 300, 40), shape='line', stroke='#000000',
                          transform=Transform(rotation=45, opacity=0.5))
        _, deck = self.export([Slide(id='s', objects=[obj])])

        line = self.find(deck.slides[0], 'ln')
        self.assertAlmostEqual(line.rotation, 45.0)
        alphas = line._element.spPr.xpath('.//a:ln/a:solidFill/a:srgbClr/a:alpha/@val')
        self.assertEqual(alphas, ['50000'])


class TestSlideLevel(DeckExportCase):

    def test_notes_are_attached(self):
        _, deck = self.export([Slide(id='s', notes='Pause here'), Slide(id='t', order=1)])
        self.assertEqual(deck.slides[0].notes_slide.notes_text_frame.text, 'Pause here')
        self.assertFalse(deck.slides[1].has_notes_slide)

    def test_translucent_background_blends_toward_white(self):
        slide = Slide(id='s', background=SlideBackground('color', '#FF0000', opacity=0.5))
        _, deck = self.export([slide])
        self.assertEqual(deck.slides[0].background.fill.fore_color.rgb, RGBColor(255, 128, 128))

    def test_unsupported_background_warns(self):
        slide = Slide(id='s', background=SlideBackground('video', 'loop.mp4'))
        result, _ = self.export([slide])
        self.assertEqual([(w.slide_id, w.code) for w in result.warnings], [('s', 'unsupported_background')])

    def test_bundled_template_adds_page_numbers(self):
        slides = [Slide(id='a', type='title'), Slide(id='b', type='content', order=1)]
        _, deck = self.export(slides, template=None, export_date=date(2024, 1, 1))

        self.assertIsNone(self.find(deck.slides[0], 'master:pageNumber'))
        page_number = self.find(deck.slides[1], 'master:pageNumber')
        self.assertEqual(page_number.text_frame.text, '2')

    def test_unknown_slide_type_warns_and_exports(self):
        result, deck = self.export([Slide(id='s', type='mystery')])
        self.assertEqual([w.code for w in result.warnings], ['layout_fallback'])
        self.assertEqual(len(deck.slides), 1)


class TestExportLifecycle(DeckExportCase):

    def test_progress_is_monotonic_and_ends_at_one(self):
        seen = []
        self.export([Slide(id=str(i), order=i) for i in range(3)], on_progress=seen.append)
        self.assertEqual(seen, [1 / 3, 2 / 3, 1.0])

    def test_empty_export_reports_completion(self):
        seen = []
        result, deck = self.export([], on_progress=seen.append)
        self.assertEqual(seen, [1.0])
        self.assertEqual(len(deck.slides), 0)
        self.assertEqual(result.slide_count, 0)

    def test_cancel_before_start(self):
        token = CancellationToken()
        token.cancel()
        result = export_pptx([Slide(id='a')], template=plain_template(), cancel_token=token)
        self.assertTrue(result.cancelled)
        self.assertIsNone(result.data)

    def test_cancel_between_slides(self):
        token = CancellationToken()
        seen = []

        def on_progress(fraction):
            seen.append(fraction)
            token.cancel()

        result = export_pptx([Slide(id=str(i), order=i) for i in range(4)], template=plain_template(),
                             on_progress=on_progress, cancel_token=token)
        self.assertTrue(result.cancelled)
        self.assertIsNone(result.data)
        self.assertEqual(result.slide_count, 1)
        self.assertEqual(seen, [0.25])

    def test_filename_and_metadata(self):
        info = PresentationInfo(title='My Deck!', author='Ana', description='Quarterly review', company='Acme')
        result, deck = self.export([Slide(id='s')], info=info)

        self.assertEqual(result.filename, 'My_Deck_.pptx')
        self.assertEqual(result.content_type,
                         'application/vnd.openxmlformats-officedocument.presentationml.presentation')
        props = deck.core_properties
        self.assertEqual((props.title, props.author, props.subject, props.category),
                         ('My Deck!', 'Ana', 'Quarterly review', 'Acme'))

    def test_explicit_filename_wins(self):
        result, _ = self.export([Slide(id='s')], options=ExportOptions(filename='out.pptx'))
        self.assertEqual(result.filename, 'out.pptx')


if __name__ == '__main__':
    unittest.main()
