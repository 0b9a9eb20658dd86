"""
Tests for image source resolution.
"""

import base64
import io
import unittest
import sys
import tempfile
from pathlib import Path

import httpx
from PIL import Image

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from slidecanvas.errors import AssetLoadError
from slidecanvas.generator.asset_loader import AssetLoader
from slidecanvas.model.slide_model import ImageFilters


def png_bytes(width=40, height=30, color=(200, 30, 30), fmt='PNG'):
    buffer = io.BytesIO()
    Image.new('RGB', (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


def data_url(data, mime='image/png'):
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


class TestPlaceholders(unittest.TestCase):

    def setUp(self):
        self.loader = AssetLoader({'placeholder_markers': ['TBD']})

    def test_placeholder_sources(self):
        for src in (None, '', '   ', 'placeholder', 'about:blank', 'placeholder:hero',
                    '/api/placeholder/400/300', 'TBD'):
            self.assertTrue(self.loader.is_placeholder(src), src)
        self.assertFalse(self.loader.is_placeholder('photo.png'))

    def test_placeholder_label_from_query(self):
        self.assertEqual(AssetLoader.placeholder_label('/api/placeholder/800/450?text=Team%20photo'), 'Team photo')
        self.assertIsNone(AssetLoader.placeholder_label('/api/placeholder/800/450'))
        self.assertIsNone(AssetLoader.placeholder_label('photo.png?text=x'))


class TestLoading(unittest.TestCase):

    def test_data_url(self):
        with AssetLoader() as loader:
            image = loader.load_image(data_url(png_bytes(40, 30)))
        self.assertEqual((image.width, image.height, image.format), (40, 30, 'png'))
        self.assertAlmostEqual(image.aspect_ratio, 4 / 3)

    def test_relative_path_resolves_against_base_dir(self):
        with tempfile.TemporaryDirectory() as tmp:
            Path(tmp, 'pic.jpg').write_bytes(png_bytes(10, 20, fmt='JPEG'))
            with AssetLoader({'assets': {'base_dir': tmp}}) as loader:
                image = loader.load_image('pic.jpg')
        self.assertEqual((image.width, image.height, image.format), (10, 20, 'jpg'))

    def test_missing_file_raises(self):
        with AssetLoader() as loader:
            with self.assertRaises(AssetLoadError) as ctx:
                loader.load_image('/nonexistent/image.png')
        self.assertEqual(ctx.exception.code, 'asset_load_failed')

    def test_undecodable_data_raises(self):
        with AssetLoader() as loader:
            with self.assertRaises(AssetLoadError):
                loader.load_image(data_url(b'not an image'))

    def test_size_limit(self):
        with AssetLoader({'max_bytes': 10}) as loader:
            with self.assertRaises(AssetLoadError):
                loader.fetch(data_url(png_bytes()))

    def test_webp_is_reencoded_as_png(self):
        buffer = io.BytesIO()
        Image.new('RGB', (8, 8), (0, 0, 255)).save(buffer, format='WEBP')
        with AssetLoader() as loader:
            image = loader.load_image(data_url(buffer.getvalue(), 'image/webp'))
        self.assertEqual(image.format, 'png')
        self.assertTrue(image.data.startswith(b'\x89PNG'))

    def test_filters_change_pixels(self):
        with AssetLoader() as loader:
            plain = loader.open_image(data_url(png_bytes(color=(100, 100, 100))))
            dark = loader.open_image(data_url(png_bytes(color=(100, 100, 100))), ImageFilters(brightness=50))
        self.assertEqual(plain.convert('RGB').getpixel((0, 0)), (100, 100, 100))
        self.assertEqual(dark.convert('RGB').getpixel((0, 0)), (50, 50, 50))


class TestHttp(unittest.TestCase):

    def test_fetch_uses_client_and_caches(self):
        calls = []
        payload = png_bytes(16, 9)

        def handler(request):
            calls.append(str(request.url))
            return httpx.Response(200, content=payload)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        loader = AssetLoader({}, client=client)
        first = loader.load_image('https://img.example.com/a.png')
        loader.load_image('https://img.example.com/a.png')
        loader.close()

        self.assertEqual((first.width, first.height), (16, 9))
        self.assertEqual(calls, ['https://img.example.com/a.png'])
        # A caller-supplied client stays open
        self.assertFalse(client.is_closed)
        client.close()

    def test_http_error_becomes_asset_error(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
        with AssetLoader({}, client=client) as loader:
            with self.assertRaises(AssetLoadError):
                loader.fetch('https://img.example.com/missing.png')
        client.close()


if __name__ == '__main__':
    unittest.main()
