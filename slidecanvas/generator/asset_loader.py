"""
Asset Loader - Fetches and prepares image assets for export

One loader belongs to one export call: it owns its HTTP client and cache,
so concurrent exports never share state.
"""

import base64
import io
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional
from urllib.parse import urlparse, parse_qs, unquote_to_bytes

import httpx
from PIL import Image, ImageEnhance, ImageFilter, UnidentifiedImageError

from ..errors import AssetLoadError
from ..model.slide_model import ImageFilters

logger = logging.getLogger(__name__)

DEFAULT_PLACEHOLDER_MARKERS = ('placeholder', 'about:blank')
PLACEHOLDER_PREFIXES = ('placeholder:',)
PLACEHOLDER_PATH = '/api/placeholder/'

# Formats python-pptx can embed as-is
NATIVE_FORMATS = {'PNG': 'png', 'JPEG': 'jpg', 'GIF': 'gif', 'BMP': 'bmp', 'TIFF': 'tiff'}


@dataclass(frozen=True)
class LoadedImage:
    data: bytes
    width: int
    height: int
    format: str

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    @property
    def stream(self) -> io.BytesIO:
        return io.BytesIO(self.data)


class AssetLoader:
    """
    Resolves image sources: data URLs, local files and HTTP(S) URLs.
    """

    def __init__(self, config: Dict[str, Any] = None, client: Optional[httpx.Client] = None):
        """
        Initialize Asset Loader.

        Args:
            config: Full configuration or its 'assets' section
            client: HTTP client to use; one is created (and later closed) if absent
        """
        config = config or {}
        assets_config = config.get('assets', config)
        self.timeout = assets_config.get('timeout', 15.0)
        self.max_bytes = assets_config.get('max_bytes', 20 * 1024 * 1024)
        self.base_dir = Path(assets_config.get('base_dir') or '.')
        self.placeholder_markers = tuple(DEFAULT_PLACEHOLDER_MARKERS) + tuple(
            assets_config.get('placeholder_markers') or ()
        )
        self.user_agent = assets_config.get('user_agent', 'slidecanvas')

        self._client = client
        self._owns_client = client is None
        self._cache: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    # Placeholders

    def is_placeholder(self, src: Optional[str]) -> bool:
        """True for empty sources and known placeholder markers, which are never fetched."""
        if src is None or not src.strip():
            return True
        value = src.strip()
        if value in self.placeholder_markers:
            return True
        if value.startswith(PLACEHOLDER_PREFIXES):
            return True
        return PLACEHOLDER_PATH in value

    @staticmethod
    def placeholder_label(src: Optional[str]) -> Optional[str]:
        """Descriptive text carried by a placeholder URL (its `text` query parameter)."""
        if not src or PLACEHOLDER_PATH not in src:
            return None
        values = parse_qs(urlparse(src).query).get('text')
        return values[0] if values else None

    # Fetching

    def fetch(self, src: str) -> bytes:
        """
        Read the raw bytes behind a source.

        Args:
            src: data: URL, http(s) URL, file:// URL or filesystem path

        Returns:
            Raw bytes

        Raises:
            AssetLoadError: If the asset cannot be read or exceeds max_bytes
        """
        with self._lock:
            cached = self._cache.get(src)
        if cached is not None:
            return cached

        if src.startswith('data:'):
            data = self._decode_data_url(src)
        elif src.startswith(('http://', 'https://')):
            data = self._fetch_http(src)
        else:
            data = self._read_file(src)

        if len(data) > self.max_bytes:
            raise AssetLoadError(f"Asset exceeds {self.max_bytes} bytes: {self._short(src)}")

        with self._lock:
            self._cache[src] = data
        return data

    def _decode_data_url(self, src: str) -> bytes:
        header, sep, payload = src.partition(',')
        if not sep:
            raise AssetLoadError("Malformed data URL")
        try:
            if header.endswith(';base64'):
                return base64.b64decode(payload, validate=False)
            return unquote_to_bytes(payload)
        except ValueError as e:
            raise AssetLoadError(f"Malformed data URL: {e}") from e

    def _fetch_http(self, src: str) -> bytes:
        with self._lock:
            if self._client is None:
                self._client = httpx.Client(
                    timeout=self.timeout,
                    follow_redirects=True,
                    headers={'User-Agent': self.user_agent},
                )
        logger.debug(f"Fetching {src}")
        try:
            response = self._client.get(src)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise AssetLoadError(f"Failed to fetch {self._short(src)}: {e}") from e
        return response.content

    def _read_file(self, src: str) -> bytes:
        path = Path(urlparse(src).path) if src.startswith('file://') else Path(src)
        if not path.is_absolute():
            path = self.base_dir / path
        try:
            return path.read_bytes()
        except OSError as e:
            raise AssetLoadError(f"Cannot read {path}: {e}") from e

    # Images

    def load_image(self, src: str, filters: Optional[ImageFilters] = None) -> LoadedImage:
        """
        Fetch and decode an image, applying CSS-style filters with Pillow.

        Images the deck cannot embed natively (WebP, SVG rasters...) and
        filtered images are re-encoded as PNG.

        Args:
            src: Image source
            filters: Optional brightness/contrast/saturation/blur filters

        Returns:
            LoadedImage with the natural pixel size

        Raises:
            AssetLoadError: If the data cannot be fetched or decoded
        """
        data = self.fetch(src)
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise AssetLoadError(f"Cannot decode image {self._short(src)}: {e}") from e

        width, height = image.size
        if width <= 0 or height <= 0:
            raise AssetLoadError(f"Image has no size: {self._short(src)}")

        source_format = image.format or ''
        needs_filters = filters is not None and not filters.is_identity
        if source_format in NATIVE_FORMATS and not needs_filters:
            return LoadedImage(data, width, height, NATIVE_FORMATS[source_format])

        if needs_filters:
            image = self.apply_filters(image, filters)
        buffer = io.BytesIO()
        if image.mode not in ('RGB', 'RGBA', 'L', 'LA', 'P'):
            image = image.convert('RGBA')
        image.save(buffer, format='PNG')
        logger.debug(f"Re-encoded {source_format or 'image'} {width}x{height} as PNG")
        return LoadedImage(buffer.getvalue(), width, height, 'png')

    @staticmethod
    def apply_filters(image: Image.Image, filters: ImageFilters) -> Image.Image:
        """Apply filters; percentages follow CSS (100 = unchanged)."""
        has_alpha = image.mode in ('RGBA', 'LA') or 'transparency' in image.info
        working = image.convert('RGBA' if has_alpha else 'RGB')

        if filters.brightness not in (None, 100):
            working = ImageEnhance.Brightness(working).enhance(filters.brightness / 100)
        if filters.contrast not in (None, 100):
            working = ImageEnhance.Contrast(working).enhance(filters.contrast / 100)
        if filters.saturation not in (None, 100):
            working = ImageEnhance.Color(working).enhance(filters.saturation / 100)
        if filters.blur:
            working = working.filter(ImageFilter.GaussianBlur(radius=filters.blur))
        return working

    def open_image(self, src: str, filters: Optional[ImageFilters] = None) -> Image.Image:
        """Decoded Pillow image for rasterizing."""
        loaded = self.load_image(src, filters)
        image = Image.open(loaded.stream)
        image.load()
        return image

    @staticmethod
    def _short(src: str) -> str:
        return src if len(src) <= 80 else src[:77] + '...'

    def close(self):
        if self._client is not None and self._owns_client:
            self._client.close()
        self._client = None
        self._cache.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
