"""
Exporter - One-call entry points for deck and PDF export
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Dict, Any, List, Optional, Sequence, Tuple, Union

from .errors import ModelError
from .export.coordinator import (
    ExportCoordinator, ExportOptions, ExportResult, CancellationToken, ProgressCallback,
)
from .generator.asset_loader import AssetLoader
from .generator.pptx_generator import PPTXGenerator
from .layout.layout_engine import LayoutEngine
from .model.slide_model import Slide, PresentationInfo, slides_from_data
from .model.template import Template, load_template
from .paginator.pdf_generator import PDFGenerator, RenderSlide

logger = logging.getLogger(__name__)


def load_presentation(source: Union[str, Path, Dict[str, Any], List[Any]]) -> Tuple[PresentationInfo, List[Slide]]:
    """
    Load slides and presentation metadata.

    Args:
        source: Path to a JSON file, or already-parsed data. Either a list of
            slides or {"presentation": {...}, "slides": [...]}

    Returns:
        (PresentationInfo, slides)

    Raises:
        ModelError: If the data is not a presentation
    """
    data = source
    if isinstance(source, (str, Path)):
        path = Path(source)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ModelError(f"Cannot read presentation {path}: {e}") from e

    if isinstance(data, dict):
        info = PresentationInfo.from_dict(data.get('presentation'))
        slides = slides_from_data(data.get('slides'))
    else:
        info = PresentationInfo()
        slides = slides_from_data(data)

    logger.info(f"Loaded presentation '{info.title}' with {len(slides)} slides")
    return info, slides


def layout_engine_from_config(config: Dict[str, Any], template: Optional[Template] = None) -> LayoutEngine:
    """Layout engine for the configured template (or the given one)."""
    if template is None:
        template_config = config.get('template') or {}
        path = template_config.get('path')
        if path:
            template = load_template(path, strict=template_config.get('strict', True))
    return LayoutEngine(template)


def _coordinator(backend, config: Dict[str, Any], options: Optional[ExportOptions],
                 info: Optional[PresentationInfo], template: Optional[Template],
                 export_date: Optional[date]) -> ExportCoordinator:
    return ExportCoordinator(
        backend,
        layout_engine=layout_engine_from_config(config, template),
        options=options,
        info=info,
        export_date=export_date,
    )


def export_pptx(slides: Sequence[Slide], info: Optional[PresentationInfo] = None,
                options: Optional[ExportOptions] = None, config: Optional[Dict[str, Any]] = None,
                template: Optional[Template] = None, asset_loader: Optional[AssetLoader] = None,
                on_progress: Optional[ProgressCallback] = None,
                cancel_token: Optional[CancellationToken] = None,
                export_date: Optional[date] = None) -> ExportResult:
    """
    Export slides to a PPTX deck.

    Args:
        slides: Slides in any order
        info: Presentation metadata
        options: Export options
        config: Configuration dictionary
        template: Template overriding the configured one
        asset_loader: Image loader shared with the caller
        on_progress: Progress callback
        cancel_token: Cancellation token
        export_date: Date used by date master elements

    Returns:
        ExportResult holding the deck bytes
    """
    config = config or {}
    backend = PPTXGenerator(config, asset_loader=asset_loader)
    coordinator = _coordinator(backend, config, options, info, template, export_date)
    return coordinator.export(slides, on_progress=on_progress, cancel_token=cancel_token)


def export_pdf(slides: Sequence[Slide], render_slide: Optional[RenderSlide] = None,
               info: Optional[PresentationInfo] = None, options: Optional[ExportOptions] = None,
               config: Optional[Dict[str, Any]] = None, template: Optional[Template] = None,
               on_progress: Optional[ProgressCallback] = None,
               cancel_token: Optional[CancellationToken] = None,
               export_date: Optional[date] = None) -> ExportResult:
    """
    Export slides to a paginated PDF.

    Args:
        slides: Slides in any order
        render_slide: Callable rasterizing one slide; the built-in Pillow
            rasterizer when absent
        info: Presentation metadata
        options: Export options (layout preset, notes, quality)
        config: Configuration dictionary
        template: Template overriding the configured one
        on_progress: Progress callback
        cancel_token: Cancellation token
        export_date: Date used by date master elements

    Returns:
        ExportResult holding the PDF bytes and page count
    """
    config = config or {}
    backend = PDFGenerator(config, render_slide=render_slide)
    coordinator = _coordinator(backend, config, options, info, template, export_date)
    return coordinator.export(slides, on_progress=on_progress, cancel_token=cancel_token)


def export_file(slides: Sequence[Slide], output_path: Union[str, Path], **kwargs) -> ExportResult:
    """
    Export to a file, choosing the backend from the extension (.pptx or .pdf).

    Raises:
        ValueError: For any other extension
    """
    path = Path(output_path)
    suffix = path.suffix.lower()
    if suffix == '.pptx':
        kwargs.pop('render_slide', None)
        result = export_pptx(slides, **kwargs)
    elif suffix == '.pdf':
        kwargs.pop('asset_loader', None)
        result = export_pdf(slides, **kwargs)
    else:
        raise ValueError(f"Unsupported output format '{suffix}', expected .pptx or .pdf")

    if result.data is not None:
        path.write_bytes(result.data)
        logger.info(f"Wrote {path} ({len(result.data)} bytes)")
    return result
