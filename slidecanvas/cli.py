"""
Command line interface: export a slides JSON file to PPTX or PDF.
"""

import argparse
import logging
import sys
from pathlib import Path

from .config import load_config, setup_logging
from .errors import SlideCanvasError
from .export.coordinator import ExportOptions
from .exporter import load_presentation, export_file
from .model.template import load_template
from .paginator.page_layout import PRESETS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='slidecanvas',
        description='Export canvas slides to PowerPoint or PDF',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py slides.json deck.pptx
  python main.py slides.json handout.pdf --layout 4-slides --notes
  python main.py slides.json deck.pptx --config custom_config.yaml --log-level DEBUG
        """
    )

    parser.add_argument('input', help='Slides JSON file (a list of slides or {"presentation", "slides"})')
    parser.add_argument('output', help='Output file path (.pptx or .pdf)')
    parser.add_argument('--config', help='Path to configuration file')
    parser.add_argument('--template', help='Path to a template YAML file')
    parser.add_argument('--layout', default='1-slide', choices=sorted(PRESETS),
                        help='Slides per PDF page (default: 1-slide)')
    parser.add_argument('--notes', action='store_true', help='Include speaker notes in PDF output')
    parser.add_argument('--quality', type=float, default=0.8,
                        help='Image quality between 0.1 and 1.0 (default: 0.8)')
    parser.add_argument('--log-level', default=None,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: from config, else INFO)')
    return parser


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        setup_logging(args.log_level or 'INFO', None)
        logging.getLogger(__name__).error(f"Cannot load configuration: {e}")
        return 1

    logging_config = config.get('logging') or {}
    setup_logging(args.log_level or logging_config.get('level', 'INFO'), logging_config.get('file'))
    logger = logging.getLogger(__name__)

    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Input file not found: {args.input}")
        return 1
    if not 0.1 <= args.quality <= 1.0:
        logger.error(f"Quality must be between 0.1 and 1.0, got {args.quality}")
        return 1

    assets_config = config.setdefault('assets', {})
    if not assets_config.get('base_dir'):
        assets_config['base_dir'] = str(input_path.resolve().parent)

    try:
        info, slides = load_presentation(input_path)
        template = load_template(args.template) if args.template else None
        options = ExportOptions(
            layout=args.layout,
            include_notes=args.notes,
            quality=args.quality,
            filename=Path(args.output).name,
        )
        result = export_file(
            slides, args.output,
            info=info,
            options=options,
            config=config,
            template=template,
            on_progress=lambda fraction: logger.info(f"Progress: {fraction:.0%}"),
        )
    except (SlideCanvasError, ValueError) as e:
        logger.error(f"Export failed: {e}", exc_info=True)
        return 1

    if result.cancelled:
        logger.error("Export cancelled")
        return 1

    logger.info("=" * 60)
    logger.info("Export complete")
    logger.info(f"Input:    {args.input}")
    logger.info(f"Output:   {args.output}")
    logger.info(f"Slides:   {result.slide_count}")
    if result.page_count is not None:
        logger.info(f"Pages:    {result.page_count}")
    logger.info(f"Warnings: {len(result.warnings)}")
    logger.info("=" * 60)
    return 0


if __name__ == '__main__':
    sys.exit(main())
