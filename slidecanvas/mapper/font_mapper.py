"""
Font Mapper - Maps CSS font stacks to deck fonts
"""

import logging
from typing import Dict

logger = logging.getLogger(__name__)


class FontMapper:
    """
    Maps web font-family stacks to fonts available in presentation software.
    """

    # Default font mapping
    DEFAULT_FONT_MAP = {
        # Generic CSS families
        'sans-serif': 'Arial',
        'serif': 'Times New Roman',
        'monospace': 'Courier New',
        'system-ui': 'Segoe UI',
        'cursive': 'Comic Sans MS',

        # Web fonts without a desktop install
        'Inter': 'Arial',
        'Roboto': 'Arial',
        'Open Sans': 'Arial',
        'Helvetica': 'Arial',
        'Helvetica Neue': 'Arial',
        '-apple-system': 'Segoe UI',
        'Merriweather': 'Georgia',
        'Playfair Display': 'Georgia',
        'Fira Code': 'Consolas',
        'JetBrains Mono': 'Consolas',
        'Source Code Pro': 'Consolas',

        # Desktop fonts
        'Arial': 'Arial',
        'Calibri': 'Calibri',
        'Georgia': 'Georgia',
        'Segoe UI': 'Segoe UI',
        'Times New Roman': 'Times New Roman',
        'Verdana': 'Verdana',
        'Consolas': 'Consolas',
        'Courier New': 'Courier New',
    }

    def __init__(self, config: Dict = None):
        """
        Initialize Font Mapper.

        Args:
            config: Mapper configuration with optional 'font_mapping' and 'default_font'
        """
        config = config or {}
        self.config = config
        self.font_map = {**self.DEFAULT_FONT_MAP, **(config.get('font_mapping') or {})}
        self._lower_map = {k.lower(): v for k, v in self.font_map.items()}
        self.default_font = config.get('default_font', 'Arial')

    def map_font(self, font_family: str) -> str:
        """
        Map a CSS font-family value to a deck font name.

        The first family in the stack with a mapping wins, matching how a
        browser walks the stack.

        Args:
            font_family: CSS stack such as '"Inter", sans-serif'

        Returns:
            Mapped font name
        """
        if not font_family:
            return self.default_font

        for family in font_family.split(','):
            name = family.strip().strip('"\'')
            if not name:
                continue
            mapped = self._lower_map.get(name.lower())
            if mapped:
                logger.debug(f"Font mapping: '{name}' -> '{mapped}'")
                return mapped

        logger.warning(f"Font mapping: No match found for '{font_family}', using default: {self.default_font}")
        return self.default_font
