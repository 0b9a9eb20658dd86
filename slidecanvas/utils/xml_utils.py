"""
XML Utilities for PowerPoint XML manipulation
"""

import logging
from typing import List, Tuple

from lxml import etree

logger = logging.getLogger(__name__)

A_NS = 'http://schemas.openxmlformats.org/drawingml/2006/main'
NSMAP = {'a': A_NS}

CELL_BORDER_SIDES = ('lnL', 'lnR', 'lnT', 'lnB')


def _qn(tag: str) -> str:
    return f'{{{A_NS}}}{tag}'


def set_run_font_xml(run, font_name: str):
    """
    Set font via XML manipulation at the rPr (run properties) level.

    Sets the Latin, East Asian and complex-script typefaces so every script
    in the run uses the same font, whichever application opens the deck.

    Args:
        run: PowerPoint run object
        font_name: Font name to apply
    """
    rPr = run._r.get_or_add_rPr()

    for tag in ('latin', 'ea', 'cs'):
        existing = rPr.find(f'a:{tag}', NSMAP)
        if existing is not None:
            rPr.remove(existing)

    for tag in ('latin', 'ea', 'cs'):
        elem = etree.SubElement(rPr, _qn(tag))
        elem.set('typeface', font_name)


def set_solid_fill_alpha(parent, opacity: float) -> bool:
    """
    Add an alpha to the first solid sRGB fill under `parent`.

    Alpha in DrawingML is percentage * 1000 (0-100000).

    Args:
        parent: lxml element holding an a:solidFill (spPr, tcPr, ...)
        opacity: 0.0 (transparent) to 1.0 (opaque)

    Returns:
        True if a fill was found and updated
    """
    srgbClr = parent.find('.//a:solidFill/a:srgbClr', NSMAP)
    if srgbClr is None:
        return False

    existing_alpha = srgbClr.find('a:alpha', NSMAP)
    if existing_alpha is not None:
        srgbClr.remove(existing_alpha)

    alpha_value = int(round(max(0.0, min(1.0, opacity)) * 100000))
    alpha_elem = etree.SubElement(srgbClr, _qn('alpha'))
    alpha_elem.set('val', str(alpha_value))
    logger.debug(f"Set XML alpha value: {alpha_value} (opacity: {opacity:.2f})")
    return True


def set_cell_border(cell, hex_color: str, width_emu: int):
    """
    Draw a solid border of one colour and width on all four sides of a table cell.

    Args:
        cell: python-pptx table cell
        hex_color: Colour as RRGGBB without '#'
        width_emu: Line width in EMUs
    """
    tcPr = cell._tc.get_or_add_tcPr()

    for side in CELL_BORDER_SIDES:
        existing = tcPr.find(f'a:{side}', NSMAP)
        if existing is not None:
            tcPr.remove(existing)

    # Borders must precede the cell fill in tcPr
    fill = None
    for tag in ('noFill', 'solidFill', 'gradFill', 'blipFill', 'pattFill', 'grpFill'):
        fill = tcPr.find(f'a:{tag}', NSMAP)
        if fill is not None:
            break

    for side in CELL_BORDER_SIDES:
        ln = etree.Element(_qn(side))
        ln.set('w', str(int(width_emu)))
        solidFill = etree.SubElement(ln, _qn('solidFill'))
        srgbClr = etree.SubElement(solidFill, _qn('srgbClr'))
        srgbClr.set('val', hex_color.upper())
        if fill is not None:
            fill.addprevious(ln)
        else:
            tcPr.append(ln)


def replace_gradient_stops(gsLst, stops: List[Tuple[float, str]]):
    """
    Replace the stops of an a:gsLst element.

    Args:
        gsLst: The a:gsLst element of a gradient fill
        stops: (position 0.0-1.0, RRGGBB) pairs in order
    """
    for gs in list(gsLst):
        gsLst.remove(gs)

    for position, hex_color in stops:
        gs = etree.SubElement(gsLst, _qn('gs'))
        gs.set('pos', str(int(round(max(0.0, min(1.0, position)) * 100000))))
        srgbClr = etree.SubElement(gs, _qn('srgbClr'))
        srgbClr.set('val', hex_color.upper())
