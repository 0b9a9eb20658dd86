"""
Rich Text - Splits text content on **bold** run markers
"""

import re
from typing import List, NamedTuple

BOLD_PATTERN = re.compile(r'\*\*(.+?)\*\*', re.DOTALL)


class TextRun(NamedTuple):
    text: str
    bold: bool = False


def parse_bold_runs(content: str) -> List[TextRun]:
    """
    Split content into ordered runs.

    Text inside a matched ``**...**`` pair becomes a bold run, everything else
    plain. An unmatched ``**`` stays as literal text. Joining the run texts
    gives the content with the matched markers removed.

    Args:
        content: Text with optional bold markers

    Returns:
        Runs in original order, without empty runs
    """
    runs = []
    position = 0
    for match in BOLD_PATTERN.finditer(content or ''):
        if match.start() > position:
            runs.append(TextRun(content[position:match.start()], False))
        runs.append(TextRun(match.group(1), True))
        position = match.end()
    if content and position < len(content):
        runs.append(TextRun(content[position:], False))
    return runs


def strip_markers(content: str) -> str:
    return ''.join(run.text for run in parse_bold_runs(content))


def split_paragraphs(runs: List[TextRun]) -> List[List[TextRun]]:
    """
    Break runs at newlines into paragraphs. A run spanning a newline is split
    and keeps its weight on both sides.
    """
    paragraphs = [[]]
    for run in runs:
        pieces = run.text.split('\n')
        for i, piece in enumerate(pieces):
            if i > 0:
                paragraphs.append([])
            if piece:
                paragraphs[-1].append(TextRun(piece, run.bold))
    return paragraphs
