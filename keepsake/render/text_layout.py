"""
Text layout for keepsake typography.

All helpers are stateless and take a ``measure(text, bold) -> width`` callable,
so layout can be exercised with a fixed-width measurer and rendered with a
real FontPair without changing the algorithm.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from keepsake.render.defaults import ELLIPSIS, LINE_HEIGHT_RATIO

Measure = Callable[[str, bool], float]
MeasureFactory = Callable[[int], Measure]

_BOLD_SPAN = re.compile(r"\*\*(.+?)\*\*", re.DOTALL)
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class Segment:
    text: str
    bold: bool = False


Line = List[Segment]


def line_text(line: Sequence[Segment]) -> str:
    return "".join(seg.text for seg in line)


def measure_segments(segments: Sequence[Segment], measure: Measure) -> float:
    """Width of a mixed-style run: bold pieces with the bold face, the rest regular."""
    return sum(measure(seg.text, seg.bold) for seg in segments)


# --- plain wrap ---

def wrap_text(text: str, max_width: float, measure: Measure) -> List[str]:
    """
    Greedy word wrap that keeps explicit paragraph breaks.

    Blank paragraphs come back as empty lines. A word wider than max_width
    sits alone on its line rather than being split.
    """
    lines: List[str] = []
    for para in text.split("\n"):
        words = para.split()
        if not words:
            lines.append("")
            continue
        cur = ""
        for word in words:
            test = f"{cur} {word}" if cur else word
            if cur and measure(test, False) > max_width:
                lines.append(cur)
                cur = word
            else:
                cur = test
        lines.append(cur)
    return lines


# --- bold segments ---

def parse_bold(text: str) -> List[Segment]:
    """
    Split ``**bold**`` spans out of text.

    Unmatched or empty delimiters stay literal, so joining the segment texts
    gives back the input minus the matched delimiter pairs.
    """
    segments: List[Segment] = []
    pos = 0
    for match in _BOLD_SPAN.finditer(text):
        if match.start() > pos:
            segments.append(Segment(text[pos:match.start()], False))
        segments.append(Segment(match.group(1), True))
        pos = match.end()
    if pos < len(text):
        segments.append(Segment(text[pos:], False))
    return segments


def _merge(pieces: Sequence[Segment]) -> Line:
    merged: Line = []
    for piece in pieces:
        if not piece.text:
            continue
        if merged and merged[-1].bold == piece.bold:
            merged[-1] = Segment(merged[-1].text + piece.text, piece.bold)
        else:
            merged.append(piece)
    return merged


@dataclass
class _Word:
    pieces: List[Segment] = field(default_factory=list)
    # style of the space that precedes this word on a line
    space_bold: bool = False


def _split_words(segments: Sequence[Segment]) -> List[_Word]:
    words: List[_Word] = []
    current: Optional[_Word] = None
    pending_space_bold = False
    for seg in segments:
        for token in re.split(r"( )", seg.text):
            if token == " ":
                if current is not None:
                    words.append(current)
                    current = None
                pending_space_bold = seg.bold
            elif token:
                if current is None:
                    current = _Word(space_bold=pending_space_bold)
                current.pieces.append(Segment(token, seg.bold))
    if current is not None:
        words.append(current)
    return words


def wrap_bold(text: str, max_width: float, measure: Measure) -> List[Line]:
    """
    Word wrap for bold-marked text.

    Whitespace runs, newlines included, collapse to single spaces first, so
    paragraph breaks are not kept. Line breaks are decided on the mixed-style
    width. A bold span that crosses a break stays bold on both lines.
    """
    clean = _WHITESPACE.sub(" ", text).strip()
    if not clean:
        return []

    lines: List[Line] = []
    cur: List[Segment] = []
    for word in _split_words(parse_bold(clean)):
        test = cur + [Segment(" ", word.space_bold)] + word.pieces if cur else list(word.pieces)
        if cur and measure_segments(test, measure) > max_width:
            lines.append(_merge(cur))
            cur = list(word.pieces)
        else:
            cur = test
    if cur:
        lines.append(_merge(cur))
    return lines


# --- truncation ---

def truncate_text(text: str, max_width: float, measure: Measure, bold: bool = False) -> str:
    """Drop trailing characters and append an ellipsis until the text fits, keeping at least two."""
    if measure(text, bold) <= max_width or len(text) <= 2:
        return text
    body = text
    while len(body) > 2 and measure(body + ELLIPSIS, bold) > max_width:
        body = body[:-1]
    return body + ELLIPSIS


# --- auto-fit ---

@dataclass(frozen=True)
class FitTiers:
    """Starting font size by message length: (min_length_exclusive, size) checked in order."""
    tiers: Tuple[Tuple[int, int], ...]
    default: int
    floor: int
    step: int

    def start_size(self, length: int) -> int:
        for threshold, size in self.tiers:
            if length > threshold:
                return size
        return self.default


@dataclass
class TextFit:
    font_size: int
    start_size: int
    lines: list
    line_height: float
    total_height: float
    available_height: float
    clamped: bool = False

    @property
    def shrunk(self) -> bool:
        return self.font_size < self.start_size

    @property
    def fits(self) -> bool:
        return self.total_height <= self.available_height


def _ellipsize_line(line, wrapped_bold: bool):
    if wrapped_bold:
        if not line:
            return [Segment(ELLIPSIS)]
        last = line[-1]
        return line[:-1] + [Segment(last.text.rstrip() + ELLIPSIS, last.bold)]
    return line.rstrip() + ELLIPSIS


def fit_text(
    text: str,
    max_width: float,
    available_height: float,
    tiers: FitTiers,
    measure_for_size: MeasureFactory,
    bold_aware: bool = False,
    reserved_lines: int = 0,
) -> TextFit:
    """
    Shrink-to-fit: start at the length tier, wrap, and step the size down
    until lines (+ reserved_lines) * size * 1.65 fits or the floor is hit.

    At the floor, lines that still overflow are dropped and the last kept
    line is ellipsized, so the block never runs into the footer.
    """
    start = tiers.start_size(len(text))
    size = start

    def layout(font_size: int):
        measure = measure_for_size(font_size)
        if bold_aware:
            lines = wrap_bold(text, max_width, measure)
        else:
            lines = wrap_text(text, max_width, measure)
        line_h = font_size * LINE_HEIGHT_RATIO
        return lines, line_h, (len(lines) + reserved_lines) * line_h

    lines, line_h, total = layout(size)
    while total > available_height and size > tiers.floor:
        size = max(tiers.floor, size - tiers.step)
        lines, line_h, total = layout(size)

    clamped = False
    if total > available_height:
        max_lines = max(0, int(available_height // line_h) - reserved_lines)
        if max_lines < len(lines):
            lines = lines[:max_lines]
            if lines:
                lines[-1] = _ellipsize_line(lines[-1], bold_aware)
            total = (len(lines) + reserved_lines) * line_h
            clamped = True

    return TextFit(
        font_size=size,
        start_size=start,
        lines=lines,
        line_height=line_h,
        total_height=total,
        available_height=available_height,
        clamped=clamped,
    )
