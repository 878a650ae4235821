"""
Text overlay for the composer.

Builds the ffmpeg drawtext filter for the time-boxed disclosure text:
wrapped to a fraction of frame width, sized from text length and frame
height, and shrunk further when it wraps onto too many lines.
"""

import os
import textwrap
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from shared.logging import get_logger
from modules.composer.config import (
    FONT_FALLBACKS,
    OVERLAY_BASE_FONT_SIZE,
    OVERLAY_CHAR_WIDTH_RATIO,
    OVERLAY_DEFAULT_START_FRACTION,
    OVERLAY_FONT_SIZE_LONG,
    OVERLAY_FONT_SIZE_XLONG,
    OVERLAY_LONG_TEXT_CHARS,
    OVERLAY_MAX_LINES,
    OVERLAY_MIN_CHARS_PER_LINE,
    OVERLAY_MIN_FONT_SIZE,
    OVERLAY_REFERENCE_HEIGHT,
    OVERLAY_SHORT_TEXT_CHARS,
    OVERLAY_WIDTH_FRACTION,
    OVERLAY_XLONG_TEXT_CHARS,
)

logger = get_logger("composer.overlay")


@dataclass
class OverlayPlan:
    """Resolved drawtext filter plus the numbers that produced it."""

    filter: str
    start: float
    end: float
    font_size: float
    max_chars: int
    text: str

    @property
    def line_count(self) -> int:
        return self.text.count("\n") + 1


def escape_drawtext(text: str) -> str:
    """
    Escape text for a drawtext text='...' value inside a -vf filtergraph.

    ffmpeg unescapes the value three times: the filtergraph parser (quotes),
    the filter option parser (backslash, quote, colon) and drawtext expansion
    (backslash, percent). Escapes are applied innermost first. Newlines are
    kept as real line breaks.
    """
    # drawtext expansion
    text = text.replace("\\", "\\\\").replace("%", "\\%")
    # option parser
    text = text.replace("\\", "\\\\").replace("'", "\\'").replace(":", "\\:")
    # filtergraph: close the quote, escaped quote, reopen
    return text.replace("'", "'\\''")


def detect_font(candidates: Iterable[str] = FONT_FALLBACKS) -> Optional[str]:
    for path in candidates:
        if os.path.exists(path):
            return path
    logger.warning("No preferred fonts found, using ffmpeg default font")
    return None


def wrap_text(text: str, video_width: int, font_size: float) -> Tuple[str, int]:
    """
    Wrap text to 80% of the frame width.

    Returns:
        (wrapped text, characters per line used for layout)
    """
    total = len(text)
    usable_width = video_width * OVERLAY_WIDTH_FRACTION
    char_width = font_size * OVERLAY_CHAR_WIDTH_RATIO

    if total <= OVERLAY_SHORT_TEXT_CHARS and total * char_width <= usable_width:
        return text, total

    max_chars = int(usable_width / char_width)
    if max_chars >= total:
        return text, total
    max_chars = max(max_chars, OVERLAY_MIN_CHARS_PER_LINE)

    lines = []
    for raw_line in text.split("\n"):
        wrapped = textwrap.wrap(raw_line, width=max_chars, break_long_words=False, break_on_hyphens=False)
        lines.extend(wrapped or [""])
    return "\n".join(lines), max_chars


def base_font_size(text: str) -> float:
    if len(text) > OVERLAY_XLONG_TEXT_CHARS:
        return OVERLAY_FONT_SIZE_XLONG
    if len(text) > OVERLAY_LONG_TEXT_CHARS:
        return OVERLAY_FONT_SIZE_LONG
    return OVERLAY_BASE_FONT_SIZE


def build_overlay(
    text: Optional[str],
    start_time: Optional[float],
    video_duration: float,
    video_width: int,
    video_height: int,
    font_file: Optional[str] = None
) -> Optional[OverlayPlan]:
    """
    Plan a drawtext overlay visible from start_time to the end of the video.

    Returns None when there is nothing to draw: empty text, unknown duration,
    or a start time at or beyond the end.
    """
    text = (text or "").strip()
    if not text:
        return None
    if video_duration <= 0:
        logger.warning("Skipping text overlay (unknown video duration)")
        return None

    start = start_time if start_time and start_time > 0 else video_duration * OVERLAY_DEFAULT_START_FRACTION
    end = video_duration
    if start >= end:
        logger.warning(
            "Skipping text overlay (start time beyond duration)",
            extra={"start": start, "video_duration": end}
        )
        return None

    video_width = video_width if video_width > 0 else 1920
    video_height = video_height if video_height > 0 else 1080

    font_size = max(base_font_size(text) * video_height / OVERLAY_REFERENCE_HEIGHT, OVERLAY_MIN_FONT_SIZE)
    wrapped, max_chars = wrap_text(text, video_width, font_size)

    # Too many lines: shrink until it fits or we reach the minimum size
    while wrapped.count("\n") + 1 > OVERLAY_MAX_LINES and font_size > OVERLAY_MIN_FONT_SIZE:
        font_size = max(font_size * 0.9, OVERLAY_MIN_FONT_SIZE)
        wrapped, max_chars = wrap_text(text, video_width, font_size)

    line_spacing = round(font_size * 8 / 36)
    estimated_width = min(max_chars * font_size * OVERLAY_CHAR_WIDTH_RATIO, float(video_width))

    parts = [f"text='{escape_drawtext(wrapped)}'", f"fontsize={font_size:.2f}"]
    font_file = font_file if font_file is not None else detect_font()
    if font_file:
        parts.append(f"fontfile='{font_file}'")
    parts.extend([
        "fontcolor=white",
        "bordercolor=black",
        "borderw=2",
        f"x=(w-{estimated_width:.2f})/2",
        "y=h-h*0.2",
        f"line_spacing={line_spacing}",
        f"enable='between(t,{start:.2f},{end:.2f})'",
    ])

    return OverlayPlan(
        filter="drawtext=" + ":".join(parts),
        start=start,
        end=end,
        font_size=font_size,
        max_chars=max_chars,
        text=wrapped,
    )
