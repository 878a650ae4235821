"""
Unit tests for the disclosure text overlay.
"""

import pytest

from modules.composer.overlay import (
    base_font_size,
    build_overlay,
    detect_font,
    escape_drawtext,
    wrap_text,
)


WHITESPACE = " \n\t\r"


def _get_token(buf, term):
    """Tokenize like ffmpeg av_get_token(): quotes, backslash escapes, trailing whitespace trimmed."""
    out, end, i = [], 0, 0
    while i < len(buf) and buf[i] in WHITESPACE:
        i += 1
    while i < len(buf) and buf[i] not in term:
        c = buf[i]
        i += 1
        if c == "\\" and i < len(buf):
            out.append(buf[i])
            i += 1
            end = len(out)
        elif c == "'":
            while i < len(buf) and buf[i] != "'":
                out.append(buf[i])
                i += 1
            if i < len(buf):
                i += 1
                end = len(out)
        else:
            out.append(c)
    while len(out) > end and out[-1] in WHITESPACE:
        out.pop()
    return "".join(out), buf[i:]


def _drawtext_options(filter_str):
    """Parse a drawtext filter the way ffmpeg does: filtergraph, then option list."""
    name, _, args = filter_str.partition("=")
    assert name == "drawtext"
    args, rest = _get_token(args, "[],;")
    assert rest == ""
    options = {}
    while args:
        key, _, args = args.partition("=")
        options[key], args = _get_token(args, ":")
        args = args[1:]
    return options


def _expand(text):
    """drawtext expansion: backslash yields the next character."""
    out, i = [], 0
    while i < len(text):
        if text[i] == "\\" and i + 1 < len(text):
            i += 1
        else:
            assert text[i] != "%", "stray % would be read as an expansion"
        out.append(text[i])
        i += 1
    return "".join(out)


class TestEscapeDrawtext:
    def test_apostrophe_closes_and_reopens_quote(self):
        assert escape_drawtext("It's") == "It\\'\\''s"

    def test_special_characters(self):
        assert escape_drawtext("It's 50% off: now") == "It\\'\\''s 50\\\\% off\\: now"

    def test_backslash_escaped_for_each_level(self):
        assert escape_drawtext("a\\b") == "a\\\\\\\\b"

    def test_newline_is_kept(self):
        assert escape_drawtext("one\ntwo") == "one\ntwo"

    @pytest.mark.parametrize("text", [
        "Don't drive or operate machinery.",
        "It's 50% off: ask your doctor's office",
        "Path C:\\temp; [1], \"quoted\"",
        "''",
    ])
    def test_filter_parses_back_to_original_text(self, text):
        plan = build_overlay(text, 10, 15.0, 1920, 1080, font_file="")

        options = _drawtext_options(plan.filter)

        assert _expand(options["text"]) == plan.text
        assert options["fontsize"] == "36.00"
        assert options["enable"] == "between(t,10.00,15.00)"
        assert options["line_spacing"] == "8"


class TestFontSize:
    @pytest.mark.parametrize("length,size", [(100, 36), (361, 32), (441, 28)])
    def test_steps_down_with_length(self, length, size):
        assert base_font_size("x" * length) == size


class TestWrapText:
    def test_short_text_is_single_line(self):
        text, max_chars = wrap_text("May cause drowsiness.", 1920, 36)

        assert text == "May cause drowsiness."
        assert max_chars == len("May cause drowsiness.")

    def test_long_text_fits_eighty_percent_of_width(self):
        text = " ".join(["dizziness"] * 30)

        wrapped, max_chars = wrap_text(text, 1920, 36)

        # 1920 * 0.8 / (36 * 0.6)
        assert max_chars == 71
        assert all(len(line) <= 71 for line in wrapped.split("\n"))
        assert wrapped.replace("\n", " ") == text

    def test_minimum_characters_per_line(self):
        _, max_chars = wrap_text("word " * 40, 200, 36)

        assert max_chars == 20


class TestBuildOverlay:
    def test_defaults_to_last_fifth_of_video(self):
        plan = build_overlay("May cause drowsiness.", None, 30.0, 1920, 1080, font_file="")

        assert plan.start == pytest.approx(24.0)
        assert plan.end == 30.0
        assert "enable='between(t,24.00,30.00)'" in plan.filter
        assert "fontsize=36.00" in plan.filter
        assert "fontfile" not in plan.filter

    def test_explicit_start_time(self):
        plan = build_overlay("Ask your doctor.", 12.5, 15.0, 1920, 1080, font_file="")

        assert plan.start == 12.5
        assert "between(t,12.50,15.00)" in plan.filter

    def test_font_file_included(self):
        plan = build_overlay("Ask your doctor.", 10, 15.0, 1920, 1080, font_file="/fonts/DejaVuSans.ttf")

        assert "fontfile='/fonts/DejaVuSans.ttf'" in plan.filter

    def test_font_scales_with_frame_height(self):
        plan = build_overlay("Ask your doctor.", 10, 15.0, 1280, 720, font_file="")

        assert plan.font_size == pytest.approx(24.0)

    def test_font_never_below_minimum(self):
        plan = build_overlay("Ask your doctor.", 10, 15.0, 320, 240, font_file="")

        assert plan.font_size == 18

    @pytest.mark.parametrize("start,duration", [(30.0, 30.0), (45.0, 30.0)])
    def test_start_at_or_beyond_end_is_skipped(self, start, duration):
        assert build_overlay("Ask your doctor.", start, duration, 1920, 1080, font_file="") is None

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_empty_text_is_skipped(self, text):
        assert build_overlay(text, 10, 15.0, 1920, 1080, font_file="") is None

    def test_unknown_duration_is_skipped(self):
        assert build_overlay("Ask your doctor.", None, 0, 1920, 1080, font_file="") is None

    def test_too_many_lines_shrinks_font(self):
        text = " ".join(["nausea"] * 150)

        plan = build_overlay(text, 10, 15.0, 1920, 1080, font_file="")

        assert plan.font_size < 28
        assert plan.font_size >= 18

    def test_wrapped_text_is_escaped(self):
        text = "Common side effects include: " + " ".join(["headache"] * 20)

        plan = build_overlay(text, 10, 15.0, 1920, 1080, font_file="")

        assert plan.line_count > 1
        assert "\n" in plan.filter
        assert "include\\:" in plan.filter
        assert _expand(_drawtext_options(plan.filter)["text"]) == plan.text


def test_detect_font_returns_first_existing(tmp_path):
    font = tmp_path / "font.ttf"
    font.write_bytes(b"")

    assert detect_font([str(tmp_path / "missing.ttf"), str(font)]) == str(font)
    assert detect_font([str(tmp_path / "missing.ttf")]) is None
