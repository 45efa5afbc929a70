"""ANSI-aware text primitives: width measurement and column slicing.

Everything the compositor knows about terminal text lives here.  Strings are
walked as a sequence of escape sequences (zero width, never split) and
grapheme clusters (measured with ``wcwidth`` plus a few emoji heuristics).
"""

from __future__ import annotations

import re
import unicodedata
from typing import Iterator

import grapheme
import wcwidth as _wcwidth


# ---------------------------------------------------------------------------
# Escape sequence patterns
# ---------------------------------------------------------------------------

# CSI: ESC[ <params> <intermediates> <final byte>
_CSI = r"\x1b\[[0-?]*[ -/]*[@-~]"
# OSC: ESC] <payload> (BEL | ST)
_OSC = r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
# APC: ESC_ <payload> (BEL | ST)
_APC = r"\x1b_[^\x07\x1b]*(?:\x07|\x1b\\)"

_ESCAPE_RE = re.compile(f"{_CSI}|{_OSC}|{_APC}")

_SGR_RE = re.compile(r"^\x1b\[[0-9;]*m$")
_OSC8_RE = re.compile(r"^\x1b\]8;([^;\x07\x1b]*);([^\x07\x1b]*)(?:\x07|\x1b\\)$")

RESET = "\x1b[0m"
HYPERLINK_CLOSE = "\x1b]8;;\x07"

TAB_WIDTH = 3


# ---------------------------------------------------------------------------
# Width cache (capped at 512 entries)
# ---------------------------------------------------------------------------

_width_cache: dict[str, int] = {}
_WIDTH_CACHE_MAX = 512


def _cache_width(key: str, value: int) -> int:
    if len(_width_cache) >= _WIDTH_CACHE_MAX:
        _width_cache.clear()
    _width_cache[key] = value
    return value


# ---------------------------------------------------------------------------
# Tokenizing
# ---------------------------------------------------------------------------


def iter_ansi_tokens(text: str) -> Iterator[tuple[str, bool]]:
    """Yield ``(token, is_escape)`` pairs for *text*.

    Escape sequences come out whole; everything between them is split into
    grapheme clusters so that combining marks and ZWJ sequences stay glued
    to their base character.
    """
    pos = 0
    for match in _ESCAPE_RE.finditer(text):
        if match.start() > pos:
            for cluster in grapheme.graphemes(text[pos : match.start()]):
                yield cluster, False
        yield match.group(), True
        pos = match.end()
    if pos < len(text):
        for cluster in grapheme.graphemes(text[pos:]):
            yield cluster, False


def strip_ansi(text: str) -> str:
    """Remove every escape sequence from *text*."""
    return _ESCAPE_RE.sub("", text)


def is_style_code(code: str) -> bool:
    """Return ``True`` for codes that set cell styles (SGR and OSC 8)."""
    return bool(_SGR_RE.match(code) or _OSC8_RE.match(code))


# ---------------------------------------------------------------------------
# Grapheme width
# ---------------------------------------------------------------------------


def grapheme_width(g: str) -> int:
    """Return the terminal display width of a single grapheme cluster.

    Rules:
    1. Tabs count as ``TAB_WIDTH`` columns.
    2. Zero-width characters (control, combining marks, etc.) -> 0
    3. Emoji (VS16, ZWJ sequences, flags, skin tones) -> 2
    4. Otherwise delegate to wcwidth for the first meaningful codepoint.
    """
    if not g:
        return 0

    if len(g) == 1:
        if g == "\t":
            return TAB_WIDTH
        cp = ord(g)
        if cp < 0x20 or (0x7F <= cp <= 0x9F):
            return 0
        return max(_wcwidth.wcwidth(g), 0)

    for ch in g:
        cp = ord(ch)
        if cp == 0xFE0F:  # VS16
            return 2
        if cp == 0x200D:  # ZWJ
            return 2
        if 0x1F3FB <= cp <= 0x1F3FF:  # Skin tone modifiers
            return 2
        if 0x1F1E6 <= cp <= 0x1F1FF:  # Regional indicators
            return 2

    first = g[0]
    first_cp = ord(first)
    if first_cp >= 0x1F000 or 0x2600 <= first_cp <= 0x27BF:
        return 2

    cat = unicodedata.category(first)
    if cat.startswith("M") or cat == "Cf":
        return 0

    return max(_wcwidth.wcwidth(first), 0)


# ---------------------------------------------------------------------------
# visible_width / widest_line
# ---------------------------------------------------------------------------


def visible_width(text: str) -> int:
    """Calculate the visible terminal width of *text*.

    Escape sequences count as zero and tabs as ``TAB_WIDTH``.  Pure ASCII
    takes a fast path; other strings are cached.
    """
    if not text:
        return 0

    stripped = _ESCAPE_RE.sub("", text)
    if not stripped:
        return 0

    if stripped.isascii() and stripped.isprintable():
        return len(stripped)

    cached = _width_cache.get(stripped)
    if cached is not None:
        return cached

    total = 0
    for g in grapheme.graphemes(stripped):
        total += grapheme_width(g)

    return _cache_width(stripped, total)


def widest_line(text: str) -> int:
    """Return the visible width of the widest line in *text*."""
    return max((visible_width(line) for line in text.split("\n")), default=0)


# ---------------------------------------------------------------------------
# AnsiCodeTracker
# ---------------------------------------------------------------------------


class AnsiCodeTracker:
    """Track active SGR attributes and an open OSC 8 hyperlink.

    Combined parameters are normalised, so ``ESC[1;31m`` is tracked as the
    two codes ``ESC[1m`` and ``ESC[31m``.  That makes the tuple returned by
    :meth:`active_codes` comparable between characters.
    """

    def __init__(self) -> None:
        self.bold: str | None = None
        self.dim: str | None = None
        self.italic: str | None = None
        self.underline: str | None = None
        self.blink: str | None = None
        self.inverse: str | None = None
        self.hidden: str | None = None
        self.strikethrough: str | None = None
        self.fg_color: str | None = None
        self.bg_color: str | None = None
        self.hyperlink: str | None = None

    def process(self, code: str) -> None:
        """Update tracked state from an SGR or OSC 8 sequence.

        Any other escape sequence is ignored.
        """
        link = _OSC8_RE.match(code)
        if link is not None:
            self.hyperlink = code if link.group(2) else None
            return

        if not _SGR_RE.match(code):
            return

        params_str = code[2:-1]
        if not params_str:
            # ESC[m is equivalent to reset
            self._clear_sgr()
            return

        params = params_str.split(";")
        i = 0
        while i < len(params):
            p = params[i]
            val = int(p) if p else 0

            if val == 0:
                self._clear_sgr()
            elif val == 1:
                self.bold = "\x1b[1m"
            elif val == 2:
                self.dim = "\x1b[2m"
            elif val == 3:
                self.italic = "\x1b[3m"
            elif val == 4:
                self.underline = "\x1b[4m"
            elif val == 5:
                self.blink = "\x1b[5m"
            elif val == 7:
                self.inverse = "\x1b[7m"
            elif val == 8:
                self.hidden = "\x1b[8m"
            elif val == 9:
                self.strikethrough = "\x1b[9m"
            elif val == 22:
                self.bold = None
                self.dim = None
            elif val == 23:
                self.italic = None
            elif val == 24:
                self.underline = None
            elif val == 25:
                self.blink = None
            elif val == 27:
                self.inverse = None
            elif val == 28:
                self.hidden = None
            elif val == 29:
                self.strikethrough = None
            elif 30 <= val <= 37 or 90 <= val <= 97:
                self.fg_color = f"\x1b[{val}m"
            elif val == 39:
                self.fg_color = None
            elif 40 <= val <= 47 or 100 <= val <= 107:
                self.bg_color = f"\x1b[{val}m"
            elif val == 49:
                self.bg_color = None
            elif val in (38, 48):
                color, consumed = _extended_color(val, params, i)
                if color is not None:
                    if val == 38:
                        self.fg_color = color
                    else:
                        self.bg_color = color
                i += consumed

            i += 1

    def _clear_sgr(self) -> None:
        self.bold = None
        self.dim = None
        self.italic = None
        self.underline = None
        self.blink = None
        self.inverse = None
        self.hidden = None
        self.strikethrough = None
        self.fg_color = None
        self.bg_color = None

    def clear(self) -> None:
        """Reset all tracked attributes and close the hyperlink."""
        self._clear_sgr()
        self.hyperlink = None

    def active_codes(self) -> tuple[str, ...]:
        """Return the codes that reactivate the current state, in a stable order."""
        codes = (
            self.bold,
            self.dim,
            self.italic,
            self.underline,
            self.blink,
            self.inverse,
            self.hidden,
            self.strikethrough,
            self.fg_color,
            self.bg_color,
            self.hyperlink,
        )
        return tuple(code for code in codes if code is not None)

    def get_active_codes(self) -> str:
        """Return a string of escape codes that reactivate the current state."""
        return "".join(self.active_codes())

    def has_active_codes(self) -> bool:
        return bool(self.active_codes())

    def get_line_end_reset(self) -> str:
        """Return the sequences that close whatever is currently open."""
        if not self.has_active_codes():
            return ""
        return close_codes(self.active_codes())


def _extended_color(val: int, params: list[str], i: int) -> tuple[str | None, int]:
    """Parse ``38;5;N`` / ``38;2;R;G;B`` (or the 48 variants) at *i*.

    Returns the normalised code and the number of extra params consumed.
    """
    if i + 1 >= len(params):
        return (None, 0)
    mode = int(params[i + 1]) if params[i + 1] else 0
    if mode == 5 and i + 2 < len(params):
        return (f"\x1b[{val};5;{params[i + 2]}m", 2)
    if mode == 2 and i + 4 < len(params):
        r, g, b = params[i + 2], params[i + 3], params[i + 4]
        return (f"\x1b[{val};2;{r};{g};{b}m", 4)
    return (None, 1)


def close_codes(codes: tuple[str, ...] | list[str]) -> str:
    """Return the sequences that turn off every code in *codes*."""
    parts: list[str] = []
    if any(code.startswith("\x1b[") for code in codes):
        parts.append(RESET)
    if any(code.startswith("\x1b]8;") for code in codes):
        parts.append(HYPERLINK_CLOSE)
    return "".join(parts)


# ---------------------------------------------------------------------------
# slice_by_column / fit_to_width
# ---------------------------------------------------------------------------


def slice_by_column(text: str, start: int, end: int | None = None) -> str:
    """Return visible columns ``[start, end)`` of *text*.

    Escape sequences are never split.  Styles active at *start* are
    re-emitted at the head of the slice, and anything still open at the end
    is closed.  A wide glyph straddling either edge is replaced by spaces for
    the columns that fall inside the window, so the result is exactly
    ``min(end, visible_width(text)) - start`` columns wide.
    """
    start = max(start, 0)
    if end is not None and end <= start:
        return ""

    tracker = AnsiCodeTracker()
    parts: list[str] = []
    col = 0
    result_width = 0
    started = False

    for token, is_escape in iter_ansi_tokens(text):
        if end is not None and col >= end:
            break

        if is_escape:
            if col >= start:
                if not started:
                    parts.append(tracker.get_active_codes())
                    started = True
                parts.append(token)
            tracker.process(token)
            continue

        w = grapheme_width(token)
        char_end = col + w

        if w == 0:
            if col >= start and started:
                parts.append(token)
            continue

        if char_end <= start:
            col = char_end
            continue

        if not started:
            parts.append(tracker.get_active_codes())
            started = True

        right = char_end if end is None else min(char_end, end)
        if col < start or right < char_end:
            # Partial overlap with a wide glyph
            overlap = right - max(col, start)
            parts.append(" " * overlap)
            result_width += overlap
        else:
            parts.append(token)
            result_width += w

        col = char_end

    if result_width == 0:
        return ""

    parts.append(tracker.get_line_end_reset())
    return "".join(parts)


def fit_to_width(text: str, width: int) -> str:
    """Truncate or right-pad *text* to exactly *width* visible columns."""
    if width <= 0:
        return ""
    text_width = visible_width(text)
    if text_width > width:
        return slice_by_column(text, 0, width)
    if text_width < width:
        return text + " " * (width - text_width)
    return text
