"""Styled characters: one terminal cell's glyph plus its active styles."""

from __future__ import annotations

from dataclasses import dataclass

from pi.screen.ansi import (
    TAB_WIDTH,
    AnsiCodeTracker,
    close_codes,
    grapheme_width,
    is_style_code,
    iter_ansi_tokens,
)


@dataclass(frozen=True)
class StyledChar:
    """A single visual cell.

    ``value`` is the grapheme cluster to print (possibly preceded by
    non-style escapes such as APC markers), ``width`` is 1 or 2 and
    ``styles`` holds the normalised SGR / OSC 8 codes active for the cell.
    """

    value: str
    width: int = 1
    styles: tuple[str, ...] = ()


BLANK = StyledChar(" ")


def tokenize(line: str) -> list[StyledChar]:
    """Split an ANSI-styled *line* into styled characters.

    Zero-width clusters are dropped and tabs expand to ``TAB_WIDTH`` blank
    cells.  Escapes that do not carry style are attached to the next
    character; trailing ones are dropped.
    """
    tracker = AnsiCodeTracker()
    pending: list[str] = []
    chars: list[StyledChar] = []

    for token, is_escape in iter_ansi_tokens(line):
        if is_escape:
            if is_style_code(token):
                tracker.process(token)
            else:
                pending.append(token)
            continue

        styles = tracker.active_codes()

        if token == "\t":
            prefix = "".join(pending)
            pending.clear()
            chars.append(StyledChar(prefix + " ", 1, styles))
            chars.extend(StyledChar(" ", 1, styles) for _ in range(TAB_WIDTH - 1))
            continue

        w = grapheme_width(token)
        if w == 0:
            continue

        chars.append(StyledChar("".join(pending) + token, min(w, 2), styles))
        pending.clear()

    return chars


def _transition(current: tuple[str, ...], new: tuple[str, ...]) -> str:
    if all(code in new for code in current):
        return "".join(code for code in new if code not in current)
    return close_codes(current) + "".join(new)


def styled_chars_to_string(chars: list[StyledChar]) -> str:
    """Serialise styled characters back into an ANSI string.

    Only style transitions are emitted, and anything left open at the end
    is closed.
    """
    parts: list[str] = []
    current: tuple[str, ...] = ()

    for ch in chars:
        if ch.styles != current:
            parts.append(_transition(current, ch.styles))
            current = ch.styles
        parts.append(ch.value)

    if current:
        parts.append(close_codes(current))

    return "".join(parts)
