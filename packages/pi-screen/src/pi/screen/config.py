"""Screen configuration."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Protocol

logger = logging.getLogger(__name__)

# Used when the output stream reports no width (not a TTY)
DEFAULT_WIDTH = 80
DEFAULT_HEIGHT = 24


class TerminalSize(Protocol):
    """The part of the pi-tui ``Terminal`` protocol the screen needs."""

    @property
    def columns(self) -> int: ...

    @property
    def rows(self) -> int: ...


@dataclass
class ScreenOptions:
    """Size and serialisation options for an ``Output``."""

    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    trim_trailing_whitespace: bool = True

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(
                f"screen size must be non-negative, got {self.width}x{self.height}"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ScreenOptions:
        """Read ``PI_SCREEN_WIDTH``, ``PI_SCREEN_HEIGHT`` and ``PI_SCREEN_NO_TRIM``."""
        env = os.environ if environ is None else environ
        return cls(
            width=_int_env(env, "PI_SCREEN_WIDTH", DEFAULT_WIDTH),
            height=_int_env(env, "PI_SCREEN_HEIGHT", DEFAULT_HEIGHT),
            trim_trailing_whitespace=env.get("PI_SCREEN_NO_TRIM") != "1",
        )

    @classmethod
    def from_terminal(cls, terminal: TerminalSize, height: int | None = None) -> ScreenOptions:
        """Size the screen after *terminal*.

        *height* overrides the terminal's row count, e.g. with the height of
        the laid-out tree.
        """
        width = terminal.columns or DEFAULT_WIDTH
        rows = terminal.rows if height is None else height
        return cls(width=width, height=max(rows, 0))


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.debug("ignoring non-integer %s=%r", name, raw)
        return default
    if value < 0:
        logger.debug("ignoring negative %s=%r", name, raw)
        return default
    return value
