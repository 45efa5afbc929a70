"""pi-screen: screen compositor for pi terminal UIs."""

# Text engine
from pi.screen.ansi import (
    AnsiCodeTracker,
    fit_to_width,
    slice_by_column,
    strip_ansi,
    visible_width,
    widest_line,
)

# Cell buffer
from pi.screen.buffer import CellBuffer

# Clipping
from pi.screen.clip import Clip, ClipStack, clip_lines

# Configuration
from pi.screen.config import ScreenOptions

# Compositor
from pi.screen.output import (
    ClipOperation,
    Operation,
    Output,
    OutputTransformer,
    RenderResult,
    UnclipOperation,
    WriteOperation,
)

# Pixel transforms
from pi.screen.pixel_transform import (
    PixelRange,
    PixelTransform,
    PixelTransformation,
    PixelTransformHandle,
    PixelTransformRegistry,
    Point,
    apply_pixel_transformations,
    normalize_range,
)

# Styled characters
from pi.screen.styled import StyledChar, styled_chars_to_string, tokenize

__all__ = [
    # Text engine
    "AnsiCodeTracker",
    "fit_to_width",
    "slice_by_column",
    "strip_ansi",
    "visible_width",
    "widest_line",
    # Cell buffer
    "CellBuffer",
    # Clipping
    "Clip",
    "ClipStack",
    "clip_lines",
    # Configuration
    "ScreenOptions",
    # Compositor
    "ClipOperation",
    "Operation",
    "Output",
    "OutputTransformer",
    "RenderResult",
    "UnclipOperation",
    "WriteOperation",
    # Pixel transforms
    "PixelRange",
    "PixelTransform",
    "PixelTransformation",
    "PixelTransformHandle",
    "PixelTransformRegistry",
    "Point",
    "apply_pixel_transformations",
    "normalize_range",
    # Styled characters
    "StyledChar",
    "styled_chars_to_string",
    "tokenize",
]
