# frameup/domain/geometry.py
"""
Border geometry: CSS-style shorthand parsing, per-edge layout and canvas sizing.

Every function here is pure. Degenerate inputs are clamped, never raised on.
"""
import math
from typing import NamedTuple, Tuple, Union, Sequence, Optional

ShorthandInput = Union[str, int, float, Sequence, None]


class Edges(NamedTuple):
    top: float
    right: float
    bottom: float
    left: float


class EdgeMetrics(NamedTuple):
    final_widths: Edges
    final_outsets: Edges
    padding: Edges


class Rect(NamedTuple):
    x: float
    y: float
    width: float
    height: float

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


def _to_number(token) -> float:
    try:
        value = float(token)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


def parse_shorthand(raw: ShorthandInput) -> Edges:
    """Expand a 1-4 value shorthand into (top, right, bottom, left).

    "10" -> all sides, "10 20" -> vertical/horizontal, "1 2 3" -> top,
    horizontal, bottom, "1 2 3 4" -> as given. Non-numeric tokens read as 0.
    """
    if raw is None:
        values = []
    elif isinstance(raw, str):
        values = [_to_number(t) for t in raw.split()]
    elif isinstance(raw, (int, float)) and not isinstance(raw, bool):
        values = [_to_number(raw)]
    elif isinstance(raw, (list, tuple)):
        values = [_to_number(v) for v in raw]
    else:
        values = []

    values = values[:4]
    if not values:
        return Edges(0.0, 0.0, 0.0, 0.0)
    if len(values) == 1:
        v = values[0]
        return Edges(v, v, v, v)
    if len(values) == 2:
        v, h = values
        return Edges(v, h, v, h)
    if len(values) == 3:
        top, h, bottom = values
        return Edges(top, h, bottom, h)
    return Edges(*values)


def compute_layout(canvas_w: float, canvas_h: float, width_ratio: float,
                   base_widths: Sequence[float], base_outsets: Sequence[float]) -> EdgeMetrics:
    thickness = min(canvas_w, canvas_h) * width_ratio
    max_base = max(*base_widths, 1)

    final_widths = [thickness * bw / max_base for bw in base_widths]
    final_outsets = [
        fw * bo / bw if bw > 0 else 0.0
        for fw, bw, bo in zip(final_widths, base_widths, base_outsets)
    ]
    padding = [max(fw - fo, 0.0) for fw, fo in zip(final_widths, final_outsets)]

    return EdgeMetrics(Edges(*final_widths), Edges(*final_outsets), Edges(*padding))


def photo_rect(canvas_w: float, canvas_h: float, padding: Optional[Edges] = None) -> Rect:
    if padding is None:
        return Rect(0.0, 0.0, float(canvas_w), float(canvas_h))
    width = max(canvas_w - padding.left - padding.right, 0.0)
    height = max(canvas_h - padding.top - padding.bottom, 0.0)
    return Rect(padding.left, padding.top, width, height)


def fit_canvas_size(width: int, height: int, max_size: int = 2048) -> Tuple[int, int]:
    """Downscale (width, height) so neither axis exceeds max_size.

    The larger axis lands exactly on max_size, the other is floored.
    """
    if width <= max_size and height <= max_size:
        return width, height
    if width >= height:
        return max_size, max(int(height * max_size / width), 1)
    return max(int(width * max_size / height), 1), max_size


def to_pixel_box(rect: Rect) -> Tuple[int, int, int, int]:
    """Round a float rect to a PIL (x0, y0, x1, y1) box."""
    x0, y0 = round(rect.x), round(rect.y)
    x1, y1 = round(rect.x + rect.width), round(rect.y + rect.height)
    return x0, y0, x1, y1
