# frameup/domain/decoration.py
"""
Decoration placement, hit-testing and pointer dragging.

A decoration lives in normalized canvas coordinates: (x, y) is its center as a
fraction of the canvas size. It is drawn as a size x size square
(size = base_size * scale) rotated clockwise by `rotation` degrees about that
center. Pointer coordinates are canvas pixels.
"""
import uuid
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple, Union

import numpy as np
from PIL import Image

Point = Tuple[float, float]
CanvasSize = Tuple[int, int]


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def new_decoration_id() -> str:
    return uuid.uuid4().hex


def rotation_matrix(degrees: float) -> np.ndarray:
    theta = np.deg2rad(degrees)
    c, s = np.cos(theta), np.sin(theta)
    # y axis points down, so a positive angle turns clockwise on screen
    return np.array([[c, -s], [s, c]])


@dataclass(frozen=True)
class Decoration:
    id: str
    source_ref: str
    image: Optional[Image.Image] = field(default=None, repr=False, compare=False)
    x: float = 0.5
    y: float = 0.5
    scale: float = 0.1
    rotation: float = 0.0
    base_size: float = 50.0

    @property
    def size(self) -> float:
        return self.base_size * self.scale

    def center(self, canvas_size: CanvasSize) -> Point:
        return self.x * canvas_size[0], self.y * canvas_size[1]

    def corners(self, canvas_size: CanvasSize) -> np.ndarray:
        """Canvas coordinates of the rotated square, clockwise from top-left."""
        half = self.size / 2
        local = np.array([[-half, -half], [half, -half], [half, half], [-half, half]])
        return local @ rotation_matrix(self.rotation).T + np.array(self.center(canvas_size))

    def to_local(self, point: Point, canvas_size: CanvasSize) -> np.ndarray:
        offset = np.array(point, dtype=float) - np.array(self.center(canvas_size))
        return rotation_matrix(-self.rotation) @ offset


def point_in_decoration(point: Point, decoration: Decoration, canvas_size: CanvasSize) -> bool:
    lx, ly = decoration.to_local(point, canvas_size)
    half = decoration.size / 2
    return bool(abs(lx) <= half and abs(ly) <= half)


def hit_test(point: Point, decorations: Sequence[Decoration], canvas_size: CanvasSize) -> Optional[Decoration]:
    # topmost (last drawn) first
    for decoration in reversed(decorations):
        if point_in_decoration(point, decoration, canvas_size):
            return decoration
    return None


# --- Pointer input ---

@dataclass(frozen=True)
class PointerDown:
    x: float
    y: float


@dataclass(frozen=True)
class PointerMove:
    x: float
    y: float


@dataclass(frozen=True)
class PointerUp:
    x: float = 0.0
    y: float = 0.0


PointerEvent = Union[PointerDown, PointerMove, PointerUp]


@dataclass(frozen=True)
class DragSession:
    target_id: str
    start_x: float
    start_y: float
    pointer_start: Point

    def position_for(self, pointer: Point, canvas_size: CanvasSize) -> Point:
        dx = pointer[0] - self.pointer_start[0]
        dy = pointer[1] - self.pointer_start[1]
        return (_clamp01(self.start_x + dx / canvas_size[0]),
                _clamp01(self.start_y + dy / canvas_size[1]))


@dataclass(frozen=True)
class PointerOutcome:
    drag: Optional[DragSession]
    select: bool = False
    selected_id: Optional[str] = None
    move: Optional[Tuple[str, float, float]] = None


def reduce_pointer(drag: Optional[DragSession], event: PointerEvent,
                   decorations: Sequence[Decoration], canvas_size: CanvasSize) -> PointerOutcome:
    """Pure transition for one pointer event.

    Down selects the topmost hit (or clears the selection) and opens a drag on
    it; Move repositions only the drag target; Up closes the drag.
    """
    if isinstance(event, PointerDown):
        hit = hit_test((event.x, event.y), decorations, canvas_size)
        if hit is None:
            return PointerOutcome(drag=None, select=True, selected_id=None)
        session = DragSession(hit.id, hit.x, hit.y, (event.x, event.y))
        return PointerOutcome(drag=session, select=True, selected_id=hit.id)

    if isinstance(event, PointerMove):
        if drag is None or canvas_size[0] <= 0 or canvas_size[1] <= 0:
            return PointerOutcome(drag=drag)
        if not any(d.id == drag.target_id for d in decorations):
            return PointerOutcome(drag=None)
        x, y = drag.position_for((event.x, event.y), canvas_size)
        return PointerOutcome(drag=drag, move=(drag.target_id, x, y))

    return PointerOutcome(drag=None)
