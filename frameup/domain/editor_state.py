# frameup/domain/editor_state.py
import logging
import math
from dataclasses import dataclass, field, replace
from typing import List, Optional, Protocol, Sequence, Tuple

from PIL import Image

from frameup.config.settings import settings
from frameup.delivery.schemas.body import (
    BorderConfig, BorderRecord, DecorationConfig, DecorationRecord, Mode, ProjectDocument,
)
from frameup.domain.decoration import (
    Decoration, DragSession, PointerEvent, PointerOutcome, new_decoration_id, reduce_pointer,
)
from frameup.domain.errors import DecorationNotFoundError
from frameup.domain.geometry import EdgeMetrics, Rect, compute_layout, photo_rect

logger = logging.getLogger(__name__)

EDITABLE_DECORATION_FIELDS = ("x", "y", "scale", "rotation")


@dataclass(frozen=True)
class Photo:
    source_ref: str
    image: Image.Image = field(repr=False, compare=False)
    original_size: Tuple[int, int] = (0, 0)

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size


@dataclass(frozen=True)
class BorderAsset:
    id: str
    config: BorderConfig
    source_ref: str
    image: Optional[Image.Image] = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class DecorationAsset:
    id: str
    config: DecorationConfig
    source_ref: str
    image: Optional[Image.Image] = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class SceneLayout:
    canvas_size: Tuple[int, int]
    metrics: Optional[EdgeMetrics]
    photo_rect: Rect


def compute_scene_layout(photo: Optional[Photo], border: Optional[BorderAsset], width_ratio: float) -> Optional[SceneLayout]:
    if photo is None:
        return None
    w, h = photo.size
    if border is None:
        return SceneLayout((w, h), None, photo_rect(w, h))
    metrics = compute_layout(w, h, width_ratio, border.config.widths, border.config.outsets)
    return SceneLayout((w, h), metrics, photo_rect(w, h, metrics.padding))


@dataclass(frozen=True)
class EditorSnapshot:
    photo: Optional[Photo]
    border: Optional[BorderAsset]
    width_ratio: float
    decorations: Tuple[Decoration, ...]
    selected_id: Optional[str]
    mode: Mode
    layout: Optional[SceneLayout]
    version: int = 0

    @property
    def canvas_size(self) -> Optional[Tuple[int, int]]:
        return self.layout.canvas_size if self.layout else None

    @property
    def min_dimension(self) -> float:
        if self.layout is None:
            return settings.FALLBACK_MIN_DIMENSION
        return min(self.layout.canvas_size)

    @property
    def selected(self) -> Optional[Decoration]:
        for decoration in self.decorations:
            if decoration.id == self.selected_id:
                return decoration
        return None

    def to_document(self) -> ProjectDocument:
        border = None
        if self.border is not None:
            border = BorderRecord(id=self.border.id, width_ratio=self.width_ratio)
        return ProjectDocument(
            image_ref=self.photo.source_ref if self.photo else None,
            border=border,
            decorations=[
                DecorationRecord(id=d.id, source_ref=d.source_ref, x=d.x, y=d.y,
                                 scale=d.scale, rotation=d.rotation, base_size=d.base_size)
                for d in self.decorations
            ],
            mode=self.mode,
        )


class StateSubscriber(Protocol):
    def on_state_change(self, snapshot: EditorSnapshot) -> None: ...


class EditorState:
    """Single owner of one editing session's state.

    Every mutation recomputes the layout and synchronously hands a fresh
    snapshot to each subscriber.
    """

    def __init__(self, width_ratio: float = settings.DEFAULT_WIDTH_RATIO):
        self._photo: Optional[Photo] = None
        self._border: Optional[BorderAsset] = None
        self._width_ratio = _clamp01(width_ratio)
        self._decorations: List[Decoration] = []
        self._selected_id: Optional[str] = None
        self._mode = Mode.IMAGE
        self._drag: Optional[DragSession] = None
        self._subscribers: List[StateSubscriber] = []
        self._version = 0

        self._requested_border_id: Optional[str] = None
        self._requested_image_ref: Optional[str] = None

    # --- Subscribers ---

    def subscribe(self, subscriber: StateSubscriber) -> None:
        if subscriber not in self._subscribers:
            self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: StateSubscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def snapshot(self) -> EditorSnapshot:
        return EditorSnapshot(
            photo=self._photo,
            border=self._border,
            width_ratio=self._width_ratio,
            decorations=tuple(self._decorations),
            selected_id=self._selected_id,
            mode=self._mode,
            layout=compute_scene_layout(self._photo, self._border, self._width_ratio),
            version=self._version,
        )

    def _commit(self, change: str) -> EditorSnapshot:
        self._version += 1
        snapshot = self.snapshot()
        logger.debug(f"State #{self._version} after {change}: {len(self._decorations)} decorations, mode={self._mode.value}")
        for subscriber in list(self._subscribers):
            subscriber.on_state_change(snapshot)
        return snapshot

    # --- Pending loads ---

    def begin_image_request(self, source_ref: Optional[str]) -> None:
        self._requested_image_ref = source_ref

    def is_current_image_request(self, source_ref: str) -> bool:
        return self._requested_image_ref == source_ref

    def begin_border_request(self, border_id: Optional[str]) -> None:
        self._requested_border_id = border_id

    def is_current_border_request(self, border_id: Optional[str]) -> bool:
        return self._requested_border_id == border_id

    # --- Mutations ---

    def set_image(self, photo: Photo) -> EditorSnapshot:
        self._photo = photo
        self._requested_image_ref = photo.source_ref
        self._drag = None
        return self._commit("set_image")

    def set_border(self, border: Optional[BorderAsset], width_ratio: Optional[float] = None) -> EditorSnapshot:
        self._border = border
        self._requested_border_id = border.id if border else None
        if width_ratio is not None:
            self._width_ratio = _clamp01(width_ratio)
        return self._commit("set_border")

    def set_border_width_ratio(self, width_ratio: float) -> EditorSnapshot:
        self._width_ratio = _clamp01(width_ratio)
        return self._commit("set_border_width_ratio")

    def add_decoration(self, source_ref: str, image: Optional[Image.Image], base_size: float,
                       scale: float, decoration_id: Optional[str] = None) -> Decoration:
        decoration = Decoration(
            id=decoration_id or new_decoration_id(),
            source_ref=source_ref,
            image=image,
            scale=scale,
            base_size=base_size,
        )
        self._decorations.append(decoration)
        self._selected_id = decoration.id
        self._commit("add_decoration")
        return decoration

    def update_decoration(self, decoration_id: str, **changes) -> Decoration:
        index = self._index_of(decoration_id)
        unknown = set(changes) - set(EDITABLE_DECORATION_FIELDS)
        if unknown:
            raise ValueError(f"Decoration fields not editable: {sorted(unknown)}")
        changes = {k: v for k, v in changes.items() if v is not None}
        for name, value in changes.items():
            if not math.isfinite(value):
                raise ValueError(f"Decoration {name} must be finite, got {value}.")
        if "x" in changes:
            changes["x"] = _clamp01(changes["x"])
        if "y" in changes:
            changes["y"] = _clamp01(changes["y"])
        if "scale" in changes and not 0 < changes["scale"] <= settings.MAX_DECORATION_SCALE:
            raise ValueError(f"Decoration scale must be in (0, {settings.MAX_DECORATION_SCALE}].")

        previous = self._decorations[index]
        updated = replace(previous, **changes)
        self._decorations[index] = updated
        try:
            self._commit("update_decoration")
        except Exception:
            # keep the last value that rendered
            self._decorations[index] = previous
            raise
        return updated

    def remove_decoration(self, decoration_id: str) -> None:
        index = self._index_of(decoration_id)
        del self._decorations[index]
        if self._selected_id == decoration_id:
            self._selected_id = None
        if self._drag is not None and self._drag.target_id == decoration_id:
            self._drag = None
        self._commit("remove_decoration")

    def select_decoration(self, decoration_id: Optional[str]) -> EditorSnapshot:
        if decoration_id is not None:
            self._index_of(decoration_id)
        self._selected_id = decoration_id
        return self._commit("select_decoration")

    def set_mode(self, mode: Mode) -> EditorSnapshot:
        self._mode = Mode(mode)
        return self._commit("set_mode")

    def reset(self) -> EditorSnapshot:
        self._photo = None
        self._border = None
        self._decorations = []
        self._selected_id = None
        self._drag = None
        self._mode = Mode.IMAGE
        self._requested_border_id = None
        self._requested_image_ref = None
        return self._commit("reset")

    def restore(self, photo: Optional[Photo], border: Optional[BorderAsset], width_ratio: float,
                decorations: Sequence[Decoration], mode: Mode = Mode.IMAGE) -> EditorSnapshot:
        self._photo = photo
        self._border = border
        self._width_ratio = _clamp01(width_ratio)
        self._decorations = list(decorations)
        self._selected_id = None
        self._drag = None
        self._mode = Mode(mode)
        self._requested_image_ref = photo.source_ref if photo else None
        self._requested_border_id = border.id if border else None
        return self._commit("restore")

    def handle_pointer(self, event: PointerEvent) -> Optional[PointerOutcome]:
        layout = compute_scene_layout(self._photo, self._border, self._width_ratio)
        if layout is None:
            return None

        outcome = reduce_pointer(self._drag, event, self._decorations, layout.canvas_size)
        self._drag = outcome.drag
        changed = False
        if outcome.select:
            self._selected_id = outcome.selected_id
            changed = True
        if outcome.move is not None:
            target_id, x, y = outcome.move
            index = self._index_of(target_id)
            self._decorations[index] = replace(self._decorations[index], x=x, y=y)
            changed = True
        if changed:
            self._commit(f"pointer:{type(event).__name__}")
        return outcome

    @property
    def dragging(self) -> Optional[DragSession]:
        return self._drag

    def _index_of(self, decoration_id: str) -> int:
        for i, decoration in enumerate(self._decorations):
            if decoration.id == decoration_id:
                return i
        raise DecorationNotFoundError(f"Decoration '{decoration_id}' not found.")


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))
