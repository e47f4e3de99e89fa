# frameup/domain/renderer.py
import logging
import os
import time
from typing import Optional, Tuple

import psutil
from PIL import Image

from frameup.config.settings import settings
from frameup.delivery.schemas.body import Mode
from frameup.domain.decoration import hit_test
from frameup.domain.editor_state import EditorSnapshot
from frameup.domain.errors import ExportError
from frameup.infrastructure.cv import image_process

# --- Logger setup ---
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False


def render_main(snapshot: EditorSnapshot) -> Image.Image:
    """Photo, border, then decorations in list order."""
    layout = snapshot.layout
    canvas = image_process.new_surface(layout.canvas_size)

    image_process.draw_photo(canvas, snapshot.photo.image, layout.photo_rect)

    border = snapshot.border
    if border is not None and border.image is not None and layout.metrics is not None:
        image_process.draw_border(canvas, border.image, layout.metrics.final_widths, border.config.slice_widths)

    for decoration in snapshot.decorations:
        if decoration.image is None:
            continue
        image_process.draw_decoration(canvas, decoration.image, decoration.center(layout.canvas_size),
                                      decoration.size, decoration.rotation)
    return canvas


def render_overlay(snapshot: EditorSnapshot, color: str = settings.SELECTION_COLOR) -> Image.Image:
    overlay = image_process.new_surface(snapshot.layout.canvas_size)
    selected = snapshot.selected
    if snapshot.mode == Mode.DECORATION and selected is not None:
        image_process.draw_dashed_polygon(overlay, selected.corners(snapshot.layout.canvas_size), color)
    return overlay


class SceneRenderer:
    """Keeps the main and overlay surfaces in sync with the editor state.

    The overlay only ever holds selection chrome; exports read the main
    layer alone.
    """

    def __init__(self, selection_color: str = settings.SELECTION_COLOR):
        self.selection_color = selection_color
        self.main: Optional[Image.Image] = None
        self.overlay: Optional[Image.Image] = None
        self.frames_rendered = 0

    def on_state_change(self, snapshot: EditorSnapshot) -> None:
        self.render_frame(snapshot)

    def render_frame(self, snapshot: EditorSnapshot) -> None:
        if snapshot.layout is None:
            self.main = None
            self.overlay = None
            return
        self.main = render_main(snapshot)
        self.overlay = render_overlay(snapshot, self.selection_color)
        self.frames_rendered += 1

    def preview_image(self) -> Optional[Image.Image]:
        if self.main is None:
            return None
        merged = self.main.copy()
        merged.alpha_composite(self.overlay)
        return merged

    def hit_test(self, point: Tuple[float, float], snapshot: EditorSnapshot) -> Optional[str]:
        if snapshot.layout is None:
            return None
        hit = hit_test(point, snapshot.decorations, snapshot.layout.canvas_size)
        return hit.id if hit else None

    def export_flat_image(self, snapshot: EditorSnapshot) -> bytes:
        if snapshot.layout is None:
            raise ExportError("Nothing to export: no photo loaded.")
        start_time = time.perf_counter()
        png = image_process.encode_png(render_main(snapshot))
        elapsed = time.perf_counter() - start_time
        try:
            memory_mb = psutil.Process(os.getpid()).memory_info().rss / 1024 / 1024
            logger.info(f"Exported {snapshot.layout.canvas_size[0]}x{snapshot.layout.canvas_size[1]} PNG "
                        f"({len(png)} bytes) in {elapsed:.2f}s, memory {memory_mb:.1f}MB")
        except psutil.Error as mem_error:
            logger.warning(f"Could not get memory info: {mem_error}")
        return png
