# frameup/infrastructure/cv/image_process.py
from io import BytesIO
import math
from typing import Callable, Optional, Sequence, Tuple

import cv2
import numpy as np
from PIL import Image, ImageDraw

from frameup.domain.errors import AssetLoadError, ExportError
from frameup.domain.geometry import Edges, Rect, fit_canvas_size, to_pixel_box

Box = Tuple[float, float, float, float]
BlitFn = Callable[[Image.Image, Image.Image, Box, Tuple[int, int, int, int]], None]

# Slice used when a border ships no slice configuration
FALLBACK_SLICE_RATIO = 0.25

# Nine-patch cells drawn by draw_border as (row, col); (1, 1) is the center
BORDER_CELLS = [(0, 0), (0, 2), (2, 0), (2, 2), (0, 1), (2, 1), (1, 0), (1, 2)]


def decode_photo(data: bytes, max_side: int = 2048) -> Tuple[Image.Image, Tuple[int, int]]:
    """Decode photo bytes to RGBA, capped at max_side on the larger axis.

    Returns the image and its original (width, height).
    """
    if not data:
        raise AssetLoadError("Photo data is empty.")
    arr = np.frombuffer(data, np.uint8)
    try:
        img = cv2.imdecode(arr, cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise AssetLoadError(f"Photo could not be decoded: {e}") from e
    if img is None:
        raise AssetLoadError("Photo could not be decoded.")

    if img.dtype == np.uint16:
        img = (img >> 8).astype(np.uint8)
    if img.ndim == 2:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
    elif img.shape[2] == 4:
        img = cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
    else:
        img = cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)

    h, w = img.shape[:2]
    target_w, target_h = fit_canvas_size(w, h, max_side)
    if (target_w, target_h) != (w, h):
        img = cv2.resize(img, (target_w, target_h), interpolation=cv2.INTER_AREA)
    return Image.fromarray(img), (w, h)


def decode_asset(data: bytes) -> Image.Image:
    """Decode border or decoration artwork to RGBA."""
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise AssetLoadError(f"Asset image could not be decoded: {type(e).__name__}") from e
    return img.convert("RGBA")


def encode_png(img: Image.Image, optimize: bool = True) -> bytes:
    buf = BytesIO()
    try:
        img.save(buf, format="PNG", optimize=optimize)
    except (OSError, ValueError) as e:
        raise ExportError(f"PNG encoding failed: {e}") from e
    return buf.getvalue()


def new_surface(size: Tuple[int, int]) -> Image.Image:
    return Image.new("RGBA", size, (0, 0, 0, 0))


def composite_clipped(canvas: Image.Image, sprite: Image.Image, ox: int, oy: int) -> bool:
    """Alpha-composite sprite with its top-left at (ox, oy), clipped to the canvas."""
    sx, sy = max(-ox, 0), max(-oy, 0)
    dx, dy = max(ox, 0), max(oy, 0)
    w = min(sprite.width - sx, canvas.width - dx)
    h = min(sprite.height - sy, canvas.height - dy)
    if w <= 0 or h <= 0:
        return False
    canvas.alpha_composite(sprite, dest=(dx, dy), source=(sx, sy, sx + w, sy + h))
    return True


def blit_region(canvas: Image.Image, source: Image.Image, src_box: Box, dst_box: Tuple[int, int, int, int]) -> None:
    x0, y0, x1, y1 = dst_box
    region = source.resize((x1 - x0, y1 - y0), Image.Resampling.BILINEAR, box=src_box)
    composite_clipped(canvas, region, x0, y0)


def slice_cut_lines(img_w: int, img_h: int, slice_widths: Optional[Edges]) -> Tuple[list, list]:
    """Source cut lines (x, y) of the 3x3 grid; slices are widths measured inward."""
    if slice_widths is None:
        slice_widths = Edges(img_h * FALLBACK_SLICE_RATIO, img_w * FALLBACK_SLICE_RATIO,
                             img_h * FALLBACK_SLICE_RATIO, img_w * FALLBACK_SLICE_RATIO)
    xs = [0.0, min(slice_widths.left, img_w), max(img_w - slice_widths.right, 0.0), float(img_w)]
    ys = [0.0, min(slice_widths.top, img_h), max(img_h - slice_widths.bottom, 0.0), float(img_h)]
    return xs, ys


def draw_border(canvas: Image.Image, border_image: Image.Image, edge_widths: Edges,
                slice_widths: Optional[Edges], blit: BlitFn = blit_region) -> int:
    """Nine-patch the border onto the canvas edges. Returns the number of blits.

    Corners keep their slice art, edges stretch along one axis, the center is
    left empty. Cells with a non-positive source or destination size are skipped.
    """
    cw, ch = canvas.size
    sxs, sys_ = slice_cut_lines(border_image.width, border_image.height, slice_widths)
    dxs = [0, round(edge_widths.left), round(cw - edge_widths.right), cw]
    dys = [0, round(edge_widths.top), round(ch - edge_widths.bottom), ch]

    drawn = 0
    for row, col in BORDER_CELLS:
        src_box = (sxs[col], sys_[row], sxs[col + 1], sys_[row + 1])
        dst_box = (dxs[col], dys[row], dxs[col + 1], dys[row + 1])
        if src_box[2] - src_box[0] <= 0 or src_box[3] - src_box[1] <= 0:
            continue
        if dst_box[2] - dst_box[0] <= 0 or dst_box[3] - dst_box[1] <= 0:
            continue
        blit(canvas, border_image, src_box, dst_box)
        drawn += 1
    return drawn


def draw_photo(canvas: Image.Image, photo: Image.Image, rect: Rect) -> bool:
    x0, y0, x1, y1 = to_pixel_box(rect)
    w, h = x1 - x0, y1 - y0
    if w <= 0 or h <= 0:
        return False
    if photo.size != (w, h):
        photo = photo.resize((w, h), Image.Resampling.LANCZOS)
    return composite_clipped(canvas, photo, x0, y0)


def draw_decoration(canvas: Image.Image, image: Image.Image, center: Tuple[float, float],
                    size: float, rotation: float) -> bool:
    """Draw image as a size x size square on center, turned clockwise by rotation.

    Only the window of the canvas the rotated square covers is rasterised,
    so the cost is bounded by the canvas whatever the size.
    """
    cx, cy = center
    if not all(math.isfinite(v) for v in (cx, cy, size, rotation)):
        return False
    side = round(size)
    if side <= 0:
        return False
    if side < max(image.size):
        image = image.resize((side, side), Image.Resampling.LANCZOS)

    theta = math.radians(rotation)
    cos_t, sin_t = math.cos(theta), math.sin(theta)
    half = size / 2
    extent = half * (abs(cos_t) + abs(sin_t))
    x0 = max(math.floor(cx - extent), 0)
    y0 = max(math.floor(cy - extent), 0)
    x1 = min(math.ceil(cx + extent), canvas.width)
    y1 = min(math.ceil(cy + extent), canvas.height)
    if x1 <= x0 or y1 <= y0:
        return False

    # canvas window -> local (inverse rotation) -> source pixels
    kx, ky = image.width / size, image.height / size
    dx, dy = x0 - cx, y0 - cy
    coeffs = (
        kx * cos_t, kx * sin_t, kx * (cos_t * dx + sin_t * dy + half),
        -ky * sin_t, ky * cos_t, ky * (-sin_t * dx + cos_t * dy + half),
    )
    sprite = image.transform((x1 - x0, y1 - y0), Image.Transform.AFFINE, coeffs,
                             resample=Image.Resampling.BICUBIC)
    canvas.alpha_composite(sprite, dest=(x0, y0))
    return True


def draw_dashed_polygon(canvas: Image.Image, corners: Sequence, color: str,
                        width: int = 2, dash: float = 5.0) -> None:
    draw = ImageDraw.Draw(canvas)
    points = np.asarray(corners, dtype=float)
    for start, end in zip(points, np.roll(points, -1, axis=0)):
        length = float(np.hypot(*(end - start)))
        if length == 0:
            continue
        direction = (end - start) / length
        for offset in np.arange(0.0, length, dash * 2):
            a = start + direction * offset
            b = start + direction * min(offset + dash, length)
            draw.line([tuple(a.tolist()), tuple(b.tolist())], fill=color, width=width)
