import json
import os
from io import BytesIO

from PIL import Image

RED = (255, 0, 0, 255)
GREEN = (0, 255, 0, 255)
BLUE = (0, 0, 255, 255)
WHITE = (255, 255, 255, 255)


def solid(size, color=BLUE) -> Image.Image:
    return Image.new("RGBA", size, color)


def png_bytes(img: Image.Image) -> bytes:
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def border_art(size=30, slice_width=10) -> Image.Image:
    """Red corners, green edges, transparent center."""
    img = Image.new("RGBA", (size, size), GREEN)
    inner = (slice_width, slice_width, size - slice_width, size - slice_width)
    img.paste((0, 0, 0, 0), inner)
    far = size - slice_width
    for x, y in [(0, 0), (far, 0), (0, far), (far, far)]:
        img.paste(RED, (x, y, x + slice_width, y + slice_width))
    return img


def write_border(root, border_id, settings, image=None):
    asset_dir = os.path.join(root, "frames", border_id)
    os.makedirs(asset_dir, exist_ok=True)
    (image or border_art()).save(os.path.join(asset_dir, "frame.png"))
    if settings is not None:
        with open(os.path.join(asset_dir, "settings.json"), "w", encoding="utf-8") as f:
            f.write(settings if isinstance(settings, str) else json.dumps(settings))
    return asset_dir


def write_decoration(root, decoration_id, settings=None, image=None):
    asset_dir = os.path.join(root, "decos", decoration_id)
    os.makedirs(asset_dir, exist_ok=True)
    (image or solid((16, 16), RED)).save(os.path.join(asset_dir, "deco.png"))
    if settings is not None:
        with open(os.path.join(asset_dir, "settings.json"), "w", encoding="utf-8") as f:
            f.write(settings if isinstance(settings, str) else json.dumps(settings))
    return asset_dir
