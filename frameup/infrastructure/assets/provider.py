# frameup/infrastructure/assets/provider.py
import asyncio
import base64
import json
import logging
import os
import re
from typing import Optional

import aiofiles
import aiohttp
from pydantic import ValidationError

from frameup.config.settings import settings
from frameup.delivery.schemas.body import BorderConfig, DecorationConfig
from frameup.domain.editor_state import BorderAsset, DecorationAsset
from frameup.domain.errors import AssetLoadError, AssetNotFoundError, ConfigParseError

# --- Logger setup ---
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] [ASSETS] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

FRAMES_DIR = "frames"
DECOS_DIR = "decos"
FRAME_IMAGE = "frame.png"
DECO_IMAGE = "deco.png"
SETTINGS_FILE = "settings.json"

_ASSET_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]*$")


class LocalAssetProvider:
    """Border/decoration assets laid out on disk:

        <root>/frames/<id>/frame.png + settings.json
        <root>/decos/<id>/deco.png   + settings.json (optional)
    """

    def __init__(self, root: Optional[str] = None, request_timeout: int = settings.REQUEST_TIMEOUT):
        self.root = root or settings.ASSETS_DIR
        self.request_timeout = request_timeout

    def _asset_dir(self, kind: str, asset_id: str) -> str:
        if not _ASSET_ID.match(asset_id or "") or ".." in asset_id:
            raise AssetNotFoundError(f"Invalid asset id '{asset_id}'.")
        return os.path.join(self.root, kind, asset_id)

    def _local_path(self, path: str) -> str:
        resolved = os.path.realpath(path)
        root = os.path.realpath(self.root)
        if os.path.commonpath([resolved, root]) != root:
            logger.warning(f"Refusing to read '{path[:70]}': outside the asset directory.")
            raise AssetLoadError("Local images must live under the asset directory.")
        return resolved

    async def _read_settings(self, path: str) -> dict:
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                raw = await f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigParseError(f"{path}: {type(e).__name__}") from e
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigParseError(f"{path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigParseError(f"{path}: expected a JSON object")
        return data

    async def get_border_config(self, border_id: str) -> BorderAsset:
        asset_dir = self._asset_dir(FRAMES_DIR, border_id)
        image_path = os.path.join(asset_dir, FRAME_IMAGE)
        if not os.path.isfile(image_path):
            raise AssetNotFoundError(f"Border '{border_id}' not found.")
        try:
            data = await self._read_settings(os.path.join(asset_dir, SETTINGS_FILE))
            config = BorderConfig.model_validate(data)
        except (ConfigParseError, ValidationError) as e:
            logger.warning(f"Border '{border_id}' has an unusable config: {e}")
            raise AssetNotFoundError(f"Border '{border_id}' config is unreadable.") from e
        return BorderAsset(id=border_id, config=config, source_ref=image_path)

    async def get_decoration_config(self, decoration_id: str) -> DecorationAsset:
        asset_dir = self._asset_dir(DECOS_DIR, decoration_id)
        image_path = os.path.join(asset_dir, DECO_IMAGE)
        if not os.path.isfile(image_path):
            raise AssetNotFoundError(f"Decoration '{decoration_id}' not found.")
        try:
            data = await self._read_settings(os.path.join(asset_dir, SETTINGS_FILE))
            config = DecorationConfig.model_validate(data)
        except (ConfigParseError, ValidationError) as e:
            logger.warning(f"Decoration '{decoration_id}' uses default settings ({type(e).__name__}).")
            config = DecorationConfig()
        return DecorationAsset(id=decoration_id, config=config, source_ref=image_path)

    async def load_raster_image(self, src: str) -> bytes:
        """Raw bytes for a URL, a file path under the asset root, a data URL or bare base64."""
        try:
            if src.startswith(("http://", "https://")):
                timeout = aiohttp.ClientTimeout(total=self.request_timeout)
                async with aiohttp.ClientSession(timeout=timeout) as session:
                    async with session.get(src) as response:
                        response.raise_for_status()
                        return await response.read()
            if os.path.isfile(src):
                async with aiofiles.open(self._local_path(src), "rb") as f:
                    return await f.read()
            if src.startswith("data:image"):
                _, encoded = src.split(",", 1)
                return base64.b64decode(encoded, validate=True)
            return base64.b64decode(src, validate=True)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
            logger.warning(f"Failed to load image from '{src[:70]}...': {type(e).__name__}")
            raise AssetLoadError(f"Image could not be loaded: {type(e).__name__}") from e
