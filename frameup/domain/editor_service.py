# frameup/domain/editor_service.py
import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional, Tuple

from PIL import Image

from frameup.config.settings import settings
from frameup.delivery.schemas.body import ProjectDocument
from frameup.domain.decoration import Decoration
from frameup.domain.editor_state import BorderAsset, EditorState, Photo
from frameup.domain.errors import AssetLoadError
from frameup.domain.renderer import SceneRenderer
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


class EditorService:
    """Async boundary of one editing session.

    Fetching and decoding happen off the state; the state is mutated once,
    after every load of the operation has succeeded. Results of a load that
    was superseded while in flight are dropped.
    """

    def __init__(self, state: EditorState, provider, executor: ThreadPoolExecutor,
                 renderer: Optional[SceneRenderer] = None):
        self.state = state
        self.provider = provider
        self.executor = executor
        self.renderer = renderer or SceneRenderer()
        self.state.subscribe(self.renderer)

        self._borders: Dict[str, BorderAsset] = {}
        self._images: Dict[str, Image.Image] = {}
        self._inflight: Dict[Tuple[str, str], asyncio.Future] = {}

    async def _run_cpu(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, fn, *args)

    async def _single_flight(self, key: Tuple[str, str], cache: dict, loader: Callable[[], Awaitable]):
        if key[1] in cache:
            return cache[key[1]]
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(loader())
            self._inflight[key] = task
            task.add_done_callback(lambda _: self._inflight.pop(key, None))
        result = await asyncio.shield(task)
        cache[key[1]] = result
        return result

    async def _load_asset_image(self, ref: str) -> Image.Image:
        async def load():
            data = await self.provider.load_raster_image(ref)
            return await self._run_cpu(image_process.decode_asset, data)
        return await self._single_flight(("image", ref), self._images, load)

    async def _load_border(self, border_id: str) -> BorderAsset:
        async def load():
            asset = await self.provider.get_border_config(border_id)
            image = await self._load_asset_image(asset.source_ref)
            return replace(asset, image=image)
        return await self._single_flight(("border", border_id), self._borders, load)

    async def _load_photo(self, source: str) -> Photo:
        data = await self.provider.load_raster_image(source)
        image, original_size = await self._run_cpu(image_process.decode_photo, data, settings.MAX_CANVAS_SIZE)
        if original_size != image.size:
            logger.info(f"Photo downscaled from {original_size[0]}x{original_size[1]} to {image.width}x{image.height}.")
        return Photo(source_ref=source, image=image, original_size=original_size)

    async def load_photo(self, source: str) -> bool:
        """Load and show a photo. Returns False when a newer request superseded it."""
        shown = self.state.snapshot().photo
        self.state.begin_image_request(source)
        try:
            photo = await self._load_photo(source)
        except AssetLoadError:
            if self.state.is_current_image_request(source):
                self.state.begin_image_request(shown.source_ref if shown else None)
            raise
        if not self.state.is_current_image_request(source):
            logger.warning(f"Discarding stale photo load for '{source[:70]}'.")
            return False
        self.state.set_image(photo)
        return True

    async def apply_border(self, border_id: Optional[str], width_ratio: Optional[float] = None) -> bool:
        """Apply (or with None, remove) a border. Returns False for a stale load."""
        if border_id is None:
            self.state.begin_border_request(None)
            self.state.set_border(None, width_ratio)
            return True

        applied = self.state.snapshot().border
        self.state.begin_border_request(border_id)
        try:
            asset = await self._load_border(border_id)
        except AssetLoadError:
            if self.state.is_current_border_request(border_id):
                self.state.begin_border_request(applied.id if applied else None)
            raise

        if not self.state.is_current_border_request(border_id):
            logger.warning(f"Discarding stale border load for '{border_id}'.")
            return False
        self.state.set_border(asset, width_ratio)
        logger.info(f"Border '{border_id}' applied (width ratio {self.state.snapshot().width_ratio:.3f}).")
        return True

    async def add_decoration(self, decoration_id: str) -> Decoration:
        asset = await self.provider.get_decoration_config(decoration_id)
        image = await self._load_asset_image(asset.source_ref)
        base_size = self.state.snapshot().min_dimension * settings.DECORATION_BASE_RATIO
        decoration = self.state.add_decoration(asset.source_ref, image, base_size, asset.config.default_scale)
        logger.info(f"Decoration '{decoration_id}' added as {decoration.id} (base size {base_size:.1f}px).")
        return decoration

    async def restore_project(self, document: ProjectDocument) -> None:
        logger.info(f"=== START RESTORE: {len(document.decorations)} decorations ===")
        start_time = time.perf_counter()

        photo = await self._load_photo(document.image_ref) if document.image_ref else None
        border = await self._load_border(document.border.id) if document.border else None
        images = await asyncio.gather(*[self._load_asset_image(r.source_ref) for r in document.decorations])

        decorations = [
            Decoration(id=record.id, source_ref=record.source_ref, image=image, x=record.x, y=record.y,
                       scale=record.scale, rotation=record.rotation, base_size=record.base_size)
            for record, image in zip(document.decorations, images)
        ]
        width_ratio = document.border.width_ratio if document.border else self.state.snapshot().width_ratio
        self.state.restore(photo, border, width_ratio, decorations, document.mode)
        logger.info(f"=== COMPLETED RESTORE in {time.perf_counter() - start_time:.2f}s ===")

    def project_document(self) -> ProjectDocument:
        document = self.state.snapshot().to_document()
        return document.model_copy(update={"saved_at": datetime.now(timezone.utc)})

    async def export_png(self) -> bytes:
        snapshot = self.state.snapshot()
        return await self._run_cpu(self.renderer.export_flat_image, snapshot)
