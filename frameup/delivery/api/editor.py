# frameup/delivery/api/editor.py
from fastapi import APIRouter, Request, HTTPException, Query, status
from fastapi.responses import Response
from contextlib import contextmanager
import logging
import traceback
import uuid

from frameup.delivery.schemas.body import (
    AddDecorationRequest, ApplyBorderRequest, BorderRatioRequest, ModeRequest, PointerEventBody,
    ProjectDocument, SelectionRequest, SetImageRequest, UpdateDecorationRequest,
)
from frameup.domain.decoration import PointerDown, PointerMove, PointerUp
from frameup.domain.editor_service import EditorService
from frameup.domain.editor_state import EditorSnapshot, EditorState
from frameup.domain.errors import (
    AssetLoadError, AssetNotFoundError, DecorationNotFoundError, ExportError,
)
from frameup.infrastructure.cv import image_process

router = APIRouter()
logger = logging.getLogger("uvicorn.error")

POINTER_EVENTS = {"down": PointerDown, "move": PointerMove, "up": PointerUp}


@contextmanager
def domain_errors(action: str, session_id: str):
    try:
        yield
    except HTTPException:
        raise
    except AssetNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except AssetLoadError as e:
        logger.warning(f"[{session_id}] {action} failed: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    except DecorationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ExportError as e:
        logger.error(f"[{session_id}] {action} failed: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error(f"=== {action.upper()} ERROR for {session_id}: {e} ===\n{traceback.format_exc()}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error.",
        )


def get_session(request: Request, session_id: str) -> EditorService:
    session = request.app.state.sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Session '{session_id}' not found.")
    return session


def summarize(session_id: str, snapshot: EditorSnapshot) -> dict:
    layout = snapshot.layout
    summary = {
        "session_id": session_id,
        "version": snapshot.version,
        "mode": snapshot.mode.value,
        "image_ref": snapshot.photo.source_ref if snapshot.photo else None,
        "canvas": None,
        "photo_rect": None,
        "border": None,
        "width_ratio": snapshot.width_ratio,
        "edges": None,
        "decorations": [r.model_dump() for r in snapshot.to_document().decorations],
        "selected_id": snapshot.selected_id,
    }
    if layout is not None:
        summary["canvas"] = {"width": layout.canvas_size[0], "height": layout.canvas_size[1]}
        summary["photo_rect"] = layout.photo_rect._asdict()
        if layout.metrics is not None:
            summary["edges"] = {name: value._asdict() for name, value in layout.metrics._asdict().items()}
    if snapshot.border is not None:
        summary["border"] = snapshot.border.id
    return summary


def png_response(data: bytes, filename: str) -> Response:
    return Response(
        content=data,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/sessions", status_code=status.HTTP_201_CREATED)
async def create_session(request: Request):
    session_id = uuid.uuid4().hex
    service = EditorService(
        state=EditorState(),
        provider=request.app.state.asset_provider,
        executor=request.app.state.executor,
    )
    request.app.state.sessions.add(session_id, service)
    logger.info(f"Session {session_id} created ({len(request.app.state.sessions)} open).")
    return summarize(session_id, service.state.snapshot())


@router.get("/sessions/{session_id}")
async def get_session_state(request: Request, session_id: str):
    session = get_session(request, session_id)
    return summarize(session_id, session.state.snapshot())


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(request: Request, session_id: str):
    if request.app.state.sessions.pop(session_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Session '{session_id}' not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/sessions/{session_id}/image")
async def set_image(request: Request, session_id: str, body: SetImageRequest):
    session = get_session(request, session_id)
    with domain_errors("load photo", session_id):
        applied = await session.load_photo(body.source)
    return {"applied": applied, **summarize(session_id, session.state.snapshot())}


@router.put("/sessions/{session_id}/border")
async def apply_border(request: Request, session_id: str, body: ApplyBorderRequest):
    session = get_session(request, session_id)
    with domain_errors("apply border", session_id):
        applied = await session.apply_border(body.border_id, body.width_ratio)
    return {"applied": applied, **summarize(session_id, session.state.snapshot())}


@router.patch("/sessions/{session_id}/border")
async def set_border_ratio(request: Request, session_id: str, body: BorderRatioRequest):
    session = get_session(request, session_id)
    snapshot = session.state.set_border_width_ratio(body.width_ratio)
    return summarize(session_id, snapshot)


@router.post("/sessions/{session_id}/decorations", status_code=status.HTTP_201_CREATED)
async def add_decoration(request: Request, session_id: str, body: AddDecorationRequest):
    session = get_session(request, session_id)
    with domain_errors("add decoration", session_id):
        decoration = await session.add_decoration(body.decoration_id)
    return {"decoration_id": decoration.id, **summarize(session_id, session.state.snapshot())}


@router.patch("/sessions/{session_id}/decorations/{decoration_id}")
async def update_decoration(request: Request, session_id: str, decoration_id: str, body: UpdateDecorationRequest):
    session = get_session(request, session_id)
    with domain_errors("update decoration", session_id):
        session.state.update_decoration(decoration_id, **body.model_dump(exclude_none=True))
    return summarize(session_id, session.state.snapshot())


@router.delete("/sessions/{session_id}/decorations/{decoration_id}")
async def remove_decoration(request: Request, session_id: str, decoration_id: str):
    session = get_session(request, session_id)
    with domain_errors("remove decoration", session_id):
        session.state.remove_decoration(decoration_id)
    return summarize(session_id, session.state.snapshot())


@router.put("/sessions/{session_id}/selection")
async def select_decoration(request: Request, session_id: str, body: SelectionRequest):
    session = get_session(request, session_id)
    with domain_errors("select decoration", session_id):
        snapshot = session.state.select_decoration(body.decoration_id)
    return summarize(session_id, snapshot)


@router.put("/sessions/{session_id}/mode")
async def set_mode(request: Request, session_id: str, body: ModeRequest):
    session = get_session(request, session_id)
    return summarize(session_id, session.state.set_mode(body.mode))


@router.post("/sessions/{session_id}/pointer")
async def pointer_event(request: Request, session_id: str, body: PointerEventBody):
    session = get_session(request, session_id)
    event = POINTER_EVENTS[body.type](body.x, body.y)
    session.state.handle_pointer(event)
    drag = session.state.dragging
    return {"dragging": drag.target_id if drag else None, **summarize(session_id, session.state.snapshot())}


@router.get("/sessions/{session_id}/hit-test")
async def hit_test(request: Request, session_id: str, x: float = Query(...), y: float = Query(...)):
    session = get_session(request, session_id)
    return {"decoration_id": session.renderer.hit_test((x, y), session.state.snapshot())}


@router.get("/sessions/{session_id}/preview")
async def preview(request: Request, session_id: str):
    session = get_session(request, session_id)
    image = session.renderer.preview_image()
    if image is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No photo loaded.")
    with domain_errors("preview", session_id):
        data = image_process.encode_png(image, optimize=False)
    return Response(content=data, media_type="image/png")


@router.get("/sessions/{session_id}/export")
async def export(request: Request, session_id: str):
    session = get_session(request, session_id)
    if session.state.snapshot().layout is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No photo loaded.")
    with domain_errors("export", session_id):
        data = await session.export_png()
    logger.info(f"[{session_id}] Export finished ({len(data)} bytes).")
    return png_response(data, f"frameup_{session_id[:8]}.png")


@router.get("/sessions/{session_id}/project")
async def get_project(request: Request, session_id: str):
    session = get_session(request, session_id)
    return session.project_document().model_dump(mode="json")


@router.put("/sessions/{session_id}/project")
async def restore_project(request: Request, session_id: str, document: ProjectDocument):
    session = get_session(request, session_id)
    with domain_errors("restore project", session_id):
        await session.restore_project(document)
    return summarize(session_id, session.state.snapshot())
