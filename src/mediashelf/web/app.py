from __future__ import annotations

import json
import logging
import mimetypes
import sqlite3
from contextlib import asynccontextmanager
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Iterator

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import (
    FileResponse,
    HTMLResponse,
    JSONResponse,
    PlainTextResponse,
    Response,
    StreamingResponse,
)
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, Field

from mediashelf import __version__
from mediashelf.application.services.indexing_service import build_indexing_service
from mediashelf.application.services.project_service import ProjectService
from mediashelf.application.services.user_service import UserService
from mediashelf.application.services.watch_service import WatchService
from mediashelf.core.config import AppConfig
from mediashelf.core.errors import (
    ItemNotFoundError,
    LibraryPathError,
    ThumbnailRenderError,
    UnsupportedItemTypeError,
    ValidationError,
)
from mediashelf.core.files import resolve_library_path, resolve_sibling_asset
from mediashelf.core.time import now_ms
from mediashelf.domain.models.item import DEFAULT_PAGE_SIZE, THUMBNAIL_VARIANTS, Item, ItemQuery
from mediashelf.infrastructure.db.repos.favorite_repo import FavoriteRepo
from mediashelf.infrastructure.db.repos.item_repo import ItemRepo
from mediashelf.infrastructure.db.repos.reading_state_repo import ReadingStateRepo
from mediashelf.infrastructure.db.repos.recent_repo import RecentRepo
from mediashelf.infrastructure.db.repos.user_repo import UserRepo
from mediashelf.infrastructure.parsers.sgf import (
    SgfMove,
    SgfNode,
    board_size,
    check_move,
    load_game,
    main_line,
    main_line_moves,
)
from mediashelf.infrastructure.thumbnails.renderers import render_sgf_thumbnail

logger = logging.getLogger(__name__)

USER_MANAGEMENT_DISABLED = "User management is disabled. Update data/users.json to change users."
_CHUNK_SIZE = 64 * 1024


class PdfPositionRequest(BaseModel):
    page: int = Field(ge=1)


class SgfPositionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    node_index: int = Field(ge=0, alias="nodeIndex")


class BookmarkCreateRequest(BaseModel):
    page: int = Field(ge=1)
    note: str | None = None


class RecentCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_id: int = Field(alias="itemId")


class SgfMoveCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    node_index: int = Field(ge=0, alias="nodeIndex")
    point: tuple[int, int] | None = None


def _jsonable(value: Any) -> Any:
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return value


def _parse_meta(raw: str | None) -> dict[str, Any] | None:
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def thumbnail_url(item_id: int, variant: str) -> str:
    return f"/api/thumbnails/{item_id}?variant={variant}"


def item_payload(item: Item) -> dict[str, Any]:
    return {
        "id": item.id,
        "type": item.type,
        "path": item.path,
        "title": item.title,
        "folder": item.folder,
        "size": item.size,
        "mtime": item.mtime,
        "pages": item.pages,
        "meta": _parse_meta(item.meta_json),
        "createdAt": item.created_at,
        "updatedAt": item.updated_at,
        "gridThumb": thumbnail_url(item.id, "grid") if item.grid_thumb_path else None,
    }


def move_payload(move: SgfMove) -> dict[str, Any]:
    return {"nodeIndex": move.node_index, "color": move.color, "point": list(move.point) if move.point else None}


def parse_byte_range(header: str, size: int) -> tuple[int, int]:
    """Parse ``bytes=start-end``; anything malformed selects the whole file."""
    whole = (0, max(size - 1, 0))
    value = header.strip()
    if value.startswith("bytes="):
        value = value[len("bytes="):]
    start_raw, _, end_raw = value.partition("-")
    try:
        start = int(start_raw)
        end = int(end_raw) if end_raw.strip() else size - 1
    except ValueError:
        return whole
    end = min(end, size - 1)
    if start < 0 or start > end:
        return whole
    return start, end


def _iter_file_range(path: Path, start: int, end: int) -> Iterator[bytes]:
    with path.open("rb") as handle:
        handle.seek(start)
        remaining = end - start + 1
        while remaining > 0:
            chunk = handle.read(min(_CHUNK_SIZE, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {error.get('msg')}" if loc else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


def create_app(config: AppConfig, *, scan_on_startup: bool = False, watch: bool = False) -> FastAPI:
    static_dir = Path(__file__).resolve().parent / "static"

    project_service = ProjectService(config)
    project_service.init_project()

    indexing_service = build_indexing_service(config)
    thumbnail_service = indexing_service.thumbnail_service
    watch_service = WatchService(
        config.library_root,
        indexing_service.scan,
        debounce_seconds=config.watch_debounce_seconds,
    )
    user_service = UserService(config.users_file, UserRepo(config.db_path))
    user_service.load_users()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if scan_on_startup:
            await run_in_threadpool(indexing_service.scan)
        if watch:
            watch_service.start()
        try:
            yield
        finally:
            watch_service.stop()

    app = FastAPI(title="MediaShelf", version=__version__, lifespan=lifespan)
    app.state.indexing_service = indexing_service
    app.state.watch_service = watch_service

    if config.client_origin:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[config.client_origin],
            allow_credentials=False,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    def get_item_repo() -> ItemRepo:
        return ItemRepo(config.db_path)

    def get_favorite_repo() -> FavoriteRepo:
        return FavoriteRepo(config.db_path)

    def get_reading_state_repo() -> ReadingStateRepo:
        return ReadingStateRepo(config.db_path)

    def get_recent_repo() -> RecentRepo:
        return RecentRepo(config.db_path)

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": _format_validation_errors(exc)})

    def _require_item(item_id: int) -> Item:
        item = get_item_repo().get_by_id(item_id)
        if item is None:
            raise HTTPException(status_code=404, detail=f"Item not found: {item_id}")
        return item

    def _item_file(item: Item) -> Path:
        try:
            full_path = resolve_library_path(config.library_root, item.path)
        except LibraryPathError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        if not full_path.is_file():
            raise HTTPException(status_code=404, detail=f"Missing file for item: {item.id}")
        return full_path

    def _write_or_400(action: Callable[[], object], detail: str) -> None:
        try:
            action()
        except sqlite3.IntegrityError as exc:
            raise HTTPException(status_code=400, detail=detail) from exc

    @app.get("/", response_class=HTMLResponse)
    def index() -> HTMLResponse:
        page = static_dir / "index.html"
        return HTMLResponse(page.read_text(encoding="utf-8"))

    @app.post("/api/scan")
    def api_scan() -> dict[str, Any]:
        report = indexing_service.scan()
        return {"ok": True, "report": report.as_dict()}

    # Users

    @app.get("/api/users")
    def api_users() -> list[dict[str, Any]]:
        return _jsonable(user_service.load_users())

    @app.post("/api/users")
    def api_create_user() -> None:
        raise HTTPException(status_code=405, detail=USER_MANAGEMENT_DISABLED)

    @app.patch("/api/users/{user_id}")
    def api_update_user(user_id: str) -> None:
        raise HTTPException(status_code=405, detail=USER_MANAGEMENT_DISABLED)

    @app.delete("/api/users/{user_id}")
    def api_delete_user(user_id: str) -> None:
        raise HTTPException(status_code=405, detail=USER_MANAGEMENT_DISABLED)

    # Items

    @app.get("/api/folders")
    def api_folders() -> list[str]:
        return get_item_repo().list_folders()

    @app.get("/api/items")
    def api_items(
        type: str | None = None,
        folder: str | None = None,
        q: str | None = None,
        sort: str = "updatedAt",
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        favorites: bool = False,
        user_id: str | None = Query(default=None, alias="userId"),
    ) -> list[dict[str, Any]]:
        if favorites and not user_id:
            raise HTTPException(status_code=400, detail="Favorites filter requires userId")
        query = ItemQuery(
            type=type or None,
            folder=folder or None,
            q=q or None,
            sort=sort,
            page=page,
            limit=limit,
            user_id=user_id,
            favorites_only=favorites,
        )
        return [item_payload(item) for item in get_item_repo().search(query)]

    @app.get("/api/items/{item_id}")
    def api_item_detail(item_id: int) -> dict[str, Any]:
        item = _require_item(item_id)
        payload = item_payload(item)
        payload["coverPath"] = thumbnail_url(item.id, "cover") if item.cover_thumb_path else None
        payload["gridPath"] = thumbnail_url(item.id, "grid") if item.grid_thumb_path else None
        return payload

    @app.get("/api/items/{item_id}/content")
    def api_item_content(item_id: int, request: Request) -> Response:
        item = _require_item(item_id)
        full_path = _item_file(item)
        if item.type in {"sgf", "html"}:
            return PlainTextResponse(full_path.read_text(encoding="utf-8", errors="replace"))
        if item.type != "pdf":
            raise HTTPException(status_code=415, detail=f"Unsupported item type: {item.type}")

        media_type = mimetypes.guess_type(full_path.name)[0] or "application/pdf"
        size = full_path.stat().st_size
        range_header = request.headers.get("range")
        if not range_header or size == 0:
            response = FileResponse(path=str(full_path), media_type=media_type)
            response.headers["Accept-Ranges"] = "bytes"
            return response

        start, end = parse_byte_range(range_header, size)
        return StreamingResponse(
            _iter_file_range(full_path, start, end),
            status_code=206,
            media_type=media_type,
            headers={
                "Content-Range": f"bytes {start}-{end}/{size}",
                "Accept-Ranges": "bytes",
                "Content-Length": str(end - start + 1),
            },
        )

    def _serve_html_asset(item_id: int, asset: str) -> FileResponse:
        item = get_item_repo().get_by_id(item_id)
        if item is None or item.type != "html":
            raise HTTPException(status_code=404, detail=f"HTML item not found: {item_id}")
        document = _item_file(item)
        try:
            resolved = resolve_sibling_asset(document, asset)
        except LibraryPathError as exc:
            raise HTTPException(status_code=400, detail="Invalid asset path") from exc
        if not resolved.exists():
            raise HTTPException(status_code=404, detail=f"Asset not found: {asset}")
        if resolved.is_dir():
            raise HTTPException(status_code=403, detail="Cannot serve directory")
        media_type = mimetypes.guess_type(resolved.name)[0] or "application/octet-stream"
        return FileResponse(path=str(resolved), media_type=media_type)

    @app.get("/api/items/{item_id}/html")
    def api_item_html(item_id: int) -> FileResponse:
        return _serve_html_asset(item_id, "")

    @app.get("/api/items/{item_id}/html/{asset_path:path}")
    def api_item_html_asset(item_id: int, asset_path: str) -> FileResponse:
        return _serve_html_asset(item_id, asset_path)

    def _load_sgf_root(item: Item) -> tuple[SgfNode, str]:
        if item.type != "sgf":
            raise HTTPException(status_code=404, detail=f"SGF item not found: {item.id}")
        text = _item_file(item).read_text(encoding="utf-8", errors="replace")
        return load_game(text), text

    @app.get("/api/items/{item_id}/sgf")
    def api_item_sgf(item_id: int) -> dict[str, Any]:
        root, _ = _load_sgf_root(_require_item(item_id))
        return {
            "boardSize": board_size(root),
            "nodeCount": len(main_line(root)),
            "moves": [move_payload(move) for move in main_line_moves(root)],
        }

    @app.post("/api/items/{item_id}/sgf/check")
    def api_item_sgf_check(item_id: int, req: SgfMoveCheckRequest) -> dict[str, Any]:
        root, _ = _load_sgf_root(_require_item(item_id))
        result = check_move(root, req.node_index, req.point)
        return {
            "correct": result.correct,
            "solved": result.solved,
            "nodeIndex": result.node_index,
            "expected": move_payload(result.expected) if result.expected else None,
            "reply": move_payload(result.reply) if result.reply else None,
        }

    @app.get("/api/items/{item_id}/sgf/board")
    def api_item_sgf_board(
        item_id: int,
        node_index: int | None = Query(default=None, ge=0, alias="nodeIndex"),
        width: int | None = Query(default=None, ge=32, le=2000),
    ) -> Response:
        _, text = _load_sgf_root(_require_item(item_id))
        rendered = render_sgf_thumbnail(text, width or config.thumb_width, node_index)
        return Response(content=rendered.png, media_type="image/png")

    @app.get("/api/thumbnails/{item_id}")
    def api_thumbnail(item_id: int, variant: str = "cover") -> FileResponse:
        if variant not in THUMBNAIL_VARIANTS:
            raise HTTPException(status_code=400, detail=f"Unknown thumbnail variant: {variant}")
        item = _require_item(item_id)
        try:
            path = thumbnail_service.ensure(item, variant)
        except ItemNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except (LibraryPathError, ValidationError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except UnsupportedItemTypeError as exc:
            raise HTTPException(status_code=415, detail=str(exc)) from exc
        except (ThumbnailRenderError, OSError) as exc:
            logger.warning("Thumbnail %s for item %s failed: %s", variant, item_id, exc)
            raise HTTPException(status_code=500, detail="Could not render thumbnail") from exc
        return FileResponse(path=str(path), media_type="image/png")

    # Favorites

    @app.get("/api/users/{user_id}/favorites")
    def api_favorites(user_id: str) -> list[dict[str, Any]]:
        return [item_payload(item) for item in get_favorite_repo().list_items(user_id)]

    @app.put("/api/users/{user_id}/favorites/{item_id}", status_code=204)
    def api_add_favorite(user_id: str, item_id: int) -> Response:
        _write_or_400(lambda: get_favorite_repo().add(user_id, item_id, now_ms()), "Failed to add favorite")
        return Response(status_code=204)

    @app.delete("/api/users/{user_id}/favorites/{item_id}", status_code=204)
    def api_remove_favorite(user_id: str, item_id: int) -> Response:
        get_favorite_repo().remove(user_id, item_id)
        return Response(status_code=204)

    # PDF reading state

    @app.get("/api/users/{user_id}/pdf/{item_id}/position")
    def api_pdf_position(user_id: str, item_id: int) -> dict[str, int]:
        return {"page": get_reading_state_repo().get_pdf_page(user_id, item_id)}

    @app.put("/api/users/{user_id}/pdf/{item_id}/position", status_code=204)
    def api_set_pdf_position(user_id: str, item_id: int, req: PdfPositionRequest) -> Response:
        _write_or_400(
            lambda: get_reading_state_repo().set_pdf_page(user_id, item_id, req.page, now_ms()),
            "Failed to save PDF position",
        )
        return Response(status_code=204)

    @app.get("/api/users/{user_id}/pdf/{item_id}/bookmarks")
    def api_pdf_bookmarks(user_id: str, item_id: int) -> list[dict[str, Any]]:
        return [
            {"id": b.id, "page": b.page, "note": b.note, "createdAt": b.created_at}
            for b in get_reading_state_repo().list_bookmarks(user_id, item_id)
        ]

    @app.post("/api/users/{user_id}/pdf/{item_id}/bookmarks", status_code=201)
    def api_add_pdf_bookmark(user_id: str, item_id: int, req: BookmarkCreateRequest) -> dict[str, Any]:
        try:
            bookmark = get_reading_state_repo().add_bookmark(user_id, item_id, req.page, req.note, now_ms())
        except sqlite3.IntegrityError as exc:
            raise HTTPException(status_code=400, detail="Failed to add bookmark") from exc
        return {"id": bookmark.id, "page": bookmark.page, "note": bookmark.note}

    @app.delete("/api/users/{user_id}/pdf/bookmarks/{bookmark_id}", status_code=204)
    def api_delete_pdf_bookmark(user_id: str, bookmark_id: int) -> Response:
        get_reading_state_repo().delete_bookmark(user_id, bookmark_id)
        return Response(status_code=204)

    # SGF reading state

    @app.get("/api/users/{user_id}/sgf/{item_id}/position")
    def api_sgf_position(user_id: str, item_id: int) -> dict[str, int]:
        return {"nodeIndex": get_reading_state_repo().get_sgf_node(user_id, item_id)}

    @app.put("/api/users/{user_id}/sgf/{item_id}/position", status_code=204)
    def api_set_sgf_position(user_id: str, item_id: int, req: SgfPositionRequest) -> Response:
        _write_or_400(
            lambda: get_reading_state_repo().set_sgf_node(user_id, item_id, req.node_index, now_ms()),
            "Failed to save SGF position",
        )
        return Response(status_code=204)

    @app.get("/api/users/{user_id}/sgf/{item_id}/node-favs")
    def api_sgf_node_favorites(user_id: str, item_id: int) -> list[int]:
        return get_reading_state_repo().list_node_favorites(user_id, item_id)

    @app.put("/api/users/{user_id}/sgf/{item_id}/node-favs/{node_index}", status_code=204)
    def api_add_sgf_node_favorite(user_id: str, item_id: int, node_index: int) -> Response:
        if node_index < 0:
            raise HTTPException(status_code=400, detail="nodeIndex must be >= 0")
        _write_or_400(
            lambda: get_reading_state_repo().add_node_favorite(user_id, item_id, node_index, now_ms()),
            "Failed to add node favorite",
        )
        return Response(status_code=204)

    @app.delete("/api/users/{user_id}/sgf/{item_id}/node-favs/{node_index}", status_code=204)
    def api_remove_sgf_node_favorite(user_id: str, item_id: int, node_index: int) -> Response:
        get_reading_state_repo().remove_node_favorite(user_id, item_id, node_index)
        return Response(status_code=204)

    # Recents

    @app.get("/api/users/{user_id}/recents")
    def api_recents(user_id: str, limit: int = Query(default=50, ge=1, le=500)) -> list[dict[str, Any]]:
        return [
            {"itemId": r.item_id, "ts": r.ts, "title": r.title, "type": r.type}
            for r in get_recent_repo().list(user_id, limit=limit)
        ]

    @app.post("/api/users/{user_id}/recents", status_code=201)
    def api_add_recent(user_id: str, req: RecentCreateRequest) -> Response:
        _write_or_400(lambda: get_recent_repo().add(user_id, req.item_id, now_ms()), "Failed to record recent")
        return Response(status_code=201)

    return app
