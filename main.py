import os
import shutil
import sys
from contextlib import asynccontextmanager
from typing import Iterable, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, FastAPI, File, Form, Header, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from config import get_app_settings, get_database_settings
from database import close_client, get_db, objid, to_str_id
from errors import register_error_handlers
from schemas import ApiResponse, ErrorResponse, VideoListOptions, respond
from storage import get_storage
from video_service import VideoService


def setup_logging():
    settings = get_app_settings()
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level.value, format=settings.log_format)
    if settings.log_file:
        logger.add(
            settings.log_file,
            level=settings.log_level.value,
            rotation=settings.log_rotation,
            compression=settings.log_compression.value,
            format=settings.log_format,
        )


# -------------------- Dependencies --------------------

def get_current_user_id(x_user_id: Optional[str] = Header(default=None, alias="X-User-Id")) -> str:
    """Acting user as asserted by the upstream auth layer; trusted as is."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return str(objid(x_user_id, "userId"))


def get_video_service() -> VideoService:
    return VideoService(get_db(), get_storage(), search_index=get_database_settings().search_index)


# -------------------- Helpers --------------------

def stage_upload(file: Optional[UploadFile]) -> Optional[str]:
    """Copy an uploaded file into the temp dir and return its local path."""
    if file is None or not file.filename:
        return None
    temp_dir = get_app_settings().temp_dir
    os.makedirs(temp_dir, exist_ok=True)
    ext = os.path.splitext(file.filename)[1]
    path = os.path.join(temp_dir, f"{ObjectId()}{ext}")
    with open(path, "wb") as f:
        shutil.copyfileobj(file.file, f)
    return path


def discard(paths: Iterable[Optional[str]]) -> None:
    # Storage removes what it uploads; this catches files rejected before upload.
    for path in paths:
        if path and os.path.exists(path):
            os.remove(path)


# -------------------- Video Routes --------------------

videos_router = APIRouter(
    prefix="/api/v1/videos",
    tags=["videos"],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)


@videos_router.get("", response_model=ApiResponse)
def list_videos(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    query: Optional[str] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_type: Optional[str] = Query(None, alias="sortType"),
    user_id: Optional[str] = Query(None, alias="userId"),
    service: VideoService = Depends(get_video_service),
):
    options = VideoListOptions(
        page=page, limit=limit, query=query, user_id=user_id, sort_by=sort_by, sort_type=sort_type
    )
    result = service.list_videos(options)
    return respond(to_str_id(result), "Videos fetched successfully")


@videos_router.post("", response_model=ApiResponse)
def publish_video(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    videoFile: Optional[UploadFile] = File(None),
    thumbnail: Optional[UploadFile] = File(None),
    user_id: str = Depends(get_current_user_id),
    service: VideoService = Depends(get_video_service),
):
    video_path = stage_upload(videoFile)
    thumbnail_path = stage_upload(thumbnail)
    try:
        video = service.publish_video(user_id, title, description, video_path, thumbnail_path)
    finally:
        discard([video_path, thumbnail_path])
    return respond(to_str_id(video), "Video uploaded successfully")


@videos_router.get("/{video_id}", response_model=ApiResponse)
def get_video(
    video_id: str,
    user_id: str = Depends(get_current_user_id),
    service: VideoService = Depends(get_video_service),
):
    video = service.get_video(video_id, user_id)
    return respond(to_str_id(video), "Video details fetched successfully")


@videos_router.patch("/{video_id}", response_model=ApiResponse)
def update_video(
    video_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    user_id: str = Depends(get_current_user_id),
    service: VideoService = Depends(get_video_service),
):
    thumbnail_path = stage_upload(thumbnail)
    try:
        video = service.update_video(video_id, user_id, title, description, thumbnail_path)
    finally:
        discard([thumbnail_path])
    return respond(to_str_id(video), "Video updated successfully")


@videos_router.delete("/{video_id}", response_model=ApiResponse)
def delete_video(
    video_id: str,
    user_id: str = Depends(get_current_user_id),
    service: VideoService = Depends(get_video_service),
):
    service.delete_video(video_id, user_id)
    return respond(None, "Video deleted successfully")


@videos_router.patch("/toggle/publish/{video_id}", response_model=ApiResponse)
def toggle_publish_status(
    video_id: str,
    user_id: str = Depends(get_current_user_id),
    service: VideoService = Depends(get_video_service),
):
    status = service.toggle_publish_status(video_id, user_id)
    return respond(status.model_dump(), "Video publish status toggled successfully")


# -------------------- App --------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_client()


def create_app() -> FastAPI:
    settings = get_app_settings()
    setup_logging()

    app = FastAPI(title=settings.app_name, version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    @app.get("/")
    def read_root():
        return {"message": "Video Hosting Backend is running"}

    @app.get("/test")
    def test_database():
        info = {
            "backend": "running",
            "database_connected": False,
            "collections": [],
        }
        try:
            db = get_db()
            info["database_name"] = db.name
            info["collections"] = db.list_collection_names()
            info["database_connected"] = True
        except Exception as e:
            info["error"] = str(e)
        return info

    app.include_router(videos_router)
    logger.info(f"{settings.app_name} created with {len(app.routes)} routes")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_app_settings()
    uvicorn.run(app, host=settings.app_host, port=settings.app_port)
