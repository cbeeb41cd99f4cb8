import logging
import mimetypes

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Response, UploadFile
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from lumina.core.config import Settings, get_settings
from lumina.core.errors import HandlerError
from lumina.db import persistence
from lumina.services.analysis import VideoAnalysisService
from lumina.services.qa import VideoQAService
from lumina.services.search import VideoSearchService
from lumina.storage.bucket import Bucket, make_upload_path

router = APIRouter()
logger = logging.getLogger(__name__)


# ── Request Models ─────────────────────────────────────────────────────────

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class AnalyzeRequest(_CamelModel):
    video_id: str | None = Field(default=None, alias="videoId")
    video_url: str | None = Field(default=None, alias="videoUrl")
    title: str | None = None


class SearchFilters(_CamelModel):
    object_name: str | None = Field(default=None, alias="objectName")
    min_count: int | None = Field(default=None, alias="minCount")


class SearchRequest(_CamelModel):
    query: str | None = None
    video_id: str | None = Field(default=None, alias="videoId")
    filters: SearchFilters | None = None


class QARequest(_CamelModel):
    question: str | None = None
    video_id: str | None = Field(default=None, alias="videoId")


# ── Dependencies ───────────────────────────────────────────────────────────

def get_analysis_service(settings: Settings = Depends(get_settings)) -> VideoAnalysisService:
    return VideoAnalysisService(settings)


def get_search_service(settings: Settings = Depends(get_settings)) -> VideoSearchService:
    return VideoSearchService(settings)


def get_qa_service(settings: Settings = Depends(get_settings)) -> VideoQAService:
    return VideoQAService(settings)


def get_bucket(settings: Settings = Depends(get_settings)) -> Bucket:
    return Bucket(settings)


async def _respond(name: str, call) -> JSONResponse:
    """Run a handler and turn its outcome into a JSON response.

    `HandlerError` keeps its status; anything else is a 500 with the message.
    """
    try:
        return JSONResponse(await call)
    except HandlerError as e:
        logger.warning(f"{name} failed with {e.status_code}: {e.message}")
        return JSONResponse({"error": e.message}, status_code=e.status_code)
    except Exception as e:
        logger.error(f"Error in {name}: {e}")
        return JSONResponse({"error": str(e)}, status_code=500)


# ── Functions ──────────────────────────────────────────────────────────────

@router.post("/functions/analyze-video")
async def analyze_video(body: AnalyzeRequest, service: VideoAnalysisService = Depends(get_analysis_service)):
    return await _respond("analyze-video", service.analyze(body.video_id, body.video_url, body.title))


@router.post("/functions/search-videos")
async def search_videos(body: SearchRequest, service: VideoSearchService = Depends(get_search_service)):
    filters = body.filters.model_dump(by_alias=True) if body.filters else None
    return await _respond("search-videos", service.search(body.query, body.video_id, filters))


@router.post("/functions/video-qa")
async def video_qa(body: QARequest, service: VideoQAService = Depends(get_qa_service)):
    return await _respond("video-qa", service.ask(body.question, body.video_id))


# ── Videos ─────────────────────────────────────────────────────────────────

async def run_analysis(service: VideoAnalysisService, video_id: str, video_url: str, title: str):
    """Background analysis after upload; failures leave the video processing."""
    try:
        result = await service.analyze(video_id, video_url, title)
        logger.info(f"Background analysis finished for {video_id}: {result}")
    except Exception as e:
        logger.error(f"Analysis trigger error for {video_id}: {e}")


@router.post("/videos", status_code=201)
async def upload_video(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    title: str | None = Form(None),
    bucket: Bucket = Depends(get_bucket),
    service: VideoAnalysisService = Depends(get_analysis_service),
):
    title = (title or "").strip() or (file.filename or "Untitled video").rsplit(".", 1)[0]
    filename, storage_path = make_upload_path(file.filename)

    # One byte past the limit is enough to detect an oversize upload
    data = await file.read(bucket.max_bytes + 1)
    content_type = file.content_type or mimetypes.guess_type(file.filename or "")[0] or ""
    try:
        bucket.upload(storage_path, data, content_type)
    except HandlerError as e:
        logger.error(f"Upload error: {e.message}")
        return JSONResponse({"error": f"Failed to upload video: {e.message}"}, status_code=e.status_code)

    try:
        video = await persistence.create_video(title, filename, storage_path)
    except Exception as e:
        logger.error(f"Insert error: {e}")
        return JSONResponse({"error": f"Failed to create video record: {e}"}, status_code=500)

    background_tasks.add_task(
        run_analysis, service, str(video.id), bucket.public_url(storage_path), title
    )
    return video.to_dict()


@router.get("/videos")
async def list_videos():
    videos = await persistence.list_videos()
    return [video.to_dict() for video in videos]


@router.get("/videos/{video_id}")
async def get_video(video_id: str):
    video = await persistence.get_video(video_id)
    if video is None:
        raise HTTPException(status_code=404, detail="Video not found")
    return video.to_dict()


@router.get("/videos/{video_id}/segments")
async def get_video_segments(video_id: str):
    segments = await persistence.get_video_segments(video_id)
    return [seg.to_dict() for seg in segments]


@router.delete("/videos/{video_id}", status_code=204)
async def delete_video(video_id: str, bucket: Bucket = Depends(get_bucket)):
    video = await persistence.get_video(video_id)
    if video is None:
        return Response(status_code=204)

    bucket.remove([video.storage_path])
    await persistence.delete_video(video_id)
    logger.info(f"Deleted video {video_id}")
    return Response(status_code=204)


# ── Storage & Health ───────────────────────────────────────────────────────

@router.get("/storage/{bucket_name}/{path:path}")
async def read_object(bucket_name: str, path: str, bucket: Bucket = Depends(get_bucket)):
    if bucket_name != bucket.name:
        raise HTTPException(status_code=404, detail="Bucket not found")
    try:
        target = bucket.open_path(path)
    except HandlerError:
        target = None
    if target is None:
        raise HTTPException(status_code=404, detail="Object not found")
    media_type = mimetypes.guess_type(target.name)[0] or "application/octet-stream"
    return FileResponse(str(target), media_type=media_type)


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)):
    return {"status": "ok", "app": settings.PROJECT_NAME}
