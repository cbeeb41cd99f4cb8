"""
Async client for the Lumina HTTP API, used by front ends and scripts.

    async with LuminaClient("http://localhost:8000") as lumina:
        video = await lumina.upload_video("demo.mp4", "Demo")
        await lumina.wait_until_ready(video["id"])
        hits = await lumina.search_videos("person")
"""
import asyncio
import logging
import mimetypes
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

DEFAULT_ANSWER = "Unable to process question"


class LuminaClientError(Exception):
    pass


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or body)
    return str(body)


class LuminaClient:
    def __init__(
        self,
        base_url: str,
        bucket: str = "videos",
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 120.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self._http = httpx.AsyncClient(base_url=f"{self.base_url}/api", transport=transport, timeout=timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._http.aclose()

    # ── Videos ─────────────────────────────────────────────────────────────

    async def upload_video(
        self, source: str | Path | bytes, title: str, filename: str | None = None,
        content_type: str | None = None,
    ) -> dict:
        """Upload a file; the server stores it and starts analysis in the background."""
        if isinstance(source, bytes):
            data = source
            filename = filename or "video.mp4"
        else:
            path = Path(source)
            data = path.read_bytes()
            filename = filename or path.name
        content_type = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"

        response = await self._http.post(
            "/videos",
            files={"file": (filename, data, content_type)},
            data={"title": title},
        )
        if response.status_code >= 400:
            raise LuminaClientError(_error_message(response))
        return response.json()

    async def get_videos(self) -> list[dict]:
        response = await self._http.get("/videos")
        if response.status_code >= 400:
            raise LuminaClientError(f"Failed to fetch videos: {_error_message(response)}")
        return response.json() or []

    async def get_video(self, video_id: str) -> dict | None:
        response = await self._http.get(f"/videos/{video_id}")
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise LuminaClientError(f"Failed to fetch video: {_error_message(response)}")
        return response.json()

    async def get_video_segments(self, video_id: str) -> list[dict]:
        response = await self._http.get(f"/videos/{video_id}/segments")
        if response.status_code >= 400:
            raise LuminaClientError(f"Failed to fetch segments: {_error_message(response)}")
        return response.json() or []

    async def delete_video(self, video_id: str):
        response = await self._http.delete(f"/videos/{video_id}")
        if response.status_code >= 400:
            raise LuminaClientError(f"Failed to delete video: {_error_message(response)}")

    def get_video_url(self, storage_path: str) -> str:
        return f"{self.base_url}/api/storage/{self.bucket}/{storage_path}"

    async def wait_until_ready(self, video_id: str, interval: float = 10.0, timeout: float | None = None) -> dict:
        """Poll a video every `interval` seconds until it leaves the processing state.

        Returns the final video record. Raises `LuminaClientError` if the
        video disappears or `timeout` seconds pass first.
        """
        elapsed = 0.0
        while True:
            video = await self.get_video(video_id)
            if video is None:
                raise LuminaClientError(f"Video {video_id} no longer exists")
            if video["status"] != "processing":
                return video
            if timeout is not None and elapsed >= timeout:
                raise LuminaClientError(f"Video {video_id} still processing after {timeout}s")
            await asyncio.sleep(interval)
            elapsed += interval

    # ── Search & Q&A ───────────────────────────────────────────────────────

    async def search_videos(self, query: str, video_id: str | None = None, filters: dict | None = None) -> list[dict]:
        response = await self._http.post(
            "/functions/search-videos",
            json={"query": query, "videoId": video_id, "filters": filters},
        )
        if response.status_code >= 400:
            logger.error(f"Search error: {response.status_code}")
            raise LuminaClientError(f"Search failed: {_error_message(response)}")
        return response.json().get("results") or []

    async def ask_video_question(self, video_id: str, question: str) -> dict:
        response = await self._http.post(
            "/functions/video-qa",
            json={"videoId": video_id, "question": question},
        )
        if response.status_code >= 400:
            logger.error(f"Q&A error: {response.status_code}")
            raise LuminaClientError(f"Q&A failed: {_error_message(response)}")
        data = response.json()
        return {
            "answer": data.get("answer") or DEFAULT_ANSWER,
            "relevant_timestamps": data.get("relevant_timestamps") or [],
        }
