import asyncio
import os
import time
import aiofiles
from contextlib import suppress
from typing import Any, Awaitable, Dict
from urllib.parse import quote
from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse, Response, StreamingResponse
from vidproxy.api.deps import get_pipeline
from vidproxy.config.settings import config
from vidproxy.core.errors import InvalidInputError, VidProxyError
from vidproxy.core.logging import log_info, log_error, log_warning
from vidproxy.infra.rate_limit import rate_limiter
from vidproxy.models.request import CleanupRequest, DownloadRequest
from vidproxy.models.response import DownloadData, DownloadResponse, ErrorResponse, MessageResponse
from vidproxy.services.cleanup import remove_file
from vidproxy.services.classify import classify_error, failure_text
from vidproxy.services.download import DownloadPipeline
from vidproxy.services.files import resolve_in_directory
from vidproxy.services.format import FormatDecision
from vidproxy.utils.locale import get_locale, safe_url_for_log
from vidproxy.i18n import i18n

CHUNK_SIZE = 4 * 1024 * 1024
DISCONNECT_POLL_SECONDS = 1.0
CLIENT_CLOSED_REQUEST = 499

router = APIRouter()


class ClientDisconnected(Exception):
    pass


async def run_until_disconnected(request: Request, awaitable: Awaitable[Any]) -> Any:
    """
    Await the pipeline while watching the connection. When the client goes
    away the task is cancelled, which kills any running yt-dlp process.
    """
    task = asyncio.ensure_future(awaitable)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
                raise ClientDisconnected()
    finally:
        if not task.done():
            task.cancel()


def error_response(status_code: int, error: str, **kwargs) -> JSONResponse:
    body = ErrorResponse(error=error, **kwargs).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


def file_headers(filename: str, size: int) -> Dict[str, str]:
    return {
        'Content-Length': str(size),
        'Content-Disposition': f"attachment; filename*=UTF-8''{quote(filename)}",
        'Cache-Control': 'no-cache, no-store, must-revalidate',
        'Pragma': 'no-cache',
        'Expires': '0',
        'Accept-Ranges': 'bytes',
    }


@router.post("/download", dependencies=[Depends(rate_limiter)])
async def download_video(
    request: Request,
    video_request: DownloadRequest,
    pipeline: DownloadPipeline = Depends(get_pipeline),
):
    """Download a video to the output directory and describe the result"""

    locale = get_locale(request.headers.get("accept-language"))
    _ = i18n.for_locale(locale)

    safe_url = safe_url_for_log(video_request.url)
    log_info(request, f"New download request: {safe_url} ({video_request.format})")
    started = time.monotonic()

    try:
        result = await run_until_disconnected(
            request, pipeline.download(video_request.url, video_request.format)
        )
    except InvalidInputError as e:
        return error_response(400, _(e.message))
    except ClientDisconnected:
        log_warning(request, f"Client disconnected, download cancelled: {safe_url}")
        return Response(status_code=CLIENT_CLOSED_REQUEST)
    except VidProxyError as e:
        elapsed = time.monotonic() - started
        classification = classify_error(failure_text(e))
        log_error(
            request,
            f"Download failed after {elapsed:.1f}s: {type(e).__name__}: {e}",
            url=safe_url,
            media_format=video_request.format,
            classification=classification,
        )
        return error_response(
            500,
            _("error.internal"),
            reason=_(f"reason.{classification}"),
            code=classification,
        )
    except Exception as e:
        log_error(request, f"Unexpected download error: {type(e).__name__}: {e}", url=safe_url)
        return error_response(500, _("error.internal"))

    elapsed = time.monotonic() - started
    log_info(
        request,
        f"Download completed in {elapsed:.1f}s: {result.filename}",
        url=safe_url,
        method=result.method.value,
    )
    return DownloadResponse(
        message=_("response.download_complete"),
        data=DownloadData.from_result(result),
    )


@router.head("/download-file/{filename}")
async def download_file_head(filename: str):
    path = resolve_in_directory(config.download.output_dir, filename)
    if path is None:
        return Response(status_code=400)
    if not os.path.isfile(path):
        return Response(status_code=404)
    return Response(
        status_code=200,
        media_type=FormatDecision.media_type(filename),
        headers=file_headers(filename, os.path.getsize(path)),
    )


@router.get("/download-file/{filename}")
async def download_file(request: Request, filename: str):
    """Stream a downloaded file to the browser"""

    locale = get_locale(request.headers.get("accept-language"))
    _ = i18n.for_locale(locale)

    path = resolve_in_directory(config.download.output_dir, filename)
    if path is None:
        return error_response(400, _("error.invalid_filename"))
    if not os.path.isfile(path):
        log_warning(request, f"File not found: {filename}")
        return error_response(404, _("error.file_not_found"))

    size = os.path.getsize(path)
    log_info(request, f"Serving {filename} ({size} bytes)")

    async def generate():
        try:
            async with aiofiles.open(path, 'rb') as f:
                while True:
                    chunk = await f.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    yield chunk
        except OSError as e:
            log_error(request, f"Streaming error for {filename}: {str(e)}")
            raise

    return StreamingResponse(
        generate(),
        media_type=FormatDecision.media_type(filename),
        headers=file_headers(filename, size),
    )


@router.post("/cleanup-file")
async def cleanup_file(request: Request, cleanup_request: CleanupRequest):
    """Delete a file once the browser has fetched it"""

    locale = get_locale(request.headers.get("accept-language"))
    _ = i18n.for_locale(locale)

    name = cleanup_request.filename
    if not name:
        return error_response(400, _("error.filename_required"))

    try:
        removed = remove_file(config.download.output_dir, name)
    except InvalidInputError as e:
        return error_response(400, _(e.message))
    except OSError as e:
        log_error(request, f"File cleanup failed for {name}: {str(e)}")
        return error_response(500, _("error.cleanup_failed"))

    if not removed:
        log_info(request, f"File already removed: {name}")
        return MessageResponse(message=_("response.file_already_removed"))

    log_info(request, f"File cleanup successful: {name}")
    return MessageResponse(message=_("response.file_removed"))
