import time
from datetime import datetime, timezone

from fastapi import APIRouter

from vidproxy.api.deps import get_locator
from vidproxy.config.settings import config
from vidproxy.core.state import state
from vidproxy.i18n import i18n
from vidproxy.services.cleanup import disk_usage
from vidproxy.utils.humanize import format_size

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint"""
    return {
        "success": True,
        "status": i18n.get("response.status_running"),
        "service": config.api.title,
        "version": config.api.version,
        "endpoints": ["/download", "/download-file/{filename}", "/cleanup-file", "/health"],
    }


@router.get("/health")
async def health_check():
    """Service health with output directory usage and yt-dlp status"""
    redis_status = i18n.get("response.redis_disabled")
    if state.redis:
        try:
            await state.redis.ping()
            redis_status = i18n.get("response.redis_connected")
        except Exception:
            redis_status = i18n.get("response.redis_disconnected")

    total_size, file_count = disk_usage(config.download.output_dir)
    invocation = get_locator().cached

    return {
        "success": True,
        "status": i18n.get("health.status"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.time() - state.started_at, 1),
        "diskUsage": {
            "totalSize": format_size(total_size),
            "fileCount": file_count,
        },
        "environment": config.api.environment,
        "version": config.api.version,
        "ytdlp": {
            "command": " ".join(invocation.command) if invocation else None,
            "version": invocation.version if invocation else "unknown",
        },
        "redis": redis_status,
    }
