import asyncio
import json
import logging
from typing import Any, Dict, Optional, Sequence
from vidproxy.core.errors import MetadataUnavailableError
from vidproxy.models.internal import VideoInfo
from vidproxy.services.ytdlp import SubprocessExecutor, YTDLPCommandBuilder

logger = logging.getLogger(__name__)


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class VideoInfoService:
    """Video info fetching service"""

    def __init__(
        self,
        builder: YTDLPCommandBuilder,
        executor=SubprocessExecutor,
        timeout: float = 30.0,
    ):
        self.builder = builder
        self.executor = executor
        self.timeout = timeout

    async def fetch(self, base: Sequence[str], url: str) -> VideoInfo:
        """
        Single metadata-only query, no media bytes fetched.
        Any failure here short-circuits the request.
        """
        cmd = self.builder.build_info_command(base, url)

        try:
            result = await self.executor.run(cmd, timeout=self.timeout)
        except asyncio.TimeoutError:
            raise MetadataUnavailableError(f"Metadata query timed out after {self.timeout:.0f}s")
        except OSError as e:
            raise MetadataUnavailableError("yt-dlp could not be started", str(e))

        if result.returncode != 0:
            error_msg = result.stderr.decode(errors="ignore").strip()
            raise MetadataUnavailableError("Metadata query failed", stderr=error_msg[-500:] or None)

        try:
            info = json.loads(result.stdout.decode(errors="ignore"))
        except json.JSONDecodeError:
            raise MetadataUnavailableError("Metadata query returned unparseable output")

        if not isinstance(info, dict) or not info:
            raise MetadataUnavailableError("Metadata query returned no video information")

        video_info = self.parse(info)
        logger.info(
            f"Video info: title={video_info.title!r} author={video_info.author!r} "
            f"duration={video_info.duration_seconds}s"
        )
        return video_info

    @staticmethod
    def parse(info: Dict[str, Any]) -> VideoInfo:
        return VideoInfo(
            id=str(info.get("id") or ""),
            title=info.get("title") or "",
            author=info.get("uploader") or info.get("channel") or "N/A",
            duration_seconds=_as_int(info.get("duration")) or 0,
            view_count=_as_int(info.get("view_count")),
            height=_as_int(info.get("height")),
        )
