import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urljoin

import aiofiles
import httpx

from vidproxy.config.settings import FallbackConfig
from vidproxy.core.errors import AllFallbacksExhaustedError
from vidproxy.models.internal import VideoInfo

logger = logging.getLogger(__name__)

VIDEO_ID_RE = re.compile(r"(?:v=|youtu\.be/|shorts/)([A-Za-z0-9_-]{11})")
QUALITY_RE = re.compile(r"(\d+)p")
CHUNK_SIZE = 1024 * 1024


def extract_video_id(url: str) -> Optional[str]:
    match = VIDEO_ID_RE.search(url or "")
    return match.group(1) if match else None


def _height(stream: Dict[str, Any]) -> int:
    match = QUALITY_RE.search(str(stream.get("qualityLabel") or ""))
    return int(match.group(1)) if match else 0


def select_stream(streams: List[Dict[str, Any]], container: str, max_height: int) -> Optional[Dict[str, Any]]:
    """
    Best stream of the preferred container under the height ceiling,
    degrading to any stream of that container.

    When nothing fits under the ceiling the smallest stream is taken, not
    the tallest: the ceiling caps transfer size and disk use, so the least
    overshoot wins. Streams without a quality label sort first.
    """
    same_container = [s for s in streams if s.get("container") == container and s.get("url")]
    capped = [s for s in same_container if 0 < _height(s) <= max_height]
    if capped:
        return max(capped, key=_height)
    if same_container:
        return min(same_container, key=_height)
    return None


@dataclass
class FallbackResult:
    filename: str
    path: str
    info: VideoInfo
    instance: str


class EndpointError(Exception):
    """One mirror failed; the next one is tried"""


class FallbackProvider:
    """Alternate source queried only after bot-detection style failures"""

    def __init__(
        self,
        settings: FallbackConfig,
        max_height: int,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.max_height = max_height
        self.user_agent = user_agent
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        return httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.settings.api_timeout,
            headers=headers,
            transport=self.transport,
        )

    async def fetch(
        self,
        url: str,
        output_dir: str,
        make_stem: Callable[[str, str], str],
    ) -> FallbackResult:
        video_id = extract_video_id(url)
        if not video_id:
            raise AllFallbacksExhaustedError("No video id in URL for fallback")

        async with self._client() as client:
            for instance in self.settings.instances:
                try:
                    return await self._try_instance(client, instance, video_id, output_dir, make_stem)
                except (EndpointError, httpx.HTTPError, OSError, ValueError, TypeError) as e:
                    logger.warning(f"Fallback {instance} failed: {e}")
                    continue

        raise AllFallbacksExhaustedError(
            "All fallback endpoints failed",
            f"tried {len(self.settings.instances)} endpoint(s)",
        )

    async def _try_instance(self, client, instance, video_id, output_dir, make_stem) -> FallbackResult:
        base = instance.rstrip("/")
        logger.info(f"Trying fallback {base} for {video_id}")

        resp = await client.get(f"{base}/api/v1/videos/{video_id}", params={"local": "true"})
        if resp.status_code != 200:
            raise EndpointError(f"HTTP {resp.status_code}")
        data = resp.json()
        if not isinstance(data, dict):
            raise EndpointError("unexpected payload")
        if data.get("error"):
            raise EndpointError(str(data["error"]))

        stream = select_stream(data.get("formatStreams") or [], self.settings.container, self.max_height)
        if stream is None:
            raise EndpointError(f"no {self.settings.container} stream")

        stem = make_stem(data.get("title") or "", video_id)
        info = VideoInfo(
            id=video_id,
            title=data.get("title") or stem,
            author=data.get("author") or "N/A",
            duration_seconds=int(data.get("lengthSeconds") or 0),
            view_count=int(data["viewCount"]) if data.get("viewCount") else None,
            height=_height(stream) or None,
            quality_label=stream.get("qualityLabel"),
        )

        filename = f"{stem}.{self.settings.container}"
        path = os.path.join(output_dir, filename)
        stream_url = urljoin(f"{base}/", stream["url"])

        try:
            size = await self._transfer(client, stream_url, path)
        except BaseException:
            self._discard(path)
            raise
        if size == 0:
            self._discard(path)
            raise EndpointError("empty transfer")

        logger.info(f"Fallback {base} wrote {filename} ({size} bytes)")
        return FallbackResult(filename=filename, path=path, info=info, instance=base)

    async def _transfer(self, client: httpx.AsyncClient, stream_url: str, path: str) -> int:
        size = 0
        async with client.stream("GET", stream_url, timeout=self.settings.download_timeout) as resp:
            if resp.status_code not in (200, 206):
                raise EndpointError(f"stream HTTP {resp.status_code}")
            async with aiofiles.open(path, "wb") as f:
                async for chunk in resp.aiter_bytes(CHUNK_SIZE):
                    await f.write(chunk)
                    size += len(chunk)
        return size

    @staticmethod
    def _discard(path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove partial fallback file {path}: {e}")
