import asyncio
import logging
import os
import re
import uuid
from typing import Awaitable, Callable, Optional

from vidproxy.config.settings import Config
from vidproxy.core.errors import (
    AllFallbacksExhaustedError,
    InvalidInputError,
    VidProxyError,
)
from vidproxy.models.internal import (
    DownloadIntent,
    DownloadMethod,
    DownloadResult,
    MediaFormat,
    VideoInfo,
    VideoSummary,
)
from vidproxy.services.classify import failure_text, should_fallback
from vidproxy.services.fallback import FallbackProvider, extract_video_id
from vidproxy.services.files import locate_output, reported_output, verify_output
from vidproxy.services.format import FormatDecision
from vidproxy.services.info import VideoInfoService
from vidproxy.services.strategy import StrategyRunner
from vidproxy.services.ytdlp import SubprocessExecutor, YTDLPCommandBuilder, YtDlpLocator
from vidproxy.utils.filename import fallback_stem, sanitize_filename
from vidproxy.utils.locale import safe_url_for_log

logger = logging.getLogger(__name__)

VIDEO_URL_RE = re.compile(r"^https?://(www\.)?(youtube\.com/watch\?v=|youtu\.be/)[\w-]{11}")


def validate_request(url: str, media_format: str) -> DownloadIntent:
    """Reject bad input before any external process is started.

    Error messages are i18n keys, translated at the HTTP boundary.
    """
    url = (url or "").strip()
    if not url:
        raise InvalidInputError("error.url_required")
    if not VIDEO_URL_RE.match(url):
        raise InvalidInputError("error.invalid_url")
    try:
        fmt = MediaFormat((media_format or "mp4").lower())
    except ValueError:
        raise InvalidInputError("error.invalid_format")
    return DownloadIntent(url=url, format=fmt, video_id=extract_video_id(url) or "")


class DownloadPipeline:
    """
    Info fetch, ordered strategies, output discovery, with a one-shot
    reroute to the mirror fallback on bot-detection style failures.
    """

    def __init__(
        self,
        cfg: Config,
        locator: YtDlpLocator,
        executor=SubprocessExecutor,
        fallback: Optional[FallbackProvider] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        token_factory: Callable[[], str] = lambda: uuid.uuid4().hex[:8],
    ):
        self.cfg = cfg
        self.locator = locator
        self.output_dir = cfg.download.output_dir
        builder = YTDLPCommandBuilder(cfg.ytdlp, cfg.download.socket_timeout)
        self.info_service = VideoInfoService(builder, executor, timeout=cfg.download.info_timeout)
        self.runner = StrategyRunner(
            builder,
            executor,
            attempt_timeout=cfg.download.attempt_timeout,
            retry_delay=cfg.download.retry_delay,
            sleep=sleep,
        )
        if fallback is None and cfg.fallback.enabled:
            fallback = FallbackProvider(cfg.fallback, cfg.download.max_height, cfg.ytdlp.user_agent)
        self.fallback = fallback
        self.token_factory = token_factory

    async def download(self, url: str, media_format: str = "mp4") -> DownloadResult:
        intent = validate_request(url, media_format)
        os.makedirs(self.output_dir, exist_ok=True)
        token = self.token_factory()

        def make_stem(title: str, video_id: str) -> str:
            stem = sanitize_filename(title, self.cfg.download.max_filename_bytes) or fallback_stem(video_id)
            if self.cfg.download.unique_filenames:
                stem = f"{stem} [{token}]"
            return stem

        logger.info(f"Download requested: {safe_url_for_log(intent.url)} ({intent.format.value})")
        try:
            return await self._primary(intent, make_stem)
        except VidProxyError as primary_error:
            if self.fallback is None or not should_fallback(failure_text(primary_error)):
                raise
            logger.warning(f"Primary path failed, switching to fallback: {primary_error}")
            try:
                return await self._fallback(intent, make_stem)
            except AllFallbacksExhaustedError as e:
                raise e from primary_error

    async def _primary(self, intent: DownloadIntent, make_stem) -> DownloadResult:
        invocation = await self.locator.resolve()
        info = await self.info_service.fetch(invocation.command, intent.url)

        stem = make_stem(info.title, info.id or intent.video_id)
        # yt-dlp expands %(...)s in templates; literal percent signs are doubled
        template = os.path.join(self.output_dir, stem.replace('%', '%%') + '.%(ext)s')
        strategies = FormatDecision.strategies(intent.format, self.cfg.download.max_height)

        outcome = await self.runner.run(invocation.command, intent.url, template, strategies)

        filename = reported_output(self.output_dir, outcome.reported_path)
        if filename is None:
            filename = locate_output(self.output_dir, stem)
        return self._result(filename, info, DownloadMethod.PRIMARY)

    async def _fallback(self, intent: DownloadIntent, make_stem) -> DownloadResult:
        fetched = await self.fallback.fetch(intent.url, self.output_dir, make_stem)
        return self._result(fetched.filename, fetched.info, DownloadMethod.FALLBACK)

    def _result(self, filename: str, info: VideoInfo, method: DownloadMethod) -> DownloadResult:
        path = os.path.join(self.output_dir, filename)
        size = verify_output(path)
        logger.info(f"Download ready: {filename} ({size} bytes, {method.value})")
        return DownloadResult(
            filename=filename,
            path=path,
            size=size,
            summary=VideoSummary.from_info(info, method),
        )
