from enum import Enum
from typing import NamedTuple, Optional, Tuple
from pydantic import BaseModel, ConfigDict
from vidproxy.utils.humanize import format_duration, format_quality, format_views


class MediaFormat(str, Enum):
    MP4 = "mp4"
    WEBM = "webm"
    MP3 = "mp3"


class DownloadMethod(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


class Strategy(NamedTuple):
    """One format selection and argument set passed to yt-dlp for one attempt"""
    name: str
    format_selector: str
    extra_args: Tuple[str, ...] = ()


class DownloadIntent(BaseModel):
    """Validated download request (separated from HTTP concerns)"""
    model_config = ConfigDict(frozen=True)

    url: str
    format: MediaFormat
    video_id: str


class VideoInfo(BaseModel):
    """Metadata retrieved once per request"""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    author: str = "N/A"
    duration_seconds: int = 0
    view_count: Optional[int] = None
    height: Optional[int] = None
    quality_label: Optional[str] = None

    @property
    def quality(self) -> str:
        return self.quality_label or format_quality(self.height)


class VideoSummary(BaseModel):
    title: str
    author: str
    duration: str
    views: str
    quality: str
    method: DownloadMethod

    @classmethod
    def from_info(cls, info: VideoInfo, method: DownloadMethod) -> "VideoSummary":
        return cls(
            title=info.title,
            author=info.author,
            duration=format_duration(info.duration_seconds),
            views=format_views(info.view_count),
            quality=info.quality,
            method=method,
        )


class DownloadResult(BaseModel):
    """Built only once a verified non-empty file exists on disk"""
    model_config = ConfigDict(frozen=True)

    filename: str
    path: str
    size: int
    summary: VideoSummary

    @property
    def method(self) -> DownloadMethod:
        return self.summary.method
