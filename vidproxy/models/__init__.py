from .internal import DownloadIntent, DownloadMethod, DownloadResult, MediaFormat, Strategy, VideoInfo, VideoSummary
from .request import CleanupRequest, DownloadRequest
from .response import DownloadData, DownloadResponse, ErrorResponse, MessageResponse

__all__ = [
    "CleanupRequest",
    "DownloadData",
    "DownloadIntent",
    "DownloadMethod",
    "DownloadRequest",
    "DownloadResponse",
    "DownloadResult",
    "ErrorResponse",
    "MediaFormat",
    "MessageResponse",
    "Strategy",
    "VideoInfo",
    "VideoSummary",
]
