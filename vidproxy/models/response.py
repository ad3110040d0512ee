from typing import Optional
from urllib.parse import quote

from pydantic import BaseModel

from vidproxy.models.internal import DownloadMethod, DownloadResult


class DownloadData(BaseModel):
    """Result payload surfaced to the browser"""
    filename: str
    downloadUrl: str
    title: str
    author: str
    duration: str
    views: str
    quality: str
    method: DownloadMethod

    @classmethod
    def from_result(cls, result: DownloadResult) -> "DownloadData":
        summary = result.summary
        return cls(
            filename=result.filename,
            downloadUrl=f"/download-file/{quote(result.filename)}",
            title=summary.title,
            author=summary.author,
            duration=summary.duration,
            views=summary.views,
            quality=summary.quality,
            method=summary.method,
        )


class DownloadResponse(BaseModel):
    success: bool = True
    message: str
    data: DownloadData


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    reason: Optional[str] = None
    code: Optional[str] = None
