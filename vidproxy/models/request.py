from pydantic import BaseModel, Field


class DownloadRequest(BaseModel):
    # Plain strings: URL pattern and format are checked by the pipeline so
    # that rejections carry the same message whichever layer calls it.
    url: str = Field("", description="Video page URL")
    format: str = Field("mp4", description="Output format: mp4, webm or mp3")


class CleanupRequest(BaseModel):
    filename: str = Field("", description="Name of a previously downloaded file")
