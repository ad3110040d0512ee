import json
from typing import List

import pytest

from vidproxy.config.settings import Config
from vidproxy.services.ytdlp import CompletedProcess

VIDEO_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

INFO = {
    "id": "dQw4w9WgXcQ",
    "title": "Never Gonna: Give/You Up?",
    "uploader": "Rick Astley",
    "duration": 213,
    "view_count": 1234567,
    "height": 720,
}


def ok(ext: str = "mp4", content: bytes = b"media-bytes", report: bool = True) -> dict:
    return {"ext": ext, "content": content, "report": report}


def fail(stderr: bytes = b"ERROR: HTTP Error 403: Forbidden", returncode: int = 1) -> dict:
    return {"returncode": returncode, "stderr": stderr}


class FakeExecutor:
    """Scripted stand-in for SubprocessExecutor.

    Metadata queries answer with ``info``; each download command consumes
    the next entry of ``downloads`` (``ok()``, ``fail()`` or an exception).
    """

    def __init__(self, info=INFO, info_returncode=0, info_stderr=b"", downloads=()):
        self.info = info
        self.info_returncode = info_returncode
        self.info_stderr = info_stderr
        self.downloads = list(downloads)
        self.calls: List[List[str]] = []

    @property
    def download_calls(self) -> List[List[str]]:
        return [c for c in self.calls if "--format" in c]

    @property
    def info_calls(self) -> List[List[str]]:
        return [c for c in self.calls if "--dump-single-json" in c]

    async def run(self, cmd, timeout, capture_stderr=True):
        cmd = list(cmd)
        self.calls.append(cmd)

        if "--version" in cmd:
            return CompletedProcess(0, b"2024.08.06\n", b"")

        if "--dump-single-json" in cmd:
            if isinstance(self.info, Exception):
                raise self.info
            stdout = self.info if isinstance(self.info, bytes) else json.dumps(self.info).encode()
            return CompletedProcess(self.info_returncode, stdout, self.info_stderr)

        outcome = self.downloads.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        if "returncode" in outcome:
            return CompletedProcess(outcome["returncode"], b"", outcome["stderr"])

        template = cmd[cmd.index("--output") + 1]
        path = template.replace("%(ext)s", outcome["ext"]).replace("%%", "%")
        with open(path, "wb") as f:
            f.write(outcome["content"])
        stdout = f"{path}\n".encode() if outcome["report"] else b""
        return CompletedProcess(0, stdout, b"")


class FakeFallback:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = 0

    async def fetch(self, url, output_dir, make_stem):
        self.calls += 1
        if self.error:
            raise self.error
        return self.result(url, output_dir, make_stem)


async def no_sleep(seconds):
    return None


@pytest.fixture
def anyio_backend():
    return 'asyncio'


@pytest.fixture
def cfg(tmp_path):
    cfg = Config()
    cfg.download.output_dir = str(tmp_path / "downloads")
    cfg.download.retry_delay = 0
    cfg.fallback.instances = ["https://mirror-a.test", "https://mirror-b.test"]
    return cfg
