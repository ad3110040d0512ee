import os

import pytest

from conftest import VIDEO_URL, FakeExecutor, FakeFallback, fail, no_sleep, ok
from vidproxy.core.errors import (
    AllFallbacksExhaustedError,
    EmptyOutputFileError,
    InvalidInputError,
    MetadataUnavailableError,
    OutputFileMissingError,
    StrategyExhaustedError,
)
from vidproxy.models.internal import DownloadMethod, VideoInfo
from vidproxy.services.download import DownloadPipeline, validate_request
from vidproxy.services.fallback import FallbackProvider, FallbackResult
from vidproxy.services.ytdlp import YtDlpLocator

TOKEN = "1a2b3c4d"
BOT_STDERR = b"ERROR: [youtube] dQw4w9WgXcQ: Sign in to confirm you're not a bot"


def make_pipeline(cfg, executor, fallback=None):
    if fallback is None:
        cfg.fallback.enabled = False
    locator = YtDlpLocator(cfg.ytdlp, production=True, executor=executor)
    return DownloadPipeline(
        cfg,
        locator,
        executor=executor,
        fallback=fallback,
        sleep=no_sleep,
        token_factory=lambda: TOKEN,
    )


def fallback_writes(content=b"mirror-bytes"):
    def result(url, output_dir, make_stem):
        stem = make_stem("Mirror Title", "dQw4w9WgXcQ")
        filename = f"{stem}.mp4"
        path = os.path.join(output_dir, filename)
        with open(path, "wb") as f:
            f.write(content)
        info = VideoInfo(id="dQw4w9WgXcQ", title="Mirror Title", author="Mirror", quality_label="360p")
        return FallbackResult(filename=filename, path=path, info=info, instance="https://mirror-a.test")
    return result


@pytest.mark.parametrize("url, fmt, key", [
    ("", "mp4", "error.url_required"),
    ("   ", "mp4", "error.url_required"),
    ("https://vimeo.com/12345", "mp4", "error.invalid_url"),
    ("https://www.youtube.com/watch?v=short", "mp4", "error.invalid_url"),
    (VIDEO_URL, "avi", "error.invalid_format"),
])
def test_validate_request_rejects(url, fmt, key):
    with pytest.raises(InvalidInputError) as exc_info:
        validate_request(url, fmt)
    assert exc_info.value.message == key


def test_validate_request_accepts_short_links_and_format_case():
    intent = validate_request("https://youtu.be/dQw4w9WgXcQ", "MP3")
    assert intent.format.value == "mp3"
    assert intent.video_id == "dQw4w9WgXcQ"


@pytest.mark.asyncio
async def test_invalid_input_starts_no_process(cfg):
    executor = FakeExecutor()
    fallback = FakeFallback(fallback_writes())
    with pytest.raises(InvalidInputError):
        await make_pipeline(cfg, executor, fallback).download("https://example.com/video", "mp4")
    assert executor.calls == []
    assert fallback.calls == 0


@pytest.mark.asyncio
async def test_second_strategy_success(cfg):
    executor = FakeExecutor(downloads=[fail(), ok("mp4")])

    result = await make_pipeline(cfg, executor).download(VIDEO_URL, "mp4")

    assert result.filename == f"Never Gonna GiveYou Up [{TOKEN}].mp4"
    assert os.path.getsize(result.path) == result.size > 0
    assert result.method == DownloadMethod.PRIMARY
    summary = result.summary
    assert summary.title == "Never Gonna: Give/You Up?"
    assert summary.author == "Rick Astley"
    assert summary.quality == "720p"
    assert summary.views == "1,234,567"
    assert summary.duration == "3:33"
    assert len(executor.download_calls) == 2


@pytest.mark.asyncio
async def test_output_template_escapes_percent(cfg):
    info = {"id": "dQw4w9WgXcQ", "title": "100% real", "uploader": "x", "duration": 5}
    executor = FakeExecutor(info=info, downloads=[ok("mp4")])

    result = await make_pipeline(cfg, executor).download(VIDEO_URL, "mp4")

    template = executor.download_calls[0][executor.download_calls[0].index("--output") + 1]
    assert "100%% real" in template
    assert result.filename == f"100% real [{TOKEN}].mp4"


@pytest.mark.asyncio
async def test_located_by_prefix_when_path_not_reported(cfg):
    executor = FakeExecutor(downloads=[ok("webm", report=False)])

    result = await make_pipeline(cfg, executor).download(VIDEO_URL, "webm")

    assert result.filename.endswith(f"[{TOKEN}].webm")


@pytest.mark.asyncio
async def test_title_that_sanitizes_to_nothing_uses_video_id(cfg):
    info = {"id": "dQw4w9WgXcQ", "title": "???", "duration": 1}
    executor = FakeExecutor(info=info, downloads=[ok("mp3")])

    result = await make_pipeline(cfg, executor).download(VIDEO_URL, "mp3")

    assert result.filename.startswith("video_dQw4w9WgXcQ_")
    assert result.filename.endswith(f" [{TOKEN}].mp3")
    assert result.summary.author == "N/A"


@pytest.mark.asyncio
async def test_unique_filenames_can_be_disabled(cfg):
    cfg.download.unique_filenames = False
    executor = FakeExecutor(downloads=[ok("mp4")])

    result = await make_pipeline(cfg, executor).download(VIDEO_URL, "mp4")

    assert result.filename == "Never Gonna GiveYou Up.mp4"


@pytest.mark.asyncio
async def test_metadata_failure_skips_download_commands(cfg):
    executor = FakeExecutor(info_returncode=1, info_stderr=b"ERROR: Video unavailable")
    fallback = FakeFallback(fallback_writes())

    with pytest.raises(MetadataUnavailableError):
        await make_pipeline(cfg, executor, fallback).download(VIDEO_URL, "mp4")

    assert executor.download_calls == []
    assert fallback.calls == 0


@pytest.mark.asyncio
async def test_empty_output_is_not_success(cfg):
    executor = FakeExecutor(downloads=[ok("mp4", content=b"")])

    with pytest.raises(Exception) as exc_info:
        await make_pipeline(cfg, executor).download(VIDEO_URL, "mp4")
    assert exc_info.value.code == "output_empty"


@pytest.mark.parametrize("stderr", [
    BOT_STDERR,
    b"ERROR: Sign in to confirm your age. This video may be inappropriate for some users.",
])
@pytest.mark.asyncio
async def test_bot_and_age_failures_reroute_once_to_fallback(cfg, stderr):
    executor = FakeExecutor(downloads=[fail(stderr), fail(stderr), fail(stderr)])
    fallback = FakeFallback(fallback_writes())

    result = await make_pipeline(cfg, executor, fallback).download(VIDEO_URL, "mp4")

    assert fallback.calls == 1
    assert result.method == DownloadMethod.FALLBACK
    assert result.filename == f"Mirror Title [{TOKEN}].mp4"
    assert result.summary.quality == "360p"
    assert result.summary.views == "N/A"


@pytest.mark.asyncio
async def test_bot_failure_during_metadata_also_reroutes(cfg):
    executor = FakeExecutor(info_returncode=1, info_stderr=BOT_STDERR)
    fallback = FakeFallback(fallback_writes())

    result = await make_pipeline(cfg, executor, fallback).download(VIDEO_URL, "mp4")

    assert fallback.calls == 1
    assert executor.download_calls == []
    assert result.method == DownloadMethod.FALLBACK


@pytest.mark.asyncio
async def test_other_failures_never_reach_fallback(cfg):
    executor = FakeExecutor(downloads=[fail(), fail(), fail()])
    fallback = FakeFallback(fallback_writes())

    with pytest.raises(StrategyExhaustedError):
        await make_pipeline(cfg, executor, fallback).download(VIDEO_URL, "mp4")

    assert fallback.calls == 0
    assert len(executor.download_calls) == 3


@pytest.mark.asyncio
async def test_fallback_exhaustion_chains_primary_error(cfg):
    executor = FakeExecutor(downloads=[fail(BOT_STDERR)] * 3)
    fallback = FakeFallback(error=AllFallbacksExhaustedError("All fallback endpoints failed"))

    with pytest.raises(AllFallbacksExhaustedError) as exc_info:
        await make_pipeline(cfg, executor, fallback).download(VIDEO_URL, "mp4")

    assert fallback.calls == 1
    assert isinstance(exc_info.value.__cause__, StrategyExhaustedError)


def test_fallback_provider_follows_config(cfg):
    locator = YtDlpLocator(cfg.ytdlp, production=True)
    assert isinstance(DownloadPipeline(cfg, locator).fallback, FallbackProvider)

    cfg.fallback.enabled = False
    assert DownloadPipeline(cfg, locator).fallback is None


@pytest.mark.parametrize("title", ["Garage Rock Live", "Robot Wars Highlights"])
@pytest.mark.asyncio
async def test_empty_output_never_reaches_fallback_whatever_the_title(cfg, title):
    info = {"id": "dQw4w9WgXcQ", "title": title, "uploader": "x", "duration": 60}
    executor = FakeExecutor(info=info, downloads=[ok("mp4", content=b"")])
    fallback = FakeFallback(fallback_writes())

    with pytest.raises(EmptyOutputFileError):
        await make_pipeline(cfg, executor, fallback).download(VIDEO_URL, "mp4")

    assert fallback.calls == 0


@pytest.mark.asyncio
async def test_missing_output_never_reaches_fallback(cfg):
    info = {"id": "dQw4w9WgXcQ", "title": "Sign in to confirm Garage", "duration": 60}
    # succeeds without writing anything the locator could find
    executor = FakeExecutor(info=info, downloads=[ok("mp4", report=False)])
    fallback = FakeFallback(fallback_writes())
    pipeline = make_pipeline(cfg, executor, fallback)

    original_run = executor.run

    async def run_without_output(cmd, timeout, capture_stderr=True):
        result = await original_run(cmd, timeout, capture_stderr)
        if "--format" in cmd:
            for name in os.listdir(cfg.download.output_dir):
                os.remove(os.path.join(cfg.download.output_dir, name))
        return result

    executor.run = run_without_output

    with pytest.raises(OutputFileMissingError):
        await pipeline.download(VIDEO_URL, "mp4")
    assert fallback.calls == 0
