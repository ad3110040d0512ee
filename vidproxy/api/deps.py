from vidproxy.config.settings import config
from vidproxy.core.state import state
from vidproxy.services.download import DownloadPipeline
from vidproxy.services.ytdlp import YtDlpLocator


def get_locator() -> YtDlpLocator:
    """Process-wide locator; its probe result is cached on first use"""
    if state.locator is None:
        state.locator = YtDlpLocator(config.ytdlp, production=config.api.is_production)
    return state.locator


def get_pipeline() -> DownloadPipeline:
    return DownloadPipeline(config, get_locator())
