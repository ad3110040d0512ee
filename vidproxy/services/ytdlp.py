import asyncio
import logging
from typing import List, NamedTuple, Optional, Sequence, Tuple
from vidproxy.config.settings import YtDlpConfig
from vidproxy.core.errors import ToolNotFoundError
from vidproxy.models.internal import Strategy

logger = logging.getLogger(__name__)


class CompletedProcess(NamedTuple):
    """Subprocess result"""
    returncode: int
    stdout: bytes
    stderr: bytes


class SubprocessExecutor:
    """Execute subprocess with consistent error handling"""

    @staticmethod
    async def run(
        cmd: List[str],
        timeout: float,
        capture_stderr: bool = True
    ) -> CompletedProcess:
        """
        Run subprocess with timeout and proper cleanup.
        The child is killed on timeout and when the awaiting task is
        cancelled, so an abandoned request never leaves yt-dlp running.
        """
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE if capture_stderr else asyncio.subprocess.DEVNULL,
            stdin=asyncio.subprocess.DEVNULL
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout
            )

            return CompletedProcess(
                returncode=process.returncode,
                stdout=stdout,
                stderr=stderr if capture_stderr else b""
            )

        except (asyncio.TimeoutError, asyncio.CancelledError):
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise
        except Exception:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise


class ToolInvocation(NamedTuple):
    command: Tuple[str, ...]
    version: str


class YtDlpLocator:
    """
    Find a working yt-dlp invocation.

    In production the configured candidates are probed with ``--version``
    and the first one that answers is cached for later requests. Outside
    production a fixed local path is used without probing.
    """

    def __init__(
        self,
        settings: YtDlpConfig,
        production: bool,
        executor=SubprocessExecutor,
    ):
        self.settings = settings
        self.production = production
        self.executor = executor
        self._cached: Optional[ToolInvocation] = None
        self._lock = asyncio.Lock()

    @property
    def cached(self) -> Optional[ToolInvocation]:
        if not self.production:
            return self._local()
        return self._cached

    def reset(self) -> None:
        self._cached = None

    def _local(self) -> ToolInvocation:
        return ToolInvocation(command=(self.settings.local_path,), version="unknown")

    async def resolve(self) -> ToolInvocation:
        if not self.production:
            return self._local()

        if self._cached and not self.settings.reprobe:
            return self._cached

        async with self._lock:
            if self._cached and not self.settings.reprobe:
                return self._cached
            self._cached = await self._probe()
            return self._cached

    async def _probe(self) -> ToolInvocation:
        for candidate in self.settings.candidates:
            cmd = [*candidate, "--version"]
            try:
                result = await self.executor.run(cmd, timeout=self.settings.probe_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"yt-dlp probe timed out: {' '.join(candidate)}")
                continue
            except OSError as e:
                logger.debug(f"yt-dlp probe could not start {' '.join(candidate)}: {e}")
                continue

            if result.returncode == 0:
                version = result.stdout.decode(errors="ignore").strip() or "unknown"
                logger.info(f"yt-dlp found via {' '.join(candidate)} (version {version})")
                return ToolInvocation(command=tuple(candidate), version=version)

            logger.debug(f"yt-dlp probe failed: {' '.join(candidate)} exited {result.returncode}")

        raise ToolNotFoundError(
            "yt-dlp executable not found",
            f"tried: {', '.join(' '.join(c) for c in self.settings.candidates)}",
        )


class YTDLPCommandBuilder:
    """Build yt-dlp commands"""

    def __init__(self, settings: YtDlpConfig, socket_timeout: int):
        self.settings = settings
        self.socket_timeout = socket_timeout

    def _common_args(self) -> List[str]:
        args = [
            '--no-warnings',
            '--no-playlist',
            '--socket-timeout', str(self.socket_timeout),
        ]
        if self.settings.user_agent:
            args.extend(['--user-agent', self.settings.user_agent])
        if self.settings.accept:
            args.extend(['--add-header', f"Accept:{self.settings.accept}"])
        return args

    def build_info_command(self, base: Sequence[str], url: str) -> List[str]:
        """Metadata-only query; prints a single JSON object"""
        return [
            *base,
            '--dump-single-json',
            *self._common_args(),
            url,
        ]

    def build_download_command(
        self,
        base: Sequence[str],
        url: str,
        strategy: Strategy,
        output_template: str,
    ) -> List[str]:
        """Download one strategy into output_template.

        ``--print after_move:filepath`` reports the final path on stdout
        once post-processing has finished.
        """
        return [
            *base,
            '--format', strategy.format_selector,
            *strategy.extra_args,
            '--output', output_template,
            '--no-progress',
            '--print', 'after_move:filepath',
            *self._common_args(),
            url,
        ]
