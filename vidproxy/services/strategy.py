import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence
from vidproxy.core.errors import StrategyExhaustedError, ToolInvocationError
from vidproxy.models.internal import Strategy
from vidproxy.services.ytdlp import SubprocessExecutor, YTDLPCommandBuilder

logger = logging.getLogger(__name__)

STDERR_TAIL = 500


@dataclass
class Attempt:
    strategy: Strategy
    ok: bool
    error: Optional[str] = None


@dataclass
class StrategyOutcome:
    strategy: Strategy
    stdout: str
    attempts: List[Attempt] = field(default_factory=list)

    @property
    def reported_path(self) -> Optional[str]:
        """Last non-empty stdout line, the path printed by yt-dlp after moving"""
        lines = [line.strip() for line in self.stdout.splitlines() if line.strip()]
        return lines[-1] if lines else None


class StrategyRunner:
    """Try strategies strictly in order; the first success wins"""

    def __init__(
        self,
        builder: YTDLPCommandBuilder,
        executor=SubprocessExecutor,
        attempt_timeout: float = 300.0,
        retry_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.builder = builder
        self.executor = executor
        self.attempt_timeout = attempt_timeout
        self.retry_delay = retry_delay
        self.sleep = sleep

    async def run(
        self,
        base: Sequence[str],
        url: str,
        output_template: str,
        strategies: Sequence[Strategy],
    ) -> StrategyOutcome:
        attempts: List[Attempt] = []
        last_error: Optional[Exception] = None

        for index, strategy in enumerate(strategies, start=1):
            logger.info(f"Download attempt {index}/{len(strategies)} ({strategy.name})")
            try:
                stdout = await self._attempt(base, url, output_template, strategy)
            except ToolInvocationError as e:
                last_error = e
                attempts.append(Attempt(strategy, ok=False, error=str(e)))
                logger.warning(f"Attempt {index} ({strategy.name}) failed: {e}")
                if index < len(strategies):
                    await self.sleep(self.retry_delay)
                continue

            attempts.append(Attempt(strategy, ok=True))
            logger.info(f"Download succeeded on attempt {index} ({strategy.name})")
            return StrategyOutcome(strategy=strategy, stdout=stdout, attempts=attempts)

        if last_error is None:
            last_error = ToolInvocationError("No download strategies configured")
        raise StrategyExhaustedError(last_error, attempts=len(attempts))

    async def _attempt(self, base, url, output_template, strategy) -> str:
        cmd = self.builder.build_download_command(base, url, strategy, output_template)
        try:
            result = await self.executor.run(cmd, timeout=self.attempt_timeout)
        except asyncio.TimeoutError:
            raise ToolInvocationError(f"yt-dlp timed out after {self.attempt_timeout:.0f}s")
        except OSError as e:
            raise ToolInvocationError("yt-dlp could not be started", str(e))

        if result.returncode != 0:
            stderr = result.stderr.decode(errors="ignore").strip()
            raise ToolInvocationError(
                f"yt-dlp exited with code {result.returncode}",
                stderr[-STDERR_TAIL:] or None,
                returncode=result.returncode,
            )
        return result.stdout.decode(errors="ignore")
