from typing import Optional


class VidProxyError(Exception):
    """Base class for download pipeline failures"""

    code = "internal"

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class InvalidInputError(VidProxyError):
    """Rejected before any external call"""
    code = "invalid_input"


class ToolNotFoundError(VidProxyError):
    code = "tool_not_found"


class ToolInvocationError(VidProxyError):
    """A single yt-dlp invocation exited non-zero, timed out or could not start"""
    code = "tool_failure"

    def __init__(self, message: str, detail: Optional[str] = None, returncode: Optional[int] = None):
        super().__init__(message, detail)
        self.returncode = returncode

    @property
    def stderr(self) -> Optional[str]:
        # detail is the tool's stderr only when the process actually ran
        return self.detail if self.returncode is not None else None


class MetadataUnavailableError(VidProxyError):
    code = "metadata_unavailable"

    def __init__(self, message: str, detail: Optional[str] = None, stderr: Optional[str] = None):
        super().__init__(message, detail or stderr)
        self.stderr = stderr



class StrategyExhaustedError(VidProxyError):
    """All download strategies failed; carries the last underlying error"""
    code = "strategies_exhausted"

    def __init__(self, last_error: Exception, attempts: int):
        super().__init__(f"All {attempts} download strategies failed", str(last_error))
        self.last_error = last_error
        self.attempts = attempts


class AllFallbacksExhaustedError(VidProxyError):
    code = "fallbacks_exhausted"


class OutputFileMissingError(VidProxyError):
    code = "output_missing"


class EmptyOutputFileError(VidProxyError):
    code = "output_empty"
