from .errors import (
    AllFallbacksExhaustedError,
    EmptyOutputFileError,
    InvalidInputError,
    MetadataUnavailableError,
    OutputFileMissingError,
    StrategyExhaustedError,
    ToolInvocationError,
    ToolNotFoundError,
    VidProxyError,
)

__all__ = [
    "AllFallbacksExhaustedError",
    "EmptyOutputFileError",
    "InvalidInputError",
    "MetadataUnavailableError",
    "OutputFileMissingError",
    "StrategyExhaustedError",
    "ToolInvocationError",
    "ToolNotFoundError",
    "VidProxyError",
]
