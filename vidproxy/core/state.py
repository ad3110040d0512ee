import time
from dataclasses import dataclass, field
from typing import Any, Optional
from redis.asyncio import Redis


@dataclass
class RuntimeState:
    """Centralized runtime state"""
    redis: Optional[Redis] = None
    started_at: float = field(default_factory=time.time)
    locator: Optional[Any] = None
    scheduler: Optional[Any] = None


state = RuntimeState()
