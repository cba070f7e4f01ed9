from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable

from .config import ServerConfig
from .retry import RetryPolicy
from .tools.pixellab import PixelLabClient


@dataclass(frozen=True, slots=True)
class ToolContext:
    """Everything a tool handler needs, built once at startup and passed in."""

    config: ServerConfig
    client: PixelLabClient
    sleep: Callable[[float], Awaitable[None]] | None = None

    @classmethod
    def from_config(cls, config: ServerConfig) -> "ToolContext":
        client = PixelLabClient(config.secret, base_url=config.base_url, timeout=config.timeout)
        return cls(config=config, client=client)

    @property
    def retry_policy(self) -> RetryPolicy:
        return self.config.retry_policy
