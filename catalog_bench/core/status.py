"""Human-readable progress status for benchmark phases."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class StatusSink(Protocol):
    def report(self, message: str) -> None: ...


class LoggingStatusSink:
    """Reports status lines through the `catalog_bench.status` logger."""

    def __init__(self, name: str = "catalog_bench.status") -> None:
        self._logger = logging.getLogger(name)

    def report(self, message: str) -> None:
        self._logger.info("%s", message)


class RecordingStatusSink:
    """Keeps every status line in memory."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def report(self, message: str) -> None:
        self.messages.append(str(message))
