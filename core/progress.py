"""
Progress reporting for reconstruction runs.

Loaders and algorithms report ``(percent, message)`` through plain callbacks.
A run groups those reports into stages ("load", "fbp", "export"); the bus
tags each report with its stage and forwards it to the subscribed renderers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Protocol, Union
import sys
import time


@dataclass(frozen=True)
class ProgressEvent:
    """One progress report of a run stage, percent clamped to 0..100."""

    stage: str
    percent: int
    message: str
    timestamp: float = field(default_factory=time.perf_counter)

    @property
    def finished(self) -> bool:
        return self.percent >= 100


class ProgressObserver(Protocol):

    def on_progress(self, event: ProgressEvent) -> None:
        ...


Observer = Union[Callable[[ProgressEvent], None], ProgressObserver]


class ProgressBus:
    """Fans stage progress out to renderers."""

    def __init__(self) -> None:
        self._observers: list[Observer] = []

    def subscribe(self, observer: Observer) -> "ProgressBus":
        self._observers.append(observer)
        return self

    def emit(self, event: ProgressEvent) -> None:
        for observer in tuple(self._observers):
            handler = getattr(observer, "on_progress", observer)
            handler(event)

    def stage_callback(self, stage: str) -> Callable[[int, str], None]:
        """Callback with the loader/algorithm signature, bound to ``stage``."""
        def report(percent: int, message: str) -> None:
            self.emit(ProgressEvent(stage, max(0, min(100, int(percent))), message))

        return report


class TerminalProgressObserver:
    """
    Redraws one status line per stage and closes it with the stage's
    wall time once the stage reaches 100%.
    """

    def __init__(self, bar_width: int = 30, stream=None) -> None:
        self.bar_width = bar_width
        self.stream = stream or sys.stdout
        self._started: Dict[str, float] = {}
        self._open_stage: Optional[str] = None

    def on_progress(self, event: ProgressEvent) -> None:
        if self._open_stage is not None and self._open_stage != event.stage:
            self.stream.write("\n")
        start = self._started.setdefault(event.stage, event.timestamp)

        filled = self.bar_width * event.percent // 100
        bar = "#" * filled + "." * (self.bar_width - filled)
        line = f"\r  [{event.stage}] [{bar}] {event.percent:3d}%  {event.message}"
        if event.finished:
            line += f" ({event.timestamp - start:.2f}s)\n"
            self._started.pop(event.stage, None)
            self._open_stage = None
        else:
            self._open_stage = event.stage
        self.stream.write(line)
        self.stream.flush()


__all__ = [
    "ProgressEvent",
    "ProgressObserver",
    "ProgressBus",
    "TerminalProgressObserver",
]
