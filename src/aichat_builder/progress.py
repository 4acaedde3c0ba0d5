"""Cosmetic progress indicator shown while a page is being generated.

The numbers carry no meaning about the backend; they only promise to start
at 0, never go backwards during a request and reach 100 on completion.
"""

import asyncio
import logging
import random
from typing import Callable

logger = logging.getLogger(__name__)

PHASES = [
    ("thinking", "Analyzing your request..."),
    ("generating", "Generating HTML structure..."),
    ("styling", "Adding beautiful styles..."),
    ("optimizing", "Optimizing for responsiveness..."),
    ("finalizing", "Putting finishing touches..."),
]

# Ticks never take a pending request past this value.
PENDING_CEILING = 95.0

ProgressListener = Callable[[float, str], None]


def phase_for(progress: float) -> int:
    """Return the index of the phase a progress value falls into."""
    index = int(progress * len(PHASES) / 100)
    return max(0, min(index, len(PHASES) - 1))


class ProgressTracker:
    """Drives the progress value from an asyncio timer task."""

    def __init__(
        self,
        on_change: ProgressListener | None = None,
        interval: float = 0.5,
        rng: random.Random | None = None,
    ):
        self.on_change = on_change
        self.interval = interval
        self._rng = rng or random.Random()
        self.progress = 0.0
        self._task: asyncio.Task | None = None

    @property
    def phase(self) -> str:
        return PHASES[phase_for(self.progress)][0]

    @property
    def label(self) -> str:
        return PHASES[phase_for(self.progress)][1]

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        """Reset to the first phase and begin ticking."""
        self.reset()
        self._task = asyncio.get_running_loop().create_task(self._tick())

    def advance(self, amount: float) -> None:
        target = min(PENDING_CEILING, self.progress + amount)
        if target > self.progress:
            self._set(target)

    def complete(self) -> None:
        self.stop()
        self._set(100.0)

    def reset(self) -> None:
        self.stop()
        self._set(0.0)

    def stop(self) -> None:
        """Cancel the timer; calling it again is a no-op."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()

    def snapshot(self) -> dict:
        return {"progress": round(self.progress, 1), "phase": self.phase, "label": self.label}

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.advance(self._rng.uniform(2.0, 12.0))

    def _set(self, value: float) -> None:
        self.progress = value
        if self.on_change is not None:
            self.on_change(value, self.phase)
