from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict


@dataclass
class Stopwatch:
    """Wall time of a sync pass, split into named stages via lap()."""

    start: float = field(default_factory=time.monotonic)
    laps: Dict[str, int] = field(default_factory=dict)
    _last: float = field(default=0.0, repr=False)

    def __post_init__(self) -> None:
        self._last = self.start

    def lap(self, stage: str) -> int:
        now = time.monotonic()
        elapsed = int((now - self._last) * 1000)
        self.laps[stage] = elapsed
        self._last = now
        return elapsed

    def ms(self) -> int:
        return int((time.monotonic() - self.start) * 1000)
