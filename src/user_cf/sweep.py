from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from typing import Any, Optional


@dataclass
class SweepReport:
    """Counters for one batch sweep. `units` counts units of work attempted."""

    job: str
    units: int = 0
    written: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False

    def merge(self, other: "SweepReport") -> "SweepReport":
        self.units += other.units
        self.written += other.written
        self.skipped += other.skipped
        self.failed += other.failed
        self.cancelled = self.cancelled or other.cancelled
        return self

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def is_cancelled(cancel: Optional[threading.Event]) -> bool:
    return cancel is not None and cancel.is_set()
