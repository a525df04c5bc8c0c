from __future__ import annotations

import threading
import time
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Optional


@dataclass(frozen=True)
class ProgressSnapshot:
    current: int
    total: int
    is_running: bool
    last_update: float
    cancel_requested: bool = False

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        return {
            "current": data["current"],
            "total": data["total"],
            "isRunning": data["is_running"],
            "lastUpdate": int(data["last_update"] * 1000),
            "cancelRequested": data["cancel_requested"],
        }


class SyncProgress:
    """Progress and cancellation token for one bulk sync.

    Handed to the sync call by whoever wants to observe it; nothing here is
    shared between syncs unless the caller reuses the same token.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self.current = 0
        self.total = 0
        self.is_running = False
        self.last_update = 0.0
        self.cancel_requested = False

    def start(self, total: int) -> None:
        with self._lock:
            self.current = 0
            self.total = total
            self.is_running = True
            self.cancel_requested = False
            self.last_update = self._clock()

    def update(self, current: int, total: Optional[int] = None) -> None:
        with self._lock:
            if not self.is_running:
                return
            self.current = current
            if total is not None:
                self.total = total
            self.last_update = self._clock()

    def finish(self) -> None:
        with self._lock:
            self.current = self.total
            self.is_running = False
            self.last_update = self._clock()

    def cancel(self) -> None:
        with self._lock:
            self.cancel_requested = True
            self.last_update = self._clock()

    @property
    def cancelled(self) -> bool:
        return self.cancel_requested

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return ProgressSnapshot(
                current=self.current,
                total=self.total,
                is_running=self.is_running,
                last_update=self.last_update,
                cancel_requested=self.cancel_requested,
            )
