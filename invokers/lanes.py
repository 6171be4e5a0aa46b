"""
Per-lane published state.

A lane is one independent analysis pipeline (image or text). Each lane keeps
its own result, busy flag, error, current task and epoch. The epoch is bumped
whenever the lane's in-flight work is superseded, so a late completion can
recognise itself as stale.
"""

import asyncio
import copy
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class Lane(str, enum.Enum):
    IMAGE = "image"
    TEXT = "text"


@dataclass
class LaneState:
    result: Any = None
    busy: bool = False
    error: Optional[str] = None
    epoch: int = 0
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    def advance(self) -> int:
        """Supersede whatever is in flight. Returns the new epoch."""
        self.epoch += 1
        return self.epoch

    def cancel_task(self) -> None:
        task, self.task = self.task, None
        if task is not None and not task.done():
            task.cancel()

    def is_current(self, epoch: int) -> bool:
        return self.epoch == epoch

    def snapshot(self) -> Dict[str, Any]:
        return {
            "result": copy.deepcopy(self.result),
            "busy": self.busy,
            "error": self.error,
            "epoch": self.epoch,
        }


class LaneBoard:
    """
    Holds every lane's state and notifies one observer after each mutation.

    Only touched from the event loop thread.
    """

    def __init__(self, empty_results: Dict[Lane, Callable[[], Any]]):
        self._empty = dict(empty_results)
        self.lanes: Dict[Lane, LaneState] = {
            lane: LaneState(result=factory()) for lane, factory in self._empty.items()
        }
        self._on_update: Optional[Callable[[str, dict], None]] = None

    def __getitem__(self, lane: Lane) -> LaneState:
        return self.lanes[lane]

    def empty_result(self, lane: Lane) -> Any:
        return self._empty[lane]()

    def set_on_update(self, cb: Optional[Callable[[str, dict], None]]) -> None:
        """Register a callback invoked after every published change: cb(lane_name, snapshot)."""
        self._on_update = cb

    def fire_update(self, lane: Lane) -> None:
        cb = self._on_update
        if cb is None:
            return
        try:
            cb(lane.value, self.lanes[lane].snapshot())
        except Exception:
            logger.exception("[lanes] on_update callback failed for lane %s", lane.value)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {lane.value: state.snapshot() for lane, state in self.lanes.items()}
