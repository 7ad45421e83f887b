# drag.py — Pointer drag gesture for moving cards between columns
# idle --press/move past threshold--> dragging --release--> dropped --> idle

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from models import TaskStatus
from schemas import BoardTask

logger = logging.getLogger("mons.drag")

# Pointer travel (px) before a press turns into a drag; shorter presses are clicks
ACTIVATION_DISTANCE = 8.0


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    DROPPED = "dropped"


class DropOutcome(str, Enum):
    CLICK = "click"
    MOVED = "moved"
    DISCARDED = "discarded"


@dataclass
class DropResult:
    outcome: DropOutcome
    task_id: int
    target: Optional[TaskStatus] = None


def parse_column(column: Optional[str]) -> Optional[TaskStatus]:
    if column is None:
        return None
    try:
        return TaskStatus(column)
    except ValueError:
        return None


class DragGesture:
    """One pointer gesture at a time over a board controller."""

    def __init__(self, controller, activation_distance: float = ACTIVATION_DISTANCE):
        self._controller = controller
        self.activation_distance = activation_distance
        self._reset()

    def _reset(self) -> None:
        self.state = DragState.IDLE
        self._task_id: Optional[int] = None
        self.target: Optional[TaskStatus] = None
        self.overlay: Optional[BoardTask] = None
        self._origin = None

    @property
    def task_id(self) -> Optional[int]:
        """Id of the pressed card, following it if its create is confirmed mid-gesture."""
        if self._task_id is None:
            return None
        return self._controller.resolve_id(self._task_id)

    @property
    def pressed(self) -> bool:
        return self._origin is not None

    def press(self, task_id: int, x: float, y: float) -> bool:
        if self.state != DragState.IDLE or self.pressed:
            self.cancel()
        if self._controller.snapshot(task_id) is None:
            return False
        self._task_id = self._controller.resolve_id(task_id)
        self._origin = (x, y)
        return True

    def move(self, x: float, y: float) -> DragState:
        if self.state == DragState.IDLE and self.pressed:
            distance = math.hypot(x - self._origin[0], y - self._origin[1])
            if distance > self.activation_distance:
                self.overlay = self._controller.snapshot(self.task_id)
                if self.overlay is None:
                    # card vanished while pressed
                    self._reset()
                    return self.state
                self.state = DragState.DRAGGING
                logger.debug(f"Dragging task #{self.task_id}")
        return self.state

    def release(self, column: Optional[str] = None) -> Optional[DropResult]:
        if not self.pressed:
            return None
        task_id = self.task_id

        if self.state == DragState.IDLE:
            self._reset()
            self._controller.open_detail(task_id)
            return DropResult(DropOutcome.CLICK, task_id)

        self.state = DragState.DROPPED
        self.target = parse_column(column)
        if self.target is not None and self._controller.set_status(task_id, self.target):
            result = DropResult(DropOutcome.MOVED, task_id, self.target)
        else:
            result = DropResult(DropOutcome.DISCARDED, task_id)
        self._reset()
        return result

    def cancel(self) -> None:
        self._reset()

    def is_suppressed(self, task_id: int) -> bool:
        """The card being dragged is drawn as an overlay, not in its column."""
        return self.state == DragState.DRAGGING and self.task_id == self._controller.resolve_id(task_id)
