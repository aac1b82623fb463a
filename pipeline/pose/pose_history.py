# pipeline/pose/pose_history.py
"""
Pose History Window
Bounded FIFO buffer of recent poses feeding the temporal detectors.
One instance per monitoring session; cleared on stop or patient switch.
"""
import logging
from collections import deque
from typing import List, Optional

from .keypoints import PoseData

log = logging.getLogger("pose_history")

MAX_HISTORY = 30


class PoseHistory:
    def __init__(self, max_history: int = MAX_HISTORY):
        """
        Args:
            max_history: Capacity; the oldest pose is evicted beyond this
        """
        if max_history < 1:
            raise ValueError(f"max_history must be positive, got {max_history}")
        self.max_history = max_history
        self._poses = deque(maxlen=max_history)

    def append(self, pose: PoseData):
        """Add pose as newest entry. Rejects non-poses before touching the buffer."""
        if not isinstance(pose, PoseData):
            raise TypeError(f"Expected PoseData, got {type(pose).__name__}")
        self._poses.append(pose)

    def clear(self):
        if self._poses:
            log.debug("Clearing pose history (%d entries)", len(self._poses))
        self._poses.clear()

    def snapshot(self, last_n: Optional[int] = None) -> List[PoseData]:
        """
        Most recent entries, oldest first.

        Args:
            last_n: Number of entries wanted (None = all). Fewer are returned
                    when the window holds less.
        """
        if last_n is None:
            return list(self._poses)
        if last_n <= 0:
            return []
        return list(self._poses)[-last_n:]

    @property
    def latest(self) -> Optional[PoseData]:
        return self._poses[-1] if self._poses else None

    def __len__(self):
        return len(self._poses)
