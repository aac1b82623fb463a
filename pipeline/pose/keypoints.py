# pipeline/pose/keypoints.py
"""
Keypoint Model
Named body keypoints (COCO order) with detection confidence.
A keypoint is only usable when present and its score is above MIN_CONFIDENCE.
"""
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

MIN_CONFIDENCE = 0.3

COCO_KEYPOINT_NAMES = (
    "nose",
    "left_eye", "right_eye",
    "left_ear", "right_ear",
    "left_shoulder", "right_shoulder",
    "left_elbow", "right_elbow",
    "left_wrist", "right_wrist",
    "left_hip", "right_hip",
    "left_knee", "right_knee",
    "left_ankle", "right_ankle",
)


@dataclass(frozen=True)
class Keypoint:
    """One anatomical landmark in frame-pixel coordinates."""
    x: float
    y: float
    score: float
    name: str

    def to_dict(self) -> Dict:
        return {"x": self.x, "y": self.y, "score": self.score, "name": self.name}


@dataclass(frozen=True)
class PoseData:
    """Full-body estimate for one video frame."""
    keypoints: Tuple[Keypoint, ...]
    score: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "keypoints", tuple(self.keypoints))

    def to_dict(self) -> Dict:
        return {
            "keypoints": [kp.to_dict() for kp in self.keypoints],
            "score": self.score,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "PoseData":
        keypoints = [
            Keypoint(
                x=float(kp.get("x", 0.0)),
                y=float(kp.get("y", 0.0)),
                score=float(kp.get("score", 0.0)),
                name=str(kp.get("name", "")),
            )
            for kp in data.get("keypoints", [])
        ]
        return cls(keypoints=keypoints, score=float(data.get("score", 0.0)))

    @classmethod
    def from_triplets(cls, kps: Iterable[Sequence[float]], score: float = 0.0,
                      names: Sequence[str] = COCO_KEYPOINT_NAMES) -> "PoseData":
        """
        Build a pose from (x, y, confidence) triplets in keypoint-index order.

        Args:
            kps: Iterable of (x, y, conf)
            score: Overall pose score
            names: Keypoint names by index (extra triplets are dropped)
        """
        keypoints = [
            Keypoint(x=float(kp[0]), y=float(kp[1]), score=float(kp[2]), name=name)
            for kp, name in zip(kps, names)
        ]
        return cls(keypoints=keypoints, score=float(score))


def get_keypoint(pose: PoseData, name: str) -> Optional[Keypoint]:
    """First keypoint with this name whose score clears MIN_CONFIDENCE, else None."""
    for kp in pose.keypoints:
        if kp.name == name and kp.score > MIN_CONFIDENCE:
            return kp
    return None


def get_keypoints(pose: PoseData, names: Sequence[str]) -> Optional[List[Keypoint]]:
    """All named keypoints in order, or None if any is missing or not visible."""
    found = []
    for name in names:
        kp = get_keypoint(pose, name)
        if kp is None:
            return None
        found.append(kp)
    return found


def midpoint(a: Keypoint, b: Keypoint) -> Tuple[float, float]:
    return (a.x + b.x) / 2.0, (a.y + b.y) / 2.0


def distance(a: Keypoint, b: Keypoint) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)
