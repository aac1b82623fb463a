# analytics/risk_detection.py
"""
Rule-Based Risk Detection
Fall, wandering, aggression and emotional-distress heuristics over the
latest pose and the pose history window.

Every detector returns at most one RiskDetection, or None when the condition
is absent or a required keypoint is missing / below MIN_CONFIDENCE. Nothing is
imputed.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from pipeline.pose.keypoints import PoseData, distance, get_keypoint, get_keypoints, midpoint
from pipeline.pose.pose_history import PoseHistory
from .risk_types import RiskDetection, RiskType, Severity

log = logging.getLogger("risk")

# Fall: horizontally elongated torso with the nose below the shoulder line
FALL_ASPECT_RATIO = 1.5

# Wandering: sustained absence from bed over the last N frames
WANDERING_MIN_HISTORY = 10
WANDERING_WINDOW = 10
WANDERING_MIN_OUT_OF_BED = 7

# Aggression: average wrist displacement (px per frame step) over the last N frames
AGGRESSION_WINDOW = 5
AGGRESSION_MOVEMENT_THRESHOLD = 100.0
AGGRESSION_CONFIDENCE_SCALE = 200.0

# Emotional distress: shoulder slope relative to torso length
DISTRESS_SLOPE_RATIO = 0.3
DISTRESS_CONFIDENCE = 0.6

TORSO_KEYPOINTS = ("nose", "left_hip", "right_hip", "left_shoulder", "right_shoulder")


@dataclass(frozen=True)
class BedArea:
    """Monitored bed rectangle in frame-pixel coordinates."""
    x: float
    y: float
    width: float
    height: float

    def contains(self, px: float, py: float) -> bool:
        return (self.x <= px <= self.x + self.width and
                self.y <= py <= self.y + self.height)

    @classmethod
    def from_config(cls, config: Dict = None) -> "BedArea":
        if config is None:
            config = {}
        return cls(
            x=float(config.get("x", 200)),
            y=float(config.get("y", 150)),
            width=float(config.get("width", 400)),
            height=float(config.get("height", 300)),
        )


def hip_midpoint(pose: PoseData) -> Optional[Tuple[float, float]]:
    hips = get_keypoints(pose, ("left_hip", "right_hip"))
    if hips is None:
        return None
    return midpoint(*hips)


def is_in_bed(pose: PoseData, bed_area: BedArea) -> bool:
    """Bed occupancy from the hip midpoint. No usable hips counts as not in bed."""
    hip = hip_midpoint(pose)
    if hip is None:
        return False
    return bed_area.contains(*hip)


def _is_out_of_bed(pose: PoseData, bed_area: BedArea) -> bool:
    # Poses without usable hips are excluded, not treated as in bed
    hip = hip_midpoint(pose)
    return hip is not None and not bed_area.contains(*hip)


def detect_fall(pose: PoseData) -> Optional[RiskDetection]:
    kps = get_keypoints(pose, TORSO_KEYPOINTS)
    if kps is None:
        return None
    nose, left_hip, right_hip, left_shoulder, right_shoulder = kps

    hip_x, hip_y = midpoint(left_hip, right_hip)
    shoulder_x, shoulder_y = midpoint(left_shoulder, right_shoulder)

    body_height = abs(hip_y - shoulder_y)
    body_width = abs(hip_x - shoulder_x)
    aspect_ratio = body_width / (body_height + 1)

    if aspect_ratio > FALL_ASPECT_RATIO and nose.y > shoulder_y:
        log.debug("Fall pattern: aspect_ratio=%.2f nose_y=%.1f shoulder_y=%.1f",
                  aspect_ratio, nose.y, shoulder_y)
        return RiskDetection(
            type=RiskType.FALL,
            severity=Severity.CRITICAL,
            confidence=min(aspect_ratio / 2, 1.0),
            description="Patient appears to have fallen - body is horizontal",
        )
    return None


def detect_wandering(pose: PoseData, history: PoseHistory, bed_area: BedArea) -> Optional[RiskDetection]:
    hip = hip_midpoint(pose)
    if hip is None or bed_area.contains(*hip):
        return None
    if len(history) <= WANDERING_MIN_HISTORY:
        return None

    recent = history.snapshot(WANDERING_WINDOW)
    out_of_bed = sum(1 for p in recent if _is_out_of_bed(p, bed_area))

    if out_of_bed > WANDERING_MIN_OUT_OF_BED:
        return RiskDetection(
            type=RiskType.WANDERING,
            severity=Severity.HIGH,
            confidence=out_of_bed / WANDERING_WINDOW,
            description="Patient has left the bed area",
        )
    return None


def wrist_movement(history: PoseHistory, window: int = AGGRESSION_WINDOW) -> float:
    """
    Summed wrist displacement over the last `window` poses.
    Left and right wrists are tracked independently; a step where either end
    of a wrist is not visible contributes nothing.
    """
    recent = history.snapshot(window)
    total = 0.0
    for prev, curr in zip(recent, recent[1:]):
        for name in ("left_wrist", "right_wrist"):
            a = get_keypoint(prev, name)
            b = get_keypoint(curr, name)
            if a is not None and b is not None:
                total += distance(a, b)
    return total


def detect_aggression(pose: PoseData, history: PoseHistory) -> Optional[RiskDetection]:
    if len(history) < AGGRESSION_WINDOW:
        return None
    if get_keypoints(pose, ("left_wrist", "right_wrist")) is None:
        return None

    avg_movement = wrist_movement(history) / AGGRESSION_WINDOW

    if avg_movement > AGGRESSION_MOVEMENT_THRESHOLD:
        log.debug("Rapid wrist movement: avg=%.1f px/step", avg_movement)
        return RiskDetection(
            type=RiskType.AGGRESSION,
            severity=Severity.HIGH,
            confidence=min(avg_movement / AGGRESSION_CONFIDENCE_SCALE, 1.0),
            description="Rapid arm movements detected - possible aggressive behavior",
        )
    return None


def detect_emotional_distress(pose: PoseData) -> Optional[RiskDetection]:
    """
    Posture proxy for emotional distress: markedly uneven shoulders while the
    head is held above the shoulder line. Heuristic only, not a validated
    clinical signal.
    """
    kps = get_keypoints(pose, TORSO_KEYPOINTS)
    if kps is None:
        return None
    nose, left_hip, right_hip, left_shoulder, right_shoulder = kps

    _, shoulder_y = midpoint(left_shoulder, right_shoulder)
    _, hip_y = midpoint(left_hip, right_hip)

    shoulder_slope = abs(left_shoulder.y - right_shoulder.y)
    body_length = abs(hip_y - shoulder_y)

    if shoulder_slope > body_length * DISTRESS_SLOPE_RATIO and nose.y < shoulder_y:
        return RiskDetection(
            type=RiskType.EMOTION,
            severity=Severity.MEDIUM,
            confidence=DISTRESS_CONFIDENCE,
            description="Unusual posture detected - possible emotional distress",
        )
    return None
