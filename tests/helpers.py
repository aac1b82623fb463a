# tests/helpers.py
"""Mock keypoint builders shared by the test modules."""
from analytics.risk_detection import BedArea
from analytics.risk_types import RiskDetection
from analytics.vitals import SmartBedData
from pipeline.pose.keypoints import COCO_KEYPOINT_NAMES, PoseData

BED = BedArea(x=200, y=150, width=400, height=300)

# Upright patient centred in BED, frame-pixel coordinates
STANDING_IN_BED = {
    "nose": (400, 180, 0.9),
    "left_eye": (390, 175, 0.8),
    "right_eye": (410, 175, 0.8),
    "left_ear": (380, 180, 0.7),
    "right_ear": (420, 180, 0.7),
    "left_shoulder": (370, 220, 0.9),
    "right_shoulder": (430, 220, 0.9),
    "left_elbow": (360, 270, 0.8),
    "right_elbow": (440, 270, 0.8),
    "left_wrist": (355, 310, 0.7),
    "right_wrist": (445, 310, 0.7),
    "left_hip": (380, 330, 0.9),
    "right_hip": (420, 330, 0.9),
    "left_knee": (380, 390, 0.8),
    "right_knee": (420, 390, 0.8),
    "left_ankle": (380, 440, 0.7),
    "right_ankle": (420, 440, 0.7),
}


def make_pose(score=0.9, **overrides):
    """
    Pose from STANDING_IN_BED with some keypoints replaced.
    An override of None drops that keypoint entirely.
    """
    kps = dict(STANDING_IN_BED)
    kps.update(overrides)
    names = [n for n in COCO_KEYPOINT_NAMES if kps.get(n) is not None]
    return PoseData.from_triplets([kps[n] for n in names], score=score, names=names)


def out_of_bed_pose():
    """Hips left of the bed rectangle."""
    return make_pose(left_hip=(90, 330, 0.9), right_hip=(110, 330, 0.9))


def hipless_pose():
    return make_pose(left_hip=(380, 330, 0.1), right_hip=(420, 330, 0.1))


def fall_pose():
    """Torso width 10, height 4 -> aspect 2.0, nose below shoulders."""
    return make_pose(
        nose=(100, 110, 0.9),
        left_shoulder=(95, 100, 0.9),
        right_shoulder=(105, 100, 0.9),
        left_hip=(105, 104, 0.9),
        right_hip=(115, 104, 0.9),
    )


def distress_pose():
    """Shoulder slope 40 over body length 100, head up, hips in bed."""
    return make_pose(
        nose=(400, 150, 0.9),
        left_shoulder=(370, 200, 0.9),
        right_shoulder=(430, 240, 0.9),
        left_hip=(380, 320, 0.9),
        right_hip=(420, 320, 0.9),
    )


def wrist_pose(left_x, right_x=445.0):
    return make_pose(left_wrist=(left_x, 310, 0.9), right_wrist=(right_x, 310, 0.9))


class MidpointRng:
    """Stand-in generator: uniform() returns a fixed point of the interval."""

    def __init__(self, position=0.5):
        self.position = position

    def uniform(self, low, high):
        return low + (high - low) * self.position


def normal_bed_data():
    return SmartBedData(heart_rate=75, is_in_bed=True, temperature=37.0, respiratory_rate=16)


def risk(type_="fall", severity="critical", confidence=0.9, description="test risk"):
    return RiskDetection(type=type_, severity=severity, confidence=confidence, description=description)
