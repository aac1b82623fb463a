# pipeline/pose/pose_estimator.py
import logging

from .keypoints import COCO_KEYPOINT_NAMES, PoseData

log = logging.getLogger("pose")


class DetectorNotReadyError(RuntimeError):
    """Pose source used before its model finished loading."""


class PoseEstimator:
    """
    Ultralytics YOLO pose wrapper.
    Output: PoseData with the 17 COCO keypoints of the first detected person,
    in frame-pixel coordinates. Requires 'ultralytics' package.
    """

    def __init__(self, model="yolo11n-pose.pt", conf=0.5, device="cpu"):
        self.model_path = model
        self.conf = conf
        self.device = device
        self.model = None

    @property
    def ready(self):
        return self.model is not None

    def initialize(self):
        """Load the pose model. Raises DetectorNotReadyError if it cannot be loaded."""
        if self.model is not None:
            return
        try:
            from ultralytics import YOLO
            self.model = YOLO(self.model_path)
        except Exception as e:
            log.error("Failed to load YOLO pose model %s: %s", self.model_path, e)
            raise DetectorNotReadyError(f"Pose model {self.model_path} could not be loaded") from e
        log.info("YOLO pose model loaded: %s", self.model_path)

    def get_next_pose(self, frame):
        """
        Infer the pose in one frame.

        Returns:
            PoseData, or None when nobody is in view
        """
        if self.model is None:
            raise DetectorNotReadyError("Pose estimator used before initialize()")

        results = self.model.predict(
            source=frame,
            conf=self.conf,
            device=self.device,
            verbose=False
        )[0]

        if results.keypoints is None or len(results.keypoints.data) == 0:
            log.debug("No person detected - skipping frame")
            return None

        score = 0.0
        if getattr(results, "boxes", None) is not None and len(results.boxes.conf) > 0:
            score = float(results.boxes.conf[0])

        # First person's keypoints, shape (17, 3)
        kp_data = results.keypoints.data[0]
        if hasattr(kp_data, "cpu"):
            kp_data = kp_data.cpu().numpy()
        return to_pose_data(kp_data, score)


def to_pose_data(kp_data, score=0.0):
    """Convert an (N, 3) array of (x, y, conf) rows into PoseData."""
    kps = []
    for kp in kp_data:
        conf_kp = float(kp[2]) if len(kp) > 2 else 0.0
        kps.append((float(kp[0]), float(kp[1]), conf_kp))
    return PoseData.from_triplets(kps, score=score, names=COCO_KEYPOINT_NAMES)


def create_pose_estimator(config: dict = None) -> PoseEstimator:
    """Factory function to create the pose source."""
    if config is None:
        config = {}

    return PoseEstimator(
        model=config.get("model", "yolo11n-pose.pt"),
        conf=config.get("confidence", 0.5),
        device=config.get("device", "cpu"),
    )
