# pipeline/pose/camera.py
import cv2
import time
import logging

log = logging.getLogger("camera")


class CaptureError(RuntimeError):
    """The camera could not be opened or stopped delivering frames."""


class Camera:
    def __init__(self, index=0, resolution=(1280, 720), fps=15, retries=5):
        self.index = index
        self.fps = fps
        self.retries = retries
        self.cap = cv2.VideoCapture(index)

        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, resolution[0])
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, resolution[1])
        self.cap.set(cv2.CAP_PROP_FPS, fps)

        time.sleep(0.2)  # allow warm-up

        if not self.cap.isOpened():
            raise CaptureError(f"Camera {index} could not be opened")
        log.info("Camera %s opened with resolution %s at %s FPS", index, tuple(resolution), fps)

    def read(self):
        """Reads a valid frame, retrying briefly. Raises CaptureError on failure."""
        for _ in range(self.retries):
            ret, frame = self.cap.read()
            if ret and frame is not None:
                return frame
            time.sleep(0.05)

        log.error("Camera %s read failed after %d retries", self.index, self.retries)
        raise CaptureError(f"Camera {self.index} stopped delivering frames")

    def release(self):
        """Safely release camera."""
        if self.cap.isOpened():
            self.cap.release()
            log.info("Camera %s released", self.index)


def create_camera(cfg: dict = None) -> Camera:
    """Factory function to open the camera from the system config."""
    if cfg is None:
        cfg = {}

    return Camera(
        index=cfg.get("camera_idx", 0),
        resolution=tuple(cfg.get("camera_resolution", (1280, 720))),
        fps=cfg.get("camera_fps", 15),
    )
