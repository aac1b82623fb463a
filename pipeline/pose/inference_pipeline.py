# pipeline/pose/inference_pipeline.py
import time
import logging

from .decision_engine import create_risk_aggregator

log = logging.getLogger("infpipe")


class InferencePipeline:
    """
    One monitoring session: frame -> pose -> risk aggregation -> alert gate.

    Detector math runs synchronously on the caller's thread. Persistence is
    handed to `executor` when one is given, otherwise it runs inline.
    History and vitals baselines are rebuilt on every start() so no state
    carries over between sessions or patients.
    """

    def __init__(self, cfg, pose_source, gate, camera=None, executor=None, extra_detectors=None):
        self.cfg = cfg
        self.pose_source = pose_source
        self.gate = gate
        self.camera = camera
        self.executor = executor
        self.extra_detectors = list(extra_detectors or [])

        self.patient_id = (cfg.get("patient") or {}).get("id")
        self.aggregator = None
        self.running = False

        self.frame_count = 0
        self.pose_count = 0
        self.fps = 0.0
        self.inference_ms = 0.0
        self._fps_start = None

    def start(self, patient_id=None):
        """Begin a session for patient_id (falls back to the configured patient)."""
        if patient_id is not None:
            self.patient_id = patient_id
        if not self.patient_id:
            raise ValueError("No patient selected for monitoring")

        self.aggregator = create_risk_aggregator(self.cfg, extra_detectors=self.extra_detectors)
        self.frame_count = 0
        self.pose_count = 0
        self.fps = 0.0
        self._fps_start = time.time()
        self.running = True
        log.info("Monitoring started for patient %s", self.patient_id)

    def stop(self):
        """Halt the session and drop all temporal state."""
        self.running = False
        if self.aggregator is not None:
            self.aggregator.reset()
        log.info("Monitoring stopped for patient %s", self.patient_id)

    def switch_patient(self, patient_id):
        self.stop()
        self.start(patient_id)

    def process_pose(self, pose, now=None):
        """
        Evaluate one pose and hand the results to the alert gate.

        Returns:
            FrameAnalysis, or None when the session is not running
        """
        if not self.running:
            return None
        if now is None:
            now = time.time()

        analysis = self.aggregator.analyze(pose)
        self.pose_count += 1
        self._persist(self.patient_id, analysis, pose, now)
        return analysis

    def _persist(self, patient_id, analysis, pose, now):
        if self.executor is None:
            self.gate.process(patient_id, analysis, pose, now=now)
            return

        try:
            future = self.executor.submit(self.gate.process, patient_id, analysis, pose, now)
            future.add_done_callback(self._log_persist_failure)
        except RuntimeError as e:
            # Executor is closed, fallback to synchronous
            log.warning("Executor closed, persisting synchronously: %s", e)
            self.gate.process(patient_id, analysis, pose, now=now)

    @staticmethod
    def _log_persist_failure(future):
        exc = future.exception()
        if exc is not None:
            log.error("Persistence task failed: %s", exc)

    def run_once(self):
        """
        Run single inference step. Returns FrameAnalysis or None (skip).
        CaptureError and DetectorNotReadyError propagate to the caller.
        """
        if not self.running:
            return None
        if self.camera is None:
            raise RuntimeError("run_once() needs a camera; use process_pose() for external poses")

        frame = self.camera.read()
        self.frame_count += 1

        st = time.time()
        pose = self.pose_source.get_next_pose(frame)
        self.inference_ms = (time.time() - st) * 1000.0

        elapsed = time.time() - self._fps_start
        self.fps = self.frame_count / elapsed if elapsed > 0 else 0.0

        if pose is None:
            return None

        analysis = self.process_pose(pose)
        if analysis is not None:
            log.debug("FPS: %.2f  Risks: %d  Latency: %.1fms", self.fps, len(analysis.risks), self.inference_ms)
        return analysis
