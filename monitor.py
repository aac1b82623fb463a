# monitor.py
import argparse
import logging
import signal
import sys
import time
from concurrent.futures import ThreadPoolExecutor

import yaml

from pipeline.patient.alert_gate import create_alert_gate
from pipeline.pose.camera import CaptureError, create_camera
from pipeline.pose.inference_pipeline import InferencePipeline
from pipeline.pose.pose_estimator import DetectorNotReadyError, create_pose_estimator
from pipeline.pose.system_metrics import get_health
from storage.db import DB_PATH, LocalDB
from storage.reporting import ReportGenerator
from telemetry.mqtt_client import create_publisher

log = logging.getLogger("monitor")

LOG_EVERY_FRAMES = 30
SESSION_RETENTION_DAYS = 30


def load_config(path, required=True):
    try:
        with open(path) as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        if required:
            raise
        log.warning("Optional config %s not loaded: %s", path, e)
        return {}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="SafeCare patient monitor")
    parser.add_argument("--config", default="config/system.yaml", help="System config file path")
    parser.add_argument("--mqtt-config", default="config/mqtt.yaml", help="MQTT config file path")
    parser.add_argument("--patient-id", help="Patient to monitor (overrides config)")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = run until signalled)")
    return parser.parse_args(argv)


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)

    try:
        cfg = load_config(args.config)
    except (OSError, yaml.YAMLError) as e:
        log.error("Failed to load config: %s", e)
        return 1
    mqtt_cfg = load_config(args.mqtt_config, required=False)
    device_id = cfg.get("device_id", "safecare-01")

    db = LocalDB(cfg.get("database_path", DB_PATH))
    publisher = create_publisher(mqtt_cfg, device_id)
    gate = create_alert_gate(db, publisher, cfg.get("alerts"))
    report_gen = ReportGenerator(db, device_id)

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="persist")
    pose_source = create_pose_estimator(cfg.get("pose"))
    camera = None

    running = True

    def stop(sig, frame):
        """Signal handler for graceful shutdown."""
        nonlocal running
        log.info("Received stop signal (sig=%d), shutting down...", sig)
        running = False

    signal.signal(signal.SIGINT, stop)
    signal.signal(signal.SIGTERM, stop)

    exit_code = 0
    pipe = None
    try:
        pose_source.initialize()
        camera = create_camera(cfg)
        pipe = InferencePipeline(cfg, pose_source, gate, camera=camera, executor=executor)
        pipe.start(args.patient_id)
    except (DetectorNotReadyError, CaptureError, ValueError) as e:
        log.error("Monitor start-up failed: %s", e)
        exit_code = 1
        running = False

    if running:
        log.info("=" * 60)
        log.info("SafeCare Monitor - Starting")
        log.info("Device ID: %s", device_id)
        log.info("Camera: %s @ %s", cfg.get("camera_idx", 0), cfg.get("camera_resolution"))
        log.info("MQTT: %s", "enabled" if publisher else "disabled")
        log.info("=" * 60)
        db.cleanup_old_sessions(days=cfg.get("session_retention_days", SESSION_RETENTION_DAYS))

    heartbeat_interval = cfg.get("heartbeat_interval", 60)
    report_interval = cfg.get("report_interval", 3600)
    last_heartbeat = 0.0
    last_report = time.time()
    start_time = time.time()

    while running:
        try:
            analysis = pipe.run_once()
        except (CaptureError, DetectorNotReadyError) as e:
            log.error("Monitoring halted: %s", e)
            exit_code = 1
            break
        except Exception:
            log.exception("Pipeline error - retrying in 2s")
            time.sleep(2)
            continue

        current_time = time.time()

        if pipe.frame_count % LOG_EVERY_FRAMES == 0:
            elapsed = current_time - start_time
            fps = pipe.frame_count / elapsed if elapsed > 0 else 0
            log.info("Frames: %d | Poses: %d | Avg FPS: %.2f | Latency: %.1fms | Risks: %s | Alerts: %s",
                     pipe.frame_count, pipe.pose_count, fps, pipe.inference_ms,
                     [r.type.value for r in analysis.risks] if analysis else [],
                     gate.get_stats())

        if publisher and current_time - last_heartbeat >= heartbeat_interval:
            publisher.publish_heartbeat(get_health(db.path))
            last_heartbeat = current_time

        if publisher and current_time - last_report >= report_interval:
            publisher.publish_report(report_gen.generate_hourly_report(current_time), "hourly")
            last_report = current_time

        if args.max_frames and pipe.frame_count >= args.max_frames:
            log.info("Reached --max-frames %d", args.max_frames)
            break

    if pipe is not None:
        pipe.stop()
        log.info("Total frames processed: %d", pipe.frame_count)

    log.info("Waiting for pending writes...")
    executor.shutdown(wait=True)

    if camera is not None:
        camera.release()
    if publisher:
        publisher.shutdown()
    db.close()

    log.info("SafeCare monitor stopped")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
