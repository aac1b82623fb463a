# telemetry/mqtt_client.py
import paho.mqtt.client as mqtt
import json
import logging
import time
import gzip
import base64

log = logging.getLogger("mqtt")

COMPRESS_THRESHOLD = 500


def compress_payload(payload_dict):
    """
    Compress JSON payload to keep messages small.
    Returns base64-encoded compressed string.
    """
    json_str = json.dumps(payload_dict, separators=(',', ':'))
    compressed = gzip.compress(json_str.encode('utf-8'))
    return base64.b64encode(compressed).decode('utf-8')


class MqttClient:
    def __init__(self, cfg, device_id):
        self.cfg = cfg
        self.device_id = device_id
        self.topic = f"{cfg.get('topic_prefix', 'safecare')}/{device_id}"
        self.alert_topic = f"{self.topic}/alerts"
        self.critical_topic = f"{self.topic}/alerts/critical"
        self.vitals_topic = f"{self.topic}/vitals"
        self.qos = cfg.get("qos", 1)
        self.use_compression = cfg.get("compress_payload", True)
        self.connected = False

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=device_id)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        try:
            broker = cfg.get("broker", "localhost")
            port = cfg.get("port", 1883)
            timeout = cfg.get("connection_timeout", 5)

            log.info("Connecting to MQTT broker %s:%s...", broker, port)
            self.client.connect(broker, port, keepalive=60)
            self.client.loop_start()

            start_time = time.time()
            while not self.connected and (time.time() - start_time) < timeout:
                time.sleep(0.1)

            if self.connected:
                log.info("MQTT client connected to %s:%s", broker, port)
            else:
                log.warning("MQTT connection timeout after %ss - will retry on publish", timeout)
        except (OSError, ValueError) as e:
            log.warning("MQTT client initialization failed: %s", e)
            self.connected = False

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        """Callback when MQTT client connects."""
        if not reason_code.is_failure:
            self.connected = True
            log.info("MQTT client connected successfully")
        else:
            self.connected = False
            log.warning("MQTT connection failed: %s", reason_code)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties):
        """Callback when MQTT client disconnects."""
        self.connected = False
        if reason_code.is_failure:
            log.warning("MQTT client disconnected unexpectedly (%s)", reason_code)
        else:
            log.info("MQTT client disconnected")

    def _publish(self, topic, payload, qos=None):
        if qos is None:
            qos = self.qos

        if not self.connected:
            try:
                self.client.reconnect()
            except (OSError, ValueError) as e:
                log.debug("MQTT reconnect failed (broker may be unavailable): %s", e)

        json_str = json.dumps(payload, separators=(',', ':'))
        if self.use_compression and len(json_str) > COMPRESS_THRESHOLD:
            self.client.publish(topic, compress_payload(payload), qos=qos)
        else:
            self.client.publish(topic, json_str, qos=qos)

    def publish_alert(self, alert):
        """
        Publish a newly created alert. Critical alerts go to the critical
        topic with QoS 2.
        """
        try:
            payload = {
                "deviceId": self.device_id,
                "alertId": alert.get("id"),
                "patientId": alert.get("patient_id"),
                "type": alert.get("alert_type"),
                "severity": alert.get("severity"),
                "confidence": alert.get("confidence"),
                "description": alert.get("description"),
                "ts": alert.get("ts", time.time()),
            }
            if payload["severity"] == "critical":
                self._publish(self.critical_topic, payload, qos=2)
            else:
                self._publish(self.alert_topic, payload)
        except Exception:
            log.exception("MQTT alert publish failed")

    def publish_session(self, session, bed_data=None):
        """Publish the vitals part of a monitoring session."""
        try:
            payload = {
                "deviceId": self.device_id,
                "patientId": session.get("patient_id"),
                "heart_rate": session.get("heart_rate"),
                "is_in_bed": session.get("is_in_bed"),
                "movement_level": session.get("movement_level"),
                "ts": session.get("ts", time.time()),
            }
            if bed_data is not None:
                payload["temperature"] = bed_data.temperature
                payload["respiratory_rate"] = bed_data.respiratory_rate
            self._publish(self.vitals_topic, payload)
        except Exception:
            log.exception("MQTT vitals publish failed")

    def publish_heartbeat(self, system_health=None):
        """
        Publish heartbeat packet with system health.
        """
        try:
            payload = {
                "deviceId": self.device_id,
                "ts": time.time(),
                "type": "heartbeat",
                "system": system_health or {}
            }
            self.client.publish(
                f"{self.topic}/heartbeat",
                json.dumps(payload, separators=(',', ':')),
                qos=0  # QoS 0 for heartbeat
            )
        except Exception:
            log.exception("MQTT heartbeat publish failed")

    def publish_report(self, report_data, report_type="hourly"):
        """
        Publish a summary report.

        Args:
            report_data: Report dictionary from ReportGenerator
            report_type: "summary" or "hourly"
        """
        try:
            report_topic = f"{self.topic}/reports/{report_type}"
            self._publish(report_topic, report_data)
            log.info("Published %s report to %s", report_type, report_topic)
        except Exception:
            log.exception("MQTT report publish failed")

    def shutdown(self):
        try:
            self.client.loop_stop()
            self.client.disconnect()
        except (OSError, ValueError) as e:
            log.warning("Error during MQTT shutdown: %s", e)


def create_publisher(mqtt_cfg: dict = None, device_id: str = "safecare-01"):
    """Factory function; returns None when telemetry is disabled."""
    if not mqtt_cfg or not mqtt_cfg.get("enabled", True):
        log.info("MQTT telemetry disabled")
        return None
    return MqttClient(mqtt_cfg, device_id)
