# pipeline/patient/alert_gate.py
"""
Alert Deduplication & Persistence Gate
Suppresses repeat alerts of the same type for a patient while an active one
was created within the cooldown window, and records one monitoring-session
row per evaluation cycle.
"""
import time
import logging
import threading
from typing import Callable, List, Optional

from analytics.risk_types import RiskDetection, Severity

log = logging.getLogger("alert_gate")

DEDUP_WINDOW_SECONDS = 5.0

# Activity intensity is not measured yet; every session row carries this value
MOVEMENT_LEVEL_PLACEHOLDER = 50


class AlertGate:
    """
    Dedup gate in front of the alert store.

    The store must provide query_active_alerts, insert_alert and
    insert_monitoring_session (see storage.db.LocalDB). Query or insert
    failures are logged and the write for that cycle is dropped.
    """

    def __init__(self,
                 store,
                 publisher=None,
                 dedup_window_seconds: float = DEDUP_WINDOW_SECONDS,
                 clock: Callable[[], float] = time.time):
        """
        Args:
            store: Alert / session store
            publisher: Optional telemetry publisher (publish_alert, publish_session)
            dedup_window_seconds: Cooldown per (patient, alert type)
            clock: Time source for cycles that do not pass `now`
        """
        self.store = store
        self.publisher = publisher
        self.dedup_window_seconds = dedup_window_seconds
        self.clock = clock

        # Serializes check-then-insert within this process
        self._lock = threading.Lock()

        self.suppressed_count = 0
        self.created_count = 0
        self.dropped_count = 0

    def submit_risk(self, patient_id: str, risk: RiskDetection, now: float = None) -> Optional[dict]:
        """
        Persist a detection as an active alert unless a duplicate is active.

        Returns:
            The created alert dict, or None if suppressed or dropped
        """
        if now is None:
            now = self.clock()
        alert_type = risk.type.value

        with self._lock:
            try:
                existing = self.store.query_active_alerts(
                    patient_id, alert_type, now - self.dedup_window_seconds
                )
            except Exception as e:
                log.exception("Dedup query failed for %s/%s: %s", patient_id, alert_type, e)
                existing = None

            if existing is None:
                self.dropped_count += 1
                log.warning("Dropping %s alert for patient %s (dedup query failed)", alert_type, patient_id)
                return None

            if existing:
                self.suppressed_count += 1
                log.debug("Suppressed duplicate %s alert for patient %s", alert_type, patient_id)
                return None

            try:
                alert = self.store.insert_alert(
                    patient_id=patient_id,
                    alert_type=alert_type,
                    severity=risk.severity.value,
                    description=risk.description,
                    confidence=risk.confidence,
                    ts=now,
                )
            except Exception as e:
                log.exception("Alert insert failed for %s/%s: %s", patient_id, alert_type, e)
                alert = None

            if alert is None:
                self.dropped_count += 1
                log.warning("Dropping %s alert for patient %s (insert failed)", alert_type, patient_id)
                return None

            self.created_count += 1

        if risk.severity is Severity.CRITICAL:
            log.critical("CRITICAL %s alert for patient %s: %s", alert_type, patient_id, risk.description)
        else:
            log.warning("%s alert (%s) for patient %s: %s",
                        alert_type, risk.severity.value, patient_id, risk.description)

        if self.publisher is not None:
            self.publisher.publish_alert(alert)
        return alert

    def record_session(self, patient_id: str, pose, bed_data, now: float = None) -> Optional[dict]:
        """Append one monitoring-session row. Returns the row, or None if dropped."""
        if now is None:
            now = self.clock()
        try:
            session = self.store.insert_monitoring_session(
                patient_id=patient_id,
                heart_rate=bed_data.heart_rate,
                is_in_bed=bed_data.is_in_bed,
                movement_level=MOVEMENT_LEVEL_PLACEHOLDER,
                pose_data=pose,
                ts=now,
            )
        except Exception as e:
            log.exception("Session insert failed for %s: %s", patient_id, e)
            session = None

        if session is None:
            self.dropped_count += 1
            log.warning("Dropping monitoring session for patient %s", patient_id)
            return None

        if self.publisher is not None:
            self.publisher.publish_session(session, bed_data)
        return session

    def process(self, patient_id: str, analysis, pose, now: float = None):
        """
        Persist one evaluation cycle: every risk through the dedup check, then
        the session row. A failed write never blocks the others.

        Returns:
            (created alerts, session row or None)
        """
        if now is None:
            now = self.clock()

        created: List[dict] = []
        for risk in analysis.risks:
            alert = self.submit_risk(patient_id, risk, now=now)
            if alert is not None:
                created.append(alert)

        session = self.record_session(patient_id, pose, analysis.bed_data, now=now)
        return created, session

    def get_stats(self) -> dict:
        return {
            "created": self.created_count,
            "suppressed": self.suppressed_count,
            "dropped": self.dropped_count,
        }


def create_alert_gate(store, publisher=None, config: dict = None) -> AlertGate:
    """Factory function to create the alert gate."""
    if config is None:
        config = {}

    return AlertGate(
        store,
        publisher=publisher,
        dedup_window_seconds=config.get("dedup_window_seconds", DEDUP_WINDOW_SECONDS),
    )
