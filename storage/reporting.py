# storage/reporting.py
"""
Reporting module for the dashboard summary and hourly reports.
Aggregates alerts and monitoring sessions from the local database.
"""
import time
import logging
from datetime import datetime
from typing import Dict, Optional

from analytics.risk_types import RISK_TYPE_ORDER, SEVERITY_RANK, Severity
from .db import LocalDB

log = logging.getLogger("reporting")


def _rank(alert: Dict) -> int:
    return SEVERITY_RANK[Severity(alert["severity"])]


class ReportGenerator:
    """Generate dashboard summaries and hourly reports from database."""

    def __init__(self, db: LocalDB, device_id: str):
        """
        Args:
            db: LocalDB instance
            device_id: Device identifier
        """
        self.db = db
        self.device_id = device_id

    def generate_summary(self, patient_id: Optional[str] = None) -> Dict:
        """
        Dashboard counters over all alerts.

        Returns:
            Dictionary with active / acknowledged / critical counts, active
            alerts per patient and type / severity distribution of active alerts
        """
        active = self.db.query_alerts(patient_id=patient_id, status="active", limit=10000) or []
        acknowledged = self.db.query_alerts(patient_id=patient_id, status="acknowledged", limit=10000) or []

        by_patient = {}
        by_type = {t.value: 0 for t in RISK_TYPE_ORDER}
        by_severity = {s.value: 0 for s in sorted(SEVERITY_RANK, key=SEVERITY_RANK.get, reverse=True)}
        for alert in active:
            by_patient[alert["patient_id"]] = by_patient.get(alert["patient_id"], 0) + 1
            by_type[alert["alert_type"]] += 1
            by_severity[alert["severity"]] += 1

        highest = max(active, key=_rank)["severity"] if active else None

        return {
            "report_type": "summary",
            "device_id": self.device_id,
            "active_alerts": len(active),
            "acknowledged_alerts": len(acknowledged),
            "critical_alerts": by_severity["critical"],
            "highest_active_severity": highest,
            "active_by_patient": by_patient,
            "active_by_type": by_type,
            "active_by_severity": by_severity,
            "generated_at": time.time(),
        }

    def generate_hourly_report(self, end_time: Optional[float] = None,
                               patient_id: Optional[str] = None) -> Dict:
        """
        Generate hourly report for the last hour.

        Args:
            end_time: End timestamp (defaults to now)
            patient_id: Restrict to one patient

        Returns:
            Dictionary with report data
        """
        if end_time is None:
            end_time = time.time()
        start_time = end_time - 3600  # Last hour

        log.info("Generating hourly report: %s to %s",
                 datetime.fromtimestamp(start_time), datetime.fromtimestamp(end_time))

        alert_stats = self.db.get_alert_statistics(
            patient_id=patient_id,
            start_ts=start_time,
            end_ts=end_time
        )

        recent_alerts = self.db.query_alerts(
            patient_id=patient_id,
            start_ts=start_time,
            end_ts=end_time,
            limit=100
        ) or []

        sessions = self.db.query_monitoring_sessions(
            patient_id=patient_id,
            start_ts=start_time,
            end_ts=end_time,
            limit=10000
        ) or []

        heart_rates = [s["heart_rate"] for s in sessions if s.get("heart_rate") is not None]
        in_bed = [s for s in sessions if s.get("is_in_bed")]

        report = {
            "report_type": "hourly",
            "device_id": self.device_id,
            "start_time": start_time,
            "end_time": end_time,
            "start_time_iso": datetime.fromtimestamp(start_time).isoformat(),
            "end_time_iso": datetime.fromtimestamp(end_time).isoformat(),
            "summary": {
                "total_alerts": len(recent_alerts),
                "total_sessions": len(sessions),
                "avg_heart_rate": round(sum(heart_rates) / len(heart_rates), 1) if heart_rates else None,
                "min_heart_rate": min(heart_rates) if heart_rates else None,
                "max_heart_rate": max(heart_rates) if heart_rates else None,
                "in_bed_ratio": round(len(in_bed) / len(sessions), 3) if sessions else None,
            },
            "alert_statistics": alert_stats,
            "high_priority_alerts": sorted(
                (a for a in recent_alerts if _rank(a) >= SEVERITY_RANK[Severity.HIGH]),
                key=_rank, reverse=True
            ),
            "metadata": {
                "generated_at": time.time(),
                "generated_at_iso": datetime.now().isoformat()
            }
        }

        return report
