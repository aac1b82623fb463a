# storage/db.py
import sqlite3
import json
import os
import logging
import threading
import time
import uuid
from datetime import datetime, timezone

log = logging.getLogger("db")

DB_PATH = "storage/safecare.db"

ALERT_TYPES = ("fall", "wandering", "aggression", "emotion", "vitals")
ALERT_STATUSES = ("active", "acknowledged", "resolved")

ALERT_COLUMNS = (
    "id", "patient_id", "alert_type", "severity", "description", "status",
    "confidence", "ts", "acknowledged_at", "resolved_at", "created_at",
)
SESSION_COLUMNS = (
    "id", "patient_id", "heart_rate", "is_in_bed", "movement_level",
    "pose_data", "ts", "created_at",
)
PATIENT_COLUMNS = ("id", "name", "age", "room_id", "risk_level", "status", "created_at")


def _iso(ts):
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _new_id():
    return str(uuid.uuid4())


class LocalDB:
    """
    SQLite store for patients, alerts and monitoring sessions.

    Write and query helpers log failures and return None, which callers must
    treat differently from an empty result.
    """

    def __init__(self, path=DB_PATH):
        """Initialize local SQLite database for alert and session storage."""
        dirname = os.path.dirname(path)
        if dirname:
            os.makedirs(dirname, exist_ok=True)
        self.conn = sqlite3.connect(path, check_same_thread=False)
        self.path = path
        self._lock = threading.RLock()
        self._create()
        log.info("Local database initialized: %s", path)

    def _create(self):
        """Create all tables from schema if they don't exist."""
        self.conn.execute("""
        CREATE TABLE IF NOT EXISTS rooms (
            id TEXT PRIMARY KEY,
            room_number TEXT UNIQUE NOT NULL,
            floor TEXT NOT NULL DEFAULT '1',
            created_at TEXT NOT NULL
        )""")

        self.conn.execute("""
        CREATE TABLE IF NOT EXISTS patients (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            age INTEGER NOT NULL,
            room_id TEXT REFERENCES rooms(id) ON DELETE SET NULL,
            risk_level TEXT DEFAULT 'medium' CHECK (risk_level IN ('low', 'medium', 'high')),
            status TEXT DEFAULT 'active' CHECK (status IN ('active', 'discharged')),
            created_at TEXT NOT NULL
        )""")

        self.conn.execute("""
        CREATE TABLE IF NOT EXISTS alerts (
            id TEXT PRIMARY KEY,
            patient_id TEXT NOT NULL REFERENCES patients(id) ON DELETE CASCADE,
            alert_type TEXT NOT NULL CHECK (alert_type IN ('fall', 'wandering', 'aggression', 'emotion', 'vitals')),
            severity TEXT DEFAULT 'medium' CHECK (severity IN ('low', 'medium', 'high', 'critical')),
            description TEXT NOT NULL,
            status TEXT DEFAULT 'active' CHECK (status IN ('active', 'acknowledged', 'resolved')),
            confidence REAL DEFAULT 0.0 CHECK (confidence >= 0 AND confidence <= 1),
            ts REAL NOT NULL,
            acknowledged_at TEXT,
            resolved_at TEXT,
            created_at TEXT NOT NULL
        )""")

        self.conn.execute("""
        CREATE TABLE IF NOT EXISTS monitoring_sessions (
            id TEXT PRIMARY KEY,
            patient_id TEXT NOT NULL REFERENCES patients(id) ON DELETE CASCADE,
            heart_rate INTEGER DEFAULT 75,
            is_in_bed BOOLEAN DEFAULT 1,
            movement_level REAL DEFAULT 0 CHECK (movement_level >= 0 AND movement_level <= 100),
            pose_data TEXT,
            ts REAL NOT NULL,
            created_at TEXT NOT NULL
        )""")

        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_alerts_patient_id ON alerts(patient_id)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_alerts_ts ON alerts(ts DESC)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_alerts_status ON alerts(status)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_monitoring_patient_id ON monitoring_sessions(patient_id)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_monitoring_ts ON monitoring_sessions(ts DESC)")

        self.conn.commit()

    # ------------------------------------------------------------------
    # Patients
    # ------------------------------------------------------------------

    def insert_patient(self, name, age, room_number=None, floor="1", risk_level="medium"):
        """
        Insert a patient, creating the room on first use.

        Returns:
            Patient dict, or None on failure
        """
        now = time.time()
        try:
            with self._lock:
                room_id = None
                if room_number is not None:
                    self.conn.execute(
                        "INSERT OR IGNORE INTO rooms (id, room_number, floor, created_at) VALUES (?,?,?,?)",
                        (_new_id(), str(room_number), str(floor), _iso(now))
                    )
                    row = self.conn.execute(
                        "SELECT id FROM rooms WHERE room_number = ?", (str(room_number),)
                    ).fetchone()
                    room_id = row[0]

                patient = {
                    "id": _new_id(),
                    "name": name,
                    "age": int(age),
                    "room_id": room_id,
                    "risk_level": risk_level,
                    "status": "active",
                    "created_at": _iso(now),
                }
                self.conn.execute(
                    "INSERT INTO patients (id, name, age, room_id, risk_level, status, created_at) VALUES (?,?,?,?,?,?,?)",
                    tuple(patient[c] for c in PATIENT_COLUMNS)
                )
                self.conn.commit()
            log.info("Patient %s registered (room %s)", patient["id"], room_number)
            return patient
        except sqlite3.Error as e:
            log.exception("Failed to insert patient: %s", e)
            return None

    def list_patients(self, status="active"):
        """List patients with their room number, oldest first."""
        query = """
            SELECT p.id, p.name, p.age, p.room_id, p.risk_level, p.status, p.created_at, r.room_number
            FROM patients p LEFT JOIN rooms r ON p.room_id = r.id WHERE 1=1
        """
        params = []
        if status:
            query += " AND p.status = ?"
            params.append(status)
        query += " ORDER BY p.created_at"

        try:
            with self._lock:
                rows = self.conn.execute(query, params).fetchall()
            patients = []
            for row in rows:
                patient = dict(zip(PATIENT_COLUMNS, row[:7]))
                patient["room_number"] = row[7]
                patients.append(patient)
            return patients
        except sqlite3.Error as e:
            log.exception("Failed to list patients: %s", e)
            return None

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def query_active_alerts(self, patient_id, alert_type, since_ts):
        """
        Active alerts of one type for one patient created at or after since_ts.

        Returns:
            List of alert dicts, or None if the query failed
        """
        try:
            with self._lock:
                cursor = self.conn.execute(
                    f"SELECT {', '.join(ALERT_COLUMNS)} FROM alerts "
                    "WHERE patient_id = ? AND alert_type = ? AND status = 'active' AND ts >= ? "
                    "ORDER BY ts DESC",
                    (patient_id, alert_type, since_ts)
                )
                return [dict(zip(ALERT_COLUMNS, row)) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            log.exception("Failed to query active alerts: %s", e)
            return None

    def insert_alert(self, patient_id, alert_type, severity, description, confidence, ts=None):
        """
        Insert a new active alert.

        Returns:
            Alert dict, or None on failure
        """
        if ts is None:
            ts = time.time()
        alert = {
            "id": _new_id(),
            "patient_id": patient_id,
            "alert_type": alert_type,
            "severity": severity,
            "description": description,
            "status": "active",
            "confidence": float(confidence),
            "ts": float(ts),
            "acknowledged_at": None,
            "resolved_at": None,
            "created_at": _iso(ts),
        }
        try:
            with self._lock:
                self.conn.execute(
                    f"INSERT INTO alerts ({', '.join(ALERT_COLUMNS)}) VALUES ({', '.join('?' * len(ALERT_COLUMNS))})",
                    tuple(alert[c] for c in ALERT_COLUMNS)
                )
                self.conn.commit()
            return alert
        except sqlite3.OperationalError as e:
            error_msg = str(e).lower()
            if "disk" in error_msg or "full" in error_msg or "space" in error_msg:
                log.critical("Disk full - cannot write alert to database. Free space required.")
            else:
                log.exception("Database operational error: %s", e)
            return None
        except sqlite3.Error as e:
            log.exception("Failed to insert alert: %s", e)
            return None

    def query_alerts(self, patient_id=None, alert_type=None, severity=None, status=None,
                     start_ts=None, end_ts=None, limit=1000):
        """Query alerts, newest first. Every filter is optional."""
        query = f"SELECT {', '.join(ALERT_COLUMNS)} FROM alerts WHERE 1=1"
        params = []

        if patient_id:
            query += " AND patient_id = ?"
            params.append(patient_id)
        if alert_type:
            query += " AND alert_type = ?"
            params.append(alert_type)
        if severity:
            query += " AND severity = ?"
            params.append(severity)
        if status:
            query += " AND status = ?"
            params.append(status)
        if start_ts is not None:
            query += " AND ts >= ?"
            params.append(start_ts)
        if end_ts is not None:
            query += " AND ts <= ?"
            params.append(end_ts)

        query += " ORDER BY ts DESC LIMIT ?"
        params.append(limit)

        try:
            with self._lock:
                cursor = self.conn.execute(query, params)
                return [dict(zip(ALERT_COLUMNS, row)) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            log.exception("Failed to query alerts: %s", e)
            return None

    def acknowledge_alert(self, alert_id):
        """Move an active alert to acknowledged. Returns True if a row changed."""
        try:
            with self._lock:
                cursor = self.conn.execute(
                    "UPDATE alerts SET status = 'acknowledged', acknowledged_at = ? "
                    "WHERE id = ? AND status = 'active'",
                    (_iso(time.time()), alert_id)
                )
                self.conn.commit()
            if cursor.rowcount:
                log.info("Alert %s acknowledged", alert_id)
            else:
                log.warning("Alert %s not acknowledged (missing or not active)", alert_id)
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            log.exception("Failed to acknowledge alert: %s", e)
            return False

    def resolve_alert(self, alert_id):
        """Move an active or acknowledged alert to resolved. Returns True if a row changed."""
        try:
            with self._lock:
                cursor = self.conn.execute(
                    "UPDATE alerts SET status = 'resolved', resolved_at = ? "
                    "WHERE id = ? AND status IN ('active', 'acknowledged')",
                    (_iso(time.time()), alert_id)
                )
                self.conn.commit()
            if cursor.rowcount:
                log.info("Alert %s resolved", alert_id)
            else:
                log.warning("Alert %s not resolved (missing or already resolved)", alert_id)
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            log.exception("Failed to resolve alert: %s", e)
            return False

    def get_alert_statistics(self, patient_id=None, start_ts=None, end_ts=None):
        """Alert counts and mean confidence grouped by type and severity."""
        query = """
            SELECT
                alert_type,
                severity,
                COUNT(*) as count,
                AVG(confidence) as avg_confidence
            FROM alerts WHERE 1=1
        """
        params = []

        if patient_id:
            query += " AND patient_id = ?"
            params.append(patient_id)
        if start_ts is not None:
            query += " AND ts >= ?"
            params.append(start_ts)
        if end_ts is not None:
            query += " AND ts <= ?"
            params.append(end_ts)

        query += " GROUP BY alert_type, severity"

        try:
            with self._lock:
                rows = self.conn.execute(query, params).fetchall()
            stats = {}
            for alert_type, severity, count, avg_conf in rows:
                entry = stats.setdefault(alert_type, {"count": 0, "by_severity": {}, "avg_confidence": 0.0})
                # Running weighted mean across severities
                total = entry["count"] + count
                entry["avg_confidence"] = round(
                    (entry["avg_confidence"] * entry["count"] + (avg_conf or 0.0) * count) / total, 3
                )
                entry["count"] = total
                entry["by_severity"][severity] = count
            return stats
        except sqlite3.Error as e:
            log.exception("Failed to get alert statistics: %s", e)
            return {}

    # ------------------------------------------------------------------
    # Monitoring sessions
    # ------------------------------------------------------------------

    def insert_monitoring_session(self, patient_id, heart_rate, is_in_bed, movement_level,
                                  pose_data=None, ts=None):
        """
        Append one monitoring-session row.

        Args:
            pose_data: PoseData or plain dict snapshot of the keypoints

        Returns:
            Session dict, or None on failure
        """
        if ts is None:
            ts = time.time()
        if pose_data is not None and hasattr(pose_data, "to_dict"):
            pose_data = pose_data.to_dict()

        session = {
            "id": _new_id(),
            "patient_id": patient_id,
            "heart_rate": int(heart_rate),
            "is_in_bed": bool(is_in_bed),
            "movement_level": float(movement_level),
            "pose_data": pose_data,
            "ts": float(ts),
            "created_at": _iso(ts),
        }
        try:
            row = dict(session)
            row["pose_data"] = json.dumps(pose_data) if pose_data is not None else None
            with self._lock:
                self.conn.execute(
                    f"INSERT INTO monitoring_sessions ({', '.join(SESSION_COLUMNS)}) "
                    f"VALUES ({', '.join('?' * len(SESSION_COLUMNS))})",
                    tuple(row[c] for c in SESSION_COLUMNS)
                )
                self.conn.commit()
            return session
        except (sqlite3.Error, TypeError, ValueError) as e:
            log.exception("Failed to insert monitoring session: %s", e)
            return None

    def query_monitoring_sessions(self, patient_id=None, start_ts=None, end_ts=None, limit=1000):
        """Query monitoring sessions, newest first."""
        query = f"SELECT {', '.join(SESSION_COLUMNS)} FROM monitoring_sessions WHERE 1=1"
        params = []

        if patient_id:
            query += " AND patient_id = ?"
            params.append(patient_id)
        if start_ts is not None:
            query += " AND ts >= ?"
            params.append(start_ts)
        if end_ts is not None:
            query += " AND ts <= ?"
            params.append(end_ts)

        query += " ORDER BY ts DESC LIMIT ?"
        params.append(limit)

        try:
            with self._lock:
                rows = self.conn.execute(query, params).fetchall()
            sessions = []
            for row in rows:
                session = dict(zip(SESSION_COLUMNS, row))
                session["is_in_bed"] = bool(session["is_in_bed"])
                session["pose_data"] = json.loads(session["pose_data"]) if session["pose_data"] else None
                sessions.append(session)
            return sessions
        except sqlite3.Error as e:
            log.exception("Failed to query monitoring sessions: %s", e)
            return None

    def cleanup_old_sessions(self, days=30):
        """
        Delete monitoring sessions older than specified days.

        Args:
            days: Number of days to keep
        """
        cutoff_ts = time.time() - (days * 24 * 60 * 60)
        try:
            with self._lock:
                cursor = self.conn.execute("DELETE FROM monitoring_sessions WHERE ts < ?", (cutoff_ts,))
                self.conn.commit()
            deleted = cursor.rowcount
            log.info("Deleted %d old monitoring sessions (older than %d days)", deleted, days)
            return deleted
        except sqlite3.Error as e:
            log.exception("Failed to cleanup old sessions: %s", e)
            return 0

    def close(self):
        """Close database connection."""
        try:
            self.conn.close()
            log.info("Database connection closed")
        except sqlite3.Error as e:
            log.warning("Error closing database: %s", e)
