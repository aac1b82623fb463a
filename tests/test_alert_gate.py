# tests/test_alert_gate.py
from unittest import mock

from pipeline.patient.alert_gate import MOVEMENT_LEVEL_PLACEHOLDER, AlertGate, create_alert_gate
from pipeline.pose.decision_engine import FrameAnalysis
from helpers import make_pose, normal_bed_data, risk


def test_dedup_within_five_seconds(db, patient_id):
    gate = AlertGate(db)
    fall = risk("fall", "critical", 1.0, "Patient appears to have fallen - body is horizontal")

    first = gate.submit_risk(patient_id, fall, now=1000.0)
    assert first is not None
    assert first["description"] == fall.description
    assert gate.submit_risk(patient_id, fall, now=1004.0) is None
    assert gate.submit_risk(patient_id, fall, now=1006.0) is not None

    assert len(db.query_alerts(patient_id=patient_id, alert_type="fall")) == 2
    assert gate.get_stats() == {"created": 2, "suppressed": 1, "dropped": 0}


def test_window_boundary_is_inclusive(db, patient_id):
    gate = AlertGate(db)
    gate.submit_risk(patient_id, risk(), now=1000.0)
    assert gate.submit_risk(patient_id, risk(), now=1005.0) is None


def test_dedup_is_per_patient_and_type(db, patient_id):
    gate = AlertGate(db)
    other = db.insert_patient("Other", 60)["id"]

    assert gate.submit_risk(patient_id, risk("fall"), now=1000.0)
    assert gate.submit_risk(patient_id, risk("vitals", "high"), now=1000.0)
    assert gate.submit_risk(other, risk("fall"), now=1000.0)


def test_acknowledged_alert_does_not_suppress(db, patient_id):
    gate = AlertGate(db)
    alert = gate.submit_risk(patient_id, risk(), now=1000.0)
    db.acknowledge_alert(alert["id"])
    assert gate.submit_risk(patient_id, risk(), now=1001.0) is not None


def test_query_failure_drops_write():
    store = mock.Mock()
    store.query_active_alerts.return_value = None
    gate = AlertGate(store)

    assert gate.submit_risk("p1", risk(), now=1000.0) is None
    store.insert_alert.assert_not_called()
    assert gate.dropped_count == 1


def test_insert_exception_is_logged_and_dropped(caplog):
    store = mock.Mock()
    store.query_active_alerts.return_value = []
    store.insert_alert.side_effect = RuntimeError("disk gone")
    gate = AlertGate(store)

    assert gate.submit_risk("p1", risk(), now=1000.0) is None
    assert "Alert insert failed" in caplog.text
    assert gate.dropped_count == 1


def test_record_session_uses_placeholder_movement(db, patient_id):
    gate = AlertGate(db)
    session = gate.record_session(patient_id, make_pose(), normal_bed_data(), now=1000.0)
    assert session["movement_level"] == MOVEMENT_LEVEL_PLACEHOLDER == 50
    assert session["heart_rate"] == 75
    assert session["is_in_bed"] is True


def test_process_writes_every_risk_and_one_session(db, patient_id):
    gate = AlertGate(db)
    analysis = FrameAnalysis(risks=[risk("fall"), risk("vitals", "high")], bed_data=normal_bed_data(), is_in_bed=True)

    created, session = gate.process(patient_id, analysis, make_pose(), now=1000.0)
    assert [a["alert_type"] for a in created] == ["fall", "vitals"]
    assert session is not None

    created, session = gate.process(patient_id, analysis, make_pose(), now=1001.0)
    assert created == []
    assert len(db.query_monitoring_sessions(patient_id=patient_id)) == 2


def test_session_failure_does_not_block_alerts():
    store = mock.Mock()
    store.query_active_alerts.return_value = []
    store.insert_alert.return_value = {"id": "a1", "alert_type": "fall"}
    store.insert_monitoring_session.return_value = None
    gate = AlertGate(store)
    analysis = FrameAnalysis(risks=[risk()], bed_data=normal_bed_data(), is_in_bed=True)

    created, session = gate.process("p1", analysis, make_pose(), now=1000.0)
    assert created == [{"id": "a1", "alert_type": "fall"}]
    assert session is None


def test_publisher_receives_new_alerts_only(db, patient_id):
    publisher = mock.Mock()
    gate = create_alert_gate(db, publisher, {"dedup_window_seconds": 5.0})
    analysis = FrameAnalysis(risks=[risk()], bed_data=normal_bed_data(), is_in_bed=True)

    gate.process(patient_id, analysis, make_pose(), now=1000.0)
    gate.process(patient_id, analysis, make_pose(), now=1001.0)

    assert publisher.publish_alert.call_count == 1
    assert publisher.publish_session.call_count == 2


def test_clock_used_when_now_missing(db, patient_id):
    gate = AlertGate(db, clock=lambda: 2000.0)
    alert = gate.submit_risk(patient_id, risk())
    assert alert["ts"] == 2000.0
