# scripts/alerts.py
"""
Operator alert console.
Register patients, list and filter alerts, acknowledge / resolve them and
print the dashboard summary.
"""
import sys
import os
import json
import argparse
import yaml

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from analytics.risk_types import RiskType, Severity
from storage.db import DB_PATH, LocalDB
from storage.reporting import ReportGenerator


def build_parser():
    parser = argparse.ArgumentParser(description="Manage SafeCare alerts")
    parser.add_argument("--config", default="config/system.yaml", help="Config file path")
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add-patient", help="Register a patient")
    add.add_argument("name")
    add.add_argument("age", type=int)
    add.add_argument("--room", help="Room number")
    add.add_argument("--risk-level", choices=["low", "medium", "high"], default="medium")

    sub.add_parser("patients", help="List active patients")

    ls = sub.add_parser("list", help="List alerts, newest first")
    ls.add_argument("--patient-id")
    ls.add_argument("--type", choices=[t.value for t in RiskType])
    ls.add_argument("--severity", choices=[s.value for s in Severity])
    ls.add_argument("--status", choices=["active", "acknowledged", "resolved"])
    ls.add_argument("--limit", type=int, default=50)

    ack = sub.add_parser("ack", help="Acknowledge an active alert")
    ack.add_argument("alert_id")

    res = sub.add_parser("resolve", help="Resolve an alert")
    res.add_argument("alert_id")

    sub.add_parser("summary", help="Dashboard counters")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        with open(args.config) as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        print(f"Failed to load config: {e}")
        return 1

    db = LocalDB(cfg.get("database_path", DB_PATH))
    try:
        if args.command == "add-patient":
            patient = db.insert_patient(args.name, args.age, room_number=args.room, risk_level=args.risk_level)
            if patient is None:
                return 1
            print(f"Registered patient {patient['id']} ({patient['name']})")
        elif args.command == "patients":
            for p in db.list_patients() or []:
                print(f"{p['id']}  {p['name']:<24} age {p['age']:<3} room {p['room_number'] or '-':<6} {p['risk_level']}")
        elif args.command == "list":
            alerts = db.query_alerts(
                patient_id=args.patient_id,
                alert_type=args.type,
                severity=args.severity,
                status=args.status,
                limit=args.limit,
            )
            if alerts is None:
                return 1
            for a in alerts:
                print(f"{a['created_at']}  {a['id']}  {a['alert_type']:<10} {a['severity']:<8} "
                      f"{a['status']:<12} {a['confidence']:.2f}  {a['description']}")
        elif args.command == "ack":
            if not db.acknowledge_alert(args.alert_id):
                print(f"Alert {args.alert_id} is not active")
                return 1
            print(f"Acknowledged {args.alert_id}")
        elif args.command == "resolve":
            if not db.resolve_alert(args.alert_id):
                print(f"Alert {args.alert_id} is already resolved or unknown")
                return 1
            print(f"Resolved {args.alert_id}")
        elif args.command == "summary":
            summary = ReportGenerator(db, cfg.get("device_id", "safecare-01")).generate_summary()
            print(json.dumps(summary, indent=2))
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
