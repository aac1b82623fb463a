# tests/test_alerts_cli.py
import importlib.util
import json
import os

import pytest

from storage.db import LocalDB

SCRIPT = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "scripts", "alerts.py")


@pytest.fixture(scope="module")
def alerts_cli():
    spec = importlib.util.spec_from_file_location("alerts_cli", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def config(tmp_path):
    db_path = tmp_path / "safecare.db"
    path = tmp_path / "system.yaml"
    path.write_text(f"device_id: ward-3\ndatabase_path: {db_path}\n")
    return str(path), str(db_path)


def test_register_and_list_patients(alerts_cli, config, capsys):
    cfg_path, _ = config
    assert alerts_cli.main(["--config", cfg_path, "add-patient", "Ada", "81", "--room", "12"]) == 0
    assert alerts_cli.main(["--config", cfg_path, "patients"]) == 0
    out = capsys.readouterr().out
    assert "Registered patient" in out
    assert "Ada" in out


def test_acknowledge_then_resolve(alerts_cli, config, capsys):
    cfg_path, db_path = config
    db = LocalDB(db_path)
    alert = db.insert_alert("p1", "fall", "critical", "fallen", 1.0, ts=1000.0)
    db.close()

    assert alerts_cli.main(["--config", cfg_path, "ack", alert["id"]]) == 0
    assert alerts_cli.main(["--config", cfg_path, "ack", alert["id"]]) == 1
    assert alerts_cli.main(["--config", cfg_path, "list", "--status", "acknowledged"]) == 0
    assert alerts_cli.main(["--config", cfg_path, "resolve", alert["id"]]) == 0
    assert alert["id"] in capsys.readouterr().out


def test_summary(alerts_cli, config, capsys):
    cfg_path, db_path = config
    db = LocalDB(db_path)
    db.insert_alert("p1", "fall", "critical", "fallen", 1.0, ts=1000.0)
    db.close()

    assert alerts_cli.main(["--config", cfg_path, "summary"]) == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["critical_alerts"] == 1
    assert summary["device_id"] == "ward-3"
