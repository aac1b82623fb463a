# tests/test_vitals.py
import pytest

from analytics.risk_types import RiskType, Severity
from analytics.vitals import SmartBedData, VitalsSimulator, check_vitals_risk, create_vitals_simulator
from helpers import MidpointRng


def test_baseline_in_bed_without_risks():
    sim = VitalsSimulator(rng=MidpointRng())
    data = sim.generate(is_in_bed=True, has_aggression=False, has_distress=False)
    assert data == SmartBedData(heart_rate=75, is_in_bed=True, temperature=37.0, respiratory_rate=16)


@pytest.mark.parametrize("in_bed,aggression,distress,heart_rate,respiratory_rate", [
    (True, True, False, 105, 24),
    (True, False, True, 90, 21),
    (False, False, False, 85, 19),
    (False, True, True, 130, 30),
])
def test_risk_biases_are_additive(in_bed, aggression, distress, heart_rate, respiratory_rate):
    data = VitalsSimulator(rng=MidpointRng()).generate(in_bed, aggression, distress)
    assert data.heart_rate == heart_rate
    assert data.respiratory_rate == respiratory_rate
    assert data.is_in_bed is in_bed


def test_clamped_to_upper_bounds():
    sim = VitalsSimulator(base_heart_rate=200, base_temperature=40.0, base_respiratory_rate=40,
                          rng=MidpointRng(1.0))
    data = sim.generate(is_in_bed=False, has_aggression=True, has_distress=True)
    assert (data.heart_rate, data.temperature, data.respiratory_rate) == (150, 39.0, 30)


def test_clamped_to_lower_bounds():
    sim = VitalsSimulator(base_heart_rate=0, base_temperature=30.0, base_respiratory_rate=0,
                          rng=MidpointRng(0.0))
    data = sim.generate(is_in_bed=True, has_aggression=False, has_distress=False)
    assert (data.heart_rate, data.temperature, data.respiratory_rate) == (50, 36.0, 10)


def test_half_values_round_up():
    sim = VitalsSimulator(base_heart_rate=74.5, base_respiratory_rate=15.5, rng=MidpointRng())
    data = sim.generate(is_in_bed=True, has_aggression=False, has_distress=False)
    assert data.heart_rate == 75
    assert data.respiratory_rate == 16


def test_seeded_output_stays_in_range():
    sim = create_vitals_simulator({"seed": 7})
    for i in range(200):
        data = sim.generate(is_in_bed=i % 2 == 0, has_aggression=i % 3 == 0, has_distress=i % 5 == 0)
        assert 50 <= data.heart_rate <= 150
        assert 36.0 <= data.temperature <= 39.0
        assert 10 <= data.respiratory_rate <= 30
        assert isinstance(data.heart_rate, int)
        assert round(data.temperature, 1) == data.temperature


def test_same_seed_same_readings():
    a = create_vitals_simulator({"seed": 3})
    b = create_vitals_simulator({"seed": 3})
    assert [a.generate(True, False, False) for _ in range(5)] == [b.generate(True, False, False) for _ in range(5)]


def test_normal_vitals_have_no_risk():
    assert check_vitals_risk(SmartBedData(75, True, 37.0, 16)) is None
    assert check_vitals_risk(SmartBedData(120, True, 38.5, 24)) is None
    assert check_vitals_risk(SmartBedData(50, True, 36.0, 12)) is None


def test_heart_rate_has_priority():
    risk = check_vitals_risk(SmartBedData(145, True, 40.0, 16))
    assert risk.type is RiskType.VITALS
    assert risk.severity is Severity.CRITICAL
    assert risk.confidence == 0.95
    assert risk.description == "Abnormal heart rate: 145 bpm"


@pytest.mark.parametrize("bed_data,severity,description", [
    (SmartBedData(125, True, 37.0, 16), Severity.HIGH, "Abnormal heart rate: 125 bpm"),
    (SmartBedData(48, True, 37.0, 16), Severity.HIGH, "Abnormal heart rate: 48 bpm"),
    (SmartBedData(44, True, 37.0, 16), Severity.CRITICAL, "Abnormal heart rate: 44 bpm"),
    (SmartBedData(75, True, 38.7, 16), Severity.MEDIUM, "Abnormal temperature: 38.7°C"),
    (SmartBedData(75, True, 35.4, 16), Severity.CRITICAL, "Abnormal temperature: 35.4°C"),
    (SmartBedData(75, True, 37.0, 25), Severity.MEDIUM, "Abnormal respiratory rate: 25 breaths/min"),
    (SmartBedData(75, True, 37.0, 9), Severity.CRITICAL, "Abnormal respiratory rate: 9 breaths/min"),
])
def test_vitals_severity(bed_data, severity, description):
    risk = check_vitals_risk(bed_data)
    assert risk.severity is severity
    assert risk.description == description
