# analytics/vitals.py
# Smart Bed Vitals Module
# Simulates bed-sensor vitals biased by the currently detected risks,
# and flags abnormal readings.

import math
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from .risk_types import RiskDetection, RiskType, Severity

log = logging.getLogger("vitals")

BASE_HEART_RATE = 75
BASE_TEMPERATURE = 37.0
BASE_RESPIRATORY_RATE = 16

# Uniform jitter half-widths
HEART_RATE_JITTER = 5.0
TEMPERATURE_JITTER = 0.2
RESPIRATORY_RATE_JITTER = 2.0

# (heart rate, respiratory rate) offsets per condition
AGGRESSION_BIAS = (30, 8)
DISTRESS_BIAS = (15, 5)
OUT_OF_BED_BIAS = (10, 3)

HEART_RATE_RANGE = (50, 150)
TEMPERATURE_RANGE = (36.0, 39.0)
RESPIRATORY_RATE_RANGE = (10, 30)

# Abnormal thresholds: (low, high) for alert, (low, high) for critical
HEART_RATE_LIMITS = ((50, 120), (45, 140))
TEMPERATURE_LIMITS = ((36.0, 38.5), (35.5, 39.0))
RESPIRATORY_RATE_LIMITS = ((12, 24), (10, 28))

VITALS_CONFIDENCE = 0.95


@dataclass(frozen=True)
class SmartBedData:
    """One simulated bed-sensor reading."""
    heart_rate: int
    is_in_bed: bool
    temperature: float
    respiratory_rate: int

    def to_dict(self) -> Dict:
        return {
            "heart_rate": self.heart_rate,
            "is_in_bed": self.is_in_bed,
            "temperature": self.temperature,
            "respiratory_rate": self.respiratory_rate,
        }


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class VitalsSimulator:
    """
    Generates plausible vitals around fixed baselines.

    Baselines belong to the instance, so each monitoring session gets its own
    simulator and no state is shared between patients.
    """

    def __init__(self,
                 base_heart_rate: float = BASE_HEART_RATE,
                 base_temperature: float = BASE_TEMPERATURE,
                 base_respiratory_rate: float = BASE_RESPIRATORY_RATE,
                 rng: Optional[np.random.Generator] = None,
                 seed: Optional[int] = None):
        """
        Args:
            base_heart_rate: Resting heart rate (bpm)
            base_temperature: Resting temperature (°C)
            base_respiratory_rate: Resting respiratory rate (breaths/min)
            rng: Random generator (overrides seed)
            seed: Seed for a fresh generator
        """
        self.base_heart_rate = base_heart_rate
        self.base_temperature = base_temperature
        self.base_respiratory_rate = base_respiratory_rate
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def generate(self, is_in_bed: bool, has_aggression: bool, has_distress: bool) -> SmartBedData:
        heart_rate = self.base_heart_rate + self.rng.uniform(-HEART_RATE_JITTER, HEART_RATE_JITTER)
        temperature = self.base_temperature + self.rng.uniform(-TEMPERATURE_JITTER, TEMPERATURE_JITTER)
        respiratory_rate = self.base_respiratory_rate + self.rng.uniform(-RESPIRATORY_RATE_JITTER,
                                                                         RESPIRATORY_RATE_JITTER)

        if has_aggression:
            heart_rate += AGGRESSION_BIAS[0]
            respiratory_rate += AGGRESSION_BIAS[1]
        if has_distress:
            heart_rate += DISTRESS_BIAS[0]
            respiratory_rate += DISTRESS_BIAS[1]
        if not is_in_bed:
            heart_rate += OUT_OF_BED_BIAS[0]
            respiratory_rate += OUT_OF_BED_BIAS[1]

        return SmartBedData(
            heart_rate=_round_half_up(float(np.clip(heart_rate, *HEART_RATE_RANGE))),
            is_in_bed=bool(is_in_bed),
            temperature=round(float(np.clip(temperature, *TEMPERATURE_RANGE)), 1),
            respiratory_rate=_round_half_up(float(np.clip(respiratory_rate, *RESPIRATORY_RATE_RANGE))),
        )


def _outside(value: float, limits) -> bool:
    low, high = limits
    return value > high or value < low


def check_vitals_risk(bed_data: SmartBedData) -> Optional[RiskDetection]:
    """
    Flag the first abnormal vital in priority order:
    heart rate, then temperature, then respiratory rate.
    """
    alert_limits, critical_limits = HEART_RATE_LIMITS
    if _outside(bed_data.heart_rate, alert_limits):
        return RiskDetection(
            type=RiskType.VITALS,
            severity=Severity.CRITICAL if _outside(bed_data.heart_rate, critical_limits) else Severity.HIGH,
            confidence=VITALS_CONFIDENCE,
            description=f"Abnormal heart rate: {bed_data.heart_rate} bpm",
        )

    alert_limits, critical_limits = TEMPERATURE_LIMITS
    if _outside(bed_data.temperature, alert_limits):
        return RiskDetection(
            type=RiskType.VITALS,
            severity=Severity.CRITICAL if _outside(bed_data.temperature, critical_limits) else Severity.MEDIUM,
            confidence=VITALS_CONFIDENCE,
            description=f"Abnormal temperature: {bed_data.temperature}°C",
        )

    alert_limits, critical_limits = RESPIRATORY_RATE_LIMITS
    if _outside(bed_data.respiratory_rate, alert_limits):
        return RiskDetection(
            type=RiskType.VITALS,
            severity=Severity.CRITICAL if _outside(bed_data.respiratory_rate, critical_limits) else Severity.MEDIUM,
            confidence=VITALS_CONFIDENCE,
            description=f"Abnormal respiratory rate: {bed_data.respiratory_rate} breaths/min",
        )

    return None


def create_vitals_simulator(config: dict = None) -> VitalsSimulator:
    """Factory function to create a vitals simulator."""
    if config is None:
        config = {}

    return VitalsSimulator(
        base_heart_rate=config.get("base_heart_rate", BASE_HEART_RATE),
        base_temperature=config.get("base_temperature", BASE_TEMPERATURE),
        base_respiratory_rate=config.get("base_respiratory_rate", BASE_RESPIRATORY_RATE),
        seed=config.get("seed"),
    )
