# analytics/risk_types.py
"""
Risk detection value types shared by the rule detectors, the vitals check
and the alert gate.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict


class RiskType(str, Enum):
    FALL = "fall"
    WANDERING = "wandering"
    AGGRESSION = "aggression"
    EMOTION = "emotion"
    VITALS = "vitals"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Report ordering; matches the fixed detector evaluation order
RISK_TYPE_ORDER = (
    RiskType.FALL,
    RiskType.WANDERING,
    RiskType.AGGRESSION,
    RiskType.EMOTION,
    RiskType.VITALS,
)

SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


@dataclass(frozen=True)
class RiskDetection:
    """One heuristic's output for one evaluation cycle."""
    type: RiskType
    severity: Severity
    confidence: float
    description: str

    def __post_init__(self):
        object.__setattr__(self, "type", RiskType(self.type))
        object.__setattr__(self, "severity", Severity(self.severity))
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")

    def to_dict(self) -> Dict:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "confidence": self.confidence,
            "description": self.description,
        }
