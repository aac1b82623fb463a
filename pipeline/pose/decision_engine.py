# pipeline/pose/decision_engine.py
"""
Risk Aggregator
Runs the rule detectors, derives bed occupancy and simulated vitals, and
appends the vitals check. Output order: fall, wandering, aggression, emotion,
any extra detectors, vitals.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from analytics.risk_detection import (
    BedArea,
    detect_aggression,
    detect_emotional_distress,
    detect_fall,
    detect_wandering,
    is_in_bed,
)
from analytics.risk_types import RiskDetection, RiskType
from analytics.vitals import SmartBedData, VitalsSimulator, check_vitals_risk, create_vitals_simulator
from .keypoints import PoseData
from .pose_history import PoseHistory

log = logging.getLogger("decision")

# Alternate detector contract, e.g. a sequence classifier over the window
ExtraDetector = Callable[[PoseData, PoseHistory], Optional[RiskDetection]]


@dataclass
class FrameAnalysis:
    risks: List[RiskDetection] = field(default_factory=list)
    bed_data: Optional[SmartBedData] = None
    is_in_bed: bool = False

    def has(self, risk_type: RiskType) -> bool:
        return any(r.type is risk_type for r in self.risks)


class RiskAggregator:
    """
    Per-session risk evaluation. Owns the pose history window and the vitals
    simulator so that nothing leaks from one patient to the next.
    """

    def __init__(self,
                 bed_area: BedArea,
                 history: Optional[PoseHistory] = None,
                 vitals: Optional[VitalsSimulator] = None,
                 extra_detectors: Optional[List[ExtraDetector]] = None):
        self.bed_area = bed_area
        self.history = history if history is not None else PoseHistory()
        self.vitals = vitals if vitals is not None else VitalsSimulator()
        self.extra_detectors = list(extra_detectors or [])

    def analyze(self, pose: PoseData) -> FrameAnalysis:
        self.history.append(pose)

        risks: List[RiskDetection] = []
        for risk in (
            detect_fall(pose),
            detect_wandering(pose, self.history, self.bed_area),
            detect_aggression(pose, self.history),
            detect_emotional_distress(pose),
        ):
            if risk is not None:
                risks.append(risk)

        for detector in self.extra_detectors:
            try:
                risk = detector(pose, self.history)
            except Exception as e:
                log.exception("Extra detector %r failed: %s", detector, e)
                continue
            if risk is not None:
                risks.append(risk)

        in_bed = is_in_bed(pose, self.bed_area)
        has_aggression = any(r.type is RiskType.AGGRESSION for r in risks)
        has_distress = any(r.type is RiskType.EMOTION for r in risks)

        bed_data = self.vitals.generate(in_bed, has_aggression, has_distress)
        vitals_risk = check_vitals_risk(bed_data)
        if vitals_risk is not None:
            risks.append(vitals_risk)

        if risks:
            log.debug("Frame risks: %s", ", ".join(r.type.value for r in risks))

        return FrameAnalysis(risks=risks, bed_data=bed_data, is_in_bed=in_bed)

    def reset(self):
        """Drop all temporal state (call on stop or patient switch)."""
        self.history.clear()


def create_risk_aggregator(cfg: dict = None, extra_detectors: Optional[List[ExtraDetector]] = None) -> RiskAggregator:
    """Factory function to build an aggregator from the system config."""
    if cfg is None:
        cfg = {}

    return RiskAggregator(
        bed_area=BedArea.from_config(cfg.get("bed_area")),
        history=PoseHistory(max_history=cfg.get("pose_history_size", 30)),
        vitals=create_vitals_simulator(cfg.get("vitals")),
        extra_detectors=extra_detectors,
    )
