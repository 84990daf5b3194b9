"""
Deterministic risk analysis over a subject's flagged events and recordings.

The weighted score, behavioural and time-of-day patterns feed a coarse risk
level and a list of recommended follow-ups. Hours are taken from the stored
UTC timestamps.
"""

from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..core.schema import FlaggedEvent, Recording
from .aggregator import parse_score

ANALYSIS_PATTERNS = {
    "face_lost": {
        "weight": 0.8,
        "description": "Face detection failures indicate potential cheating attempts",
        "risk_multiplier": 1.5
    },
    "multiple_faces": {
        "weight": 0.9,
        "description": "Multiple faces detected suggests unauthorized assistance",
        "risk_multiplier": 2.0
    },
    "audio_anomaly": {
        "weight": 0.7,
        "description": "Audio irregularities may indicate background conversations",
        "risk_multiplier": 1.3
    },
    "gaze_deviation": {
        "weight": 0.6,
        "description": "Eye movement patterns suggest distracted behavior",
        "risk_multiplier": 1.2
    },
    "suspicious_object": {
        "weight": 0.85,
        "description": "Unauthorized objects detected in camera view",
        "risk_multiplier": 1.8
    }
}

EVENT_INTERPRETATIONS = {
    "face_lost": "CRITICAL: Face detection failure detected with {score}% confidence. Student may have moved away from camera, covered the lens, or attempted to circumvent monitoring. This represents a {level} risk violation that requires immediate attention.",
    "multiple_faces": "SEVERE: Multiple faces detected simultaneously with {score}% confidence. This strongly indicates unauthorized collaboration or assistance from another individual. Immediate intervention is recommended to maintain exam integrity.",
    "audio_anomaly": "MODERATE: Audio monitoring detected irregularities with {score}% confidence. Possible background conversations, external audio sources, or microphone manipulation. Further investigation may be warranted.",
    "gaze_deviation": "MODERATE: Eye tracking analysis shows prolonged gaze deviation with {score}% confidence. Student attention appears to be directed away from examination materials, suggesting potential distraction or external reference.",
    "suspicious_object": "HIGH: Unauthorized objects detected in camera view with {score}% confidence. This may include notes, devices, or other prohibited materials. Immediate verification of exam environment is recommended."
}
DEFAULT_INTERPRETATION = "ALERT: Suspicious activity detected with {score}% confidence. Pattern recognition algorithms have flagged this behavior for review. Manual verification recommended."

RISK_RECOMMENDATIONS = {
    "CRITICAL": [
        "IMMEDIATE INTERVENTION REQUIRED",
        "Consider terminating the examination session immediately",
        "Flag for urgent review by academic integrity committee",
        "Document all evidence with timestamped screenshots",
        "Contact student for immediate clarification",
        "Schedule comprehensive follow-up investigation"
    ],
    "HIGH": [
        "Enhanced monitoring protocols activated",
        "Send immediate warning notification to student",
        "Increase screenshot capture frequency",
        "Enable real-time proctor intervention",
        "Schedule additional verification checkpoints",
        "Prepare detailed incident report for review"
    ],
    "MEDIUM": [
        "Standard monitoring protocols sufficient",
        "Continue regular screenshot capture",
        "Note behavioral patterns for trending analysis",
        "Consider additional verification questions",
        "Monitor for pattern escalation"
    ],
    "LOW": [
        "Standard monitoring sufficient",
        "No immediate action required",
        "File report for compliance documentation",
        "Monitor for future pattern development"
    ],
    "MINIMAL": [
        "Normal session completion",
        "Archive report for record-keeping",
        "Session integrity maintained"
    ]
}


def format_number(value: float) -> str:
    """Shortest form of a 3-decimal score: 95.0 -> "95", 75.5 -> "75.5"."""
    return f"{value:.3f}".rstrip("0").rstrip(".")


@dataclass
class AnalysisResult:
    risk_score: str
    risk_level: str
    confidence: int
    behavioral_analysis: Dict[str, Any]
    time_analysis: Dict[str, Any]
    event_interpretations: Dict[str, str]
    recording_analysis: Dict[str, str]
    recommendations: List[str]
    analysis_patterns: Dict[str, Dict[str, Any]] = field(default_factory=lambda: ANALYSIS_PATTERNS)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def weighted_risk_score(events: Sequence[FlaggedEvent]) -> float:
    total_weighted = 0.0
    total_weight = 0.0
    for event in events:
        pattern = ANALYSIS_PATTERNS.get(event.type)
        score = parse_score(event.suspicious_score)
        if pattern is None or score is None:
            continue
        total_weighted += score * pattern["weight"] * pattern["risk_multiplier"]
        total_weight += pattern["weight"]
    return total_weighted / total_weight if total_weight > 0 else 0.0


def _mean_score(events: Sequence[FlaggedEvent]) -> float:
    scores = [s for s in (parse_score(e.suspicious_score) for e in events) if s is not None]
    return float(np.mean(scores)) if scores else 0.0


def analyze_behavioral_patterns(events: Sequence[FlaggedEvent]) -> Dict[str, Any]:
    """Classify inter-event spacing; events must be in chronological order."""
    if len(events) < 2:
        return {
            "pattern": "insufficient_data",
            "confidence": 0,
            "avg_interval": 0,
            "variance": 0
        }

    pattern_scores = {"consistent": 0, "sporadic": 0, "clustered": 0, "progressive": 0}

    timestamps_ms = np.sort(np.array([e.timestamp.timestamp() * 1000.0 for e in events]))
    intervals = np.diff(timestamps_ms)
    avg_interval = float(np.mean(intervals))
    variance = float(np.var(intervals))

    if variance < avg_interval * 0.3:
        pattern_scores["consistent"] = 80
    elif variance > avg_interval * 2:
        pattern_scores["sporadic"] = 70
    else:
        pattern_scores["clustered"] = 60

    recent = events[-5:]
    if len(recent) >= 3:
        older = events[:-5]
        if _mean_score(recent) > _mean_score(older) * 1.2:
            pattern_scores["progressive"] = 75

    # Ties go to the later pattern
    dominant = "consistent"
    for name, score in pattern_scores.items():
        if score >= pattern_scores[dominant]:
            dominant = name

    return {
        "pattern": dominant,
        "confidence": max(pattern_scores.values()),
        "avg_interval": avg_interval / 1000 / 60,  # minutes
        "variance": variance / 1000 / 60 / 60,  # hours
        "pattern_scores": pattern_scores
    }


def analyze_time_patterns(events: Sequence[FlaggedEvent]) -> Dict[str, Any]:
    distribution = {"early": 0, "mid": 0, "late": 0}
    hourly = Counter()

    for event in events:
        hour = event.timestamp.hour
        if 6 <= hour < 10:
            distribution["early"] += 1
        elif 10 <= hour < 16:
            distribution["mid"] += 1
        elif 16 <= hour < 22:
            distribution["late"] += 1
        hourly[hour] += 1

    total = len(events)

    def percentage(count: int) -> str:
        return f"{count / total * 100:.1f}" if total > 0 else "0.0"

    peak_hour: Optional[int] = None
    for hour in sorted(hourly):
        if peak_hour is None or hourly[hour] >= hourly[peak_hour]:
            peak_hour = hour

    early, mid, late = distribution["early"], distribution["mid"], distribution["late"]
    if early >= mid and early >= late:
        peak_time = "early"
    elif mid >= early and mid >= late:
        peak_time = "mid"
    else:
        peak_time = "late"

    return {
        "early_percentage": percentage(early),
        "mid_percentage": percentage(mid),
        "late_percentage": percentage(late),
        "peak_hour": peak_hour,
        "peak_time": peak_time,
        "hourly_distribution": dict(sorted(hourly.items()))
    }


def determine_risk_level(score: float, event_count: int, behavioral: Dict[str, Any]) -> str:
    adjusted = score

    if event_count > 10:
        adjusted += 10
    elif event_count > 5:
        adjusted += 5

    if behavioral["pattern"] == "consistent":
        adjusted += 15
    if behavioral["pattern"] == "progressive":
        adjusted += 10

    if behavioral.get("pattern_scores", {}).get("progressive", 0) > 50:
        adjusted += 8

    if adjusted >= 85:
        return "CRITICAL"
    if adjusted >= 70:
        return "HIGH"
    if adjusted >= 55:
        return "MEDIUM"
    if adjusted >= 35:
        return "LOW"
    return "MINIMAL"


def interpret_events(events: Sequence[FlaggedEvent]) -> Dict[str, str]:
    interpretations = {}
    for event in events:
        score = parse_score(event.suspicious_score) or 0.0
        level = "high" if score >= 80 else "moderate" if score >= 60 else "low"
        template = EVENT_INTERPRETATIONS.get(event.type, DEFAULT_INTERPRETATION)
        interpretations[event.id] = template.format(score=format_number(score), level=level)
    return interpretations


def analyze_recordings(recordings: Sequence[Recording]) -> Dict[str, str]:
    analysis = {}
    for recording in recordings:
        rate = recording.file_size / recording.duration if recording.duration > 0 else 0
        quality = "High" if rate > 1000 else "Medium" if rate > 500 else "Low"
        analysis[recording.id] = (
            f"Session recording analysis: {recording.duration} seconds "
            f"({recording.duration / 3600:.1f} hours) of continuous monitoring. "
            f"Video quality: {quality} ({recording.file_size / 1024 / 1024:.1f} MB total). "
            "All audio and video streams captured successfully."
        )
    return analysis


def build_recommendations(risk_level: str, behavioral: Dict[str, Any]) -> List[str]:
    recommendations = list(RISK_RECOMMENDATIONS.get(risk_level, RISK_RECOMMENDATIONS["MINIMAL"]))

    if behavioral["pattern"] == "consistent":
        recommendations.append("Consistent violation pattern detected - recommend systematic review of examination procedures")
    if behavioral["pattern"] == "progressive":
        recommendations.append("Progressive risk escalation observed - immediate attention recommended to prevent further violations")

    return recommendations


def perform_analysis(events: Sequence[FlaggedEvent], recordings: Sequence[Recording]) -> AnalysisResult:
    """Run the full analysis; event order does not matter."""
    ordered = sorted(events, key=lambda e: e.timestamp)

    risk_score = weighted_risk_score(ordered)
    behavioral = analyze_behavioral_patterns(ordered)
    risk_level = determine_risk_level(risk_score, len(ordered), behavioral)

    return AnalysisResult(
        risk_score=f"{risk_score:.3f}",
        risk_level=risk_level,
        confidence=min(95, 70 + len(ordered) * 2 + len(recordings) * 5),
        behavioral_analysis=behavioral,
        time_analysis=analyze_time_patterns(ordered),
        event_interpretations=interpret_events(ordered),
        recording_analysis=analyze_recordings(recordings),
        recommendations=build_recommendations(risk_level, behavioral)
    )
