"""
Legal integrity document for one examination session.

generate_legal_report() builds the structured document; render_text() is a
pure projection of that document and never recomputes anything.
"""

import random
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np

from util.logging import logger

from ..core import config
from ..core.errors import RenderError
from ..core.schema import EventType, FlaggedEvent, Severity, format_datetime, utcnow
from . import templates
from .aggregator import format_average, parse_score

SEPARATOR = "=" * 80
SECTION_RULE = "=" * 40
INCIDENT_RULE = "-" * 50


@dataclass
class ExamSession:
    student_id: str
    student_name: str
    session_start: datetime
    duration_minutes: int


def classify_behavioral_pattern(event_count: int) -> str:
    if event_count > 8:
        return "SYSTEMATIC"
    if event_count > 4:
        return "MODERATE"
    return "ISOLATED"


def classify_evidence_strength(critical_events: int, high_events: int) -> str:
    if critical_events > 2:
        return "CONCLUSIVE"
    if critical_events > 0 or high_events > 3:
        return "STRONG"
    if high_events > 0:
        return "MODERATE"
    return "WEAK"


def assess_credibility(mean_score: float) -> str:
    if mean_score > 80:
        return "HIGH CREDIBILITY"
    if mean_score > 60:
        return "MODERATE CREDIBILITY"
    return "REQUIRES FURTHER INVESTIGATION"


def _parse_type(raw: str) -> EventType:
    event_type = EventType.parse(raw)
    if event_type is EventType.UNKNOWN:
        raise RenderError("type", raw)
    return event_type


def _parse_severity(raw: str) -> Severity:
    severity = Severity.parse(raw)
    if severity is Severity.UNKNOWN:
        raise RenderError("severity", raw)
    return severity


class LegalReportGenerator:
    """Builds the localized legal document and its plain-text rendering."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None,
                 rng: Optional[random.Random] = None, case_prefix: Optional[str] = None):
        self.clock = clock or utcnow
        self.rng = rng or random.Random()
        self.case_prefix = case_prefix or config.CASE_NUMBER_PREFIX

    def generate_case_number(self) -> str:
        """PREFIX-YYYYMMDD-NNNN; the suffix is random and may collide."""
        return f"{self.case_prefix}-{self.clock():%Y%m%d}-{self.rng.randrange(10000):04d}"

    def _digital_signature(self, now: datetime) -> str:
        millis = int(now.timestamp() * 1000)
        return f"{self.case_prefix}-{np.base_repr(millis, base=36)}"

    def _build_incident(self, index: int, event: FlaggedEvent) -> Dict[str, Any]:
        incident_id = f"INC-{index:04d}"

        # Unmapped values fall back per field; the rest of the document still renders
        try:
            event_type = _parse_type(event.type)
        except RenderError as e:
            logger.log_render_anomaly(e.field, e.value, incident_id)
            event_type = EventType.UNKNOWN

        try:
            severity = _parse_severity(event.severity)
        except RenderError as e:
            logger.log_render_anomaly(e.field, e.value, incident_id)
            severity = Severity.UNKNOWN

        legal_severity = templates.LEGAL_SEVERITY[severity]
        description = templates.get_incident_description(event_type).format(
            time=f"{event.timestamp:%H:%M:%S} UTC",
            date=f"{event.timestamp:%Y-%m-%d}",
            score=event.suspicious_score
        )

        return {
            "incident_number": incident_id,
            "event_id": event.id,
            "timestamp": format_datetime(event.timestamp),
            "detection_system": templates.get_detection_model(event_type),
            "violation_type": str(event.type).replace("_", " ").upper(),
            "ai_confidence": f"{event.suspicious_score}%",
            "severity_level": legal_severity,
            "description": description,
            "evidence_files": [f"screenshot_{event.id}.jpg", f"video_segment_{event.id}.mp4"],
            "legal_implications": templates.get_legal_implications(event_type, severity),
            "recommended_action": templates.get_recommended_action(legal_severity)
        }

    def generate_legal_report(self, session: ExamSession, events: Sequence[FlaggedEvent],
                              language: str = None, institution_name: str = None,
                              exam_title: str = None) -> Dict[str, Any]:
        language = templates.resolve_language(language or config.REPORT_LANGUAGE)
        institution_name = institution_name or config.INSTITUTION_NAME
        exam_title = exam_title or config.EXAM_TITLE
        template = templates.get_template(language)
        now = self.clock()
        case_number = self.generate_case_number()

        incidents = [self._build_incident(i, e) for i, e in enumerate(events, start=1)]

        scores = [s for s in (parse_score(e.suspicious_score) for e in events) if s is not None]
        mean_score = float(np.mean(scores)) if scores else 0.0
        overall_risk = format_average(scores)

        severities = Counter(e.severity for e in events)
        critical_events = severities[Severity.CRITICAL.value]
        high_events = severities[Severity.HIGH.value]

        behavioral_pattern = classify_behavioral_pattern(len(events))
        evidence_strength = classify_evidence_strength(critical_events, high_events)
        credibility = assess_credibility(mean_score)

        if evidence_strength in ("CONCLUSIVE", "STRONG"):
            legal_standing = "Evidence meets standards for academic disciplinary proceedings"
        else:
            legal_standing = "Additional investigation may be required for formal proceedings"

        recommended_actions: List[str] = []
        if critical_events > 0:
            recommended_actions.append("Immediate disciplinary review recommended")
            recommended_actions.append("Consider examination invalidation")
        if high_events > 2:
            recommended_actions.append("Formal academic integrity investigation warranted")
        recommended_actions.append("Preserve all evidence for potential proceedings")
        recommended_actions.append("Student interview recommended")

        concerning = critical_events + high_events > 0
        timeline_analysis = (
            f"Analysis of {len(events)} flagged incidents over {session.duration_minutes} minutes "
            f"reveals {'concerning patterns' if concerning else 'minor irregularities'} in examination behavior."
        )

        narrative = {
            "exam_date": f"{session.session_start:%Y-%m-%d}",
            "name": session.student_name,
            "student_id": session.student_id,
            "incident_count": len(incidents),
            "duration": session.duration_minutes,
            "risk_score": overall_risk,
            "evidence_strength": evidence_strength,
            "pattern": behavioral_pattern.lower(),
            "legal_standing": legal_standing
        }

        return {
            "metadata": {
                "title": template["title"],
                "subtitle": template["subtitle"],
                "case_number": case_number,
                "case_header": template["case_header"].format(case_number=case_number),
                "generated_at": format_datetime(now),
                "jurisdiction": "Academic Integrity Board",
                "classification": "CONFIDENTIAL - ACADEMIC RECORDS",
                "language": language.upper()
            },
            "executive_summary": {
                "title": template["executive_summary"],
                "content": templates.EXECUTIVE_SUMMARIES[language].format(**narrative),
                "key_findings": [
                    f"{len(incidents)} violations detected during examination",
                    f"Overall AI confidence level: {overall_risk}%",
                    f"Evidence strength: {evidence_strength}",
                    f"Behavioral pattern: {behavioral_pattern}"
                ]
            },
            "student_information": {
                "title": template["student_information"],
                "details": {
                    "name": session.student_name,
                    "student_id": session.student_id,
                    "email": f"{session.student_name.lower().replace(' ', '.')}@institution.edu",
                    "examination": exam_title,
                    "date": format_datetime(session.session_start),
                    "duration": f"{session.duration_minutes} minutes",
                    "institution": institution_name
                }
            },
            "technical_specifications": {
                "title": template["certification"],
                "system_details": {
                    "version": config.SYSTEM_VERSION,
                    "ai_model": config.AI_MODEL_VERSION,
                    "engine": "Advanced Behavioral Pattern Recognition Engine",
                    "calibration": format_datetime(now),
                    "certifications": list(templates.CERTIFICATIONS)
                }
            },
            "detailed_incidents": {
                "title": template["incident_log"],
                "incidents": incidents
            },
            "ai_analysis_results": {
                "title": template["technical_analysis"],
                "findings": {
                    "overall_risk": overall_risk,
                    "behavioral_pattern": behavioral_pattern,
                    "timeline_analysis": timeline_analysis,
                    "credibility_assessment": credibility
                },
                "model_performance": {
                    "total_detections": len(incidents),
                    "high_confidence_detections": sum(1 for s in scores if s > 80),
                    "critical_severity_events": sum(1 for i in incidents if i["severity_level"] == "CRITICAL"),
                    "average_confidence": overall_risk
                }
            },
            "legal_assessment": {
                "title": template["legal_assessment"],
                "summary": (
                    f"{len(events)} total violations detected, including {critical_events} critical "
                    f"and {high_events} high-severity incidents."
                ),
                "evidence_strength": evidence_strength,
                "legal_standing": legal_standing,
                "recommended_actions": recommended_actions,
                "procedural_notes": list(templates.PROCEDURAL_NOTES)
            },
            "conclusion": {
                "title": template["conclusion"],
                "summary": templates.CONCLUSIONS[language].format(**narrative),
                "next_steps": list(recommended_actions),
                "evidence_preservation": templates.EVIDENCE_PRESERVATION
            },
            "appendices": dict(templates.APPENDICES),
            "signatures": {
                "title": template["signature"],
                "system_operator": "SmartProctor-X AI System",
                "timestamp": format_datetime(now),
                "digital_signature": self._digital_signature(now),
                "certification_authority": "Academic Integrity Monitoring Authority"
            }
        }

    def generate_text_report(self, session: ExamSession, events: Sequence[FlaggedEvent],
                             language: str = None, institution_name: str = None,
                             exam_title: str = None) -> str:
        document = self.generate_legal_report(session, events, language, institution_name, exam_title)
        return render_text(document)


def _numbered(items: Sequence[str]) -> List[str]:
    return [f"{i}. {item}" for i, item in enumerate(items, start=1)]


def _section(title: str) -> List[str]:
    return [SEPARATOR, "", title, SECTION_RULE, ""]


def _render_incident(index: int, incident: Dict[str, Any]) -> List[str]:
    lines = [
        "",
        f"INCIDENT {index}: {incident['incident_number']}",
        INCIDENT_RULE,
        f"Timestamp: {incident['timestamp']}",
        f"Detection System: {incident['detection_system']}",
        f"Violation Type: {incident['violation_type']}",
        f"AI Confidence: {incident['ai_confidence']}",
        f"Severity Level: {incident['severity_level']}",
        "",
        "Description:",
        incident["description"],
        "",
        "Legal Implications:",
        incident["legal_implications"],
        "",
        "Evidence Files:"
    ]
    lines.extend(f"- {name}" for name in incident["evidence_files"])
    lines.extend(["", f"Recommended Action: {incident['recommended_action']}"])
    return lines


def render_text(document: Dict[str, Any]) -> str:
    """Flatten a legal document into plain text using only values already in it."""
    metadata = document["metadata"]
    summary = document["executive_summary"]
    student = document["student_information"]
    technical = document["technical_specifications"]
    incidents = document["detailed_incidents"]
    assessment = document["legal_assessment"]
    conclusion = document["conclusion"]
    signatures = document["signatures"]

    lines = [
        metadata["title"],
        metadata["subtitle"],
        metadata["case_header"],
        "",
        f"Generated: {metadata['generated_at']}",
        f"Classification: {metadata['classification']}",
        f"Language: {metadata['language']}",
        ""
    ]

    lines += _section(summary["title"])
    lines += [summary["content"], "", "KEY FINDINGS:"]
    lines += _numbered(summary["key_findings"])
    lines.append("")

    details = student["details"]
    lines += _section(student["title"])
    lines += [
        f"Name: {details['name']}",
        f"Student ID: {details['student_id']}",
        f"Email: {details['email']}",
        f"Examination: {details['examination']}",
        f"Date & Time: {details['date']}",
        f"Duration: {details['duration']}",
        f"Institution: {details['institution']}",
        ""
    ]

    system = technical["system_details"]
    lines += _section(technical["title"])
    lines += [
        f"System Version: {system['version']}",
        f"AI Model: {system['ai_model']}",
        f"Analysis Engine: {system['engine']}",
        f"Certifications: {', '.join(system['certifications'])}",
        ""
    ]

    lines += _section(incidents["title"])
    for index, incident in enumerate(incidents["incidents"], start=1):
        lines += _render_incident(index, incident)
    lines.append("")

    lines += _section(assessment["title"])
    lines += [
        f"Summary: {assessment['summary']}",
        f"Evidence Strength: {assessment['evidence_strength']}",
        f"Legal Standing: {assessment['legal_standing']}",
        "",
        "RECOMMENDED ACTIONS:"
    ]
    lines += _numbered(assessment["recommended_actions"])
    lines += ["", "PROCEDURAL NOTES:"]
    lines += _numbered(assessment["procedural_notes"])
    lines.append("")

    lines += _section(conclusion["title"])
    lines += [conclusion["summary"], "", "Evidence Preservation:", conclusion["evidence_preservation"], ""]

    lines += _section(signatures["title"])
    lines += [
        f"System Operator: {signatures['system_operator']}",
        f"Timestamp: {signatures['timestamp']}",
        f"Digital Signature: {signatures['digital_signature']}",
        f"Certification Authority: {signatures['certification_authority']}",
        "",
        "This report is generated by an AI system and should be reviewed by qualified personnel.",
        "All technical specifications and legal assessments are based on algorithmic analysis.",
        "",
        SEPARATOR,
        "END OF REPORT",
        ""
    ]

    return "\n".join(lines)
