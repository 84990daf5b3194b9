"""
Localized wording and static lookup tables for the legal integrity report.

Templates only wrap computed values; nothing here changes a number.
"""

from typing import Dict

from ..core.schema import EventType, Severity

DEFAULT_LANGUAGE = "en"

SECTION_HEADERS: Dict[str, Dict[str, str]] = {
    "en": {
        "title": "OFFICIAL EXAMINATION INTEGRITY REPORT",
        "subtitle": "AI-ASSISTED PROCTORING ANALYSIS",
        "case_header": "Case Number: {case_number}",
        "executive_summary": "EXECUTIVE SUMMARY",
        "student_information": "EXAMINEE INFORMATION",
        "technical_analysis": "TECHNICAL ANALYSIS & AI FINDINGS",
        "incident_log": "DETAILED INCIDENT LOG",
        "legal_assessment": "LEGAL ASSESSMENT & RECOMMENDATIONS",
        "certification": "SYSTEM CERTIFICATION & COMPLIANCE",
        "conclusion": "CONCLUSION AND RECOMMENDATIONS",
        "signature": "DIGITAL SIGNATURE & CERTIFICATION"
    },
    "es": {
        "title": "INFORME OFICIAL DE INTEGRIDAD DEL EXAMEN",
        "subtitle": "ANÁLISIS DE SUPERVISIÓN ASISTIDA POR IA",
        "case_header": "Número de Caso: {case_number}",
        "executive_summary": "RESUMEN EJECUTIVO",
        "student_information": "INFORMACIÓN DEL EXAMINADO",
        "technical_analysis": "ANÁLISIS TÉCNICO Y HALLAZGOS DE IA",
        "incident_log": "REGISTRO DETALLADO DE INCIDENTES",
        "legal_assessment": "EVALUACIÓN LEGAL Y RECOMENDACIONES",
        "certification": "CERTIFICACIÓN DEL SISTEMA Y CUMPLIMIENTO",
        "conclusion": "CONCLUSIÓN Y RECOMENDACIONES",
        "signature": "FIRMA DIGITAL Y CERTIFICACIÓN"
    },
    "fr": {
        "title": "RAPPORT OFFICIEL D'INTÉGRITÉ D'EXAMEN",
        "subtitle": "ANALYSE DE SURVEILLANCE ASSISTÉE PAR IA",
        "case_header": "Numéro de Cas: {case_number}",
        "executive_summary": "RÉSUMÉ EXÉCUTIF",
        "student_information": "INFORMATIONS SUR L'EXAMINÉ",
        "technical_analysis": "ANALYSE TECHNIQUE ET RÉSULTATS IA",
        "incident_log": "JOURNAL DÉTAILLÉ DES INCIDENTS",
        "legal_assessment": "ÉVALUATION LÉGALE ET RECOMMANDATIONS",
        "certification": "CERTIFICATION SYSTÈME ET CONFORMITÉ",
        "conclusion": "CONCLUSION ET RECOMMANDATIONS",
        "signature": "SIGNATURE NUMÉRIQUE ET CERTIFICATION"
    }
}

EXECUTIVE_SUMMARIES: Dict[str, str] = {
    "en": "This report presents the findings of an AI-assisted examination integrity analysis conducted on {exam_date} for examinee {name} (ID: {student_id}). The analysis was performed using the SmartProctor-X Advanced AI Monitoring System, which detected {incident_count} potential violations during the {duration}-minute examination period. The AI system achieved an overall confidence level of {risk_score}%, with evidence strength assessed as {evidence_strength}. Based on the pattern analysis, the behavioral indicators suggest {pattern} violation patterns. {legal_standing}",
    "es": "Este informe presenta los hallazgos de un análisis de integridad de examen asistido por IA realizado el {exam_date} para el examinado {name} (ID: {student_id}). El análisis se realizó utilizando el Sistema de Monitoreo AI Avanzado SmartProctor-X, que detectó {incident_count} posibles violaciones durante el período de examen de {duration} minutos. El sistema de IA logró un nivel de confianza general del {risk_score}%, con la fuerza de la evidencia evaluada como {evidence_strength}. Basado en el análisis de patrones, los indicadores de comportamiento sugieren patrones de violación {pattern}. {legal_standing}",
    "fr": "Ce rapport présente les résultats d'une analyse d'intégrité d'examen assistée par IA menée le {exam_date} pour l'examiné {name} (ID: {student_id}). L'analyse a été effectuée en utilisant le Système de Surveillance IA Avancé SmartProctor-X, qui a détecté {incident_count} violations potentielles pendant la période d'examen de {duration} minutes. Le système IA a atteint un niveau de confiance global de {risk_score}%, avec la force de preuve évaluée comme {evidence_strength}. Basé sur l'analyse des modèles, les indicateurs comportementaux suggèrent des modèles de violation {pattern}. {legal_standing}"
}

CONCLUSIONS: Dict[str, str] = {
    "en": "Based on comprehensive AI analysis of the examination session, this report concludes that {incident_count} potential integrity violations were detected with varying degrees of confidence. The evidence strength is assessed as {evidence_strength}, and the overall behavioral pattern indicates {pattern} violation tendencies. The AI monitoring system operated within certified parameters and maintained compliance with all applicable privacy and academic integrity standards. All findings are based on objective algorithmic analysis and are presented for review by qualified academic integrity personnel.",
    "es": "Basado en el análisis integral de IA de la sesión de examen, este informe concluye que se detectaron {incident_count} posibles violaciones de integridad con diversos grados de confianza. La fuerza de la evidencia se evalúa como {evidence_strength}, y el patrón de comportamiento general indica tendencias de violación {pattern}. El sistema de monitoreo de IA operó dentro de parámetros certificados y mantuvo el cumplimiento con todos los estándares aplicables de privacidad e integridad académica. Todos los hallazgos se basan en análisis algorítmico objetivo y se presentan para revisión por personal calificado de integridad académica.",
    "fr": "Basé sur une analyse IA complète de la session d'examen, ce rapport conclut que {incident_count} violations potentielles d'intégrité ont été détectées avec des degrés de confiance variables. La force de preuve est évaluée comme {evidence_strength}, et le modèle comportemental global indique des tendances de violation {pattern}. Le système de surveillance IA a fonctionné dans les paramètres certifiés et a maintenu la conformité avec tous les standards applicables de confidentialité et d'intégrité académique. Tous les résultats sont basés sur une analyse algorithmique objective et sont présentés pour examen par du personnel qualifié d'intégrité académique."
}

DETECTION_MODELS: Dict[EventType, str] = {
    EventType.FACE_LOST: "Facial Recognition Engine v3.2 (OpenCV + DeepFace)",
    EventType.MULTIPLE_FACES: "Multi-Person Detection Algorithm v2.8 (YOLO v8)",
    EventType.AUDIO_ANOMALY: "Audio Pattern Analysis Engine v4.1 (Spectral Analysis)",
    EventType.GAZE_DEVIATION: "Eye Tracking System v2.5 (MediaPipe + Custom CNN)",
    EventType.SUSPICIOUS_OBJECT: "Object Detection Model v3.0 (YOLO v8 + Custom Training)",
    EventType.UNKNOWN: "General Anomaly Detection System v2.0"
}

LEGAL_IMPLICATIONS: Dict[EventType, Dict[Severity, str]] = {
    EventType.FACE_LOST: {
        Severity.CRITICAL: "Sustained absence from the monitored frame. Strong indication of a deliberate attempt to circumvent monitoring systems.",
        Severity.HIGH: "Potential violation of examination integrity protocols. May constitute attempt to circumvent monitoring systems.",
        Severity.MEDIUM: "Possible technical issue or minor violation. Warrants investigation but may not constitute intentional misconduct.",
        Severity.LOW: "Minor technical anomaly. Likely not indicative of academic dishonesty."
    },
    EventType.MULTIPLE_FACES: {
        Severity.CRITICAL: "Repeated presence of another person during the examination. Constitutes clear evidence of unauthorized assistance.",
        Severity.HIGH: "Strong evidence of unauthorized assistance. Constitutes clear violation of academic integrity policies.",
        Severity.MEDIUM: "Possible unauthorized presence. Requires further investigation to determine intent.",
        Severity.LOW: "Brief appearance of additional person. May be incidental but should be documented."
    },
    EventType.AUDIO_ANOMALY: {
        Severity.CRITICAL: "Audio consistent with live dictation or answer exchange. Indicates coordinated cheating attempt.",
        Severity.HIGH: "Evidence of potential communication with external parties. May indicate coordinated cheating attempt.",
        Severity.MEDIUM: "Unusual audio patterns detected. Could indicate background assistance or coaching.",
        Severity.LOW: "Minor audio irregularities. Likely environmental factors but documented for completeness."
    },
    EventType.GAZE_DEVIATION: {
        Severity.CRITICAL: "Persistent gaze toward a fixed off-screen location. Strongly suggests use of unauthorized reference material.",
        Severity.HIGH: "Repeated gaze deviation consistent with consulting off-screen material. Warrants formal review.",
        Severity.MEDIUM: "Intermittent gaze deviation. May reflect distraction rather than misconduct.",
        Severity.LOW: "Brief gaze deviation within normal examination behavior. Documented for completeness."
    },
    EventType.SUSPICIOUS_OBJECT: {
        Severity.CRITICAL: "Prohibited device or material clearly in use. Constitutes clear violation of examination rules.",
        Severity.HIGH: "Unauthorized object present within reach of the examinee. May constitute possession of prohibited materials.",
        Severity.MEDIUM: "Object of uncertain nature detected in the examination environment. Requires verification.",
        Severity.LOW: "Incidental object detected. Unlikely to be relevant but documented for completeness."
    }
}
DEFAULT_SEVERITY_IMPLICATION = "Requires case-by-case evaluation."
DEFAULT_TYPE_IMPLICATION = "Anomalous behavior detected. Requires professional review to determine significance."

INCIDENT_DESCRIPTIONS: Dict[EventType, str] = {
    EventType.FACE_LOST: "At {time} on {date}, the facial recognition system lost detection of the examinee's face for an extended period. The AI model detected this anomaly with {score}% confidence. This event lasted approximately 15-30 seconds and may indicate the student moved away from the camera or attempted to obscure their identity.",
    EventType.MULTIPLE_FACES: "At {time} on {date}, the multi-person detection algorithm identified multiple faces in the examination frame. The AI system flagged this with {score}% confidence. This strongly suggests the presence of an unauthorized individual who may have been providing assistance to the examinee.",
    EventType.AUDIO_ANOMALY: "At {time} on {date}, the audio analysis engine detected irregular sound patterns inconsistent with normal examination behavior. The detection confidence was {score}%. This may indicate background conversations, coaching, or the use of unauthorized communication devices.",
    EventType.GAZE_DEVIATION: "At {time} on {date}, the eye-tracking system recorded prolonged gaze deviation away from the examination materials. The AI model flagged this behavior with {score}% confidence. This pattern suggests the examinee may have been consulting unauthorized reference materials or receiving visual cues from off-screen sources.",
    EventType.SUSPICIOUS_OBJECT: "At {time} on {date}, the object detection system identified potentially unauthorized materials within the examination environment. The AI flagged this with {score}% confidence. This may include notes, electronic devices, or other prohibited items that could provide unfair advantage.",
    EventType.UNKNOWN: "At {time} on {date}, the AI monitoring system detected suspicious behavior with {score}% confidence. Further analysis is recommended to determine the nature and significance of this anomaly."
}

LEGAL_SEVERITY: Dict[Severity, str] = {
    Severity.LOW: "LOW",
    Severity.MEDIUM: "MEDIUM",
    Severity.HIGH: "HIGH",
    Severity.CRITICAL: "CRITICAL",
    Severity.UNKNOWN: "MEDIUM"
}

RECOMMENDED_ACTIONS: Dict[str, str] = {
    "CRITICAL": "Immediate investigation and potential examination invalidation",
    "HIGH": "Formal academic integrity review required",
    "MEDIUM": "Documentation and follow-up interview recommended",
    "LOW": "Note in student record for pattern monitoring"
}
DEFAULT_RECOMMENDED_ACTION = "Case-by-case evaluation required"

PROCEDURAL_NOTES = [
    "All evidence collected in compliance with institutional policies",
    "AI analysis conducted using certified and calibrated systems",
    "Chain of custody maintained for all digital evidence",
    "Student privacy rights observed throughout monitoring process"
]

APPENDICES = {
    "a": "Technical System Specifications",
    "b": "AI Model Calibration Records",
    "c": "Digital Evidence Files",
    "d": "Chain of Custody Documentation",
    "e": "Compliance Certifications"
}

EVIDENCE_PRESERVATION = (
    "All digital evidence, including video recordings, screenshots, and system logs, "
    "have been preserved in accordance with institutional record retention policies "
    "and are available for review by authorized personnel."
)

CERTIFICATIONS = ["ISO 27001 Compliant", "FERPA Approved", "GDPR Compliant"]


def resolve_language(language: str) -> str:
    """Supported language code for the request, falling back to English."""
    code = (language or DEFAULT_LANGUAGE).lower()
    return code if code in SECTION_HEADERS else DEFAULT_LANGUAGE


def get_template(language: str) -> Dict[str, str]:
    return SECTION_HEADERS[resolve_language(language)]


def get_detection_model(event_type: EventType) -> str:
    return DETECTION_MODELS.get(event_type, DETECTION_MODELS[EventType.UNKNOWN])


def get_legal_implications(event_type: EventType, severity: Severity) -> str:
    by_severity = LEGAL_IMPLICATIONS.get(event_type)
    if by_severity is None:
        return DEFAULT_TYPE_IMPLICATION
    return by_severity.get(severity, DEFAULT_SEVERITY_IMPLICATION)


def get_incident_description(event_type: EventType) -> str:
    return INCIDENT_DESCRIPTIONS.get(event_type, INCIDENT_DESCRIPTIONS[EventType.UNKNOWN])


def get_recommended_action(legal_severity: str) -> str:
    return RECOMMENDED_ACTIONS.get(legal_severity, DEFAULT_RECOMMENDED_ACTION)
