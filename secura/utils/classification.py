"""
Classification utilities.
Maps the upstream model's REAL / AI_SAFE / FAKE verdicts onto the stored
classification values and the labels shown to users.
"""

import math
from typing import Optional

REAL = "real"
AI_SAFE = "ai_safe"
DEEPFAKE = "deepfake"

VALID_CLASSIFICATIONS = (REAL, AI_SAFE, DEEPFAKE)

_RESULT_TO_CLASSIFICATION = {
    "REAL": REAL,
    "AI_SAFE": AI_SAFE,
    "FAKE": DEEPFAKE,
}

_CLASSIFICATION_TO_RESULT = {v: k for k, v in _RESULT_TO_CLASSIFICATION.items()}

LABELS = {
    REAL: "Likely Original",
    AI_SAFE: "AI Generated (Safe)",
    DEEPFAKE: "AI Generated",
}

DEFAULT_RISK_LEVELS = {
    REAL: "low",
    AI_SAFE: "medium",
    DEEPFAKE: "high",
}

RISK_LEVELS = ("low", "medium", "high")


def classification_from_result(result: Optional[str]) -> str:
    """
    REAL -> real, AI_SAFE -> ai_safe, anything else -> deepfake.

    Unknown verdicts fall on the blocking side.
    """
    return _RESULT_TO_CLASSIFICATION.get((result or "").upper(), DEEPFAKE)


def result_from_classification(classification: str) -> str:
    return _CLASSIFICATION_TO_RESULT.get(classification, "FAKE")


def label_for(classification: str) -> str:
    return LABELS.get(classification, LABELS[DEEPFAKE])


def normalize_risk_level(risk_level: Optional[str], classification: str) -> str:
    """Lowercase the model's risk level, or derive one from the classification."""
    level = (risk_level or "").strip().lower()
    if level in RISK_LEVELS:
        return level
    return DEFAULT_RISK_LEVELS.get(classification, "high")


def clamp_confidence(value, default: float = 50.0) -> float:
    """Coerce a model confidence into 0-100. Values strictly between 0 and 1 are treated as fractions."""
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(confidence) or math.isinf(confidence):
        return default
    if 0.0 < confidence < 1.0:
        confidence *= 100.0
    return max(0.0, min(100.0, confidence))
