"""
Upload screening (impersonation check) for social-media posts.
"""

import re
from typing import Any, Dict, Optional

from fastapi import HTTPException, UploadFile
from starlette.concurrency import run_in_threadpool

from secura.config import settings
from secura.pipelines.forensics_pipeline import as_string_list, read_upload
from secura.services.analysis_log_service import hash_content
from secura.services.filename_rules import match_filename
from secura.services.forensics_service import build_screening_messages, encode_data_url
from secura.services.gateway_client import GatewayClient
from secura.utils.classification import (
    DEEPFAKE,
    clamp_confidence,
    classification_from_result,
    normalize_risk_level,
    result_from_classification,
)
from secura.utils.logging_config import StructuredLogger, track_analysis
from secura.utils.response_parsing import extract_json

logger = StructuredLogger(__name__)

_IMAGE_DATA_URL = re.compile(r"^data:image/[\w.+-]+;base64,[A-Za-z0-9+/=\s]+$")

UNCERTAINTY_NOTE = "Note: Analysis confidence is moderate; some uncertainty remains in this assessment."

# Conservative verdict used when the model's answer cannot be parsed
PARSE_FALLBACK = {
    "result": "AI_SAFE",
    "confidence": 40,
    "reason": (
        "Analysis encountered uncertainty. Unable to confirm authenticity with "
        "confidence; proceeding with an AI-generated label."
    ),
    "artifacts": ["analysis_incomplete"],
    "shouldBlock": False,
    "riskLevel": "medium",
    "uncertaintyFactors": ["parsing_error", "incomplete_analysis"],
}


def with_uncertainty_note(reason: str, confidence: float) -> str:
    """Append the moderate-confidence note unless the reason already hedges."""
    if confidence < settings.moderate_confidence_threshold and "uncertain" not in reason and "may" not in reason:
        return f"{reason} {UNCERTAINTY_NOTE}".strip()
    return reason


def validate_reference_image(reference_image: Optional[str]) -> Optional[str]:
    if not reference_image:
        return None
    if not _IMAGE_DATA_URL.match(reference_image):
        raise HTTPException(
            status_code=400,
            detail="referenceImage must be a base64 image data URL.",
        )
    return reference_image


@track_analysis("screening")
async def check_upload(
    upload_file: Optional[UploadFile],
    gateway: GatewayClient,
    check_type: str = "impersonation",
    claimed_identity_id: Optional[str] = None,
    claimed_identity_name: Optional[str] = None,
    reference_image: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Main pipeline for /impersonation-check.

    1) Send the upload (plus optional reference photo) to the gateway.
    2) Parse the REAL / AI_SAFE / FAKE answer, or fall back to AI_SAFE.
    3) Low-confidence answers may be replaced by a filename rule.
    4) Shape the response; FAKE always blocks.
    """
    data = await read_upload(upload_file)
    reference_image = validate_reference_image(reference_image)
    filename = upload_file.filename or "upload"

    logger.info(
        "Screening upload",
        filename=filename,
        check_type=check_type,
        claimed_identity=claimed_identity_name,
    )

    messages = build_screening_messages(
        encode_data_url(data, upload_file.content_type),
        claimed_identity_name=claimed_identity_name,
        reference_image=reference_image,
    )
    content = await run_in_threadpool(
        gateway.complete,
        messages,
        model=settings.gateway_screening_model,
        temperature=settings.screening_temperature,
    )

    try:
        analysis = extract_json(content)
    except ValueError as e:
        logger.warning("Unparseable model response", filename=filename, error=str(e))
        analysis = dict(PARSE_FALLBACK)

    confidence = clamp_confidence(analysis.get("confidence"), default=0.0)

    if confidence < settings.low_confidence_threshold:
        verdict = match_filename(filename, settings.filename_ruleset)
        if verdict is not None:
            logger.info(
                "Filename rule replaced low-confidence verdict",
                filename=filename,
                rule=verdict.rule,
                model_confidence=confidence,
            )
            analysis = {
                "result": result_from_classification(verdict.classification),
                "confidence": verdict.confidence,
                "reason": verdict.reason,
                "artifacts": verdict.artifacts,
                "shouldBlock": verdict.should_block,
                "riskLevel": verdict.risk_level,
                "uncertaintyFactors": verdict.uncertainty_factors,
            }
            confidence = float(verdict.confidence)

    classification = classification_from_result(analysis.get("result"))
    result = result_from_classification(classification)
    reason = str(analysis.get("reason") or "")

    return {
        "result": result,
        "confidence": confidence,
        "reason": with_uncertainty_note(reason, confidence),
        "artifacts": as_string_list(analysis.get("artifacts")),
        "shouldBlock": bool(analysis.get("shouldBlock")) or classification == DEEPFAKE,
        "riskLevel": normalize_risk_level(analysis.get("riskLevel"), classification),
        "uncertaintyFactors": as_string_list(analysis.get("uncertaintyFactors")),
        "classification": classification,
        "checkType": check_type,
        "claimedIdentityId": claimed_identity_id,
        "claimedIdentityName": claimed_identity_name,
        "raw": {"image_hash": hash_content(data), "model": analysis},
    }
