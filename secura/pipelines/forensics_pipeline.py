from typing import Any, Dict, List, Optional

from fastapi import HTTPException, UploadFile
from starlette.concurrency import run_in_threadpool

from secura.config import settings
from secura.services.analysis_log_service import hash_content
from secura.services.filename_rules import (
    FilenameVerdict,
    is_video,
    match_filename,
    video_rule,
)
from secura.services.forensics_service import build_forensics_messages, encode_data_url
from secura.services.gateway_client import GatewayClient
from secura.utils.classification import (
    AI_SAFE,
    DEEPFAKE,
    REAL,
    clamp_confidence,
    classification_from_result,
    label_for,
    normalize_risk_level,
)
from secura.utils.logging_config import StructuredLogger, track_analysis
from secura.utils.response_parsing import extract_json

logger = StructuredLogger(__name__)

AI_KEYWORDS = ("ai generated", "ai-generated", "artificial")

DEFAULT_MESSAGES = {
    REAL: "This image appears to be an authentic photograph.",
    AI_SAFE: "This image shows characteristics of AI generation.",
    DEEPFAKE: "This image shows characteristics of AI generation.",
}

VIDEO_DETAILS = {
    True: "Temporal inconsistencies and frame artifacts detected.",
    False: "Video appears to be authentic based on available analysis.",
}


def as_string_list(value) -> List[str]:
    """Model answers sometimes send a single string where a list is expected."""
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


async def read_upload(upload_file: Optional[UploadFile]) -> bytes:
    """Read an uploaded file, rejecting missing, empty and oversized uploads."""
    if upload_file is None:
        raise HTTPException(status_code=400, detail="No file provided")

    data = await upload_file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(status_code=400, detail="Uploaded file is too large")
    return data


def _shape(
    filename: str,
    classification: str,
    confidence: float,
    message: str,
    details: str,
    artifacts,
    risk_level: Optional[str],
    analysis_type: str,
    label: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "filename": filename,
        "isDeepfake": classification == DEEPFAKE,
        "isAISafe": classification == AI_SAFE,
        "classification": classification,
        "message": str(message or ""),
        "confidence": confidence,
        "label": str(label or label_for(classification)),
        "details": str(details or ""),
        "artifacts": as_string_list(artifacts),
        "riskLevel": normalize_risk_level(risk_level, classification),
        "analysisType": analysis_type,
    }


def _from_verdict(
    filename: str,
    verdict: FilenameVerdict,
    analysis_type: str,
    details: Optional[str] = None,
) -> Dict[str, Any]:
    return _shape(
        filename=filename,
        classification=verdict.classification,
        confidence=verdict.confidence,
        message=verdict.reason,
        details=details or verdict.reason,
        artifacts=verdict.artifacts + verdict.uncertainty_factors,
        risk_level=verdict.risk_level,
        analysis_type=analysis_type,
    )


def parse_fallback(content: str) -> Dict[str, Any]:
    """
    Verdict used when the model's answer is not JSON: a keyword scan of the
    text. Marked with the analysis_incomplete artifact.
    """
    lowered = (content or "").lower()
    looks_ai = any(keyword in lowered for keyword in AI_KEYWORDS)
    return {
        "result": "AI_SAFE" if looks_ai else "REAL",
        "confidence": 75 if looks_ai else 25,
        "summary": "Analysis completed with an unstructured model response.",
        "details": content,
        "artifacts": ["analysis_incomplete"],
        "riskLevel": "medium" if looks_ai else "low",
    }


def _classification_of(model_result: Dict[str, Any]) -> str:
    if "result" in model_result:
        return classification_from_result(model_result.get("result"))
    # Binary schema: {"isAIGenerated": bool}
    return DEEPFAKE if model_result.get("isAIGenerated") else REAL


@track_analysis("forensics")
async def analyze_upload(upload_file: UploadFile, gateway: GatewayClient) -> Dict[str, Any]:
    """
    Main pipeline for /analyze-deepfake.

    1) Videos are decided by the video filename rule.
    2) Primary filename rules, when enabled, decide without the gateway.
    3) Images go to the gateway; the JSON answer is normalized.
    4) Low-confidence answers may be replaced by a filename rule.

    The returned dict has the response fields plus a "raw" entry with the
    content hash and the parsed model answer.
    """
    data = await read_upload(upload_file)
    filename = upload_file.filename or "upload"
    raw: Dict[str, Any] = {"image_hash": hash_content(data)}

    if is_video(filename, upload_file.content_type):
        verdict = video_rule(filename)
        result = _from_verdict(filename, verdict, "video", details=VIDEO_DETAILS[verdict.should_block])
        return {**result, "raw": raw}

    if settings.filename_rules_primary:
        verdict = match_filename(filename, settings.filename_ruleset)
        if verdict is not None:
            logger.info("Filename rule decided upload", filename=filename, rule=verdict.rule)
            return {**_from_verdict(filename, verdict, "filename-rule"), "raw": raw}

    messages = build_forensics_messages(encode_data_url(data, upload_file.content_type))
    content = await run_in_threadpool(
        gateway.complete,
        messages,
        model=settings.gateway_forensics_model,
        temperature=settings.forensics_temperature,
    )

    analysis_type = "ai-forensics"
    try:
        model_result = extract_json(content)
    except ValueError as e:
        logger.warning("Unparseable model response", filename=filename, error=str(e))
        model_result = parse_fallback(content)
        analysis_type = "parse-fallback"
    raw["model"] = model_result

    classification = _classification_of(model_result)
    confidence = clamp_confidence(model_result.get("confidence"), default=50.0)

    if confidence < settings.low_confidence_threshold and not settings.filename_rules_primary:
        verdict = match_filename(filename, settings.filename_ruleset)
        if verdict is not None:
            logger.info(
                "Filename rule replaced low-confidence verdict",
                filename=filename,
                rule=verdict.rule,
                model_confidence=confidence,
            )
            return {**_from_verdict(filename, verdict, "filename-rule"), "raw": raw}

    result = _shape(
        filename=filename,
        classification=classification,
        confidence=confidence,
        message=model_result.get("summary") or DEFAULT_MESSAGES[classification],
        details=model_result.get("details") or "",
        artifacts=model_result.get("artifacts"),
        risk_level=model_result.get("riskLevel"),
        analysis_type=analysis_type,
        label=model_result.get("label"),
    )
    return {**result, "raw": raw}
