"""
Persistence for classification results.
"""

import hashlib
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from secura.models.analysis_log import AnalysisLog


def hash_content(content: bytes) -> str:
    """sha256 hex digest of the uploaded bytes."""
    return hashlib.sha256(content).hexdigest()


def record_analysis(
    db: Session,
    filename: str,
    result: Dict[str, Any],
    analysis_context: str,
    image_hash: Optional[str] = None,
    user_id: Optional[str] = None,
) -> AnalysisLog:
    """
    Store one classification.

    Args:
        db: Database session
        filename: Upload filename
        result: Normalized pipeline result; needs classification, confidence
            and an explanation under "details" or "reason"
        analysis_context: Which path decided the result (ai-forensics, video, ...)
        image_hash: sha256 of the uploaded bytes
        user_id: Owner, when the request was authenticated
    """
    explanation = result.get("details") or result.get("reason") or result.get("message") or ""
    log = AnalysisLog(
        filename=filename,
        classification=result["classification"],
        confidence=float(result["confidence"]),
        explanation=explanation,
        artifacts=list(result.get("artifacts") or []),
        image_hash=image_hash,
        analysis_context=analysis_context,
        user_id=user_id,
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def get_analysis_log(db: Session, analysis_log_id: str) -> Optional[AnalysisLog]:
    return db.get(AnalysisLog, analysis_log_id)


def list_analysis_logs(
    db: Session,
    user_id: Optional[str] = None,
    limit: int = 50,
) -> List[AnalysisLog]:
    query = db.query(AnalysisLog)
    if user_id:
        query = query.filter(AnalysisLog.user_id == user_id)
    return query.order_by(AnalysisLog.created_at.desc()).limit(limit).all()
