"""
Classification report service: submission by users, triage by admins.
"""

from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from secura.database import utcnow
from secura.models.report import ClassificationReport, ReportStatus
from secura.utils.classification import VALID_CLASSIFICATIONS

VALID_STATUSES = tuple(s.value for s in ReportStatus)


def submit_report(
    db: Session,
    analysis_log_id: str,
    expected_classification: str,
    reason: str,
    reporter_user_id: Optional[str] = None,
) -> ClassificationReport:
    """
    Create a pending report against an analysis log.

    Raises ValueError for a classification outside real / ai_safe / deepfake.
    """
    if expected_classification not in VALID_CLASSIFICATIONS:
        raise ValueError(
            "Invalid classification. Must be: " + ", ".join(VALID_CLASSIFICATIONS)
        )

    report = ClassificationReport(
        analysis_log_id=analysis_log_id,
        reporter_user_id=reporter_user_id,
        expected_classification=expected_classification,
        reason=reason,
        status=ReportStatus.PENDING.value,
    )
    db.add(report)
    db.commit()
    db.refresh(report)
    return report


def get_report(db: Session, report_id: str) -> Optional[ClassificationReport]:
    return db.get(ClassificationReport, report_id)


def list_reports(
    db: Session,
    status: Optional[str] = None,
    limit: int = 200,
) -> List[ClassificationReport]:
    """Reports newest first, optionally filtered by status."""
    query = db.query(ClassificationReport)
    if status:
        query = query.filter(ClassificationReport.status == status)
    return query.order_by(ClassificationReport.created_at.desc()).limit(limit).all()


def update_report(
    db: Session,
    report: ClassificationReport,
    status: str,
    reviewer_id: str,
    admin_notes: Optional[str] = None,
) -> ClassificationReport:
    """
    Move a report to a new status and stamp the reviewer.

    No version check: concurrent reviewers overwrite each other.
    """
    if status not in VALID_STATUSES:
        raise ValueError("Invalid status. Must be: " + ", ".join(VALID_STATUSES))

    report.status = status
    report.admin_notes = admin_notes or None
    report.reviewed_by = reviewer_id
    report.reviewed_at = utcnow()

    db.commit()
    db.refresh(report)
    return report


def get_report_stats(db: Session) -> Dict[str, int]:
    """Report counts per status, zero-filled."""
    counts = dict(
        db.query(ClassificationReport.status, func.count(ClassificationReport.id))
        .group_by(ClassificationReport.status)
        .all()
    )
    stats = {status: counts.get(status, 0) for status in VALID_STATUSES}
    stats["total"] = sum(stats.values())
    return stats
