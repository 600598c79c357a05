"""
Admin API endpoints for report triage.

Includes:
- Listing classification reports by status
- Resolving, dismissing or marking reports reviewed
- Metrics
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from secura.api.security import require_role
from secura.database import get_db
from secura.models.report import ClassificationReport, ReportStatus
from secura.schemas.analyze_schemas import (
    ReportActionRequest,
    ReportDetail,
    ReportOut,
    ReportStats,
    ReportUpdateRequest,
)
from secura.services.report_service import (
    VALID_STATUSES,
    get_report,
    get_report_stats,
    list_reports,
    update_report,
)
from secura.utils.logging_config import StructuredLogger, metrics

logger = StructuredLogger(__name__)

require_admin = require_role("admin")

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


def _get_or_404(db: Session, report_id: str) -> ClassificationReport:
    report = get_report(db, report_id)
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Report {report_id} not found",
        )
    return report


def _apply(
    db: Session,
    report_id: str,
    new_status: str,
    admin_notes: Optional[str],
    reviewer_id: str,
) -> ClassificationReport:
    report = _get_or_404(db, report_id)
    try:
        updated = update_report(db, report, new_status, reviewer_id, admin_notes)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info("Report updated", report_id=report_id, status=new_status, reviewer=reviewer_id)
    metrics.increment(f"reports.{new_status}")
    return updated


# ============== REPORT ENDPOINTS ==============


@router.get("/reports", response_model=List[ReportOut])
async def get_reports(
    status_filter: str = Query(ReportStatus.PENDING.value, alias="status"),
    db: Session = Depends(get_db),
):
    """List reports with the given status, newest first."""
    if status_filter not in VALID_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"status must be one of {list(VALID_STATUSES)}",
        )
    return list_reports(db, status=status_filter)


@router.get("/reports/stats", response_model=ReportStats)
async def get_reports_stats(db: Session = Depends(get_db)):
    """Report counts by status."""
    return get_report_stats(db)


@router.get("/reports/{report_id}", response_model=ReportDetail)
async def get_report_detail(report_id: str, db: Session = Depends(get_db)):
    """A report together with the analysis it disputes."""
    return _get_or_404(db, report_id)


@router.patch("/reports/{report_id}", response_model=ReportOut)
async def patch_report(
    report_id: str,
    request: ReportUpdateRequest,
    db: Session = Depends(get_db),
    reviewer_id: str = Depends(require_admin),
):
    """Set a report's status and notes. Last write wins."""
    return _apply(db, report_id, request.status, request.admin_notes, reviewer_id)


@router.post("/reports/{report_id}/resolve", response_model=ReportOut)
async def resolve_report(
    report_id: str,
    request: Optional[ReportActionRequest] = None,
    db: Session = Depends(get_db),
    reviewer_id: str = Depends(require_admin),
):
    notes = request.admin_notes if request else None
    return _apply(db, report_id, ReportStatus.RESOLVED.value, notes, reviewer_id)


@router.post("/reports/{report_id}/dismiss", response_model=ReportOut)
async def dismiss_report(
    report_id: str,
    request: Optional[ReportActionRequest] = None,
    db: Session = Depends(get_db),
    reviewer_id: str = Depends(require_admin),
):
    notes = request.admin_notes if request else None
    return _apply(db, report_id, ReportStatus.DISMISSED.value, notes, reviewer_id)


@router.post("/reports/{report_id}/review", response_model=ReportOut)
async def mark_report_reviewed(
    report_id: str,
    request: Optional[ReportActionRequest] = None,
    db: Session = Depends(get_db),
    reviewer_id: str = Depends(require_admin),
):
    notes = request.admin_notes if request else None
    return _apply(db, report_id, ReportStatus.REVIEWED.value, notes, reviewer_id)


# ============== METRICS ENDPOINTS ==============


@router.get("/metrics")
async def get_metrics():
    """Get current application metrics."""
    return metrics.get_stats()


@router.post("/metrics/reset")
async def reset_metrics():
    """Reset all metrics."""
    metrics.reset()
    return {"message": "Metrics reset"}
