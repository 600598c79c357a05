"""
Classification reports: user-submitted corrections of an analysis result.
"""

import enum
import uuid

from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from secura.database import Base, utcnow


class ReportStatus(str, enum.Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ClassificationReport(Base):
    """A reporter's claim that an analysis log was misclassified."""
    __tablename__ = "classification_reports"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    analysis_log_id = Column(
        String(36),
        ForeignKey("image_analysis_logs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reporter_user_id = Column(String, nullable=True)

    # What the reporter says it should have been
    expected_classification = Column(String(16), nullable=False)
    reason = Column(Text, nullable=False)

    # Review workflow
    status = Column(String(16), nullable=False, default=ReportStatus.PENDING.value, index=True)
    admin_notes = Column(Text, nullable=True)
    reviewed_by = Column(String, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    analysis_log = relationship("AnalysisLog", lazy="joined")
