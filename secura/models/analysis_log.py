import uuid

from sqlalchemy import Column, String, Float, Text, DateTime, JSON, func
from secura.database import Base


class AnalysisLog(Base):
    __tablename__ = "image_analysis_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    filename = Column(String, nullable=False)
    classification = Column(String(16), nullable=False)   # real | ai_safe | deepfake
    confidence = Column(Float, nullable=False)             # 0-100
    explanation = Column(Text, nullable=False)
    artifacts = Column(JSON, nullable=True)                # ["gan_artifacts", "demo_safety_flag"]

    image_hash = Column(String(64), nullable=True, index=True)
    analysis_context = Column(String(32), nullable=False)  # ai-forensics | video | filename-rule | impersonation
    user_id = Column(String, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
