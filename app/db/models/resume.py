from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base

RESUME_STATUSES = ("pending", "processing", "completed", "failed")


class Resume(Base):
    __tablename__ = "resumes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String, nullable=False)
    file_path = Column(String, nullable=False)  # storage key
    file_url = Column(String, nullable=True)
    file_size = Column(Integer, nullable=False)
    file_type = Column(String, nullable=False)

    status = Column(String, nullable=False, default="pending", index=True)
    confidence_score = Column(Integer, nullable=True)
    ai_summary = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    parsed_data = relationship(
        "ParsedData",
        back_populates="resume",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_resume_status_updated", "status", "updated_at"),
    )
