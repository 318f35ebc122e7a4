from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base


class ParsedData(Base):
    """AI-extracted structured fields for a resume. At most one per resume."""
    __tablename__ = "parsed_data"

    id = Column(Integer, primary_key=True, index=True)
    resume_id = Column(Integer, ForeignKey("resumes.id", ondelete="CASCADE"), unique=True, nullable=False)

    personal_info = Column(JSON, nullable=False, default=dict)
    experience = Column(JSON, nullable=False, default=list)
    education = Column(JSON, nullable=False, default=list)
    skills = Column(JSON, nullable=False, default=dict)
    certifications = Column(JSON, nullable=False, default=list)
    projects = Column(JSON, nullable=False, default=list)
    summary = Column(Text, nullable=True)
    confidence_score = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    resume = relationship("Resume", back_populates="parsed_data")
