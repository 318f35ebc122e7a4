"""
Resume processing pipeline.

upload -> store blob -> AI extraction -> confidence + summary -> persist
-> debit one credit. The parsed data, the ``completed`` status and the
usage debit are committed together, so a resume is never completed
without being paid for, and never paid for without being completed.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.config import MAX_UPLOAD_BYTES, PROCESSING_TIMEOUT_MINUTES
from app.db.models.user import Profile
from app.db.models.resume import Resume
from app.db.models.parsed_data import ParsedData
from app.services import ai_service
from app.services.confidence import calculate_confidence_score, clamp_confidence
from app.services.credit_ledger import (
    InsufficientCreditsError,
    apply_credit_delta,
    get_balance,
    has_available_credits,
)
from app.storage.base import StorageBackend, build_storage_key

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
}

STUCK_STATUSES = ("pending", "processing")
TIMEOUT_MESSAGE = "Processing timed out"


class InvalidUploadError(ValueError):
    pass


class ResumeNotFoundError(ValueError):
    pass


class ResumeProcessingError(Exception):
    """A step after the blob was stored failed; the resume is now ``failed``."""

    def __init__(self, message: str, resume_id: Optional[int] = None):
        self.resume_id = resume_id
        super().__init__(message)


@dataclass
class PipelineResult:
    resume: Resume
    confidence: int
    summary: str
    credits_used: int
    remaining_credits: int


def validate_upload(filename: Optional[str], content_type: Optional[str], size: int) -> None:
    """
    Raises:
        InvalidUploadError: Missing file, unsupported type, or larger than MAX_UPLOAD_BYTES
    """
    if not filename:
        raise InvalidUploadError("No file provided")
    if content_type not in ALLOWED_MIME_TYPES:
        raise InvalidUploadError("Only PDF, DOC, DOCX, and TXT files are supported")
    if size > MAX_UPLOAD_BYTES:
        raise InvalidUploadError(f"File too large. Maximum size is {MAX_UPLOAD_BYTES // (1024 * 1024)}MB")
    if size == 0:
        raise InvalidUploadError("File is empty")


def process_resume(
    db: Session,
    profile: Profile,
    filename: str,
    content_type: str,
    content: bytes,
    storage: StorageBackend,
    initial_status: str = "processing",
) -> PipelineResult:
    """
    Run the full pipeline for one uploaded file.

    Args:
        db: Database session
        profile: Authenticated, non-blocked profile
        filename: Original file name
        content_type: Declared MIME type
        content: Raw file bytes
        storage: Blob storage backend
        initial_status: "processing" for direct uploads, "pending" for the
            two-step entry point (moved to processing before the AI call)

    Raises:
        InsufficientCreditsError: No credits before starting, or lost a race at debit time
        InvalidUploadError: Rejected before any side effect
        ResumeProcessingError: Storage, AI, or persistence failure
    """
    if not has_available_credits(profile):
        raise InsufficientCreditsError(balance=profile.credits, requested=1)

    validate_upload(filename, content_type, len(content))

    storage_key = build_storage_key(profile.id, filename)
    try:
        file_url = storage.put(storage_key, content, content_type)
    except Exception as e:
        logger.error(f"Blob upload failed: user_id={profile.id}, key={storage_key}, error={e}")
        raise ResumeProcessingError("Failed to upload file") from e

    resume = Resume(
        user_id=profile.id,
        filename=filename,
        file_path=storage_key,
        file_url=file_url,
        file_size=len(content),
        file_type=content_type,
        status=initial_status,
    )
    try:
        db.add(resume)
        db.commit()
        db.refresh(resume)
    except Exception as e:
        db.rollback()
        _delete_blob(storage, storage_key)
        logger.error(f"Resume record creation failed: user_id={profile.id}, error={e}")
        raise ResumeProcessingError("Failed to create resume record") from e

    resume_id = resume.id
    logger.info(f"Resume accepted: resume_id={resume_id}, user_id={profile.id}, status={initial_status}")

    try:
        if resume.status == "pending":
            resume.status = "processing"
            db.commit()

        parsed = ai_service.extract_resume_data(content, content_type, filename)
        confidence = clamp_confidence(calculate_confidence_score(parsed))
        summary = ai_service.generate_summary(parsed)

        db.add(ParsedData(
            resume_id=resume_id,
            personal_info=parsed.personal_info.model_dump(),
            experience=[e.model_dump() for e in parsed.experience],
            education=[e.model_dump() for e in parsed.education],
            skills=parsed.skills.model_dump(),
            certifications=[c.model_dump() for c in parsed.certifications],
            projects=[p.model_dump() for p in parsed.projects],
            summary=summary,
            confidence_score=confidence,
        ))
        resume.status = "completed"
        resume.confidence_score = confidence
        resume.ai_summary = summary
        resume.error_message = None

        # Commits the parsed data and status together with the debit
        entry = apply_credit_delta(
            db,
            user_id=profile.id,
            amount=-1,
            transaction_type="usage",
            description=f"Resume analysis: {filename}",
            resume_id=resume_id,
        )
    except InsufficientCreditsError:
        _mark_failed(db, resume_id, storage, storage_key, "Insufficient credits")
        raise
    except Exception as e:
        _mark_failed(db, resume_id, storage, storage_key, str(e) or type(e).__name__)
        logger.error(f"Resume processing failed: resume_id={resume_id}, error={type(e).__name__}: {e}")
        raise ResumeProcessingError("Failed to process resume", resume_id=resume_id) from e

    db.refresh(resume)
    remaining = get_balance(db, profile.id)
    logger.info(
        f"Resume processing completed: resume_id={resume_id}, confidence={confidence}, "
        f"transaction_id={entry.id}, remaining_credits={remaining}"
    )
    return PipelineResult(
        resume=resume,
        confidence=confidence,
        summary=summary,
        credits_used=-entry.amount,
        remaining_credits=remaining,
    )


def _delete_blob(storage: StorageBackend, key: str) -> None:
    try:
        storage.delete(key)
    except Exception as e:
        logger.error(f"Failed to delete blob key={key}: {e}")


def _mark_failed(db: Session, resume_id: int, storage: StorageBackend, storage_key: str, message: str) -> None:
    """Roll back the open transaction, drop any parsed data, mark the resume failed, and remove the blob."""
    db.rollback()
    try:
        db.query(ParsedData).filter(ParsedData.resume_id == resume_id).delete(synchronize_session=False)
        db.execute(
            update(Resume)
            .where(Resume.id == resume_id)
            .values(status="failed", error_message=message[:1000])
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to mark resume_id={resume_id} as failed: {e}")
    db.expire_all()
    _delete_blob(storage, storage_key)


def sweep_stuck_resumes(
    db: Session,
    now: Optional[datetime] = None,
    timeout_minutes: int = PROCESSING_TIMEOUT_MINUTES,
    user_id: Optional[int] = None,
) -> int:
    """
    Demote pending/processing resumes untouched for ``timeout_minutes`` to failed.

    Returns:
        Number of resumes demoted
    """
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(minutes=timeout_minutes)
    stmt = (
        update(Resume)
        .where(Resume.status.in_(STUCK_STATUSES), Resume.updated_at < cutoff)
        .values(status="failed", error_message=TIMEOUT_MESSAGE)
        .execution_options(synchronize_session=False)
    )
    if user_id is not None:
        stmt = stmt.where(Resume.user_id == user_id)

    result = db.execute(stmt)
    db.commit()
    if result.rowcount:
        logger.warning(f"Demoted {result.rowcount} stuck resumes to failed (cutoff={cutoff.isoformat()})")
    return result.rowcount or 0


def list_resumes(db: Session, user_id: int) -> List[Resume]:
    return (
        db.query(Resume)
        .filter(Resume.user_id == user_id)
        .order_by(Resume.created_at.desc(), Resume.id.desc())
        .all()
    )


def get_resume(db: Session, user_id: int, resume_id: int) -> Resume:
    resume = db.query(Resume).filter(Resume.id == resume_id, Resume.user_id == user_id).first()
    if not resume:
        raise ResumeNotFoundError(f"Resume {resume_id} not found")
    return resume


def delete_resume(db: Session, user_id: int, resume_id: int, storage: StorageBackend) -> None:
    resume = get_resume(db, user_id, resume_id)
    storage_key = resume.file_path
    db.delete(resume)
    db.commit()
    _delete_blob(storage, storage_key)
    logger.info(f"Resume deleted: resume_id={resume_id}, user_id={user_id}")
