"""
Resume upload, processing, and retrieval endpoints.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from app.core.access_guard import require_active_user
from app.core.config import MAX_UPLOAD_BYTES
from app.db.session import get_db
from app.db.models.user import Profile
from app.schemas.resume import (
    ResumeDetailResponse,
    ResumeProcessResponse,
    ResumeResponse,
)
from app.services.credit_ledger import InsufficientCreditsError
from app.services.resume_pipeline import (
    InvalidUploadError,
    ResumeNotFoundError,
    ResumeProcessingError,
    delete_resume,
    get_resume,
    list_resumes,
    process_resume,
    sweep_stuck_resumes,
    validate_upload,
)
from app.storage.base import StorageBackend, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/resumes", tags=["Resumes"])


def insufficient_credits_error(balance: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        detail={"error": "Insufficient credits", "credits": max(balance or 0, 0), "needs_credits": True},
    )


def _run_pipeline(file: UploadFile, profile: Profile, db: Session, storage: StorageBackend, initial_status: str):
    # Reject oversized uploads before reading the body when the size is known
    if file.size is not None and file.size > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail=f"File too large. Maximum size is {MAX_UPLOAD_BYTES // (1024 * 1024)}MB")

    content = file.file.read(MAX_UPLOAD_BYTES + 1)
    try:
        validate_upload(file.filename, file.content_type, len(content))
        result = process_resume(
            db,
            profile,
            filename=file.filename,
            content_type=file.content_type,
            content=content,
            storage=storage,
            initial_status=initial_status,
        )
    except InvalidUploadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InsufficientCreditsError as e:
        raise insufficient_credits_error(e.balance)
    except ResumeProcessingError as e:
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to process resume", "resume_id": e.resume_id},
        )

    resume = result.resume
    return ResumeProcessResponse(
        resume_id=resume.id,
        file_name=resume.filename,
        file_size=resume.file_size,
        file_type=resume.file_type,
        confidence=result.confidence,
        summary=result.summary,
        credits_used=result.credits_used,
        remaining_credits=result.remaining_credits,
    )


@router.post("/upload", response_model=ResumeProcessResponse)
def upload_resume(
    file: UploadFile = File(...),
    profile: Profile = Depends(require_active_user),
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
):
    """Store, analyze, and bill one resume. The record starts in ``processing``."""
    return _run_pipeline(file, profile, db, storage, initial_status="processing")


@router.post("/process", response_model=ResumeProcessResponse)
def process_uploaded_resume(
    file: UploadFile = File(...),
    profile: Profile = Depends(require_active_user),
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
):
    """Same pipeline; the record starts ``pending`` and moves to ``processing`` before the AI call."""
    return _run_pipeline(file, profile, db, storage, initial_status="pending")


@router.get("", response_model=List[ResumeResponse])
def get_my_resumes(
    profile: Profile = Depends(require_active_user),
    db: Session = Depends(get_db),
):
    sweep_stuck_resumes(db, user_id=profile.id)
    return list_resumes(db, profile.id)


@router.get("/{resume_id}", response_model=ResumeDetailResponse)
def get_my_resume(
    resume_id: int,
    profile: Profile = Depends(require_active_user),
    db: Session = Depends(get_db),
):
    sweep_stuck_resumes(db, user_id=profile.id)
    try:
        resume = get_resume(db, profile.id, resume_id)
    except ResumeNotFoundError:
        raise HTTPException(status_code=404, detail="Resume not found")
    return resume


@router.delete("/{resume_id}")
def delete_my_resume(
    resume_id: int,
    profile: Profile = Depends(require_active_user),
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
):
    try:
        delete_resume(db, profile.id, resume_id, storage)
    except ResumeNotFoundError:
        raise HTTPException(status_code=404, detail="Resume not found")
    return {"success": True}
