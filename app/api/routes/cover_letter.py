import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.access_guard import require_active_user
from app.db.session import get_db
from app.db.models.user import Profile
from app.schemas.resume import CoverLetterRequest, CoverLetterResponse
from app.services import ai_service
from app.services.resume_pipeline import ResumeNotFoundError, get_resume

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cover-letter", tags=["Cover Letter"])


@router.post("/generate", response_model=CoverLetterResponse)
def generate(
    payload: CoverLetterRequest,
    profile: Profile = Depends(require_active_user),
    db: Session = Depends(get_db),
):
    """Cover letter from an analyzed resume. Not credit-metered."""
    try:
        resume = get_resume(db, profile.id, payload.resume_id)
    except ResumeNotFoundError:
        resume = None
    if resume is None or resume.status != "completed" or resume.parsed_data is None:
        raise HTTPException(status_code=404, detail="Resume not found or not analyzed")

    parsed = resume.parsed_data
    resume_data = {
        "personal_info": parsed.personal_info,
        "experience": parsed.experience,
        "education": parsed.education,
        "skills": parsed.skills,
        "certifications": parsed.certifications,
        "projects": parsed.projects,
        "summary": parsed.summary,
    }

    try:
        letter = ai_service.generate_cover_letter(
            resume_data,
            job_title=payload.job_title,
            company_name=payload.company_name,
            job_description=payload.job_description,
        )
    except ai_service.AIServiceError as e:
        logger.error(f"Cover letter generation failed: resume_id={resume.id}, error={e}")
        raise HTTPException(status_code=502, detail="Failed to generate cover letter")

    logger.info(f"Generated cover letter: resume_id={resume.id}, user_id={profile.id}")
    return CoverLetterResponse(
        cover_letter=letter,
        word_count=len(letter.split()),
        character_count=len(letter),
    )
