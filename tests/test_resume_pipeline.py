"""
Tests for the resume pipeline and the /api/resumes endpoints.
AI calls are replaced with monkeypatched functions; storage is a local temp dir.
"""
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy import update

from app.db.models.credit_transaction import CreditTransaction
from app.db.models.parsed_data import ParsedData
from app.db.models.resume import Resume
from app.db.models.user import Profile
from app.schemas.resume import ParsedResume
from app.services import ai_service
from app.services.credit_ledger import InsufficientCreditsError
from app.services.resume_pipeline import (
    InvalidUploadError,
    ResumeProcessingError,
    process_resume,
    sweep_stuck_resumes,
    validate_upload,
)

PDF = "application/pdf"

SAMPLE = ParsedResume.model_validate({
    "personal_info": {"name": "Jane Doe", "email": "jane@example.com", "phone": "555-0100", "location": "Berlin"},
    "experience": [{"company": "Acme", "position": "Engineer", "description": "Built billing and analytics services " * 3}],
    "education": [{"institution": "TU Berlin", "degree": "MSc"}],
    "skills": {"technical": ["Python"], "soft": ["Teamwork"]},
})


@pytest.fixture
def fake_ai(monkeypatch):
    extract = MagicMock(return_value=SAMPLE)
    summarize = MagicMock(return_value="Seasoned engineer.")
    monkeypatch.setattr(ai_service, "extract_resume_data", extract)
    monkeypatch.setattr(ai_service, "generate_summary", summarize)
    return extract


@pytest.fixture
def failing_ai(monkeypatch):
    monkeypatch.setattr(
        ai_service, "extract_resume_data", MagicMock(side_effect=ai_service.AIServiceError("AI service timed out"))
    )


def _upload(client, headers, content=b"%PDF-1.4 resume", content_type=PDF, filename="cv.pdf", path="/api/resumes/upload"):
    return client.post(path, files={"file": (filename, content, content_type)}, headers=headers)


def test_validate_upload_rules():
    validate_upload("cv.pdf", PDF, 100)
    with pytest.raises(InvalidUploadError):
        validate_upload(None, PDF, 100)
    with pytest.raises(InvalidUploadError):
        validate_upload("cv.png", "image/png", 100)
    with pytest.raises(InvalidUploadError):
        validate_upload("cv.pdf", PDF, 10 * 1024 * 1024 + 1)
    with pytest.raises(InvalidUploadError):
        validate_upload("cv.pdf", PDF, 0)


def test_upload_success_debits_one_credit(client, db, profile, auth_headers, storage, fake_ai):
    response = _upload(client, auth_headers(profile))

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["confidence"] == 100
    assert body["summary"] == "Seasoned engineer."
    assert body["credits_used"] == 1
    assert body["remaining_credits"] == 9

    db.expire_all()
    resume = db.query(Resume).one()
    assert resume.status == "completed"
    assert resume.confidence_score == 100
    assert storage.get(resume.file_path) == b"%PDF-1.4 resume"
    assert resume.file_path.startswith(f"{profile.id}/")
    assert db.query(ParsedData).filter(ParsedData.resume_id == resume.id).count() == 1

    usage = db.query(CreditTransaction).filter(CreditTransaction.type == "usage").one()
    assert usage.amount == -1
    assert usage.resume_id == resume.id
    assert usage.description == "Resume analysis: cv.pdf"
    assert db.get(Profile, profile.id).credits == 9


def test_oversized_upload_rejected_before_side_effects(client, db, profile, auth_headers, fake_ai):
    response = _upload(client, auth_headers(profile), content=b"x" * (10 * 1024 * 1024 + 1))

    assert response.status_code == 400
    assert db.query(Resume).count() == 0
    assert db.query(CreditTransaction).count() == 0
    fake_ai.assert_not_called()


def test_unsupported_type_rejected_without_storage_call(db, profile, fake_ai):
    storage = MagicMock()

    with pytest.raises(InvalidUploadError):
        process_resume(db, profile, "photo.png", "image/png", b"\x89PNG", storage)

    storage.put.assert_not_called()
    assert db.query(Resume).count() == 0


def test_unsupported_type_returns_400(client, db, profile, auth_headers, fake_ai):
    response = _upload(client, auth_headers(profile), content=b"\x89PNG", content_type="image/png", filename="photo.png")

    assert response.status_code == 400
    assert db.query(Resume).count() == 0


def test_no_credits_returns_402(client, db, make_profile, auth_headers, fake_ai):
    broke = make_profile(email="broke@example.com", credits=0)

    response = _upload(client, auth_headers(broke))

    assert response.status_code == 402
    assert response.json()["detail"] == {"error": "Insufficient credits", "credits": 0, "needs_credits": True}
    assert db.query(Resume).count() == 0
    fake_ai.assert_not_called()


def test_unlimited_profile_records_zero_amount_usage(client, db, make_profile, auth_headers, fake_ai):
    unlimited = make_profile(email="vip@example.com", credits=-1)

    response = _upload(client, auth_headers(unlimited))

    assert response.status_code == 200
    assert response.json()["remaining_credits"] == -1
    assert response.json()["credits_used"] == 0
    usage = db.query(CreditTransaction).filter(CreditTransaction.type == "usage").one()
    assert usage.amount == 0


def test_ai_failure_marks_failed_removes_blob_and_keeps_credits(client, db, profile, auth_headers, storage, failing_ai):
    response = _upload(client, auth_headers(profile))

    assert response.status_code == 500
    db.expire_all()
    resume = db.query(Resume).one()
    assert response.json()["detail"]["resume_id"] == resume.id
    assert resume.status == "failed"
    assert resume.error_message == "AI service timed out"
    assert db.query(ParsedData).count() == 0
    assert db.query(CreditTransaction).count() == 0
    assert db.get(Profile, profile.id).credits == 10
    with pytest.raises(FileNotFoundError):
        storage.get(resume.file_path)


def test_storage_failure_creates_no_record(db, profile, fake_ai):
    storage = MagicMock()
    storage.put.side_effect = OSError("bucket unavailable")

    with pytest.raises(ResumeProcessingError):
        process_resume(db, profile, "cv.pdf", PDF, b"%PDF", storage)

    assert db.query(Resume).count() == 0
    fake_ai.assert_not_called()


def test_pending_entry_point_moves_through_processing(db, profile, storage, monkeypatch):
    seen = []

    def extract(content, mime_type, filename):
        seen.append(db.query(Resume).one().status)
        return SAMPLE

    monkeypatch.setattr(ai_service, "extract_resume_data", extract)
    monkeypatch.setattr(ai_service, "generate_summary", lambda parsed: "Summary.")

    result = process_resume(db, profile, "cv.pdf", PDF, b"%PDF", storage, initial_status="pending")

    assert seen == ["processing"]
    assert result.resume.status == "completed"
    assert result.remaining_credits == 9


def test_balance_spent_elsewhere_before_debit_fails_the_resume(db, profile, storage, monkeypatch):
    def summarize(parsed):
        # another request spends the last credits while this one is in the AI call
        db.execute(update(Profile).where(Profile.id == profile.id).values(credits=0))
        db.commit()
        return "Summary."

    monkeypatch.setattr(ai_service, "extract_resume_data", MagicMock(return_value=SAMPLE))
    monkeypatch.setattr(ai_service, "generate_summary", summarize)

    with pytest.raises(InsufficientCreditsError):
        process_resume(db, profile, "cv.pdf", PDF, b"%PDF-1.4 resume", storage)

    db.expire_all()
    resume = db.query(Resume).one()
    assert resume.status == "failed"
    assert resume.error_message == "Insufficient credits"
    assert db.query(ParsedData).count() == 0
    assert db.query(CreditTransaction).count() == 0
    assert db.get(Profile, profile.id).credits == 0
    with pytest.raises(FileNotFoundError):
        storage.get(resume.file_path)


def test_lost_debit_race_returns_402(client, db, profile, auth_headers, monkeypatch):
    def summarize(parsed):
        db.execute(update(Profile).where(Profile.id == profile.id).values(credits=0))
        db.commit()
        return "Summary."

    monkeypatch.setattr(ai_service, "extract_resume_data", MagicMock(return_value=SAMPLE))
    monkeypatch.setattr(ai_service, "generate_summary", summarize)

    response = _upload(client, auth_headers(profile))

    assert response.status_code == 402
    db.expire_all()
    assert db.query(Resume).one().status == "failed"
    assert db.query(ParsedData).count() == 0


def test_process_endpoint(client, db, profile, auth_headers, fake_ai):
    response = _upload(client, auth_headers(profile), path="/api/resumes/process")

    assert response.status_code == 200
    db.expire_all()
    assert db.query(Resume).one().status == "completed"


def test_sweep_demotes_only_stale_in_flight_resumes(db, profile):
    stale = datetime.utcnow() - timedelta(minutes=30)
    db.add_all([
        Resume(user_id=profile.id, filename="a.pdf", file_path="1/a", file_size=1, file_type=PDF,
               status="processing", created_at=stale, updated_at=stale),
        Resume(user_id=profile.id, filename="b.pdf", file_path="1/b", file_size=1, file_type=PDF,
               status="pending", created_at=stale, updated_at=stale),
        Resume(user_id=profile.id, filename="c.pdf", file_path="1/c", file_size=1, file_type=PDF,
               status="processing"),
        Resume(user_id=profile.id, filename="d.pdf", file_path="1/d", file_size=1, file_type=PDF,
               status="completed", created_at=stale, updated_at=stale),
    ])
    db.commit()

    assert sweep_stuck_resumes(db, timeout_minutes=15) == 2

    db.expire_all()
    statuses = {r.filename: (r.status, r.error_message) for r in db.query(Resume).all()}
    assert statuses["a.pdf"] == ("failed", "Processing timed out")
    assert statuses["b.pdf"] == ("failed", "Processing timed out")
    assert statuses["c.pdf"][0] == "processing"
    assert statuses["d.pdf"][0] == "completed"


def test_list_get_and_delete(client, db, profile, make_profile, auth_headers, storage, fake_ai):
    headers = auth_headers(profile)
    resume_id = _upload(client, headers).json()["resume_id"]

    listing = client.get("/api/resumes", headers=headers)
    assert listing.status_code == 200
    assert [r["id"] for r in listing.json()] == [resume_id]

    detail = client.get(f"/api/resumes/{resume_id}", headers=headers)
    assert detail.status_code == 200
    assert detail.json()["parsed_data"]["personal_info"]["name"] == "Jane Doe"

    other = make_profile(email="other@example.com")
    assert client.get(f"/api/resumes/{resume_id}", headers=auth_headers(other)).status_code == 404

    db.expire_all()
    key = db.get(Resume, resume_id).file_path
    assert client.delete(f"/api/resumes/{resume_id}", headers=headers).status_code == 200
    db.expire_all()
    assert db.get(Resume, resume_id) is None
    with pytest.raises(FileNotFoundError):
        storage.get(key)


def test_cover_letter_requires_completed_resume(client, db, profile, auth_headers, fake_ai, monkeypatch):
    headers = auth_headers(profile)
    assert client.post("/api/cover-letter/generate", json={"resume_id": 123}, headers=headers).status_code == 404

    resume_id = _upload(client, headers).json()["resume_id"]
    monkeypatch.setattr(ai_service, "generate_cover_letter", MagicMock(return_value="Dear hiring manager,\n\nHire me."))

    response = client.post(
        "/api/cover-letter/generate",
        json={"resume_id": resume_id, "job_title": "Engineer", "company_name": "Acme"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["cover_letter"].startswith("Dear hiring manager")
    assert response.json()["word_count"] == 5
    # Not credit-metered
    db.expire_all()
    assert db.get(Profile, profile.id).credits == 9
