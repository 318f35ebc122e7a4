from app.schemas.resume import ParsedResume
from app.services.ai_service import empty_resume, parse_resume_json
from app.services.confidence import calculate_confidence_score, clamp_confidence


def test_complete_resume_scores_100():
    data = ParsedResume.model_validate({
        "personal_info": {"name": "Jane Doe", "email": "jane@example.com", "phone": "555-0100", "location": "Berlin"},
        "experience": [{"company": "Acme", "position": "Engineer", "description": "x" * 60}],
        "education": [{"institution": "TU Berlin", "degree": "MSc"}],
        "skills": {"technical": ["Python"], "soft": ["Communication"]},
    })
    assert calculate_confidence_score(data) == 100


def test_name_and_email_only_scores_29():
    data = ParsedResume.model_validate({
        "personal_info": {"name": "Jane Doe", "email": "jane@example.com"},
    })
    assert calculate_confidence_score(data) == 29


def test_short_descriptions_earn_no_detail_points():
    data = ParsedResume.model_validate({
        "experience": [{"company": "Acme", "description": "Wrote code."}],
    })
    # 2 of 14 points
    assert calculate_confidence_score(data) == 14


def test_empty_resume_scores_zero():
    assert calculate_confidence_score(empty_resume()) == 0


def test_clamp_confidence():
    assert clamp_confidence(-5) == 0
    assert clamp_confidence(140) == 100
    assert clamp_confidence(None) == 0
    assert clamp_confidence(57.0) == 57


def test_parse_resume_json_strips_fences():
    text = '```json\n{"personal_info": {"name": "Jane"}, "skills": {"technical": ["SQL"]}}\n```'
    parsed = parse_resume_json(text)
    assert parsed.personal_info.name == "Jane"
    assert parsed.skills.technical == ["SQL"]


def test_parse_resume_json_falls_back_to_empty_structure():
    parsed = parse_resume_json("Sorry, I cannot help with that.")
    assert parsed.personal_info.name is None
    assert parsed.experience == []
    assert parsed.summary == "Failed to parse resume content"
