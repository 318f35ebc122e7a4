from app.schemas.resume import ParsedResume

# Rubric weights; the maximum is 14 points
PERSONAL_INFO_POINTS = {"name": 2, "email": 2, "phone": 1, "location": 1}
EXPERIENCE_PRESENT_POINTS = 2
EXPERIENCE_DETAIL_POINTS = 2
EXPERIENCE_DETAIL_MIN_CHARS = 50
EDUCATION_POINTS = 2
SKILL_POINTS = {"technical": 1, "soft": 1}

MAX_SCORE = (
    sum(PERSONAL_INFO_POINTS.values())
    + EXPERIENCE_PRESENT_POINTS
    + EXPERIENCE_DETAIL_POINTS
    + EDUCATION_POINTS
    + sum(SKILL_POINTS.values())
)


def calculate_confidence_score(data: ParsedResume) -> int:
    """
    Deterministic 0-100 completeness score for an extraction result.

    Personal info is worth 6 points, experience 4 (2 for any entry, 2 more
    if some description is longer than 50 characters), education 2, and
    skills 2 (one each for technical and soft).
    """
    score = 0

    for field_name, points in PERSONAL_INFO_POINTS.items():
        if getattr(data.personal_info, field_name):
            score += points

    if data.experience:
        score += EXPERIENCE_PRESENT_POINTS
        if any(len(exp.description or "") > EXPERIENCE_DETAIL_MIN_CHARS for exp in data.experience):
            score += EXPERIENCE_DETAIL_POINTS

    if data.education:
        score += EDUCATION_POINTS

    for field_name, points in SKILL_POINTS.items():
        if getattr(data.skills, field_name):
            score += points

    return clamp_confidence(round(score / MAX_SCORE * 100))


def clamp_confidence(value) -> int:
    return int(min(max(value or 0, 0), 100))
