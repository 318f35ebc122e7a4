"""
AI service layer for resume extraction, summaries, and cover letters.

All calls go through one OpenAI client built with an explicit request
timeout, so a hung provider call fails the request instead of leaving a
resume in ``processing`` forever. Responses are validated into Pydantic
models before they leave this module.
"""
import base64
import json
import logging
import re
from typing import Optional, Dict, Any, List

from openai import OpenAI, APIError, APITimeoutError
from pydantic import ValidationError

from app.core.config import OPENAI_API_KEY, OPENAI_MODEL, AI_TIMEOUT_SECONDS
from app.schemas.resume import ParsedResume, PersonalInfo, Skills

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = "Professional with diverse experience and skills."
PARSE_FAILURE_SUMMARY = "Failed to parse resume content"

_client: Optional[OpenAI] = None


class AIServiceError(Exception):
    """The AI provider could not be reached or returned an error."""


def get_client() -> OpenAI:
    global _client
    if _client is None:
        if not OPENAI_API_KEY:
            raise AIServiceError("OPENAI_API_KEY not configured")
        _client = OpenAI(api_key=OPENAI_API_KEY, timeout=AI_TIMEOUT_SECONDS, max_retries=1)
        logger.info(f"OpenAI client initialized: model={OPENAI_MODEL}, timeout={AI_TIMEOUT_SECONDS}s")
    return _client


def _complete(messages: List[Dict[str, Any]], temperature: float = 0.2, max_tokens: int = 4000) -> str:
    """
    Run one chat completion and return the message text.

    Raises:
        AIServiceError: Timeout, API error, or unexpected client failure
    """
    client = get_client()
    try:
        response = client.chat.completions.create(
            model=OPENAI_MODEL,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except APITimeoutError as e:
        logger.error(f"OpenAI call timed out after {AI_TIMEOUT_SECONDS}s")
        raise AIServiceError("AI service timed out") from e
    except APIError as e:
        logger.error(f"OpenAI API error: {e}", exc_info=True)
        raise AIServiceError("AI service temporarily unavailable") from e

    return response.choices[0].message.content or ""


def _respond(content: List[Dict[str, Any]], instructions: str, temperature: float = 0) -> str:
    """
    Run one Responses API call over mixed text/file input and return the output text.

    Raises:
        AIServiceError: Timeout, API error, or unexpected client failure
    """
    client = get_client()
    try:
        response = client.responses.create(
            model=OPENAI_MODEL,
            instructions=instructions,
            input=[{"role": "user", "content": content}],
            temperature=temperature,
        )
    except APITimeoutError as e:
        logger.error(f"OpenAI call timed out after {AI_TIMEOUT_SECONDS}s")
        raise AIServiceError("AI service timed out") from e
    except APIError as e:
        logger.error(f"OpenAI API error: {e}", exc_info=True)
        raise AIServiceError("AI service temporarily unavailable") from e

    return response.output_text or ""


def _upload_file(content: bytes, mime_type: str, filename: str) -> str:
    """Upload a document to the Files API and return its id."""
    client = get_client()
    try:
        uploaded = client.files.create(file=(filename, content, mime_type), purpose="user_data")
    except APITimeoutError as e:
        logger.error(f"OpenAI file upload timed out: filename={filename}")
        raise AIServiceError("AI service timed out") from e
    except APIError as e:
        logger.error(f"OpenAI file upload failed: filename={filename}, error={e}")
        raise AIServiceError("AI service temporarily unavailable") from e
    logger.info(f"Uploaded file for extraction: filename={filename}, file_id={uploaded.id}")
    return uploaded.id


def _discard_file(file_id: str) -> None:
    try:
        get_client().files.delete(file_id)
    except APIError as e:
        logger.warning(f"Failed to delete uploaded file file_id={file_id}: {e}")


EXTRACTION_PROMPT = """
You are an expert resume parser. Extract structured information from the provided CV/Resume file and return it as valid JSON.

IMPORTANT: Return ONLY a valid JSON object with no additional text, explanations, or markdown formatting.

Required JSON structure:
{
  "personal_info": {"name": "", "email": "", "phone": "", "location": "", "linkedin": "", "website": ""},
  "experience": [{"company": "", "position": "", "duration": "", "description": "", "location": ""}],
  "education": [{"institution": "", "degree": "", "field": "", "graduation_date": "", "gpa": ""}],
  "skills": {"technical": [], "soft": [], "languages": []},
  "certifications": [{"name": "", "issuer": "", "date": "", "expiry": ""}],
  "projects": [{"name": "", "description": "", "technologies": [], "url": ""}],
  "summary": "Brief professional summary"
}

Instructions:
- Extract all information accurately from the resume
- If information is not clearly stated, use empty string "" or empty array []
- Ensure all arrays exist even if empty
- Be thorough in extracting experience descriptions
"""


def _file_part(content: bytes, mime_type: str, filename: str) -> Dict[str, Any]:
    """
    Build the Responses API input part for one resume file.

    Plain text goes inline and PDFs are embedded as base64. Word documents
    are uploaded through the Files API and referenced by id; the caller
    discards the uploaded file once the response is in.
    """
    if mime_type == "text/plain":
        return {"type": "input_text", "text": content.decode("utf-8", errors="replace")}
    if mime_type == "application/pdf":
        encoded = base64.b64encode(content).decode("ascii")
        return {"type": "input_file", "filename": filename, "file_data": f"data:{mime_type};base64,{encoded}"}
    return {"type": "input_file", "file_id": _upload_file(content, mime_type, filename)}


def clean_json_text(text: str) -> str:
    """Strip code fences and anything outside the outermost braces."""
    cleaned = (text or "").strip()
    cleaned = re.sub(r"```(?:json)?\s*", "", cleaned)
    cleaned = cleaned.replace("```", "")

    first = cleaned.find("{")
    if first > 0:
        cleaned = cleaned[first:]
    last = cleaned.rfind("}")
    if last != -1 and last < len(cleaned) - 1:
        cleaned = cleaned[: last + 1]
    return cleaned.strip()


def empty_resume(summary: str = PARSE_FAILURE_SUMMARY) -> ParsedResume:
    return ParsedResume(personal_info=PersonalInfo(), skills=Skills(), summary=summary)


def parse_resume_json(text: str) -> ParsedResume:
    """Validate model output into ParsedResume; unparseable output yields the empty structure."""
    try:
        raw = json.loads(clean_json_text(text))
        if not isinstance(raw, dict):
            raise ValueError("Top-level JSON is not an object")
        return ParsedResume.model_validate(raw)
    except (json.JSONDecodeError, ValidationError, ValueError) as e:
        logger.warning(f"Failed to parse AI resume response, using empty structure: {e}; head={text[:200]!r}")
        return empty_resume()


def extract_resume_data(content: bytes, mime_type: str, filename: str) -> ParsedResume:
    """
    Send the raw file to the model and return the structured result.

    No local text extraction is done; binary formats are read by the model.

    Raises:
        AIServiceError: Provider failure or timeout
    """
    logger.info(f"Starting AI extraction: filename={filename}, size={len(content)}, type={mime_type}")
    file_part = _file_part(content, mime_type, filename)
    try:
        text = _respond(
            [{"type": "input_text", "text": EXTRACTION_PROMPT}, file_part],
            instructions="You convert resumes into JSON.",
        )
    finally:
        if "file_id" in file_part:
            _discard_file(file_part["file_id"])
    logger.info(f"Received AI extraction response: filename={filename}, length={len(text)}")
    return parse_resume_json(text)


def generate_summary(parsed: ParsedResume) -> str:
    """Two or three sentence professional summary. Falls back to a default sentence on any AI failure."""
    prompt = f"""
Based on the following parsed resume data, generate a concise professional summary (2-3 sentences) that highlights:
- Key professional strengths and experience level
- Primary skills and expertise areas
- Career focus or industry specialization

Resume data: {parsed.model_dump_json(indent=2)}

Return only the summary text, no additional formatting or explanations.
If the data is incomplete or empty, return a generic professional summary.
"""
    try:
        summary = _complete([{"role": "user", "content": prompt}], temperature=0.5, max_tokens=300).strip()
    except AIServiceError as e:
        logger.warning(f"Summary generation failed, using default: {e}")
        return DEFAULT_SUMMARY
    return summary or DEFAULT_SUMMARY


def generate_cover_letter(
    parsed: Dict[str, Any],
    job_title: Optional[str] = None,
    company_name: Optional[str] = None,
    job_description: Optional[str] = None,
) -> str:
    """
    Generate a 3-4 paragraph cover letter from stored parsed data.

    Raises:
        AIServiceError: Provider failure, timeout, or empty output
    """
    target = []
    if job_title:
        target.append(f"Position: {job_title}")
    if company_name:
        target.append(f"Company: {company_name}")
    if job_description:
        target.append(f"Job Description: {job_description[:4000]}")
    target_text = "\n".join(target) or "Create a general cover letter that highlights the candidate's strengths."

    prompt = f"""
Generate a professional cover letter based on the following resume data:
{json.dumps(parsed, indent=2, default=str)}

{target_text}

The cover letter should:
- Be professional and engaging
- Highlight key achievements and skills
- Be 3-4 paragraphs long
- Match the tone to the candidate's experience level

Return only the cover letter content without any additional formatting or explanations.
"""
    letter = _complete([{"role": "user", "content": prompt}], temperature=0.7, max_tokens=1500).strip()
    if not letter:
        raise AIServiceError("AI service returned an empty cover letter")
    return letter
