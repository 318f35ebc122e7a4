from datetime import datetime
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, Field


# ============================================
# AI extraction result
# ============================================

class PersonalInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    linkedin: Optional[str] = None
    website: Optional[str] = None


class ExperienceEntry(BaseModel):
    company: Optional[str] = ""
    position: Optional[str] = ""
    duration: Optional[str] = ""
    description: Optional[str] = ""
    location: Optional[str] = None


class EducationEntry(BaseModel):
    institution: Optional[str] = ""
    degree: Optional[str] = ""
    field: Optional[str] = ""
    graduation_date: Optional[str] = None
    gpa: Optional[str] = None


class Skills(BaseModel):
    technical: List[str] = Field(default_factory=list)
    soft: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)


class Certification(BaseModel):
    name: Optional[str] = ""
    issuer: Optional[str] = ""
    date: Optional[str] = None
    expiry: Optional[str] = None


class Project(BaseModel):
    name: Optional[str] = ""
    description: Optional[str] = ""
    technologies: List[str] = Field(default_factory=list)
    url: Optional[str] = None


class ParsedResume(BaseModel):
    """Structured fields extracted from a resume by the AI service."""
    personal_info: PersonalInfo = Field(default_factory=PersonalInfo)
    experience: List[ExperienceEntry] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    skills: Skills = Field(default_factory=Skills)
    certifications: List[Certification] = Field(default_factory=list)
    projects: List[Project] = Field(default_factory=list)
    summary: Optional[str] = None


# ============================================
# API responses
# ============================================

class ResumeProcessResponse(BaseModel):
    success: bool = True
    resume_id: int
    file_name: str
    file_size: int
    file_type: str
    confidence: int
    summary: str
    credits_used: int
    remaining_credits: int


class ParsedDataResponse(BaseModel):
    personal_info: Dict[str, Any] = Field(default_factory=dict)
    experience: List[Dict[str, Any]] = Field(default_factory=list)
    education: List[Dict[str, Any]] = Field(default_factory=list)
    skills: Dict[str, Any] = Field(default_factory=dict)
    certifications: List[Dict[str, Any]] = Field(default_factory=list)
    projects: List[Dict[str, Any]] = Field(default_factory=list)
    summary: Optional[str] = None
    confidence_score: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class ResumeResponse(BaseModel):
    id: int
    filename: str
    file_url: Optional[str] = None
    file_size: int
    file_type: str
    status: str
    confidence_score: Optional[int] = None
    ai_summary: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ResumeDetailResponse(ResumeResponse):
    parsed_data: Optional[ParsedDataResponse] = None


# ============================================
# Cover letter
# ============================================

class CoverLetterRequest(BaseModel):
    resume_id: int
    job_title: Optional[str] = None
    company_name: Optional[str] = None
    job_description: Optional[str] = None


class CoverLetterResponse(BaseModel):
    success: bool = True
    cover_letter: str
    word_count: int
    character_count: int
