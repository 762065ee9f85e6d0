"""Pydantic models for the CV profile API."""

from pydantic import BaseModel, Field


class FileValidationResult(BaseModel):
    """Outcome of ``validate_file``. Only content-level findings land in ``errors``."""
    is_valid: bool
    mime_type: str | None = None
    extension: str | None = None
    size: int
    errors: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Parsed CV (LLM output after normalisation)
# ---------------------------------------------------------------------------


class PersonalInfo(BaseModel):
    name: str = ""
    location: str = ""
    email: str | None = None
    phone: str | None = None
    date_of_birth: str | None = None
    nationality: str | None = None


class ExperienceEntry(BaseModel):
    title: str
    company: str
    date_range: str
    description: str = ""
    responsibilities: list[str] = []


class EducationEntry(BaseModel):
    degree: str
    institution: str
    date_range: str = ""
    details: str | None = None


class LanguageSkill(BaseModel):
    language: str
    level: str = ""


class Skills(BaseModel):
    technical: list[str] = []
    soft: list[str] = []
    languages: list[LanguageSkill] = []


class ProjectEntry(BaseModel):
    title: str
    description: str = ""
    technologies: list[str] = []


class ParsedCV(BaseModel):
    personal_info: PersonalInfo = Field(default_factory=PersonalInfo)
    experience: list[ExperienceEntry] = []
    education: list[EducationEntry] = []
    skills: Skills = Field(default_factory=Skills)
    certifications: list[str] = []
    projects: list[ProjectEntry] = []
    summary: str = ""
    experience_years: str = ""


# ---------------------------------------------------------------------------
# Candidate profile (view model rendered by the UI)
# ---------------------------------------------------------------------------


class ProfileFormData(BaseModel):
    """Recruiter-provided form fields that accompany the upload."""
    name: str
    position: str
    location: str
    salary: str = ""
    availability: str = ""
    contact_person: str = ""
    contact_phone: str = ""
    contact_email: str = ""
    additional_info: str = ""


class ContactPerson(BaseModel):
    name: str
    phone: str
    email: str
    website: str = ""


class TopSkill(BaseModel):
    id: str
    name: str
    description: str


class PersonalDetail(BaseModel):
    label: str
    value: str


class ITSkill(BaseModel):
    skill: str
    level: str


class ProfileLanguage(BaseModel):
    lang: str
    level: str


class KeyProject(BaseModel):
    id: str
    title: str
    category: str
    description: str
    tags: list[str]
    scope: str


class TimelineEntry(BaseModel):
    id: str
    date_range: str
    title: str
    description: str


class CareerGoal(BaseModel):
    title: str
    description: str


class Interest(BaseModel):
    name: str


class CandidateProfile(BaseModel):
    title: str
    salary_expectation: str
    availability: str
    location: str
    experience_years: str
    initials: str
    contact_person: ContactPerson
    profile_summary: list[str]
    top_skills: list[TopSkill]
    qualifications: list[str]
    personal_details: list[PersonalDetail]
    it_skills: list[ITSkill]
    languages: list[ProfileLanguage]
    education: list[str]
    key_projects: list[KeyProject]
    experience_timeline: list[TimelineEntry]
    career_goals: list[CareerGoal]
    interests: list[Interest]
    personality_traits: list[str]
    motivation_factors: list[str]


class ProcessCVResponse(BaseModel):
    """Response of POST /api/process-cv."""
    success: bool = True
    data: CandidateProfile
    warnings: list[str] = Field(
        default_factory=list,
        description="Steps that degraded to the form-only fallback",
    )


class SpellcheckResponse(BaseModel):
    warning: str | None = None
