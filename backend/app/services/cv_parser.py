"""Parse CV text into a ``ParsedCV`` via the LLM.

Fetches the prompt from Langfuse ("cv-profile-parse") at runtime, with the
embedded copy in app.core.fallback_prompts as fallback. The model's answer
is normalised defensively: field aliases are accepted, incomplete entries
dropped, and placeholders filled in.
"""

from typing import Any

from app.core.constants import CV_TRUNCATE_LENGTH, MIN_CV_TEXT_LENGTH
from app.core.errors import ValidationError
from app.core.fallback_prompts import CV_PARSE_PROMPT, FALLBACK_PROMPTS
from app.core.langfuse_client import get_prompt_messages, observe
from app.core.llm import LLMClient
from app.core.logger import logger
from app.models import (
    EducationEntry,
    ExperienceEntry,
    LanguageSkill,
    ParsedCV,
    PersonalInfo,
    ProjectEntry,
    Skills,
)

MISSING_POSITION = "(position not given)"
MISSING_COMPANY = "(company not given)"
MISSING_PERIOD = "(period not given)"
MISSING_DEGREE = "(degree not given)"
MISSING_INSTITUTION = "(institution not given)"


def _first(data: dict, *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return None


def _text(data: dict, *keys: str) -> str:
    value = _first(data, *keys)
    return str(value).strip() if value is not None else ""


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _dicts(value: Any) -> list[dict]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _normalize_experience(raw: dict) -> ExperienceEntry | None:
    title = _text(raw, "title", "position")
    company = _text(raw, "company", "employer")
    if not title and not company:
        return None
    responsibilities = raw.get("responsibilities")
    if not isinstance(responsibilities, list):
        responsibilities = raw.get("tasks")
    return ExperienceEntry(
        title=title or MISSING_POSITION,
        company=company or MISSING_COMPANY,
        date_range=_text(raw, "dateRange", "date_range", "duration", "period") or MISSING_PERIOD,
        description=_text(raw, "description", "summary"),
        responsibilities=_string_list(responsibilities),
    )


def _normalize_education(raw: dict) -> EducationEntry | None:
    degree = _text(raw, "degree", "qualification")
    institution = _text(raw, "institution", "school", "university")
    if not degree and not institution:
        return None
    return EducationEntry(
        degree=degree or MISSING_DEGREE,
        institution=institution or MISSING_INSTITUTION,
        date_range=_text(raw, "dateRange", "date_range", "duration", "period", "year"),
        details=_text(raw, "details", "field", "major") or None,
    )


def _normalize_languages(value: Any) -> list[LanguageSkill]:
    languages = []
    for item in _dicts(value):
        name = _text(item, "language", "lang")
        if name:
            languages.append(LanguageSkill(language=name, level=_text(item, "level", "proficiency")))
    return languages


def _normalize_projects(value: Any) -> list[ProjectEntry]:
    projects = []
    for item in _dicts(value):
        title = _text(item, "title")
        if not title:
            continue
        technologies = item.get("technologies")
        if not isinstance(technologies, list):
            technologies = item.get("tech")
        projects.append(ProjectEntry(
            title=title,
            description=_text(item, "description", "summary"),
            technologies=_string_list(technologies),
        ))
    return projects


def normalize_parsed_cv(raw: dict) -> ParsedCV:
    """Turn the model's raw JSON into a ``ParsedCV`` with robust fallbacks."""
    personal = raw.get("personalInfo") or raw.get("personal_info") or {}
    if not isinstance(personal, dict):
        personal = {}
    skills = raw.get("skills") if isinstance(raw.get("skills"), dict) else {}

    technical = skills.get("technical")
    if not isinstance(technical, list):
        technical = raw.get("technicalSkills")
    soft = skills.get("soft")
    if not isinstance(soft, list):
        soft = skills.get("softSkills")
    certifications = raw.get("certifications")
    if not isinstance(certifications, list):
        certifications = raw.get("certificates")

    experience = [e for e in map(_normalize_experience, _dicts(raw.get("experience"))) if e]
    education = [e for e in map(_normalize_education, _dicts(raw.get("education"))) if e]

    parsed = ParsedCV(
        personal_info=PersonalInfo(
            name=_text(personal, "name") or _text(raw, "name"),
            location=_text(personal, "location") or _text(raw, "location"),
            email=_text(personal, "email") or _text(raw, "email") or None,
            phone=_text(personal, "phone") or _text(raw, "phone") or None,
            date_of_birth=_text(personal, "dateOfBirth", "date_of_birth") or None,
            nationality=_text(personal, "nationality") or None,
        ),
        experience=experience,
        education=education,
        skills=Skills(
            technical=_string_list(technical),
            soft=_string_list(soft),
            languages=_normalize_languages(skills.get("languages")),
        ),
        certifications=_string_list(certifications),
        projects=_normalize_projects(raw.get("projects")),
        summary=_text(raw, "summary", "profile", "about"),
        experience_years=_text(raw, "experienceYears", "experience_years", "totalExperience", "yearsOfExperience"),
    )

    logger.info(
        f"Parsed CV: {len(parsed.experience)} positions, {len(parsed.education)} education entries, "
        f"{len(parsed.skills.technical)} technical skills, {len(parsed.certifications)} certifications"
    )
    return parsed


@observe(name="cv-profile-parse")
async def parse_cv(cv_text: str, additional_info: str, llm: LLMClient) -> ParsedCV:
    """Parse CV text with the LLM.

    Raises:
        ValidationError: the text is too short to be worth parsing.
        UpstreamAIError / CircuitOpenError: the LLM call failed.
    """
    if not cv_text or len(cv_text.strip()) < MIN_CV_TEXT_LENGTH:
        raise ValidationError(
            f"CV text is too short or empty (at least {MIN_CV_TEXT_LENGTH} characters required)",
            details={"length": len(cv_text or "")},
        )

    template_vars = {
        "cv_text": cv_text[:CV_TRUNCATE_LENGTH],
        "additional_info": additional_info,
    }

    fallback = FALLBACK_PROMPTS[CV_PARSE_PROMPT]
    langfuse_result = get_prompt_messages(CV_PARSE_PROMPT, template_vars)
    if langfuse_result:
        system_prompt, user_prompt, config = langfuse_result
        config = config or fallback["config"]
    else:
        system_prompt = fallback["system"]
        user_prompt = fallback["user"].format(**template_vars)
        config = fallback["config"]
        logger.warning(f"Langfuse unavailable, using embedded fallback for {CV_PARSE_PROMPT}")

    raw = await llm.call_json(
        prompt=user_prompt,
        system_prompt=system_prompt,
        temperature=config.get("temperature", 0.2),
        max_tokens=config.get("max_tokens", 4000),
    )
    return normalize_parsed_cv(raw)


def minimal_parsed_cv(name: str, location: str) -> ParsedCV:
    """Stand-in used when the CV could not be read or parsed; form data only."""
    return ParsedCV(
        personal_info=PersonalInfo(name=name, location=location),
        summary="The summary could not be extracted automatically.",
        experience_years="< 1 year",
    )
