"""Build the candidate profile view model from a parsed CV + recruiter form.

Deterministic, no I/O. Everything the UI renders comes from here.
"""

from app.models import (
    CandidateProfile,
    CareerGoal,
    ContactPerson,
    ITSkill,
    Interest,
    KeyProject,
    ParsedCV,
    PersonalDetail,
    ProfileFormData,
    ProfileLanguage,
    TimelineEntry,
    TopSkill,
)

CONTACT_WEBSITE = "www.getexperts.io"
MAX_TOP_SKILLS = 4
MAX_KEY_PROJECTS = 5


def _initials(name: str) -> str:
    return ".".join(part[0] for part in name.split() if part)


def _skill_level(rank: int) -> str:
    if rank < 3:
        return "Expert"
    if rank < 6:
        return "Very good"
    return "Good"


def _top_skills(cv: ParsedCV) -> list[TopSkill]:
    skills: list[TopSkill] = []
    technical = cv.skills.technical

    if cv.experience:
        skills.append(TopSkill(id="1", name=cv.experience[0].title, description=cv.experience[0].description))
    if technical:
        joined = ", ".join(technical[:3])
        skills.append(TopSkill(
            id="2",
            name=joined,
            description=f"Broad expertise in {joined} with hands-on experience in complex projects.",
        ))
    if len(cv.experience) > 1:
        skills.append(TopSkill(
            id="3",
            name=f"{cv.experience[1].title} & project management",
            description=cv.experience[1].description,
        ))
    if cv.certifications:
        skills.append(TopSkill(
            id="4",
            name=cv.certifications[0],
            description=f"Certified expertise with {cv.certifications[0]} and continuous further training.",
        ))
    return skills[:MAX_TOP_SKILLS]


def _personal_details(cv: ParsedCV, form: ProfileFormData) -> list[PersonalDetail]:
    experience = cv.experience_years or "Experience"
    certification = cv.certifications[0] if cv.certifications else "Certified"
    technology = cv.skills.technical[0] if cv.skills.technical else "Technologies"
    languages = ", ".join(f"{lang.language} ({lang.level})" for lang in cv.skills.languages)
    return [
        PersonalDetail(label="Availability", value=f"Available in {form.availability}"),
        PersonalDetail(label="Salary expectation", value=form.salary),
        PersonalDetail(label="Location", value=cv.personal_info.location or "-"),
        PersonalDetail(label="Working model", value="Full-time (hybrid/remote possible)"),
        PersonalDetail(label="Target position", value=form.position),
        PersonalDetail(label="Highlight", value=f"{experience} + {certification} + {technology}"),
        PersonalDetail(label="Languages", value=languages),
    ]


def generate_profile(cv: ParsedCV, form: ProfileFormData) -> CandidateProfile:
    """Derive every profile section from ``cv``, using ``form`` for the recruiter fields."""
    technical = cv.skills.technical
    latest = cv.experience[0] if cv.experience else None
    experience = cv.experience_years or "Experience"

    summary = [
        f"{form.position} with {cv.experience_years} of relevant experience. {cv.summary}".strip(),
        (
            f"Focus areas: {', '.join(technical[:3]) or 'modern technologies'}. "
            f"Project work including {latest.company if latest else 'leading companies'} "
            f"as {latest.title if latest else 'Technical Consultant'}."
        ),
        (
            "Working style: analytical, structured and entrepreneurial. Goal: measurable "
            "results and sustainable solutions in close collaboration with stakeholders."
        ),
    ]

    qualifications = [
        *cv.certifications[:3],
        f"{experience} of practical professional experience",
        *(f"{edu.degree}, {edu.institution}" for edu in cv.education[:2]),
        *(f"Expertise in {skill}" for skill in technical[:3]),
    ]

    key_projects = [
        KeyProject(
            id=f"p{i + 1}",
            title=f"{exp.title} at {exp.company}",
            category="Current position" if i == 0 else "Professional experience",
            description=exp.description,
            tags=exp.responsibilities[:4],
            scope=f"Successful work as {exp.title} at {exp.company}.",
        )
        for i, exp in enumerate(cv.experience[:MAX_KEY_PROJECTS])
    ]

    timeline = [
        TimelineEntry(
            id=f"exp_{i}",
            date_range=exp.date_range,
            title=f"{exp.title}, {exp.company}",
            description=exp.description,
        )
        for i, exp in enumerate(cv.experience)
    ]

    career_goals = [
        CareerGoal(
            title=f"Senior {form.position}",
            description=(
                f"Growth into a senior {form.position} role with strategic responsibility "
                "for complex projects and technical leadership."
            ),
        ),
        CareerGoal(
            title="Team lead / management",
            description="Move into team lead or management with a focus on people development and strategic planning.",
        ),
    ]
    if technical:
        career_goals.append(CareerGoal(
            title="Specialisation",
            description=f"Deepen expertise in {' and '.join(technical[:2])} for specialised consulting services.",
        ))

    personality_traits = [
        f"{experience} of professional experience with continuous development",
        cv.education[0].degree if cv.education else "Academic background",
        *cv.certifications[:2],
        *([f"Expertise in {', '.join(technical[:3])}"] if technical else []),
        *cv.skills.soft[:2],
    ]

    motivation_factors = [
        *([f"Working with {' and '.join(technical[:2])}"] if technical else []),
        "Building and optimising complex systems",
        "Continuous learning in emerging technologies",
        "Collaboration in interdisciplinary teams",
    ]

    return CandidateProfile(
        title=form.position,
        salary_expectation=form.salary,
        availability=f"Available in {form.availability}",
        location=cv.personal_info.location,
        experience_years=cv.experience_years,
        initials=_initials(cv.personal_info.name),
        contact_person=ContactPerson(
            name=form.contact_person,
            phone=form.contact_phone,
            email=form.contact_email,
            website=CONTACT_WEBSITE,
        ),
        profile_summary=summary,
        top_skills=_top_skills(cv),
        qualifications=qualifications,
        personal_details=_personal_details(cv, form),
        it_skills=[ITSkill(skill=skill, level=_skill_level(i)) for i, skill in enumerate(technical)],
        languages=[ProfileLanguage(lang=lang.language, level=lang.level) for lang in cv.skills.languages],
        education=[
            *(f"{edu.degree}, {edu.institution} ({edu.date_range})" for edu in cv.education),
            *cv.certifications,
        ],
        key_projects=key_projects,
        experience_timeline=timeline,
        career_goals=career_goals,
        interests=[Interest(name=skill) for skill in technical[:4]],
        personality_traits=personality_traits,
        motivation_factors=motivation_factors,
    )
