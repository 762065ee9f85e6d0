"""Embedded fallback prompts — used when Langfuse is unavailable.

Frozen copies of the prompts pushed by scripts/push_prompts.py.
"""

CV_PARSE_PROMPT = "cv-profile-parse"

FALLBACK_PROMPTS = {
    # ─── CV Parsing ───────────────────────────────────────────────────
    CV_PARSE_PROMPT: {
        "system": (
            "You are a CV parsing engine for recruiters. Given the plain text of a résumé, "
            "you extract every relevant fact into structured JSON.\n\n"
            "## RULES\n"
            "1. Copy names, job titles, company names and project names exactly as written. Never anonymise.\n"
            "2. Keep the role (title) separate from the responsibilities.\n"
            "3. Use a consistent date format, e.g. 'MM/YYYY - MM/YYYY' or 'MM/YYYY - Present'.\n"
            "4. experienceYears: total professional experience, e.g. '8+ years', '3-5 years', '< 1 year'.\n"
            "5. skills.technical: every tool, technology, system and method, formatted 'Name (Level)'.\n"
            "6. skills.soft: soft skills stated or clearly evidenced.\n"
            "7. Missing information → empty string or empty array. Do NOT invent facts.\n\n"
            "Return ONLY valid JSON. No markdown, no code fences, no explanation."
        ),
        "user": (
            "Parse this CV:\n\n"
            "{cv_text}\n\n"
            "Additional notes from the recruiter (may be empty):\n{additional_info}\n\n"
            "Return JSON:\n"
            "{{\n"
            '    "personalInfo": {{"name": "", "location": "", "email": null, "phone": null}},\n'
            '    "summary": "",\n'
            '    "experienceYears": "",\n'
            '    "experience": [{{"title": "", "company": "", "dateRange": "", "description": "", "responsibilities": []}}],\n'
            '    "education": [{{"degree": "", "institution": "", "dateRange": "", "details": ""}}],\n'
            '    "skills": {{"technical": [], "soft": [], "languages": [{{"language": "", "level": ""}}]}},\n'
            '    "certifications": [],\n'
            '    "projects": [{{"title": "", "description": "", "technologies": []}}]\n'
            "}}"
        ),
        "config": {"temperature": 0.2, "max_tokens": 4000},
    },
}
