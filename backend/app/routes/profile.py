"""CV upload endpoint — validated file + recruiter form in, candidate profile out."""

import asyncio
import time

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import load_settings
from app.core.constants import (
    ADDITIONAL_INFO_MAX_LENGTH,
    FORM_FIELD_MAX_LENGTH,
    FORM_SHORT_FIELD_MAX_LENGTH,
    MIN_EXTRACTED_TEXT_LENGTH,
    RATE_LIMIT_PER_MINUTE,
)
from app.core.errors import AppError, user_friendly_message
from app.core.langfuse_client import flush, observe
from app.core.llm import LLMClient, get_llm_client
from app.core.logger import logger
from app.models import ParsedCV, ProcessCVResponse, ProfileFormData, SpellcheckResponse
from app.services.cv_parser import minimal_parsed_cv, parse_cv
from app.services.file_validator import validate_file
from app.services.profile_generator import generate_profile
from app.services.spellcheck import check_text
from app.services.text_extractor import extract_text

router = APIRouter(prefix="/api", tags=["Profile"])
limiter = Limiter(key_func=get_remote_address)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Surrogate-Control": "no-store",
}


async def _read_cv_text(data: bytes, filename: str, warnings: list[str]) -> str:
    """Validate + extract. Hard validation failures raise; soft ones become warnings."""
    result = validate_file(data, filename=filename, max_size=load_settings().max_upload_size)
    if not result.is_valid:
        warnings.append(f"File check: {', '.join(result.errors)}")
        return ""

    try:
        text = await asyncio.to_thread(extract_text, data, result.mime_type, filename)
    except AppError as e:
        logger.warning(f"Text extraction failed for '{filename}': {e.message}")
        warnings.append(f"Text extraction: {e.message}")
        return ""

    logger.info(f"Extracted {len(text)} characters from '{filename}'")
    return text


async def _parse_or_none(cv_text: str, additional_info: str, llm: LLMClient, warnings: list[str]) -> ParsedCV | None:
    if len(cv_text.strip()) < MIN_EXTRACTED_TEXT_LENGTH:
        warnings.append("No readable text found in the CV; the profile is based on the form data only.")
        return None
    try:
        return await parse_cv(cv_text, additional_info, llm)
    except AppError as e:
        logger.error(f"CV parsing failed [{e.code.value}]: {e.message}")
        warnings.append(f"CV parsing: {user_friendly_message(e)}")
        return None


@router.post("/process-cv", response_model=ProcessCVResponse)
@limiter.limit(f"{RATE_LIMIT_PER_MINUTE}/minute")
@observe(name="cv-profile-process")
async def process_cv(
    request: Request,
    name: str = Form(..., min_length=1, max_length=FORM_FIELD_MAX_LENGTH),
    position: str = Form(..., min_length=1, max_length=FORM_FIELD_MAX_LENGTH),
    location: str = Form(..., min_length=1, max_length=FORM_FIELD_MAX_LENGTH),
    salary: str = Form(default="", max_length=FORM_SHORT_FIELD_MAX_LENGTH),
    availability: str = Form(default="", max_length=FORM_SHORT_FIELD_MAX_LENGTH),
    contact_person: str = Form(default="", max_length=FORM_FIELD_MAX_LENGTH),
    contact_phone: str = Form(default="", max_length=FORM_SHORT_FIELD_MAX_LENGTH),
    contact_email: str = Form(default="", max_length=FORM_FIELD_MAX_LENGTH),
    additional_info: str = Form(default="", max_length=ADDITIONAL_INFO_MAX_LENGTH),
    cv_file: UploadFile = File(...),
    llm: LLMClient = Depends(get_llm_client),
):
    """Build a candidate profile. Degrades to a form-only profile instead of failing."""
    start = time.time()
    form = ProfileFormData(
        name=name,
        position=position,
        location=location,
        salary=salary,
        availability=availability,
        contact_person=contact_person,
        contact_phone=contact_phone,
        contact_email=contact_email,
        additional_info=additional_info,
    )
    filename = cv_file.filename or ""
    data = await cv_file.read()
    logger.info(f"Processing CV for {name}: '{filename}' ({len(data)} bytes)")

    warnings: list[str] = []
    cv_text = await _read_cv_text(data, filename, warnings)
    parsed = await _parse_or_none(cv_text, additional_info, llm, warnings)

    if parsed is None:
        logger.warning("Falling back to a minimal profile built from form data")
        parsed = minimal_parsed_cv(name, location)
    else:
        parsed.personal_info.name = parsed.personal_info.name or name
        parsed.personal_info.location = parsed.personal_info.location or location

    profile = generate_profile(parsed, form)

    elapsed_ms = int((time.time() - start) * 1000)
    logger.info(f"Profile generated in {elapsed_ms}ms ({len(warnings)} warnings)")
    flush()
    return ProcessCVResponse(data=profile, warnings=warnings)


@router.post("/spellcheck", response_model=SpellcheckResponse)
async def spellcheck(request: Request, response: Response):
    """Light heuristics over ``{"text": ...}``. Never fails; malformed input yields no warning."""
    response.headers.update(NO_CACHE_HEADERS)
    try:
        payload = await request.json()
    except ValueError:
        payload = {}
    text = payload.get("text") if isinstance(payload, dict) else None
    return SpellcheckResponse(warning=check_text(text))
