"""Centralized constants — no magic numbers in service code."""

# Upload limits
MAX_UPLOAD_SIZE = 10 * 1024 * 1024  # 10 MiB
MIN_UPLOAD_SIZE = 100  # bytes; anything smaller is treated as corrupt

ALLOWED_EXTENSIONS = (".pdf", ".docx", ".doc", ".txt")

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOC_MIME = "application/msword"
TEXT_MIME = "text/plain"

ALLOWED_MIME_TYPES = (PDF_MIME, DOCX_MIME, DOC_MIME, TEXT_MIME)

MIME_EXTENSIONS = {
    PDF_MIME: ".pdf",
    DOCX_MIME: ".docx",
    DOC_MIME: ".doc",
    TEXT_MIME: ".txt",
}

# Magic bytes for the manual detector
PDF_SIGNATURE = b"%PDF"
ZIP_SIGNATURE = b"PK\x03\x04"
OLE_SIGNATURE = b"\xd0\xcf\x11\xe0"
DOCX_MARKERS = (b"word/", b"[Content_Types].xml")

# Content heuristics
SNIFF_SAMPLE_SIZE = 1000  # bytes inspected for DOCX markers + text ratio
PRINTABLE_RATIO_THRESHOLD = 0.85
MIN_NON_ZERO_BYTES = 50

# CV text
MIN_CV_TEXT_LENGTH = 50  # chars required before calling the LLM
MIN_EXTRACTED_TEXT_LENGTH = 10  # below this the upload is treated as unreadable
CV_TRUNCATE_LENGTH = 15_000  # chars sent to the LLM
ADDITIONAL_INFO_MAX_LENGTH = 5_000

# LLM
DEFAULT_LLM_MODEL = "gpt-4o"
LLM_HEALTH_CHECK_TIMEOUT = 10.0  # seconds

# Retry / circuit breaker defaults (seconds)
DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 1.0
DEFAULT_MAX_DELAY = 30.0
DEFAULT_BACKOFF_FACTOR = 2.0
DEFAULT_ATTEMPT_TIMEOUT = 60.0
BACKOFF_JITTER = 0.25  # ±25 %

DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_RESET_TIMEOUT = 60.0

# Rate limiting
RATE_LIMIT_PER_MINUTE = 10

# Spellcheck heuristics
SPELLCHECK_LONG_WORD_LENGTH = 32

# Form limits
FORM_FIELD_MAX_LENGTH = 100
FORM_SHORT_FIELD_MAX_LENGTH = 50
