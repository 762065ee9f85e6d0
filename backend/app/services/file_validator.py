"""Upload validation — decide whether a blob is a plausible CV document.

Runs before any expensive work (text extraction, LLM calls). Checks, in order:

1. Size bounds                   → raises FileError
2. Type sniffing (detector chain) → informative only
3. Declared filename extension    → raises FileError if not allowed
4. Detected MIME vs allow-list    → raises FileError (text/* and zip pass)
5. Content sanity                 → collected into ``result.errors``

Clearly wrong inputs abort immediately; "maybe fine" inputs are reported
back so the caller decides.
"""

from typing import BinaryIO, NamedTuple, Protocol

import filetype

from app.core.constants import (
    ALLOWED_EXTENSIONS,
    ALLOWED_MIME_TYPES,
    DOC_MIME,
    DOCX_MARKERS,
    DOCX_MIME,
    MAX_UPLOAD_SIZE,
    MIME_EXTENSIONS,
    MIN_NON_ZERO_BYTES,
    MIN_UPLOAD_SIZE,
    OLE_SIGNATURE,
    PDF_MIME,
    PDF_SIGNATURE,
    PRINTABLE_RATIO_THRESHOLD,
    SNIFF_SAMPLE_SIZE,
    TEXT_MIME,
    ZIP_SIGNATURE,
)
from app.core.errors import ErrorCode, FileError
from app.core.logger import logger
from app.models import FileValidationResult

_MB = 1024 * 1024
_TEXT_WHITESPACE = frozenset(b"\t\n\r")


class DetectedType(NamedTuple):
    mime: str
    extension: str | None


class MimeDetector(Protocol):
    name: str

    def detect(self, data: bytes) -> DetectedType | None: ...


class SignatureLibraryDetector:
    """Signature sniffing via the ``filetype`` library."""

    name = "filetype"

    def detect(self, data: bytes) -> DetectedType | None:
        kind = filetype.guess(data)
        if kind is None:
            return None
        return DetectedType(kind.mime, f".{kind.extension}")


class MagicByteDetector:
    """Hand-written signature table for the formats we accept."""

    name = "magic-bytes"

    def detect(self, data: bytes) -> DetectedType | None:
        mime = _detect_mime_manually(data)
        if mime is None:
            return None
        return DetectedType(mime, MIME_EXTENSIONS.get(mime))


DEFAULT_DETECTORS: tuple[MimeDetector, ...] = (SignatureLibraryDetector(), MagicByteDetector())


def _detect_mime_manually(data: bytes) -> str | None:
    if data.startswith(PDF_SIGNATURE):
        return PDF_MIME

    # A bare ZIP signature is not enough; it must look like an Office package
    if data.startswith(ZIP_SIGNATURE):
        head = data[:SNIFF_SAMPLE_SIZE]
        if any(marker in head for marker in DOCX_MARKERS):
            return DOCX_MIME

    if data.startswith(OLE_SIGNATURE):
        return DOC_MIME

    if _is_likely_text(data):
        return TEXT_MIME

    return None


def _is_likely_text(data: bytes) -> bool:
    sample = data[:SNIFF_SAMPLE_SIZE]
    if not sample:
        return False
    printable = sum(1 for byte in sample if 32 <= byte <= 126 or byte in _TEXT_WHITESPACE)
    return printable / len(sample) >= PRINTABLE_RATIO_THRESHOLD


def detect_file_type(
    data: bytes,
    detectors: tuple[MimeDetector, ...] | list[MimeDetector] = DEFAULT_DETECTORS,
    declared_extension: str | None = None,
) -> DetectedType | None:
    """Try each detector in priority order; first hit wins.

    With ``declared_extension``, a hit that clashes with it only wins if no
    later detector agrees with the declared extension. Short library
    signatures (``BM`` for BMP) otherwise misfire on text like "BMW Group".
    """
    first_hit = None
    for detector in detectors:
        try:
            detected = detector.detect(data)
        except (TypeError, ValueError, OSError) as e:
            logger.warning(f"Type detection via {detector.name} failed, trying next detector: {e}")
            continue
        if detected is None:
            continue
        if declared_extension is None or detected.extension == declared_extension:
            return detected
        first_hit = first_hit or detected
    return first_hit


def _file_extension(filename: str) -> str:
    dot = filename.rfind(".")
    if dot == -1:
        return ""
    return filename[dot:].lower()


def _read_source(source: bytes | bytearray | memoryview | BinaryIO, limit: int) -> tuple[bytes, str | None]:
    """Return (bytes, declared filename) for raw buffers and file-like objects.

    Streams are read up to ``limit`` bytes; an ``UploadFile`` is read through
    its synchronous ``.file``.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source), None
    stream = getattr(source, "file", source)
    data = stream.read(limit)
    return bytes(data), getattr(source, "filename", None)


def _content_errors(data: bytes, mime_type: str | None) -> list[str]:
    errors = []

    non_zero = len(data) - data.count(0)
    if non_zero < MIN_NON_ZERO_BYTES:
        errors.append("File appears to be empty or corrupt (too little content)")

    if mime_type == PDF_MIME and not data[:5].startswith(PDF_SIGNATURE):
        errors.append("PDF header is missing or corrupt")

    return errors


def validate_file(
    source: bytes | bytearray | memoryview | BinaryIO,
    filename: str | None = None,
    *,
    max_size: int | None = None,
    min_size: int | None = None,
    allowed_types: tuple[str, ...] | list[str] | None = None,
    detectors: tuple[MimeDetector, ...] | list[MimeDetector] | None = None,
) -> FileValidationResult:
    """Validate an uploaded document.

    Args:
        source: Raw bytes, or a binary file-like object. A ``filename``
            attribute on the object is used as the declared filename.
        filename: Declared filename; enables the extension check.
        max_size / min_size: Byte bounds (defaults 10 MiB / 100 bytes).
        allowed_types: MIME allow-list (defaults to PDF, DOCX, DOC, TXT).
        detectors: Override the detection chain.

    Returns:
        FileValidationResult — ``is_valid`` is False only for content findings.

    Raises:
        FileError: FILE_TOO_LARGE, FILE_CORRUPTED (too small), or
            FILE_INVALID_TYPE (extension / MIME not allowed).
    """
    max_size = max_size or MAX_UPLOAD_SIZE
    min_size = min_size or MIN_UPLOAD_SIZE
    allowed_types = tuple(allowed_types or ALLOWED_MIME_TYPES)

    # One byte past the limit is enough to tell "too large"
    data, source_name = _read_source(source, max_size + 1)
    filename = filename if filename is not None else source_name
    declared = _file_extension(filename) if filename is not None else None
    size = len(data)

    # 1. Size
    if size > max_size:
        raise FileError(
            ErrorCode.FILE_TOO_LARGE,
            f"File is too large ({size / _MB:.2f}MB). Maximum: {max_size / _MB:.2f}MB",
            details={"size": size, "max_size": max_size},
        )
    if size < min_size:
        raise FileError(
            ErrorCode.FILE_CORRUPTED,
            f"File is too small or empty ({size} bytes)",
            details={"size": size, "min_size": min_size},
        )

    # 2. Type sniffing
    detected = detect_file_type(data, detectors if detectors is not None else DEFAULT_DETECTORS, declared)
    mime_type = detected.mime if detected else None
    extension = detected.extension if detected else None

    # 3. Declared extension
    if declared is not None:
        if declared not in ALLOWED_EXTENSIONS:
            raise FileError(
                ErrorCode.FILE_INVALID_TYPE,
                f"File type not allowed: {declared or '(none)'}. Allowed: {', '.join(ALLOWED_EXTENSIONS)}",
                details={"extension": declared, "allowed": list(ALLOWED_EXTENSIONS)},
            )
        if extension and extension != declared:
            logger.warning(
                f"Extension mismatch: '{filename}' declares {declared} but content looks like "
                f"{mime_type} ({extension})"
            )

    # 4. MIME allow-list; generic sniffers under-detect text and Office ZIPs
    if mime_type and mime_type not in allowed_types:
        if not mime_type.startswith("text/") and "zip" not in mime_type:
            raise FileError(
                ErrorCode.FILE_INVALID_TYPE,
                f"File type not allowed: {mime_type}. Allowed: PDF, DOCX, DOC, TXT",
                details={"mime_type": mime_type, "allowed": list(allowed_types)},
            )

    # 5. Content
    errors = _content_errors(data, mime_type)

    return FileValidationResult(
        is_valid=not errors,
        mime_type=mime_type,
        extension=extension,
        size=size,
        errors=errors,
    )


def validate_file_or_throw(
    source: bytes | bytearray | memoryview | BinaryIO,
    filename: str | None = None,
    **options,
) -> FileValidationResult:
    """Like ``validate_file`` but content findings raise too."""
    result = validate_file(source, filename, **options)
    if not result.is_valid:
        raise FileError(
            ErrorCode.FILE_INVALID_TYPE,
            f"File validation failed: {', '.join(result.errors)}",
            details=result.model_dump(),
        )
    return result
