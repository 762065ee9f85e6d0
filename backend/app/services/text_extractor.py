"""Extract plain text from an uploaded CV (PDF, DOCX, TXT).

All parsers are synchronous; callers run ``extract_text`` in a thread.
"""

import re
import zipfile
from io import BytesIO

import docx
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from app.core.constants import DOC_MIME, DOCX_MIME, PDF_MIME
from app.core.errors import ErrorCode, FileError
from app.core.logger import logger

_NON_PRINTABLE = re.compile(r"[^\x20-\x7E\n\r\t]")


def _extract_pdf(data: bytes) -> str:
    try:
        reader = PdfReader(BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
        return "\n".join(pages).strip()
    except (PyPdfError, ValueError, KeyError, TypeError) as e:
        # Broken PDFs sometimes still carry readable text streams
        logger.warning(f"PDF parsing failed, falling back to raw text strip: {e}")
        return _NON_PRINTABLE.sub(" ", data.decode("utf-8", errors="ignore")).strip()


def _extract_docx(data: bytes) -> str:
    try:
        document = docx.Document(BytesIO(data))
    except (zipfile.BadZipFile, PackageNotFoundError, ValueError, KeyError) as e:
        raise FileError(
            ErrorCode.FILE_EXTRACTION_FAILED,
            "Could not read the DOCX file. Please check that it is a valid Word document.",
            details={"reason": str(e)},
        ) from e

    lines = [p.text for p in document.paragraphs if p.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                lines.append(" | ".join(cells))
    return "\n".join(lines).strip()


def _is_docx(mime_type: str, filename: str) -> bool:
    if mime_type == DOCX_MIME:
        return True
    # Generic sniffers often report a DOCX as a plain ZIP
    return "zip" in mime_type and filename.lower().endswith(".docx")


def extract_text(data: bytes, mime_type: str | None, filename: str = "") -> str:
    """Return the document's text.

    Raises:
        FileError(FILE_EXTRACTION_FAILED) for unsupported or unreadable files.
    """
    mime_type = mime_type or ""

    if mime_type == PDF_MIME:
        return _extract_pdf(data)
    if _is_docx(mime_type, filename):
        return _extract_docx(data)
    if mime_type == DOC_MIME:
        raise FileError(
            ErrorCode.FILE_EXTRACTION_FAILED,
            "Legacy .doc files cannot be read. Please upload a DOCX or PDF.",
            details={"mime_type": mime_type},
        )
    if mime_type.startswith("text/"):
        return data.decode("utf-8", errors="replace").strip()

    raise FileError(
        ErrorCode.FILE_EXTRACTION_FAILED,
        f"Unsupported file type for text extraction: {mime_type or 'unknown'}",
        details={"mime_type": mime_type, "filename": filename},
    )
