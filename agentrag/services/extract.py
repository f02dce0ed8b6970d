"""Text extraction from stored documents (PDF, images via OCR, TXT, CSV, MD, DOCX).

Extraction is chosen by MIME type. The extracted text is then cleaned and
tagged with frequency-ranked keywords before it is stored on the document.
"""

from __future__ import annotations

import logging
import mimetypes
import re
from collections import Counter
from io import BytesIO

from agentrag.core.config import get_settings
from agentrag.core.exceptions import ExtractionError, UnsupportedFormatError
from agentrag.services.chunking import normalize_text

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_MIME_TYPES = frozenset({"text/plain", "text/csv", "text/markdown"})

OCR_LANGUAGES = frozenset({"eng", "spa", "fra", "deu", "ita", "por", "ara"})

# Lines shorter than this at either end of a long document are treated
# as running headers/footers.
HEADER_FOOTER_MAX_LEN = 50
HEADER_FOOTER_MIN_LINES = 10

MAX_KEYWORDS = 20
STOP_WORDS = frozenset({
    "the", "and", "this", "that", "with", "from", "have", "for", "are", "was",
    "were", "been", "not", "but", "you", "your", "our", "its", "their", "they",
    "them", "can", "will", "all", "any", "has", "had", "into", "than", "then",
    "there", "these", "those", "which", "who", "what", "when", "where", "how",
    "also", "such", "may", "more", "other", "some", "about", "over", "only",
})

_OCR_FIXES = [
    (re.compile(r"(?<=[A-Za-z])\|(?=[A-Za-z])"), "l"),
    (re.compile(r"(?<=[A-Za-z])¡(?=[A-Za-z])"), "i"),
    (re.compile(r"(?<=[A-Za-z])0(?=[A-Za-z])"), "o"),
    (re.compile(r"(?<=\d)O(?=\d)"), "0"),
]


def normalize_mime_type(mime_type: str | None) -> str:
    """Lower-case MIME type without parameters (``text/plain; charset=...``)."""
    return (mime_type or "").split(";", 1)[0].strip().lower()


def is_supported_mime_type(mime_type: str | None) -> bool:
    mime = normalize_mime_type(mime_type)
    return (
        mime in TEXT_MIME_TYPES
        or mime in (PDF_MIME_TYPE, DOCX_MIME_TYPE)
        or mime.startswith("image/")
    )


def guess_mime_type(filename: str, declared: str | None = None) -> str:
    """Prefer the declared content type; fall back to the filename extension."""
    mime = normalize_mime_type(declared)
    if mime and mime != "application/octet-stream":
        return mime
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


def extract_text(mime_type: str, content: bytes, language: str | None = None) -> str:
    """Extract plain text from file bytes based on the MIME type.

    Args:
        mime_type: Content type recorded for the document.
        content: Raw file bytes.
        language: Tesseract language code, used for images only. Defaults
            to the configured OCR language.

    Returns:
        Extracted text as a string.

    Raises:
        UnsupportedFormatError: If no extractor handles the MIME type.
        ExtractionError: If the extractor itself fails.
    """
    mime = normalize_mime_type(mime_type)

    if mime in TEXT_MIME_TYPES:
        kind, extractor = "text file", _extract_plain
    elif mime == PDF_MIME_TYPE:
        kind, extractor = "PDF", _extract_pdf
    elif mime.startswith("image/"):
        kind, extractor = "image", lambda data: _extract_image(data, language)
    elif mime == DOCX_MIME_TYPE:
        kind, extractor = "Word document", _extract_docx
    else:
        raise UnsupportedFormatError(mime_type)

    try:
        return extractor(content)
    except Exception as exc:
        raise ExtractionError(f"Error extracting text from {kind}: {exc}") from exc


def _extract_plain(content: bytes) -> str:
    return content.decode("utf-8")


def _extract_pdf(content: bytes) -> str:
    from pypdf import PdfReader

    reader = PdfReader(BytesIO(content))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n".join(pages)


def _extract_image(content: bytes, language: str | None) -> str:
    import pytesseract
    from PIL import Image

    default = get_settings().ocr_default_language
    if language is None:
        language = default
    elif language not in OCR_LANGUAGES:
        logger.warning("Unsupported OCR language %r, using %s", language, default)
        language = default

    with Image.open(BytesIO(content)) as image:
        return pytesseract.image_to_string(image, lang=language)


def _extract_docx(content: bytes) -> str:
    from docx import Document

    doc = Document(BytesIO(content))
    return "\n".join(p.text for p in doc.paragraphs)


def fix_ocr_confusions(text: str) -> str:
    """Repair characters OCR commonly confuses inside words and numbers."""
    for pattern, replacement in _OCR_FIXES:
        text = pattern.sub(replacement, text)
    return text


def clean_extracted_text(text: str, ocr: bool = False) -> str:
    """Collapse whitespace, fix OCR noise, drop likely headers/footers."""
    text = normalize_text(text or "")
    if ocr:
        text = fix_ocr_confusions(text)

    lines = text.split("\n")
    if len(lines) > HEADER_FOOTER_MIN_LINES:
        if len(lines[0]) < HEADER_FOOTER_MAX_LEN:
            lines.pop(0)
        if lines and len(lines[-1]) < HEADER_FOOTER_MAX_LEN:
            lines.pop()

    return "\n".join(lines).strip()


def extract_document_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """Most frequent non-stop-word terms, ties broken by first appearance."""
    words = re.findall(r"\b[a-z]{3,}\b", (text or "").lower())
    counts = Counter(w for w in words if w not in STOP_WORDS)
    return [word for word, _ in counts.most_common(limit)]
