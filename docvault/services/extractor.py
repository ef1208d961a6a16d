"""
Text extraction from uploaded bytes, plus the normalization and summary
helpers used for indexing.

- pdfplumber for PDF
- python-docx / python-pptx / openpyxl for Office Open XML
- BeautifulSoup for HTML
- UTF-8 decode for anything that looks like text

The format is taken from the declared content type when it names one we
handle, otherwise sniffed from the bytes.
"""

import logging
import re
import string
import zipfile
from io import BytesIO
from typing import Optional

import docx
import openpyxl
import pdfplumber
from bs4 import BeautifulSoup
from pptx import Presentation

from ..core.errors import ExtractionFailure

logger = logging.getLogger(__name__)

PDF = "pdf"
DOCX = "docx"
PPTX = "pptx"
XLSX = "xlsx"
HTML = "html"
TEXT = "text"

_CONTENT_TYPES = {
    "application/pdf": PDF,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DOCX,
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": PPTX,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": XLSX,
    "text/html": HTML,
    "application/xhtml+xml": HTML,
    "text/plain": TEXT,
    "text/markdown": TEXT,
    "text/x-markdown": TEXT,
    "text/csv": TEXT,
    "application/json": TEXT,
}

# OOXML packages are zips; the first part name tells them apart
_OOXML_MARKERS = (
    ("word/document.xml", DOCX),
    ("ppt/presentation.xml", PPTX),
    ("xl/workbook.xml", XLSX),
)

_PUNCTUATION_RE = re.compile("[" + re.escape(string.punctuation.replace("_", "")) + "]")
_WHITESPACE_RE = re.compile(r"\s+")


def extract(file_bytes: bytes, content_type: Optional[str] = None) -> str:
    """
    Extract plain text from file bytes of any supported format.
    Never raises: parse failures and unsupported formats yield "".
    """
    try:
        return extract_strict(file_bytes, content_type)
    except ExtractionFailure as e:
        logger.error("Text extraction failed (%s): %s", content_type, e)
        return ""


def extract_strict(file_bytes: bytes, content_type: Optional[str] = None) -> str:
    """Same as extract() but raises ExtractionFailure instead of returning ""."""
    if not file_bytes:
        return ""

    kind = detect_format(file_bytes, content_type)
    if kind is None:
        raise ExtractionFailure(f"Unsupported format (declared {content_type!r})")

    try:
        if kind == PDF:
            return _extract_pdf(file_bytes)
        if kind == DOCX:
            return _extract_docx(file_bytes)
        if kind == PPTX:
            return _extract_pptx(file_bytes)
        if kind == XLSX:
            return _extract_xlsx(file_bytes)
        if kind == HTML:
            return _extract_html(file_bytes)
        return file_bytes.decode("utf-8", errors="replace")
    except Exception as e:
        raise ExtractionFailure(f"{kind} parse error: {e}") from e


def detect_format(file_bytes: bytes, content_type: Optional[str] = None) -> Optional[str]:
    """Pick a parser: declared content type first, then magic bytes."""
    declared = (content_type or "").split(";")[0].strip().lower()
    if declared in _CONTENT_TYPES:
        return _CONTENT_TYPES[declared]

    head = file_bytes[:1024]
    if head.startswith(b"%PDF"):
        return PDF
    if head.startswith(b"PK\x03\x04"):
        return _sniff_ooxml(file_bytes)

    lowered = head.lstrip().lower()
    if lowered.startswith((b"<!doctype html", b"<html")):
        return HTML
    if b"\x00" not in head:
        return TEXT
    return None


def _sniff_ooxml(file_bytes: bytes) -> Optional[str]:
    try:
        with zipfile.ZipFile(BytesIO(file_bytes)) as zf:
            names = set(zf.namelist())
    except zipfile.BadZipFile:
        return None
    for marker, kind in _OOXML_MARKERS:
        if marker in names:
            return kind
    return None


def _extract_pdf(file_bytes: bytes) -> str:
    pages_text = []
    with pdfplumber.open(BytesIO(file_bytes)) as pdf:
        for page in pdf.pages:
            text = page.extract_text() or ""
            # Also try table extraction
            tables = page.extract_tables()
            if tables:
                for table in tables:
                    for row in table:
                        if row:
                            text += "\n" + " | ".join(
                                str(cell) if cell else "" for cell in row
                            )
            pages_text.append(text)
    return "\n\n".join(pages_text)


def _extract_docx(file_bytes: bytes) -> str:
    doc = docx.Document(BytesIO(file_bytes))
    return "\n\n".join(para.text for para in doc.paragraphs if para.text)


def _extract_pptx(file_bytes: bytes) -> str:
    presentation = Presentation(BytesIO(file_bytes))
    slides = []
    for slide in presentation.slides:
        parts = [
            shape.text_frame.text
            for shape in slide.shapes
            if shape.has_text_frame and shape.text_frame.text
        ]
        if parts:
            slides.append("\n".join(parts))
    return "\n\n".join(slides)


def _extract_xlsx(file_bytes: bytes) -> str:
    workbook = openpyxl.load_workbook(BytesIO(file_bytes), read_only=True, data_only=True)
    try:
        sheets = []
        for sheet in workbook.worksheets:
            rows = []
            for row in sheet.iter_rows(values_only=True):
                cells = [str(cell) for cell in row if cell is not None]
                if cells:
                    rows.append(" | ".join(cells))
            if rows:
                sheets.append("\n".join(rows))
        return "\n\n".join(sheets)
    finally:
        workbook.close()


def _extract_html(file_bytes: bytes) -> str:
    soup = BeautifulSoup(file_bytes, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return soup.get_text(separator="\n", strip=True)


def normalize(text: Optional[str]) -> str:
    """Lowercase, punctuation (except _) → space, collapse whitespace, trim."""
    if text is None:
        return ""
    text = _PUNCTUATION_RE.sub(" ", text.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def summarize(text: Optional[str], max_length: int) -> str:
    """
    Cut text down to about max_length characters.

    Prefers ending on the first period at or after max_length // 2; falls back
    to a hard cut at max_length. Truncated output ends with "...".
    """
    if not text:
        return ""
    if len(text) <= max_length:
        return text

    end = text.find(".", max_length // 2)
    if end == -1 or end > max_length:
        end = max_length
    else:
        end += 1

    return text[:end].strip() + "..."
