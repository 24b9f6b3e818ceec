# ragchat/rag/ingest.py
from __future__ import annotations

import io
from pathlib import Path
from typing import Iterator, Tuple

from ragchat.rag.errors import ExtractionError

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_EXT_MIME = {
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".pdf": PDF_MIME,
    ".docx": DOCX_MIME,
}


def _clean_pdf_text(text: str) -> str:
    return (
        text.replace("\u00A0", " ")
            .replace("\u202F", " ")
            .replace("\x00", "")
    ).strip()


def _pdf_text(data: bytes) -> str:
    from pypdf import PdfReader

    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [_clean_pdf_text(page.extract_text() or "") for page in reader.pages]
    except Exception as e:  # pypdf raises several unrelated types on malformed input
        raise ExtractionError(f"Unreadable PDF: {e}") from e
    return "\n\n".join(p for p in pages if p)


def _docx_text(data: bytes) -> str:
    from docx import Document as DocxDocument

    try:
        doc = DocxDocument(io.BytesIO(data))
    except Exception as e:  # python-docx raises zipfile/lxml errors of several kinds
        raise ExtractionError(f"Unreadable DOCX: {e}") from e
    paragraphs = [p.text.strip() for p in doc.paragraphs if p.text.strip()]
    return "\n\n".join(paragraphs)


def extract_text(filename: str, data: bytes, mime_type: str) -> Tuple[str, str]:
    """Return ``(file_type, text)`` for an uploaded file."""
    mime = (mime_type or "").split(";")[0].strip().lower()

    if mime == PDF_MIME:
        return "pdf", _pdf_text(data)
    if mime == DOCX_MIME:
        return "docx", _docx_text(data)
    if mime.startswith("text/"):
        return "text", data.decode("utf-8", errors="ignore")

    raise ExtractionError(f"Unsupported file type: {mime_type or 'unknown'} ({filename})")


def guess_mime(path: Path) -> str | None:
    return _EXT_MIME.get(path.suffix.lower())


def iter_documents(root: Path) -> Iterator[Tuple[Path, str, bytes]]:
    """Yield ``(path, mime_type, raw_bytes)`` for supported files under ``root``."""
    for p in sorted(root.rglob("*")):
        if not p.is_file():
            continue

        mime = guess_mime(p)
        if mime is None:
            continue
        yield p, mime, p.read_bytes()
