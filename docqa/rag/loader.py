"""Document loading for the ingestion pass.

Converts objects from the document source into normalized text units,
dispatching on file extension. Binary formats (PDF, DOCX) are downloaded
to a temporary file first; text-like formats are read directly.
"""

import logging
import zipfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import PurePosixPath
from typing import List

from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
from docx.table import Table
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from docqa.errors import UnsupportedDocumentError
from docqa.models import ChunkMetadata, DocumentObject, NormalizedUnit

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = {".txt", ".md", ".html"}
BINARY_EXTENSIONS = {".pdf", ".docx"}


def extract_text_per_page(path: str) -> List[str]:
    reader = PdfReader(path)
    pages: List[str] = []
    for page in reader.pages:
        text = page.extract_text() or ""
        normalized = " ".join(text.split())
        pages.append(normalized)
    return pages


def _is_heading(paragraph) -> bool:
    style = paragraph.style
    name = (style.name if style is not None else "") or ""
    return name.startswith("Heading") or name == "Title"


def extract_docx_sections(path: str) -> List[str]:
    """Split a Word document into heading-delimited sections.

    A paragraph styled as a heading (or title) starts a new section and
    becomes its first line. Tables are rendered as tab-separated rows in
    the section they appear in. A document without headings yields a
    single section.

    Args:
        path: Local path of the .docx file.

    Returns:
        Non-empty section texts in document order.
    """
    document = DocxDocument(path)
    sections: List[List[str]] = [[]]
    for block in document.iter_inner_content():
        if isinstance(block, Table):
            for row in block.rows:
                cells = [cell.text.strip() for cell in row.cells]
                if any(cells):
                    sections[-1].append("\t".join(cells))
            continue
        text = block.text.strip()
        if not text:
            continue
        if _is_heading(block) and sections[-1]:
            sections.append([])
        sections[-1].append(text)
    return [s for s in ("\n".join(lines).strip() for lines in sections) if s]


def _units(texts: List[str], obj: DocumentObject, paged: bool) -> List[NormalizedUnit]:
    units = []
    for number, text in enumerate(texts, start=1):
        if not text.strip():
            continue
        units.append(
            NormalizedUnit(
                text=text,
                metadata=ChunkMetadata(
                    source=obj.key,
                    last_modified=obj.last_modified,
                    page_number=number if paged else None,
                ),
            )
        )
    return units


def load_document(source, obj: DocumentObject) -> List[NormalizedUnit]:
    """Load one document into normalized units.

    Args:
        source: Document source providing ``get_object_content`` and
            ``materialize``.
        obj: Listed document to load.

    Returns:
        Zero or more units whose metadata source is the object key.

    Raises:
        UnsupportedDocumentError: If the extension is unknown or parsing fails.
    """
    ext = PurePosixPath(obj.key).suffix.lower()
    if ext in TEXT_EXTENSIONS:
        return _units([source.get_object_content(obj.key)], obj, paged=False)
    if ext not in BINARY_EXTENSIONS:
        raise UnsupportedDocumentError(obj.key, f"unsupported extension {ext!r}")

    with source.materialize(obj.key) as path:
        try:
            if ext == ".pdf":
                texts = extract_text_per_page(path)
            else:
                texts = extract_docx_sections(path)
        except (
            PdfReadError,
            PackageNotFoundError,
            zipfile.BadZipFile,
            ValueError,
            KeyError,
            OSError,
        ) as e:
            raise UnsupportedDocumentError(obj.key, str(e)) from e
    return _units(texts, obj, paged=True)


def load_documents(
    source, objects: List[DocumentObject], max_workers: int = 4
) -> List[NormalizedUnit]:
    """Load many documents, skipping the ones that fail.

    Documents are fetched and parsed concurrently; the result keeps the
    order of ``objects``. A failure on one document is logged and does not
    affect the others.
    """

    def _safe_load(obj: DocumentObject) -> List[NormalizedUnit]:
        try:
            units = load_document(source, obj)
        except Exception as e:
            logger.warning(f"Skipping document {obj.key}: {e}")
            return []
        logger.debug(f"Loaded {obj.key} into {len(units)} unit(s)")
        return units

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        results = list(pool.map(_safe_load, objects))

    units = [unit for group in results for unit in group]
    logger.info(f"Loaded {len(units)} unit(s) from {len(objects)} document(s)")
    return units
