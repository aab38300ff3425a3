# =============================================================================
# PDF Parser — Docling Document Intelligence
# =============================================================================
#
# Loads an uploaded PDF and returns its text grouped by page. Each page
# becomes one ParsedPage; the chunker splits pages independently, so every
# chunk is attributable to exactly one page number.
#
# Docling types never leave this module. The chunker and processor only see
# ParsedDocument / ParsedPage, so swapping the PDF library touches one file.
#
# Item handling:
#   TITLE / SECTION_HEADER / TEXT / LIST_ITEM / CAPTION / FOOTNOTE → text
#   TABLE → markdown (via export_to_dataframe → to_markdown)
#   anything else (pictures, page headers/footers) → skipped
# =============================================================================

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path

from docling.datamodel.base_models import InputFormat
from docling.datamodel.pipeline_options import PdfPipelineOptions
from docling.document_converter import DocumentConverter, PdfFormatOption
from docling_core.types.doc.labels import DocItemLabel

from pdfchat.errors import DocumentParseError, NotFoundError

logger = logging.getLogger(__name__)

_TEXT_LABELS = {
    DocItemLabel.TITLE,
    DocItemLabel.SECTION_HEADER,
    DocItemLabel.TEXT,
    DocItemLabel.LIST_ITEM,
    DocItemLabel.CAPTION,
    DocItemLabel.FOOTNOTE,
}


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class ParsedPage:
    """The text of one PDF page, blocks joined by blank lines."""

    page_number: int  # 1-indexed
    text: str


@dataclass
class ParsedDocument:
    """All pages of a parsed PDF, in page order."""

    pages: list[ParsedPage] = field(default_factory=list)
    page_count: int = 0
    filename: str = ""


# ---------------------------------------------------------------------------
# Docling Converter — Lazy Singleton
# ---------------------------------------------------------------------------
# Initialization loads layout models (~2-5 seconds on first use). One
# converter per worker process is reused across jobs.
# ---------------------------------------------------------------------------

_converter: DocumentConverter | None = None


def _get_converter() -> DocumentConverter:
    """Lazily initialize and cache the Docling DocumentConverter."""
    global _converter
    if _converter is None:
        logger.info(
            "Initializing Docling DocumentConverter "
            "(first use, may take a few seconds)..."
        )
        pipeline_options = PdfPipelineOptions()
        pipeline_options.do_table_structure = True
        pipeline_options.do_ocr = False

        _converter = DocumentConverter(
            format_options={
                InputFormat.PDF: PdfFormatOption(
                    pipeline_options=pipeline_options,
                ),
            }
        )
        logger.info("Docling DocumentConverter initialized")
    return _converter


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_pdf(file_path: str) -> ParsedDocument:
    """
    Parse a PDF file into per-page text.

    Args:
        file_path: Path to the PDF file on disk.

    Returns:
        ParsedDocument with one ParsedPage per page that has any text.

    Raises:
        NotFoundError: If the file does not exist.
        DocumentParseError: If Docling fails to convert the document.
    """
    path = Path(file_path)
    if not path.is_file():
        raise NotFoundError(f"PDF file not found: {file_path}")

    logger.info("Parsing PDF: %s", path.name)
    converter = _get_converter()

    try:
        result = converter.convert(str(path))
    except Exception as exc:
        raise DocumentParseError(
            f"Failed to parse '{path.name}': {exc}"
        ) from exc

    blocks_by_page: dict[int, list[str]] = defaultdict(list)

    for item, _level in result.document.iterate_items():
        # item.prov[0] is the primary location; items without provenance
        # are attributed to page 1.
        page_no = 1
        if getattr(item, "prov", None):
            page_no = item.prov[0].page_no or 1

        label = getattr(item, "label", None)

        if label == DocItemLabel.TABLE:
            text = _table_to_markdown(item)
        elif label in _TEXT_LABELS:
            text = getattr(item, "text", "").strip()
        else:
            continue

        if text:
            blocks_by_page[page_no].append(text)

    pages = [
        ParsedPage(page_number=page_no, text="\n\n".join(blocks))
        for page_no, blocks in sorted(blocks_by_page.items())
    ]
    page_count = len(result.document.pages) or (
        pages[-1].page_number if pages else 0
    )

    logger.info(
        "Parsed '%s': %d pages with text, %d pages total",
        path.name, len(pages), page_count,
    )

    return ParsedDocument(pages=pages, page_count=page_count, filename=path.name)


def _table_to_markdown(table_item: object) -> str:
    """
    Convert a Docling TableItem to markdown.

    Falls back to the item's plain text when the dataframe export fails.
    """
    try:
        if hasattr(table_item, "export_to_dataframe"):
            df = table_item.export_to_dataframe()
            return df.to_markdown(index=False)
    except Exception as exc:
        logger.warning("Table export to DataFrame failed: %s", exc)

    text = getattr(table_item, "text", "")
    return text.strip() if text else ""
