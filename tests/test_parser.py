# =============================================================================
# Unit Tests — PDF Parser
# =============================================================================
#
# The Docling converter is replaced by a mock returning hand-built items,
# so page grouping is tested without loading layout models.
# =============================================================================

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from docling_core.types.doc.labels import DocItemLabel

from pdfchat.errors import DocumentParseError, NotFoundError
from pdfchat.services.parser import parse_pdf


def _item(label, text="", page=None, **extra):
    prov = [SimpleNamespace(page_no=page)] if page is not None else []
    return SimpleNamespace(label=label, text=text, prov=prov, **extra)


def _converter(items, page_count):
    result = MagicMock()
    result.document.iterate_items.return_value = [(item, 0) for item in items]
    result.document.pages = {i: object() for i in range(1, page_count + 1)}
    converter = MagicMock()
    converter.convert.return_value = result
    return converter


@pytest.fixture
def pdf_path(tmp_path):
    path = tmp_path / "doc.pdf"
    path.write_bytes(b"%PDF-1.4\n")
    return path


class TestParsePdf:
    def test_missing_file_raises_not_found(self, tmp_path):
        with pytest.raises(NotFoundError):
            parse_pdf(str(tmp_path / "missing.pdf"))

    def test_blocks_are_grouped_by_page(self, pdf_path):
        items = [
            _item(DocItemLabel.TITLE, "Annual Report", page=1),
            _item(DocItemLabel.TEXT, "Intro paragraph.", page=1),
            _item(DocItemLabel.TEXT, "Second page text.", page=2),
            _item(DocItemLabel.LIST_ITEM, "A bullet.", page=3),
        ]
        with patch(
            "pdfchat.services.parser._get_converter",
            return_value=_converter(items, page_count=3),
        ):
            doc = parse_pdf(str(pdf_path))

        assert doc.page_count == 3
        assert doc.filename == "doc.pdf"
        assert [(p.page_number, p.text) for p in doc.pages] == [
            (1, "Annual Report\n\nIntro paragraph."),
            (2, "Second page text."),
            (3, "A bullet."),
        ]

    def test_items_without_provenance_go_to_page_one(self, pdf_path):
        items = [_item(DocItemLabel.TEXT, "Floating text.")]
        with patch(
            "pdfchat.services.parser._get_converter",
            return_value=_converter(items, page_count=1),
        ):
            doc = parse_pdf(str(pdf_path))

        assert doc.pages[0].page_number == 1

    def test_pictures_and_blank_text_are_skipped(self, pdf_path):
        items = [
            _item(DocItemLabel.PICTURE, "", page=1),
            _item(DocItemLabel.TEXT, "   ", page=1),
            _item(DocItemLabel.TEXT, "Kept.", page=2),
        ]
        with patch(
            "pdfchat.services.parser._get_converter",
            return_value=_converter(items, page_count=2),
        ):
            doc = parse_pdf(str(pdf_path))

        assert [p.page_number for p in doc.pages] == [2]
        assert doc.page_count == 2

    def test_tables_are_rendered_from_plain_text_fallback(self, pdf_path):
        table = _item(DocItemLabel.TABLE, "Q1 | 10", page=1)
        table.export_to_dataframe = MagicMock(side_effect=ValueError("no grid"))
        with patch(
            "pdfchat.services.parser._get_converter",
            return_value=_converter([table], page_count=1),
        ):
            doc = parse_pdf(str(pdf_path))

        assert doc.pages[0].text == "Q1 | 10"

    def test_conversion_failure_raises_parse_error(self, pdf_path):
        converter = MagicMock()
        converter.convert.side_effect = RuntimeError("corrupt xref")
        with patch("pdfchat.services.parser._get_converter", return_value=converter):
            with pytest.raises(DocumentParseError):
                parse_pdf(str(pdf_path))
