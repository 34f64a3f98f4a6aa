"""Tests for docindex.services.extract — text extraction from local files."""

import pytest

from docindex.core.exceptions import ExtractionError
from docindex.services.extract import DocumentFormat, classify, derive_title, extract_text
from helpers import make_pptx


def test_extract_txt():
    text = extract_text("readme.txt", b"Hello, world!")
    assert text == "Hello, world!"


def test_extract_md():
    text = extract_text("notes.md", "# Heading\n\nParagraph".encode())
    assert text == "# Heading\n\nParagraph"


def test_unknown_extension_read_as_text():
    assert classify("data.csv") == DocumentFormat.TEXT
    text = extract_text("data.csv", b"name,age\nAlice,30")
    assert "Alice" in text


def test_invalid_utf8_raises_extraction_error():
    with pytest.raises(ExtractionError) as excinfo:
        extract_text("broken.txt", b"\xff\xfe\xfa bad bytes")
    assert isinstance(excinfo.value.__cause__, UnicodeDecodeError)
    assert excinfo.value.path == "broken.txt"


def test_extract_pdf():
    """Create a minimal valid PDF and extract text from it."""
    from io import BytesIO

    from pypdf import PdfWriter
    from pypdf.generic import DecodedStreamObject, DictionaryObject, NameObject

    writer = PdfWriter()
    page = writer.add_blank_page(width=72, height=72)

    font_dict = DictionaryObject()
    font_dict.update(
        {
            NameObject("/Type"): NameObject("/Font"),
            NameObject("/Subtype"): NameObject("/Type1"),
            NameObject("/BaseFont"): NameObject("/Helvetica"),
        }
    )
    resources = DictionaryObject()
    font_resources = DictionaryObject()
    font_resources[NameObject("/F1")] = font_dict
    resources[NameObject("/Font")] = font_resources

    stream = DecodedStreamObject()
    stream.set_data(b"BT /F1 12 Tf 10 50 Td (Hello PDF) Tj ET")

    page[NameObject("/Resources")] = resources
    page[NameObject("/Contents")] = stream

    buf = BytesIO()
    writer.write(buf)

    text = extract_text("doc.pdf", buf.getvalue())
    assert "Hello PDF" in text


def test_corrupt_pdf_raises_extraction_error():
    with pytest.raises(ExtractionError):
        extract_text("broken.pdf", b"this is not a pdf")


def test_extract_docx_paragraphs_and_tables():
    from io import BytesIO

    from docx import Document

    doc = Document()
    doc.add_paragraph("Hello DOCX")
    doc.add_paragraph("Second paragraph")
    table = doc.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "cell one"
    table.rows[0].cells[1].text = "cell two"

    buf = BytesIO()
    doc.save(buf)

    text = extract_text("report.docx", buf.getvalue())
    assert "Hello DOCX" in text
    assert "Second paragraph" in text
    assert "cell one\tcell two" in text


def test_extract_pptx_dispatch():
    content = make_pptx({1: ["Quarterly review"], 2: ["Revenue", "up"]})
    text = extract_text("deck.pptx", content)
    assert text == "Quarterly review\n\n---\n\nRevenue up"


# ── Titles ───────────────────────────────────────────────────

def test_markdown_title_from_first_heading():
    text = "intro line\n\n## Sub\n# Real Title  \nbody"
    assert derive_title("/docs/notes.md", text) == "Real Title"


def test_markdown_without_heading_uses_stem():
    assert derive_title("/docs/notes.md", "no heading here\n#nospace") == "notes"


def test_pptx_title_from_first_line():
    assert derive_title("deck.pptx", "\n  Opening slide \nmore") == "Opening slide"


def test_pptx_long_first_line_falls_back():
    assert derive_title("deck.pptx", "x" * 150) == "deck"


def test_other_formats_use_stem():
    assert derive_title("/a/b/report.final.txt", "# Not a title") == "report.final"
