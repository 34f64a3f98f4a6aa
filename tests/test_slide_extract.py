"""Tests for presentation text extraction."""

import zipfile
from io import BytesIO
from xml.etree import ElementTree

import pytest

from docindex.services.slide_extract import (
    SLIDE_SEPARATOR,
    NodeKind,
    SlideNode,
    collect_text_runs,
    extract_pptx,
    parse_slide,
    slide_number,
)
from helpers import make_pptx, slide_xml


def test_slides_ordered_numerically():
    content = make_pptx({10: ["ten"], 2: ["two"], 1: ["one"]})
    assert extract_pptx(content) == SLIDE_SEPARATOR.join(["one", "two", "ten"])


def test_runs_joined_by_space():
    content = make_pptx({1: ["Hello", "world"]})
    assert extract_pptx(content) == "Hello world"


def test_empty_slides_dropped():
    content = make_pptx({1: ["first"], 2: [], 3: ["third"]})
    assert extract_pptx(content) == "first" + SLIDE_SEPARATOR + "third"


def test_non_slide_entries_ignored():
    content = make_pptx(
        {1: ["body"]},
        extra={
            "ppt/slideLayouts/slideLayout1.xml": slide_xml("layout text"),
            "ppt/slides/_rels/slide1.xml.rels": b"<Relationships/>",
        },
    )
    assert extract_pptx(content) == "body"


def test_nested_runs_in_document_order():
    tree = parse_slide(slide_xml("a", "b", "c", nested=True))
    assert collect_text_runs(tree) == ["a", "b", "c"]


def test_deeply_nested_tree_does_not_recurse():
    depth = 2000
    a = "http://schemas.openxmlformats.org/drawingml/2006/main"
    xml = f'<a:g xmlns:a="{a}">' * depth + "<a:t>deep</a:t>" + "</a:g>" * depth
    assert collect_text_runs(parse_slide(xml.encode())) == ["deep"]


def test_collect_text_runs_on_handbuilt_tree():
    tree = SlideNode(
        NodeKind.ELEMENT,
        children=[
            SlideNode(NodeKind.TEXT_RUN, "x"),
            SlideNode(NodeKind.ELEMENT, children=[SlideNode(NodeKind.TEXT_RUN, "")]),
            SlideNode(NodeKind.TEXT_RUN, "y"),
        ],
    )
    assert collect_text_runs(tree) == ["x", "y"]


def test_slide_number():
    assert slide_number("ppt/slides/slide12.xml") == 12
    assert slide_number("ppt/slides/_rels/slide12.xml.rels") is None
    assert slide_number("ppt/slideLayouts/slideLayout1.xml") is None


def test_malformed_slide_xml_raises():
    buf = BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        archive.writestr("ppt/slides/slide1.xml", b"<p:sld><unclosed>")
    with pytest.raises(ElementTree.ParseError):
        extract_pptx(buf.getvalue())


def test_not_a_zip_raises():
    with pytest.raises(zipfile.BadZipFile):
        extract_pptx(b"plain bytes")
