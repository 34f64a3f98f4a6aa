"""Presentation (.pptx) text extraction using Python stdlib.

A .pptx file is a zip archive; each slide lives in ``ppt/slides/slideN.xml``
and its visible text sits in DrawingML ``<a:t>`` run nodes at arbitrary
depth.
"""

from __future__ import annotations

import re
import zipfile
from dataclasses import dataclass, field
from enum import StrEnum
from io import BytesIO
from xml.etree import ElementTree

_SLIDE_ENTRY = re.compile(r"^ppt/slides/slide(\d+)\.xml$")
_DRAWINGML_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"
_TEXT_RUN_TAG = f"{{{_DRAWINGML_NS}}}t"

SLIDE_SEPARATOR = "\n\n---\n\n"


class NodeKind(StrEnum):
    ELEMENT = "element"
    TEXT_RUN = "text_run"


@dataclass
class SlideNode:
    """One node of a parsed slide. Only TEXT_RUN nodes carry text."""
    kind: NodeKind
    text: str = ""
    children: list[SlideNode] = field(default_factory=list)


def parse_slide(xml: bytes) -> SlideNode:
    """Parse a slide fragment into a SlideNode tree.

    Raises:
        ElementTree.ParseError: If the fragment is not well-formed XML.
    """
    root = ElementTree.fromstring(xml)
    return _convert(root)


def _convert(element: ElementTree.Element) -> SlideNode:
    # Iterative conversion keeps deeply nested group shapes off the call stack
    top = SlideNode(kind=NodeKind.ELEMENT)
    stack: list[tuple[ElementTree.Element, SlideNode]] = [(element, top)]
    while stack:
        elem, node = stack.pop()
        if elem.tag == _TEXT_RUN_TAG:
            node.kind = NodeKind.TEXT_RUN
            node.text = elem.text or ""
            continue
        for child in elem:
            child_node = SlideNode(kind=NodeKind.ELEMENT)
            node.children.append(child_node)
            stack.append((child, child_node))
    return top


def collect_text_runs(node: SlideNode) -> list[str]:
    """Every non-empty text run under ``node``, in document order."""
    runs: list[str] = []
    stack = [node]
    while stack:
        current = stack.pop()
        if current.kind == NodeKind.TEXT_RUN:
            if current.text:
                runs.append(current.text)
        elif current.kind == NodeKind.ELEMENT:
            stack.extend(reversed(current.children))
    return runs


def slide_number(entry_name: str) -> int | None:
    """Numeric slide index of an archive entry, or None if it isn't a slide."""
    match = _SLIDE_ENTRY.match(entry_name)
    return int(match.group(1)) if match else None


def extract_pptx(content: bytes) -> str:
    """Concatenate slide text in slide order.

    Runs within a slide are joined by single spaces; slides by
    SLIDE_SEPARATOR. Slides without text are dropped.
    """
    with zipfile.ZipFile(BytesIO(content)) as archive:
        slides: list[tuple[int, str]] = []
        for name in archive.namelist():
            number = slide_number(name)
            if number is not None:
                slides.append((number, name))

        # slide10 must follow slide2
        slides.sort(key=lambda item: item[0])

        blocks: list[str] = []
        for _, name in slides:
            tree = parse_slide(archive.read(name))
            text = " ".join(collect_text_runs(tree))
            if text.strip():
                blocks.append(text)

    return SLIDE_SEPARATOR.join(blocks)
