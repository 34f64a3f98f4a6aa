"""Builders for binary fixture files."""

import zipfile
from io import BytesIO

A_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"
P_NS = "http://schemas.openxmlformats.org/presentationml/2006/main"


def slide_xml(*runs: str, nested: bool = False) -> bytes:
    """A slide whose text runs sit inside shape / paragraph wrappers."""
    body = "".join(f"<a:r><a:t>{run}</a:t></a:r>" for run in runs)
    if nested:
        body = f"<p:grpSp><p:sp><p:txBody><a:p>{body}</a:p></p:txBody></p:sp></p:grpSp>"
    else:
        body = f"<p:sp><p:txBody><a:p>{body}</a:p></p:txBody></p:sp>"
    return (
        f'<p:sld xmlns:p="{P_NS}" xmlns:a="{A_NS}">'
        f"<p:cSld><p:spTree>{body}</p:spTree></p:cSld></p:sld>"
    ).encode()


def make_pptx(slides: dict[int, list[str]], extra: dict[str, bytes] | None = None) -> bytes:
    """Zip archive laid out like a presentation, slide number -> text runs."""
    buf = BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        archive.writestr("[Content_Types].xml", "<Types/>")
        for number, runs in slides.items():
            archive.writestr(f"ppt/slides/slide{number}.xml", slide_xml(*runs))
        for name, data in (extra or {}).items():
            archive.writestr(name, data)
    return buf.getvalue()
