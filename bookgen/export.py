"""
export.py – write a BookDocument to TXT, DOCX or PDF

    path = export(document, "pdf", Path("exports"))

*dest* may be a directory (the file name is slugged from the title) or
a full file path.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from pathlib import Path
from typing import List
from xml.sax.saxutils import escape

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch, mm
from reportlab.platypus import PageBreak, Paragraph, SimpleDocTemplate, Spacer

from bookgen.errors import ValidationError
from bookgen.models import BookDocument

logger = logging.getLogger(__name__)

FORMATS = ("txt", "docx", "pdf")
GENERATOR = "AI Book Generator"
RULE = "=" * 50


def slugify(title: str) -> str:
    """'The Lighthouse: Part 1' -> 'the_lighthouse__part_1'"""
    return re.sub(r"[^a-z0-9]", "_", title, flags=re.I).lower() or "book"


def _paragraphs(text: str) -> List[str]:
    return [p.strip() for p in re.split(r"\n\s*\n", text) if p.strip()]


def _today() -> str:
    return dt.date.today().isoformat()


# ─── TXT ─────────────────────────────────────────────────────────────────
def render_txt(doc: BookDocument) -> str:
    parts = [
        f"Title: {doc.title}",
        f"Date: {_today()}",
        f"Generated by: {GENERATOR}",
        "",
        RULE,
        "",
        "SYNOPSIS",
        "",
        doc.synopsis,
        "",
        RULE,
        "",
        "CHAPTERS",
        "",
    ]
    for i, ch in enumerate(doc.chapters, 1):
        parts += [f"CHAPTER {i}: {ch.title}", "", ch.content, "", "-" * 50, ""]
    return "\n".join(parts)


def _write_txt(doc: BookDocument, path: Path) -> None:
    path.write_text(render_txt(doc), encoding="utf-8")


# ─── DOCX ────────────────────────────────────────────────────────────────
def _write_docx(doc: BookDocument, path: Path) -> None:
    d = Document()

    p = d.add_paragraph()
    p.alignment = WD_ALIGN_PARAGRAPH.CENTER
    run = p.add_run(doc.title)
    run.bold = True
    run.font.size = Pt(26)

    p2 = d.add_paragraph()
    p2.alignment = WD_ALIGN_PARAGRAPH.CENTER
    p2.add_run(f"{GENERATOR} · {_today()}").italic = True
    d.add_page_break()

    d.add_heading("Synopsis", level=1)
    for block in _paragraphs(doc.synopsis):
        d.add_paragraph(block)
    d.add_page_break()

    for i, ch in enumerate(doc.chapters, 1):
        d.add_heading(f"Chapter {i}: {ch.title}", level=1)
        for block in _paragraphs(ch.content):
            d.add_paragraph(block)
        if i < len(doc.chapters):
            d.add_page_break()

    d.save(str(path))


# ─── PDF ─────────────────────────────────────────────────────────────────
def _write_pdf(doc: BookDocument, path: Path) -> None:
    pdf = SimpleDocTemplate(
        str(path),
        pagesize=A4,
        topMargin=1 * inch,
        bottomMargin=1 * inch,
        leftMargin=1 * inch,
        rightMargin=1 * inch,
        title=doc.title,
    )
    styles = getSampleStyleSheet()
    h1 = ParagraphStyle("BookH1", parent=styles["Heading1"], spaceAfter=12)
    body = ParagraphStyle("BookBody", parent=styles["BodyText"], leading=14, spaceAfter=8)

    story = [
        Spacer(1, 2.0 * inch),
        Paragraph(escape(doc.title), styles["Title"]),
        Spacer(1, 0.3 * inch),
        Paragraph(escape(f"{GENERATOR} · {_today()}"), styles["Italic"]),
        PageBreak(),
        Paragraph("Synopsis", h1),
    ]
    story += [Paragraph(escape(b), body) for b in _paragraphs(doc.synopsis)]
    story.append(PageBreak())

    for i, ch in enumerate(doc.chapters, 1):
        story.append(Paragraph(escape(f"Chapter {i}: {ch.title}"), h1))
        story.append(Spacer(1, 0.2 * inch))
        story += [Paragraph(escape(b).replace("\n", "<br/>"), body) for b in _paragraphs(ch.content)]
        if i < len(doc.chapters):
            story.append(PageBreak())

    def page_number(canvas, _doc):
        canvas.saveState()
        canvas.setFont("Helvetica", 9)
        canvas.drawRightString(200 * mm, 15 * mm, str(canvas.getPageNumber()))
        canvas.restoreState()

    pdf.build(story, onLaterPages=page_number)


_WRITERS = {"txt": _write_txt, "docx": _write_docx, "pdf": _write_pdf}


def export(doc: BookDocument, fmt: str, dest: Path) -> Path:
    fmt = fmt.lower().lstrip(".")
    if fmt not in _WRITERS:
        raise ValidationError(
            f"Unsupported export format {fmt!r}",
            issues=[f"Format must be one of: {', '.join(FORMATS)}"],
        )
    dest = Path(dest)
    if dest.suffix.lower() == f".{fmt}":
        path = dest
    else:
        path = dest / f"{slugify(doc.title)}.{fmt}"
    path.parent.mkdir(parents=True, exist_ok=True)
    _WRITERS[fmt](doc, path)
    logger.info("Exported %r → %s", doc.title, path)
    return path
