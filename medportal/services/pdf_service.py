"""PDF export for stored image analyses."""
from __future__ import annotations

import base64
import io
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

try:
    from reportlab.lib.pagesizes import letter as rl_letter
    from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Image as RLImage
    from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
    from reportlab.lib.enums import TA_LEFT, TA_JUSTIFY
except Exception:
    SimpleDocTemplate = None
    rl_letter = None


class PDFUnavailableError(RuntimeError):
    pass


def esc(s: str) -> str:
    return (s or "").replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def report_filename(analysis: Dict[str, Any]) -> str:
    stamp = (analysis.get("created_at") or "")[:10].replace("-", "") or datetime.now(timezone.utc).strftime("%Y%m%d")
    owner = re.sub(r"[^a-zA-Z0-9]+", "_", (analysis.get("owner_email") or "patient").split("@", 1)[0]).strip("_")
    return f"MedPortal_{owner or 'patient'}_{stamp}_analysis_{analysis.get('id', '')}.pdf"


def _image_flowable(image_b64: str, max_width: float, max_height: float):
    raw = base64.b64decode(image_b64)
    img = RLImage(io.BytesIO(raw))
    iw = float(img.imageWidth)
    ih = float(img.imageHeight)
    if iw > 0 and ih > 0:
        scale = min(max_width / iw, max_height / ih, 1.0)
        img.drawWidth = iw * scale
        img.drawHeight = ih * scale
    return img


def export_analysis_pdf(analysis: Dict[str, Any], include_image: bool = True) -> bytes:
    """Render an analysis (Analysis.to_dict(include_image=True)) as a one-page report."""
    if SimpleDocTemplate is None:
        raise PDFUnavailableError("PDF generator not available")

    styles = getSampleStyleSheet()
    base = ParagraphStyle(
        "base", parent=styles["Normal"], fontName="Helvetica",
        fontSize=10, leading=13, spaceAfter=2, alignment=TA_JUSTIFY
    )
    head = ParagraphStyle(
        "head", parent=base, fontName="Helvetica-Bold",
        spaceBefore=8, spaceAfter=3, alignment=TA_LEFT
    )
    title = ParagraphStyle(
        "title", parent=head, fontSize=15, leading=18, spaceAfter=8
    )

    story: List[Any] = [Paragraph("Medical Image Analysis Report", title)]
    story.append(Paragraph(f"<b>Patient:</b> {esc(analysis.get('owner_email') or '')}", base))
    if analysis.get("created_at"):
        story.append(Paragraph(f"<b>Date:</b> {esc(analysis['created_at'][:19].replace('T', ' '))} UTC", base))

    image_data: Optional[str] = analysis.get("image_data")
    if include_image and image_data:
        try:
            story.append(Spacer(1, 6))
            story.append(_image_flowable(image_data, rl_letter[0] * 0.5, 220))
        except Exception:
            # Undecodable image, text-only report
            story.append(Paragraph("<i>Image preview unavailable.</i>", base))

    story.append(Paragraph("Diagnosis", head))
    story.append(Paragraph(esc(analysis.get("diagnosis") or "N/A"), base))

    sections = (
        ("Observations", analysis.get("observations") or []),
        ("Potential Conditions", analysis.get("potential_conditions") or []),
        ("Areas of Concern", analysis.get("areas_of_concern") or []),
    )
    for label, items in sections:
        story.append(Paragraph(label, head))
        if not items:
            story.append(Paragraph("None noted.", base))
        for item in items:
            story.append(Paragraph(f"&bull; {esc(str(item))}", base))

    story.append(Spacer(1, 12))
    story.append(Paragraph(
        "<i>This report was generated with AI assistance and is not a substitute for "
        "evaluation by a qualified clinician.</i>", base))

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=rl_letter,
        leftMargin=50,
        rightMargin=50,
        topMargin=45,
        bottomMargin=45,
        title=report_filename(analysis),
    )
    doc.build(story)
    return buf.getvalue()
