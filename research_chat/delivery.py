"""
Report rendering and delivery.

``PDFReportRenderer`` turns a synthesized report into a PDF with reportlab, and
``SendGridEmailDelivery`` emails it (plain text body plus the PDF attachment)
through the SendGrid v3 HTTP API.
"""

import asyncio
import base64
import logging
import re
from io import BytesIO
from typing import List, Optional
from xml.sax.saxutils import escape

import httpx
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import (
    SimpleDocTemplate,
    Paragraph,
    Spacer,
    PageBreak,
    Preformatted,
    ListFlowable,
    ListItem,
)
from reportlab.platypus.flowables import HRFlowable

from research_chat.config import DeliveryConfig, config
from research_chat.exceptions import DeliveryFailure
from research_chat.models import DeliveryReceipt, SynthesizedReport

logger = logging.getLogger(__name__)

_HEADING = re.compile(r"^(#{1,6})[ \t]+(.*)$")
_BULLET = re.compile(r"^[ \t]*[-+*][ \t]+(.*)$")
_NUMBERED = re.compile(r"^[ \t]*\d+[.)][ \t]+(.*)$")
_RULE = re.compile(r"^[ \t]*(?:-{3,}|_{3,}|\*{3,})[ \t]*$")
_URL = re.compile(r"https?://[^\s)<>\"]+")


def _inline(text: str) -> str:
    """Escape text for reportlab markup and make bare URLs clickable."""
    escaped = escape(text)
    return _URL.sub(lambda m: f'<link href="{m.group(0)}" color="blue">{m.group(0)}</link>', escaped)


class PDFReportRenderer:
    """Render a SynthesizedReport to PDF bytes."""

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        """Setup custom PDF styles"""
        self.styles.add(
            ParagraphStyle(
                name="ReportTitle",
                parent=self.styles["Title"],
                fontSize=22,
                textColor=colors.HexColor("#1a1a1a"),
                spaceAfter=20,
                alignment=TA_CENTER,
            )
        )
        self.styles.add(
            ParagraphStyle(
                name="TopicLine",
                parent=self.styles["Normal"],
                fontSize=12,
                textColor=colors.HexColor("#495057"),
                alignment=TA_CENTER,
                spaceAfter=24,
            )
        )
        self.styles.add(
            ParagraphStyle(
                name="SectionHeading",
                parent=self.styles["Heading2"],
                fontSize=14,
                textColor=colors.HexColor("#333333"),
                spaceAfter=10,
            )
        )
        self.styles.add(
            ParagraphStyle(
                name="ReportCode",
                parent=self.styles["Code"],
                fontSize=8,
                leftIndent=12,
                backColor=colors.HexColor("#f5f5f5"),
            )
        )

    def _heading_style(self, depth: int) -> ParagraphStyle:
        return self.styles[{1: "Heading1", 2: "Heading2"}.get(depth, "Heading3")]

    def _markdown_flowables(self, text: str) -> List:
        """Convert the normalized markdown subset into flowables."""
        elements: List = []
        paragraph: List[str] = []
        bullets: List[str] = []
        numbered = False
        code: Optional[List[str]] = None

        def flush_paragraph():
            if paragraph:
                elements.append(Paragraph(_inline(" ".join(paragraph)), self.styles["BodyText"]))
                paragraph.clear()

        def flush_list():
            nonlocal numbered
            if bullets:
                items = [ListItem(Paragraph(_inline(b), self.styles["Normal"])) for b in bullets]
                elements.append(ListFlowable(items, bulletType="1" if numbered else "bullet"))
                bullets.clear()
            numbered = False

        for line in text.split("\n"):
            if code is not None:
                if line.strip().startswith("```"):
                    elements.append(Preformatted("\n".join(code), self.styles["ReportCode"]))
                    code = None
                else:
                    code.append(line)
                continue

            if line.strip().startswith("```"):
                flush_paragraph()
                flush_list()
                code = []
                continue

            if not line.strip():
                flush_paragraph()
                flush_list()
                continue

            if _RULE.match(line):
                flush_paragraph()
                flush_list()
                elements.append(HRFlowable(width="100%", thickness=0.5, color=colors.grey, spaceBefore=6, spaceAfter=6))
                continue

            heading = _HEADING.match(line)
            if heading:
                flush_paragraph()
                flush_list()
                elements.append(Paragraph(_inline(heading.group(2).strip()), self._heading_style(len(heading.group(1)))))
                continue

            bullet = _BULLET.match(line)
            number = _NUMBERED.match(line)
            if bullet or number:
                flush_paragraph()
                if bullets and numbered != bool(number):
                    flush_list()
                numbered = bool(number)
                bullets.append((bullet or number).group(1))
                continue

            flush_list()
            paragraph.append(line.strip())

        if code is not None:
            elements.append(Preformatted("\n".join(code), self.styles["ReportCode"]))
        flush_paragraph()
        flush_list()
        return elements

    def render(self, report: SynthesizedReport) -> bytes:
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=60,
            leftMargin=60,
            topMargin=60,
            bottomMargin=60,
            title=f"Research Report: {report.topic}",
        )

        story = []
        story.append(Paragraph("Combined Research Results", self.styles["ReportTitle"]))
        story.append(Paragraph(_inline(f"Research Topic: {report.topic}"), self.styles["TopicLine"]))

        story.append(Paragraph("Executive Summary", self.styles["SectionHeading"]))
        for block in report.summary.split("\n\n"):
            if block.strip():
                story.append(Paragraph(_inline(block.strip()), self.styles["BodyText"]))
        story.append(Spacer(1, 12))

        for section in report.sections:
            story.append(PageBreak())
            story.extend(self._markdown_flowables(section.content))

        story.append(Spacer(1, 20))
        story.append(Paragraph(
            f"Generated on {report.created_at.strftime('%Y-%m-%d %H:%M UTC')}",
            self.styles["Italic"],
        ))

        doc.build(story)
        pdf_data = buffer.getvalue()
        buffer.close()
        return pdf_data


class DeliveryAdapter:
    """Boundary for delivering a synthesized report to a destination."""

    async def deliver(self, report: SynthesizedReport, destination: str) -> DeliveryReceipt:
        raise NotImplementedError


def plain_text_body(report: SynthesizedReport) -> str:
    parts = [
        "Combined Research Results",
        f"Research Topic: {report.topic}",
        f"Executive Summary:\n{report.summary}",
    ]
    parts.extend(section.content for section in report.sections)
    parts.append("The complete report is attached as a PDF with clickable links.")
    return "\n\n".join(parts)


def report_filename(report: SynthesizedReport) -> str:
    slug = re.sub(r"[^A-Za-z0-9]+", "_", report.topic).strip("_")[:50] or "research"
    return f"research_report_{slug}_{report.created_at.strftime('%Y%m%d_%H%M%S')}.pdf"


class SendGridEmailDelivery(DeliveryAdapter):
    """Email delivery through the SendGrid v3 mail/send endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        from_email: Optional[str],
        renderer: Optional[PDFReportRenderer] = None,
        endpoint: str = "https://api.sendgrid.com/v3/mail/send",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.from_email = from_email
        self.renderer = renderer or PDFReportRenderer()
        self.endpoint = endpoint
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(cls, delivery_config: Optional[DeliveryConfig] = None) -> "SendGridEmailDelivery":
        delivery_config = delivery_config or config.delivery
        return cls(
            api_key=delivery_config.sendgrid_api_key,
            from_email=delivery_config.from_email,
            endpoint=delivery_config.endpoint,
            timeout=delivery_config.timeout,
        )

    def build_payload(self, report: SynthesizedReport, destination: str, pdf_data: bytes) -> dict:
        return {
            "personalizations": [{"to": [{"email": destination}]}],
            "from": {"email": self.from_email},
            "subject": f"Combined Research Results: {report.topic}",
            "content": [{"type": "text/plain", "value": plain_text_body(report)}],
            "attachments": [
                {
                    "content": base64.b64encode(pdf_data).decode("ascii"),
                    "filename": report_filename(report),
                    "type": "application/pdf",
                    "disposition": "attachment",
                }
            ],
        }

    async def _post(self, payload: dict) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        if self._client is not None:
            return await self._client.post(self.endpoint, json=payload, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.endpoint, json=payload, headers=headers)

    async def deliver(self, report: SynthesizedReport, destination: str) -> DeliveryReceipt:
        if not self.api_key:
            raise DeliveryFailure("SendGrid API key not configured. Please set SENDGRID_API_KEY.")
        if not self.from_email:
            raise DeliveryFailure("From email not configured. Please set FROM_EMAIL.")
        if not destination:
            raise DeliveryFailure("No destination email address")

        try:
            pdf_data = await asyncio.to_thread(self.renderer.render, report)
        except Exception as e:
            logger.error(f"PDF rendering failed: {e}")
            raise DeliveryFailure(f"Failed to render report: {e}") from e

        try:
            response = await self._post(self.build_payload(report, destination, pdf_data))
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"SendGrid delivery failed: {e}")
            raise DeliveryFailure(f"Failed to send research report: {e}") from e

        receipt_id = response.headers.get("X-Message-Id")
        logger.info(f"Report emailed (message id {receipt_id})")
        return DeliveryReceipt(delivered=True, receipt_id=receipt_id, destination=destination)
