"""
Tests for PDF rendering and SendGrid email delivery.
"""

import base64
import json

import httpx
import pytest
from unittest.mock import Mock

from research_chat.delivery import (
    PDFReportRenderer,
    SendGridEmailDelivery,
    plain_text_body,
    report_filename,
)
from research_chat.exceptions import DeliveryFailure

ENDPOINT = "https://sendgrid.test/v3/mail/send"


def client_for(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestPDFReportRenderer:

    def test_renders_pdf(self, sample_report):
        pdf_data = PDFReportRenderer().render(sample_report)

        assert pdf_data.startswith(b"%PDF")
        assert len(pdf_data) > 1000

    def test_markdown_flowables_cover_blocks(self, sample_report):
        renderer = PDFReportRenderer()

        flowables = renderer._markdown_flowables(sample_report.secondary.content)
        names = [type(f).__name__ for f in flowables]

        assert names == ["Paragraph", "ListFlowable", "HRFlowable", "Preformatted"]

    def test_unterminated_code_block(self):
        flowables = PDFReportRenderer()._markdown_flowables("```\nprint('hi')")
        assert [type(f).__name__ for f in flowables] == ["Preformatted"]


class TestPlainTextBody:

    def test_body_contains_summary_and_sections(self, sample_report):
        body = plain_text_body(sample_report)

        assert body.startswith("Combined Research Results\n\nResearch Topic: Cricket")
        assert "Executive Summary:\nCricket is popular." in body
        assert sample_report.primary.content in body
        assert sample_report.secondary.content in body

    def test_filename_is_safe(self, sample_report):
        name = report_filename(sample_report)
        assert name.startswith("research_report_Cricket_")
        assert name.endswith(".pdf")


class TestSendGridEmailDelivery:

    @pytest.mark.asyncio
    async def test_successful_delivery(self, sample_report):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["auth"] = request.headers["Authorization"]
            captured["payload"] = json.loads(request.content)
            return httpx.Response(202, headers={"X-Message-Id": "msg-123"})

        renderer = Mock()
        renderer.render.return_value = b"%PDF-1.4 fake"
        async with client_for(handler) as client:
            delivery = SendGridEmailDelivery("sg-key", "from@example.com", renderer=renderer, endpoint=ENDPOINT, client=client)
            receipt = await delivery.deliver(sample_report, "reader@example.com")

        assert receipt.delivered is True
        assert receipt.receipt_id == "msg-123"
        assert receipt.destination == "reader@example.com"

        payload = captured["payload"]
        assert captured["auth"] == "Bearer sg-key"
        assert payload["personalizations"] == [{"to": [{"email": "reader@example.com"}]}]
        assert payload["from"] == {"email": "from@example.com"}
        assert payload["subject"] == "Combined Research Results: Cricket"
        assert payload["content"][0]["type"] == "text/plain"
        attachment = payload["attachments"][0]
        assert attachment["type"] == "application/pdf"
        assert base64.b64decode(attachment["content"]) == b"%PDF-1.4 fake"

    @pytest.mark.asyncio
    async def test_rejected_request_raises(self, sample_report):
        def handler(request):
            return httpx.Response(401, json={"errors": [{"message": "bad key"}]})

        async with client_for(handler) as client:
            delivery = SendGridEmailDelivery("sg-key", "from@example.com", endpoint=ENDPOINT, client=client)
            with pytest.raises(DeliveryFailure):
                await delivery.deliver(sample_report, "reader@example.com")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, sample_report):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        async with client_for(handler) as client:
            delivery = SendGridEmailDelivery("sg-key", "from@example.com", endpoint=ENDPOINT, client=client)
            with pytest.raises(DeliveryFailure):
                await delivery.deliver(sample_report, "reader@example.com")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("api_key,from_email,destination", [
        (None, "from@example.com", "reader@example.com"),
        ("sg-key", None, "reader@example.com"),
        ("sg-key", "from@example.com", ""),
    ])
    async def test_missing_settings_raise(self, sample_report, api_key, from_email, destination):
        renderer = Mock()
        delivery = SendGridEmailDelivery(api_key, from_email, renderer=renderer)

        with pytest.raises(DeliveryFailure):
            await delivery.deliver(sample_report, destination)

        renderer.render.assert_not_called()

    @pytest.mark.asyncio
    async def test_render_failure_raises(self, sample_report):
        renderer = Mock()
        renderer.render.side_effect = ValueError("bad markup")
        delivery = SendGridEmailDelivery("sg-key", "from@example.com", renderer=renderer)

        with pytest.raises(DeliveryFailure) as exc_info:
            await delivery.deliver(sample_report, "reader@example.com")

        assert "bad markup" in str(exc_info.value)
