"""
Tests for the Resend email client.
"""
import json

import httpx
import pytest

from orderflow.services.notification_service import NotificationService


class TestSendEmail:
    async def test_skips_without_api_key(self):
        service = NotificationService(api_key="")

        assert await service.send_email("a@example.com", "Hi", "<p>Hi</p>") is False

    async def test_posts_to_resend(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "email_123"})

        service = NotificationService(api_key="re_test", transport=httpx.MockTransport(handler))

        sent = await service.send_email("a@example.com", "Your invoice", "<p>Invoice</p>", "Invoice")

        assert sent is True
        assert captured["url"] == NotificationService.RESEND_API_URL
        assert captured["auth"] == "Bearer re_test"
        assert captured["body"]["to"] == ["a@example.com"]
        assert captured["body"]["text"] == "Invoice"

    @pytest.mark.parametrize("status", [400, 500])
    async def test_error_status_returns_false(self, status):
        service = NotificationService(
            api_key="re_test",
            transport=httpx.MockTransport(lambda request: httpx.Response(status, text="nope")),
        )

        assert await service.send_email("a@example.com", "Hi", "<p>Hi</p>") is False

    async def test_transport_error_returns_false(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        service = NotificationService(api_key="re_test", transport=httpx.MockTransport(handler))

        assert await service.send_email("a@example.com", "Hi", "<p>Hi</p>") is False
