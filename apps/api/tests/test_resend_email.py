"""Tests for the Resend API client."""

import httpx
import pytest

from portal.core.config import settings
from portal.services import resend_email_service


@pytest.fixture
def resend_key(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test_key")
    monkeypatch.setattr(settings, "EMAIL_FROM", "Firm <portal@firm.test>")


@pytest.mark.asyncio
async def test_send_email_posts_payload(resend_key, monkeypatch):
    captured = {}

    async def capture_post(self, url, **kwargs):
        captured["url"] = url
        captured["headers"] = kwargs.get("headers")
        captured["json"] = kwargs.get("json")
        return httpx.Response(200, json={"id": "msg_123"})

    monkeypatch.setattr(httpx.AsyncClient, "post", capture_post)

    result = await resend_email_service.send_email(
        to_email="client@test.com",
        subject="Invoice INV-2026-0001",
        html="<p>Hello &amp; welcome</p>",
    )

    assert result == {"success": True, "id": "msg_123"}
    assert captured["url"] == resend_email_service.RESEND_SEND_URL
    assert captured["headers"]["Authorization"] == "Bearer re_test_key"
    assert captured["json"]["from"] == "Firm <portal@firm.test>"
    assert captured["json"]["to"] == ["client@test.com"]
    assert captured["json"]["text"] == "Hello & welcome"


@pytest.mark.asyncio
async def test_send_email_reports_api_error(resend_key, monkeypatch):
    async def reject_post(self, url, **kwargs):
        return httpx.Response(422, json={"message": "Invalid `to` field"})

    monkeypatch.setattr(httpx.AsyncClient, "post", reject_post)

    result = await resend_email_service.send_email(
        to_email="not-an-email", subject="Hi", html="<p>Hi</p>"
    )

    assert result["success"] is False
    assert result["error"] == "Resend API error: 422 (Invalid `to` field)"


@pytest.mark.asyncio
async def test_send_email_timeout_is_structured(resend_key, monkeypatch):
    async def slow_post(self, url, **kwargs):
        raise httpx.ReadTimeout("timed out")

    monkeypatch.setattr(httpx.AsyncClient, "post", slow_post)

    result = await resend_email_service.send_email(
        to_email="client@test.com", subject="Hi", html="<p>Hi</p>"
    )

    assert result == {"success": False, "error": "Connection timeout"}


@pytest.mark.asyncio
async def test_send_email_without_key_does_not_call_api(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "")

    async def fail_post(self, url, **kwargs):
        raise AssertionError("email API must not be called")

    monkeypatch.setattr(httpx.AsyncClient, "post", fail_post)

    result = await resend_email_service.send_email(
        to_email="client@test.com", subject="Hi", html="<p>Hi</p>"
    )

    assert result == {"success": False, "error": "Email not configured"}
