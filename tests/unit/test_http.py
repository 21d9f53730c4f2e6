from __future__ import annotations

import pytest
import requests

from jaildata.common.http import (
    HttpClient,
    HttpRequestError,
    HttpResponse,
    RetryableHttpError,
    RetryConfig,
    TimeoutConfig,
)


class FakeHeaders(dict):
    def __init__(self, cookies):
        super().__init__()
        self._cookies = cookies

    def getlist(self, name):
        return list(self._cookies) if name == "Set-Cookie" else []


class FakeRaw:
    def __init__(self, cookies):
        self.headers = FakeHeaders(cookies)


class FakeResponse:
    def __init__(self, status_code: int, text: str = "{}", cookies=()):
        self.status_code = status_code
        self.text = text
        self.raw = FakeRaw(cookies)
        self.headers = {}


def test_http_get_returns_text_json_and_all_set_cookie_headers(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    response = FakeResponse(200, '{"ok": true}', cookies=["a=1; path=/", "b=2"])
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: response)

    result = client.get("https://example.com/x")

    assert result.status_code == 200
    assert result.json() == {"ok": True}
    assert result.set_cookie == ["a=1; path=/", "b=2"]


def test_http_request_always_sends_a_bounded_timeout_and_default_headers(monkeypatch):
    client = HttpClient(timeout=TimeoutConfig(connect=3, read=7))
    seen = {}

    def fake_request(**kwargs):
        seen.update(kwargs)
        return FakeResponse(200)

    monkeypatch.setattr(client.session, "request", fake_request)
    client.post_json("https://example.com/x", json_body={"a": 1}, headers={"X-Test": "1"})

    assert seen["timeout"] == (3, 7)
    assert seen["json"] == {"a": 1}
    assert seen["headers"]["Content-Type"] == "application/json"
    assert seen["headers"]["X-Test"] == "1"
    assert seen["headers"]["Accept"] == "application/json, text/plain, */*"
    assert "JailData" in seen["headers"]["User-Agent"]


def test_http_retryable_status_raises_retryable_error(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(503))

    with pytest.raises(RetryableHttpError):
        client.get("https://example.com")


def test_http_client_error_status_is_not_retryable(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=3, multiplier=0.01, max_wait=0.01))
    calls = []

    def fake_request(**_kwargs):
        calls.append(1)
        return FakeResponse(403)

    monkeypatch.setattr(client.session, "request", fake_request)
    with pytest.raises(HttpRequestError):
        client.get("https://example.com")
    assert len(calls) == 1


def test_http_default_budget_makes_one_attempt(monkeypatch):
    client = HttpClient()
    calls = []

    def fake_request(**_kwargs):
        calls.append(1)
        return FakeResponse(502)

    monkeypatch.setattr(client.session, "request", fake_request)
    with pytest.raises(RetryableHttpError):
        client.get("https://example.com")
    assert len(calls) == 1


def test_http_timeout_is_translated(monkeypatch):
    client = HttpClient()

    def fake_request(**_kwargs):
        raise requests.exceptions.ConnectTimeout("slow")

    monkeypatch.setattr(client.session, "request", fake_request)
    with pytest.raises(RetryableHttpError, match="Timed out"):
        client.get("https://example.com")


def test_http_invalid_json_raises():
    with pytest.raises(HttpRequestError):
        HttpResponse(url="https://example.com", status_code=200, text="<html>").json()


def test_http_session_cookie_jar_accepts_no_domains():
    client = HttpClient()
    assert client.session.cookies.get_policy().allowed_domains() == ()
