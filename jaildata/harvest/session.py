"""Authenticated browsing session against a facility roster portal.

The portal issues an anti-forgery token as a cookie on the first page load
and expects it echoed back in a header on every state-changing request. The
cookie map and token live in a ``CollectionSession`` value created for one
collection run and discarded with it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable
from urllib.parse import unquote, urlparse

from jaildata.common.constants import WRITE_METHODS, XSRF_COOKIE_NAME, XSRF_HEADER_NAME
from jaildata.common.errors import SessionError
from jaildata.common.http import HttpClient, HttpResponse, TimeoutConfig


@dataclass
class CollectionSession:
    cookies: dict[str, str] = field(default_factory=dict)
    xsrf_token: str | None = None

    def cookie_header(self) -> str:
        return "; ".join(f"{name}={value}" for name, value in self.cookies.items())


def parse_set_cookie(header: str) -> tuple[str, str] | None:
    # Only the leading name=value pair is the cookie; the rest are attributes.
    pair = header.split(";", 1)[0]
    if "=" not in pair:
        return None
    name, value = pair.split("=", 1)
    name = name.strip()
    if not name:
        return None
    return name, value.strip()


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


class SessionClient:
    def __init__(
        self,
        http_client: HttpClient,
        base_url: str,
        session: CollectionSession,
        *,
        timeout: TimeoutConfig | None = None,
    ) -> None:
        self.http = http_client
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout = timeout
        self.referer = self.base_url + "/"

    def on_response(self, set_cookie_headers: Iterable[str]) -> None:
        for header in set_cookie_headers:
            parsed = parse_set_cookie(header)
            if parsed is None:
                continue
            name, value = parsed
            self.session.cookies[name] = value
            if name == XSRF_COOKIE_NAME and value:
                self.session.xsrf_token = unquote(value)

    def decorate_request(self, method: str, headers: dict[str, str] | None = None) -> dict[str, str]:
        out = dict(headers or {})
        out["Cookie"] = self.session.cookie_header()
        if method.upper() in WRITE_METHODS:
            if self.session.xsrf_token:
                out[XSRF_HEADER_NAME] = self.session.xsrf_token
            out["Origin"] = _origin(self.base_url)
            out["Referer"] = self.referer
        return out

    def send(self, method: str, path: str, *, json_body: Any = None) -> HttpResponse:
        url = f"{self.base_url}{path}"
        response = self.http.request(
            method,
            url,
            json_body=json_body,
            headers=self.decorate_request(method),
            timeout=self.timeout,
        )
        self.on_response(response.set_cookie)
        return response

    def establish_session(self, api_id: int, path_template: str) -> None:
        """Load the facility page once so the portal hands out its token."""
        session_path = path_template.format(api_id=api_id)
        self.send("GET", session_path)
        self.referer = f"{self.base_url}{session_path}"
        if not self.session.xsrf_token:
            raise SessionError("no XSRF token")
