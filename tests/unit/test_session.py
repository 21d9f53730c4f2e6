import pytest

from jaildata.common.errors import SessionError
from jaildata.common.http import TimeoutConfig
from jaildata.harvest.session import CollectionSession, SessionClient, parse_set_cookie

BASE_URL = "https://portal.example.com"


def _client(http=None, session=None):
    return SessionClient(http, BASE_URL + "/", session or CollectionSession())


def test_parse_set_cookie_takes_leading_pair_only():
    assert parse_set_cookie("sid=abc; Path=/; HttpOnly") == ("sid", "abc")
    assert parse_set_cookie("token=a=b==; Secure") == ("token", "a=b==")
    assert parse_set_cookie("HttpOnly") is None
    assert parse_set_cookie("=orphan") is None


def test_on_response_accumulates_cookies_last_value_wins():
    client = _client()
    client.on_response(["sid=one; path=/", "lang=en"])
    client.on_response(["sid=two"])

    assert client.session.cookies == {"sid": "two", "lang": "en"}
    assert client.session.xsrf_token is None


def test_on_response_derives_unquoted_xsrf_token():
    client = _client()
    client.on_response(["XSRF-TOKEN=tok%2Fen%3D%3D; path=/"])
    assert client.session.xsrf_token == "tok/en=="


def test_decorate_read_request_attaches_cookie_only():
    client = _client(session=CollectionSession(cookies={"sid": "1", "XSRF-TOKEN": "t"}, xsrf_token="t"))
    headers = client.decorate_request("GET", {"Accept": "text/html"})

    assert headers == {"Accept": "text/html", "Cookie": "sid=1; XSRF-TOKEN=t"}


def test_decorate_write_request_attaches_token_origin_and_referer():
    client = _client(session=CollectionSession(cookies={"sid": "1"}, xsrf_token="t"))
    headers = client.decorate_request("post")

    assert headers["Cookie"] == "sid=1"
    assert headers["X-XSRF-TOKEN"] == "t"
    assert headers["Origin"] == BASE_URL
    assert headers["Referer"] == BASE_URL + "/"


def test_decorate_write_request_without_token_omits_header():
    headers = _client().decorate_request("POST")
    assert "X-XSRF-TOKEN" not in headers
    assert headers["Cookie"] == ""
    assert headers["Origin"] == BASE_URL


def test_establish_session_obtains_token_and_sets_referer(portal):
    http = portal([])
    client = SessionClient(http, BASE_URL, CollectionSession(), timeout=TimeoutConfig(connect=1, read=2))

    client.establish_session(123, "/jtclientweb/jailtracker/index/{api_id}")

    assert http.requests[0]["method"] == "GET"
    assert http.requests[0]["url"] == BASE_URL + "/jtclientweb/jailtracker/index/123"
    assert http.requests[0]["timeout"] == TimeoutConfig(connect=1, read=2)
    assert client.session.xsrf_token == "tok/en=="
    assert client.session.cookies["ASP.NET_SessionId"] == "sess-1"
    assert client.referer == BASE_URL + "/jtclientweb/jailtracker/index/123"


def test_establish_session_without_token_raises(portal):
    client = SessionClient(portal([], issue_token=False), BASE_URL, CollectionSession())

    with pytest.raises(SessionError, match="^no XSRF token$"):
        client.establish_session(123, "/index/{api_id}")


def test_sessions_do_not_share_cookies(portal):
    http = portal([])
    first = SessionClient(http, BASE_URL, CollectionSession())
    first.establish_session(1, "/index/{api_id}")
    second = SessionClient(http, BASE_URL, CollectionSession())

    assert second.session.cookies == {}
    assert second.decorate_request("GET") == {"Cookie": ""}
