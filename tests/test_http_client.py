from __future__ import annotations

import pytest
from requests import exceptions as req_exc

from ocr_relay.errors import ConnectionError, TooManyRedirectsError
from ocr_relay.http_client import HttpClient, decode_json

START = "https://github.com/org/repo/releases/download/v1/a.tar.gz"


def test_returns_success_without_redirect(session, make_response) -> None:
    session.get.return_value = make_response(200, b"payload", url=START)
    http = HttpClient(session)

    res = http.get(START)

    assert res.ok
    assert res.body == b"payload"
    assert res.redirects == 0
    session.get.assert_called_once()
    assert session.get.call_args.kwargs["allow_redirects"] is False


def test_follows_absolute_and_relative_locations(session, make_response) -> None:
    session.get.side_effect = [
        make_response(302, headers={"Location": "https://objects.example.com/blob/1"}),
        make_response(301, headers={"location": "/blob/2?sig=abc"}),
        make_response(200, b"final"),
    ]
    http = HttpClient(session)

    res = http.get(START)

    urls = [c.args[0] for c in session.get.call_args_list]
    assert urls == [
        START,
        "https://objects.example.com/blob/1",
        "https://objects.example.com/blob/2?sig=abc",
    ]
    assert res.body == b"final"
    assert res.redirects == 2


def test_redirect_limit_is_enforced(session, make_response) -> None:
    session.get.return_value = make_response(302, headers={"Location": START})
    http = HttpClient(session, redirect_limit=3)

    with pytest.raises(TooManyRedirectsError) as excinfo:
        http.get(START)

    assert session.get.call_count == 4
    assert excinfo.value.url == START


def test_non_success_is_returned_for_inspection(session, make_response) -> None:
    session.get.return_value = make_response(404, b"Not Found", reason="Not Found")
    http = HttpClient(session)

    res = http.get(START)

    assert not res.ok
    assert res.status_code == 404
    assert res.reason == "Not Found"


def test_redirect_without_location_is_not_followed(session, make_response) -> None:
    session.get.return_value = make_response(302)
    http = HttpClient(session)

    res = http.get(START)

    assert res.status_code == 302
    session.get.assert_called_once()


def test_transport_failure_becomes_connection_error(session) -> None:
    session.get.side_effect = req_exc.ConnectTimeout("timed out")
    http = HttpClient(session)

    with pytest.raises(ConnectionError, match="timed out"):
        http.get(START)


def test_progress_mode_streams_body(session, make_response) -> None:
    resp = make_response(200, b"x" * 200_000, headers={"Content-Length": "200000"})
    session.get.return_value = resp
    http = HttpClient(session, show_progress=True)

    res = http.get(START)

    assert res.body == b"x" * 200_000
    assert session.get.call_args.kwargs["stream"] is True
    assert resp.closed


def test_decode_json() -> None:
    assert decode_json(b'{"a": 1}') == {"a": 1}
    assert decode_json("[1]") == [1]
    assert decode_json(b"") is None
    assert decode_json(b"\xff\xfe") is None
    assert decode_json(b"{") is None


def test_dropped_response_becomes_connection_error(session) -> None:
    session.get.side_effect = req_exc.ChunkedEncodingError("connection broken")
    http = HttpClient(session)

    with pytest.raises(ConnectionError, match="connection broken"):
        http.get(START)
