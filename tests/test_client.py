"""Tests for SimpleFINClient against a fake transport."""

import base64
import logging
from datetime import date
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from sfin_client.lib.client import SimpleFINClient, decode_setup_token
from sfin_client.lib.errors import (
    AccessRevoked,
    DecodingError,
    HTTPError,
    InvalidAccessURL,
    InvalidSetupToken,
    NetworkError,
)


def test_setup_token_base64_roundtrip():
    original = "Hello, World!"
    encoded = base64.b64encode(original.encode("utf-8")).decode("ascii")
    assert base64.b64decode(encoded).decode("utf-8") == original


def test_decode_setup_token(setup_token, claim_url):
    assert decode_setup_token(setup_token) == claim_url


@pytest.mark.parametrize(
    "token",
    [
        "not base64!!",
        base64.b64encode(b"just some text").decode(),
        base64.b64encode(b"\xff\xfe\xfd").decode(),
        "",
    ],
)
def test_invalid_setup_tokens(token, transport):
    client = SimpleFINClient(transport=transport)
    with pytest.raises(InvalidSetupToken):
        client.claim_setup_token(token)
    assert transport.requests == []
    assert client.access_url is None


def test_claim_stores_trimmed_access_url(transport, setup_token, claim_url, access_url):
    transport.queue(200, f"  {access_url}\n")
    client = SimpleFINClient(transport=transport)

    assert client.claim_setup_token(setup_token) == access_url
    assert client.access_url == access_url
    req = transport.requests[0]
    assert req.method == "POST"
    assert req.url == claim_url
    assert not req.body


def test_claim_http_error_leaves_state_unset(transport, setup_token):
    transport.queue(403, "Forbidden")
    client = SimpleFINClient(transport=transport)
    with pytest.raises(HTTPError) as exc:
        client.claim_setup_token(setup_token)
    assert exc.value.status_code == 403
    assert client.access_url is None


def test_claim_network_error(transport, setup_token):
    transport.fail_with(requests.ConnectionError("connection refused"))
    client = SimpleFINClient(transport=transport)
    with pytest.raises(NetworkError) as exc:
        client.claim_setup_token(setup_token)
    assert isinstance(exc.value.cause, requests.ConnectionError)
    assert len(transport.requests) == 1  # never retried


def test_claim_body_not_utf8(transport, setup_token):
    transport.queue(200, b"\xff\xfe")
    client = SimpleFINClient(transport=transport)
    with pytest.raises(DecodingError):
        client.claim_setup_token(setup_token)
    assert client.access_url is None


def test_with_setup_token(transport, setup_token, access_url):
    transport.queue(200, access_url)
    client = SimpleFINClient.with_setup_token(setup_token, transport=transport)
    assert client.access_url == access_url


def test_fetch_without_access_url_makes_no_request(transport):
    client = SimpleFINClient(transport=transport)
    with pytest.raises(InvalidAccessURL):
        client.fetch_accounts()
    assert transport.requests == []


def test_fetch_with_malformed_access_url(transport):
    client = SimpleFINClient(transport=transport, access_url="https://no-credentials.example")
    with pytest.raises(InvalidAccessURL):
        client.fetch_accounts()
    assert transport.requests == []


def test_fetch_accounts(transport, access_url, accounts_payload):
    transport.queue(200, accounts_payload)
    client = SimpleFINClient(transport=transport, access_url=access_url)

    response = client.fetch_accounts(start_date=1700000000, pending=True, account_ids=["ACT-1"])

    assert [a.name for a in response.accounts] == ["Everyday Checking", "Savings Account"]
    req = transport.requests[0]
    assert req.method == "GET"
    url = urlparse(req.url)
    assert f"{url.scheme}://{url.netloc}{url.path}" == (
        "https://bridge.example.org/simplefin/accounts"
    )
    params = parse_qs(url.query)
    assert params == {"start-date": ["1700000000"], "pending": ["1"], "account": ["ACT-1"]}
    expected = base64.b64encode(b"demo:s3cr3t").decode("ascii")
    assert req.headers["Authorization"] == f"Basic {expected}"


def test_explicit_access_url_overrides_stored(transport, accounts_payload):
    transport.queue(200, accounts_payload)
    client = SimpleFINClient(transport=transport, access_url="https://a:b@stored.example/sfin")
    client.fetch_accounts(access_url="https://c:d@override.example/sfin")
    assert urlparse(transport.requests[0].url).netloc == "override.example"
    assert client.access_url == "https://a:b@stored.example/sfin"


def test_fetch_between_dates(transport, access_url, accounts_payload):
    transport.queue(200, accounts_payload)
    client = SimpleFINClient(transport=transport, access_url=access_url)
    client.fetch_accounts_between(end_date=date(2024, 1, 8), balances_only=True)
    params = parse_qs(urlparse(transport.requests[0].url).query)
    assert params == {"end-date": ["1704672000"], "balances-only": ["1"]}


@pytest.mark.parametrize("status", [401, 403])
def test_revoked_access(transport, access_url, status):
    transport.queue(status, "Forbidden")
    client = SimpleFINClient(transport=transport, access_url=access_url)
    with pytest.raises(AccessRevoked):
        client.fetch_accounts()
    # the client does not clear its own access URL
    assert client.access_url == access_url


def test_other_http_errors(transport, access_url):
    transport.queue(500, "oops")
    client = SimpleFINClient(transport=transport, access_url=access_url)
    with pytest.raises(HTTPError) as exc:
        client.fetch_accounts()
    assert exc.value == HTTPError(500)
    assert exc.value != HTTPError(402)


def test_fetch_network_error(transport, access_url):
    transport.fail_with(requests.Timeout("read timed out"))
    client = SimpleFINClient(transport=transport, access_url=access_url)
    with pytest.raises(NetworkError):
        client.fetch_accounts()


@pytest.mark.parametrize("body", ["<html>not json</html>", '{"errors": []}', "[]"])
def test_decode_failures(transport, access_url, body):
    transport.queue(200, body)
    client = SimpleFINClient(transport=transport, access_url=access_url)
    with pytest.raises(DecodingError) as exc:
        client.fetch_accounts()
    assert exc.value.cause is not None


def test_provider_errors_are_logged(transport, access_url, accounts_payload, caplog):
    accounts_payload["errors"] = ["Bank is slow today"]
    transport.queue(200, accounts_payload)
    client = SimpleFINClient(transport=transport, access_url=access_url)
    with caplog.at_level(logging.WARNING, logger="sfin_client.lib.client"):
        response = client.fetch_accounts()
    assert response.errors == ["Bank is slow today"]
    assert "Bank is slow today" in caplog.text


def test_access_url_state_transitions(access_url):
    client = SimpleFINClient(transport=object())
    assert not client.has_access_url
    client.set_access_url(access_url)
    assert client.access_url == access_url
    client.set_access_url("https://x:y@other.example/sfin")
    assert client.access_url == "https://x:y@other.example/sfin"
    client.clear_access_url()
    assert client.access_url is None


def test_deeply_nested_body_is_a_decoding_error(transport, access_url):
    transport.queue(200, "[" * 200000 + "]" * 200000)
    client = SimpleFINClient(transport=transport, access_url=access_url)
    with pytest.raises(DecodingError) as exc:
        client.fetch_accounts()
    assert isinstance(exc.value.cause, RecursionError)


def test_empty_access_url_override_does_not_use_stored(transport, access_url):
    client = SimpleFINClient(transport=transport, access_url=access_url)
    with pytest.raises(InvalidAccessURL):
        client.fetch_accounts(access_url="")
    assert transport.requests == []
