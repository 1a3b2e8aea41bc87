"""Tests for /accounts request construction."""

import base64
from datetime import date, datetime, timezone
from urllib.parse import parse_qs, parse_qsl, urlparse

import pytest

from sfin_client.lib.errors import AuthenticationError, InvalidAccessURL
from sfin_client.lib.request_builder import (
    AccountsQuery,
    build_accounts_request,
    build_accounts_request_for_dates,
    build_claim_request,
    to_timestamp,
)

URL = "https://bridge.example.org/simplefin/accounts"


def _query(req):
    return parse_qs(urlparse(req.url).query)


def test_no_filters_means_no_query():
    req = build_accounts_request(URL, "demo", "s3cr3t")
    assert req.method == "GET"
    assert req.url == URL
    assert urlparse(req.url).query == ""


def test_basic_auth_header():
    req = build_accounts_request(URL, "demo", "pa:ss")
    scheme, encoded = req.headers["Authorization"].split(" ", 1)
    assert scheme == "Basic"
    assert base64.b64decode(encoded).decode("utf-8") == "demo:pa:ss"


def test_all_filters():
    query = AccountsQuery(
        start_date=1700000000,
        end_date=1700600000,
        pending=True,
        balances_only=False,
        account_ids=("ACT-1", "ACT-2"),
    )
    req = build_accounts_request(URL, "demo", "s3cr3t", query)
    params = _query(req)
    assert params["start-date"] == ["1700000000"]
    assert params["end-date"] == ["1700600000"]
    assert params["pending"] == ["1"]
    assert params["balances-only"] == ["0"]
    # repeated key, not comma-joined
    assert params["account"] == ["ACT-1", "ACT-2"]


def test_only_set_filters_are_sent():
    req = build_accounts_request(URL, "u", "p", AccountsQuery(balances_only=True))
    assert parse_qsl(urlparse(req.url).query) == [("balances-only", "1")]


def test_date_overload_converts_to_seconds():
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    req = build_accounts_request_for_dates(
        URL, "u", "p", start_date=start, end_date=date(2024, 1, 8), pending=False
    )
    params = _query(req)
    assert params["start-date"] == ["1704067200"]
    assert params["end-date"] == ["1704672000"]
    assert params["pending"] == ["0"]


def test_to_timestamp():
    assert to_timestamp(date(1970, 1, 2)) == 86400
    assert to_timestamp(datetime(2021, 8, 10, 16, 47, 26, tzinfo=timezone.utc)) == 1628614046


@pytest.mark.parametrize("url", ["not a url", "https:///accounts", "/accounts"])
def test_malformed_endpoint(url):
    with pytest.raises(InvalidAccessURL):
        build_accounts_request(url, "u", "p")


def test_unencodable_credentials():
    with pytest.raises(AuthenticationError):
        build_accounts_request(URL, "u", "\ud800")


def test_claim_request_is_bodyless_post():
    req = build_claim_request("https://bridge.example.org/simplefin/claim/abc")
    assert req.method == "POST"
    assert not req.body
