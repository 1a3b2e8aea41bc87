"""Request construction for the SimpleFIN /accounts endpoint.

Query parameters (all optional):
- start-date: include transactions on or after this UNIX timestamp
- end-date: include transactions before (but not on) this UNIX timestamp
- pending: "1" to include pending transactions, "0" to exclude them
- balances-only: "1" to skip transaction history
- account: repeated once per account ID to restrict the result
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Iterable
from urllib.parse import urlparse

import requests
from requests.exceptions import InvalidSchema, InvalidURL, MissingSchema

from .errors import AuthenticationError, InvalidAccessURL

DateLike = date | datetime


def to_timestamp(value: DateLike) -> int:
    """Seconds since the epoch. Plain dates count from midnight UTC."""
    if isinstance(value, datetime):
        return int(value.timestamp())
    return int(datetime.combine(value, time.min, tzinfo=timezone.utc).timestamp())


def _flag(value: bool) -> str:
    return "1" if value else "0"


@dataclass(frozen=True)
class AccountsQuery:
    """Filters for an /accounts request. None means "not sent"."""

    start_date: int | None = None
    end_date: int | None = None
    pending: bool | None = None
    balances_only: bool | None = None
    account_ids: tuple[str, ...] | None = None

    @classmethod
    def from_dates(
        cls,
        start_date: DateLike | None = None,
        end_date: DateLike | None = None,
        pending: bool | None = None,
        balances_only: bool | None = None,
        account_ids: Iterable[str] | None = None,
    ) -> "AccountsQuery":
        return cls(
            start_date=to_timestamp(start_date) if start_date is not None else None,
            end_date=to_timestamp(end_date) if end_date is not None else None,
            pending=pending,
            balances_only=balances_only,
            account_ids=tuple(account_ids) if account_ids is not None else None,
        )

    def to_params(self) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = []
        if self.start_date is not None:
            params.append(("start-date", str(int(self.start_date))))
        if self.end_date is not None:
            params.append(("end-date", str(int(self.end_date))))
        if self.pending is not None:
            params.append(("pending", _flag(self.pending)))
        if self.balances_only is not None:
            params.append(("balances-only", _flag(self.balances_only)))
        for account_id in self.account_ids or ():
            params.append(("account", account_id))
        return params


def basic_auth_header(username: str, password: str) -> str:
    try:
        raw = f"{username}:{password}".encode("utf-8")
    except UnicodeEncodeError as e:
        raise AuthenticationError() from e
    return "Basic " + base64.b64encode(raw).decode("ascii")


def _prepare(request: requests.Request) -> requests.PreparedRequest:
    try:
        prepared = request.prepare()
    except (InvalidURL, MissingSchema, InvalidSchema) as e:
        raise InvalidAccessURL(f"Malformed endpoint URL: {e}") from e
    parsed = urlparse(prepared.url or "")
    if not parsed.scheme or not parsed.netloc:
        raise InvalidAccessURL("Endpoint URL has no scheme or host")
    return prepared


def build_accounts_request(
    accounts_url: str,
    username: str,
    password: str,
    query: AccountsQuery | None = None,
) -> requests.PreparedRequest:
    """Build the authenticated GET for the accounts endpoint.

    Raises:
        InvalidAccessURL: accounts_url is not a usable URL
        AuthenticationError: the credentials cannot be encoded
    """
    query = query or AccountsQuery()
    headers = {
        "Authorization": basic_auth_header(username, password),
        "Accept": "application/json",
    }
    return _prepare(
        requests.Request("GET", accounts_url, params=query.to_params(), headers=headers)
    )


def build_accounts_request_for_dates(
    accounts_url: str,
    username: str,
    password: str,
    start_date: DateLike | None = None,
    end_date: DateLike | None = None,
    pending: bool | None = None,
    balances_only: bool | None = None,
    account_ids: Iterable[str] | None = None,
) -> requests.PreparedRequest:
    """Same as build_accounts_request, with date/datetime bounds."""
    query = AccountsQuery.from_dates(
        start_date=start_date,
        end_date=end_date,
        pending=pending,
        balances_only=balances_only,
        account_ids=account_ids,
    )
    return build_accounts_request(accounts_url, username, password, query)


def build_claim_request(claim_url: str) -> requests.PreparedRequest:
    """POST with no body to a setup token's claim URL."""
    return _prepare(requests.Request("POST", claim_url))
