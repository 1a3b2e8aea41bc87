"""SimpleFIN API client — claims setup tokens and fetches account data.

SimpleFIN is a lightweight protocol for read-only bank data access.
Users create a setup token at https://bridge.simplefin.org/simplefin/create,
the app claims an access URL, then polls for accounts/transactions.

API constraints:
- A setup token can be claimed exactly once
- Access URL contains Basic Auth credentials (store securely)
- 401/403 on /accounts means the access URL was revoked

A client holds at most one access URL and is not safe to share between
threads; give each flow its own client.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Iterable
from urllib.parse import urlparse

import requests

from .access_url import parse_access_url, redact_access_url
from .errors import (
    AccessRevoked,
    DecodingError,
    HTTPError,
    InvalidAccessURL,
    InvalidSetupToken,
    NetworkError,
)
from .models import Response, SchemaError
from .request_builder import (
    AccountsQuery,
    DateLike,
    build_accounts_request,
    build_claim_request,
)
from .transport import HTTPResult, RequestsTransport, Transport

logger = logging.getLogger(__name__)

REVOKED_STATUS_CODES = frozenset({401, 403})


def decode_setup_token(setup_token: str) -> str:
    """Decode a setup token into its claim URL.

    Raises:
        InvalidSetupToken: not base64, not UTF-8, or not an absolute URL
    """
    try:
        claim_url = base64.b64decode(setup_token, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise InvalidSetupToken() from e
    parsed = urlparse(claim_url)
    if not parsed.scheme or not parsed.netloc:
        raise InvalidSetupToken("Setup token does not decode to a URL")
    return claim_url


class SimpleFINClient:
    """Client for the SimpleFIN Bridge API."""

    def __init__(
        self,
        transport: Transport | None = None,
        access_url: str | None = None,
    ) -> None:
        self.transport = transport or RequestsTransport()
        self._access_url = access_url

    @classmethod
    def with_setup_token(
        cls, setup_token: str, transport: Transport | None = None
    ) -> "SimpleFINClient":
        """Create a client and immediately claim the setup token.

        The claimed access URL is on `client.access_url`. Save it: the
        token cannot be claimed again.
        """
        client = cls(transport=transport)
        client.claim_setup_token(setup_token)
        return client

    @property
    def access_url(self) -> str | None:
        return self._access_url

    @property
    def has_access_url(self) -> bool:
        return self._access_url is not None

    def set_access_url(self, access_url: str) -> None:
        self._access_url = access_url

    def clear_access_url(self) -> None:
        self._access_url = None

    def _send(self, request: requests.PreparedRequest) -> HTTPResult:
        try:
            return self.transport.send(request)
        except (requests.RequestException, OSError) as e:
            raise NetworkError(e) from e

    def claim_setup_token(self, setup_token: str) -> str:
        """Exchange a setup token for an access URL.

        The setup token is a base64-encoded URL. POST to it to claim the
        access URL. This can only be done ONCE per token, so it is never
        retried here.

        Returns:
            Access URL string (contains credentials — store securely)

        Raises:
            InvalidSetupToken, NetworkError, HTTPError, DecodingError
        """
        claim_url = decode_setup_token(setup_token.strip())
        try:
            request = build_claim_request(claim_url)
        except InvalidAccessURL as e:
            raise InvalidSetupToken(str(e)) from e

        logger.info("Claiming SimpleFIN setup token at %s", urlparse(claim_url).netloc)
        result = self._send(request)
        if result.status_code != 200:
            logger.warning("Setup token claim failed with HTTP %s", result.status_code)
            raise HTTPError(result.status_code)

        try:
            access_url = result.body.decode("utf-8").strip()
        except UnicodeDecodeError as e:
            raise DecodingError(e) from e

        self._access_url = access_url
        logger.info("Claimed access URL %s", redact_access_url(access_url))
        return access_url

    def fetch_accounts(
        self,
        access_url: str | None = None,
        start_date: int | None = None,
        end_date: int | None = None,
        pending: bool | None = None,
        balances_only: bool | None = None,
        account_ids: Iterable[str] | None = None,
    ) -> Response:
        """Fetch accounts with transactions.

        Args:
            access_url: Overrides the stored access URL for this call
            start_date: UNIX timestamp; transactions on or after it
            end_date: UNIX timestamp; transactions before (not on) it
            pending: Include (True) or exclude (False) pending transactions
            balances_only: Skip transaction history
            account_ids: Restrict to these account IDs

        Raises:
            InvalidAccessURL, AuthenticationError, NetworkError,
            AccessRevoked, HTTPError, DecodingError
        """
        query = AccountsQuery(
            start_date=start_date,
            end_date=end_date,
            pending=pending,
            balances_only=balances_only,
            account_ids=tuple(account_ids) if account_ids is not None else None,
        )
        return self._fetch(access_url, query)

    def fetch_accounts_between(
        self,
        access_url: str | None = None,
        start_date: DateLike | None = None,
        end_date: DateLike | None = None,
        pending: bool | None = None,
        balances_only: bool | None = None,
        account_ids: Iterable[str] | None = None,
    ) -> Response:
        """fetch_accounts() with date/datetime bounds instead of timestamps."""
        query = AccountsQuery.from_dates(
            start_date=start_date,
            end_date=end_date,
            pending=pending,
            balances_only=balances_only,
            account_ids=account_ids,
        )
        return self._fetch(access_url, query)

    def _fetch(self, access_url: str | None, query: AccountsQuery) -> Response:
        if access_url is None:
            access_url = self._access_url
        if not access_url:
            raise InvalidAccessURL("No access URL set; claim a setup token first")

        components = parse_access_url(access_url)
        request = build_accounts_request(
            components.accounts_url,
            components.username,
            components.password,
            query,
        )

        logger.debug("GET %s params=%s", components.accounts_url, query.to_params())
        result = self._send(request)
        if result.status_code in REVOKED_STATUS_CODES:
            logger.warning(
                "SimpleFIN access revoked (HTTP %s) for %s",
                result.status_code,
                redact_access_url(access_url),
            )
            raise AccessRevoked()
        if result.status_code != 200:
            raise HTTPError(result.status_code)

        try:
            response = Response.from_json(result.body)
        except (ValueError, SchemaError, RecursionError) as e:
            raise DecodingError(e) from e

        # Errors are informational; the accounts are still usable
        for err in response.errors:
            logger.warning("SimpleFIN warning: %s", err)
        logger.info("SimpleFIN returned %d account(s)", len(response.accounts))
        return response
