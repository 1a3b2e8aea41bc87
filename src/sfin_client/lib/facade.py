"""High-level helpers on top of SimpleFINClient.

fetch_data() handles the whole access URL lifecycle: reuse a stored
access URL, fall back to claiming the setup token when the stored URL
was revoked, and persist the newly claimed URL.

IMPORTANT: setup tokens can only be claimed once. Losing the stored
access URL means asking the bank (or SimpleFIN Bridge) for a new token.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .client import SimpleFINClient
from .errors import AccessRevoked, AccountNotFound, InvalidSetupToken
from .models import Account, Response
from .request_builder import DateLike
from .storage import KeyValueStore
from .transport import Transport

__version__ = "1.0.0"

logger = logging.getLogger(__name__)


def client_with_setup_token(
    setup_token: str, transport: Transport | None = None
) -> SimpleFINClient:
    """Claim the setup token and return a client holding the access URL."""
    return SimpleFINClient.with_setup_token(setup_token, transport=transport)


def client_with_access_url(
    access_url: str, transport: Transport | None = None
) -> SimpleFINClient:
    """Client for an already-claimed access URL. No network requests."""
    return SimpleFINClient(transport=transport, access_url=access_url)


def fetch_data(
    setup_token: str,
    store: KeyValueStore,
    storage_key: str,
    start_date: DateLike | None = None,
    end_date: DateLike | None = None,
    pending: bool | None = None,
    balances_only: bool | None = None,
    account_ids: Iterable[str] | None = None,
    transport: Transport | None = None,
) -> Response:
    """Fetch accounts, claiming the setup token only when needed.

    1. If store has an access URL under storage_key, fetch with it.
       AccessRevoked removes it and continues to step 2; any other error
       propagates.
    2. Claim setup_token (must be non-empty), save the access URL, fetch.
    """
    filters = dict(
        start_date=start_date,
        end_date=end_date,
        pending=pending,
        balances_only=balances_only,
        account_ids=account_ids,
    )

    stored = store.get(storage_key)
    if stored:
        client = client_with_access_url(stored, transport=transport)
        try:
            return client.fetch_accounts_between(**filters)
        except AccessRevoked:
            logger.warning("Stored access URL was revoked; removing %r", storage_key)
            store.remove(storage_key)

    if not setup_token:
        raise InvalidSetupToken("No stored access URL and no setup token given")

    client = SimpleFINClient(transport=transport)
    access_url = client.claim_setup_token(setup_token)
    store.set(storage_key, access_url)
    logger.info("Saved access URL under %r", storage_key)
    return client.fetch_accounts_between(**filters)


def fetch_data_with_access_url(
    access_url: str,
    start_date: DateLike | None = None,
    end_date: DateLike | None = None,
    pending: bool | None = None,
    balances_only: bool | None = None,
    account_ids: Iterable[str] | None = None,
    transport: Transport | None = None,
) -> Response:
    """Fetch accounts with an existing access URL. Nothing is stored."""
    client = client_with_access_url(access_url, transport=transport)
    return client.fetch_accounts_between(
        start_date=start_date,
        end_date=end_date,
        pending=pending,
        balances_only=balances_only,
        account_ids=account_ids,
    )


def find_account(accounts: Iterable[Account], identifier: str) -> Account:
    """First account (server order) whose ID or name contains identifier.

    Matching is a case-insensitive substring match; ties go to the first
    account the server returned.

    Raises:
        AccountNotFound: nothing matched
    """
    for account in accounts:
        if account.matches(identifier):
            return account
    raise AccountNotFound(identifier)


def fetch_account(
    setup_token: str,
    store: KeyValueStore,
    storage_key: str,
    account_identifier: str,
    start_date: DateLike | None = None,
    end_date: DateLike | None = None,
    pending: bool | None = None,
    balances_only: bool | None = None,
    account_ids: Iterable[str] | None = None,
    transport: Transport | None = None,
) -> Account:
    """fetch_data(), then return the single account matching account_identifier."""
    response = fetch_data(
        setup_token,
        store,
        storage_key,
        start_date=start_date,
        end_date=end_date,
        pending=pending,
        balances_only=balances_only,
        account_ids=account_ids,
        transport=transport,
    )
    return find_account(response.accounts, account_identifier)


def fetch_account_with_access_url(
    access_url: str,
    account_identifier: str,
    start_date: DateLike | None = None,
    end_date: DateLike | None = None,
    pending: bool | None = None,
    balances_only: bool | None = None,
    account_ids: Iterable[str] | None = None,
    transport: Transport | None = None,
) -> Account:
    response = fetch_data_with_access_url(
        access_url,
        start_date=start_date,
        end_date=end_date,
        pending=pending,
        balances_only=balances_only,
        account_ids=account_ids,
        transport=transport,
    )
    return find_account(response.accounts, account_identifier)


def clear_stored_access_url(store: KeyValueStore, storage_key: str) -> None:
    """Forget the stored access URL so the next fetch_data() claims a new token."""
    store.remove(storage_key)


def is_access_revoked(error: BaseException) -> bool:
    return isinstance(error, AccessRevoked)
