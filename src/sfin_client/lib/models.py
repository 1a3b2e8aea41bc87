"""SimpleFIN response models.

Decoding is strict for required fields and forgiving for optional ones:
a missing or mistyped required field raises SchemaError, while a missing
or mistyped optional field decodes as None. Providers disagree on whether
timestamps are JSON numbers or numeric strings, so both are accepted.
Amounts and balances stay strings to keep their decimal precision.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterator

from .dynamic_value import DataCorruptedError, DynamicValue

_INT_RE = re.compile(r"[+-]?\d+")

# Timestamps are 64-bit on the wire; anything wider counts as unparsable
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_INT64_DIGITS = 19

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_UTC_MIN = datetime.min.replace(tzinfo=timezone.utc)
_UTC_MAX = datetime.max.replace(tzinfo=timezone.utc)

_MISSING = object()


class SchemaError(ValueError):
    """A required field is absent or has the wrong type."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"{path}: {reason}")


def _where(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _required(data: dict, key: str, kind: type, path: str) -> Any:
    value = data.get(key, _MISSING)
    if value is _MISSING:
        raise SchemaError(_where(path, key), "missing required field")
    if not isinstance(value, kind) or (kind is not bool and isinstance(value, bool)):
        raise SchemaError(
            _where(path, key), f"expected {kind.__name__}, got {type(value).__name__}"
        )
    return value


def _optional(data: dict, key: str, kind: type) -> Any:
    value = data.get(key)
    if not isinstance(value, kind) or (kind is not bool and isinstance(value, bool)):
        return None
    return value


def _in_int64(value: int) -> int | None:
    return value if _INT64_MIN <= value <= _INT64_MAX else None


def _parse_int(text: str) -> int | None:
    if not _INT_RE.fullmatch(text) or len(text.lstrip("+-").lstrip("0")) > _INT64_DIGITS:
        return None
    return _in_int64(int(text))


def _json_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return _in_int64(value)
    if isinstance(value, float) and value.is_integer():
        return _in_int64(int(value))
    return None


def _required_timestamp(data: dict, key: str, path: str) -> int:
    """Timestamp that may arrive as a string; unparsable strings become 0."""
    value = data.get(key, _MISSING)
    if isinstance(value, str):
        parsed = _parse_int(value)
        return parsed if parsed is not None else 0
    if value is _MISSING:
        raise SchemaError(_where(path, key), "missing required field")
    parsed = _json_int(value)
    if parsed is None:
        raise SchemaError(
            _where(path, key), f"expected integer timestamp, got {type(value).__name__}"
        )
    return parsed


def _optional_timestamp(data: dict, key: str) -> int | None:
    value = data.get(key)
    if isinstance(value, str):
        return _parse_int(value)
    return _json_int(value)


def _to_float(text: str | None) -> float | None:
    if text is None:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _utc(ts: int) -> datetime:
    """UTC datetime for ts, clamped to the range datetime can represent."""
    try:
        return _EPOCH + timedelta(seconds=ts)
    except OverflowError:
        return _UTC_MAX if ts > 0 else _UTC_MIN


def _object(data: Any, path: str) -> dict:
    if not isinstance(data, dict):
        raise SchemaError(path or "$", f"expected object, got {type(data).__name__}")
    return data


@dataclass(frozen=True)
class Organization:
    """The institution that holds an account."""

    sfin_url: str
    domain: str | None = None
    name: str | None = None
    url: str | None = None
    id: str | None = None

    @classmethod
    def from_dict(cls, data: Any, path: str = "org") -> "Organization":
        data = _object(data, path)
        return cls(
            sfin_url=_required(data, "sfin-url", str, path),
            domain=_optional(data, "domain", str),
            name=_optional(data, "name", str),
            url=_optional(data, "url", str),
            id=_optional(data, "id", str),
        )

    @property
    def display_name(self) -> str:
        return self.name or self.domain or self.sfin_url


def _decode_extra(value: Any) -> dict[str, DynamicValue] | None:
    if not isinstance(value, dict):
        return None
    try:
        decoded = DynamicValue.decode(value)
    except DataCorruptedError:
        return None
    return decoded.as_dict()


@dataclass(frozen=True)
class Transaction:
    """A single posted or pending ledger entry."""

    id: str
    posted: int  # UNIX timestamp
    amount: str  # Numeric string, negative = debit
    description: str
    memo: str | None = None
    payee: str | None = None
    transacted_at: int | None = None
    pending: bool | None = None
    extra: dict[str, DynamicValue] | None = None

    @classmethod
    def from_dict(cls, data: Any, path: str = "transaction") -> "Transaction":
        data = _object(data, path)
        return cls(
            id=_required(data, "id", str, path),
            posted=_required_timestamp(data, "posted", path),
            amount=_required(data, "amount", str, path),
            description=_required(data, "description", str, path),
            memo=_optional(data, "memo", str),
            payee=_optional(data, "payee", str),
            transacted_at=_optional_timestamp(data, "transacted_at"),
            pending=_optional(data, "pending", bool),
            extra=_decode_extra(data.get("extra")),
        )

    @property
    def amount_in_dollars(self) -> float:
        value = _to_float(self.amount)
        return value if value is not None else 0.0

    @property
    def is_debit(self) -> bool:
        return self.amount_in_dollars < 0

    @property
    def is_credit(self) -> bool:
        return self.amount_in_dollars > 0

    @property
    def is_pending(self) -> bool:
        return bool(self.pending)

    @property
    def posted_datetime(self) -> datetime:
        return _utc(self.posted)

    @property
    def posted_date(self) -> date:
        """Posting date in UTC."""
        return self.posted_datetime.date()

    @property
    def transacted_datetime(self) -> datetime | None:
        if self.transacted_at is None:
            return None
        return _utc(self.transacted_at)

    @property
    def transacted_date(self) -> date | None:
        dt = self.transacted_datetime
        return dt.date() if dt else None

    def extra_value(self, key: str) -> DynamicValue | None:
        if not self.extra:
            return None
        return self.extra.get(key)

    def extra_str(self, key: str) -> str | None:
        value = self.extra_value(key)
        return value.as_str() if value is not None else None

    def extra_int(self, key: str) -> int | None:
        value = self.extra_value(key)
        return value.as_int() if value is not None else None

    def extra_float(self, key: str) -> float | None:
        value = self.extra_value(key)
        return value.as_float() if value is not None else None

    def extra_bool(self, key: str) -> bool | None:
        value = self.extra_value(key)
        return value.as_bool() if value is not None else None

    def extra_list(self, key: str) -> list[DynamicValue] | None:
        value = self.extra_value(key)
        return value.as_list() if value is not None else None

    def extra_dict(self, key: str) -> dict[str, DynamicValue] | None:
        value = self.extra_value(key)
        return value.as_dict() if value is not None else None


@dataclass(frozen=True)
class Account:
    """A bank account and the transactions returned with it."""

    org: Organization
    id: str
    name: str
    currency: str
    balance: str
    balance_date: int
    transactions: list[Transaction] = field(default_factory=list)
    available_balance: str | None = None

    @classmethod
    def from_dict(cls, data: Any, path: str = "account") -> "Account":
        data = _object(data, path)
        raw_txns = _required(data, "transactions", list, path)
        return cls(
            org=Organization.from_dict(
                _required(data, "org", dict, path), _where(path, "org")
            ),
            id=_required(data, "id", str, path),
            name=_required(data, "name", str, path),
            currency=_required(data, "currency", str, path),
            balance=_required(data, "balance", str, path),
            available_balance=_optional(data, "available-balance", str),
            balance_date=_required_timestamp(data, "balance-date", path),
            transactions=[
                Transaction.from_dict(t, f"{path}.transactions[{i}]")
                for i, t in enumerate(raw_txns)
            ],
        )

    @property
    def balance_in_dollars(self) -> float:
        value = _to_float(self.balance)
        return value if value is not None else 0.0

    @property
    def available_balance_in_dollars(self) -> float | None:
        return _to_float(self.available_balance)

    @property
    def balance_datetime(self) -> datetime:
        return _utc(self.balance_date)

    @property
    def balance_as_of(self) -> date:
        return self.balance_datetime.date()

    @property
    def pending_transactions(self) -> list[Transaction]:
        return [t for t in self.transactions if t.is_pending]

    def matches(self, identifier: str) -> bool:
        """Case-insensitive substring match on id, then name."""
        needle = identifier.lower()
        return needle in self.id.lower() or needle in self.name.lower()


@dataclass(frozen=True)
class Response:
    """Top-level /accounts payload."""

    accounts: list[Account] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "Response":
        data = _object(data, "")
        raw_accounts = _required(data, "accounts", list, "")
        errors = data.get("errors")
        if not isinstance(errors, list) or not all(isinstance(e, str) for e in errors):
            errors = []
        return cls(
            errors=list(errors),
            accounts=[
                Account.from_dict(a, f"accounts[{i}]") for i, a in enumerate(raw_accounts)
            ],
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> "Response":
        return cls.from_dict(json.loads(text))

    def account_by_id(self, account_id: str) -> Account | None:
        for account in self.accounts:
            if account.id == account_id:
                return account
        return None

    def transactions(self) -> Iterator[tuple[Account, Transaction]]:
        for account in self.accounts:
            for txn in account.transactions:
                yield account, txn
