"""Error taxonomy for the SimpleFIN client.

Every failure the client reports is a SimpleFINError subclass. Two errors
compare equal when they are the same kind and, for HTTPError, carry the
same status code. Wrapped causes are not compared.
"""

from __future__ import annotations


class SimpleFINError(Exception):
    """Base class for all SimpleFIN client failures."""

    message = "SimpleFIN error"
    retryable = False

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)

    def _identity(self) -> tuple:
        return (type(self),)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SimpleFINError):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())


class InvalidSetupToken(SimpleFINError):
    message = "Setup token is not a base64-encoded claim URL"


class InvalidAccessURL(SimpleFINError):
    message = "Access URL is missing or malformed"


class AuthenticationError(SimpleFINError):
    message = "Access URL credentials could not be encoded"


class AccessRevoked(SimpleFINError):
    message = (
        "SimpleFIN access denied. The access URL was revoked; "
        "claim a new setup token."
    )


class NetworkError(SimpleFINError):
    message = "Network request failed"
    retryable = True

    def __init__(self, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(f"{self.message}: {cause}" if cause else None)


class DecodingError(SimpleFINError):
    message = "Could not decode SimpleFIN response"

    def __init__(self, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(f"{self.message}: {cause}" if cause else None)


class HTTPError(SimpleFINError):
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"SimpleFIN returned HTTP {status_code}")

    def _identity(self) -> tuple:
        return (type(self), self.status_code)


class AccountNotFound(SimpleFINError):
    def __init__(self, identifier: str = "") -> None:
        self.identifier = identifier
        super().__init__(f"No account matching {identifier!r}")
