"""Issuing and verifying identity tokens for confirmation links."""

from __future__ import annotations

import logging
import time
from typing import Any

import jwt

from ..domain.account_request import AccountRequest

logger = logging.getLogger(__name__)

CLAIM = "account_request_id"


class UnpersistedRecordError(RuntimeError):
    """Raised when a token is requested for a record without an id."""


class IdentityTokenCodec:
    """Signs and verifies HS256 JWTs carrying an ``account_request_id`` claim.

    Parameters
    ----------
    secret:
        Symmetric signing key. Supplied by the caller; the codec never reads
        configuration on its own.
    algorithm:
        HMAC algorithm used for signing. Verification only accepts this one.
    ttl_seconds:
        Optional lifetime. When set, tokens carry an ``exp`` claim; when
        ``None`` they never expire.
    """

    def __init__(self, secret: str, *, algorithm: str = "HS256", ttl_seconds: int | None = None) -> None:
        if not secret:
            raise ValueError("identity token secret must not be empty")
        self._secret = secret
        self._algorithm = algorithm
        self._ttl_seconds = ttl_seconds

    def issue(self, account_request: AccountRequest) -> str:
        """Return a signed token for a persisted account request.

        Raises
        ------
        UnpersistedRecordError
            If the record has not been assigned an id yet.
        """

        if not account_request.persisted:
            raise UnpersistedRecordError("must have an id")
        payload: dict[str, Any] = {CLAIM: account_request.id}
        if self._ttl_seconds is not None:
            payload["exp"] = int(time.time()) + self._ttl_seconds
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> int | None:
        """Return the embedded account request id, or ``None`` if the token is not valid."""
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self._algorithm])
            account_request_id = claims[CLAIM]
        except (jwt.PyJWTError, KeyError) as exc:
            logger.debug("identity token rejected: %s", type(exc).__name__)
            return None
        if isinstance(account_request_id, bool) or not isinstance(account_request_id, int):
            logger.debug("identity token rejected: non-integer claim")
            return None
        return account_request_id
