"""Account request service orchestrating validation, persistence, tokens and notifications."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from schemas import AccountRequestApprovalRequested, AccountRequestRejected, AccountRequestSnapshot

from .account_request import CLOSED_STATUSES, AccountRequest, AccountRequestStatus
from .contracts import AccountRequestStore, CreateAccountRequestInput, NotificationOutbox
from .validation import AccountRequestInvalid, validate
from ..security.tokens import IdentityTokenCodec

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class AccountRequestNotFound(LookupError):
    """Raised when an operation targets an account request that does not exist."""


class AccountRequestService:
    """Account request workflows backed by a store, an outbox and a token codec."""

    def __init__(
        self,
        repository: AccountRequestStore,
        outbox: NotificationOutbox,
        tokens: IdentityTokenCodec,
    ) -> None:
        """Store the collaborators; the signing key arrives inside ``tokens``."""
        self._repository = repository
        self._outbox = outbox
        self._tokens = tokens

    def create(self, payload: CreateAccountRequestInput) -> AccountRequest:
        """Validate and persist a new account request in the ``requested`` state."""
        try:
            validate(payload, self._repository)
        except AccountRequestInvalid as exc:
            logger.info("account request rejected by validation: %s", exc.errors)
            raise
        account_request = self._repository.create_account_request(payload)
        logger.info("account request %s created", account_request.id)
        return account_request

    def get(self, account_request_id: int) -> AccountRequest | None:
        return self._repository.get_account_request(account_request_id)

    def require(self, account_request_id: int) -> AccountRequest:
        """Like :meth:`get` but raises :class:`AccountRequestNotFound` when missing."""
        account_request = self.get(account_request_id)
        if account_request is None:
            raise AccountRequestNotFound(f"account request {account_request_id} not found")
        return account_request

    def list_account_requests(
        self,
        *,
        closed: bool = False,
        limit: int = 50,
        after_id: int | None = None,
    ) -> tuple[list[AccountRequest], int | None]:
        """Return a page of requests and the id to resume after, if any.

        With ``closed=True`` only requests that left the ``requested`` state
        are returned.
        """
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        statuses = sorted(CLOSED_STATUSES, key=lambda status: status.value) if closed else None
        records = self._repository.list_account_requests(
            statuses=statuses,
            limit=limit,
            after_id=after_id,
        )
        next_after_id = records[-1].id if len(records) == limit else None
        return records, next_after_id

    def identity_token(self, account_request: AccountRequest) -> str:
        """Issue the confirmation-link token for a persisted request."""
        return self._tokens.issue(account_request)

    def get_by_identity_token(self, token: str) -> AccountRequest | None:
        """Resolve a token to its account request; any failure yields ``None``."""
        account_request_id = self._tokens.verify(token)
        if account_request_id is None:
            return None
        return self._repository.get_account_request(account_request_id)

    def approve(self, account_request: AccountRequest) -> AccountRequest:
        """Mark the request ``pending``, stamp ``confirmed_at`` and queue the approval email."""
        self._warn_unless(account_request, AccountRequestStatus.requested, "approve")
        saved = self._save(account_request.approve(datetime.now(timezone.utc)))
        self._outbox.enqueue(
            AccountRequestApprovalRequested(
                account_request_id=saved.id,
                identity_token=self._tokens.issue(saved),
            )
        )
        logger.info("account request %s approved", saved.id)
        return saved

    def reject(self, account_request: AccountRequest, reason: str) -> AccountRequest:
        """Mark the request ``rejected`` with ``reason`` and queue the rejection email."""
        self._warn_unless(account_request, AccountRequestStatus.requested, "reject")
        saved = self._save(account_request.reject(reason))
        self._outbox.enqueue(
            AccountRequestRejected(account_request=_snapshot(saved), reason=reason)
        )
        logger.info("account request %s rejected", saved.id)
        return saved

    def complete(self, account_request: AccountRequest) -> AccountRequest:
        """Mark a pending request ``approved`` once its organization is provisioned."""
        self._warn_unless(account_request, AccountRequestStatus.pending, "complete")
        saved = self._save(account_request.complete())
        logger.info("account request %s completed", saved.id)
        return saved

    def _save(self, account_request: AccountRequest) -> AccountRequest:
        validate(account_request, self._repository)
        return self._repository.save_transition(account_request)

    def _warn_unless(
        self, account_request: AccountRequest, expected: AccountRequestStatus, action: str
    ) -> None:
        # transitions stay permissive; unusual sources are only reported
        if account_request.status is not expected:
            logger.warning(
                "%s called on account request %s in status %s",
                action,
                account_request.id,
                account_request.status.value,
            )


def _snapshot(account_request: AccountRequest) -> AccountRequestSnapshot:
    return AccountRequestSnapshot(
        id=account_request.id,
        name=account_request.name,
        email=account_request.email,
        organization_name=account_request.organization_name,
        organization_website=account_request.organization_website,
        request_details=account_request.request_details,
        status=account_request.status.value,
        confirmed_at=account_request.confirmed_at,
        rejection_reason=account_request.rejection_reason,
        created_at=account_request.created_at,
        updated_at=account_request.updated_at,
    )
