"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from pydantic import BaseModel

from .account_request import AccountRequest, AccountRequestStatus


@dataclass(slots=True)
class CreateAccountRequestInput:
    """Inputs submitted by a prospective organization."""

    name: str
    email: str
    organization_name: str
    request_details: str
    organization_website: str | None = None


class AccountRequestStore(Protocol):
    """Persistence operations the service relies on."""

    def create_account_request(self, payload: CreateAccountRequestInput) -> AccountRequest: ...

    def get_account_request(self, account_request_id: int) -> AccountRequest | None: ...

    def list_account_requests(
        self,
        *,
        statuses: Sequence[AccountRequestStatus] | None = None,
        limit: int = 50,
        after_id: int | None = None,
    ) -> list[AccountRequest]: ...

    def save_transition(self, account_request: AccountRequest) -> AccountRequest: ...

    def email_taken(self, email: str, *, exclude_id: int | None = None) -> bool: ...

    def organization_email_exists(self, email: str) -> bool: ...

    def user_email_exists(self, email: str) -> bool: ...


class NotificationOutbox(Protocol):
    """Sink for notifications that an external mailer delivers later."""

    def enqueue(self, notification: BaseModel) -> None: ...
