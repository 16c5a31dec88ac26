"""Account request aggregate and its status lifecycle."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum


class AccountRequestStatus(str, Enum):
    requested = "requested"
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


CLOSED_STATUSES: frozenset[AccountRequestStatus] = frozenset(
    {
        AccountRequestStatus.pending,
        AccountRequestStatus.approved,
        AccountRequestStatus.rejected,
    }
)


@dataclass(frozen=True, slots=True)
class AccountRequest:
    """A prospective organization's signup request.

    Instances are immutable. The status only moves through :meth:`approve`,
    :meth:`reject` and :meth:`complete`, each of which returns a new record
    that still has to be persisted.
    """

    id: int | None
    name: str
    email: str
    organization_name: str
    request_details: str
    organization_website: str | None = None
    status: AccountRequestStatus = AccountRequestStatus.requested
    confirmed_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    organization_id: int | None = None

    @property
    def persisted(self) -> bool:
        return self.id is not None

    @property
    def confirmed(self) -> bool:
        """``True`` once the request has been approved by a reviewer."""
        return self.status in (AccountRequestStatus.pending, AccountRequestStatus.approved)

    @property
    def processed(self) -> bool:
        """``True`` when an Organization has been provisioned from this request."""
        return self.organization_id is not None

    @property
    def closed(self) -> bool:
        return self.status in CLOSED_STATUSES

    def approve(self, at: datetime) -> AccountRequest:
        """Move to ``pending`` and stamp ``confirmed_at``."""
        return replace(self, status=AccountRequestStatus.pending, confirmed_at=at)

    def reject(self, reason: str) -> AccountRequest:
        """Move to ``rejected`` and record the reviewer's reason."""
        return replace(self, status=AccountRequestStatus.rejected, rejection_reason=reason)

    def complete(self) -> AccountRequest:
        """Move to ``approved`` once the organization exists."""
        return replace(self, status=AccountRequestStatus.approved)
