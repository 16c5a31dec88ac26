"""Account request notification contracts consumed by the mailer."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountRequestState(str, Enum):
    requested = "requested"
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class AccountRequestSnapshot(BaseModel):
    id: int
    name: str
    email: str
    organization_name: str
    organization_website: str | None = None
    request_details: str
    status: AccountRequestState
    confirmed_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        use_enum_values = True


class AccountRequestApprovalRequested(BaseModel):
    type: Literal["account_request.approval_requested"] = "account_request.approval_requested"
    account_request_id: int
    identity_token: str
    occurred_at: datetime = Field(default_factory=_utcnow)


class AccountRequestRejected(BaseModel):
    type: Literal["account_request.rejected"] = "account_request.rejected"
    account_request: AccountRequestSnapshot
    reason: str
    occurred_at: datetime = Field(default_factory=_utcnow)
