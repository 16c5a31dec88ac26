"""Shared schema exports."""

from .account_request import (
    AccountRequestApprovalRequested,
    AccountRequestRejected,
    AccountRequestSnapshot,
    AccountRequestState,
)

__all__ = [
    "AccountRequestApprovalRequested",
    "AccountRequestRejected",
    "AccountRequestSnapshot",
    "AccountRequestState",
]
