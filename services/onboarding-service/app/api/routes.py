"""HTTP route definitions for the onboarding service."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel

from ..domain.account_request import AccountRequest, AccountRequestStatus
from ..domain.contracts import CreateAccountRequestInput
from ..domain.service import AccountRequestNotFound, AccountRequestService
from ..domain.validation import AccountRequestInvalid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")


class AccountRequestResponse(BaseModel):
    """Serialised representation of an `AccountRequest` record."""

    id: int
    name: str
    email: str
    organization_name: str
    organization_website: str | None
    request_details: str
    status: AccountRequestStatus
    confirmed_at: datetime | None
    rejection_reason: str | None
    created_at: datetime | None
    updated_at: datetime | None
    confirmed: bool
    processed: bool

    @classmethod
    def from_domain(cls, account_request: AccountRequest) -> "AccountRequestResponse":
        """Build a response model from the domain record."""
        return cls(
            id=account_request.id,
            name=account_request.name,
            email=account_request.email,
            organization_name=account_request.organization_name,
            organization_website=account_request.organization_website,
            request_details=account_request.request_details,
            status=account_request.status,
            confirmed_at=account_request.confirmed_at,
            rejection_reason=account_request.rejection_reason,
            created_at=account_request.created_at,
            updated_at=account_request.updated_at,
            confirmed=account_request.confirmed,
            processed=account_request.processed,
        )


class CreateAccountRequestBody(BaseModel):
    """Payload submitted by a prospective organization.

    Fields are plain strings on purpose; the domain validator reports every
    problem in one field-keyed response.
    """

    name: str = ""
    email: str = ""
    organization_name: str = ""
    organization_website: str | None = None
    request_details: str = ""


class RejectAccountRequestBody(BaseModel):
    reason: str


class AccountRequestListResponse(BaseModel):
    """Envelope for a page of account requests."""

    items: list[AccountRequestResponse]
    next_after_id: int | None = None


def get_service(request: Request) -> AccountRequestService:
    """Resolve the `AccountRequestService` stored on the FastAPI application state."""
    service: AccountRequestService = request.app.state.account_request_service
    return service


@router.post(
    "/account-requests",
    response_model=AccountRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_account_request(
    payload: CreateAccountRequestBody,
    service: AccountRequestService = Depends(get_service),
) -> AccountRequestResponse:
    """Submit a new account request."""
    try:
        account_request = service.create(
            CreateAccountRequestInput(
                name=payload.name,
                email=payload.email,
                organization_name=payload.organization_name,
                organization_website=payload.organization_website,
                request_details=payload.request_details,
            )
        )
    except AccountRequestInvalid as exc:
        raise _http_error_from_invalid(exc) from exc
    return AccountRequestResponse.from_domain(account_request)


@router.get("/account-requests", response_model=AccountRequestListResponse)
def list_account_requests(
    closed: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=100),
    after_id: int | None = Query(default=None),
    service: AccountRequestService = Depends(get_service),
) -> AccountRequestListResponse:
    """Return a page of account requests, optionally only closed ones."""
    records, next_after_id = service.list_account_requests(
        closed=closed, limit=limit, after_id=after_id
    )
    return AccountRequestListResponse(
        items=[AccountRequestResponse.from_domain(record) for record in records],
        next_after_id=next_after_id,
    )


@router.get("/account-requests/by-token/{token}", response_model=AccountRequestResponse)
def get_account_request_by_token(
    token: str,
    service: AccountRequestService = Depends(get_service),
) -> AccountRequestResponse:
    """Resolve a confirmation-link identity token."""
    account_request = service.get_by_identity_token(token)
    if account_request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="account request not found")
    return AccountRequestResponse.from_domain(account_request)


@router.get("/account-requests/{account_request_id}", response_model=AccountRequestResponse)
def get_account_request(
    account_request_id: int,
    service: AccountRequestService = Depends(get_service),
) -> AccountRequestResponse:
    try:
        account_request = service.require(account_request_id)
    except AccountRequestNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return AccountRequestResponse.from_domain(account_request)


@router.post("/account-requests/{account_request_id}/approve", response_model=AccountRequestResponse)
def approve_account_request(
    account_request_id: int,
    service: AccountRequestService = Depends(get_service),
) -> AccountRequestResponse:
    """Approve a request and queue the approval email."""
    try:
        account_request = service.approve(service.require(account_request_id))
    except AccountRequestNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except AccountRequestInvalid as exc:
        raise _http_error_from_invalid(exc) from exc
    return AccountRequestResponse.from_domain(account_request)


@router.post("/account-requests/{account_request_id}/reject", response_model=AccountRequestResponse)
def reject_account_request(
    account_request_id: int,
    payload: RejectAccountRequestBody,
    service: AccountRequestService = Depends(get_service),
) -> AccountRequestResponse:
    """Reject a request and queue the rejection email."""
    try:
        account_request = service.reject(service.require(account_request_id), payload.reason)
    except AccountRequestNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except AccountRequestInvalid as exc:
        raise _http_error_from_invalid(exc) from exc
    return AccountRequestResponse.from_domain(account_request)


@router.post("/account-requests/{account_request_id}/complete", response_model=AccountRequestResponse)
def complete_account_request(
    account_request_id: int,
    service: AccountRequestService = Depends(get_service),
) -> AccountRequestResponse:
    try:
        account_request = service.complete(service.require(account_request_id))
    except AccountRequestNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except AccountRequestInvalid as exc:
        raise _http_error_from_invalid(exc) from exc
    return AccountRequestResponse.from_domain(account_request)


def _http_error_from_invalid(exc: AccountRequestInvalid) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"errors": exc.errors},
    )
