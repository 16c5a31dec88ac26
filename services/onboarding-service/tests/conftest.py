from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import datetime, timezone
from typing import Sequence

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from app.api import routes
from app.domain.account_request import AccountRequest, AccountRequestStatus
from app.domain.contracts import CreateAccountRequestInput
from app.domain.service import AccountRequestService
from app.domain.validation import TAKEN, AccountRequestInvalid
from app.security.tokens import IdentityTokenCodec

SECRET = "test-secret"

DETAILS = (
    "We run a regional food bank and need accounts for our volunteer coordinators."
)


class FakeRepository:
    """In-memory repository mimicking Postgres-backed behaviors."""

    def __init__(self) -> None:
        self._records: dict[int, AccountRequest] = {}
        self._ids = itertools.count(1)
        self.organization_emails: set[str] = set()
        self.user_emails: set[str] = set()
        self.organization_links: dict[int, int] = {}

    def create_account_request(self, payload: CreateAccountRequestInput) -> AccountRequest:
        # mirrors the UNIQUE(email) constraint
        if any(record.email == payload.email for record in self._records.values()):
            raise AccountRequestInvalid({"email": [TAKEN]})
        now = datetime.now(timezone.utc)
        record = AccountRequest(
            id=next(self._ids),
            name=payload.name,
            email=payload.email,
            organization_name=payload.organization_name,
            organization_website=payload.organization_website,
            request_details=payload.request_details,
            created_at=now,
            updated_at=now,
        )
        self._records[record.id] = record
        return record

    def get_account_request(self, account_request_id: int) -> AccountRequest | None:
        record = self._records.get(account_request_id)
        if record is None:
            return None
        return replace(record, organization_id=self.organization_links.get(account_request_id))

    def list_account_requests(
        self,
        *,
        statuses: Sequence[AccountRequestStatus] | None = None,
        limit: int = 50,
        after_id: int | None = None,
    ) -> list[AccountRequest]:
        limit = max(1, min(limit, 100))
        results = sorted(self._records.values(), key=lambda r: r.id)
        if statuses is not None:
            results = [record for record in results if record.status in statuses]
        if after_id is not None:
            results = [record for record in results if record.id > after_id]
        return [self.get_account_request(record.id) for record in results[:limit]]

    def save_transition(self, account_request: AccountRequest) -> AccountRequest:
        if account_request.id not in self._records:
            raise LookupError(f"account request {account_request.id} not found")
        saved = replace(account_request, updated_at=datetime.now(timezone.utc))
        self._records[saved.id] = saved
        return saved

    def email_taken(self, email: str, *, exclude_id: int | None = None) -> bool:
        return any(
            record.email == email and record.id != exclude_id for record in self._records.values()
        )

    def organization_email_exists(self, email: str) -> bool:
        return email in self.organization_emails

    def user_email_exists(self, email: str) -> bool:
        return email in self.user_emails


class FakeOutbox:
    def __init__(self) -> None:
        self.messages: list[BaseModel] = []

    def enqueue(self, notification: BaseModel) -> None:
        self.messages.append(notification)


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def outbox() -> FakeOutbox:
    return FakeOutbox()


@pytest.fixture
def codec() -> IdentityTokenCodec:
    return IdentityTokenCodec(SECRET)


@pytest.fixture
def service(repository, outbox, codec) -> AccountRequestService:
    return AccountRequestService(repository, outbox, codec)


@pytest.fixture
def make_input():
    def _make(**overrides) -> CreateAccountRequestInput:
        values = {
            "name": "Ada Lovelace",
            "email": "ada@example.com",
            "organization_name": "Analytical Engines",
            "organization_website": "https://engines.example.com",
            "request_details": DETAILS,
        }
        values.update(overrides)
        return CreateAccountRequestInput(**values)

    return _make


@pytest.fixture
def api_client(service):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    app.include_router(routes.router)
    app.state.account_request_service = service

    with TestClient(app) as client:
        yield client
