from __future__ import annotations

import logging
from dataclasses import replace

import pytest

from app.domain.account_request import AccountRequest, AccountRequestStatus
from app.domain.service import AccountRequestNotFound
from app.domain.validation import USED_BY_ORGANIZATION, USED_BY_USER, TAKEN, AccountRequestInvalid
from app.security.tokens import IdentityTokenCodec, UnpersistedRecordError
from schemas import AccountRequestApprovalRequested, AccountRequestRejected


def test_create_defaults_to_requested(service, make_input):
    record = service.create(make_input())

    assert record.id is not None
    assert record.status is AccountRequestStatus.requested
    assert not record.confirmed
    assert not record.processed


@pytest.mark.parametrize(
    ("collection", "message"),
    [("organization_emails", USED_BY_ORGANIZATION), ("user_emails", USED_BY_USER)],
)
def test_create_rejects_email_owned_elsewhere(service, repository, make_input, collection, message):
    getattr(repository, collection).add("ada@example.com")

    with pytest.raises(AccountRequestInvalid) as excinfo:
        service.create(make_input())

    assert excinfo.value.errors == {"email": [message]}
    assert repository.list_account_requests() == []


def test_create_rejects_short_details(service, repository, make_input):
    with pytest.raises(AccountRequestInvalid) as excinfo:
        service.create(make_input(request_details="Please let us in."))

    assert "request_details" in excinfo.value.errors
    assert repository.list_account_requests() == []


def test_duplicate_email_only_first_succeeds(service, make_input):
    service.create(make_input())

    with pytest.raises(AccountRequestInvalid) as excinfo:
        service.create(make_input(name="Someone Else"))

    assert excinfo.value.errors == {"email": [TAKEN]}


def test_store_constraint_settles_race(service, repository, make_input, monkeypatch):
    # both submissions pass the lookup before either is written
    monkeypatch.setattr(repository, "email_taken", lambda email, exclude_id=None: False)

    service.create(make_input())
    with pytest.raises(AccountRequestInvalid):
        service.create(make_input())

    assert len(repository.list_account_requests()) == 1


def test_identity_token_round_trip(service, make_input):
    record = service.create(make_input())

    found = service.get_by_identity_token(service.identity_token(record))

    assert found is not None
    assert found.id == record.id


def test_identity_token_requires_persisted_record(service, make_input):
    unsaved = AccountRequest(
        id=None,
        name="Ada",
        email="ada@example.com",
        organization_name="Engines",
        request_details="x" * 60,
    )
    with pytest.raises(UnpersistedRecordError):
        service.identity_token(unsaved)


def test_get_by_identity_token_returns_none_for_bad_tokens(service, make_input):
    record = service.create(make_input())
    foreign = IdentityTokenCodec("someone-elses-secret").issue(record)

    assert service.get_by_identity_token(foreign) is None
    assert service.get_by_identity_token("not.a.token") is None


def test_get_by_identity_token_returns_none_for_missing_record(service, codec, make_input):
    record = service.create(make_input())
    token = codec.issue(replace(record, id=999))
    assert service.get_by_identity_token(token) is None


def test_approve_sets_pending_and_enqueues_one_notification(service, outbox, codec, make_input):
    record = service.create(make_input())

    approved = service.approve(record)

    assert approved.status is AccountRequestStatus.pending
    assert approved.confirmed_at is not None
    assert approved.confirmed
    assert service.get(record.id).status is AccountRequestStatus.pending
    assert len(outbox.messages) == 1
    message = outbox.messages[0]
    assert isinstance(message, AccountRequestApprovalRequested)
    assert message.account_request_id == record.id
    assert codec.verify(message.identity_token) == record.id


def test_reject_records_reason_and_enqueues_one_notification(service, outbox, make_input):
    record = service.create(make_input())

    rejected = service.reject(record, "too vague")

    assert rejected.status is AccountRequestStatus.rejected
    assert rejected.rejection_reason == "too vague"
    assert not rejected.confirmed
    assert len(outbox.messages) == 1
    message = outbox.messages[0]
    assert isinstance(message, AccountRequestRejected)
    assert message.reason == "too vague"
    assert message.account_request.id == record.id
    assert message.account_request.status == "rejected"
    assert message.account_request.email == "ada@example.com"


def test_failed_transition_changes_nothing(service, repository, outbox, make_input):
    record = service.create(make_input())
    repository.user_emails.add(record.email)

    with pytest.raises(AccountRequestInvalid):
        service.approve(record)

    stored = service.get(record.id)
    assert stored.status is AccountRequestStatus.requested
    assert stored.confirmed_at is None
    assert outbox.messages == []


def test_transitions_are_permissive_but_logged(service, outbox, make_input, caplog):
    record = service.approve(service.create(make_input()))

    with caplog.at_level(logging.WARNING, logger="app.domain.service"):
        rejected = service.reject(record, "changed our minds")

    assert rejected.status is AccountRequestStatus.rejected
    assert rejected.confirmed_at is not None
    assert len(outbox.messages) == 2
    assert "reject called on account request" in caplog.text


def test_complete_marks_approved_without_notification(service, outbox, make_input):
    pending = service.approve(service.create(make_input()))

    approved = service.complete(pending)

    assert approved.status is AccountRequestStatus.approved
    assert approved.confirmed
    assert len(outbox.messages) == 1


def test_processed_once_organization_linked(service, repository, make_input):
    record = service.create(make_input())
    assert not service.get(record.id).processed

    repository.organization_links[record.id] = 11

    assert service.get(record.id).processed


def test_closed_listing(service, make_input):
    requested = service.create(make_input(email="one@example.com"))
    pending = service.approve(service.create(make_input(email="two@example.com")))
    rejected = service.reject(service.create(make_input(email="three@example.com")), "spam")

    closed, _ = service.list_account_requests(closed=True)
    everything, _ = service.list_account_requests()

    assert [record.id for record in closed] == [pending.id, rejected.id]
    assert requested.id in [record.id for record in everything]


def test_listing_pages_by_id(service, make_input):
    for index in range(3):
        service.create(make_input(email=f"user{index}@example.com"))

    first, next_after_id = service.list_account_requests(limit=2)
    second, last_after_id = service.list_account_requests(limit=2, after_id=next_after_id)

    assert len(first) == 2
    assert next_after_id == first[-1].id
    assert len(second) == 1
    assert last_after_id is None


def test_listing_clamps_oversized_limit_and_keeps_cursor(service, make_input):
    for index in range(101):
        service.create(make_input(email=f"bulk{index}@example.com"))

    first, next_after_id = service.list_account_requests(limit=200)
    rest, last_after_id = service.list_account_requests(limit=200, after_id=next_after_id)

    assert len(first) == 100
    assert next_after_id == first[-1].id
    assert [record.id for record in rest] == [101]
    assert last_after_id is None


def test_require_raises_for_missing(service):
    with pytest.raises(AccountRequestNotFound):
        service.require(404)
