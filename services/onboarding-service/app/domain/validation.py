"""Validation rules applied before any account request write."""

from __future__ import annotations

from collections import defaultdict

from email_validator import EmailNotValidError, validate_email

from .account_request import AccountRequest
from .contracts import AccountRequestStore, CreateAccountRequestInput

MIN_REQUEST_DETAILS_LENGTH = 50

REQUIRED = "is required"
INVALID = "is invalid"
TAKEN = "has already been taken"
USED_BY_ORGANIZATION = "already used by an existing Organization"
USED_BY_USER = "already used by an existing User"
TOO_SHORT = f"is too short (minimum is {MIN_REQUEST_DETAILS_LENGTH} characters)"


class AccountRequestInvalid(ValueError):
    """Raised when a write would violate one or more validation rules.

    ``errors`` maps each offending field to its messages, e.g.
    ``{"email": ["already used by an existing User"]}``.
    """

    def __init__(self, errors: dict[str, list[str]]) -> None:
        self.errors = {field: list(messages) for field, messages in errors.items()}
        summary = "; ".join(
            f"{field} {message}" for field, messages in self.errors.items() for message in messages
        )
        super().__init__(summary or "account request is invalid")


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _well_formed(email: str) -> bool:
    # ASCII only; bare hosts and reserved names like .test are acceptable
    if not email.isascii():
        return False
    try:
        validate_email(
            email,
            check_deliverability=False,
            allow_smtputf8=False,
            globally_deliverable=False,
            test_environment=True,
        )
    except EmailNotValidError:
        return False
    return True


def collect_errors(
    candidate: CreateAccountRequestInput | AccountRequest,
    store: AccountRequestStore,
) -> dict[str, list[str]]:
    """Return every rule the candidate breaks, keyed by field name."""
    errors: dict[str, list[str]] = defaultdict(list)
    exclude_id = getattr(candidate, "id", None)

    if _blank(candidate.name):
        errors["name"].append(REQUIRED)

    email = candidate.email
    if _blank(email):
        errors["email"].append(REQUIRED)
    else:
        if not _well_formed(email):
            errors["email"].append(INVALID)
        if store.email_taken(email, exclude_id=exclude_id):
            errors["email"].append(TAKEN)
        if store.organization_email_exists(email):
            errors["email"].append(USED_BY_ORGANIZATION)
        if store.user_email_exists(email):
            errors["email"].append(USED_BY_USER)

    if _blank(candidate.organization_name):
        errors["organization_name"].append(REQUIRED)

    details = candidate.request_details
    if _blank(details):
        errors["request_details"].append(REQUIRED)
    if details is None or len(details) < MIN_REQUEST_DETAILS_LENGTH:
        errors["request_details"].append(TOO_SHORT)

    return dict(errors)


def validate(
    candidate: CreateAccountRequestInput | AccountRequest,
    store: AccountRequestStore,
) -> None:
    """Raise :class:`AccountRequestInvalid` if ``candidate`` may not be written."""
    errors = collect_errors(candidate, store)
    if errors:
        raise AccountRequestInvalid(errors)
