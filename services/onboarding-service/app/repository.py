"""Database repository for account request data."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Sequence

from psycopg.errors import UniqueViolation
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.account_request import AccountRequest, AccountRequestStatus
from .domain.contracts import CreateAccountRequestInput
from .domain.validation import TAKEN, AccountRequestInvalid

_COLUMNS = """
    ar.id, ar.name, ar.email, ar.organization_name, ar.organization_website,
    ar.request_details, ar.status, ar.confirmed_at, ar.rejection_reason,
    ar.created_at, ar.updated_at, o.id
"""

_FROM = """
    FROM account_requests ar
    LEFT JOIN organizations o ON o.account_request_id = ar.id
"""


class AccountRequestRepository:
    """Postgres-backed account request persistence and collaborator lookups."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def create_account_request(self, payload: CreateAccountRequestInput) -> AccountRequest:
        """Insert a new request in the ``requested`` state.

        The ``UNIQUE(email)`` constraint settles races between concurrent
        submissions; the loser surfaces as a validation error.
        """
        now = datetime.now(timezone.utc)
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        INSERT INTO account_requests (
                            name, email, organization_name, organization_website,
                            request_details, status, created_at, updated_at
                        )
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                        RETURNING id
                        """,
                        (
                            payload.name,
                            payload.email,
                            payload.organization_name,
                            payload.organization_website,
                            payload.request_details,
                            AccountRequestStatus.requested.value,
                            now,
                            now,
                        ),
                    )
                    (account_request_id,) = cur.fetchone()
                    conn.commit()
        except UniqueViolation as exc:
            raise AccountRequestInvalid({"email": [TAKEN]}) from exc

        return AccountRequest(
            id=account_request_id,
            name=payload.name,
            email=payload.email,
            organization_name=payload.organization_name,
            organization_website=payload.organization_website,
            request_details=payload.request_details,
            created_at=now,
            updated_at=now,
        )

    def get_account_request(self, account_request_id: int) -> AccountRequest | None:
        """Fetch a request by id or return ``None``."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"SELECT {_COLUMNS} {_FROM} WHERE ar.id = %s", (account_request_id,))
                row = cur.fetchone()
                if not row:
                    return None
        return self._map_record(row)

    def list_account_requests(
        self,
        *,
        statuses: Sequence[AccountRequestStatus] | None = None,
        limit: int = 50,
        after_id: int | None = None,
    ) -> list[AccountRequest]:
        """Return requests ordered by id, optionally filtered by status."""
        limit = max(1, min(limit, 100))
        clauses = ["TRUE"]
        params: list[Any] = []

        if statuses is not None:
            clauses.append("ar.status = ANY(%s)")
            params.append([status.value for status in statuses])
        if after_id is not None:
            clauses.append("ar.id > %s")
            params.append(after_id)

        where_sql = " AND ".join(clauses)
        query = f"SELECT {_COLUMNS} {_FROM} WHERE {where_sql} ORDER BY ar.id LIMIT %s"
        params.append(limit)

        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(query, params)
                return [self._map_record(row) for row in cur.fetchall()]

    def save_transition(self, account_request: AccountRequest) -> AccountRequest:
        """Persist status, confirmation and rejection fields in a single update."""
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    """
                    UPDATE account_requests
                    SET status = %s, confirmed_at = %s, rejection_reason = %s, updated_at = NOW()
                    WHERE id = %s
                    RETURNING updated_at
                    """,
                    (
                        account_request.status.value,
                        account_request.confirmed_at,
                        account_request.rejection_reason,
                        account_request.id,
                    ),
                )
                row = cur.fetchone()
                if not row:
                    raise LookupError(f"account request {account_request.id} not found")
                conn.commit()
        return replace(account_request, updated_at=row[0])

    def email_taken(self, email: str, *, exclude_id: int | None = None) -> bool:
        """Return ``True`` when another account request already uses ``email``."""
        return self._exists(
            "SELECT 1 FROM account_requests WHERE email = %s AND id IS DISTINCT FROM %s",
            (email, exclude_id),
        )

    def organization_email_exists(self, email: str) -> bool:
        return self._exists("SELECT 1 FROM organizations WHERE email = %s", (email,))

    def user_email_exists(self, email: str) -> bool:
        return self._exists("SELECT 1 FROM users WHERE email = %s", (email,))

    def _exists(self, query: str, params: tuple) -> bool:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"{query} LIMIT 1", params)
                return cur.fetchone() is not None

    def _map_record(self, row: tuple) -> AccountRequest:
        """Convert a raw database tuple into the domain ``AccountRequest``."""
        return AccountRequest(
            id=row[0],
            name=row[1],
            email=row[2],
            organization_name=row[3],
            organization_website=row[4],
            request_details=row[5],
            status=AccountRequestStatus(row[6]),
            confirmed_at=row[7],
            rejection_reason=row[8],
            created_at=row[9],
            updated_at=row[10],
            organization_id=row[11],
        )
