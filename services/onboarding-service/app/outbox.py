"""Postgres-backed outbox for notifications delivered by the mailer."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from psycopg.types.json import Json
from psycopg_pool import ConnectionPool
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class PostgresNotificationOutbox:
    """Writes notification messages to ``notification_outbox`` for later delivery."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def enqueue(self, notification: BaseModel) -> None:
        """Store ``notification`` keyed by its ``type`` discriminator."""
        payload = notification.model_dump(mode="json")
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO notification_outbox (type, payload, created_at)
                    VALUES (%s, %s, %s)
                    """,
                    (payload["type"], Json(payload), datetime.now(timezone.utc)),
                )
                conn.commit()
        logger.info("notification %s enqueued", payload["type"])
