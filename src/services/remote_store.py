"""
Remote participant service - the hosted Postgres table and its change feed
"""

import asyncio
import json
import logging
import re
from typing import Any, Awaitable, Callable, Dict, Optional

import asyncpg
from pydantic import ValidationError

from config.settings import PARTICIPANTS_TABLE, CHANGES_CHANNEL
from database.connection import create_pool, close_pool, open_listener_connection
from models.participant import Participant, ParticipantCreate
from services.base_store import (
    RecordStore,
    ServiceResult,
    records_result,
    duplicate_result,
    not_found_result,
    validation_result,
    writable_changes,
    EXECUTION_ERROR,
    REMOTE_UNAVAILABLE,
)

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

ChangeHandler = Callable[[Dict[str, Any]], None]


class RemoteParticipantStore(RecordStore):
    """
    Participant store backed by the remote participants table.

    Every call is a single request/response round trip. Failures are never
    raised: they come back as a ServiceResult with error_type
    DUPLICATE_CERTIFICATE (unique index hit), RESOURCE_NOT_FOUND,
    EXECUTION_ERROR (query rejected) or REMOTE_UNAVAILABLE (no connection).
    """

    kind = "remote"

    def __init__(self, database_url: str, table: str = PARTICIPANTS_TABLE, channel: str = CHANGES_CHANNEL):
        if not IDENTIFIER_PATTERN.match(table) or not IDENTIFIER_PATTERN.match(channel):
            raise ValueError(f"Invalid table or channel name: {table!r}, {channel!r}")

        self.database_url = database_url
        self.table = table
        self.channel = channel
        self._pool: Optional[asyncpg.Pool] = None
        self._pool_lock = asyncio.Lock()
        self._listener: Optional[asyncpg.Connection] = None
        self._change_handler: Optional[ChangeHandler] = None

    # Connection management

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool
        async with self._pool_lock:
            # Concurrent callers wait for the first connect instead of opening their own pools
            if self._pool is None:
                # Retried on every call until the backend becomes reachable
                self._pool = await create_pool(self.database_url)
        return self._pool

    async def _execute(
        self,
        description: str,
        operation: Callable[[asyncpg.Connection], Awaitable[ServiceResult]],
        certificate_number: Optional[str] = None
    ) -> ServiceResult:
        """Run one query on a pooled connection, translating failures into results"""
        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                return await operation(conn)
        except asyncpg.UniqueViolationError as e:
            logger.warning(f"REMOTE: {description} rejected by unique constraint: {e}")
            return duplicate_result(certificate_number or "")
        except asyncpg.PostgresError as e:
            logger.error(f"REMOTE: {description} failed: {e}")
            return ServiceResult(success=False, error=str(e), error_type=EXECUTION_ERROR)
        except Exception as e:
            logger.error(f"REMOTE: {description} failed, backend unreachable: {e}")
            return ServiceResult(success=False, error=str(e), error_type=REMOTE_UNAVAILABLE)

    async def close(self):
        """Close the change feed and the connection pool"""
        await self.unsubscribe_changes()
        pool, self._pool = self._pool, None
        await close_pool(pool)

    async def ping(self) -> ServiceResult:
        """Connectivity check: count the rows of the participant table"""
        async def operation(conn):
            total = await conn.fetchval(f'SELECT count(*) FROM "{self.table}"')
            return ServiceResult(success=True, data=[], count=total)

        return await self._execute("Connection test", operation)

    # RecordStore operations

    async def get_all(self) -> ServiceResult:
        async def operation(conn):
            rows = await conn.fetch(f'SELECT * FROM "{self.table}" ORDER BY created_at DESC, id DESC')
            records = [Participant.model_validate(dict(row)) for row in rows]
            logger.info(f"REMOTE: Fetched {len(records)} participants")
            return records_result(records)

        return await self._execute("Fetch all participants", operation)

    async def find_by_id(self, record_id: int) -> ServiceResult:
        async def operation(conn):
            row = await conn.fetchrow(f'SELECT * FROM "{self.table}" WHERE id = $1', record_id)
            return records_result([Participant.model_validate(dict(row))] if row else [])

        return await self._execute(f"Fetch participant {record_id}", operation)

    async def find_by_certificate(self, certificate_number: str) -> ServiceResult:
        async def operation(conn):
            row = await conn.fetchrow(
                f'SELECT * FROM "{self.table}" '
                f'WHERE lower(btrim(certificate_number)) = lower(btrim($1)) LIMIT 1',
                certificate_number
            )
            if row is None:
                logger.info(f"REMOTE: Certificate '{certificate_number.strip()}' not found")
                return records_result([])
            participant = Participant.model_validate(dict(row))
            logger.info(f"REMOTE: Found certificate '{participant.certificate_number}' for {participant.name}")
            return records_result([participant])

        return await self._execute("Certificate search", operation)

    async def add(self, participant: ParticipantCreate) -> ServiceResult:
        async def operation(conn):
            row = await conn.fetchrow(
                f'INSERT INTO "{self.table}" (certificate_number, name, issue_date, class_name) '
                f'VALUES ($1, $2, $3, $4) RETURNING *',
                participant.certificate_number,
                participant.name,
                participant.issue_date,
                participant.class_name
            )
            record = Participant.model_validate(dict(row))
            logger.info(f"REMOTE: Added participant {record.certificate_number} (id {record.id})")
            return records_result([record])

        return await self._execute(
            f"Insert {participant.certificate_number}", operation, participant.certificate_number
        )

    async def update(self, record_id: int, changes: Dict[str, Any]) -> ServiceResult:
        try:
            fields = writable_changes(changes)
        except ValidationError as e:
            return validation_result(str(e))
        if not fields:
            return validation_result("No fields provided to update")

        assignments = ", ".join(f"{field} = ${index}" for index, field in enumerate(fields, start=1))
        params = list(fields.values())

        async def operation(conn):
            row = await conn.fetchrow(
                f'UPDATE "{self.table}" SET {assignments}, updated_at = NOW() '
                f'WHERE id = ${len(params) + 1} RETURNING *',
                *params,
                record_id
            )
            if row is None:
                return not_found_result(record_id)
            record = Participant.model_validate(dict(row))
            logger.info(f"REMOTE: Updated participant {record.certificate_number} (id {record_id})")
            return records_result([record])

        return await self._execute(
            f"Update participant {record_id}", operation, fields.get("certificate_number")
        )

    async def delete(self, record_id: int) -> ServiceResult:
        async def operation(conn):
            row = await conn.fetchrow(f'DELETE FROM "{self.table}" WHERE id = $1 RETURNING *', record_id)
            if row is None:
                return not_found_result(record_id)
            logger.info(f"REMOTE: Deleted participant id {record_id}")
            return records_result([Participant.model_validate(dict(row))])

        return await self._execute(f"Delete participant {record_id}", operation)

    # Change feed

    @property
    def is_subscribed(self) -> bool:
        return self._listener is not None and not self._listener.is_closed()

    async def subscribe_changes(self, handler: ChangeHandler) -> bool:
        """
        LISTEN on the change channel; handler receives {eventType, new, old}
        for every insert/update/delete on the table, whichever client made it.
        """
        await self.unsubscribe_changes()
        self._change_handler = handler

        try:
            self._listener = await open_listener_connection(self.database_url)
            await self._listener.add_listener(self.channel, self._on_notification)
            self._listener.add_termination_listener(self._on_listener_terminated)
        except Exception as e:
            logger.error(f"REALTIME: Subscription to '{self.channel}' failed: {e}")
            await self.unsubscribe_changes()
            return False

        logger.info(f"REALTIME: Subscribed to '{self.channel}'")
        return True

    async def unsubscribe_changes(self):
        listener, self._listener = self._listener, None
        if listener is None or listener.is_closed():
            return
        try:
            await listener.remove_listener(self.channel, self._on_notification)
            await listener.close()
        except Exception as e:
            logger.warning(f"REALTIME: Error closing listener connection: {e}")
        logger.info(f"REALTIME: Unsubscribed from '{self.channel}'")

    def _on_notification(self, connection, pid, channel, payload):
        try:
            event = json.loads(payload)
        except ValueError:
            logger.error(f"REALTIME: Ignoring malformed notification on '{channel}': {payload!r}")
            return

        logger.info(f"REALTIME: Received change {event.get('eventType')} on '{channel}'")
        if self._change_handler is not None:
            self._change_handler(event)

    def _on_listener_terminated(self, connection):
        logger.warning("REALTIME: Listener connection terminated")
        self._listener = None
