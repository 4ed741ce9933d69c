'''
Batch upsert of consolidated positions into the record store.

Records are sent in batches of at most 200 with partial-success
semantics, one batch at a time. An authentication failure triggers
exactly one re-login and one retry of the same batch. Every other
failure propagates to the caller unretried.
'''

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from hedgesync.core.domain.hedge import ConsolidatedPosition
from hedgesync.core.domain.upsert_result import UpsertResult
from hedgesync.infrastructure.collaborators import (
    AuthenticationError,
    RecordStore,
    RecordStoreError,
    StoreSession,
)
from hedgesync.infrastructure.session import SessionManager

__all__ = ['BatchUpsertCoordinator', 'EXTERNAL_KEY_FIELD', 'MAX_BATCH_SIZE', 'chunk']

_log = logging.getLogger(__name__)

# Record-store limit on records per composite request.
MAX_BATCH_SIZE = 200

EXTERNAL_KEY_FIELD = 'UUID_Text__c'


def chunk(items: Sequence[Any], size: int) -> list[Sequence[Any]]:

    '''
    Split a sequence into consecutive slices of at most size items.

    Args:
        items (Sequence[Any]): Items to split
        size (int): Maximum slice length, must be positive

    Returns:
        list[Sequence[Any]]: Slices in original order
    '''

    if size <= 0:
        msg = 'chunk size must be positive'
        raise ValueError(msg)

    return [items[i:i + size] for i in range(0, len(items), size)]


class BatchUpsertCoordinator:

    '''
    Drive the batched, idempotent upsert of consolidated positions.

    Args:
        store (RecordStore): Record-store upsert collaborator
        sessions (SessionManager): Session holder used for login and refresh
        external_key_field (str): Record field carrying the idempotency key
    '''

    def __init__(
        self,
        store: RecordStore,
        sessions: SessionManager,
        *,
        external_key_field: str = EXTERNAL_KEY_FIELD,
    ) -> None:

        self._store = store
        self._sessions = sessions
        self._external_key_field = external_key_field

    async def batch_upsert(self, records: Sequence[ConsolidatedPosition]) -> list[UpsertResult]:

        '''
        Upsert records and return one result per record in input order.

        Args:
            records (Sequence[ConsolidatedPosition]): Records to persist

        Returns:
            list[UpsertResult]: Per-record outcomes, order-preserving

        Raises:
            AuthenticationError: If a batch is rejected again after re-login
            CollaboratorError: On any other store failure, unretried
        '''

        if not records:
            return []

        payload = [record.to_record() for record in records]
        batches = chunk(payload, MAX_BATCH_SIZE)
        results: list[UpsertResult] = []

        session = await self._sessions.get()

        for index, batch in enumerate(batches, start=1):
            session, batch_results = await self._upsert_batch(session, batch)
            succeeded = sum(1 for r in batch_results if r.success)
            _log.info(
                'upserted batch %d/%d: %d records, %d succeeded',
                index, len(batches), len(batch), succeeded,
            )
            results.extend(batch_results)

        return results

    async def _upsert_batch(
        self,
        session: StoreSession,
        batch: Sequence[dict[str, Any]],
    ) -> tuple[StoreSession, list[UpsertResult]]:

        '''
        Send one batch, re-logging in and retrying once on auth failure.

        Args:
            session (StoreSession): Session to use for the first attempt
            batch (Sequence[dict[str, Any]]): Rendered records

        Returns:
            tuple[StoreSession, list[UpsertResult]]: Session in effect
                after the call and the batch results
        '''

        try:
            batch_results = await self._store.upsert(session, self._external_key_field, batch)
        except AuthenticationError as exc:
            _log.warning('record store rejected access token, logging in again: %s', exc)
            session = await self._sessions.refresh()
            batch_results = await self._store.upsert(session, self._external_key_field, batch)

        if len(batch_results) != len(batch):
            msg = f'Upsert returned {len(batch_results)} results for {len(batch)} records'
            raise RecordStoreError(msg)

        return session, batch_results
