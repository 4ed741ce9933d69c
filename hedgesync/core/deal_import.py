'''
Import pipeline from venue deal history to record-store hedges.

Fetch deals for a window, consolidate them per position, scope every
record to the owning record-store account, upsert in batches, and
summarise per-record outcomes. Transport concerns (HTTP routing,
request auth) stay with the caller.
'''

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone

from hedgesync.core.batch_upsert import BatchUpsertCoordinator
from hedgesync.core.consolidation import ConsolidationConfig, consolidate
from hedgesync.core.domain._validation import require_text
from hedgesync.core.domain.hedge import ConsolidatedPosition
from hedgesync.core.domain.upsert_result import UpsertResult
from hedgesync.infrastructure.collaborators import DealSource
from hedgesync.infrastructure.observability import bind_context, clear_context

__all__ = [
    'DEFAULT_LOOKBACK',
    'FailedRecord',
    'ImportReport',
    'ImportRequest',
    'import_deals',
    'summarize',
]

DEFAULT_LOOKBACK = timedelta(days=30)
_PREVIEW_SIZE = 5

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportRequest:

    '''
    Parameters of one import run.

    Args:
        feed_account_id (str): Venue account whose deals are fetched.
        store_account_id (str): Record-store account owning the hedges.
        account_code (str): Prefix of scoped external keys, empty keeps the default key.
        start (datetime | None): Window start, defaults to end minus 30 days.
        end (datetime | None): Window end, defaults to now.
    '''

    feed_account_id: str
    store_account_id: str
    account_code: str = ''
    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:

        '''Validate invariants at construction time.'''

        require_text(self, 'feed_account_id', 'store_account_id')

        for name in ('start', 'end'):
            value = getattr(self, name)
            if value is not None and (value.tzinfo is None or value.utcoffset() is None):
                msg = f'ImportRequest.{name} must be timezone-aware'
                raise ValueError(msg)

    def window(self, now: datetime | None = None) -> tuple[datetime, datetime]:

        '''
        Resolve the fetch window, applying defaults.

        Args:
            now (datetime | None): Reference time, defaults to the current UTC time

        Returns:
            tuple[datetime, datetime]: Start and end of the window

        Raises:
            ValueError: If start is after end
        '''

        end = self.end or now or datetime.now(timezone.utc)
        start = self.start or end - DEFAULT_LOOKBACK

        if start > end:
            msg = "Invalid range: 'start' must be <= 'end'"
            raise ValueError(msg)

        return start, end


@dataclass(frozen=True)
class FailedRecord:

    '''
    A record the store did not commit.

    Args:
        index (int): Position in the upserted sequence.
        identifier (str | None): Record-store identifier, if any.
        errors (tuple[str, ...]): Store-reported errors.
    '''

    index: int
    identifier: str | None
    errors: tuple[str, ...]


@dataclass(frozen=True)
class ImportReport:

    '''
    Summary of one import run.

    Args:
        feed_account_id (str): Venue account imported.
        store_account_id (str): Record-store account written to.
        account_code (str): Key prefix used for scoping.
        start (datetime): Window start.
        end (datetime): Window end.
        total_deals (int): Deals returned by the feed.
        consolidated (int): Positions produced by consolidation.
        sent (int): Records sent to the store.
        succeeded (int): Records committed.
        created (int): Records inserted.
        updated (int): Records updated.
        failed (tuple[FailedRecord, ...]): Records reporting errors.
        results (tuple[UpsertResult, ...]): Raw per-record results.
        preview (tuple[ConsolidatedPosition, ...]): First scoped records sent.
    '''

    feed_account_id: str
    store_account_id: str
    account_code: str
    start: datetime
    end: datetime
    total_deals: int
    consolidated: int = 0
    sent: int = 0
    succeeded: int = 0
    created: int = 0
    updated: int = 0
    failed: tuple[FailedRecord, ...] = ()
    results: tuple[UpsertResult, ...] = ()
    preview: tuple[ConsolidatedPosition, ...] = ()

    @property
    def error_count(self) -> int:

        '''Return the number of records that reported errors.'''

        return len(self.failed)


def summarize(results: list[UpsertResult]) -> tuple[int, int, int, tuple[FailedRecord, ...]]:

    '''
    Aggregate per-record upsert outcomes.

    Args:
        results (list[UpsertResult]): Results in upsert order

    Returns:
        tuple[int, int, int, tuple[FailedRecord, ...]]: Succeeded,
            created, updated counts and the records that reported errors
    '''

    succeeded = sum(1 for r in results if r.success)
    created = sum(1 for r in results if r.created)
    updated = sum(1 for r in results if r.success and not r.created)
    failed = tuple(
        FailedRecord(index=i, identifier=r.identifier, errors=r.errors)
        for i, r in enumerate(results)
        if r.errors
    )
    return succeeded, created, updated, failed


async def import_deals(
    request: ImportRequest,
    *,
    deal_source: DealSource,
    coordinator: BatchUpsertCoordinator,
    config: ConsolidationConfig | None = None,
    now: datetime | None = None,
) -> ImportReport:

    '''
    Run one import from deal feed to record store.

    Args:
        request (ImportRequest): Accounts, key prefix, and window
        deal_source (DealSource): Venue deal feed
        coordinator (BatchUpsertCoordinator): Record-store upsert driver
        config (ConsolidationConfig | None): Consolidation configuration
        now (datetime | None): Reference time for the default window

    Returns:
        ImportReport: Counts and per-record outcomes

    Raises:
        ValueError: If the window is invalid
        CollaboratorError: If the feed or the store fails
    '''

    start, end = request.window(now)
    bind_context(
        feed_account_id=request.feed_account_id,
        store_account_id=request.store_account_id,
    )

    try:
        deals = await deal_source.fetch(request.feed_account_id, start, end)
        report = ImportReport(
            feed_account_id=request.feed_account_id,
            store_account_id=request.store_account_id,
            account_code=request.account_code,
            start=start,
            end=end,
            total_deals=len(deals),
        )

        if not deals:
            _log.info('no deals returned for the requested window')
            return report

        positions = consolidate(deals, config)
        scoped = [
            p.with_account(request.store_account_id, request.account_code)
            for p in positions
        ]
        results = await coordinator.batch_upsert(scoped)
        succeeded, created, updated, failed = summarize(results)

        _log.info(
            'import finished: %d deals, %d positions, %d succeeded, %d failed',
            len(deals), len(positions), succeeded, len(failed),
        )

        return replace(
            report,
            consolidated=len(positions),
            sent=len(scoped),
            succeeded=succeeded,
            created=created,
            updated=updated,
            failed=failed,
            results=tuple(results),
            preview=tuple(scoped[:_PREVIEW_SIZE]),
        )
    finally:
        clear_context()
