'''
Tests for hedgesync.core.deal_import.
'''

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog

from hedgesync.core.consolidation import ConsolidationConfig
from hedgesync.core.deal_import import (
    DEFAULT_LOOKBACK,
    FailedRecord,
    ImportRequest,
    import_deals,
    summarize,
)
from hedgesync.core.domain import CloseOutcome, Deal, DealType, EntryType, UpsertResult
from hedgesync.infrastructure.collaborators import TransientError

_NOW = datetime(2025, 9, 30, 12, 0, tzinfo=timezone.utc)
_T0 = datetime(2025, 9, 1, 10, 0, tzinfo=timezone.utc)

_DEALS = [
    Deal(
        id='D1', position_id='P1', entry_type=EntryType.ENTRY_IN, type=DealType.BUY,
        time=_T0, symbol='EURUSD', volume=Decimal('1'), price=Decimal('100'),
    ),
    Deal(
        id='D2', position_id='P1', entry_type=EntryType.ENTRY_OUT, type=DealType.SELL,
        time=_T0 + timedelta(hours=1), symbol='EURUSD', volume=Decimal('1'),
        price=Decimal('110'), profit=Decimal('10'), reason='TAKE_PROFIT',
    ),
    Deal(
        id='D3', position_id='P2', entry_type=EntryType.ENTRY_IN, type=DealType.SELL,
        time=_T0, symbol='XAUUSD', volume=Decimal('0.5'), price=Decimal('2500'),
    ),
    Deal(id='D4', entry_type=EntryType.OTHER, type=DealType.OTHER, profit=Decimal('1000')),
]


def _coordinator(results: list[UpsertResult]) -> MagicMock:

    coordinator = MagicMock()
    coordinator.batch_upsert = AsyncMock(return_value=results)
    return coordinator


def _source(deals: list[Deal]) -> MagicMock:

    source = MagicMock()
    source.fetch = AsyncMock(return_value=deals)
    return source


class TestImportRequest:

    def test_default_window(self) -> None:

        start, end = ImportRequest('mt-1', '001XX').window(_NOW)
        assert end == _NOW
        assert start == _NOW - DEFAULT_LOOKBACK

    def test_start_defaults_relative_to_end(self) -> None:

        end = datetime(2025, 6, 1, tzinfo=timezone.utc)
        start, _ = ImportRequest('mt-1', '001XX', end=end).window(_NOW)
        assert start == end - timedelta(days=30)

    def test_start_after_end_rejected(self) -> None:

        request = ImportRequest('mt-1', '001XX', start=_NOW, end=_NOW - timedelta(seconds=1))
        with pytest.raises(ValueError, match='Invalid range'):
            request.window()

    @pytest.mark.parametrize(('feed', 'store'), [('', '001XX'), ('mt-1', ' ')])
    def test_empty_ids_rejected(self, feed: str, store: str) -> None:

        with pytest.raises(ValueError, match='non-empty'):
            ImportRequest(feed, store)

    def test_naive_bounds_rejected(self) -> None:

        with pytest.raises(ValueError, match='timezone-aware'):
            ImportRequest('mt-1', '001XX', start=datetime(2025, 1, 1))


def test_summarize() -> None:

    succeeded, created, updated, failed = summarize([
        UpsertResult(identifier='a1', success=True, created=True),
        UpsertResult(identifier='a2', success=True, created=False),
        UpsertResult(identifier=None, success=False, created=False, errors=('INVALID_FIELD: bad',)),
    ])
    assert (succeeded, created, updated) == (2, 1, 1)
    assert failed == (FailedRecord(index=2, identifier=None, errors=('INVALID_FIELD: bad',)),)


class TestImportDeals:

    @pytest.mark.asyncio
    async def test_full_run(self) -> None:

        source = _source(_DEALS)
        coordinator = _coordinator([
            UpsertResult(identifier='a0H1', success=True, created=True),
            UpsertResult(identifier=None, success=False, created=False, errors=('DUPLICATE_VALUE: dup',)),
        ])
        lookup = {'EURUSD': 'a0C1'}.get

        report = await import_deals(
            ImportRequest('mt-1', '001XX', account_code='ACC7'),
            deal_source=source,
            coordinator=coordinator,
            config=ConsolidationConfig(currency_lookup=lookup),
            now=_NOW,
        )

        source.fetch.assert_awaited_once_with('mt-1', _NOW - DEFAULT_LOOKBACK, _NOW)
        (sent,) = coordinator.batch_upsert.await_args.args
        assert [p.external_key for p in sent] == ['ACC7-P1', 'ACC7-P2']
        assert all(p.account_id == '001XX' for p in sent)
        assert sent[0].outcome == CloseOutcome.TP
        assert sent[0].currency_id == 'a0C1'
        assert sent[1].currency_id is None

        assert report.total_deals == 4
        assert report.consolidated == 2
        assert report.sent == 2
        assert report.succeeded == 1
        assert report.created == 1
        assert report.updated == 0
        assert report.error_count == 1
        assert report.failed[0].index == 1
        assert report.preview == tuple(sent)
        assert report.account_code == 'ACC7'

    @pytest.mark.asyncio
    async def test_without_account_code_keeps_default_keys(self) -> None:

        coordinator = _coordinator([
            UpsertResult(identifier='a0H1', success=True, created=False),
            UpsertResult(identifier='a0H2', success=True, created=False),
        ])
        report = await import_deals(
            ImportRequest('mt-1', '001XX'),
            deal_source=_source(_DEALS),
            coordinator=coordinator,
            now=_NOW,
        )
        (sent,) = coordinator.batch_upsert.await_args.args
        assert [p.external_key for p in sent] == ['AT-P1', 'AT-P2']
        assert report.updated == 2

    @pytest.mark.asyncio
    async def test_preview_is_capped(self) -> None:

        deals = [
            Deal(id=f'D{i}', position_id=f'P{i}', entry_type=EntryType.ENTRY_IN, type=DealType.BUY, time=_T0)
            for i in range(8)
        ]
        coordinator = _coordinator([UpsertResult(identifier=None, success=True, created=True)] * 8)
        report = await import_deals(
            ImportRequest('mt-1', '001XX'), deal_source=_source(deals), coordinator=coordinator, now=_NOW,
        )
        assert len(report.preview) == 5
        assert report.sent == 8

    @pytest.mark.asyncio
    async def test_no_deals_skips_upsert(self) -> None:

        coordinator = _coordinator([])
        report = await import_deals(
            ImportRequest('mt-1', '001XX'), deal_source=_source([]), coordinator=coordinator, now=_NOW,
        )
        coordinator.batch_upsert.assert_not_awaited()
        assert report.total_deals == 0
        assert report.sent == 0
        assert report.results == ()

    @pytest.mark.asyncio
    async def test_invalid_window_fetches_nothing(self) -> None:

        source = _source(_DEALS)
        request = ImportRequest('mt-1', '001XX', start=_NOW, end=_NOW - timedelta(days=1))
        with pytest.raises(ValueError, match='Invalid range'):
            await import_deals(request, deal_source=source, coordinator=_coordinator([]))
        source.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_feed_failure_propagates_and_clears_context(self) -> None:

        source = MagicMock()
        source.fetch = AsyncMock(side_effect=TransientError('Deal feed request failed'))
        with pytest.raises(TransientError):
            await import_deals(
                ImportRequest('mt-1', '001XX'), deal_source=source, coordinator=_coordinator([]), now=_NOW,
            )
        assert structlog.contextvars.get_contextvars() == {}
