'''
Tests for hedgesync.infrastructure.metaapi_feed.
'''

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from hedgesync.core.domain import EntryType
from hedgesync.infrastructure.collaborators import (
    AuthenticationError,
    DealSource,
    RateLimitError,
    RequestRejectedError,
    TransientError,
)
from hedgesync.infrastructure.metaapi_feed import MetaApiDealFeed, format_instant

_BASE = 'https://metaapi.example'
_START = datetime(2025, 9, 1, tzinfo=timezone.utc)
_END = datetime(2025, 9, 2, 12, 30, 15, 250000, tzinfo=timezone.utc)


def _mock_response(status: int, data: Any = None) -> AsyncMock:

    resp = AsyncMock()
    resp.status = status
    resp.json = AsyncMock(return_value=data)
    return resp


def _patch_session(feed: MetaApiDealFeed, response: AsyncMock) -> MagicMock:

    '''
    Inject a mock session whose get() yields the response.

    Args:
        feed (MetaApiDealFeed): Feed to patch
        response (AsyncMock): Mock response

    Returns:
        MagicMock: The injected session
    '''

    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)
    session = MagicMock()
    session.get = MagicMock(return_value=ctx)
    session.closed = False
    feed._session = session
    return session


class TestFormatInstant:

    def test_millisecond_precision(self) -> None:

        assert format_instant(_END) == '2025-09-02T12:30:15.250Z'

    def test_converts_to_utc(self) -> None:

        local = datetime(2025, 9, 1, 2, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_instant(local) == '2025-09-01T00:00:00.000Z'

    def test_naive_rejected(self) -> None:

        with pytest.raises(ValueError, match='timezone-aware'):
            format_instant(datetime(2025, 9, 1))


def test_empty_token_rejected() -> None:

    with pytest.raises(ValueError, match='token'):
        MetaApiDealFeed('')


def test_satisfies_protocol() -> None:

    assert isinstance(MetaApiDealFeed('token'), DealSource)


class TestFetch:

    @pytest.mark.asyncio
    async def test_builds_url_and_parses_deals(self) -> None:

        feed = MetaApiDealFeed('secret-token', _BASE)
        session = _patch_session(feed, _mock_response(200, [
            {'id': '1', 'positionId': 'P1', 'entryType': 'DEAL_ENTRY_IN', 'type': 'DEAL_TYPE_BUY', 'volume': 1},
            {'id': '2', 'type': 'DEAL_TYPE_BALANCE', 'profit': 100},
            'garbage',
        ]))

        deals = await feed.fetch('acc/1', _START, _END)

        assert [d.id for d in deals] == ['1', '2']
        assert deals[0].entry_type == EntryType.ENTRY_IN
        assert deals[1].entry_type == EntryType.OTHER
        url = session.get.call_args.args[0]
        assert url == (
            f'{_BASE}/users/current/accounts/acc%2F1/history-deals/time/'
            '2025-09-01T00:00:00.000Z/2025-09-02T12:30:15.250Z'
        )
        assert session.get.call_args.kwargs['headers'] == {'auth-token': 'secret-token'}

    @pytest.mark.asyncio
    async def test_non_list_body_is_empty(self) -> None:

        feed = MetaApiDealFeed('token', _BASE)
        _patch_session(feed, _mock_response(200, {'deals': []}))
        assert await feed.fetch('acc', _START, _END) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize('status', [401, 403])
    async def test_auth_errors(self, status: int) -> None:

        feed = MetaApiDealFeed('token', _BASE)
        _patch_session(feed, _mock_response(status))
        with pytest.raises(AuthenticationError):
            await feed.fetch('acc', _START, _END)

    @pytest.mark.asyncio
    async def test_rate_limited(self) -> None:

        feed = MetaApiDealFeed('token', _BASE)
        _patch_session(feed, _mock_response(429))
        with pytest.raises(RateLimitError):
            await feed.fetch('acc', _START, _END)

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self) -> None:

        feed = MetaApiDealFeed('token', _BASE)
        _patch_session(feed, _mock_response(502))
        with pytest.raises(TransientError):
            await feed.fetch('acc', _START, _END)

    @pytest.mark.asyncio
    async def test_not_found_is_rejected(self) -> None:

        feed = MetaApiDealFeed('token', _BASE)
        _patch_session(feed, _mock_response(404, {'error': 'NotFoundError', 'message': 'Account not found'}))
        with pytest.raises(RequestRejectedError) as exc_info:
            await feed.fetch('acc', _START, _END)
        assert exc_info.value.status == 404
        assert exc_info.value.code == 'NotFoundError'
        assert 'Account not found' in exc_info.value.message

    @pytest.mark.asyncio
    async def test_network_error_is_transient(self) -> None:

        feed = MetaApiDealFeed('token', _BASE)
        session = MagicMock()
        session.get = MagicMock(side_effect=aiohttp.ClientError('refused'))
        session.closed = False
        feed._session = session
        with pytest.raises(TransientError, match='refused'):
            await feed.fetch('acc', _START, _END)


@pytest.mark.asyncio
async def test_context_manager_closes_session() -> None:

    async with MetaApiDealFeed('token', _BASE) as feed:
        assert feed._session is not None
    assert feed._session is None
