'''
Tests for hedgesync.infrastructure.session.SessionManager.
'''

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from hedgesync.infrastructure.collaborators import AuthenticationError, StoreSession
from hedgesync.infrastructure.session import SessionManager

_FIRST = StoreSession(base_url='https://a.my.salesforce.com', access_token='t1')
_SECOND = StoreSession(base_url='https://a.my.salesforce.com', access_token='t2')


def _authenticator(*sessions: StoreSession) -> AsyncMock:

    authenticator = AsyncMock()
    authenticator.login = AsyncMock(side_effect=list(sessions))
    return authenticator


@pytest.mark.asyncio
async def test_get_logs_in_lazily() -> None:

    authenticator = _authenticator(_FIRST)
    manager = SessionManager(authenticator)
    assert manager.current is None

    assert await manager.get() == _FIRST
    assert await manager.get() == _FIRST
    authenticator.login.assert_awaited_once()
    assert manager.current == _FIRST


@pytest.mark.asyncio
async def test_preestablished_session_skips_login() -> None:

    authenticator = _authenticator()
    manager = SessionManager(authenticator, _FIRST)
    assert await manager.get() == _FIRST
    authenticator.login.assert_not_awaited()


@pytest.mark.asyncio
async def test_refresh_replaces_session() -> None:

    authenticator = _authenticator(_SECOND)
    manager = SessionManager(authenticator, _FIRST)
    assert await manager.refresh() == _SECOND
    assert manager.current == _SECOND


@pytest.mark.asyncio
async def test_concurrent_get_logs_in_once() -> None:

    authenticator = _authenticator(_FIRST, _SECOND)
    manager = SessionManager(authenticator)
    results = await asyncio.gather(*(manager.get() for _ in range(5)))
    assert results == [_FIRST] * 5
    authenticator.login.assert_awaited_once()


@pytest.mark.asyncio
async def test_failed_login_propagates_and_leaves_no_session() -> None:

    authenticator = AsyncMock()
    authenticator.login = AsyncMock(side_effect=AuthenticationError('Login rejected'))
    manager = SessionManager(authenticator, _FIRST)
    with pytest.raises(AuthenticationError):
        await manager.refresh()
    assert manager.current is None
