'''
Record-store session holder injected into session consumers.

Replaces process-wide auth state: the SessionManager owns the current
StoreSession and is the only object that logs in. Consumers read the
session before each call and ask for a refresh after an
authentication failure.
'''

from __future__ import annotations

import asyncio
import logging

from hedgesync.infrastructure.collaborators import Authenticator, StoreSession

__all__ = ['SessionManager']

_log = logging.getLogger(__name__)


class SessionManager:

    '''
    Hold the current record-store session and log in on demand.

    Args:
        authenticator (Authenticator): Login collaborator
        session (StoreSession | None): Pre-established session, if any
    '''

    def __init__(
        self,
        authenticator: Authenticator,
        session: StoreSession | None = None,
    ) -> None:

        self._authenticator = authenticator
        self._session = session
        self._lock = asyncio.Lock()

    @property
    def current(self) -> StoreSession | None:

        '''Return the held session without logging in.'''

        return self._session

    async def get(self) -> StoreSession:

        '''
        Return the held session, logging in first if there is none.

        Returns:
            StoreSession: Active session
        '''

        if self._session is not None:
            return self._session

        async with self._lock:
            if self._session is None:
                self._session = await self._login()
            return self._session

    async def refresh(self) -> StoreSession:

        '''
        Discard the held session and log in again.

        Returns:
            StoreSession: Newly issued session
        '''

        async with self._lock:
            self._session = None
            self._session = await self._login()
            return self._session

    async def _login(self) -> StoreSession:

        session = await self._authenticator.login()
        _log.info('record store login succeeded base_url=%s', session.base_url)
        return session
