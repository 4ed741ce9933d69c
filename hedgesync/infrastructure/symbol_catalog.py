'''
Cached symbol name to record-store identifier lookup.

SymbolCatalog loads the Currency__c table once, serves synchronous
case-insensitive lookups from memory, and is refreshed by the caller
when the cache outlives its TTL. resolve() is the SymbolLookup passed
to consolidation.
'''

from __future__ import annotations

import logging
import time

from hedgesync.infrastructure.collaborators import CollaboratorError
from hedgesync.infrastructure.salesforce_adapter import SalesforceAdapter
from hedgesync.infrastructure.session import SessionManager

__all__ = ['DEFAULT_TTL_SECONDS', 'SymbolCatalog']

DEFAULT_TTL_SECONDS = 300

_CURRENCY_SOQL = 'SELECT Id, Name FROM Currency__c'

_log = logging.getLogger(__name__)


class SymbolCatalog:

    '''
    In-memory cache of Currency__c names to Salesforce Ids.

    Args:
        client (SalesforceAdapter): Adapter used for the SOQL query
        sessions (SessionManager): Session holder for the query
        ttl_seconds (float): Age after which ensure_fresh() reloads
    '''

    def __init__(
        self,
        client: SalesforceAdapter,
        sessions: SessionManager,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
    ) -> None:

        if ttl_seconds <= 0:
            msg = 'SymbolCatalog.ttl_seconds must be positive'
            raise ValueError(msg)

        self._client = client
        self._sessions = sessions
        self._ttl_seconds = ttl_seconds
        self._cache: dict[str, str] = {}
        self._loaded_at: float | None = None

    def __len__(self) -> int:

        return len(self._cache)

    @property
    def is_stale(self) -> bool:

        '''Return True if the cache was never loaded or has outlived its TTL.'''

        if self._loaded_at is None:
            return True
        return time.monotonic() - self._loaded_at >= self._ttl_seconds

    async def refresh(self) -> int:

        '''
        Reload the whole catalog, replacing the cache atomically.

        Returns:
            int: Number of cached symbols

        Raises:
            CollaboratorError: If the query fails, the previous cache is kept
        '''

        session = await self._sessions.get()
        rows = await self._client.query(session, _CURRENCY_SOQL)

        cache: dict[str, str] = {}
        for row in rows:
            name = str(row.get('Name') or '').strip()
            record_id = str(row.get('Id') or '').strip()
            if name and record_id:
                cache[name.lower()] = record_id

        self._cache = cache
        self._loaded_at = time.monotonic()
        _log.info('symbol catalog loaded %d symbols', len(cache))
        return len(cache)

    async def ensure_fresh(self) -> None:

        '''Refresh when stale, keeping the previous cache if the reload fails.'''

        if not self.is_stale:
            return

        try:
            await self.refresh()
        except CollaboratorError as exc:
            _log.warning('symbol catalog refresh failed, serving %d cached symbols: %s', len(self._cache), exc)

    def resolve(self, symbol: str) -> str | None:

        '''
        Return the Salesforce Id for a symbol name.

        Args:
            symbol (str): Symbol name, matched case-insensitively

        Returns:
            str | None: Record Id, None when unknown
        '''

        if not symbol:
            return None
        return self._cache.get(str(symbol).strip().lower())
