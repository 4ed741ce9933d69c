'''
MetaApi history-deals client implementing the DealSource protocol.

Fetch executed deals of a MetaTrader account for a time window from
the MetaApi client REST API and normalise them into Deal objects.
'''

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import aiohttp
import orjson

from hedgesync.core.domain.deal import Deal
from hedgesync.infrastructure.collaborators import (
    AuthenticationError,
    CollaboratorError,
    RateLimitError,
    RequestRejectedError,
    TransientError,
)

__all__ = ['DEFAULT_METAAPI_BASE', 'MetaApiDealFeed', 'format_instant']

DEFAULT_METAAPI_BASE = 'https://mt-client-api-v1.london.agiliumtrade.ai'

_TOKEN_HEADER = 'auth-token'
_SESSION_TIMEOUT = aiohttp.ClientTimeout(total=60)
_HTTP_BAD_REQUEST = 400
_HTTP_UNAUTHORIZED = 401
_HTTP_FORBIDDEN = 403
_HTTP_TOO_MANY = 429
_HTTP_SERVER_ERROR = 500

_log = logging.getLogger(__name__)


def format_instant(value: datetime) -> str:

    '''
    Render an aware datetime as an ISO 8601 UTC string with millisecond precision.

    Args:
        value (datetime): Timezone-aware instant

    Returns:
        str: e.g. 2025-09-01T00:00:00.000Z
    '''

    if value.tzinfo is None or value.utcoffset() is None:
        msg = 'format_instant requires a timezone-aware datetime'
        raise ValueError(msg)

    utc = value.astimezone(timezone.utc)
    return f"{utc.strftime('%Y-%m-%dT%H:%M:%S')}.{utc.microsecond // 1000:03d}Z"


class MetaApiDealFeed:

    '''
    MetaApi REST client for MetaTrader deal history.

    Args:
        token (str): MetaApi auth token
        base_url (str): MetaApi client API base URL
    '''

    def __init__(self, token: str, base_url: str = DEFAULT_METAAPI_BASE) -> None:

        if not token:
            msg = 'MetaApiDealFeed.token must be a non-empty string'
            raise ValueError(msg)

        self._token = token
        self._base_url = base_url.rstrip('/')
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> MetaApiDealFeed:

        await self._ensure_session()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:

        await self.close()

    async def close(self) -> None:

        '''Close the HTTP session if it exists.'''

        if self._session:
            session = self._session
            self._session = None
            if not session.closed:
                await session.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:

        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=_SESSION_TIMEOUT)
        return self._session

    def _deals_url(self, account_id: str, start: datetime, end: datetime) -> str:

        return (
            f'{self._base_url}/users/current/accounts/{quote(account_id, safe="")}'
            f'/history-deals/time/{format_instant(start)}/{format_instant(end)}'
        )

    async def _raise_on_error(self, response: aiohttp.ClientResponse) -> None:

        '''
        Raise a CollaboratorError subclass if the HTTP response indicates failure.

        Args:
            response (aiohttp.ClientResponse): HTTP response to inspect
        '''

        if response.status < _HTTP_BAD_REQUEST:
            return

        if response.status in (_HTTP_UNAUTHORIZED, _HTTP_FORBIDDEN):
            msg = f'MetaApi authentication failed: HTTP {response.status}'
            raise AuthenticationError(msg)

        if response.status == _HTTP_TOO_MANY:
            msg = f'MetaApi rate limited: HTTP {response.status}'
            raise RateLimitError(msg)

        if response.status >= _HTTP_SERVER_ERROR:
            msg = f'MetaApi server error: HTTP {response.status}'
            raise TransientError(msg)

        try:
            body = await response.json(content_type=None)
            code = str(body['error'])
            reason = str(body['message'])
        except (ValueError, KeyError, TypeError, aiohttp.ClientError):
            code = 'UNKNOWN'
            reason = f'HTTP {response.status}'

        msg = f'MetaApi rejected request: {reason} (code {code})'
        raise RequestRejectedError(msg, status=response.status, code=code)

    async def fetch(self, account_id: str, start: datetime, end: datetime) -> list[Deal]:

        '''
        Fetch deals executed on an account within a time window.

        A body that is not a JSON list is treated as no deals. Entries
        that are not JSON objects are skipped.

        Args:
            account_id (str): MetaApi account identifier
            start (datetime): Window start, timezone-aware
            end (datetime): Window end, timezone-aware

        Returns:
            list[Deal]: Deals in feed order
        '''

        http = await self._ensure_session()
        url = self._deals_url(account_id, start, end)

        try:
            async with http.get(url, headers={_TOKEN_HEADER: self._token}) as response:
                await self._raise_on_error(response)
                data: Any = await response.json(content_type=None, loads=orjson.loads)
        except CollaboratorError:
            raise
        except (aiohttp.ClientError, TimeoutError, ValueError) as exc:
            msg = f'Deal feed request failed: {exc}'
            raise TransientError(msg) from exc

        if not isinstance(data, list):
            _log.warning('deal feed returned %s instead of a list', type(data).__name__)
            return []

        deals = [Deal.from_payload(entry) for entry in data if isinstance(entry, dict)]
        _log.info('fetched %d deals for account=%s', len(deals), account_id)
        return deals
