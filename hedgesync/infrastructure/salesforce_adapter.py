'''
Salesforce REST adapter implementing login, upsert, and query.

Handle OAuth password-grant login, composite sObject batch upsert by
external ID, paginated SOQL queries, and error normalisation for the
Salesforce REST API. All Salesforce-specific logic is encapsulated
here; callers pass the StoreSession explicitly on every call.
'''

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import aiohttp
import orjson

from hedgesync.core.domain.hedge import HEDGE_SOBJECT
from hedgesync.core.domain.upsert_result import UpsertResult
from hedgesync.infrastructure.collaborators import (
    AuthenticationError,
    CollaboratorError,
    RateLimitError,
    RecordStoreError,
    RequestRejectedError,
    StoreSession,
    TransientError,
)

__all__ = ['SalesforceAdapter']

_API_VERSION = 'v60.0'
_SESSION_TIMEOUT = aiohttp.ClientTimeout(total=60)
_TOKEN_PATH = '/services/oauth2/token'
_HTTP_BAD_REQUEST = 400
_HTTP_UNAUTHORIZED = 401
_HTTP_TOO_MANY = 429
_HTTP_SERVER_ERROR = 500
_REQUEST_LIMIT_CODE = 'REQUEST_LIMIT_EXCEEDED'
_UNKNOWN_CODE = 'UNKNOWN'

_log = logging.getLogger(__name__)


class SalesforceAdapter:

    '''
    Salesforce REST adapter implementing Authenticator and RecordStore.

    Args:
        login_url (str): OAuth login host, e.g. https://login.salesforce.com
        client_id (str): Connected app consumer key
        client_secret (str): Connected app consumer secret
        username (str): Integration user name
        password (str): Integration user password plus security token
        grant_type (str): OAuth grant type
        sobject (str): sObject type records are upserted into
        api_version (str): REST API version segment
    '''

    def __init__(
        self,
        login_url: str,
        client_id: str,
        client_secret: str,
        username: str,
        password: str,
        *,
        grant_type: str = 'password',
        sobject: str = HEDGE_SOBJECT,
        api_version: str = _API_VERSION,
    ) -> None:

        self._login_url = login_url.rstrip('/')
        self._credentials = {
            'grant_type': grant_type,
            'client_id': client_id,
            'client_secret': client_secret,
            'username': username,
            'password': password,
        }
        self._sobject = sobject
        self._api_version = api_version
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> SalesforceAdapter:

        '''
        Create the HTTP session on context manager entry.

        Returns:
            SalesforceAdapter: Self for use in async with block
        '''

        await self._ensure_session()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:

        '''Close the HTTP session on context manager exit.'''

        await self.close()

    async def close(self) -> None:

        '''Close the HTTP session if it exists.'''

        if self._session:
            session = self._session
            self._session = None
            if not session.closed:
                await session.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:

        '''
        Return existing session or create a new one lazily.

        Returns:
            aiohttp.ClientSession: Active HTTP session
        '''

        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=_SESSION_TIMEOUT)
        return self._session

    def _data_url(self, session: StoreSession, path: str) -> str:

        return f"{session.base_url.rstrip('/')}/services/data/{self._api_version}{path}"

    @staticmethod
    def _auth_headers(session: StoreSession) -> dict[str, str]:

        return {
            'Authorization': f'Bearer {session.access_token}',
            'Content-Type': 'application/json',
        }

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:

        '''
        Execute one HTTP request and return the parsed JSON body.

        No retries: callers decide how to react to each error class.

        Args:
            method (str): HTTP method
            url (str): Absolute request URL
            **kwargs (Any): Passed through to aiohttp request

        Returns:
            Any: Parsed JSON response body

        Raises:
            TransientError: On transport failure or timeout
            RecordStoreError: If the body is not valid JSON
        '''

        http = await self._ensure_session()

        try:
            async with http.request(method, url, **kwargs) as response:
                await self._raise_on_error(response)
                return await response.json(content_type=None, loads=orjson.loads)
        except CollaboratorError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            msg = f'Request failed: {exc}'
            raise TransientError(msg) from exc
        except ValueError as exc:
            msg = f'Malformed response from {method} {url}: {exc}'
            raise RecordStoreError(msg) from exc

    async def _raise_on_error(self, response: aiohttp.ClientResponse) -> None:

        '''
        Raise a CollaboratorError subclass if the HTTP response indicates failure.

        Args:
            response (aiohttp.ClientResponse): HTTP response to inspect
        '''

        if response.status < _HTTP_BAD_REQUEST:
            return

        code, reason = await self._error_details(response)

        if response.status == _HTTP_UNAUTHORIZED:
            msg = f'Authentication failed: HTTP {response.status} ({code})'
            raise AuthenticationError(msg)

        if response.status == _HTTP_TOO_MANY or code == _REQUEST_LIMIT_CODE:
            msg = f'Rate limited: HTTP {response.status} ({code})'
            raise RateLimitError(msg)

        if response.status >= _HTTP_SERVER_ERROR:
            msg = f'Record store server error: HTTP {response.status}'
            raise TransientError(msg)

        msg = f'Request rejected: {reason} (code {code})'
        raise RequestRejectedError(msg, status=response.status, code=code)

    @staticmethod
    async def _error_details(response: aiohttp.ClientResponse) -> tuple[str, str]:

        '''
        Extract error code and message from a Salesforce error body.

        REST errors arrive as a list of {errorCode, message} objects,
        OAuth errors as a single {error, error_description} object.

        Args:
            response (aiohttp.ClientResponse): Failed HTTP response

        Returns:
            tuple[str, str]: Error code and message
        '''

        try:
            body = await response.json(content_type=None)
        except (ValueError, aiohttp.ClientError):
            return _UNKNOWN_CODE, f'HTTP {response.status}'

        if isinstance(body, list) and body and isinstance(body[0], dict):
            body = body[0]

        if not isinstance(body, dict):
            return _UNKNOWN_CODE, f'HTTP {response.status}'

        code = body.get('errorCode') or body.get('error') or _UNKNOWN_CODE
        reason = body.get('message') or body.get('error_description') or f'HTTP {response.status}'
        return str(code), str(reason)

    async def login(self) -> StoreSession:

        '''
        Obtain an access token with the OAuth password grant.

        Returns:
            StoreSession: Instance URL and access token

        Raises:
            AuthenticationError: If the credentials are rejected
        '''

        try:
            data = await self._request(
                'POST',
                f'{self._login_url}{_TOKEN_PATH}',
                data=self._credentials,
                headers={'Content-Type': 'application/x-www-form-urlencoded'},
            )
        except RequestRejectedError as exc:
            msg = f'Login rejected: {exc.message}'
            raise AuthenticationError(msg) from exc

        try:
            return StoreSession(
                base_url=str(data['instance_url']),
                access_token=str(data['access_token']),
            )
        except (KeyError, TypeError, ValueError) as exc:
            msg = f'Login response missing instance_url or access_token: {exc}'
            raise RecordStoreError(msg) from exc

    async def upsert(
        self,
        session: StoreSession,
        external_key_field: str,
        records: Sequence[dict[str, Any]],
    ) -> list[UpsertResult]:

        '''
        Upsert records by external ID with partial-success semantics.

        Args:
            session (StoreSession): Authenticated session
            external_key_field (str): External ID field name
            records (Sequence[dict[str, Any]]): At most 200 sObject records

        Returns:
            list[UpsertResult]: One result per record, in request order
        '''

        url = self._data_url(
            session, f'/composite/sobjects/{self._sobject}/{external_key_field}',
        )
        body = orjson.dumps({'allOrNone': False, 'records': list(records)})
        data = await self._request('PATCH', url, data=body, headers=self._auth_headers(session))

        if not isinstance(data, list):
            msg = f'Upsert response is not a list: {type(data).__name__}'
            raise RecordStoreError(msg)

        return [UpsertResult.from_payload(entry) for entry in data]

    async def query(self, session: StoreSession, soql: str) -> list[dict[str, Any]]:

        '''
        Run a SOQL query and follow pagination to the last page.

        Args:
            session (StoreSession): Authenticated session
            soql (str): Query text

        Returns:
            list[dict[str, Any]]: All returned records
        '''

        records: list[dict[str, Any]] = []
        headers = self._auth_headers(session)
        data = await self._request(
            'GET', self._data_url(session, '/query'), params={'q': soql}, headers=headers,
        )

        while True:
            if not isinstance(data, dict):
                msg = f'Query response is not an object: {type(data).__name__}'
                raise RecordStoreError(msg)

            records.extend(data.get('records') or [])
            next_url = data.get('nextRecordsUrl')
            if not next_url:
                break

            _log.debug('following query pagination: %s', next_url)
            data = await self._request(
                'GET', f"{session.base_url.rstrip('/')}{next_url}", headers=headers,
            )

        return records
