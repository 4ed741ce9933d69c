'''
Collaborator protocols, session type, and error taxonomy.

Define the interfaces the consolidation core consumes: the deal feed,
the record-store login and upsert endpoints, and symbol lookup.
Concrete adapters (MetaApi, Salesforce) implement these protocols and
raise the CollaboratorError subclasses declared here.
'''

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from hedgesync.core.domain.deal import Deal
    from hedgesync.core.domain.upsert_result import UpsertResult


__all__ = [
    'AuthenticationError',
    'Authenticator',
    'CollaboratorError',
    'DealSource',
    'RateLimitError',
    'RecordStore',
    'RecordStoreError',
    'RequestRejectedError',
    'StoreSession',
    'SymbolLookup',
    'TransientError',
]


def _utc_now() -> datetime:

    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StoreSession:

    '''
    Authenticated record-store session returned by a login.

    Args:
        base_url (str): Instance URL all API paths are resolved against
        access_token (str): Bearer token for API calls
        issued_at (datetime): When the token was obtained
    '''

    base_url: str
    access_token: str = field(repr=False)
    issued_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:

        '''Validate invariants at construction time.'''

        for name in ('base_url', 'access_token'):
            if not getattr(self, name):
                msg = f'StoreSession.{name} must be a non-empty string'
                raise ValueError(msg)


class CollaboratorError(Exception):

    '''
    Base exception for all collaborator failures.

    Args:
        message (str): Human-readable error description
    '''

    def __init__(self, message: str) -> None:

        '''
        Store the error message.

        Args:
            message (str): Human-readable error description
        '''

        self.message = message
        super().__init__(message)


class AuthenticationError(CollaboratorError):

    '''Raised when a collaborator rejects the credentials or access token.'''


class RateLimitError(CollaboratorError):

    '''Raised when a collaborator throttles the request.'''


class TransientError(CollaboratorError):

    '''Raised on HTTP 5xx, timeouts, and transport failures.'''


class RecordStoreError(CollaboratorError):

    '''Raised when the record store answers with a malformed response.'''


class RequestRejectedError(CollaboratorError):

    '''
    Raised when a collaborator rejects a request as invalid.

    Args:
        message (str): Human-readable error description
        status (int): HTTP status code
        code (str): Collaborator-specific error code
    '''

    def __init__(self, message: str, status: int, code: str) -> None:

        '''
        Store the rejection details.

        Args:
            message (str): Human-readable error description
            status (int): HTTP status code
            code (str): Collaborator-specific error code
        '''

        self.status = status
        self.code = code
        super().__init__(message)


@runtime_checkable
class DealSource(Protocol):

    '''Venue history feed returning raw deal legs for a time window.'''

    async def fetch(self, account_id: str, start: datetime, end: datetime) -> list[Deal]:

        '''
        Fetch deals executed on an account within a time window.

        Args:
            account_id (str): Venue account identifier
            start (datetime): Inclusive window start
            end (datetime): Inclusive window end

        Returns:
            list[Deal]: Deals in venue order
        '''

        ...


@runtime_checkable
class Authenticator(Protocol):

    '''Record-store login endpoint.'''

    async def login(self) -> StoreSession:

        '''
        Obtain a fresh record-store session.

        Returns:
            StoreSession: Instance URL and access token
        '''

        ...


@runtime_checkable
class RecordStore(Protocol):

    '''Record-store batch upsert endpoint.'''

    async def upsert(
        self,
        session: StoreSession,
        external_key_field: str,
        records: Sequence[dict[str, Any]],
    ) -> list[UpsertResult]:

        '''
        Insert or update records keyed by an external identifier field.

        Per-record failures are reported in the result list and do not
        fail the call.

        Args:
            session (StoreSession): Authenticated session
            external_key_field (str): Field holding the idempotency key
            records (Sequence[dict[str, Any]]): At most 200 records

        Returns:
            list[UpsertResult]: One result per record, in request order

        Raises:
            AuthenticationError: If the access token is rejected
        '''

        ...


@runtime_checkable
class SymbolLookup(Protocol):

    '''Synchronous symbol name to record-store identifier lookup.'''

    def __call__(self, symbol: str) -> str | None:

        ...
