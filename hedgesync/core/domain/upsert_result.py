'''
UpsertResult dataclass: per-record outcome of a batch upsert.

Partial remote failure is expressed here, not as an exception. Callers
inspect success on every entry to learn the true outcome of a batch.
'''

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


__all__ = ['UpsertResult']


def _format_error(error: Any) -> str:

    if isinstance(error, dict):
        code = error.get('statusCode')
        message = error.get('message') or ''
        fields = error.get('fields') or []
        text = f'{code}: {message}' if code else str(message)
        if fields:
            text = f"{text} [{', '.join(str(f) for f in fields)}]"
        return text
    return str(error)


@dataclass(frozen=True)
class UpsertResult:

    '''
    Outcome of one record within a batch upsert.

    Args:
        identifier (str | None): Record-store identifier, None when the record failed.
        success (bool): Whether the record was committed.
        created (bool): True on insert, False on update or failure.
        errors (tuple[str, ...]): Human-readable per-record errors.
    '''

    identifier: str | None
    success: bool
    created: bool
    errors: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> UpsertResult:

        '''
        Build an UpsertResult from a composite sObject response entry.

        Args:
            data (dict[str, Any]): Entry with id, success, created, errors

        Returns:
            UpsertResult: Normalised result
        '''

        identifier = data.get('id')
        return cls(
            identifier=str(identifier) if identifier else None,
            success=bool(data.get('success')),
            created=data.get('created') is True,
            errors=tuple(_format_error(e) for e in data.get('errors') or ()),
        )
