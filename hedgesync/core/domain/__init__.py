'''
Domain dataclasses for the hedgesync deal consolidation sub-system.

Re-exports all domain types: enums, the Deal input leg, the
ConsolidatedPosition output record, and per-record UpsertResult.
'''

from __future__ import annotations

from hedgesync.core.domain.deal import Deal
from hedgesync.core.domain.enums import (
    CloseOutcome,
    DealType,
    EntryType,
    PositionSide,
    PositionStatus,
)
from hedgesync.core.domain.hedge import API_MARKER, HEDGE_SOBJECT, ConsolidatedPosition
from hedgesync.core.domain.upsert_result import UpsertResult

__all__ = [
    'API_MARKER',
    'CloseOutcome',
    'ConsolidatedPosition',
    'Deal',
    'DealType',
    'EntryType',
    'HEDGE_SOBJECT',
    'PositionSide',
    'PositionStatus',
    'UpsertResult',
]
