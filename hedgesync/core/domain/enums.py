'''
Enumerated types for the hedgesync deal domain.

Defines deal entry direction, deal type, consolidated position side,
and close outcome enums used across Deal and ConsolidatedPosition.
'''

from __future__ import annotations

from enum import Enum


__all__ = ['CloseOutcome', 'DealType', 'EntryType', 'PositionSide', 'PositionStatus']


class EntryType(Enum):

    '''
    Deal entry direction as reported by the MetaTrader history feed.

    Only ENTRY_IN and ENTRY_OUT legs take part in consolidation.
    Any value the feed adds later maps to OTHER.
    '''

    ENTRY_IN = 'DEAL_ENTRY_IN'
    ENTRY_OUT = 'DEAL_ENTRY_OUT'
    ENTRY_INOUT = 'DEAL_ENTRY_INOUT'
    ENTRY_OUT_BY = 'DEAL_ENTRY_OUT_BY'
    OTHER = 'OTHER'


class DealType(Enum):

    '''
    Deal type as reported by the MetaTrader history feed.

    Balance, credit, and other non-trade types map to OTHER.
    '''

    BUY = 'DEAL_TYPE_BUY'
    SELL = 'DEAL_TYPE_SELL'
    OTHER = 'OTHER'


class PositionSide(Enum):

    '''Inferred direction of a consolidated position.'''

    BUY = 'BUY'
    SELL = 'SELL'


class CloseOutcome(Enum):

    '''How a consolidated position was closed.'''

    SL = 'SL'
    TP = 'TP'
    MANUAL = 'Manual'


class PositionStatus(Enum):

    '''Open or closed, derived from entered versus exited volume.'''

    OPEN = 'Open'
    CLOSED = 'Closed'
