'''
ConsolidatedPosition dataclass: one summary record per position key.

Records are frozen. Account scoping returns a copy, so a caller can
hold on to the consolidation output while sending scoped variants to
the record store. to_record() renders the SR_Hedge__c field mapping.
'''

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from hedgesync.core.domain._validation import require_text
from hedgesync.core.domain.enums import CloseOutcome, PositionSide, PositionStatus


__all__ = ['API_MARKER', 'ConsolidatedPosition', 'HEDGE_SOBJECT']

API_MARKER = 'API'
HEDGE_SOBJECT = 'SR_Hedge__c'

_ZERO = Decimal(0)


def _number(value: Decimal | None) -> float | None:

    return None if value is None else float(value)


def _timestamp(value: datetime | None) -> str | None:

    return None if value is None else value.isoformat()


@dataclass(frozen=True)
class ConsolidatedPosition:

    '''
    Consolidated summary of all entry and exit legs of one position.

    Args:
        external_key (str): Idempotent upsert key.
        position_key (str): Resolved position identifier of the source deals.
        currency_id (str | None): Record-store identifier of the symbol.
        symbol (str | None): Symbol of the first deal in the group.
        side (PositionSide | None): Inferred direction, None without IN legs.
        total_profit (Decimal): Profit summed over every leg.
        total_commission (Decimal): Commission summed over every leg.
        total_swap (Decimal): Swap summed over every leg.
        open_time (datetime | None): Time of the earliest IN leg.
        open_price (Decimal | None): Price of the earliest IN leg.
        open_volume (Decimal | None): Volume of the earliest IN leg.
        open_marker (str | None): Provenance tag when an IN leg exists.
        close_time (datetime | None): Time of the latest OUT leg.
        close_price (Decimal | None): First OUT price, VWAP when unavailable.
        close_vwap (Decimal | None): Volume-weighted OUT price.
        close_marker (str | None): Provenance tag when an OUT leg exists.
        outcome (CloseOutcome | None): SL, TP, Manual, or None while open.
        sl_price (Decimal | None): Stop-loss price of the SL exit.
        tp_price (Decimal | None): Take-profit price of the TP exit.
        in_volume (Decimal): Volume summed over IN legs.
        out_volume (Decimal): Volume summed over OUT legs.
        account_id (str | None): Owning record-store account, None until scoped.
    '''

    external_key: str
    position_key: str
    currency_id: str | None
    symbol: str | None
    side: PositionSide | None
    total_profit: Decimal
    total_commission: Decimal
    total_swap: Decimal
    open_time: datetime | None
    open_price: Decimal | None
    open_volume: Decimal | None
    open_marker: str | None
    close_time: datetime | None
    close_price: Decimal | None
    close_vwap: Decimal | None
    close_marker: str | None
    outcome: CloseOutcome | None
    sl_price: Decimal | None
    tp_price: Decimal | None
    in_volume: Decimal = _ZERO
    out_volume: Decimal = _ZERO
    account_id: str | None = None

    def __post_init__(self) -> None:

        '''Validate invariants at construction time.'''

        require_text(self, 'external_key', 'position_key')
        require_text(self, 'account_id', optional=True)

    @property
    def status(self) -> PositionStatus:

        '''Return Closed once exits cover the entered volume, else Open.'''

        if self.in_volume > _ZERO and self.out_volume >= self.in_volume:
            return PositionStatus.CLOSED
        return PositionStatus.OPEN

    def with_account(self, account_id: str, account_code: str = '') -> ConsolidatedPosition:

        '''
        Return a copy scoped to a record-store account.

        Args:
            account_id (str): Record-store account identifier
            account_code (str): Account code prefixed to the position key,
                the external key is left unchanged when empty

        Returns:
            ConsolidatedPosition: Scoped copy, the original is untouched
        '''

        external_key = f'{account_code}-{self.position_key}' if account_code else self.external_key
        return replace(self, account_id=account_id, external_key=external_key)

    def to_record(self) -> dict[str, Any]:

        '''
        Render the SR_Hedge__c field mapping for the record store.

        Returns:
            dict[str, Any]: JSON-ready sObject record
        '''

        record: dict[str, Any] = {
            'attributes': {'type': HEDGE_SOBJECT},
            'UUID_Text__c': self.external_key,
            'Currency__c': self.currency_id,
            'Side__c': self.side.value if self.side else None,
            'X1st_Trade_Profit__c': _number(self.total_profit),
            'X1st_Trade_Open_Price__c': _number(self.open_price),
            'Open_Date_Time__c': _timestamp(self.open_time),
            'X1st_Trade_Units__c': _number(self.open_volume),
            'Open_Comments__c': self.open_marker,
            'Open_Screenshot__c': self.open_marker,
            'X1st_Trade_Close_Price__c': _number(self.close_price),
            'Close_Date_Time__c': _timestamp(self.close_time),
            'Closing_Comments__c': self.close_marker,
            'Close_Screenshot__c': self.close_marker,
            'Outcome__c': self.outcome.value if self.outcome else None,
            'Stop_Loss__c': _number(self.sl_price),
            'Take_Profit__c': _number(self.tp_price),
        }

        if self.account_id is not None:
            record['Actual_Trading_Account__c'] = self.account_id

        return record
