'''
Deal dataclass representing one execution leg reported by the venue.

Deals are immutable facts from the MetaTrader history feed. Parsing is
best-effort: malformed numbers, unparseable timestamps, and unknown
enum values are normalised instead of raised, so one bad leg never
aborts a whole import.
'''

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from hedgesync.core.domain.enums import DealType, EntryType


__all__ = ['Deal', 'parse_decimal', 'parse_time']

_ZERO = Decimal(0)

_DECIMAL_FIELDS = ('volume', 'price', 'profit', 'commission', 'swap', 'stop_loss', 'take_profit')


def _enum_lookup(members: Any) -> dict[str, Any]:

    # short names such as ENTRY_IN or TYPE_BUY resolve like the DEAL_ forms
    lookup: dict[str, Any] = {}
    for member in members:
        lookup[member.value] = member
        lookup[member.value.removeprefix('DEAL_')] = member
    return lookup


_ENTRY_TYPES: dict[str, EntryType] = _enum_lookup(EntryType)
_DEAL_TYPES: dict[str, DealType] = _enum_lookup(DealType)


def parse_decimal(value: Any) -> Decimal | None:

    '''
    Coerce a raw JSON value to a finite Decimal.

    Args:
        value (Any): Raw numeric or string value

    Returns:
        Decimal | None: Parsed value, None when absent, non-numeric, or non-finite
    '''

    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float, str)):
        try:
            parsed = Decimal(str(value).strip())
        except InvalidOperation:
            return None
    else:
        return None

    return parsed if parsed.is_finite() else None


def parse_time(value: Any) -> datetime | None:

    '''
    Coerce a raw timestamp to a timezone-aware datetime.

    Naive values are taken as UTC. A trailing Z suffix is accepted.

    Args:
        value (Any): ISO 8601 string or datetime

    Returns:
        datetime | None: Aware datetime, None when absent or unparseable
    '''

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text[-1] in 'zZ':
            text = f'{text[:-1]}+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed


def _parse_text(value: Any) -> str | None:

    if value is None:
        return None

    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class Deal:

    '''
    One leg of trade execution, opening or closing exposure.

    Args:
        id (str): Venue deal identifier, may be empty.
        entry_type (EntryType): Leg direction.
        type (DealType): Buy or sell.
        time (datetime | None): Execution time, None when unparseable.
        symbol (str | None): Instrument symbol.
        volume (Decimal | None): Traded volume in lots, non-negative.
        price (Decimal | None): Execution price.
        profit (Decimal): Realised profit of the leg.
        commission (Decimal): Commission charged on the leg.
        swap (Decimal): Swap charged on the leg.
        reason (str | None): Venue close reason, e.g. DEAL_REASON_SL.
        broker_comment (str | None): Free text, may embed [sl X] / [tp X] tags.
        stop_loss (Decimal | None): Explicit stop-loss price.
        take_profit (Decimal | None): Explicit take-profit price.
        position_id (str | None): Venue position identifier.
        order_id (str | None): Venue order identifier.
        platform (str | None): Terminal platform, e.g. mt5.
    '''

    id: str
    entry_type: EntryType
    type: DealType
    time: datetime | None = None
    symbol: str | None = None
    volume: Decimal | None = None
    price: Decimal | None = None
    profit: Decimal = _ZERO
    commission: Decimal = _ZERO
    swap: Decimal = _ZERO
    reason: str | None = None
    broker_comment: str | None = None
    stop_loss: Decimal | None = None
    take_profit: Decimal | None = None
    position_id: str | None = None
    order_id: str | None = None
    platform: str | None = None

    def __post_init__(self) -> None:

        '''Validate invariants at construction time.'''

        if self.time is not None and (self.time.tzinfo is None or self.time.utcoffset() is None):
            msg = 'Deal.time must be timezone-aware'
            raise ValueError(msg)

        for name in _DECIMAL_FIELDS:
            value = getattr(self, name)
            if value is not None and not value.is_finite():
                msg = f'Deal.{name} must be finite'
                raise ValueError(msg)

        if self.volume is not None and self.volume < _ZERO:
            msg = 'Deal.volume must be non-negative'
            raise ValueError(msg)

    @property
    def position_key(self) -> str:

        '''
        Return the identifier grouping this deal into a position.

        Falls back from position_id to order_id to id. Empty when
        none of them is set.
        '''

        return self.position_id or self.order_id or self.id or ''

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> Deal:

        '''
        Build a Deal from a MetaApi history-deals JSON object.

        Args:
            data (dict[str, Any]): Raw deal object from the feed

        Returns:
            Deal: Normalised deal
        '''

        volume = parse_decimal(data.get('volume'))
        if volume is not None and volume < _ZERO:
            volume = None

        return cls(
            id=_parse_text(data.get('id')) or '',
            entry_type=_ENTRY_TYPES.get(str(data.get('entryType')), EntryType.OTHER),
            type=_DEAL_TYPES.get(str(data.get('type')), DealType.OTHER),
            time=parse_time(data.get('time')),
            symbol=_parse_text(data.get('symbol')),
            volume=volume,
            price=parse_decimal(data.get('price')),
            profit=parse_decimal(data.get('profit')) or _ZERO,
            commission=parse_decimal(data.get('commission')) or _ZERO,
            swap=parse_decimal(data.get('swap')) or _ZERO,
            reason=_parse_text(data.get('reason')),
            broker_comment=_parse_text(data.get('brokerComment')),
            stop_loss=parse_decimal(data.get('stopLoss')),
            take_profit=parse_decimal(data.get('takeProfit')),
            position_id=_parse_text(data.get('positionId')),
            order_id=_parse_text(data.get('orderId')),
            platform=_parse_text(data.get('platform')),
        )
