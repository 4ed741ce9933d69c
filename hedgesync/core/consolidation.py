'''
Consolidate raw deal legs into one summary record per position.

Pure and synchronous. Deals are grouped by position key, each group is
time-ordered, and open/close fields, money aggregates, side, and close
outcome are derived from its ENTRY_IN and ENTRY_OUT legs. Input defects
are absorbed (dropped legs, zero or None substitution), never raised.
'''

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING

from hedgesync.core.domain.deal import Deal
from hedgesync.core.domain.enums import CloseOutcome, DealType, EntryType, PositionSide
from hedgesync.core.domain.hedge import API_MARKER, ConsolidatedPosition
from hedgesync.core.stop_targets import CommentTagExtractor, StopTargetExtractor

if TYPE_CHECKING:
    from hedgesync.infrastructure.collaborators import SymbolLookup

__all__ = ['ConsolidationConfig', 'DEFAULT_KEY_PREFIX', 'consolidate']

_log = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = 'AT'

_ZERO = Decimal(0)
_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)
_TRADE_LEGS = frozenset({EntryType.ENTRY_IN, EntryType.ENTRY_OUT})


@dataclass(frozen=True)
class ConsolidationConfig:

    '''
    Tunables for a consolidation run.

    Args:
        key_prefix (str): Fixed prefix of every external key.
        currency_lookup (SymbolLookup | None): Symbol name to
            record-store identifier, skipped when None.
        stop_targets (StopTargetExtractor): Close reason and level grammar.
    '''

    key_prefix: str = DEFAULT_KEY_PREFIX
    currency_lookup: SymbolLookup | None = None
    stop_targets: StopTargetExtractor = field(default_factory=CommentTagExtractor)

    def __post_init__(self) -> None:

        '''Validate invariants at construction time.'''

        if not self.key_prefix:
            msg = 'ConsolidationConfig.key_prefix must be a non-empty string'
            raise ValueError(msg)


def consolidate(
    deals: Iterable[Deal],
    config: ConsolidationConfig | None = None,
) -> list[ConsolidatedPosition]:

    '''
    Consolidate deals into one ConsolidatedPosition per position key.

    Only ENTRY_IN and ENTRY_OUT legs are considered. Deals without any
    identifier are dropped. Records come out in first-appearance order
    of their position key.

    Args:
        deals (Iterable[Deal]): Raw legs in any order
        config (ConsolidationConfig | None): Run configuration, defaults apply when None

    Returns:
        list[ConsolidatedPosition]: One record per position key
    '''

    config = config or ConsolidationConfig()
    groups: dict[str, list[Deal]] = {}
    dropped = 0

    for deal in deals:
        if deal.entry_type not in _TRADE_LEGS:
            continue
        key = deal.position_key
        if not key:
            dropped += 1
            continue
        groups.setdefault(key, []).append(deal)

    if dropped:
        _log.warning('dropped %d deal legs without a position key', dropped)

    return [_consolidate_group(key, legs, config) for key, legs in groups.items()]


def _consolidate_group(
    position_key: str,
    legs: list[Deal],
    config: ConsolidationConfig,
) -> ConsolidatedPosition:

    ordered = sorted(legs, key=lambda d: d.time or _EARLIEST)
    ins = [d for d in ordered if d.entry_type == EntryType.ENTRY_IN]
    outs = [d for d in ordered if d.entry_type == EntryType.ENTRY_OUT]

    first_in = ins[0] if ins else None
    first_out = outs[0] if outs else None
    close_vwap = _volume_weighted_price(outs)

    close_price = close_vwap
    if first_out is not None and first_out.price is not None:
        close_price = first_out.price

    # legs keeps input order, which drives outcome precedence
    exits = [d for d in legs if d.entry_type == EntryType.ENTRY_OUT]
    outcome, sl_price, tp_price = _close_outcome(exits, config.stop_targets)

    symbol = ordered[0].symbol

    return ConsolidatedPosition(
        external_key=f'{config.key_prefix}-{position_key}',
        position_key=position_key,
        currency_id=_resolve_currency(symbol, config.currency_lookup),
        symbol=symbol,
        side=_infer_side(ins),
        total_profit=sum((d.profit for d in ordered), _ZERO),
        total_commission=sum((d.commission for d in ordered), _ZERO),
        total_swap=sum((d.swap for d in ordered), _ZERO),
        open_time=first_in.time if first_in else None,
        open_price=first_in.price if first_in else None,
        open_volume=first_in.volume if first_in else None,
        open_marker=API_MARKER if first_in else None,
        close_time=outs[-1].time if outs else None,
        close_price=close_price,
        close_vwap=close_vwap,
        close_marker=API_MARKER if outs else None,
        outcome=outcome,
        sl_price=sl_price,
        tp_price=tp_price,
        in_volume=sum((d.volume or _ZERO for d in ins), _ZERO),
        out_volume=sum((d.volume or _ZERO for d in outs), _ZERO),
    )


def _volume_weighted_price(outs: Sequence[Deal]) -> Decimal | None:

    '''
    Return the volume-weighted average price of closing legs.

    Legs without a price or with no positive volume are left out of
    both numerator and denominator.

    Args:
        outs (Sequence[Deal]): Closing legs

    Returns:
        Decimal | None: VWAP, None when no leg qualifies
    '''

    notional = _ZERO
    volume = _ZERO

    for leg in outs:
        if leg.price is None or leg.volume is None or leg.volume <= _ZERO:
            continue
        notional += leg.price * leg.volume
        volume += leg.volume

    if volume == _ZERO:
        return None

    return notional / volume


def _infer_side(ins: Sequence[Deal]) -> PositionSide | None:

    '''
    Infer position direction from the signed volume of entry legs.

    Staged entries in both directions net out. A zero net falls back
    to the type of the earliest entry leg.

    Args:
        ins (Sequence[Deal]): Entry legs in time order

    Returns:
        PositionSide | None: Inferred side, None without entry legs
    '''

    if not ins:
        return None

    net = _ZERO
    for leg in ins:
        if leg.type == DealType.BUY:
            net += leg.volume or _ZERO
        elif leg.type == DealType.SELL:
            net -= leg.volume or _ZERO

    if net > _ZERO:
        return PositionSide.BUY
    if net < _ZERO:
        return PositionSide.SELL

    return PositionSide.SELL if ins[0].type == DealType.SELL else PositionSide.BUY


def _close_outcome(
    exits: Sequence[Deal],
    stop_targets: StopTargetExtractor,
) -> tuple[CloseOutcome | None, Decimal | None, Decimal | None]:

    '''
    Derive close outcome and stop levels from exit legs.

    The first SL or TP exit fixes the outcome. Levels are taken from
    the first matching exit that carries one.

    Args:
        exits (Sequence[Deal]): Exit legs in input order
        stop_targets (StopTargetExtractor): Reason and level grammar

    Returns:
        tuple[CloseOutcome | None, Decimal | None, Decimal | None]:
            Outcome, stop-loss price, take-profit price
    '''

    if not exits:
        return None, None, None

    outcome: CloseOutcome | None = None
    sl_price: Decimal | None = None
    tp_price: Decimal | None = None

    for leg in exits:
        if stop_targets.matches_stop_loss(leg.reason):
            outcome = outcome or CloseOutcome.SL
            if sl_price is None:
                sl_price = stop_targets.stop_loss(leg)

        if stop_targets.matches_take_profit(leg.reason):
            outcome = outcome or CloseOutcome.TP
            if tp_price is None:
                tp_price = stop_targets.take_profit(leg)

    return outcome or CloseOutcome.MANUAL, sl_price, tp_price


def _resolve_currency(
    symbol: str | None,
    lookup: SymbolLookup | None,
) -> str | None:

    if lookup is None or not symbol:
        return None

    try:
        return lookup(symbol) or None
    except Exception as exc:  # noqa: BLE001
        _log.warning('currency lookup failed for symbol=%s: %s', symbol, exc)
        return None
