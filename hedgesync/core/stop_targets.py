'''
Stop-loss and take-profit extraction from closing deal legs.

MetaTrader reports the close reason as free text and often embeds the
triggering level in the broker comment, e.g. "[sl 1.08450]". The
grammar lives here so consolidation never parses comments itself and
alternate encodings can be added as new StopTargetExtractor types.
'''

from __future__ import annotations

import re
from decimal import Decimal
from typing import Protocol, runtime_checkable

from hedgesync.core.domain.deal import Deal, parse_decimal


__all__ = ['CommentTagExtractor', 'StopTargetExtractor']

_SL_REASON = re.compile(r'SL|STOP[ _]?LOSS', re.IGNORECASE)
_TP_REASON = re.compile(r'TP|TAKE[ _]?PROFIT', re.IGNORECASE)
_SL_TAG = re.compile(r'\[\s*sl\s*([-+]?\d+(?:\.\d+)?)', re.IGNORECASE)
_TP_TAG = re.compile(r'\[\s*tp\s*([-+]?\d+(?:\.\d+)?)', re.IGNORECASE)


@runtime_checkable
class StopTargetExtractor(Protocol):

    '''
    Classify close reasons and recover stop-loss / take-profit levels.

    Consumed by the consolidation engine for every OUT leg.
    '''

    def matches_stop_loss(self, reason: str | None) -> bool:

        '''
        Return True if the close reason denotes a stop-loss exit.

        Args:
            reason (str | None): Venue close reason

        Returns:
            bool: Whether the leg was closed by a stop loss
        '''

        ...

    def matches_take_profit(self, reason: str | None) -> bool:

        '''
        Return True if the close reason denotes a take-profit exit.

        Args:
            reason (str | None): Venue close reason

        Returns:
            bool: Whether the leg was closed by a take profit
        '''

        ...

    def stop_loss(self, deal: Deal) -> Decimal | None:

        '''
        Return the stop-loss level recorded on a deal.

        Args:
            deal (Deal): Closing leg

        Returns:
            Decimal | None: Stop-loss price, None when not recoverable
        '''

        ...

    def take_profit(self, deal: Deal) -> Decimal | None:

        '''
        Return the take-profit level recorded on a deal.

        Args:
            deal (Deal): Closing leg

        Returns:
            Decimal | None: Take-profit price, None when not recoverable
        '''

        ...


class CommentTagExtractor:

    '''
    Default extractor for MetaTrader reasons and broker-comment tags.

    Reasons match on SL / STOP_LOSS and TP / TAKE_PROFIT tokens, case
    insensitive. Levels come from the explicit deal field first, then
    from the first number of a [sl X] or [tp X] comment tag.
    '''

    def matches_stop_loss(self, reason: str | None) -> bool:

        return bool(reason) and _SL_REASON.search(reason) is not None

    def matches_take_profit(self, reason: str | None) -> bool:

        return bool(reason) and _TP_REASON.search(reason) is not None

    def stop_loss(self, deal: Deal) -> Decimal | None:

        if deal.stop_loss is not None:
            return deal.stop_loss
        return self._tag_value(_SL_TAG, deal.broker_comment)

    def take_profit(self, deal: Deal) -> Decimal | None:

        if deal.take_profit is not None:
            return deal.take_profit
        return self._tag_value(_TP_TAG, deal.broker_comment)

    @staticmethod
    def _tag_value(pattern: re.Pattern[str], comment: str | None) -> Decimal | None:

        if not comment:
            return None

        match = pattern.search(comment)
        if match is None:
            return None

        return parse_decimal(match.group(1))
