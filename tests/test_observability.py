'''Verify structlog + orjson logging configuration.'''

from __future__ import annotations

import io
import logging
from collections.abc import Iterator
from typing import Any

import orjson
import pytest

from hedgesync.infrastructure.observability import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


@pytest.fixture
def captured() -> Iterator[io.StringIO]:

    '''Route stdlib logging into a buffer and restore the root logger afterwards.'''

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    buf = io.StringIO()
    configure_logging('DEBUG', stream=buf)
    clear_context()
    yield buf
    clear_context()
    root.handlers[:] = handlers
    root.setLevel(level)


def _lines(buf: io.StringIO) -> list[dict[str, Any]]:

    return [orjson.loads(line) for line in buf.getvalue().splitlines() if line.strip()]


def test_configure_logging_accepts_levels() -> None:

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    for name in ('DEBUG', 'info', 'WARNING', 'ERROR', 'CRITICAL', 'bogus'):
        configure_logging(name, stream=io.StringIO())
    assert root.level == logging.INFO
    root.handlers[:] = handlers
    root.setLevel(level)


class TestStdlibRouting:

    def test_line_is_json_with_required_keys(self, captured: io.StringIO) -> None:

        logging.getLogger('hedgesync.core.consolidation').warning('dropped %d deals', 3)
        (line,) = _lines(captured)
        assert line['event'] == 'dropped 3 deals'
        assert line['level'] == 'warning'
        assert line['timestamp'].endswith('Z')
        assert 'T' in line['timestamp']

    def test_bound_context_is_merged(self, captured: io.StringIO) -> None:

        bind_context(feed_account_id='mt-1', store_account_id='001XX')
        logging.getLogger('hedgesync.core.deal_import').info('import finished')
        (line,) = _lines(captured)
        assert line['feed_account_id'] == 'mt-1'
        assert line['store_account_id'] == '001XX'

    def test_clear_context_removes_fields(self, captured: io.StringIO) -> None:

        bind_context(feed_account_id='mt-1')
        clear_context()
        logging.getLogger('hedgesync').info('after clear')
        (line,) = _lines(captured)
        assert 'feed_account_id' not in line

    def test_level_filtering(self) -> None:

        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        buf = io.StringIO()
        configure_logging('WARNING', stream=buf)
        logging.getLogger('hedgesync').info('suppressed')
        assert buf.getvalue() == ''
        root.handlers[:] = handlers
        root.setLevel(level)


def test_get_logger_returns_usable_logger() -> None:

    configure_logging('DEBUG', stream=io.StringIO())
    log = get_logger('hedgesync.test')
    for method in ('debug', 'info', 'warning', 'error'):
        assert callable(getattr(log, method, None))
