'''
Represent the consolidation core of hedgesync.

Re-exports the consolidation engine, the batch upsert coordinator,
and the import pipeline built on them.
'''

from __future__ import annotations

from hedgesync.core.batch_upsert import BatchUpsertCoordinator
from hedgesync.core.consolidation import ConsolidationConfig, consolidate
from hedgesync.core.deal_import import ImportReport, ImportRequest, import_deals

__all__ = [
    'BatchUpsertCoordinator',
    'ConsolidationConfig',
    'ImportReport',
    'ImportRequest',
    'consolidate',
    'import_deals',
]
