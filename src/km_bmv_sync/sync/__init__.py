"""Konzertmeister to BMV synchronization.

## Deduplication

Appointments are matched to activities through the `KM_ID=<id>` tag in the
activity annotation (see `correlation`). Every run re-fetches both sides and
creates activities only for appointments whose ID is not tagged yet, so
repeated runs are safe as long as they do not overlap.
"""

from km_bmv_sync.sync.correlation import (
    collect_known_ids,
    embed_source_id,
    extract_source_id,
)
from km_bmv_sync.sync.engine import SyncEngine, SyncResult, run_sync, select_new_appointments
from km_bmv_sync.sync.transform import ActivityDefaults, ActivityTransformer

__all__ = [
    "embed_source_id",
    "extract_source_id",
    "collect_known_ids",
    "ActivityDefaults",
    "ActivityTransformer",
    "SyncEngine",
    "SyncResult",
    "run_sync",
    "select_new_appointments",
]
