"""Konzertmeister -> BMV reconciliation.

## Sync Process

1. Verify the BMV credentials
2. Fetch existing BMV activities (default: the last 365 days onwards) and
   collect the `KM_ID` tags from their annotations
3. Log in to Konzertmeister and fetch all upcoming appointments, page by page
4. Keep appointments whose ID is not tagged in BMV yet and transform them
   concurrently (optionally capped for manual verification runs)
5. Post the new activities to BMV in one batch

## Failure Policy

- Authentication failures abort the run before anything is written.
- A failed fetch of existing activities aborts the run: continuing with an
  unknown set of synced IDs would duplicate every appointment.
- A failed page fetch aborts the run; there is no partial import.
- Classification failures are absorbed by the classifier (fallback label).
- A rejected batch fails the run. It is not retried; the next run picks the
  appointments up again since none of them got tagged.

Runs must not overlap: the set of known IDs is computed once at the start,
so two concurrent runs may both create the same appointment.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Protocol

import httpx

from km_bmv_sync.classification.classifier import build_classifier
from km_bmv_sync.clients.base import ClientError
from km_bmv_sync.clients.bmv import BmvClient
from km_bmv_sync.clients.konzertmeister import KonzertmeisterClient
from km_bmv_sync.config import Settings
from km_bmv_sync.models.activity import NewActivity
from km_bmv_sync.models.appointment import Appointment, AppointmentQuery
from km_bmv_sync.sync.correlation import collect_known_ids
from km_bmv_sync.sync.transform import ActivityDefaults, ActivityTransformer

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK = timedelta(days=365)


class TargetService(Protocol):
    """What the engine needs from BMV."""

    async def verify_credentials(self) -> bool: ...

    async def get_activities(self, since: datetime) -> list: ...

    async def post_activities(self, activities: list[NewActivity]) -> bool: ...


class SourceService(Protocol):
    """What the engine needs from Konzertmeister."""

    async def login(self) -> bool: ...

    async def get_all_appointments(self, query: AppointmentQuery) -> list[Appointment]: ...


@dataclass
class SyncResult:
    """Result of a sync run."""

    existing_activities: int = 0
    known_ids: int = 0
    appointments_found: int = 0
    appointments_new: int = 0
    activities_transformed: int = 0
    activities_submitted: int = 0
    dry_run: bool = False
    errors: list[str] = field(default_factory=list)
    synced_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    @property
    def message(self) -> str:
        if not self.success:
            return f"Sync failed: {self.errors[0]}"
        if self.activities_submitted:
            return f"Synced {self.activities_submitted} new appointments to BMV"
        if self.dry_run and self.activities_transformed:
            return f"Dry run: {self.activities_transformed} new appointments not submitted"
        return "No new appointments to sync"


def select_new_appointments(
    appointments: list[Appointment],
    known_ids: frozenset[int],
) -> list[Appointment]:
    """Appointments whose ID is not tagged in BMV yet, in source order."""
    return [a for a in appointments if a.id not in known_ids]


class SyncEngine:
    """Runs one Konzertmeister -> BMV sync.

    Example:
        ```python
        engine = SyncEngine(bmv, km, ActivityTransformer(classifier))
        result = await engine.run()
        ```
    """

    def __init__(
        self,
        target: TargetService,
        source: SourceService,
        transformer: ActivityTransformer,
        lookback: timedelta = DEFAULT_LOOKBACK,
        query: AppointmentQuery | None = None,
    ):
        self.target = target
        self.source = source
        self.transformer = transformer
        self.lookback = lookback
        self.query = query or AppointmentQuery()

    async def run(self, limit: int | None = None, dry_run: bool = False) -> SyncResult:
        """Run the sync.

        Args:
            limit: Transform and submit at most this many new appointments
            dry_run: Transform but do not submit

        Returns:
            SyncResult; `success` is False if the run was aborted or the
            submit was rejected
        """
        result = SyncResult(dry_run=dry_run)
        try:
            await self._run(result, limit, dry_run)
        except Exception as e:
            logger.exception(f"Sync error: {e}")
            result.errors.append(f"Unexpected error: {e}")
        return result

    async def _run(self, result: SyncResult, limit: int | None, dry_run: bool) -> None:
        # 1) BMV credentials
        if not await self.target.verify_credentials():
            logger.error("Failed BMV login check")
            result.errors.append("BMV credential check failed")
            return

        # 2) Known KM IDs from existing activities
        since = datetime.now(timezone.utc) - self.lookback
        try:
            activities = await self.target.get_activities(since)
        except ClientError as e:
            logger.error(f"Could not fetch existing BMV activities: {e}")
            result.errors.append("Could not fetch existing BMV activities")
            return
        if activities is None:
            logger.error("Could not fetch existing BMV activities: no data")
            result.errors.append("Could not fetch existing BMV activities")
            return

        known_ids = collect_known_ids(activities)
        result.existing_activities = len(activities)
        result.known_ids = len(known_ids)
        logger.info(
            f"Found {len(known_ids)} KM IDs in {len(activities)} BMV activities "
            f"since {since.date().isoformat()}"
        )
        logger.debug(f"Existing KM IDs in BMV: {sorted(known_ids)}")

        # 3) Konzertmeister appointments
        if not await self.source.login():
            logger.error("Failed to login to Konzertmeister")
            result.errors.append("Konzertmeister login failed")
            return

        try:
            appointments = await self.source.get_all_appointments(self.query)
        except (ClientError, httpx.HTTPError) as e:
            logger.error(f"Could not fetch Konzertmeister appointments: {e}")
            result.errors.append("Could not fetch Konzertmeister appointments")
            return
        result.appointments_found = len(appointments)
        logger.info(f"Fetched {len(appointments)} appointments from Konzertmeister")

        # 4) Filter and transform
        new_appointments = select_new_appointments(appointments, known_ids)
        result.appointments_new = len(new_appointments)

        to_process = new_appointments
        if limit is not None:
            logger.info(f"Debug mode: limiting to {limit} appointments")
            to_process = new_appointments[:limit]

        logger.info(
            f"{len(new_appointments)} new appointments (not in BMV) "
            f"out of {len(appointments)} total, processing {len(to_process)}"
        )

        activities_new = await asyncio.gather(
            *(self.transformer.transform(appointment) for appointment in to_process)
        )
        result.activities_transformed = len(activities_new)

        # 5) Submit
        if not activities_new:
            logger.info("No new appointments to sync")
            return

        if dry_run:
            for activity in activities_new:
                logger.info(f"Dry run, not submitting: {activity.to_payload()}")
            return

        if not await self.target.post_activities(list(activities_new)):
            ids = [a.id for a in to_process]
            logger.error(f"Failed to sync {len(activities_new)} appointments to BMV: {ids}")
            result.errors.append("BMV rejected the new activities")
            return

        result.activities_submitted = len(activities_new)
        logger.info(f"Successfully synced {len(activities_new)} appointments to BMV")


async def run_sync(
    settings: Settings,
    limit: int | None = None,
    dry_run: bool = False,
) -> SyncResult:
    """Open all collaborators from `settings` and run one sync."""
    async with AsyncExitStack() as stack:
        bmv = await stack.enter_async_context(BmvClient.from_settings(settings))
        km = await stack.enter_async_context(KonzertmeisterClient.from_settings(settings))
        classifier = await stack.enter_async_context(build_classifier(settings))

        engine = SyncEngine(
            target=bmv,
            source=km,
            transformer=ActivityTransformer(
                classifier, ActivityDefaults.from_settings(settings)
            ),
            lookback=settings.known_lookback,
        )
        return await engine.run(limit=limit, dry_run=dry_run)
