"""Konzertmeister appointment -> BMV activity transformation.

## Rules

1. Type: performances (`typId` 2) become events ("V") with AKM obligation;
   everything else becomes a rehearsal ("P") without.
2. Ensemble: the appointment's group name; else, for rehearsals named
   "Register...", the register from the name ("Registerprobe Blech" ->
   "Blech"); else the default ensemble.
3. Date/time: `V_DATUM` is the full start timestamp in UTC, `V_ZEIT_V` and
   `V_ZEIT_B` are the local "HH:MM" of start and end. Missing or
   unparseable timestamps leave the fields empty.
4. Annotation: description plus the `KM_ID=<id>` tag.
5. Category: classified from name and group against the rehearsal or event
   category list.
6. Location: formatted address -> `V_ORT`, meeting point ->
   `Bez_Veranstaltungslokal`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from km_bmv_sync.classification.categories import EVENT_CATEGORIES, REHEARSAL_CATEGORIES
from km_bmv_sync.classification.classifier import CategoryClassifier
from km_bmv_sync.config import Settings
from km_bmv_sync.models.activity import ActivityKind, NewActivity
from km_bmv_sync.models.appointment import Appointment
from km_bmv_sync.sync.correlation import embed_source_id

logger = logging.getLogger(__name__)

DEFAULT_ENSEMBLE = "alle aktiven Musiker/innen"

REGISTER_REHEARSAL_PREFIX = re.compile(r"registerprobe\s*", re.IGNORECASE)
REGISTER_PREFIX = re.compile(r"register\s*", re.IGNORECASE)


@dataclass(frozen=True)
class ActivityDefaults:
    """Fixed values for every new activity of this organization."""

    organization_id: int = 236
    rehearsal_group_id: str | None = "620C0A8B-FBAF-4E3F-B622-40501D54732C"
    default_ensemble: str = DEFAULT_ENSEMBLE
    local_timezone: tzinfo = ZoneInfo("Europe/Vienna")

    @classmethod
    def from_settings(cls, settings: Settings) -> ActivityDefaults:
        return cls(
            organization_id=settings.organization_id,
            rehearsal_group_id=settings.rehearsal_group_id,
            default_ensemble=settings.default_ensemble,
            local_timezone=settings.tzinfo,
        )


@dataclass(frozen=True)
class SplitDateTime:
    """A timestamp split into BMV's date and time columns."""

    date: str | None = None
    time: str | None = None


def map_activity_kind(appointment: Appointment) -> tuple[ActivityKind, bool]:
    """Return (kind, AKM obligation) for an appointment."""
    if appointment.is_performance:
        return ActivityKind.EVENT, True
    return ActivityKind.REHEARSAL, False


def ensemble_from_register_name(name: str, default: str = DEFAULT_ENSEMBLE) -> str:
    """Strip "Registerprobe"/"Register" from a rehearsal name.

    "Registerprobe Hohes Blech" -> "Hohes Blech", "Register" -> default.
    """
    result = REGISTER_REHEARSAL_PREFIX.sub("", name, count=1)
    result = REGISTER_PREFIX.sub("", result, count=1)
    return result.strip() or default


def resolve_ensemble(
    appointment: Appointment,
    kind: ActivityKind,
    default: str = DEFAULT_ENSEMBLE,
) -> str:
    if appointment.group_name:
        return appointment.group_name
    if kind is ActivityKind.REHEARSAL and "register" in appointment.name.lower():
        return ensemble_from_register_name(appointment.name, default)
    return default


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp, returning None if absent or invalid."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Ignoring unparseable timestamp {value!r}")
        return None


def split_datetime(value: str | None, local_tz: tzinfo) -> SplitDateTime:
    """Split a timestamp into full UTC ISO date-time and local "HH:MM".

    Naive timestamps are taken as local time.
    """
    parsed = parse_timestamp(value)
    if parsed is None:
        return SplitDateTime()

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=local_tz)

    try:
        utc = parsed.astimezone(timezone.utc)
        local = parsed.astimezone(local_tz)
    except (OverflowError, ValueError):
        logger.debug(f"Ignoring out-of-range timestamp {value!r}")
        return SplitDateTime()

    return SplitDateTime(
        date=utc.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        time=local.strftime("%H:%M"),
    )


def build_annotation(appointment: Appointment) -> str:
    return embed_source_id(appointment.description, appointment.id)


def build_classification_text(appointment: Appointment) -> str:
    if appointment.group_name:
        return f"{appointment.name} (group: {appointment.group_name})"
    return appointment.name


def categories_for(kind: ActivityKind) -> tuple[str, ...]:
    if kind is ActivityKind.EVENT:
        return EVENT_CATEGORIES
    return REHEARSAL_CATEGORIES


class ActivityTransformer:
    """Converts appointments into new BMV activities.

    The classifier call is the only I/O; several `transform()` calls may run
    concurrently.

    Example:
        ```python
        transformer = ActivityTransformer(classifier, ActivityDefaults())
        activity = await transformer.transform(appointment)
        ```
    """

    def __init__(
        self,
        classifier: CategoryClassifier,
        defaults: ActivityDefaults | None = None,
    ):
        self.classifier = classifier
        self.defaults = defaults or ActivityDefaults()

    async def transform(self, appointment: Appointment) -> NewActivity:
        kind, fee_required = map_activity_kind(appointment)
        tz = self.defaults.local_timezone
        start = split_datetime(appointment.start, tz)
        end = split_datetime(appointment.end, tz)

        category = await self.classifier.classify(
            build_classification_text(appointment),
            categories_for(kind),
        )

        return NewActivity(
            date=start.date,
            start_time=start.time,
            end_time=end.time,
            ensemble=resolve_ensemble(appointment, kind, self.defaults.default_ensemble),
            kind=kind.value,
            category=category,
            name=appointment.name,
            fee_required=fee_required,
            annotation=build_annotation(appointment),
            fee_reported=False,
            fee_report_date=None,
            head_quota=False,
            organization_id=self.defaults.organization_id,
            venue_address=appointment.location.formatted_address
            if appointment.location
            else None,
            venue_name=appointment.meeting_point or None,
            rehearsal_group_id=self.defaults.rehearsal_group_id,
        )
