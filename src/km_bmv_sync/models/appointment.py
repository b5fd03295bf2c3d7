"""Konzertmeister appointment models.

Only the fields the sync reads are modelled. The API returns many more
(attendance, statistics, payment plan, ...); unknown keys are ignored so
that additions on the Konzertmeister side do not break validation.

Timestamps stay strings: an unparseable `start` must not reject the whole
appointment, it only leaves the derived date/time fields empty.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class AppointmentType(IntEnum):
    """Konzertmeister `typId` values the sync distinguishes."""

    REHEARSAL = 1
    PERFORMANCE = 2


class AppointmentGroup(BaseModel):
    """Group (ensemble/register) the appointment is restricted to."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int | None = None
    name: str | None = None


class AppointmentLocation(BaseModel):
    """Structured location picked from the Konzertmeister location search."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: int | None = None
    name: str | None = None
    formatted_address: str | None = Field(default=None, alias="formattedAddress")
    latitude: float | None = None
    longitude: float | None = None


class Appointment(BaseModel):
    """A Konzertmeister appointment (rehearsal, performance or other)."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: int
    name: str
    description: str | None = None
    start: str | None = None
    end: str | None = None
    type_id: int | None = Field(default=None, alias="typId")
    group: AppointmentGroup | None = None
    meeting_point: str | None = Field(default=None, alias="meetingPoint")
    location: AppointmentLocation | None = None

    @property
    def is_performance(self) -> bool:
        return self.type_id == AppointmentType.PERFORMANCE

    @property
    def group_name(self) -> str | None:
        """Explicit group name, if the appointment carries a non-empty one."""
        if self.group and self.group.name:
            return self.group.name
        return None


class AppointmentQuery(BaseModel):
    """Filter body posted with every `getpaged` request."""

    model_config = ConfigDict(populate_by_name=True)

    date_mode: Literal["UPCOMING", "PAST", "ALL"] = Field(
        default="UPCOMING", alias="dateMode"
    )
    filter_start: str | None = Field(default=None, alias="filterStart")
    filter_end: str | None = Field(default=None, alias="filterEnd")
    parent_org_ids: list[int] | None = Field(default=None, alias="parentOrgIds")
    group_org_ids: list[int] | None = Field(default=None, alias="groupOrgIds")
    settings: list[dict] = Field(default_factory=list)

    def to_payload(self) -> dict:
        """Serialize with the Konzertmeister field names."""
        return self.model_dump(by_alias=True)
