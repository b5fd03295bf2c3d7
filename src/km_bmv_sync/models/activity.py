"""BMV activity ("Ausrückung" / "Probe") models.

The BMV data service uses German column names. Attributes here are English
and carry the BMV name as alias; always serialize with `by_alias=True`.

## Field Mapping

| Attribute | BMV field | Notes |
|-----------|-----------|-------|
| id | ID | GUID string |
| organization_id | verein_id | Required for new activities |
| annotation | Anmerkung | Free text, carries the `KM_ID=<n>` tag |
| kind | Ausrueckungsart | "P" (Probe) or "V" (Veranstaltung) |
| category | P_V_Art | Category label |
| fee_required | AKM_PFL | AKM (performing rights) obligation |
| date | V_DATUM | Full ISO date-time of the start |
| start_time / end_time | V_ZEIT_V / V_ZEIT_B | "HH:MM" |
| ensemble | Ensemble_Gruppe | |
| rehearsal_group_id | Probengruppen_ID | GUID |
| name | Bezeichnung | |
| venue_address | V_ORT | |
| venue_name | Bez_Veranstaltungslokal | |
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ActivityKind(str, Enum):
    """BMV `Ausrueckungsart`."""

    REHEARSAL = "P"  # Probe
    EVENT = "V"  # Veranstaltung


class ActivityBase(BaseModel):
    """Fields shared by existing and new activities."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    date: str | None = Field(default=None, alias="V_DATUM")
    start_time: str | None = Field(default=None, alias="V_ZEIT_V")
    end_time: str | None = Field(default=None, alias="V_ZEIT_B")
    ensemble: str | None = Field(default=None, alias="Ensemble_Gruppe")
    rehearsal_group_id: str | None = Field(default=None, alias="Probengruppen_ID")
    kind: str | None = Field(default=None, alias="Ausrueckungsart")
    category: str | None = Field(default=None, alias="P_V_Art")
    name: str | None = Field(default=None, alias="Bezeichnung")
    organizer: str | None = Field(default=None, alias="Bez_Veranstalter")
    venue_street: str | None = Field(default=None, alias="V_STRASSE")
    venue_address: str | None = Field(default=None, alias="V_ORT")
    venue_postcode: str | None = Field(default=None, alias="V_PLTZ")
    venue_name: str | None = Field(default=None, alias="Bez_Veranstaltungslokal")
    location_street: str | None = Field(default=None, alias="L_STRASSE")
    location_city: str | None = Field(default=None, alias="L_ORT")
    location_postcode: str | None = Field(default=None, alias="L_PLTZ")
    fee_required: bool | None = Field(default=None, alias="AKM_PFL")
    participant_count: int | None = Field(default=None, alias="Anz_Teilnehmer")
    annotation: str | None = Field(default=None, alias="Anmerkung")
    work_hours: float | None = Field(default=None, alias="Arbeitsstunden")
    fee_reported: bool | None = Field(default=None, alias="AKM_Meldung")
    fee_report_date: str | None = Field(default=None, alias="AKM_Meldedatum")
    head_quota: bool | None = Field(default=None, alias="Kopfquote")
    modified: str | None = Field(default=None, alias="Aenderung")


class Activity(ActivityBase):
    """An activity fetched from BMV.

    Only `annotation` is used by the sync; everything but the ID is optional
    so that sparse historical records still validate.
    """

    id: str = Field(..., alias="ID")
    organization_id: int | None = Field(default=None, alias="verein_id")


class NewActivity(ActivityBase):
    """An activity to be created in BMV.

    Has no ID yet; the BMV client assigns one when submitting.
    """

    organization_id: int = Field(..., alias="verein_id")

    def to_payload(self) -> dict[str, Any]:
        """Serialize with BMV field names.

        Fields that were never set are left out; fields explicitly set to
        None are sent as null.
        """
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")
