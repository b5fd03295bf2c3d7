"""Domain models for the Konzertmeister to BMV sync."""

from km_bmv_sync.models.activity import (
    Activity,
    ActivityBase,
    ActivityKind,
    NewActivity,
)
from km_bmv_sync.models.appointment import (
    Appointment,
    AppointmentGroup,
    AppointmentLocation,
    AppointmentQuery,
    AppointmentType,
)

__all__ = [
    # BMV
    "Activity",
    "ActivityBase",
    "ActivityKind",
    "NewActivity",
    # Konzertmeister
    "Appointment",
    "AppointmentGroup",
    "AppointmentLocation",
    "AppointmentQuery",
    "AppointmentType",
]
