"""Type definitions for SafeCheck data structures.

Stored documents are plain JSON dicts described with TypedDict (static analysis
only, no runtime enforcement). The check-in record is an immutable dataclass:
it is created exactly once per check-in and corrections build a new copy with
`dataclasses.replace`.

IMPORTANT: This file must NOT import from coordinator.py, managers or helpers
to avoid circular dependencies. Only import from const.py and typing.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, NotRequired, TypedDict

from . import const

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

SeniorId = str  # UUID string
DocumentPath = str  # "users/{uid}/data/senior_state"
ScheduleEntry = str  # Normalized "H:MM AM/PM"
ISODatetime = str  # ISO 8601 datetime string "2026-01-18T12:30:00+00:00"
ISODate = str  # ISO 8601 date string (no time) "2026-01-18"


# =============================================================================
# Stored documents
# =============================================================================


class SeniorStateData(TypedDict):
    """Type definition for the senior state document.

    Only `schedules` and `senior_created_at` are written at registration; all
    other fields appear on first check-in or mutation.
    """

    schedules: list[ScheduleEntry]
    senior_created_at: ISODatetime
    completed_schedules_today: NotRequired[list[ScheduleEntry]]
    schedule_reset_date: NotRequired[ISODate]
    current_streak: NotRequired[int]
    start_date: NotRequired[ISODate]
    last_check_in: NotRequired[ISODatetime]
    next_expected_check_in: NotRequired[ISODatetime]
    vacation_mode: NotRequired[bool]
    sos_active: NotRequired[bool]
    missed_check_ins_today: NotRequired[int]
    missed_check_ins_date: NotRequired[ISODate]
    last_missed_check_in: NotRequired[ISODatetime]
    consecutive_missed_days: NotRequired[int]
    last_escalation_at: NotRequired[ISODatetime]
    updated_at: NotRequired[ISODatetime]


class ProfileData(TypedDict):
    """Type definition for a senior's profile document."""

    display_name: str
    notify_service: NotRequired[str]
    latitude: NotRequired[float]
    longitude: NotRequired[float]
    location_address: NotRequired[str]
    location_updated_at: NotRequired[ISODatetime]


class ActivityLogData(TypedDict):
    """Type definition for a missed check-in or escalation activity entry."""

    type: str
    timestamp: ISODatetime
    schedule: NotRequired[ScheduleEntry]
    consecutive_missed_days: NotRequired[int]


# =============================================================================
# Check-in record
# =============================================================================


@dataclass(frozen=True)
class CheckInRecord:
    """Immutable, append-only record of one check-in event.

    `scheduled_for` lists the entries this check-in satisfied and
    `scheduled_count` snapshots how many schedules existed that day, both
    filled in by the check-in transaction.
    """

    id: str
    user_id: SeniorId
    timestamp: ISODatetime
    mood: str | None = None
    sleep: str | None = None
    energy: str | None = None
    medication: str | None = None
    brain_exercise_completed: bool = False
    latitude: float | None = None
    longitude: float | None = None
    location_address: str | None = None
    scheduled_for: list[ScheduleEntry] = field(default_factory=list)
    scheduled_count: int = 1

    @property
    def has_location(self) -> bool:
        """True when both coordinates are present."""
        return self.latitude is not None and self.longitude is not None

    def as_dict(self) -> dict[str, Any]:
        """Serialize to a storable dict, dropping unset optional answers."""
        return {key: value for key, value in asdict(self).items() if value is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CheckInRecord:
        """Build a record from a stored document."""
        return cls(
            id=data[const.DATA_CHECK_IN_ID],
            user_id=data[const.DATA_CHECK_IN_USER_ID],
            timestamp=data[const.DATA_CHECK_IN_TIMESTAMP],
            mood=data.get(const.DATA_CHECK_IN_MOOD),
            sleep=data.get(const.DATA_CHECK_IN_SLEEP),
            energy=data.get(const.DATA_CHECK_IN_ENERGY),
            medication=data.get(const.DATA_CHECK_IN_MEDICATION),
            brain_exercise_completed=bool(
                data.get(const.DATA_CHECK_IN_BRAIN_EXERCISE, False)
            ),
            latitude=data.get(const.DATA_CHECK_IN_LATITUDE),
            longitude=data.get(const.DATA_CHECK_IN_LONGITUDE),
            location_address=data.get(const.DATA_CHECK_IN_LOCATION_ADDRESS),
            scheduled_for=list(data.get(const.DATA_CHECK_IN_SCHEDULED_FOR, [])),
            scheduled_count=int(data.get(const.DATA_CHECK_IN_SCHEDULED_COUNT) or 1),
        )
