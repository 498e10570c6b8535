"""Statistics Engine - Check-in history aggregation.

Computes the historical success rate and the per-day history summary returned
by the check-in history service.

Design Principles:
    - Stateless: operates on lists of CheckInRecord passed in by the caller
    - Day grouping uses the local calendar day of each record's timestamp
    - `scheduled_count` on each record is the denominator for that day, so
      adding or removing schedules later never rewrites past success rates
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any

from .. import const
from ..utils.dt_utils import dt_to_utc, local_date

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import tzinfo

    from ..type_defs import CheckInRecord


class StatisticsEngine:
    """Stateless aggregation over check-in records.

    All methods are static; the engine never persists anything.
    """

    @staticmethod
    def group_by_local_day(
        records: Iterable[CheckInRecord], tz: tzinfo | None = None
    ) -> dict[date, list[CheckInRecord]]:
        """Group records by local calendar day, newest first within a day."""
        grouped: dict[date, list[CheckInRecord]] = {}
        for record in records:
            timestamp = dt_to_utc(record.timestamp)
            if timestamp is None:
                const.LOGGER.warning(
                    "WARNING: Skipping check-in %s with invalid timestamp '%s'",
                    record.id,
                    record.timestamp,
                )
                continue
            grouped.setdefault(local_date(timestamp, tz), []).append(record)
        for day_records in grouped.values():
            day_records.sort(key=lambda r: r.timestamp, reverse=True)
        return grouped

    @staticmethod
    def day_completion(day_records: list[CheckInRecord]) -> tuple[int, int]:
        """Return (satisfied, scheduled) for one day's records.

        `scheduled` is the largest schedule-count snapshot of the day and
        `satisfied` the number of distinct entries resolved, capped at it. A
        day with check-ins but no resolved entries still counts one.
        """
        scheduled = max((r.scheduled_count for r in day_records), default=0)
        resolved = {entry for r in day_records for entry in r.scheduled_for}
        satisfied = len(resolved) if resolved else min(len(day_records), 1)
        return min(satisfied, scheduled), scheduled

    @staticmethod
    def success_rate(
        records: Iterable[CheckInRecord], tz: tzinfo | None = None
    ) -> float | None:
        """Share of scheduled check-ins satisfied, over days with any record.

        Returns:
            Ratio between 0.0 and 1.0 rounded to 2 places, or None without data.
        """
        satisfied_total = 0
        scheduled_total = 0
        for day_records in StatisticsEngine.group_by_local_day(records, tz).values():
            satisfied, scheduled = StatisticsEngine.day_completion(day_records)
            satisfied_total += satisfied
            scheduled_total += scheduled
        if scheduled_total == 0:
            return None
        return round(satisfied_total / scheduled_total, 2)

    @staticmethod
    def summarize_history(
        records: Iterable[CheckInRecord], tz: tzinfo | None = None
    ) -> list[dict[str, Any]]:
        """Build the per-day history payload, newest day first."""
        grouped = StatisticsEngine.group_by_local_day(records, tz)
        summary: list[dict[str, Any]] = []
        for day in sorted(grouped, reverse=True):
            day_records = grouped[day]
            satisfied, scheduled = StatisticsEngine.day_completion(day_records)
            summary.append(
                {
                    "date": day.isoformat(),
                    "satisfied": satisfied,
                    "scheduled": scheduled,
                    "check_ins": [record.as_dict() for record in day_records],
                }
            )
        return summary
