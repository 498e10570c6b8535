"""Tests for CheckInManager.

Runs against a fully set-up entry: the senior "Rose" is registered by the
config entry at 2026-03-02 08:00 UTC with the default 11:00 AM schedule.

Test Categories:
- Schedule resolution (early, late, completed day)
- Streak transitions across days
- Concurrent check-ins
- Vacation mode, SOS, registration, history, location
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any

import pytest
from homeassistant.core import HomeAssistant, ServiceCall

from custom_components.safecheck import const
from custom_components.safecheck.coordinator import SafeCheckDataCoordinator
from custom_components.safecheck.exceptions import InvalidArgumentError
from custom_components.safecheck.managers.checkin_manager import (
    check_ins_collection,
    profile_path,
    senior_state_path,
)


def get_state(coordinator: SafeCheckDataCoordinator, senior_id: str) -> dict:
    """Return the committed state document of a senior."""
    state = coordinator.store.get_document(senior_state_path(senior_id))
    assert state is not None
    return state


# =============================================================================
# Test: registration from the config entry
# =============================================================================


class TestRegistration:
    """Tests for senior registration."""

    async def test_config_entry_senior_registered(
        self, coordinator: SafeCheckDataCoordinator, senior_id: str
    ) -> None:
        """Test that setup registers the configured senior with the default time."""
        assert coordinator.senior_ids == [senior_id]
        assert coordinator.profiles[senior_id][const.DATA_PROFILE_NAME] == "Rose"
        assert (
            coordinator.get_senior_notify_service(senior_id) == "notify.rose_phone"
        )
        state = get_state(coordinator, senior_id)
        assert state[const.DATA_SENIOR_SCHEDULES] == [const.DEFAULT_SCHEDULE]
        assert state[const.DATA_SENIOR_NEXT_EXPECTED] == "2026-03-02T11:00:00+00:00"

    async def test_register_is_idempotent_by_name(
        self, coordinator: SafeCheckDataCoordinator, senior_id: str
    ) -> None:
        """Test that registering an existing name returns the same id."""
        assert await coordinator.checkin_manager.async_register_senior(" rose ") == (
            senior_id
        )
        assert len(coordinator.senior_ids) == 1

    async def test_register_second_senior(
        self, coordinator: SafeCheckDataCoordinator, senior_id: str
    ) -> None:
        """Test that a new name creates a second senior."""
        walter_id = await coordinator.checkin_manager.async_register_senior(
            "Walter", "notify.walter"
        )
        assert walter_id != senior_id
        assert coordinator.senior_ids == [senior_id, walter_id]
        assert coordinator.get_senior_notify_service(walter_id) == "notify.walter"

    async def test_register_blank_name_rejected(
        self, coordinator: SafeCheckDataCoordinator
    ) -> None:
        """Test that a blank name is rejected."""
        with pytest.raises(InvalidArgumentError):
            await coordinator.checkin_manager.async_register_senior("   ")


# =============================================================================
# Test: recording check-ins
# =============================================================================


class TestRecordCheckIn:
    """Tests for async_record_check_in."""

    async def test_early_check_in_satisfies_next_entry(
        self, coordinator: SafeCheckDataCoordinator, senior_id: str
    ) -> None:
        """Test a check-in before the only schedule time."""
        record = await coordinator.checkin_manager.async_record_check_in(
            senior_id, mood="good"
        )

        assert record.scheduled_for == ["11:00 AM"]
        assert record.scheduled_count == 1
        state = get_state(coordinator, senior_id)
        assert state[const.DATA_SENIOR_COMPLETED_TODAY] == ["11:00 AM"]
        assert state[const.DATA_SENIOR_RESET_DATE] == "2026-03-02"
        assert state[const.DATA_SENIOR_CURRENT_STREAK] == 1
        assert state[const.DATA_SENIOR_START_DATE] == "2026-03-02"
        assert state[const.DATA_SENIOR_NEXT_EXPECTED] == "2026-03-03T11:00:00+00:00"
        stored = coordinator.store.get_document(
            f"{check_ins_collection(senior_id)}/{record.id}"
        )
        assert stored is not None
        assert stored[const.DATA_CHECK_IN_MOOD] == "good"

    async def test_late_check_in_clears_all_overdue(
        self, coordinator: SafeCheckDataCoordinator, senior_id: str, freezer: Any
    ) -> None:
        """Test that one late check-in resolves every overdue entry."""
        schedules = coordinator.schedule_manager
        await schedules.async_add_schedule(senior_id, "9:00 AM")
        await schedules.async_add_schedule(senior_id, "10:00 AM")
        await schedules.async_add_schedule(senior_id, "6:00 PM")

        freezer.move_to("2026-03-02 11:30:00+00:00")
        record = await coordinator.checkin_manager.async_record_check_in(senior_id)

        assert sorted(record.scheduled_for) == sorted(
            ["9:00 AM", "10:00 AM", "11:00 AM"]
        )
        assert record.scheduled_count == 4
        state = get_state(coordinator, senior_id)
        assert state[const.DATA_SENIOR_NEXT_EXPECTED] == "2026-03-02T18:00:00+00:00"

    async def test_check_in_after_completed_day_resolves_nothing(
        self, coordinator: SafeCheckDataCoordinator, senior_id: str
    ) -> None:
        """Test that a second check-in on a satisfied day only adds a record."""
        manager = coordinator.checkin_manager
        await manager.async_record_check_in(senior_id)
        second = await manager.async_record_check_in(senior_id)

        assert second.scheduled_for == []
        state = get_state(coordinator, senior_id)
        assert state[const.DATA_SENIOR_COMPLETED_TODAY] == ["11:00 AM"]
        assert state[const.DATA_SENIOR_CURRENT_STREAK] == 1

    async def test_streak_across_days(
        self, coordinator: SafeCheckDataCoordinator, senior_id: str, freezer: Any
    ) -> None:
        """Test consecutive days increment and a gap resets."""
        manager = coordinator.checkin_manager
        await manager.async_record_check_in(senior_id)

        freezer.move_to("2026-03-03 09:00:00+00:00")
        await manager.async_record_check_in(senior_id)
        state = get_state(coordinator, senior_id)
        assert state[const.DATA_SENIOR_CURRENT_STREAK] == 2
        assert state[const.DATA_SENIOR_START_DATE] == "2026-03-02"
        # Yesterday's completion does not carry over
        assert state[const.DATA_SENIOR_COMPLETED_TODAY] == ["11:00 AM"]
        assert state[const.DATA_SENIOR_RESET_DATE] == "2026-03-03"

        freezer.move_to("2026-03-06 09:00:00+00:00")
        await manager.async_record_check_in(senior_id)
        state = get_state(coordinator, senior_id)
        assert state[const.DATA_SENIOR_CURRENT_STREAK] == 1
        assert state[const.DATA_SENIOR_START_DATE] == "2026-03-06"

    async def test_concurrent_check_ins_increment_once(
        self, coordinator: SafeCheckDataCoordinator, senior_id: str, freezer: Any
    ) -> None:
        """Test that two simultaneous late check-ins converge."""
        manager = coordinator.checkin_manager
        await manager.async_record_check_in(senior_id)

        freezer.move_to("2026-03-03 11:05:00+00:00")
        first, second = await asyncio.gather(
            manager.async_record_check_in(senior_id),
            manager.async_record_check_in(senior_id),
        )

        state = get_state(coordinator, senior_id)
        assert state[const.DATA_SENIOR_CURRENT_STREAK] == 2
        assert state[const.DATA_SENIOR_COMPLETED_TODAY] == ["11:00 AM"]
        assert sorted([first.scheduled_for, second.scheduled_for]) == [
            [],
            ["11:00 AM"],
        ]
        history = manager.get_check_in_history(senior_id)
        assert len(history) == 3

    async def test_check_in_resets_missed_counters(
        self, coordinator: SafeCheckDataCoordinator, senior_id: str
    ) -> None:
        """Test that a check-in zeroes today's missed counters."""
        await coordinator.store.async_update(
            senior_state_path(senior_id),
            {
                const.DATA_SENIOR_MISSED_TODAY: 2,
                const.DATA_SENIOR_MISSED_DATE: "2026-03-02",
                const.DATA_SENIOR_CONSECUTIVE_MISSED_DAYS: 2,
            },
        )

        await coordinator.checkin_manager.async_record_check_in(senior_id)

        state = get_state(coordinator, senior_id)
        assert state[const.DATA_SENIOR_MISSED_TODAY] == 0
        assert state[const.DATA_SENIOR_CONSECUTIVE_MISSED_DAYS] == 0

    async def test_location_updates_profile(
        self, coordinator: SafeCheckDataCoordinator, senior_id: str
    ) -> None:
        """Test that a check-in with coordinates stores the last known location."""
        await coordinator.checkin_manager.async_record_check_in(
            senior_id,
            latitude=40.7,
            longitude=-74.0,
            location_address="Main St",
        )

        profile = coordinator.store.get_document(profile_path(senior_id))
        assert profile[const.DATA_PROFILE_LATITUDE] == 40.7
        assert profile[const.DATA_PROFILE_LONGITUDE] == -74.0
        assert profile[const.DATA_PROFILE_LOCATION_ADDRESS] == "Main St"
        assert profile[const.DATA_PROFILE_NAME] == "Rose"

    async def test_check_in_clears_missed_reminder(
        self,
        hass: HomeAssistant,
        coordinator: SafeCheckDataCoordinator,
        senior_id: str,
        senior_notify_calls: list[ServiceCall],
    ) -> None:
        """Test that a check-in clears the senior's missed check-in reminder."""
        await coordinator.checkin_manager.async_record_check_in(senior_id)
        await hass.async_block_till_done()

        assert len(senior_notify_calls) == 1
        assert senior_notify_calls[0].data["message"] == const.NOTIFY_CLEAR
        assert senior_notify_calls[0].data["data"]["tag"].startswith(
            f"safecheck-{const.ALERT_CLASS_SELF_MISSED}-"
        )

    @pytest.mark.parametrize("bad_id", ["", "not-a-senior"])
    async def test_invalid_senior_rejected(
        self, coordinator: SafeCheckDataCoordinator, bad_id: str
    ) -> None:
        """Test that empty and unknown ids fail before any write."""
        with pytest.raises(InvalidArgumentError):
            await coordinator.checkin_manager.async_record_check_in(bad_id)


# =============================================================================
# Test: history
# =============================================================================


class TestHistory:
    """Tests for check-in history queries."""

    async def test_history_range(
        self, coordinator: SafeCheckDataCoordinator, senior_id: str, freezer: Any
    ) -> None:
        """Test start-inclusive filtering and newest-first order."""
        manager = coordinator.checkin_manager
        await manager.async_record_check_in(senior_id)
        freezer.move_to("2026-03-03 09:00:00+00:00")
        await manager.async_record_check_in(senior_id)
        freezer.move_to("2026-03-04 09:00:00+00:00")
        await manager.async_record_check_in(senior_id)

        records = manager.get_check_in_history(
            senior_id, start=datetime(2026, 3, 3, tzinfo=UTC)
        )
        assert [record.timestamp[:10] for record in records] == [
            "2026-03-04",
            "2026-03-03",
        ]

        recent = manager.get_recent_check_ins(senior_id, days=2)
        assert len(recent) == 2


# =============================================================================
# Test: vacation mode and SOS
# =============================================================================


class TestVacationAndSos:
    """Tests for the vacation and SOS flags."""

    async def test_vacation_toggles_next_expected(
        self, coordinator: SafeCheckDataCoordinator, senior_id: str
    ) -> None:
        """Test that vacation clears and restores the next expected check-in."""
        manager = coordinator.checkin_manager
        await manager.async_set_vacation_mode(senior_id, True)
        state = get_state(coordinator, senior_id)
        assert state[const.DATA_SENIOR_VACATION_MODE] is True
        assert const.DATA_SENIOR_NEXT_EXPECTED not in state
        assert coordinator.data[senior_id].status == const.STATUS_SAFE

        await manager.async_set_vacation_mode(senior_id, False)
        state = get_state(coordinator, senior_id)
        assert state[const.DATA_SENIOR_NEXT_EXPECTED] == "2026-03-02T11:00:00+00:00"

    async def test_sos_overrides_status(
        self,
        hass: HomeAssistant,
        coordinator: SafeCheckDataCoordinator,
        senior_id: str,
        family_notify_calls: list[ServiceCall],
    ) -> None:
        """Test that raising SOS flips the status and alerts the family."""
        await coordinator.checkin_manager.async_set_sos(senior_id, True)
        await hass.async_block_till_done()

        assert get_state(coordinator, senior_id)[const.DATA_SENIOR_SOS_ACTIVE] is True
        assert coordinator.data[senior_id].status == const.STATUS_SOS_ACTIVE
        assert len(family_notify_calls) == 1
        assert family_notify_calls[0].data["title"] == const.TITLE_SOS
        assert family_notify_calls[0].data["data"]["priority"] == "high"

        await coordinator.checkin_manager.async_set_sos(senior_id, False)
        await hass.async_block_till_done()
        assert coordinator.data[senior_id].status == const.STATUS_SAFE
        assert len(family_notify_calls) == 1
