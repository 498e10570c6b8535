# File: services.py
"""Defines custom services for the SafeCheck integration.

These services allow check-ins, schedule edits and the vacation/SOS flags to
be driven from scripts, automations and companion-app notification actions.
Seniors are addressed by display name.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import voluptuous as vol
from homeassistant.core import (
    HomeAssistant,
    ServiceCall,
    ServiceResponse,
    SupportsResponse,
)
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import config_validation as cv

from . import const
from .coordinator import SafeCheckDataCoordinator
from .engines.statistics_engine import StatisticsEngine
from .helpers.entity_helpers import get_first_safecheck_entry, get_senior_id_by_name
from .utils.dt_utils import as_utc, start_of_local_day

# --- Service Schemas ---
RECORD_CHECK_IN_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_SENIOR_NAME): cv.string,
        vol.Optional(const.FIELD_MOOD): cv.string,
        vol.Optional(const.FIELD_SLEEP): cv.string,
        vol.Optional(const.FIELD_ENERGY): cv.string,
        vol.Optional(const.FIELD_MEDICATION): cv.string,
        vol.Optional(const.FIELD_BRAIN_EXERCISE, default=False): cv.boolean,
        vol.Inclusive(const.FIELD_LATITUDE, "location"): cv.latitude,
        vol.Inclusive(const.FIELD_LONGITUDE, "location"): cv.longitude,
        vol.Optional(const.FIELD_LOCATION_ADDRESS): cv.string,
    }
)

SCHEDULE_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_SENIOR_NAME): cv.string,
        vol.Required(const.FIELD_SCHEDULE_TIME): cv.string,
    }
)

SET_VACATION_MODE_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_SENIOR_NAME): cv.string,
        vol.Required(const.FIELD_ENABLED): cv.boolean,
    }
)

SET_SOS_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_SENIOR_NAME): cv.string,
        vol.Required(const.FIELD_ACTIVE): cv.boolean,
    }
)

REGISTER_SENIOR_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_SENIOR_NAME): cv.string,
        vol.Optional(const.FIELD_NOTIFY_SERVICE): cv.string,
    }
)

GET_CHECK_IN_HISTORY_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_SENIOR_NAME): cv.string,
        vol.Optional(const.FIELD_START_DATE): cv.datetime,
        vol.Optional(const.FIELD_END_DATE): cv.datetime,
    }
)


def _get_coordinator(hass: HomeAssistant, service: str) -> SafeCheckDataCoordinator:
    """Return the coordinator of the first loaded entry."""
    entry_id = get_first_safecheck_entry(hass)
    if not entry_id:
        const.LOGGER.warning("WARNING: %s: %s", service, const.MSG_NO_ENTRY_FOUND)
        raise HomeAssistantError(const.MSG_NO_ENTRY_FOUND)
    return hass.data[const.DOMAIN][entry_id][const.COORDINATOR]


def _resolve_senior(
    coordinator: SafeCheckDataCoordinator, senior_name: str, service: str
) -> str:
    """Map a display name to the senior's internal id."""
    senior_id = get_senior_id_by_name(coordinator, senior_name)
    if not senior_id:
        const.LOGGER.warning(
            "WARNING: %s: %s",
            service,
            const.ERROR_SENIOR_NOT_FOUND_FMT.format(senior_name),
        )
        raise HomeAssistantError(const.ERROR_SENIOR_NOT_FOUND_FMT.format(senior_name))
    return senior_id


def async_setup_services(hass: HomeAssistant) -> None:
    """Register SafeCheck services."""

    async def handle_record_check_in(call: ServiceCall) -> None:
        """Handle recording a check-in."""
        coordinator = _get_coordinator(hass, "Record Check-in")
        senior_name = call.data[const.FIELD_SENIOR_NAME]
        senior_id = _resolve_senior(coordinator, senior_name, "Record Check-in")

        record = await coordinator.checkin_manager.async_record_check_in(
            senior_id,
            mood=call.data.get(const.FIELD_MOOD),
            sleep=call.data.get(const.FIELD_SLEEP),
            energy=call.data.get(const.FIELD_ENERGY),
            medication=call.data.get(const.FIELD_MEDICATION),
            brain_exercise_completed=call.data[const.FIELD_BRAIN_EXERCISE],
            latitude=call.data.get(const.FIELD_LATITUDE),
            longitude=call.data.get(const.FIELD_LONGITUDE),
            location_address=call.data.get(const.FIELD_LOCATION_ADDRESS),
        )
        const.LOGGER.info(
            "INFO: Check-in %s recorded for senior '%s'", record.id, senior_name
        )
        await coordinator.async_request_refresh()

    async def handle_add_schedule(call: ServiceCall) -> None:
        """Handle adding a daily check-in time."""
        coordinator = _get_coordinator(hass, "Add Schedule")
        senior_id = _resolve_senior(
            coordinator, call.data[const.FIELD_SENIOR_NAME], "Add Schedule"
        )
        await coordinator.schedule_manager.async_add_schedule(
            senior_id, call.data[const.FIELD_SCHEDULE_TIME]
        )
        await coordinator.async_request_refresh()

    async def handle_remove_schedule(call: ServiceCall) -> None:
        """Handle removing a daily check-in time."""
        coordinator = _get_coordinator(hass, "Remove Schedule")
        senior_id = _resolve_senior(
            coordinator, call.data[const.FIELD_SENIOR_NAME], "Remove Schedule"
        )
        await coordinator.schedule_manager.async_remove_schedule(
            senior_id, call.data[const.FIELD_SCHEDULE_TIME]
        )
        await coordinator.async_request_refresh()

    async def handle_set_vacation_mode(call: ServiceCall) -> None:
        """Handle toggling vacation mode."""
        coordinator = _get_coordinator(hass, "Set Vacation Mode")
        senior_id = _resolve_senior(
            coordinator, call.data[const.FIELD_SENIOR_NAME], "Set Vacation Mode"
        )
        await coordinator.checkin_manager.async_set_vacation_mode(
            senior_id, call.data[const.FIELD_ENABLED]
        )
        await coordinator.async_request_refresh()

    async def handle_set_sos(call: ServiceCall) -> None:
        """Handle raising or clearing SOS."""
        coordinator = _get_coordinator(hass, "Set SOS")
        senior_id = _resolve_senior(
            coordinator, call.data[const.FIELD_SENIOR_NAME], "Set SOS"
        )
        await coordinator.checkin_manager.async_set_sos(
            senior_id, call.data[const.FIELD_ACTIVE]
        )
        await coordinator.async_request_refresh()

    async def handle_register_senior(call: ServiceCall) -> None:
        """Handle registering a senior."""
        coordinator = _get_coordinator(hass, "Register Senior")
        await coordinator.checkin_manager.async_register_senior(
            call.data[const.FIELD_SENIOR_NAME],
            call.data.get(const.FIELD_NOTIFY_SERVICE),
        )
        await coordinator.async_request_refresh()

    async def handle_get_check_in_history(call: ServiceCall) -> ServiceResponse:
        """Return check-ins and the success rate for a date range."""
        coordinator = _get_coordinator(hass, "Get Check-in History")
        senior_id = _resolve_senior(
            coordinator, call.data[const.FIELD_SENIOR_NAME], "Get Check-in History"
        )
        start: datetime | None = call.data.get(const.FIELD_START_DATE)
        end: datetime | None = call.data.get(const.FIELD_END_DATE)
        if start is not None:
            start = start_of_local_day(as_utc(start))

        records = coordinator.checkin_manager.get_check_in_history(
            senior_id,
            start=start,
            end=as_utc(end) if end is not None else None,
        )
        response: dict[str, Any] = {
            "check_ins": [record.as_dict() for record in records],
            "success_rate": StatisticsEngine.success_rate(records),
            "days": StatisticsEngine.summarize_history(records),
        }
        return response

    # --- Register Services ---
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_RECORD_CHECK_IN,
        handle_record_check_in,
        schema=RECORD_CHECK_IN_SCHEMA,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_ADD_SCHEDULE,
        handle_add_schedule,
        schema=SCHEDULE_SCHEMA,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_REMOVE_SCHEDULE,
        handle_remove_schedule,
        schema=SCHEDULE_SCHEMA,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_SET_VACATION_MODE,
        handle_set_vacation_mode,
        schema=SET_VACATION_MODE_SCHEMA,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_SET_SOS,
        handle_set_sos,
        schema=SET_SOS_SCHEMA,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_REGISTER_SENIOR,
        handle_register_senior,
        schema=REGISTER_SENIOR_SCHEMA,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_GET_CHECK_IN_HISTORY,
        handle_get_check_in_history,
        schema=GET_CHECK_IN_HISTORY_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )

    const.LOGGER.debug("DEBUG: SafeCheck services registered")


async def async_unload_services(hass: HomeAssistant) -> None:
    """Unregister SafeCheck services when unloading the integration."""
    for service in const.SERVICES:
        if hass.services.has_service(const.DOMAIN, service):
            hass.services.async_remove(const.DOMAIN, service)

    const.LOGGER.info("INFO: SafeCheck services have been unregistered")
