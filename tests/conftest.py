"""Shared fixtures for SafeCheck tests."""

from collections.abc import AsyncGenerator, Generator
from typing import Any
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

import pytest
from homeassistant.core import HomeAssistant, ServiceCall
from pytest_homeassistant_custom_component.common import (
    MockConfigEntry,
    async_mock_service,
)

from custom_components.safecheck import const
from custom_components.safecheck.coordinator import SafeCheckDataCoordinator
from custom_components.safecheck.utils import dt_utils

# pylint: disable=invalid-name
pytest_plugins = "pytest_homeassistant_custom_component"
# pylint: enable=invalid-name

SENIOR_NAME = "Rose"
FAMILY_NOTIFY_SERVICE = "notify.family"
SENIOR_NOTIFY_SERVICE = "notify.rose_phone"

# Monday 2026-03-02 08:00 UTC; the integration runs in UTC during tests
SETUP_TIME = "2026-03-02 08:00:00+00:00"


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(enable_custom_integrations: Any) -> Any:
    """Enable custom integrations in tests."""
    # pylint: disable=unused-argument
    yield


@pytest.fixture(autouse=True)
def reset_default_timezone() -> Generator[None]:
    """Keep the pure helpers on UTC regardless of what a test configured."""
    dt_utils.set_default_timezone(ZoneInfo("UTC"))
    yield
    dt_utils.set_default_timezone(ZoneInfo("UTC"))


@pytest.fixture
def mock_config_entry() -> MockConfigEntry:
    """Return a mock config entry."""
    return MockConfigEntry(
        domain=const.DOMAIN,
        title=const.SAFECHECK_TITLE,
        data={
            const.CONF_SENIOR_NAME: SENIOR_NAME,
            const.CONF_SENIOR_NOTIFY_SERVICE: SENIOR_NOTIFY_SERVICE,
            const.CONF_FAMILY_NOTIFY_SERVICE: FAMILY_NOTIFY_SERVICE,
        },
        entry_id="test_entry_id",
        unique_id="test_unique_id",
    )


@pytest.fixture
def family_notify_calls(hass: HomeAssistant) -> list[ServiceCall]:
    """Capture calls to the family notify service."""
    return async_mock_service(hass, "notify", "family")


@pytest.fixture
def senior_notify_calls(hass: HomeAssistant) -> list[ServiceCall]:
    """Capture calls to the senior's notify service."""
    return async_mock_service(hass, "notify", "rose_phone")


@pytest.fixture
def mock_point_in_time() -> Generator[MagicMock]:
    """Replace deadline timers so they only fire when a test says so."""
    with patch(
        "custom_components.safecheck.managers.monitor_manager.async_track_point_in_time",
        return_value=MagicMock(),
    ) as mock_track:
        yield mock_track


@pytest.fixture
async def init_integration(
    hass: HomeAssistant,
    freezer: Any,
    mock_config_entry: MockConfigEntry,  # pylint: disable=redefined-outer-name
    mock_point_in_time: MagicMock,  # pylint: disable=redefined-outer-name
    family_notify_calls: list[ServiceCall],  # pylint: disable=redefined-outer-name
    senior_notify_calls: list[ServiceCall],  # pylint: disable=redefined-outer-name
) -> AsyncGenerator[MockConfigEntry]:
    """Set up the SafeCheck integration at SETUP_TIME with in-memory storage."""
    # pylint: disable=unused-argument
    freezer.move_to(SETUP_TIME)
    await hass.config.async_set_time_zone("UTC")
    mock_config_entry.add_to_hass(hass)

    assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    yield mock_config_entry

    await hass.config_entries.async_unload(mock_config_entry.entry_id)
    await hass.async_block_till_done()


@pytest.fixture
def coordinator(
    hass: HomeAssistant,
    init_integration: MockConfigEntry,  # pylint: disable=redefined-outer-name
) -> SafeCheckDataCoordinator:
    """Return the coordinator of the set-up entry."""
    return hass.data[const.DOMAIN][init_integration.entry_id][const.COORDINATOR]


@pytest.fixture
def senior_id(
    coordinator: SafeCheckDataCoordinator,  # pylint: disable=redefined-outer-name
) -> str:
    """Return the id of the senior registered from the config entry."""
    return coordinator.senior_ids[0]
