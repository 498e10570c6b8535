# File: config_flow.py
"""Config flow for the SafeCheck integration.

A single instance watches one household. The first senior and the notify
services are collected here; further seniors can be added with the
register_senior service.
"""

from __future__ import annotations

from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.config_entries import ConfigFlowResult

from . import const


def build_user_schema(defaults: dict[str, Any] | None = None) -> vol.Schema:
    """Build the schema of the user step."""
    defaults = defaults or {}
    return vol.Schema(
        {
            vol.Required(
                const.CONF_SENIOR_NAME,
                default=defaults.get(const.CONF_SENIOR_NAME, ""),
            ): str,
            vol.Optional(
                const.CONF_SENIOR_NOTIFY_SERVICE,
                description={
                    "suggested_value": defaults.get(const.CONF_SENIOR_NOTIFY_SERVICE)
                },
            ): str,
            vol.Optional(
                const.CONF_FAMILY_NOTIFY_SERVICE,
                description={
                    "suggested_value": defaults.get(const.CONF_FAMILY_NOTIFY_SERVICE)
                },
            ): str,
        }
    )


def normalize_notify_service(value: str | None) -> str | None:
    """Return "notify.<name>" for a bare service name, None when blank."""
    value = (value or "").strip()
    if not value:
        return None
    if "." not in value:
        return f"{const.NOTIFY_DOMAIN}.{value}"
    return value


class SafeCheckConfigFlow(config_entries.ConfigFlow, domain=const.DOMAIN):
    """Config Flow for SafeCheck."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Collect the first senior and the notify services."""
        if self._async_current_entries():
            return self.async_abort(reason=const.TRANS_KEY_ERROR_SINGLE_INSTANCE)

        errors: dict[str, str] = {}
        if user_input is not None:
            senior_name = user_input.get(const.CONF_SENIOR_NAME, "").strip()
            if not senior_name:
                errors[const.CFOF_ERRORS_SENIOR_NAME] = (
                    const.TRANS_KEY_ERROR_INVALID_SENIOR_NAME
                )
            else:
                data = {
                    const.CONF_SENIOR_NAME: senior_name,
                    const.CONF_SENIOR_NOTIFY_SERVICE: normalize_notify_service(
                        user_input.get(const.CONF_SENIOR_NOTIFY_SERVICE)
                    ),
                    const.CONF_FAMILY_NOTIFY_SERVICE: normalize_notify_service(
                        user_input.get(const.CONF_FAMILY_NOTIFY_SERVICE)
                    ),
                }
                const.LOGGER.debug("DEBUG: Creating SafeCheck entry for %s", senior_name)
                return self.async_create_entry(title=const.SAFECHECK_TITLE, data=data)

        return self.async_show_form(
            step_id=const.CONFIG_FLOW_STEP_USER,
            data_schema=build_user_schema(user_input),
            errors=errors,
        )
