# File: const.py
"""Constants for the SafeCheck integration.

This file centralizes configuration keys, defaults, document paths, field names,
signal suffixes and notification texts for consistency across the integration.
"""

import logging

import homeassistant.util.dt as dt_util
from homeassistant.const import Platform

from .utils import dt_utils


def set_default_timezone(hass):
    """Set the default timezone based on the Home Assistant configuration."""
    global DEFAULT_TIME_ZONE
    DEFAULT_TIME_ZONE = dt_util.get_time_zone(hass.config.time_zone)
    dt_utils.set_default_timezone(DEFAULT_TIME_ZONE)


# ------------------------------------------------------------------------------------------------
# General / Integration Information
# ------------------------------------------------------------------------------------------------
# Integration Name
SAFECHECK_TITLE = "SafeCheck"

# Integration Domain
DOMAIN = "safecheck"

# Logger
LOGGER = logging.getLogger(__package__)

# Supported Platforms
PLATFORMS = [
    Platform.BUTTON,
    Platform.SENSOR,
]

# Coordinator
COORDINATOR = "coordinator"
COORDINATOR_SUFFIX = "_coordinator"

# Storage and Versioning
STORE = "store"
STORAGE_KEY = "safecheck_data"
STORAGE_KEY_COOLDOWNS = "safecheck_notification_cooldowns"
STORAGE_VERSION = 1

# Store commit timeout (seconds); exceeding it is a transient failure
STORE_COMMIT_TIMEOUT = 10.0

# Transactions re-run on version conflict at most this many times
TRANSACTION_MAX_ATTEMPTS = 5

# Default timezone: initially None, to be set once hass is available.
DEFAULT_TIME_ZONE = None

# Update Interval (minutes)
DEFAULT_UPDATE_INTERVAL = 5

# ------------------------------------------------------------------------------------------------
# Configuration Keys
# ------------------------------------------------------------------------------------------------
CONF_SENIOR_NAME = "senior_name"
CONF_SENIOR_NOTIFY_SERVICE = "senior_notify_service"
CONF_FAMILY_NOTIFY_SERVICE = "family_notify_service"

CONFIG_FLOW_STEP_USER = "user"
TRANS_KEY_ERROR_SINGLE_INSTANCE = "single_instance_allowed"
TRANS_KEY_ERROR_INVALID_SENIOR_NAME = "invalid_senior_name"
CFOF_ERRORS_SENIOR_NAME = "senior_name"

# ------------------------------------------------------------------------------------------------
# Schedules
# ------------------------------------------------------------------------------------------------
# Implicit schedule when a senior has none
DEFAULT_SCHEDULE = "11:00 AM"

# ------------------------------------------------------------------------------------------------
# Retry Policy (transient store failures)
# ------------------------------------------------------------------------------------------------
RETRY_MAX_ATTEMPTS = 3
RETRY_BASE_DELAY = 0.5

# ------------------------------------------------------------------------------------------------
# Missed Check-in Escalation
# ------------------------------------------------------------------------------------------------
ESCALATION_THRESHOLD_DAYS = 3
ESCALATION_RATE_LIMIT_HOURS = 24

# ------------------------------------------------------------------------------------------------
# Notification Cooldowns (seconds)
# ------------------------------------------------------------------------------------------------
NOTIFICATION_COOLDOWN_SECONDS = 30
SOS_NOTIFICATION_COOLDOWN_SECONDS = 300
EXTERNAL_PUSH_DEDUP_SECONDS = 5

# Alert classes (cooldown ledger key prefixes)
ALERT_CLASS_SELF_MISSED = "self_missed_check_in"
ALERT_CLASS_FAMILY_MISSED = "family_missed_check_in"
ALERT_CLASS_SOS = "sos"
ALERT_CLASS_EXTERNAL_PUSH = "external_push"

ALERT_CLASSES = [
    ALERT_CLASS_SELF_MISSED,
    ALERT_CLASS_FAMILY_MISSED,
    ALERT_CLASS_SOS,
]

# Fire results
FIRE_RESULT_SENT = "sent"
FIRE_RESULT_SKIPPED_COUNT = "skipped_count"
FIRE_RESULT_SKIPPED_VACATION = "skipped_vacation"
FIRE_RESULT_SKIPPED_NOT_INITIALIZED = "skipped_not_initialized"
FIRE_RESULT_SKIPPED_COOLDOWN = "skipped_cooldown"
FIRE_RESULT_SKIPPED_EXTERNAL_PUSH = "skipped_external_push"

# Delivery priority
PRIORITY_NORMAL = "normal"
PRIORITY_CRITICAL = "critical"

# ------------------------------------------------------------------------------------------------
# Notify service payload
# ------------------------------------------------------------------------------------------------
NOTIFY_DOMAIN = "notify"
NOTIFY_TITLE = "title"
NOTIFY_MESSAGE = "message"
NOTIFY_DATA = "data"
NOTIFY_TAG = "tag"
NOTIFY_PRIORITY = "priority"
NOTIFY_TTL = "ttl"
NOTIFY_CLEAR = "clear_notification"

# ------------------------------------------------------------------------------------------------
# Notification texts
# ------------------------------------------------------------------------------------------------
TITLE_CHECK_IN_REMINDER = "Check-in Reminder"
TITLE_MULTIPLE_MISSED = "Multiple Missed Check-ins"
MSG_SELF_MISSED_SINGLE = (
    "You haven't checked in yet today. Tap to let your family know you're okay!"
)
MSG_SELF_MISSED_MULTIPLE_FMT = (
    "You've missed {count} check-ins today. Tap to check in now."
)
TITLE_FAMILY_MISSED = "Missed Check-in Alert"
MSG_FAMILY_MISSED_SINGLE_FMT = (
    "{name} has missed a check-in. Please ensure they are okay."
)
MSG_FAMILY_MISSED_MULTIPLE_FMT = (
    "{name} has missed {count} check-ins. Please check on them immediately."
)
TITLE_SOS = "SOS Alert"
MSG_SOS_FMT = "{name} has triggered an SOS alert. Please respond immediately."
DEFAULT_SUBJECT_NAME = "Your linked senior"

# ------------------------------------------------------------------------------------------------
# Events and Signals
# ------------------------------------------------------------------------------------------------
# HA bus event fired by an external push channel (mobile app relay)
EVENT_PUSH_RECEIVED = "safecheck_push_received"
EVENT_ESCALATION = "safecheck_escalation"

ATTR_ALERT_CLASS = "alert_class"
ATTR_SUBJECT_ID = "subject_id"

# Dispatcher signal suffixes (instance scoped)
SIGNAL_SUFFIX_CHECK_IN_RECORDED = "check_in_recorded"
SIGNAL_SUFFIX_SCHEDULES_CHANGED = "schedules_changed"
SIGNAL_SUFFIX_SENIOR_REGISTERED = "senior_registered"
SIGNAL_SUFFIX_SOS_CHANGED = "sos_changed"
SIGNAL_SUFFIX_VACATION_CHANGED = "vacation_changed"
SIGNAL_SUFFIX_MISSED_CHECK_IN = "missed_check_in"
SIGNAL_SUFFIX_ESCALATION = "escalation_triggered"

# Per-document change feed signal prefix
SIGNAL_DOCUMENT_CHANGED_FMT = "safecheck_{entry_id}_doc_{path}"

# ------------------------------------------------------------------------------------------------
# Document Paths
# ------------------------------------------------------------------------------------------------
DOC_SENIOR_STATE_FMT = "users/{user_id}/data/senior_state"
DOC_PROFILE_FMT = "users/{user_id}/data/profile"
COLLECTION_CHECK_INS_FMT = "users/{user_id}/check_ins"
COLLECTION_ACTIVITY_LOGS_FMT = "users/{user_id}/activity_logs"
DOC_SENIOR_REGISTRY = "safecheck/seniors"

# ------------------------------------------------------------------------------------------------
# Data Keys
# ------------------------------------------------------------------------------------------------
DATA_META = "meta"
DATA_META_SCHEMA_VERSION = "schema_version"
DATA_META_SAVED_AT = "saved_at"
DATA_DOCUMENTS = "documents"
DATA_COOLDOWNS = "cooldowns"

SCHEMA_VERSION = 1

# Senior registry
DATA_REGISTRY_SENIOR_IDS = "senior_ids"

# Senior state document
DATA_SENIOR_SCHEDULES = "schedules"
DATA_SENIOR_COMPLETED_TODAY = "completed_schedules_today"
DATA_SENIOR_RESET_DATE = "schedule_reset_date"
DATA_SENIOR_CURRENT_STREAK = "current_streak"
DATA_SENIOR_START_DATE = "start_date"
DATA_SENIOR_LAST_CHECK_IN = "last_check_in"
DATA_SENIOR_NEXT_EXPECTED = "next_expected_check_in"
DATA_SENIOR_VACATION_MODE = "vacation_mode"
DATA_SENIOR_SOS_ACTIVE = "sos_active"
DATA_SENIOR_CREATED_AT = "senior_created_at"
DATA_SENIOR_MISSED_TODAY = "missed_check_ins_today"
DATA_SENIOR_MISSED_DATE = "missed_check_ins_date"
DATA_SENIOR_LAST_MISSED = "last_missed_check_in"
DATA_SENIOR_CONSECUTIVE_MISSED_DAYS = "consecutive_missed_days"
DATA_SENIOR_LAST_ESCALATION = "last_escalation_at"
DATA_SENIOR_UPDATED_AT = "updated_at"

# Profile document
DATA_PROFILE_NAME = "display_name"
DATA_PROFILE_NOTIFY_SERVICE = "notify_service"
DATA_PROFILE_LATITUDE = "latitude"
DATA_PROFILE_LONGITUDE = "longitude"
DATA_PROFILE_LOCATION_ADDRESS = "location_address"
DATA_PROFILE_LOCATION_UPDATED_AT = "location_updated_at"

# Check-in record
DATA_CHECK_IN_ID = "id"
DATA_CHECK_IN_USER_ID = "user_id"
DATA_CHECK_IN_TIMESTAMP = "timestamp"
DATA_CHECK_IN_MOOD = "mood"
DATA_CHECK_IN_SLEEP = "sleep"
DATA_CHECK_IN_ENERGY = "energy"
DATA_CHECK_IN_MEDICATION = "medication"
DATA_CHECK_IN_BRAIN_EXERCISE = "brain_exercise_completed"
DATA_CHECK_IN_LATITUDE = "latitude"
DATA_CHECK_IN_LONGITUDE = "longitude"
DATA_CHECK_IN_LOCATION_ADDRESS = "location_address"
DATA_CHECK_IN_SCHEDULED_FOR = "scheduled_for"
DATA_CHECK_IN_SCHEDULED_COUNT = "scheduled_count"

# Activity log
DATA_ACTIVITY_TYPE = "type"
DATA_ACTIVITY_TIMESTAMP = "timestamp"
DATA_ACTIVITY_SCHEDULE = "schedule"
DATA_ACTIVITY_CONSECUTIVE_DAYS = "consecutive_missed_days"
ACTIVITY_TYPE_MISSED_CHECK_IN = "missed_check_in"
ACTIVITY_TYPE_ESCALATION = "escalation_triggered"
ACTIVITY_ID_MISSED_FMT = "missed_{user_id}_{schedule}_{date}"
ACTIVITY_ID_ESCALATION_FMT = "escalation_{user_id}_{date}"

# ------------------------------------------------------------------------------------------------
# Status
# ------------------------------------------------------------------------------------------------
STATUS_SAFE = "safe"
STATUS_RUNNING_LATE = "running_late"
STATUS_SOS_ACTIVE = "sos_active"
STATUS_OPTIONS = [STATUS_SAFE, STATUS_RUNNING_LATE, STATUS_SOS_ACTIVE]

# Streak states
STREAK_SAME_DAY = "same_day"
STREAK_CONSECUTIVE = "consecutive"
STREAK_BROKEN = "broken"

# ------------------------------------------------------------------------------------------------
# Services
# ------------------------------------------------------------------------------------------------
SERVICE_RECORD_CHECK_IN = "record_check_in"
SERVICE_ADD_SCHEDULE = "add_schedule"
SERVICE_REMOVE_SCHEDULE = "remove_schedule"
SERVICE_SET_VACATION_MODE = "set_vacation_mode"
SERVICE_SET_SOS = "set_sos"
SERVICE_REGISTER_SENIOR = "register_senior"
SERVICE_GET_CHECK_IN_HISTORY = "get_check_in_history"

SERVICES = [
    SERVICE_RECORD_CHECK_IN,
    SERVICE_ADD_SCHEDULE,
    SERVICE_REMOVE_SCHEDULE,
    SERVICE_SET_VACATION_MODE,
    SERVICE_SET_SOS,
    SERVICE_REGISTER_SENIOR,
    SERVICE_GET_CHECK_IN_HISTORY,
]

FIELD_SENIOR_NAME = "senior_name"
FIELD_SCHEDULE_TIME = "schedule_time"
FIELD_ENABLED = "enabled"
FIELD_ACTIVE = "active"
FIELD_NOTIFY_SERVICE = "notify_service"
FIELD_MOOD = "mood"
FIELD_SLEEP = "sleep"
FIELD_ENERGY = "energy"
FIELD_MEDICATION = "medication"
FIELD_BRAIN_EXERCISE = "brain_exercise_completed"
FIELD_LATITUDE = "latitude"
FIELD_LONGITUDE = "longitude"
FIELD_LOCATION_ADDRESS = "location_address"
FIELD_START_DATE = "start_date"
FIELD_END_DATE = "end_date"

# ------------------------------------------------------------------------------------------------
# Sensor / Button
# ------------------------------------------------------------------------------------------------
SENSOR_SUFFIX_STATUS = "_status"
SENSOR_SUFFIX_NEXT_EXPECTED = "_next_expected_check_in"
SENSOR_SUFFIX_STREAK = "_streak"
BUTTON_SUFFIX_CHECK_IN = "_check_in"

TRANS_KEY_SENSOR_STATUS = "senior_status"
TRANS_KEY_SENSOR_NEXT_EXPECTED = "next_expected_check_in"
TRANS_KEY_SENSOR_STREAK = "check_in_streak"
TRANS_KEY_BUTTON_CHECK_IN = "check_in"
TRANS_KEY_ATTR_SENIOR_NAME = "senior_name"

ATTR_SCHEDULES = "schedules"
ATTR_COMPLETED_TODAY = "completed_today"
ATTR_OVERDUE = "overdue"
ATTR_PENDING = "pending"
ATTR_VACATION_MODE = "vacation_mode"
ATTR_LAST_CHECK_IN = "last_check_in"
ATTR_STREAK_START_DATE = "streak_start_date"
ATTR_MISSED_TODAY = "missed_check_ins_today"
ATTR_SENIOR_ID = "senior_id"
ATTR_CONSECUTIVE_MISSED_DAYS = "consecutive_missed_days"

UNIT_DAYS = "days"

# ------------------------------------------------------------------------------------------------
# Error Messages
# ------------------------------------------------------------------------------------------------
MSG_NO_ENTRY_FOUND = "No SafeCheck entry found"
ERROR_SENIOR_NOT_FOUND_FMT = "Senior '{}' not found"
ERROR_EMPTY_SUBJECT_ID = "Subject id must not be empty"
ERROR_EMPTY_SCHEDULE = "Schedule time must not be empty"
ERROR_INVALID_SCHEDULE_FMT = "Invalid schedule time '{}' (expected H:MM AM/PM)"
ERROR_EMPTY_SENIOR_NAME = "Senior name must not be empty"
ERROR_TRANSACTION_READ_AFTER_WRITE = "Transaction reads must precede writes"
ERROR_TRANSACTION_CONTENTION_FMT = "Transaction aborted after {} conflicting attempts"
ERROR_STORE_TIMEOUT = "Timed out while committing to storage"
ERROR_STORE_WRITE_FMT = "Failed to persist storage: {}"
