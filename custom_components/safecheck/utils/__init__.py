"""Pure Python utilities for SafeCheck.

This module contains pure Python functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Submodules:
    - dt_utils: Timezone handling and calendar-day arithmetic
    - schedule_codec: Parsing and normalizing "H:MM AM/PM" schedule entries

Usage:
    from . import dt_utils
    from .schedule_codec import parse_schedule_time
"""

from . import dt_utils, schedule_codec

__all__ = ["dt_utils", "schedule_codec"]
