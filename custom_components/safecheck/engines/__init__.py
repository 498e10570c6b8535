"""Engine modules for SafeCheck integration.

Contains pure computation engines:
- status_engine: Schedule classification, next expected check-in, streaks, status
- statistics_engine: Check-in history aggregation and success rate
"""

from .statistics_engine import StatisticsEngine
from .status_engine import SeniorStatus, StatusEngine, StreakUpdate

__all__ = [
    "SeniorStatus",
    "StatisticsEngine",
    "StatusEngine",
    "StreakUpdate",
]
