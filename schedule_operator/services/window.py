"""
Active window evaluation

The window is the half-open hour range [start_hour, end_hour) on the local
clock of the schedule's timezone. Only the hour is consulted, so transitions
happen on the hour boundary. Windows that wrap midnight (start=22, end=6) are
never active; this is a known limitation kept for behavioral compatibility.
"""

from datetime import datetime


def is_within_active_window(current_time: datetime, start_hour: int, end_hour: int) -> bool:
    """Return True if current_time's hour lies in [start_hour, end_hour)"""
    hour = current_time.hour
    return start_hour <= hour < end_hour


def desired_replicas(active: bool, replicas_when_active: int) -> int:
    return replicas_when_active if active else 0
